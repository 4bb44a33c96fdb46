"""Task endpoints for Vercel.

GET    /api/tasks               list tasks visible to the requester
POST   /api/tasks               create a task
GET    /api/tasks/users         users available for assignment (admin)
GET    /api/tasks/{id}          fetch one task
PUT    /api/tasks/{id}          update a task
DELETE /api/tasks/{id}          delete a task
POST   /api/tasks/{id}/assign   assign a task (admin)
"""

from src.services.store import ListParams
from src.services.supabase_client import get_store
from src.services.task_service import TaskService
from src.services.users import UserDirectory
from src.utils.config import AppConfig
from src.utils.errors import ForbiddenError
from src.utils.http import (
    json_response,
    match_route,
    method_not_allowed,
    not_found,
    parse_json_body,
    run_endpoint,
    single,
)
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()

PREFIX = "/api/tasks"


async def dispatch(request: dict, headers: dict) -> dict:
    segments = match_route(request.get("path", ""), PREFIX)
    if segments is None or len(segments) > 2:
        return not_found()

    method = (request.get("method") or "GET").upper()
    query = request.get("query") or {}

    store = get_store()
    users = UserDirectory(store)
    principal = await users.resolve_principal(headers.get(AppConfig.USER_ID_HEADER.lower()))
    service = TaskService(store, users)

    if not segments:
        if method == "GET":
            params = ListParams.from_query(query)
            page = await service.list_tasks(principal, params, assigned_to=query.get("assignedTo"))
            return json_response(200, {"success": True, **page})
        if method == "POST":
            task = await service.create_task(principal, parse_json_body(request))
            return single(task, "Task created successfully", status_code=201)
        return method_not_allowed()

    if segments == ["users"]:
        if method != "GET":
            return method_not_allowed()
        if not await users.is_admin(principal.id):
            raise ForbiddenError("Access denied. Admin privileges required.")
        return single(await service.list_assignable_users(principal))

    task_id = segments[0]

    if len(segments) == 2:
        if segments[1] != "assign":
            return not_found()
        if method != "POST":
            return method_not_allowed()
        if not await users.is_admin(principal.id):
            raise ForbiddenError("Access denied. Admin privileges required.")
        body = parse_json_body(request)
        task = await service.assign_task(principal, task_id, body.get("userId"))
        return single(task, "Task assigned successfully")

    if method == "GET":
        return single(await service.get_task(principal, task_id))
    if method == "PUT":
        task = await service.update_task(principal, task_id, parse_json_body(request))
        return single(task, "Task updated successfully")
    if method == "DELETE":
        await service.delete_task(principal, task_id)
        return json_response(200, {"success": True, "message": "Task deleted successfully"})
    return method_not_allowed()


def handler(request):
    """Vercel serverless function handler for task routes."""
    return run_endpoint(request, dispatch)
