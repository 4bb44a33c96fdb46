"""Query endpoints for Vercel.

GET    /api/queries                 list queries visible to the requester
POST   /api/queries                 create a query
GET    /api/queries/users           admins available for assignment (admin)
GET    /api/queries/{id}            fetch one query
PUT    /api/queries/{id}            update a query
DELETE /api/queries/{id}            delete a query (admin)
POST   /api/queries/{id}/comments   add a comment
"""

from src.services.query_service import QueryService
from src.services.store import ListParams
from src.services.supabase_client import get_store
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

PREFIX = "/api/queries"


async def dispatch(request: dict, headers: dict) -> dict:
    segments = match_route(request.get("path", ""), PREFIX)
    if segments is None or len(segments) > 2:
        return not_found()

    method = (request.get("method") or "GET").upper()
    query = request.get("query") or {}

    store = get_store()
    users = UserDirectory(store)
    principal = await users.resolve_principal(headers.get(AppConfig.USER_ID_HEADER.lower()))
    service = QueryService(store, users)

    if not segments:
        if method == "GET":
            params = ListParams.from_query(query, filter_fields=("status",))
            page = await service.list_queries(principal, params, task_id=query.get("taskId"))
            return json_response(200, {"success": True, **page})
        if method == "POST":
            created = await service.create_query(principal, parse_json_body(request))
            return single(created, "Query created successfully", status_code=201)
        return method_not_allowed()

    if segments == ["users"]:
        if method != "GET":
            return method_not_allowed()
        if not await users.is_admin(principal.id):
            raise ForbiddenError("Access denied. Admin privileges required.")
        return single(await service.list_assignable_users(principal))

    query_id = segments[0]

    if len(segments) == 2:
        if segments[1] != "comments":
            return not_found()
        if method != "POST":
            return method_not_allowed()
        result = await service.add_comment(principal, query_id, parse_json_body(request))
        return json_response(201, {
            "success": True,
            "data": result["comment"],
            "queryStatus": result["queryStatus"],
            "message": "Comment added successfully",
        })

    if method == "GET":
        return single(await service.get_query(principal, query_id))
    if method == "PUT":
        updated = await service.update_query(principal, query_id, parse_json_body(request))
        return single(updated, "Query updated successfully")
    if method == "DELETE":
        await service.delete_query(principal, query_id)
        return json_response(200, {"success": True, "message": "Query deleted successfully"})
    return method_not_allowed()


def handler(request):
    """Vercel serverless function handler for query routes."""
    return run_endpoint(request, dispatch)
