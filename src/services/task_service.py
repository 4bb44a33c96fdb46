"""Task service - access-controlled CRUD and lifecycle for tasks."""

from typing import Any, Optional

from src.models.commands import (
    AssignmentChange,
    DetailsEdit,
    StatusTransition,
    TaskCreatePayload,
    TitleEdit,
    UpdateCommand,
    parse_task_update,
    validate_payload,
)
from src.models.task import Task, TaskStatus
from src.models.user import Principal, Role
from src.policies.access_control import authorize_commands, require, require_view, task_capabilities
from src.policies.lifecycle import apply_changes, transition_task, utcnow
from src.policies.visibility import task_scope
from src.services.resource_service import ResourceService, generate_id, page_envelope
from src.services.store import ListParams
from src.utils.config import AppConfig
from src.utils.errors import ForbiddenError, NotFoundError
from src.utils.logging import get_structured_logger, mask_user_id, timed

logger = get_structured_logger(__name__)


class TaskService(ResourceService):
    table = AppConfig.TASKS_TABLE
    model = Task
    entity = "Task"

    def present(self, principal: Principal, task: Task) -> dict[str, Any]:
        """Task plus a permission envelope computed for this principal."""
        return {**task.to_api(), **task_capabilities(principal, task).envelope()}

    @timed("tasks.list")
    async def list_tasks(
        self,
        principal: Principal,
        params: Optional[ListParams] = None,
        assigned_to: Optional[str] = None,
    ) -> dict[str, Any]:
        params = params or ListParams()
        params.search_tag_fields = ["tags"]
        if principal.is_admin and assigned_to:
            params.filters["assigned_to"] = [assigned_to]

        rows, total = await self.store.find(self.table, task_scope(principal), params)
        items = [self.present(principal, Task.model_validate(row)) for row in rows]
        return page_envelope(items, total, params)

    async def get_task(self, principal: Principal, task_id: str) -> dict[str, Any]:
        task = await self.load(task_id)
        require_view(task_capabilities(principal, task), "task")
        return self.present(principal, task)

    @timed("tasks.create")
    async def create_task(self, principal: Principal, payload: Any) -> dict[str, Any]:
        body: TaskCreatePayload = validate_payload(TaskCreatePayload, payload)

        # Only admins choose the assignee; everyone else works their own task
        assigned_to = principal.id
        if principal.is_admin and body.assigned_to:
            await self.users.require_user(body.assigned_to)
            assigned_to = body.assigned_to

        now = utcnow()
        task = Task(
            id=generate_id(),
            title=body.title,
            description=body.description,
            tags=body.tags,
            created_by=principal.id,
            assigned_to=assigned_to,
            priority=body.priority,
            due_date=body.due_date,
            created_at=now,
            updated_at=now,
        )
        if principal.is_admin and body.status != task.status:
            task = apply_changes(task, transition_task(task, body.status, now))

        row = await self.store.insert(self.table, task.to_row())
        created = Task.model_validate(row)
        logger.info(
            "Task created",
            task_id=created.id,
            user_id=mask_user_id(principal.id),
            status=created.status.value,
        )
        return self.present(principal, created)

    async def _plan(self, task: Task, commands: list[UpdateCommand], now) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for command in commands:
            if isinstance(command, (TitleEdit, DetailsEdit)):
                changes.update(command.changes())
            elif isinstance(command, StatusTransition):
                changes.update(transition_task(task, TaskStatus(command.status), now))
            elif isinstance(command, AssignmentChange):
                await self.users.require_user(command.assigned_to)
                changes["assigned_to"] = command.assigned_to
        return self.effective_changes(task, changes)

    @timed("tasks.update")
    async def update_task(self, principal: Principal, task_id: str, payload: Any) -> dict[str, Any]:
        commands = parse_task_update(payload)

        for attempt in range(AppConfig.WRITE_RETRY_ATTEMPTS):
            task = await self.load(task_id)
            capabilities = task_capabilities(principal, task)
            require(capabilities.can_edit, "Not authorized to update this task")

            allowed, ignored = authorize_commands(capabilities, commands)
            self.log_ignored(principal.id, task_id, ignored)

            now = utcnow()
            changes = await self._plan(task, allowed, now)
            if not changes:
                return self.present(principal, task)

            # Status and completed_at move together only if status is unchanged underneath
            guard = ("status",) if "status" in changes else ()
            updated = await self.write(task, changes, now, guard=guard)
            if updated is not None:
                logger.info(
                    "Task updated",
                    task_id=task_id,
                    user_id=mask_user_id(principal.id),
                    fields=sorted(changes),
                )
                return self.present(principal, updated)

            logger.info("Task status changed underneath update, retrying", task_id=task_id, attempt=attempt + 1)

        raise self.conflict(task_id)

    @timed("tasks.assign")
    async def assign_task(self, principal: Principal, task_id: str, user_id: Optional[str]) -> dict[str, Any]:
        task = await self.load(task_id)
        require(task_capabilities(principal, task).can_assign, "Not authorized to assign this task")
        if not user_id:
            raise NotFoundError("User")
        await self.users.require_user(user_id)

        changes = self.effective_changes(task, {"assigned_to": user_id})
        if not changes:
            return self.present(principal, task)

        updated = await self.write(task, changes, utcnow())
        logger.info("Task assigned", task_id=task_id, assignee=mask_user_id(user_id))
        return self.present(principal, updated)

    async def delete_task(self, principal: Principal, task_id: str) -> None:
        task = await self.load(task_id)
        require(task_capabilities(principal, task).can_delete, "Not authorized to delete this task")

        if not await self.store.delete_by_id(self.table, task_id):
            raise NotFoundError(self.entity, task_id)
        logger.info("Task deleted", task_id=task_id, user_id=mask_user_id(principal.id))

    async def list_assignable_users(self, principal: Principal) -> list[dict[str, Any]]:
        """Regular users an admin can hand tasks to."""
        if not principal.is_admin:
            raise ForbiddenError("Access denied. Admin privileges required.")
        users = await self.users.list_by_role(Role.USER, exclude_id=principal.id)
        return [user.to_api() for user in users]
