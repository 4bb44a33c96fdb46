"""Query service - access-controlled CRUD, comments and lifecycle for queries."""

from typing import Any, Optional

from src.models.commands import (
    AssignmentChange,
    CommentPayload,
    QueryCreatePayload,
    StatusTransition,
    TitleEdit,
    UpdateCommand,
    parse_query_update,
    validate_payload,
)
from src.models.query import Query, QueryStatus
from src.models.task import Task
from src.models.user import Principal, Role
from src.policies.access_control import (
    authorize_commands,
    can_update_query,
    has_task_access,
    query_capabilities,
    require,
    require_view,
)
from src.policies.lifecycle import append_comment, transition_query, utcnow
from src.policies.visibility import FieldMatch, Scope, query_scope, task_scope
from src.services.resource_service import ResourceService, generate_id, page_envelope
from src.services.store import ListParams
from src.utils.config import AppConfig
from src.utils.errors import ForbiddenError, NotFoundError
from src.utils.logging import get_structured_logger, mask_user_id, timed

logger = get_structured_logger(__name__)


class QueryService(ResourceService):
    table = AppConfig.QUERIES_TABLE
    model = Query
    entity = "Query"

    def present(self, principal: Principal, query: Query, linked_task: Optional[Task]) -> dict[str, Any]:
        """Query plus a permission envelope computed for this principal."""
        return {**query.to_api(), **query_capabilities(principal, query, linked_task).envelope()}

    async def load_task(self, task_id: Optional[str]) -> Optional[Task]:
        if not task_id:
            return None
        row = await self.store.find_by_id(AppConfig.TASKS_TABLE, task_id)
        return Task.model_validate(row) if row else None

    async def load_with_task(self, query_id: str) -> tuple[Query, Optional[Task]]:
        """Load a query and the task it is linked to (None if unlinked or gone)."""
        query = await self.load(query_id)
        return query, await self.load_task(query.task_id)

    async def require_task_access(self, principal: Principal, task_id: str, action: str) -> Task:
        task = await self.load_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        if not (has_task_access(principal, task) or principal.is_admin):
            raise ForbiddenError(f"Not authorized to {action} for this task")
        return task

    @timed("queries.create")
    async def create_query(self, principal: Principal, payload: Any) -> dict[str, Any]:
        body: QueryCreatePayload = validate_payload(QueryCreatePayload, payload)

        linked_task = None
        if body.task_id:
            linked_task = await self.require_task_access(principal, body.task_id, "create a query")

        now = utcnow()
        query = Query(
            id=generate_id(),
            title=body.title,
            description=body.description,
            created_by=principal.id,
            task_id=body.task_id,
            status=QueryStatus.OPEN,
            priority=body.priority,
            created_at=now,
            updated_at=now,
        )
        row = await self.store.insert(self.table, query.to_row())
        created = Query.model_validate(row)
        logger.info(
            "Query created",
            query_id=created.id,
            task_id=created.task_id,
            user_id=mask_user_id(principal.id),
        )
        return self.present(principal, created, linked_task)

    @timed("queries.list")
    async def list_queries(
        self,
        principal: Principal,
        params: Optional[ListParams] = None,
        task_id: Optional[str] = None,
    ) -> dict[str, Any]:
        params = params or ListParams()

        if task_id:
            await self.require_task_access(principal, task_id, "view queries")
            params.filters["task_id"] = [task_id]

        scope = None
        if not principal.is_admin:
            accessible = await self.store.find_ids(AppConfig.TASKS_TABLE, task_scope(principal))
            scope = query_scope(principal, accessible)

        rows, total = await self.store.find(self.table, scope, params)
        queries = [Query.model_validate(row) for row in rows]
        tasks = await self._linked_tasks(queries)
        items = [self.present(principal, q, tasks.get(q.task_id)) for q in queries]
        return page_envelope(items, total, params)

    async def _linked_tasks(self, queries: list[Query]) -> dict[str, Task]:
        task_ids = sorted({q.task_id for q in queries if q.task_id})
        if not task_ids:
            return {}
        rows, _ = await self.store.find(
            AppConfig.TASKS_TABLE,
            Scope(any_of=[FieldMatch(field="id", values=task_ids)]),
            ListParams(limit=len(task_ids)),
        )
        return {row["id"]: Task.model_validate(row) for row in rows}

    async def get_query(self, principal: Principal, query_id: str) -> dict[str, Any]:
        query, linked_task = await self.load_with_task(query_id)
        require_view(query_capabilities(principal, query, linked_task), "query")
        return self.present(principal, query, linked_task)

    async def _plan(self, query: Query, commands: list[UpdateCommand], now) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for command in commands:
            if isinstance(command, TitleEdit):
                changes.update(command.changes())
            elif isinstance(command, StatusTransition):
                changes.update(transition_query(query, QueryStatus(command.status), now))
            elif isinstance(command, AssignmentChange):
                await self.users.require_user(command.assigned_to)
                changes["assigned_to"] = command.assigned_to
        return self.effective_changes(query, changes)

    @timed("queries.update")
    async def update_query(self, principal: Principal, query_id: str, payload: Any) -> dict[str, Any]:
        commands = parse_query_update(payload)

        for attempt in range(AppConfig.WRITE_RETRY_ATTEMPTS):
            query, linked_task = await self.load_with_task(query_id)
            require(
                can_update_query(principal, query, linked_task),
                "Not authorized to update this query",
            )
            capabilities = query_capabilities(principal, query, linked_task)

            allowed, ignored = authorize_commands(capabilities, commands)
            self.log_ignored(principal.id, query_id, ignored)

            now = utcnow()
            changes = await self._plan(query, allowed, now)
            if not changes:
                return self.present(principal, query, linked_task)

            guard = ("status",) if "status" in changes else ()
            updated = await self.write(query, changes, now, guard=guard)
            if updated is not None:
                logger.info(
                    "Query updated",
                    query_id=query_id,
                    user_id=mask_user_id(principal.id),
                    fields=sorted(changes),
                )
                return self.present(principal, updated, linked_task)

            logger.info("Query status changed underneath update, retrying", query_id=query_id, attempt=attempt + 1)

        raise self.conflict(query_id)

    @timed("queries.comment")
    async def add_comment(self, principal: Principal, query_id: str, payload: Any) -> dict[str, Any]:
        """
        Append a comment; returns the comment (with author details), the
        resulting query status and the refreshed query.

        The comment and any open -> in-progress transition are written in one
        update guarded on updated_at, so readers never see one without the other.
        """
        body: CommentPayload = validate_payload(CommentPayload, payload)

        for attempt in range(AppConfig.WRITE_RETRY_ATTEMPTS):
            query, linked_task = await self.load_with_task(query_id)
            capabilities = query_capabilities(principal, query, linked_task)
            require(capabilities.can_comment, "Not authorized to comment on this query")

            now = utcnow()
            comment, changes = append_comment(query, principal.id, body.text, now)
            updated = await self.write(query, changes, now, guard=("updated_at",))
            if updated is not None:
                logger.info(
                    "Comment added",
                    query_id=query_id,
                    user_id=mask_user_id(principal.id),
                    status=updated.status.value,
                    auto_transitioned="status" in changes,
                )
                author = {
                    "id": principal.id,
                    "name": principal.name,
                    "email": principal.email,
                    "role": principal.role.value,
                }
                return {
                    "comment": {**comment.to_api(), "user": author},
                    "queryStatus": updated.status.value,
                    "query": self.present(principal, updated, linked_task),
                }

            logger.info("Query changed underneath comment, retrying", query_id=query_id, attempt=attempt + 1)

        raise self.conflict(query_id)

    async def delete_query(self, principal: Principal, query_id: str) -> None:
        query, linked_task = await self.load_with_task(query_id)
        require(
            query_capabilities(principal, query, linked_task).can_delete,
            "Not authorized to delete this query",
        )

        if not await self.store.delete_by_id(self.table, query_id):
            raise NotFoundError(self.entity, query_id)
        logger.info("Query deleted", query_id=query_id, user_id=mask_user_id(principal.id))

    async def list_assignable_users(self, principal: Principal) -> list[dict[str, Any]]:
        """Admins other than the requester, who can take ownership of queries."""
        if not principal.is_admin:
            raise ForbiddenError("Access denied. Admin privileges required.")
        users = await self.users.list_by_role(Role.ADMIN, exclude_id=principal.id)
        return [user.to_api() for user in users]
