"""Status lifecycle for tasks and queries.

Each function returns only the field changes to persist; an empty dict means
nothing changes. Derived timestamps are never taken from request input.
"""

from typing import Any, Optional
from datetime import datetime, timezone

from src.models.task import Task, TaskStatus
from src.models.query import Comment, Query, QueryStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def transition_task(task: Task, status: TaskStatus, now: Optional[datetime] = None) -> dict[str, Any]:
    """Move a task to status, setting or clearing completed_at."""
    status = TaskStatus(status)
    if status == task.status:
        return {}

    changes: dict[str, Any] = {"status": status}
    if status == TaskStatus.COMPLETED:
        changes["completed_at"] = now or utcnow()
    elif task.status == TaskStatus.COMPLETED:
        changes["completed_at"] = None
    return changes


def transition_query(query: Query, status: QueryStatus, now: Optional[datetime] = None) -> dict[str, Any]:
    """Move a query to status, setting or clearing resolved_at."""
    status = QueryStatus(status)
    if status == query.status:
        return {}

    changes: dict[str, Any] = {"status": status}
    if status == QueryStatus.RESOLVED:
        changes["resolved_at"] = now or utcnow()
    elif query.status == QueryStatus.RESOLVED:
        changes["resolved_at"] = None
    return changes


def append_comment(
    query: Query,
    author_id: str,
    text: str,
    now: Optional[datetime] = None,
) -> tuple[Comment, dict[str, Any]]:
    """
    Append a comment and apply the implicit open -> in-progress transition.

    The transition fires only for an open query commented on by someone other
    than its creator. Comments are never deduplicated.
    """
    comment = Comment(user=author_id, text=text, created_at=now or utcnow())
    changes: dict[str, Any] = {"comments": [*query.comments, comment]}

    if query.status == QueryStatus.OPEN and author_id != query.created_by:
        changes["status"] = QueryStatus.IN_PROGRESS

    return comment, changes


def apply_changes(resource, changes: dict[str, Any]):
    """Return a copy of resource with changes applied and re-validated."""
    data = resource.model_dump()
    data.update(changes)
    return type(resource).model_validate(data)
