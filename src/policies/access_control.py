"""Access control evaluator for tasks and queries.

Pure functions: every entity a decision depends on (including the task behind
a query) is loaded by the caller and passed in. Nothing here performs I/O.
"""

from typing import Optional, Sequence, Union
from pydantic import BaseModel

from src.models.user import Principal
from src.models.task import Task
from src.models.query import Query
from src.models.commands import UpdateCommand
from src.utils.errors import ForbiddenError

Resource = Union[Task, Query]


class Capabilities(BaseModel):
    """What a principal may do with one resource."""
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_assign: bool = False
    can_comment: bool = False
    can_transition: bool = False

    def envelope(self) -> dict[str, bool]:
        """Permission envelope attached to API responses."""
        return {
            "canEdit": self.can_edit,
            "canDelete": self.can_delete,
            "canAssign": self.can_assign,
            "canComment": self.can_comment,
        }


def is_owner(principal: Principal, resource: Resource) -> bool:
    return principal.id == resource.created_by


def is_assignee(principal: Principal, resource: Resource) -> bool:
    return resource.assigned_to is not None and principal.id == resource.assigned_to


def has_task_access(principal: Principal, task: Optional[Task]) -> bool:
    """Creator or assignee of the task a query is linked to."""
    if task is None:
        return False
    return is_owner(principal, task) or is_assignee(principal, task)


def task_capabilities(principal: Principal, task: Task) -> Capabilities:
    owner = is_owner(principal, task)
    admin = principal.is_admin
    can_view = owner or is_assignee(principal, task) or admin

    return Capabilities(
        can_view=can_view,
        can_edit=owner or admin,
        can_delete=owner or admin,
        can_assign=admin,
        can_comment=can_view,
        can_transition=admin,
    )


def query_capabilities(
    principal: Principal,
    query: Query,
    linked_task: Optional[Task] = None,
) -> Capabilities:
    """
    Capabilities on a query.

    linked_task must be the task referenced by query.task_id, or None when the
    query has no task or the task no longer exists.
    """
    if linked_task is not None and linked_task.id != query.task_id:
        raise ValueError("linked_task does not match query.task_id")

    owner = is_owner(principal, query)
    admin = principal.is_admin
    can_view = (
        owner
        or is_assignee(principal, query)
        or has_task_access(principal, linked_task)
        or admin
    )

    return Capabilities(
        can_view=can_view,
        can_edit=owner or admin,
        can_delete=admin,
        can_assign=admin,
        can_comment=can_view,
        can_transition=admin,
    )


def can_update_query(principal: Principal, query: Query, linked_task: Optional[Task]) -> bool:
    """
    Coarse gate for the query update route.

    Broader than can_edit: task-access holders pass the gate, but field rules
    still restrict what they may change.
    """
    return is_owner(principal, query) or has_task_access(principal, linked_task) or principal.is_admin


def require_view(capabilities: Capabilities, entity: str) -> None:
    if not capabilities.can_view:
        raise ForbiddenError(f"Not authorized to access this {entity}")


def require(allowed: bool, message: str) -> None:
    if not allowed:
        raise ForbiddenError(message)


def authorize_commands(
    capabilities: Capabilities,
    commands: Sequence[UpdateCommand],
) -> tuple[list[UpdateCommand], list[UpdateCommand]]:
    """
    Split commands into (allowed, ignored) by the capability each one requires.

    Ignored commands are dropped without error; callers log them.
    """
    allowed: list[UpdateCommand] = []
    ignored: list[UpdateCommand] = []
    for command in commands:
        if getattr(capabilities, command.required_capability):
            allowed.append(command)
        else:
            ignored.append(command)
    return allowed, ignored
