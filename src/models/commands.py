"""Tagged update commands and request payload models.

A raw request body is parsed into one command per field group. Each command
names the capability it needs, so field-level write rules are applied to
commands rather than to loose dictionary keys.
"""

from typing import Annotated, Any, ClassVar, Literal, Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

from src.models.base import ResourceModel
from src.models.task import TaskStatus, TaskPriority
from src.models.query import QueryPriority, QueryStatus
from src.utils.errors import RequestValidationError


class TitleEdit(BaseModel):
    """Change title and/or description."""
    kind: Literal["title_edit"] = "title_edit"
    required_capability: ClassVar[str] = "can_edit"
    title: Optional[str] = None
    description: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(include={"title", "description"}, exclude_none=True)


class DetailsEdit(BaseModel):
    """Change task tags, priority or due date."""
    kind: Literal["details_edit"] = "details_edit"
    required_capability: ClassVar[str] = "can_edit"
    tags: Optional[list[str]] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    clear_due_date: bool = False

    def changes(self) -> dict[str, Any]:
        changes = self.model_dump(mode="json", include={"tags", "priority", "due_date"}, exclude_none=True)
        if self.clear_due_date:
            changes["due_date"] = None
        return changes


class StatusTransition(BaseModel):
    """Request a status change; derived timestamps come from the lifecycle."""
    kind: Literal["status_transition"] = "status_transition"
    required_capability: ClassVar[str] = "can_transition"
    status: str


class AssignmentChange(BaseModel):
    """Reassign the resource to another existing user."""
    kind: Literal["assignment_change"] = "assignment_change"
    required_capability: ClassVar[str] = "can_assign"
    assigned_to: str = Field(..., min_length=1)


UpdateCommand = Annotated[
    Union[TitleEdit, DetailsEdit, StatusTransition, AssignmentChange],
    Field(discriminator="kind"),
]


def _null_string_to_none(value: Any) -> Any:
    if value == "null" or value == "":
        return None
    return value


def _required_text(value: Optional[str], label: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError(f"{label} cannot be blank")
    return value


class TaskCreatePayload(ResourceModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    assigned_to: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def due_date_null(cls, value: Any) -> Any:
        return _null_string_to_none(value)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        return _required_text(value, "Title")


class TaskUpdatePayload(ResourceModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def due_date_null(cls, value: Any) -> Any:
        return _null_string_to_none(value)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: Optional[str]) -> Optional[str]:
        return _required_text(value, "Title")


class QueryCreatePayload(ResourceModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    task_id: Optional[str] = None
    priority: QueryPriority = QueryPriority.MEDIUM

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, value: str, info: ValidationInfo) -> str:
        return _required_text(value, info.field_name.capitalize())


class QueryUpdatePayload(ResourceModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    status: Optional[QueryStatus] = None
    assigned_to: Optional[str] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: Optional[str]) -> Optional[str]:
        return _required_text(value, "Title")

    @field_validator("description")
    @classmethod
    def blank_description_unchanged(cls, value: Optional[str]) -> Optional[str]:
        """A blank description leaves the stored one as it is."""
        return (value or "").strip() or None


class CommentPayload(ResourceModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Comment text is required")
        return value


def validate_payload(model: type[BaseModel], payload: Any) -> Any:
    """Validate a request body, mapping pydantic errors to a 400."""
    if not isinstance(payload, dict):
        raise RequestValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise RequestValidationError(f"Invalid request: {details}") from e


def parse_task_update(payload: Any) -> list[UpdateCommand]:
    """Split a task update body into commands. Unknown and derived fields are dropped."""
    body: TaskUpdatePayload = validate_payload(TaskUpdatePayload, payload)
    commands: list[UpdateCommand] = []

    if body.title is not None or body.description is not None:
        commands.append(TitleEdit(title=body.title, description=body.description))

    clear_due_date = "due_date" in body.model_fields_set and body.due_date is None
    if body.tags is not None or body.priority is not None or body.due_date is not None or clear_due_date:
        commands.append(DetailsEdit(
            tags=body.tags,
            priority=body.priority,
            due_date=body.due_date,
            clear_due_date=clear_due_date,
        ))

    if body.status is not None:
        commands.append(StatusTransition(status=body.status.value))

    if body.assigned_to:
        commands.append(AssignmentChange(assigned_to=body.assigned_to))

    return commands


def parse_query_update(payload: Any) -> list[UpdateCommand]:
    """Split a query update body into commands."""
    body: QueryUpdatePayload = validate_payload(QueryUpdatePayload, payload)
    commands: list[UpdateCommand] = []

    if body.title is not None or body.description is not None:
        commands.append(TitleEdit(title=body.title, description=body.description))

    if body.status is not None:
        commands.append(StatusTransition(status=body.status.value))

    if body.assigned_to:
        commands.append(AssignmentChange(assigned_to=body.assigned_to))

    return commands
