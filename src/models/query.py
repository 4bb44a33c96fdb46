"""Query (support thread) models."""

from enum import Enum
from typing import Optional
from datetime import datetime, timezone
from pydantic import Field, field_validator, model_validator

from src.models.base import ResourceModel


class QueryStatus(str, Enum):
    """Query status values."""
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class QueryPriority(str, Enum):
    """Query priority values (not governed by the lifecycle)."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Comment(ResourceModel):
    """Append-only comment embedded in a query."""
    user: str = Field(..., description="Author user ID")
    text: str = Field(..., description="Comment body")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Comment text is required")
        return value


class Query(ResourceModel):
    """Support/discussion thread, optionally anchored to a task."""
    id: str = Field(..., description="Query ID (text)")
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    created_by: str = Field(..., description="Owner user ID, immutable")
    assigned_to: Optional[str] = Field(None, description="Assignee user ID, admin-settable")
    task_id: Optional[str] = Field(None, description="Linked task ID, immutable once set")
    status: QueryStatus = Field(default=QueryStatus.OPEN)
    priority: QueryPriority = Field(default=QueryPriority.MEDIUM)
    comments: list[Comment] = Field(default_factory=list)
    resolved_at: Optional[datetime] = Field(None, description="Derived from status")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_resolved_at(self) -> "Query":
        """resolved_at is set exactly when the query is resolved."""
        if (self.status == QueryStatus.RESOLVED) != (self.resolved_at is not None):
            raise ValueError("resolved_at must be set if and only if status is resolved")
        return self
