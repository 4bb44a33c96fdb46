"""Task models."""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import Field, model_validator

from src.models.base import ResourceModel


class TaskStatus(str, Enum):
    """Task status values. Any status is reachable from any other."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    """Task priority values."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Task(ResourceModel):
    """Assignable unit of work owned by its creator."""
    id: str = Field(..., description="Task ID (text)")
    title: str = Field(..., min_length=1, description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    tags: list[str] = Field(default_factory=list, description="Ordered tags")
    created_by: str = Field(..., description="Owner user ID, immutable")
    assigned_to: Optional[str] = Field(None, description="Assignee user ID, admin-settable")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = Field(None, description="Derived from status")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_completed_at(self) -> "Task":
        """completed_at is set exactly when the task is completed."""
        if (self.status == TaskStatus.COMPLETED) != (self.completed_at is not None):
            raise ValueError("completed_at must be set if and only if status is completed")
        return self
