"""User and principal models."""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import Field

from src.models.base import ResourceModel


class Role(str, Enum):
    """User roles."""
    USER = "user"
    ADMIN = "admin"


class User(ResourceModel):
    """Identity record from the users table."""
    id: str = Field(..., description="User ID (text)")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address (unique)")
    password_hash: Optional[str] = Field(None, exclude=True, description="Never serialized outward")
    role: Role = Field(default=Role.USER, description="Role: user or admin")
    is_active: bool = Field(default=True)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_principal(self) -> "Principal":
        return Principal(id=self.id, role=self.role, name=self.name, email=self.email)


class Principal(ResourceModel):
    """Already-authenticated requester, passed explicitly to every check."""
    id: str
    role: Role = Role.USER
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
