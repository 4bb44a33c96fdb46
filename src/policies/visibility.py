"""Visibility scoping for list endpoints.

A scope is a predicate over stored rows. Non-admins get an OR of field
matches that selects exactly the rows the per-item can_view check allows.
Admins get no scope at all.
"""

from typing import Any, Iterable, Optional
from pydantic import BaseModel, Field

from src.models.user import Principal


class FieldMatch(BaseModel):
    """Row matches when row[field] is one of values."""
    field: str
    values: list[str] = Field(default_factory=list)

    def matches(self, row: dict[str, Any]) -> bool:
        value = row.get(self.field)
        return value is not None and value in self.values

    def to_postgrest(self) -> Optional[str]:
        if not self.values:
            return None
        if len(self.values) == 1:
            return f"{self.field}.eq.{self.values[0]}"
        joined = ",".join(self.values)
        return f"{self.field}.in.({joined})"


class Scope(BaseModel):
    """OR of field matches."""
    any_of: list[FieldMatch] = Field(default_factory=list)

    def matches(self, row: dict[str, Any]) -> bool:
        return any(term.matches(row) for term in self.any_of)

    def to_postgrest(self) -> Optional[str]:
        """Render as the argument of a PostgREST or=() filter; None matches nothing."""
        parts = [p for p in (term.to_postgrest() for term in self.any_of) if p]
        if not parts:
            return None
        return ",".join(parts)


def task_scope(principal: Principal) -> Optional[Scope]:
    """Tasks the principal created or is assigned to."""
    if principal.is_admin:
        return None
    return Scope(any_of=[
        FieldMatch(field="created_by", values=[principal.id]),
        FieldMatch(field="assigned_to", values=[principal.id]),
    ])


def query_scope(principal: Principal, accessible_task_ids: Iterable[str]) -> Optional[Scope]:
    """
    Queries the principal created, is assigned to, or that hang off a task in
    accessible_task_ids (the ids selected by task_scope for this principal).
    """
    if principal.is_admin:
        return None
    return Scope(any_of=[
        FieldMatch(field="created_by", values=[principal.id]),
        FieldMatch(field="assigned_to", values=[principal.id]),
        FieldMatch(field="task_id", values=sorted(set(accessible_task_ids))),
    ])
