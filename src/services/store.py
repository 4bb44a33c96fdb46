"""Persistence contract consumed by the resource services."""

from typing import Any, Optional, Protocol
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_snake

from src.policies.visibility import Scope
from src.utils.config import AppConfig
from src.utils.errors import RequestValidationError

SORTABLE_FIELDS = {"created_at", "updated_at", "due_date", "priority", "status", "title"}


class ListParams(BaseModel):
    """Filtering, search, sorting and pagination for list endpoints."""
    filters: dict[str, list[str]] = Field(default_factory=dict)
    search: Optional[str] = None
    search_fields: list[str] = Field(default_factory=lambda: ["title", "description"])
    search_tag_fields: list[str] = Field(default_factory=list)
    sort_field: str = "created_at"
    sort_desc: bool = True
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=AppConfig.DEFAULT_PAGE_SIZE, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_query(cls, query: Optional[dict[str, Any]], filter_fields: tuple[str, ...] = ("status", "priority")) -> "ListParams":
        """Parse query-string values (status=a,b&search=x&sortBy=createdAt:desc&page=2&limit=20)."""
        query = query or {}
        filters: dict[str, list[str]] = {}
        for name in filter_fields:
            raw = query.get(name)
            if raw:
                filters[name] = [v.strip() for v in str(raw).split(",") if v.strip()]

        sort_field, sort_desc = "created_at", True
        if query.get("sortBy"):
            field, _, direction = str(query["sortBy"]).partition(":")
            sort_field = to_snake(field.strip())
            if sort_field not in SORTABLE_FIELDS:
                raise RequestValidationError(f"Cannot sort by {field}")
            sort_desc = direction.strip().lower() == "desc"

        try:
            page = max(int(query.get("page") or 1), 1)
            limit = int(query.get("limit") or AppConfig.DEFAULT_PAGE_SIZE)
        except (TypeError, ValueError):
            raise RequestValidationError("page and limit must be integers")
        limit = min(max(limit, 1), AppConfig.MAX_PAGE_SIZE)

        search = query.get("search")
        return cls(
            filters=filters,
            search=str(search) if search else None,
            sort_field=sort_field,
            sort_desc=sort_desc,
            page=page,
            limit=limit,
        )


class Store(Protocol):
    """Document-style operations over the tasks, queries and users tables."""

    async def find_by_id(self, table: str, row_id: str) -> Optional[dict]:
        ...

    async def find(
        self,
        table: str,
        scope: Optional[Scope],
        params: Optional[ListParams] = None,
    ) -> tuple[list[dict], int]:
        """Rows matching scope (None = unrestricted) and params, plus the total count."""
        ...

    async def find_ids(self, table: str, scope: Optional[Scope]) -> list[str]:
        ...

    async def insert(self, table: str, row: dict) -> dict:
        ...

    async def update_fields(
        self,
        table: str,
        row_id: str,
        changes: dict,
        expected: Optional[dict] = None,
    ) -> Optional[dict]:
        """
        Write changes to one row.

        With expected, the write only applies while every expected column still
        holds its expected value. Returns the updated row, or None if no row
        matched.
        """
        ...

    async def delete_by_id(self, table: str, row_id: str) -> bool:
        ...
