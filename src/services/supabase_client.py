"""Supabase client wrapper and Store implementation."""

import re
from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions

from src.policies.visibility import Scope
from src.services.store import ListParams
from src.utils.config import AppConfig
from src.utils.errors import SupabaseError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None

# Characters with meaning inside PostgREST or=() expressions
_POSTGREST_RESERVED = re.compile(r"[,(){}*:\"\\]")


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = AppConfig.SUPABASE_URL
        key = AppConfig.SUPABASE_SERVICE_ROLE_KEY

        if not url or not key:
            raise SupabaseError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", url=url)

    return _client


class SupabaseClient:
    """Async context manager for Supabase client."""

    def __init__(self):
        self.client: Optional[Client] = None

    async def __aenter__(self) -> Client:
        self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                error=str(exc_val),
                type=exc_type.__name__
            )
        return False


def _search_expression(params: ListParams) -> Optional[str]:
    term = _POSTGREST_RESERVED.sub(" ", params.search or "").strip()
    if not term:
        return None
    terms = [f"{field}.ilike.*{term}*" for field in params.search_fields]
    # Array columns match a whole element, not a substring
    terms += [f"{field}.cs.{{{term}}}" for field in params.search_tag_fields]
    return ",".join(terms)


class SupabaseStore:
    """Store backed by Supabase tables keyed by a text id column."""

    async def find_by_id(self, table: str, row_id: str) -> Optional[dict]:
        async with SupabaseClient() as client:
            try:
                result = client.table(table).select("*").eq("id", row_id).execute()
                return result.data[0] if result.data else None
            except Exception as e:
                raise SupabaseError(f"Failed to get {table} row: {e}")

    async def find(
        self,
        table: str,
        scope: Optional[Scope],
        params: Optional[ListParams] = None,
    ) -> tuple[list[dict], int]:
        params = params or ListParams()

        scope_expression = None
        if scope is not None:
            scope_expression = scope.to_postgrest()
            if scope_expression is None:
                return [], 0

        async with SupabaseClient() as client:
            try:
                query = client.table(table).select("*", count="exact")
                if scope_expression:
                    query = query.or_(scope_expression)
                for field, values in params.filters.items():
                    if len(values) == 1:
                        query = query.eq(field, values[0])
                    else:
                        query = query.in_(field, values)
                search = _search_expression(params)
                if search:
                    query = query.or_(search)
                query = query.order(params.sort_field, desc=params.sort_desc)
                query = query.range(params.offset, params.offset + params.limit - 1)

                result = query.execute()
                rows = result.data or []
                total = result.count if result.count is not None else len(rows)
                return rows, total
            except Exception as e:
                raise SupabaseError(f"Failed to list {table}: {e}")

    async def find_ids(self, table: str, scope: Optional[Scope]) -> list[str]:
        scope_expression = None
        if scope is not None:
            scope_expression = scope.to_postgrest()
            if scope_expression is None:
                return []

        async with SupabaseClient() as client:
            try:
                query = client.table(table).select("id")
                if scope_expression:
                    query = query.or_(scope_expression)
                result = query.execute()
                return [row["id"] for row in result.data or []]
            except Exception as e:
                raise SupabaseError(f"Failed to list {table} ids: {e}")

    async def insert(self, table: str, row: dict) -> dict:
        async with SupabaseClient() as client:
            try:
                result = client.table(table).insert(row).execute()
            except Exception as e:
                raise SupabaseError(f"Failed to insert into {table}: {e}")
            if result.data:
                return result.data[0]
            raise SupabaseError(f"Failed to insert into {table}: no data returned")

    async def update_fields(
        self,
        table: str,
        row_id: str,
        changes: dict,
        expected: Optional[dict] = None,
    ) -> Optional[dict]:
        async with SupabaseClient() as client:
            try:
                query = client.table(table).update(changes).eq("id", row_id)
                for column, value in (expected or {}).items():
                    if value is None:
                        query = query.is_(column, "null")
                    else:
                        query = query.eq(column, value)
                result = query.execute()
                return result.data[0] if result.data else None
            except Exception as e:
                raise SupabaseError(f"Failed to update {table} row: {e}")

    async def delete_by_id(self, table: str, row_id: str) -> bool:
        async with SupabaseClient() as client:
            try:
                result = client.table(table).delete().eq("id", row_id).execute()
                return bool(result.data)
            except Exception as e:
                raise SupabaseError(f"Failed to delete {table} row: {e}")


_store: Optional[SupabaseStore] = None


def get_store() -> SupabaseStore:
    """Get the process-wide store."""
    global _store
    if _store is None:
        _store = SupabaseStore()
    return _store
