"""Shared plumbing for the task and query services."""

import math
from typing import Any, Optional, TypeVar

from ulid import ULID

from src.models.base import ResourceModel
from src.policies.lifecycle import apply_changes
from src.services.store import ListParams, Store
from src.services.users import UserDirectory
from src.utils.config import AppConfig
from src.utils.errors import ConflictError, NotFoundError
from src.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

M = TypeVar("M", bound=ResourceModel)


def generate_id() -> str:
    """Generate a text-based resource ID (ULID format)."""
    return str(ULID())


def page_envelope(items: list[dict], total: int, params: ListParams) -> dict[str, Any]:
    return {
        "count": len(items),
        "total": total,
        "page": params.page,
        "pages": math.ceil(total / params.limit) if params.limit else 0,
        "data": items,
    }


class ResourceService:
    """Load / conditional-write helpers over one table."""

    table: str = ""
    model: type = ResourceModel
    entity: str = "Resource"

    def __init__(self, store: Store, users: Optional[UserDirectory] = None):
        self.store = store
        self.users = users or UserDirectory(store)

    async def load(self, resource_id: str):
        row = await self.store.find_by_id(self.table, resource_id)
        if row is None:
            raise NotFoundError(self.entity, resource_id)
        return self.model.model_validate(row)

    @staticmethod
    def effective_changes(current: M, changes: dict[str, Any]) -> dict[str, Any]:
        """Drop changes that would leave a column at its current value."""
        if not changes:
            return {}
        before = current.to_row()
        after = apply_changes(current, changes).to_row()
        return {k: changes[k] for k in changes if after[k] != before[k]}

    async def write(
        self,
        current: M,
        changes: dict[str, Any],
        now,
        guard: tuple[str, ...] = (),
    ) -> Optional[M]:
        """
        Persist changes in one update.

        guard lists columns that must still hold their loaded values for the
        write to apply. Returns None when a guarded write lost a race.
        """
        updated = apply_changes(current, {**changes, "updated_at": now})
        row = updated.to_row()
        payload = {k: row[k] for k in (*changes, "updated_at")}

        before = current.to_row()
        expected = {column: before[column] for column in guard} or None

        result = await self.store.update_fields(self.table, current.id, payload, expected)
        if result is None:
            if expected is None:
                raise NotFoundError(self.entity, current.id)
            return None
        return self.model.model_validate(result)

    def conflict(self, resource_id: str) -> ConflictError:
        logger.warning(
            f"{self.entity} kept changing during update",
            resource_id=resource_id,
            attempts=AppConfig.WRITE_RETRY_ATTEMPTS,
        )
        return ConflictError(f"{self.entity} was modified concurrently, please retry")

    def log_ignored(self, principal_id: str, resource_id: str, ignored: list) -> None:
        if ignored:
            logger.info(
                "Ignoring update fields outside requester's allowance",
                entity=self.entity,
                resource_id=resource_id,
                user_id=mask_user_id(principal_id),
                ignored=[command.kind for command in ignored],
            )
