"""User directory - read-only lookups over the users table."""

from typing import Optional

from src.models.user import Principal, Role, User
from src.services.store import ListParams, Store
from src.utils.config import AppConfig
from src.utils.errors import AuthenticationError, NotFoundError
from src.utils.logging import get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)


class UserDirectory:
    """Identity lookups used by permission checks. Never mutates users."""

    def __init__(self, store: Store):
        self.store = store

    async def get_user(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        row = await self.store.find_by_id(AppConfig.USERS_TABLE, user_id)
        return User.model_validate(row) if row else None

    async def require_user(self, user_id: str) -> User:
        """Load a referenced user or fail with NotFound("User")."""
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def user_exists(self, user_id: str) -> bool:
        return await self.get_user(user_id) is not None

    async def is_admin(self, user_id: str) -> bool:
        """Admin check against the stored role, not the caller's claim."""
        user = await self.get_user(user_id)
        return user is not None and user.role == Role.ADMIN

    async def resolve_principal(self, user_id: Optional[str]) -> Principal:
        """Map an authenticated user id to a principal."""
        if not user_id:
            raise AuthenticationError("Not authorized, no user")

        user = await self.get_user(user_id)
        if user is None or not user.is_active:
            logger.warning("Rejected principal", user_id=mask_user_id(user_id))
            raise AuthenticationError("Not authorized, user not found or inactive")
        return user.to_principal()

    async def list_by_role(self, role: Role, exclude_id: Optional[str] = None) -> list[User]:
        """Users holding role, used to populate assignment pickers."""
        params = ListParams(
            filters={"role": [role.value]},
            sort_field="name",
            sort_desc=False,
            limit=AppConfig.MAX_PAGE_SIZE,
        )
        rows, _ = await self.store.find(AppConfig.USERS_TABLE, None, params)
        return [User.model_validate(r) for r in rows if r.get("id") != exclude_id]
