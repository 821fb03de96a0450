"""Request-scoped auth context pairing the user with a database session.

Routers take ``CurrentAuth`` instead of separate user_id/session pairs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends

from lms.auth.dependencies import _get_identity
from lms.auth.exceptions import AuthorizationError
from lms.database.session import DbSession


if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class AuthContext:
    """Current user, role and session with small permission helpers."""

    def __init__(self, user_id: int, role: str, session: AsyncSession) -> None:
        self.user_id = user_id
        self.role = role
        self.session = session

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    def require_admin(self) -> None:
        """Raise 403 unless the current user is an administrator."""
        if not self.is_admin:
            raise AuthorizationError("Administrator role required")

    def require_self_or_admin(self, user_id: int) -> None:
        """Raise 403 when reading another user's data without admin rights."""
        if user_id != self.user_id and not self.is_admin:
            raise AuthorizationError("Cannot access another user's data")


async def get_auth_context(
    identity: Annotated[tuple[int, str], Depends(_get_identity)],
    session: DbSession,
) -> AuthContext:
    """Build an AuthContext for the current request."""
    user_id, role = identity
    return AuthContext(user_id=user_id, role=role, session=session)


CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]
