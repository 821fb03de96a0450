"""FastAPI authentication dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from lms.auth.config import get_identity


async def _get_identity(request: Request) -> tuple[int, str]:
    """Resolve the identity once per request and keep it on ``request.state``."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        identity = await get_identity(request)
        request.state.identity = identity
        request.state.user_id = identity[0]
    return identity


async def _get_user_id(identity: Annotated[tuple[int, str], Depends(_get_identity)]) -> int:
    return identity[0]


# Usage: async def my_route(user_id: UserId) -> Response:
UserId = Annotated[int, Depends(_get_user_id)]
