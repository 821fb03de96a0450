"""Request identity resolution.

Authentication itself happens upstream; this service either runs in
single-user mode or trusts identity headers set by the API gateway.
"""

import logging

from fastapi import Request

from lms.auth.exceptions import InvalidIdentityError, MissingIdentityError, UnknownAuthProviderError
from lms.config.settings import get_settings


logger = logging.getLogger(__name__)

# Single-user mode identity
DEFAULT_USER_ID = 1
DEFAULT_USER_ROLE = "ADMIN"

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"

VALID_ROLES = {"STUDENT", "INSTRUCTOR", "ADMIN"}


def _identity_from_headers(request: Request) -> tuple[int, str]:
    raw_id = request.headers.get(USER_ID_HEADER)
    if not raw_id:
        logger.warning(f"Missing {USER_ID_HEADER} header on {request.method} {request.url.path}")
        raise MissingIdentityError

    try:
        user_id = int(raw_id)
    except ValueError as e:
        raise InvalidIdentityError from e
    if user_id <= 0:
        raise InvalidIdentityError

    role = request.headers.get(USER_ROLE_HEADER, "STUDENT").upper()
    if role not in VALID_ROLES:
        logger.warning(f"Unknown role {role!r} for user {user_id}, treating as STUDENT")
        role = "STUDENT"
    return user_id, role


async def get_identity(request: Request) -> tuple[int, str]:
    """Return ``(user_id, role)`` for the current request.

    Single-user mode: always DEFAULT_USER_ID with admin rights.
    Header mode: trusts the gateway headers, rejects requests without them.
    """
    settings = get_settings()

    if settings.AUTH_PROVIDER == "none":
        if settings.ENVIRONMENT == "production":
            logger.error("AUTH_PROVIDER='none' is not allowed in production!")
            error_msg = "Single-user mode (AUTH_PROVIDER='none') is not allowed in production."
            raise ValueError(error_msg)
        return DEFAULT_USER_ID, DEFAULT_USER_ROLE

    if settings.AUTH_PROVIDER == "header":
        return _identity_from_headers(request)

    logger.error(f"Unknown auth provider: {settings.AUTH_PROVIDER}")
    raise UnknownAuthProviderError(settings.AUTH_PROVIDER)
