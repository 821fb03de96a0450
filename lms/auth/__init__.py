"""Authentication module exports."""

from lms.auth.context import AuthContext, CurrentAuth
from lms.auth.dependencies import UserId


__all__ = [
    "AuthContext",
    "CurrentAuth",
    "UserId",
]
