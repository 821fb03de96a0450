"""Authentication-specific exceptions."""

from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    """Base authentication error."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class MissingIdentityError(AuthenticationError):
    """No user identity was forwarded by the gateway."""

    def __init__(self) -> None:
        super().__init__(detail="Missing X-User-Id header")


class InvalidIdentityError(AuthenticationError):
    """The forwarded identity could not be parsed."""

    def __init__(self) -> None:
        super().__init__(detail="Invalid X-User-Id header")


class AuthorizationError(HTTPException):
    """User is authenticated but lacks permissions."""

    def __init__(self, detail: str = "Insufficient permissions") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class UnknownAuthProviderError(HTTPException):
    """AUTH_PROVIDER holds a value this service does not understand."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Unknown authentication provider: '{provider}'",
        )
