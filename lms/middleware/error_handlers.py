"""Centralized error handling with consistent categorization.

Every error leaves the service in one envelope:
``{"error": {"category", "code", "detail", "suggestions"?, "metadata"?}}``.
"""

import logging
from typing import Any
from uuid import UUID

from asyncpg.exceptions import (
    CheckViolationError,
    ForeignKeyViolationError,
    NotNullViolationError,
    UniqueViolationError,
)
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from lms.auth.exceptions import AuthorizationError
from lms.exceptions import ConflictError, PersistenceError, ResourceNotFoundError


logger = logging.getLogger(__name__)


# === Error Categories ===


class ErrorCategory:
    """Error category constants."""

    VALIDATION = "VALIDATION_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    DATABASE = "DATABASE_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CONFLICT = "CONFLICT_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    INTERNAL = "INTERNAL_ERROR"


class ErrorCode:
    """Specific error codes for better client handling."""

    # Validation errors
    INVALID_INPUT = "INVALID_INPUT"

    # Auth errors
    AUTH_REQUIRED = "AUTH_REQUIRED"
    ACCESS_DENIED = "ACCESS_DENIED"

    # Database errors
    DB_CONNECTION_FAILED = "DB_CONNECTION_FAILED"
    DB_CONSTRAINT_VIOLATION = "DB_CONSTRAINT_VIOLATION"
    DB_UNIQUE_VIOLATION = "DB_UNIQUE_VIOLATION"
    DB_FOREIGN_KEY_VIOLATION = "DB_FOREIGN_KEY_VIOLATION"
    DB_OPERATION_FAILED = "DB_OPERATION_FAILED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"

    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Internal errors
    INTERNAL = "INTERNAL_ERROR"


# === Error Response Formatting ===


def format_error_response(
    category: str,
    code: str,
    detail: str,
    status_code: int,
    suggestions: list[str] | None = None,
    metadata: dict[str, Any] | None = None,
) -> JSONResponse:
    """Format a consistent error response."""
    content = {
        "error": {
            "category": category,
            "code": code,
            "detail": detail,
        }
    }

    if suggestions:
        content["error"]["suggestions"] = suggestions

    if metadata:
        content["error"]["metadata"] = metadata

    return JSONResponse(status_code=status_code, content=content)


async def handle_not_found_errors(_request: Request, exc: ResourceNotFoundError) -> JSONResponse:
    return format_error_response(
        category=ErrorCategory.RESOURCE_NOT_FOUND,
        code=ErrorCode.NOT_FOUND,
        detail=str(exc),
        status_code=status.HTTP_404_NOT_FOUND,
        suggestions=["The requested resource does not exist"],
    )


async def handle_conflict_errors(request: Request, exc: ConflictError) -> JSONResponse:
    logger.info(f"Conflict on {request.method} {request.url.path}: {exc}")
    return format_error_response(
        category=ErrorCategory.CONFLICT,
        code=ErrorCode.ALREADY_EXISTS,
        detail=str(exc),
        status_code=status.HTTP_409_CONFLICT,
    )


async def handle_persistence_errors(request: Request, exc: PersistenceError) -> JSONResponse:
    """Store failures surface only their fixed message; the cause goes to the log."""
    logger.error(
        f"Persistence error on {request.method} {request.url.path}: {exc}",
        extra={"cause": type(exc.__cause__).__name__ if exc.__cause__ else None},
    )
    return format_error_response(
        category=ErrorCategory.DATABASE,
        code=ErrorCode.DB_OPERATION_FAILED,
        detail=exc.message,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        suggestions=["Please try again later"],
    )


async def handle_authentication_errors(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle authentication-related errors."""
    logger.warning(
        f"Authentication error on {request.method} {request.url.path}: {exc.detail}",
        extra={"client_host": request.client.host if request.client else "unknown"},
    )

    return format_error_response(
        category=ErrorCategory.AUTHENTICATION,
        code=ErrorCode.AUTH_REQUIRED,
        detail=str(exc.detail) or "Authentication required",
        status_code=status.HTTP_401_UNAUTHORIZED,
        suggestions=["Requests must carry the identity headers set by the gateway"],
    )


async def handle_authorization_errors(request: Request, exc: AuthorizationError) -> JSONResponse:
    """Handle authorization errors (403)."""
    logger.warning(
        f"Authorization error on {request.method} {request.url.path}: {exc.detail}",
        extra={
            "client_host": request.client.host if request.client else "unknown",
            "user_id": getattr(request.state, "user_id", None),
        },
    )

    return format_error_response(
        category=ErrorCategory.AUTHORIZATION,
        code=ErrorCode.ACCESS_DENIED,
        detail=exc.detail,
        status_code=status.HTTP_403_FORBIDDEN,
        suggestions=["You don't have permission to access this resource"],
    )


async def handle_validation_errors(request: Request, exc: Exception) -> JSONResponse:
    """Handle validation errors from Pydantic and custom validators."""
    logger.info(f"Validation error on {request.method} {request.url.path}", extra={"error": str(exc)})

    if isinstance(exc, (PydanticValidationError, RequestValidationError)):
        # Extract field errors from Pydantic
        errors = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            errors.append({"field": field, "message": error["msg"], "type": error["type"]})

        return format_error_response(
            category=ErrorCategory.VALIDATION,
            code=ErrorCode.INVALID_INPUT,
            detail="Invalid input data",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            metadata={"errors": errors},
        )
    # Custom validation error
    return format_error_response(
        category=ErrorCategory.VALIDATION,
        code=ErrorCode.INVALID_INPUT,
        detail=str(exc),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def _driver_error(exc: Exception) -> BaseException | None:
    """Unwrap the DB-API error SQLAlchemy wrapped, down to the asyncpg exception when present."""
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    return orig.__cause__ or orig


def _constraint_kind(exc: Exception) -> str | None:
    driver_error = _driver_error(exc)
    if isinstance(driver_error, UniqueViolationError):
        return "unique"
    if isinstance(driver_error, ForeignKeyViolationError):
        return "foreign_key"
    if isinstance(driver_error, (NotNullViolationError, CheckViolationError)):
        return "constraint"

    message = str(exc).lower()
    if "unique" in message:
        return "unique"
    if "foreign key" in message:
        return "foreign_key"
    if "not null" in message or "check constraint" in message:
        return "constraint"
    return None


async def handle_database_errors(request: Request, exc: Exception) -> JSONResponse:
    """Handle database-related errors."""
    logger.error(
        f"Database error on {request.method} {request.url.path}: {exc}", extra={"error_type": type(exc).__name__}
    )

    if isinstance(exc, IntegrityError):
        kind = _constraint_kind(exc)
        if kind == "unique":
            return format_error_response(
                category=ErrorCategory.DATABASE,
                code=ErrorCode.DB_UNIQUE_VIOLATION,
                detail="This resource already exists",
                status_code=status.HTTP_409_CONFLICT,
                suggestions=["Try using a different identifier"],
            )

        if kind == "foreign_key":
            return format_error_response(
                category=ErrorCategory.DATABASE,
                code=ErrorCode.DB_FOREIGN_KEY_VIOLATION,
                detail="Referenced resource does not exist",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        return format_error_response(
            category=ErrorCategory.DATABASE,
            code=ErrorCode.DB_CONSTRAINT_VIOLATION,
            detail="Required data is missing or invalid",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, OperationalError):
        return format_error_response(
            category=ErrorCategory.DATABASE,
            code=ErrorCode.DB_CONNECTION_FAILED,
            detail="Database connection error",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            suggestions=["Please try again later"],
        )

    # Generic database error
    return format_error_response(
        category=ErrorCategory.DATABASE,
        code=ErrorCode.INTERNAL,
        detail="A database error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def handle_rate_limit_errors(request: Request, exc: Exception) -> JSONResponse:
    """Handle rate limiting."""
    logger.warning(
        f"Rate limit exceeded on {request.method} {request.url.path}",
        extra={
            "client_host": request.client.host if request.client else "unknown",
            "user_id": getattr(request.state, "user_id", None),
        },
    )

    return format_error_response(
        category=ErrorCategory.RATE_LIMIT,
        code=ErrorCode.RATE_LIMIT_EXCEEDED,
        detail=f"Rate limit exceeded: {getattr(exc, 'detail', exc)}",
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        suggestions=["Please wait before making more requests"],
    )


# === Utility Functions ===


def log_error_context(request: Request, exc: Exception, error_id: UUID | None = None) -> None:
    """Log comprehensive error context for debugging."""
    context = {
        "error_id": str(error_id) if error_id else None,
        "method": request.method,
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "client_host": request.client.host if request.client else "unknown",
        "user_id": getattr(request.state, "user_id", None),
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    # Request headers, minus credentials
    safe_headers = {
        k: v for k, v in request.headers.items() if k.lower() not in ["authorization", "cookie", "x-api-key"]
    }
    context["headers"] = safe_headers

    logger.error("Request failed", extra=context, exc_info=exc)
