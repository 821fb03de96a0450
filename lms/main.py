import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from uuid import uuid4

from dotenv import load_dotenv


# Load .env FIRST before any other imports that might need env vars
PROJECT_DIR = Path(__file__).parent.parent
load_dotenv(PROJECT_DIR / ".env")

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import DatabaseError, IntegrityError, OperationalError
from starlette.requests import Request

from lms.auth.exceptions import AuthenticationError, AuthorizationError
from lms.config.logging import setup_logging
from lms.config.settings import get_settings

# Import models to register them with SQLAlchemy
from lms.courses.models import Course, LearningMaterial, LearningResource, Lesson  # noqa: F401
from lms.database.engine import engine
from lms.exceptions import (
    ConflictError,
    PersistenceError,
    ResourceNotFoundError,
    ValidationError as CustomValidationError,
)
from lms.learning_history.models import UserMaterialAccess  # noqa: F401
from lms.learning_history.router import router as learning_history_router
from lms.middleware.error_handlers import (
    ErrorCategory,
    ErrorCode,
    format_error_response,
    handle_authentication_errors,
    handle_authorization_errors,
    handle_conflict_errors,
    handle_database_errors,
    handle_not_found_errors,
    handle_persistence_errors,
    handle_rate_limit_errors,
    handle_validation_errors,
    log_error_context,
)
from lms.middleware.security import SimpleSecurityMiddleware, limiter
from lms.progress.models import LearningStreak, ProgressHistory, UserProgress  # noqa: F401
from lms.progress.router import router as progress_router
from lms.user.models import User  # noqa: F401


setup_logging()
logger = logging.getLogger(__name__)


def _register_routers(app: FastAPI) -> None:
    """Register all application routers."""
    app.include_router(progress_router)
    app.include_router(learning_history_router)


def _validate_auth_config() -> None:
    """Single-user mode is for local development only."""
    settings = get_settings()
    if settings.AUTH_PROVIDER == "none" and settings.ENVIRONMENT == "production":
        msg = "AUTH_PROVIDER=none is not allowed in production"
        raise ValueError(msg)


async def _startup_database() -> None:
    """Initialize database with retry logic."""
    max_retries = 5
    retry_delay = 1  # seconds

    for attempt in range(max_retries):
        try:
            from lms.database.init import init_database

            await init_database(engine)
            logger.info("Database initialization completed successfully")
            break

        except OperationalError:
            if attempt == max_retries - 1:
                logger.exception("Startup failed after %d attempts", max_retries)
                raise

            logger.warning(
                "Database connection attempt %d failed, retrying in %ds...",
                attempt + 1,
                retry_delay,
            )
            await asyncio.sleep(retry_delay)
            retry_delay *= 2  # Exponential backoff


async def _shutdown_cleanup() -> None:
    """Clean up resources on shutdown."""
    logger.info("Starting graceful shutdown...")
    try:
        await engine.dispose()
        logger.info("Database engine disposed successfully")
    except OperationalError as e:
        logger.warning(f"Error disposing database engine: {e}")
    logger.info("Shutdown complete")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    _validate_auth_config()
    await _startup_database()

    yield

    await _shutdown_cleanup()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    try:
        settings = get_settings()
    except Exception:
        logger.exception("Failed to load settings")
        raise

    app = FastAPI(
        title="Learning Progress API",
        description="Progress tracking, learning history and study reports",
        version="0.1.0",
        debug=settings.DEBUG,
        lifespan=lifespan if settings.ENVIRONMENT != "test" else None,
    )

    # When allow_credentials=True, allow_origins cannot be ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SimpleSecurityMiddleware)

    # Rate limiting
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return await handle_rate_limit_errors(request, exc)

    # Domain errors
    @app.exception_handler(ResourceNotFoundError)
    async def resource_not_found_handler(request: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return await handle_not_found_errors(request, exc)

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return await handle_conflict_errors(request, exc)

    @app.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        return await handle_persistence_errors(request, exc)

    # Authentication errors (401)
    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        return await handle_authentication_errors(request, exc)

    # Authorization errors (403)
    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
        return await handle_authorization_errors(request, exc)

    # Validation errors (400/422)
    @app.exception_handler(ValidationError)
    async def pydantic_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return await handle_validation_errors(request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return await handle_validation_errors(request, exc)

    @app.exception_handler(CustomValidationError)
    async def custom_validation_handler(request: Request, exc: CustomValidationError) -> JSONResponse:
        return await handle_validation_errors(request, exc)

    # Database errors
    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        return await handle_database_errors(request, exc)

    @app.exception_handler(DatabaseError)
    async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
        return await handle_database_errors(request, exc)

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
        return await handle_database_errors(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        error_id = uuid4()
        log_error_context(request, exc, error_id)

        # Never expose internal details
        return format_error_response(
            category=ErrorCategory.INTERNAL,
            code=ErrorCode.INTERNAL,
            detail="An unexpected error occurred",
            status_code=500,
            metadata={"error_id": str(error_id)},
            suggestions=["Please try again later", "If the problem persists, contact support with the error ID"],
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Check application health status."""
        return {"status": "healthy"}

    _register_routers(app)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    from lms.config import env

    host = env("API_HOST", "127.0.0.1")
    port = int(env("API_PORT", "8080"))

    uvicorn.run(app, host=host, port=port)
