"""SkillPath API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from skillpath.certificates.renderer import HttpDocumentRenderer
from skillpath.certificates.router import router as certificates_router
from skillpath.certificates.service import CertificateService
from skillpath.certificates.store import (
    CassandraCertificateStore,
    CertificateStore,
    InMemoryCertificateStore,
)
from skillpath.config import Settings, get_settings
from skillpath.core.context import get_request_id
from skillpath.core.database import init_async_cassandra, shutdown_async_cassandra
from skillpath.core.logging import configure_structlog, get_logger
from skillpath.core.middleware import RequestContextMiddleware
from skillpath.core.redis import init_redis, shutdown_redis
from skillpath.courses.repository import (
    CassandraCourseRepository,
    CourseRepository,
    InMemoryCourseRepository,
)
from skillpath.courses.router import router as courses_router
from skillpath.health.router import router as health_router
from skillpath.progress.locks import LedgerLocks
from skillpath.progress.router import enrollments_router
from skillpath.progress.router import router as progress_router
from skillpath.progress.service import ProgressService
from skillpath.progress.store import (
    CassandraEnrollmentStore,
    EnrollmentStore,
    InMemoryEnrollmentStore,
)


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def build_services(
    app: FastAPI,
    settings: Settings,
    session: Any = None,
    redis: Any = None,
) -> None:
    """Wire repositories, stores and services onto ``app.state``.

    A Cassandra session selects the Cassandra adapters; without one the
    in-memory adapters are used.
    """
    course_repository: CourseRepository
    enrollment_store: EnrollmentStore
    certificate_store: CertificateStore
    if session is not None:
        keyspace = settings.cassandra_keyspace
        course_repository = CassandraCourseRepository(session, keyspace)
        enrollment_store = CassandraEnrollmentStore(session, keyspace)
        certificate_store = CassandraCertificateStore(session, keyspace)
    else:
        course_repository = InMemoryCourseRepository()
        enrollment_store = InMemoryEnrollmentStore()
        certificate_store = InMemoryCertificateStore()

    locks = LedgerLocks(
        redis=redis,
        lock_timeout=settings.ledger_lock_timeout_seconds,
        blocking_timeout=settings.ledger_lock_blocking_timeout_seconds,
    )
    progress_service = ProgressService(
        course_repository=course_repository,
        store=enrollment_store,
        locks=locks,
        conflict_retries=settings.ledger_conflict_retries,
    )

    renderer = None
    if settings.renderer_url:
        renderer = HttpDocumentRenderer(
            settings.renderer_url,
            timeout=settings.renderer_timeout_seconds,
            platform_name=settings.certificate_platform_name,
        )

    certificate_service = CertificateService(
        progress_service,
        certificate_store,
        renderer,
        id_prefix=settings.certificate_id_prefix,
        id_max_attempts=settings.certificate_id_max_attempts,
        verify_base_url=settings.certificate_verify_base_url,
        video_threshold=settings.certificate_video_threshold,
        absent_kinds_satisfied=settings.certificate_absent_kinds_satisfied,
        course_duration=settings.certificate_course_duration,
        platform_name=settings.certificate_platform_name,
    )

    app.state.redis = redis
    app.state.course_repository = course_repository
    app.state.progress_service = progress_service
    app.state.certificate_service = certificate_service
    logger.info(
        "services_initialized",
        storage_backend="cassandra" if session is not None else "memory",
        distributed_locks=locks.distributed,
        renderer_configured=renderer is not None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

    # Initialize Redis (non-critical - locks fall back to in-process only)
    redis_client = None
    if settings.redis_enabled:
        try:
            redis_client = await init_redis()
            logger.info("redis_initialized")
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - ledger locks are per process",
            )

    if settings.storage_backend == "cassandra":
        try:
            session = await init_async_cassandra()
            logger.info("cassandra_initialized")
            build_services(app, settings, session=session, redis=redis_client)
        except Exception as e:
            logger.warning(
                "database_init_skipped",
                error=str(e),
                message="Running without database connection",
            )
    else:
        build_services(app, settings, redis=redis_client)

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    if settings.storage_backend == "cassandra":
        await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Always debug=False so Starlette never renders stack traces; the handlers
    # below log details and return safe messages.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course progress tracking and certification API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        detail = exc.detail
        extra: dict[str, Any] = {}
        if isinstance(detail, dict):
            extra = {k: v for k, v in detail.items() if k != "message"}
            detail = detail.get("message", "")

        content: dict[str, Any] = {
            "error": True,
            "message": str(detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error",
            "status_code": exc.status_code,
            "request_id": request_id,
        }
        if extra and exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
            content["details"] = extra

        return ORJSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Never exposes stack traces or internal error details; they are logged.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(enrollments_router)
    app.include_router(progress_router)
    app.include_router(certificates_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "SkillPath API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (``skillpath-api`` console script)."""
    import uvicorn

    uvicorn.run(
        "skillpath.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        log_config=None,
    )
