"""Blog Comments API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog_comments.comments.admin_router import router as comments_admin_router
from blog_comments.comments.repository import (
    CassandraCommentRepository,
    InMemoryCommentRepository,
)
from blog_comments.comments.router import router as comments_router
from blog_comments.comments.service import CommentService
from blog_comments.config import Settings, get_settings
from blog_comments.core.context import get_request_id
from blog_comments.core.database import init_async_cassandra, shutdown_async_cassandra
from blog_comments.core.logging import configure_structlog, get_logger
from blog_comments.core.middleware import RequestContextMiddleware
from blog_comments.core.redis import init_redis, shutdown_redis
from blog_comments.core.responses import ApiError, error_body
from blog_comments.health.router import router as health_router
from blog_comments.moderation.engine import ModerationEngine
from blog_comments.notifications import (
    LogNotificationTransport,
    NotificationDispatcher,
    NotificationTransport,
    RedisNotificationTransport,
)
from blog_comments.posts.directory import CassandraPostDirectory, InMemoryPostDirectory
from blog_comments.reports.repository import (
    CassandraReportRepository,
    InMemoryReportRepository,
)
from blog_comments.reports.router import router as reports_router
from blog_comments.reports.service import ReportRegistry


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Error codes for HTTP errors raised outside the comment routers
HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "permission_denied",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


async def _init_storage(app: FastAPI, settings: Settings) -> None:
    """Build the repositories for the configured backend."""
    if settings.storage_backend == "memory":
        app.state.comment_repository = InMemoryCommentRepository()
        app.state.report_repository = InMemoryReportRepository()
        app.state.post_directory = InMemoryPostDirectory()
        logger.info("memory_storage_initialized")
        return

    session = await init_async_cassandra()
    keyspace = settings.cassandra_keyspace
    app.state.comment_repository = CassandraCommentRepository(
        session, keyspace, max_attempts=settings.comment_mutation_retries
    )
    app.state.report_repository = CassandraReportRepository(session, keyspace)
    app.state.post_directory = CassandraPostDirectory(session, keyspace)
    logger.info("cassandra_initialized")


async def _init_transport(settings: Settings) -> NotificationTransport:
    """Redis pub/sub when reachable, log-only delivery otherwise."""
    if settings.redis_enabled:
        try:
            return RedisNotificationTransport(await init_redis())
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - notifications are only logged",
            )
    return LogNotificationTransport()


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

    transport = await _init_transport(settings)
    dispatcher = NotificationDispatcher.from_settings(settings, transport)
    app.state.notification_dispatcher = dispatcher

    try:
        await _init_storage(app, settings)

        app.state.comment_service = CommentService.from_settings(
            settings,
            repository=app.state.comment_repository,
            posts=app.state.post_directory,
            engine=ModerationEngine.from_settings(settings),
            dispatcher=dispatcher,
        )
        app.state.report_registry = ReportRegistry(
            reports=app.state.report_repository,
            comments=app.state.comment_repository,
            transitions=app.state.comment_service,
        )
        logger.info(
            "comment_service_initialized",
            notifications_enabled=dispatcher.enabled,
            transport=type(transport).__name__,
        )
    except Exception as e:  # noqa: BLE001
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application", pending_notifications=dispatcher.pending)
    await dispatcher.drain()
    await shutdown_redis()
    if settings.storage_backend == "cassandra":
        await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Never let Starlette render stack traces; handlers below log them instead
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Comentarios en hilos para el blog - API",
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
        """Render HTTP errors in the response envelope."""
        if isinstance(exc, ApiError):
            code, details = exc.code, exc.details
        else:
            code = HTTP_ERROR_CODES.get(exc.status_code, "http_error")
            details = None

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            error=code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            message, code = "Error interno del servidor", "internal_error"
        else:
            message = str(exc.detail)

        return ORJSONResponse(
            status_code=exc.status_code,
            content=error_body(message, code, _get_request_id_safe(request), details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Render body and query validation errors as 400 with field details."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(
                "Datos de entrada invalidos",
                "validation_error",
                _get_request_id_safe(request),
                [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler. Details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                "Error interno del servidor",
                "internal_error",
                _get_request_id_safe(request),
            ),
        )

    # Reports before the admin comment routes so "/reports" never reads as an id
    app.include_router(health_router)
    app.include_router(comments_router)
    app.include_router(reports_router)
    app.include_router(comments_admin_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Blog Comments API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
