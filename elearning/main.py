"""E-learning Enrollment Engine - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from elearning.access.router import router as access_router
from elearning.access.service import AccessService
from elearning.catalog.reader import CassandraQuizAttemptReader, CatalogReader
from elearning.completion.certificates import HttpCertificateIssuer
from elearning.completion.dispatcher import CompletionDispatcher
from elearning.completion.notifier import NotificationPublisher
from elearning.config import get_settings
from elearning.core.context import get_request_id
from elearning.core.database import init_async_cassandra, shutdown_async_cassandra
from elearning.core.logging import configure_structlog, get_logger
from elearning.core.middleware import RequestContextMiddleware
from elearning.core.redis import init_redis, shutdown_redis
from elearning.enrollments.repository import EnrollmentRepository
from elearning.enrollments.router import router as enrollments_router
from elearning.enrollments.service import EnrollmentService
from elearning.health import router as health_router
from elearning.payments.repository import PaymentRepository
from elearning.payments.router import router as payments_router
from elearning.payments.service import PaymentService
from elearning.progress.repository import ProgressRepository
from elearning.progress.router import router as progress_router
from elearning.progress.service import ProgressService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def init_services(app: FastAPI, session, redis_client=None) -> None:
    """Build stores and services on ``app.state`` from an open session."""
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    catalog = CatalogReader(session=session, keyspace=keyspace)
    app.state.catalog_reader = catalog

    enrollment_service = EnrollmentService(
        EnrollmentRepository(session=session, keyspace=keyspace),
        max_write_retries=settings.progress_max_write_retries,
    )
    app.state.enrollment_service = enrollment_service
    logger.info("enrollment_service_initialized")

    notifier = NotificationPublisher(
        session=session, keyspace=keyspace, redis=redis_client
    )
    logger.info("notification_publisher_initialized", redis_enabled=redis_client is not None)

    certificate_issuer = None
    if settings.certificates_configured:
        certificate_issuer = HttpCertificateIssuer(
            settings.certificate_service_url,
            timeout=settings.certificate_service_timeout,
        )
    else:
        logger.warning(
            "certificate_service_not_configured",
            message="Completed enrollments will not receive certificates",
        )

    dispatcher = CompletionDispatcher(
        enrollment_service=enrollment_service,
        certificate_issuer=certificate_issuer,
        notifier=notifier,
        catalog=catalog,
        queue_size=settings.completion_queue_size,
    )
    app.state.completion_dispatcher = dispatcher

    progress_repository = ProgressRepository(session=session, keyspace=keyspace)
    access_service = AccessService(
        progress_repository=progress_repository,
        quiz_reader=CassandraQuizAttemptReader(session=session, keyspace=keyspace),
        catalog=catalog,
        passing_threshold=settings.quiz_passing_threshold,
    )
    app.state.access_service = access_service

    app.state.progress_service = ProgressService(
        repository=progress_repository,
        enrollment_service=enrollment_service,
        catalog=catalog,
        dispatcher=dispatcher,
        max_write_retries=settings.progress_max_write_retries,
    )
    logger.info("progress_service_initialized")

    app.state.payment_service = PaymentService(
        repository=PaymentRepository(session=session, keyspace=keyspace),
        enrollment_service=enrollment_service,
        notifier=notifier,
        success_code=settings.payment_success_code,
        max_write_retries=settings.progress_max_write_retries,
    )
    logger.info("payment_service_initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - real-time notifications disabled",
        )

    # Initialize Cassandra (async)
    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")
        init_services(app, session, redis_client)
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    dispatcher = getattr(app.state, "completion_dispatcher", None)
    if dispatcher is not None:
        await dispatcher.start()

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if dispatcher is not None:
        await dispatcher.stop()
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Never expose stack traces in responses; the handlers below log details
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Enrollment, payment reconciliation and progress tracking API",
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

        return ORJSONResponse(
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
        )

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
        """Catch-all handler for unhandled exceptions."""
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
    app.include_router(enrollments_router)
    app.include_router(payments_router)
    app.include_router(progress_router)
    app.include_router(access_router)

    return app


app = create_app()
