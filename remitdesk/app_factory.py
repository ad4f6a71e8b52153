"""
Application Factory Module.

This module contains the factory function for creating the FastAPI
application with its middleware stack, routers, exception handlers and the
shared write-path guard components (rate limiter, sweeper, idempotency
service).
"""

# Standard Library Imports
import logging
import traceback
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

# Third-Party Imports
import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

# Application-Specific Imports
from remitdesk.application.services import IdempotencyService, SecurityEventService
from remitdesk.core.config import Settings
from remitdesk.core.exceptions import RateLimitExceededError, RepositoryError
from remitdesk.core.interfaces.repositories import IIdempotencyRepository
from remitdesk.core.interfaces.services.rate_limiting import IRateLimiter
from remitdesk.core.logging_config import build_logging_config, setup_logging
from remitdesk.core.security.rate_limiting import response_from_exception
from remitdesk.infrastructure.persistence.sqlalchemy.database import (
    create_engine_and_session_factory,
    create_tables,
)
from remitdesk.infrastructure.persistence.sqlalchemy.repositories import (
    SQLAlchemyIdempotencyRepository,
    SQLAlchemySecurityEventRepository,
)
from remitdesk.infrastructure.security.jwt import JWTService
from remitdesk.infrastructure.security.rate_limiting import RateLimitSweeper, SlidingWindowRateLimiter
from remitdesk.presentation.api.v1.api_router import api_v1_router
from remitdesk.presentation.middleware import (
    AuthenticationMiddleware,
    IdempotencyMiddleware,
    LoggingMiddleware,
    RateLimitingMiddleware,
    RequestIdMiddleware,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR_DETAIL = "An internal server error occurred."


def _initialize_sentry(settings: Settings) -> None:
    """Initializes Sentry if DSN is provided."""
    if not settings.SENTRY_DSN:
        logger.info("Sentry DSN not provided, skipping Sentry initialization.")
        return
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            release=settings.API_VERSION,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        )
        logger.info("Sentry initialized for error tracking.")
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for the FastAPI application.

    Startup:
    1. Creates the database engine and session factory unless injected
    2. Creates tables (schema migration is handled outside the service)
    3. Builds the idempotency and security event services
    4. Starts the rate limiter sweeper

    Shutdown stops the sweeper, waits for pending security events and
    disposes the engine it created.
    """
    settings: Settings = fastapi_app.state.settings
    state = fastapi_app.state

    owns_engine = False
    if state.session_factory is None:
        logger.info(f"Creating AsyncEngine for {settings.ASYNC_DATABASE_URL}")
        engine, session_factory = create_engine_and_session_factory(
            settings.ASYNC_DATABASE_URL, echo=settings.DB_ECHO_LOG
        )
        state.db_engine = engine
        state.session_factory = session_factory
        owns_engine = True

    if state.db_engine is not None:
        await create_tables(state.db_engine)

    if state.idempotency_repository is None:
        state.idempotency_repository = SQLAlchemyIdempotencyRepository(state.session_factory)

    state.idempotency_service = IdempotencyService(
        state.idempotency_repository,
        ttl_seconds=settings.idempotency_ttl_seconds,
        reclaim_attempts=settings.IDEMPOTENCY_RECLAIM_ATTEMPTS,
    )
    state.security_event_service = SecurityEventService(
        SQLAlchemySecurityEventRepository(state.session_factory)
    )

    sweeper = RateLimitSweeper(
        state.rate_limiter,
        interval_seconds=settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
        retention_seconds=settings.RATE_LIMIT_RETENTION_SECONDS,
        idempotency_repository=state.idempotency_repository,
    )
    sweeper.start()
    state.rate_limit_sweeper = sweeper

    logger.info("Application startup complete.")
    try:
        yield
    finally:
        logger.info("Application is shutting down.")
        await sweeper.stop()
        await state.security_event_service.drain()
        if owns_engine:
            await state.db_engine.dispose()
            logger.info("Database engine disposed.")


def _register_exception_handlers(app_instance: FastAPI) -> None:
    @app_instance.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        logger.info(f"HTTP Exception: {exc.status_code} - {exc.detail}")

        # For 500 errors, always mask details regardless of environment
        if exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
            return JSONResponse(status_code=exc.status_code, content={"detail": INTERNAL_ERROR_DETAIL})
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": str(exc.detail)},
            headers=exc.headers or {},
        )

    @app_instance.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_errors(exc)},
        )

    @app_instance.exception_handler(RateLimitExceededError)
    async def rate_limit_exception_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        return response_from_exception(exc)

    @app_instance.exception_handler(RepositoryError)
    async def repository_exception_handler(request: Request, exc: RepositoryError) -> JSONResponse:
        logger.error(f"Repository error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": INTERNAL_ERROR_DETAIL},
        )

    @app_instance.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Handle all unhandled exceptions with a generic error message.

        No stack traces or exception details are returned to the client.
        """
        logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}")
        logger.debug(traceback.format_exc())
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": INTERNAL_ERROR_DETAIL},
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the non-serialisable ``ctx``/``input`` payloads."""
    return [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        for error in exc.errors()
    ]


def create_application(
    settings_override: Settings | None = None,
    *,
    rate_limiter: IRateLimiter | None = None,
    idempotency_repository: IIdempotencyRepository | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    engine: AsyncEngine | None = None,
    jwt_service_override: JWTService | None = None,
) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        settings_override: Override default settings (useful for testing)
        rate_limiter: The process-wide limiter; a new sliding window limiter
            is created when omitted
        idempotency_repository: Store for idempotency records; defaults to the
            SQLAlchemy repository on the application database
        session_factory: Pre-built session factory (tests); created in the
            lifespan when omitted
        engine: Engine behind ``session_factory``; its tables are created on startup
        jwt_service_override: Override the JWT service

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    current_settings = settings_override or Settings()

    setup_logging(
        build_logging_config(
            current_settings.LOG_LEVEL,
            file_logging=not current_settings.TESTING,
            propagate=current_settings.TESTING,
        )
    )
    logger.info(f"Creating application for environment: {current_settings.ENVIRONMENT}")

    _initialize_sentry(current_settings)

    app_instance = FastAPI(
        title=current_settings.API_TITLE,
        description=current_settings.API_DESCRIPTION,
        version=current_settings.API_VERSION,
        openapi_url="/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        debug=False if current_settings.ENVIRONMENT in ("test", "production") else current_settings.DEBUG,
    )

    # One limiter per process, shared by the middleware and every route policy
    limiter = rate_limiter or SlidingWindowRateLimiter()
    jwt_service = jwt_service_override or JWTService.from_settings(current_settings)

    app_instance.state.settings = current_settings
    app_instance.state.rate_limiter = limiter
    app_instance.state.jwt_service = jwt_service
    app_instance.state.session_factory = session_factory
    app_instance.state.db_engine = engine
    app_instance.state.idempotency_repository = idempotency_repository

    _register_exception_handlers(app_instance)

    # Middleware is listed innermost first; the last one added runs first
    if current_settings.IDEMPOTENCY_ENABLED:
        app_instance.add_middleware(
            IdempotencyMiddleware,
            header=current_settings.IDEMPOTENCY_HEADER,
            methods=current_settings.IDEMPOTENCY_METHODS,
            exclude_paths=current_settings.IDEMPOTENCY_EXCLUDE_PATHS,
        )

    if current_settings.RATE_LIMITING_ENABLED:
        app_instance.add_middleware(
            RateLimitingMiddleware,
            limiter=limiter,
            limit=current_settings.RATE_LIMIT_GENERAL_LIMIT,
            window_seconds=current_settings.RATE_LIMIT_GENERAL_WINDOW_SECONDS,
            exclude_paths=current_settings.RATE_LIMIT_EXCLUDE_PATHS,
        )

    app_instance.add_middleware(
        AuthenticationMiddleware,
        jwt_service=jwt_service,
        public_paths=set(current_settings.PUBLIC_PATHS),
    )
    app_instance.add_middleware(LoggingMiddleware)
    app_instance.add_middleware(RequestIdMiddleware)

    if current_settings.CORS_ORIGINS:
        app_instance.add_middleware(
            CORSMiddleware,
            allow_origins=current_settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app_instance.include_router(api_v1_router, prefix=current_settings.API_V1_STR)

    @app_instance.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "environment": current_settings.ENVIRONMENT}

    logger.info("Application factory complete.")
    return app_instance
