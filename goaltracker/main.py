# goaltracker/main.py
# Goal Tracker - personal goal tracking API
# Copyright (C) 2025 Goal Tracker

"""
FastAPI application entry point.

Run with:  uvicorn --factory goaltracker.main:create_app

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging
import traceback
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from .config import Settings, get_settings
from .core.database import check_db_health, connect_db, disconnect_db
from .core.oauth import GitHubIdentityProvider, build_identity_provider
from .core.security import TokenService, build_token_service
from .dependencies import SettingsDep
from .exceptions import AuthenticationFailedError, GoalTrackerError
from .middleware import LoggingMiddleware, SecurityHeadersMiddleware
from .models.error_response import ErrorResponse
from .routes.auth import NONCE_COOKIE, NONCE_COOKIE_PATH
from .routes.auth import router as auth_router
from .routes.goals import router as goals_router
from .routes.milestones import router as milestones_router
from .utils.logging_config import configure_logging

# Configure logging
logger = logging.getLogger(__name__)


# ============================================================================
# Global Exception Handlers
# ============================================================================


async def goaltracker_error_handler(request: Request, exc: GoalTrackerError) -> JSONResponse:
    """
    Global exception handler for all GoalTrackerError exceptions.

    Converts GoalTrackerError instances into the standardized ErrorResponse
    format. Internal detail is logged in full and returned only when DEBUG is
    on and the error class allows it; authentication errors never expose it.
    """
    settings: Settings = request.app.state.settings

    log_context = {
        "error_code": exc.code,
        "error_type": type(exc).__name__,
        "status_code": exc.status_code,
        "detail": exc.detail,
        "path": request.url.path,
        "method": request.method,
        "user_agent": request.headers.get("user-agent"),
    }

    if exc.status_code >= 500:
        logger.error(
            f"GoalTrackerError [500-level]: {exc.code} - {exc.message}",
            exc_info=True,
            extra={**log_context, "traceback": traceback.format_exc()},
        )
        sentry_sdk.capture_exception(exc)
    else:
        logger.warning(f"GoalTrackerError: {exc.code} - {exc.message}", extra=log_context)

    show_detail = settings.DEBUG and exc.expose_detail
    error_response = ErrorResponse(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        detail=exc.detail if show_detail else None,
    )

    response = JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
        headers=exc.headers,
    )
    if isinstance(exc, AuthenticationFailedError):
        # The sign-in nonce is single use, failed attempts included
        response.delete_cookie(NONCE_COOKIE, path=NONCE_COOKIE_PATH)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Global exception handler for FastAPI/Pydantic validation errors.

    Reformats RequestValidationError into the standardized ErrorResponse
    format with a readable message.
    """
    settings: Settings = request.app.state.settings
    errors = exc.errors()

    if len(errors) == 1:
        error = errors[0]
        field = " -> ".join(str(loc) for loc in error["loc"])
        message = f"Validation error in field '{field}': {error['msg']}"
    else:
        message = f"Request validation failed with {len(errors)} error(s)"

    error_response = ErrorResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        code="VALIDATION_ERROR",
        message=message,
        detail=str(errors) if settings.DEBUG else None,
    )

    logger.info(
        f"Validation error: {message}",
        extra={"error_count": len(errors), "path": request.url.path},
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response.model_dump(exclude_none=True),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Safety net for unexpected errors.

    Logs the full traceback but returns a generic error so storage or
    provider internals never reach the client.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True,
        extra={
            "exception_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
    )
    sentry_sdk.capture_exception(exc)

    error_response = ErrorResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="INTERNAL_SERVER_ERROR",
        message="An internal server error occurred. Please try again later.",
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(exclude_none=True),
    )


# ============================================================================
# Application Lifespan
# ============================================================================


def init_sentry(settings: Settings) -> None:
    if not settings.SENTRY_DSN.strip():
        logger.warning(
            "Sentry DSN not configured - error tracking disabled",
            extra={"hint": "Set SENTRY_DSN to enable"},
        )
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        sample_rate=1.0,
        # Tokens travel in headers and callback query strings
        send_default_pii=False,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        release=settings.APP_VERSION,
    )
    logger.info(
        "Sentry error tracking initialized",
        extra={"environment": settings.ENVIRONMENT, "release": settings.APP_VERSION},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings

    # Initialize structured logging FIRST (before any logging occurs)
    configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL)
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    init_sentry(settings)

    await connect_db(settings)

    yield  # Application runs here

    logger.info("Shutting down application...")
    await app.state.identity_provider.aclose()
    await disconnect_db()
    logger.info("Shutdown complete")


def create_app(
    settings: Settings | None = None,
    *,
    identity_provider: GitHubIdentityProvider | None = None,
    token_service: TokenService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    The token service and identity provider are built here, so a process
    without a signing secret or OAuth credentials refuses to start.

    Raises:
        ConfigurationError: If required settings are missing
    """
    settings = settings or get_settings()

    token_service = token_service or build_token_service(settings)
    identity_provider = identity_provider or build_identity_provider(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_service = token_service
    app.state.identity_provider = identity_provider

    # Exception handlers
    app.add_exception_handler(GoalTrackerError, goaltracker_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Middleware
    app.add_middleware(SecurityHeadersMiddleware, environment=settings.ENVIRONMENT)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    @app.get("/")
    async def root(settings: SettingsDep) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "login": "/auth/login",
        }

    @app.get("/health")
    async def health() -> JSONResponse:
        """Report database connectivity."""
        db_status = await check_db_health()
        healthy = db_status == "connected"
        return JSONResponse(
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "OK" if healthy else "unhealthy", "db": db_status},
        )

    app.include_router(auth_router)
    app.include_router(goals_router)
    app.include_router(milestones_router)

    return app

