"""
Main FastAPI application for the Merchant Onboarding Server.

Entry point for the API server with startup/shutdown event handlers.
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime
import logging
import structlog

from . import __version__
from .config import settings
from .errors import OnboardingError
from .routes import router
from .store import JsonFileInviteStore

# Configure structured logging
logging.basicConfig(format="%(message)s", level=settings.log_level)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


# ============================================================================
# Lifespan Context Manager (Startup/Shutdown)
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Loads the invite snapshot before the first request is served.
    """
    logger.info(
        "starting_onboarding_server",
        version=__version__,
        environment=settings.env,
        port=settings.server_port,
        order_router=settings.order_router_url
    )

    if not settings.api_token:
        logger.warning("api_token_not_configured", message="Admin endpoints will reject every request")

    try:
        store = JsonFileInviteStore(settings.invites_file)
        await store.load()
        app.state.invite_store = store
        logger.info("server_startup_complete")

        yield

    finally:
        logger.info("shutting_down_server")
        app.state.invite_store = None
        logger.info("server_shutdown_complete")


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="Merchant Onboarding Server",
    description=(
        "Invite-gated self-registration for Nostr market merchants. "
        "Issues single-use invites and registers merchants with the order router."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# ============================================================================
# CORS Middleware
# ============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(OnboardingError)
async def onboarding_error_handler(request: Request, exc: OnboardingError):
    """
    Render onboarding errors with their structured body.
    """
    logger.info(
        "request_rejected",
        path=request.url.path,
        error=exc.error_code,
        status_code=exc.status_code
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.detail,
        headers=exc.headers
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Render framework HTTP errors (unknown route, wrong method) in the same shape.
    """
    error = "not_found" if exc.status_code == status.HTTP_404_NOT_FOUND else "http_error"

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": error,
            "message": str(exc.detail),
            "timestamp": datetime.utcnow().isoformat() + "Z"
        },
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle Pydantic validation errors with detailed messages.
    """
    errors = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        errors[field] = error["msg"]

    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=errors
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "validation_error",
            "message": "Invalid request data",
            "details": errors,
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected errors with generic 500 response.
    """
    logger.error(
        "internal_server_error",
        path=request.url.path,
        error=str(exc),
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An internal server error occurred",
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }
    )


# ============================================================================
# Middleware for Request Logging
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log all incoming requests and responses.
    """
    logger.info(
        "request_received",
        method=request.method,
        path=request.url.path,
        client=request.client.host if request.client else None
    )

    response = await call_next(request)

    logger.info(
        "request_completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code
    )

    return response


# ============================================================================
# Include Routes
# ============================================================================

app.include_router(router)


def run() -> None:
    """Run the server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "onboarding_server.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()


# ============================================================================
# Export
# ============================================================================

__all__ = ["app", "run"]
