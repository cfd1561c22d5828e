"""
FastAPI Application Entry Point for AI Job Master

This module creates and configures the main FastAPI application instance with all
middleware, routes, exception handlers, and lifecycle events.

Features:
- Automatic OpenAPI documentation generation
- CORS middleware for frontend integration
- Security headers, request ids and per-user rate limiting
- Database connection management
- Uniform JSON error bodies
- Health checks and monitoring
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import API_DESCRIPTION, API_TITLE, API_VERSION, api_router
from app.core.cache import cache_stats
from app.core.config import get_settings
from app.core.database import check_db_health, close_db, init_db
from app.core.exceptions import (
    ApiKeyNotConfiguredError,
    InputValidationError,
    ModelNotAvailableError,
    ServiceError,
    UsageLimitError,
)
from app.core.logging import (
    clear_request_context,
    get_logger,
    log_shutdown_info,
    log_startup_info,
    performance_logger,
    set_request_context,
    setup_logging,
    user_id_var,
)
from app.core.rate_limit import RATE_LIMIT_MESSAGE, limiter
from app.core.security import SecurityHeaders

# Initialize settings and logging
settings = get_settings()
setup_logging()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.
    """
    log_startup_info()

    try:
        logger.info("Initializing database...")
        await init_db()
        logger.info("Application startup completed successfully")

        yield

    except Exception as e:
        logger.error(f"Startup failed: {str(e)}", exc_info=True)
        raise

    finally:
        log_shutdown_info()
        try:
            await close_db()
            logger.info("Application shutdown completed successfully")
        except Exception as e:
            logger.error(f"Shutdown error: {str(e)}", exc_info=True)


# Create FastAPI application instance
app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
    debug=settings.debug,
)

# Rate limiting
app.state.limiter = limiter

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Tag the request with an id, time it and add the security headers."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    set_request_context(request_id)
    start = time.perf_counter()

    try:
        response = await call_next(request)
        duration = time.perf_counter() - start

        performance_logger.log_request_time(
            method=request.method,
            path=request.url.path,
            duration=duration,
            status_code=response.status_code,
            user_id=user_id_var.get(),
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        for header, value in SecurityHeaders.get_security_headers().items():
            response.headers.setdefault(header, value)
        return response
    finally:
        clear_request_context()


# Include API routes
app.include_router(api_router, prefix="/api")


def _error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: Any,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    error: Dict[str, Any] = {
        "type": error_type,
        "message": message,
        "status_code": status_code,
        "path": str(request.url.path),
    }
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"error": error}), headers=headers)


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions; a dict detail carries extra fields into ``details``."""
    message = exc.detail
    details = None
    if isinstance(exc.detail, dict):
        details = dict(exc.detail)
        message = details.pop("message", None) or details.pop("error", None)

    return _error_response(
        request,
        exc.status_code,
        "HTTPException",
        message,
        details,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors with detailed field information."""
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ValidationError",
        "Request validation failed",
        exc.errors(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    return _error_response(
        request,
        status.HTTP_429_TOO_MANY_REQUESTS,
        "RateLimitExceeded",
        RATE_LIMIT_MESSAGE,
        {"limit": str(exc.detail)},
    )


@app.exception_handler(UsageLimitError)
async def usage_limit_exception_handler(request: Request, exc: UsageLimitError):
    return _error_response(
        request,
        status.HTTP_429_TOO_MANY_REQUESTS,
        "UsageLimitError",
        exc.message,
        exc.details,
    )


@app.exception_handler(InputValidationError)
async def input_validation_exception_handler(request: Request, exc: InputValidationError):
    return _error_response(request, status.HTTP_400_BAD_REQUEST, "InputValidationError", str(exc))


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Service errors that a route did not translate itself."""
    if isinstance(exc, (ApiKeyNotConfiguredError, ModelNotAvailableError)):
        return _error_response(request, status.HTTP_400_BAD_REQUEST, type(exc).__name__, str(exc))

    logger.error(f"Service error: {str(exc)}", exc_info=True)
    message = "An internal server error occurred" if settings.is_production else str(exc)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, type(exc).__name__, message)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with proper logging."""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    message = "An internal server error occurred" if settings.is_production else str(exc)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalServerError", message)


# Root endpoint
@app.get("/", tags=["root"])
async def root() -> Dict[str, Any]:
    """
    Root endpoint providing basic application information.
    """
    return {
        "message": f"{settings.app_name} API",
        "version": API_VERSION,
        "status": "operational",
        "features": [
            "Cover letter, LinkedIn message and email generation",
            "Bring-your-own or shared LLM provider keys",
            "Application history and follow-up reminders",
        ],
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json",
        },
        "api": {
            "base_url": "/api",
            "version": "/api/v1",
            "authentication": "JWT Bearer Token",
        },
    }


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint for monitoring and load balancers.
    """
    try:
        db_health = await check_db_health()
        db_healthy = db_health.get("status") == "healthy"

        return {
            "status": "healthy" if db_healthy else "degraded",
            "version": API_VERSION,
            "environment": settings.env,
            "services": {
                "database": db_health,
                "api": "healthy",
            },
            "caches": cache_stats(),
        }

    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return {
            "status": "unhealthy",
            "error": "Health check failed",
            "services": {"database": "unknown", "api": "degraded"},
        }


if __name__ == "__main__":
    # Development server
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
