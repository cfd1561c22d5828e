"""
API v1 router configuration for AI Job Master.

This module sets up all the API endpoints and their routing configuration.
"""

from fastapi import APIRouter

from app.api.v1 import (
    admin,
    auth,
    generate,
    history,
    messages,
    notifications,
    payment,
    public,
    saves,
    settings,
    users,
)

# Create the main API v1 router
api_router = APIRouter()

AUTH_RESPONSES = {
    401: {"description": "Unauthorized"},
    422: {"description": "Validation Error"},
}

api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["authentication"],
    responses={**AUTH_RESPONSES, 403: {"description": "Forbidden"}},
)

api_router.include_router(
    users.router,
    tags=["users"],
    responses=AUTH_RESPONSES,
)

api_router.include_router(
    public.router,
    prefix="/public",
    tags=["public"],
)

api_router.include_router(
    generate.router,
    prefix="/generate",
    tags=["generate"],
    responses={
        **AUTH_RESPONSES,
        403: {"description": "Email not verified"},
        429: {"description": "Usage or rate limit reached"},
    },
)

api_router.include_router(
    saves.router,
    tags=["saves"],
    responses={**AUTH_RESPONSES, 404: {"description": "Content not found"}},
)

api_router.include_router(
    history.router,
    tags=["history"],
    responses={**AUTH_RESPONSES, 404: {"description": "Content not found"}},
)

api_router.include_router(
    settings.router,
    prefix="/settings",
    tags=["settings"],
    responses={**AUTH_RESPONSES, 404: {"description": "Resume not found"}},
)

api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["notifications"],
    responses=AUTH_RESPONSES,
)

api_router.include_router(
    messages.router,
    prefix="/messages",
    tags=["messages"],
    responses=AUTH_RESPONSES,
)

api_router.include_router(
    payment.router,
    prefix="/payment",
    tags=["payment"],
)

api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"],
    responses={
        **AUTH_RESPONSES,
        403: {"description": "Forbidden - Admin access required"},
        404: {"description": "Not found"},
    },
)


@api_router.get("/", tags=["root"])
async def api_root():
    """
    API root endpoint providing version and service information.

    :return: API information
    :rtype: dict
    """
    return {
        "message": "AI Job Master API v1",
        "version": "1.0.0",
        "status": "active",
        "endpoints": {
            "authentication": "/api/v1/auth",
            "generate": "/api/v1/generate",
            "history": "/api/v1/history",
            "settings": "/api/v1/settings",
            "notifications": "/api/v1/notifications",
            "admin": "/api/v1/admin",
        },
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json",
        },
    }


__all__ = ["api_router"]
