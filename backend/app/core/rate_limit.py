"""
Request rate limiting using slowapi.

Authenticated requests are bucketed per user id, anonymous ones per client IP.
Each endpoint group declares the bucket it draws from, e.g.::

    @router.post("/cover-letter")
    @limiter.limit(GENERATION_LIMIT)
    async def generate_cover_letter(request: Request, ...):
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import get_settings
from app.core.security import verify_token

settings = get_settings()

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


def get_rate_limit_key(request: Request) -> str:
    """Use the token subject when a valid bearer token is present."""
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        payload = verify_token(authorization[7:].strip(), "access")
        if payload and payload.get("sub"):
            return f"user:{payload['sub']}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_rate_limit_key,
    enabled=settings.rate_limit_enabled,
    strategy="fixed-window",
)

AUTH_LIMIT = settings.rate_limit_auth
GENERATION_LIMIT = settings.rate_limit_generation
SETTINGS_LIMIT = settings.rate_limit_settings
GENERAL_LIMIT = settings.rate_limit_general
