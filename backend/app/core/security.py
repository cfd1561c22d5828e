"""
Authentication and request security for AI Job Master.

Accounts are first-party: bcrypt password hashes, HS256 JWTs for sessions and
for email verification links, and FastAPI dependencies that gate routes on
being signed in, having a verified email, or being an admin. Payment webhooks
are authenticated with HMAC-SHA256 over the raw body.
"""

import hashlib
import hmac
import re
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db, utcnow
from app.core.logging import security_logger, set_user_context
from app.models.user import User, UserType

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False so a missing token reaches get_current_user and becomes a 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

ACCESS_TOKEN = "access"
EMAIL_VERIFICATION_TOKEN = "email_verification"

EMAIL_NOT_VERIFIED_DETAIL = {
    "message": (
        "Please verify your email address to use this feature. Check your inbox and "
        "spam folder for the verification link, or request a new verification email."
    ),
    "error": "Email verification required",
    "code": "EMAIL_NOT_VERIFIED",
    "action": "VERIFY_EMAIL",
}

ADMIN_REQUIRED_MESSAGE = "Forbidden - Admin access required"

PASSWORD_MIN_LENGTH = 8

# (pattern, message) pairs checked in order after the length rule
_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain at least one special character"),
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": (
        "accelerometer=(), camera=(), geolocation=(), "
        "gyroscope=(), magnetometer=(), microphone=(), usb=()"
    ),
}


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def validate_password_strength(password: str) -> Optional[str]:
    """
    Check a new password against the account rules.

    Returns:
        None when the password is acceptable, otherwise the first failing rule's message
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(password):
            return message
    return None


def _issue_token(claims: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    payload = {**claims, "exp": utcnow() + lifetime, "type": token_type}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a session token.

    Args:
        data: Claims to embed; ``sub`` must hold the user id
        expires_delta: Lifetime override, defaults to ACCESS_TOKEN_EXPIRE_MINUTES
    """
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    return _issue_token(data, ACCESS_TOKEN, lifetime)


def create_email_verification_token(user_id: str, email: str) -> str:
    """Token a user presents to POST /auth/verify-email."""
    lifetime = timedelta(hours=settings.email_verification_expire_hours)
    return _issue_token({"sub": user_id, "email": email}, EMAIL_VERIFICATION_TOKEN, lifetime)


def verify_token(token: str, token_type: str = ACCESS_TOKEN) -> Optional[Dict[str, Any]]:
    """
    Decode a token issued by this service.

    Returns None for a bad signature, an expired token, or a token of another
    type (a verification link cannot be used as a session).
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.PyJWTError:
        return None
    return payload if payload.get("type") == token_type else None


def create_signature(data: bytes, secret: Optional[str] = None) -> str:
    """Hex HMAC-SHA256 of ``data``; the app secret is used when none is given."""
    key = (secret or settings.secret_key).encode("utf-8")
    return hmac.new(key, data, hashlib.sha256).hexdigest()


def verify_signature(data: bytes, signature: str, secret: Optional[str] = None) -> bool:
    return constant_time_compare(signature, create_signature(data, secret))


def constant_time_compare(val1: str, val2: str) -> bool:
    return hmac.compare_digest(val1.encode("utf-8"), val2.encode("utf-8"))


def mask_sensitive_data(data: str, mask_char: str = "*", visible_chars: int = 4) -> str:
    """
    Mask a value before it is written to the logs.

    Emails keep their first and last local characters and the domain
    (``j**e@example.com``); anything else keeps its last ``visible_chars``.
    """
    if len(data) <= visible_chars:
        return mask_char * len(data)

    if "@" in data:
        local, domain = data.split("@", 1)
        if len(local) > 2:
            local = local[0] + mask_char * (len(local) - 2) + local[-1]
        else:
            local = mask_char * len(local)
        return f"{local}@{domain}"

    return mask_char * (len(data) - visible_chars) + data[-visible_chars:]


def get_client_ip(request: Request) -> str:
    """Client address, honouring X-Forwarded-For and X-Real-IP from the proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")


class SecurityHeaders:
    """Headers the response middleware adds to every API response."""

    @staticmethod
    def get_security_headers() -> Dict[str, str]:
        return dict(SECURITY_HEADERS)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to a User row, or fail with 401."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    payload = verify_token(token, ACCESS_TOKEN)
    if payload is None or not payload.get("sub"):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == payload["sub"]))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exception

    set_user_context(user.id)
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject deactivated accounts."""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


async def get_verified_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Require a confirmed email address (generation endpoints)."""
    if settings.require_email_verification and not current_user.email_verified:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=EMAIL_NOT_VERIFIED_DETAIL)
    return current_user


async def get_current_admin_user(
    request: Request,
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Require the ADMIN user type."""
    if current_user.user_type != UserType.ADMIN:
        security_logger.log_permission_denied(
            user_id=current_user.id,
            resource=request.url.path,
            action=request.method,
            ip_address=get_client_ip(request),
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ADMIN_REQUIRED_MESSAGE)
    return current_user
