from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db, utcnow
from app.core.logging import security_logger
from app.core.rate_limit import AUTH_LIMIT, limiter
from app.core.security import (
    EMAIL_VERIFICATION_TOKEN,
    create_access_token,
    create_email_verification_token,
    get_client_ip,
    get_current_active_user,
    get_password_hash,
    mask_sensitive_data,
    validate_password_strength,
    verify_password,
    verify_token,
)
from app.models.user import User, UserType
from app.schemas.user import EmailVerification, UserCreate, UserLogin

router = APIRouter()


def _token_response(user: User) -> dict:
    return {
        "access_token": create_access_token(data={"sub": user.id}),
        "token_type": "bearer",
        "expires_in": settings.access_token_expire_minutes * 60,
    }


async def _read_credentials(request: Request) -> UserLogin:
    """Accept either an OAuth2 password form or a JSON body."""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            return UserLogin.model_validate(await request.json())
        form = await request.form()
        return UserLogin(email=form.get("username") or form.get("email"), password=form.get("password"))
    except ValidationError as e:
        raise RequestValidationError(e.errors())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON in request body")


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
async def register(request: Request, user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """
    Register a new user account.

    The verification token is returned in the response; delivering it by
    email is left to the client.
    """
    password_error = validate_password_strength(user_data.password)
    if password_error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=password_error)

    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = User(
        email=user_data.email,
        full_name=user_data.full_name,
        hashed_password=get_password_hash(user_data.password),
        user_type=UserType.FREE,
        is_active=True,
        email_verified=False,
        monthly_reset_date=utcnow(),
    )
    db.add(user)
    await db.flush()

    return {
        "user": user.to_dict(),
        "verificationToken": create_email_verification_token(user.id, user.email),
    }


@router.post("/login")
@limiter.limit(AUTH_LIMIT)
async def login(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Login and receive access token.
    """
    credentials = await _read_credentials(request)
    ip_address = get_client_ip(request)
    user_agent = request.headers.get("user-agent")

    result = await db.execute(select(User).where(User.email == credentials.email.strip().lower()))
    user = result.scalar_one_or_none()

    if not user or not user.hashed_password or not verify_password(credentials.password, user.hashed_password):
        security_logger.log_login_attempt(mask_sensitive_data(credentials.email), False, ip_address, user_agent)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")

    user.last_login = utcnow()
    security_logger.log_login_attempt(mask_sensitive_data(user.email), True, ip_address, user_agent)
    return _token_response(user)


@router.post("/verify-email")
async def verify_email(payload: EmailVerification, db: AsyncSession = Depends(get_db)):
    """
    Confirm an email address with a verification token.
    """
    claims = verify_token(payload.token, EMAIL_VERIFICATION_TOKEN)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification token",
        )

    result = await db.execute(select(User).where(User.id == claims.get("sub")))
    user = result.scalar_one_or_none()
    if user is None or user.email != claims.get("email"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired verification token")

    if not user.email_verified:
        user.email_verified = True
        user.email_verified_at = utcnow()

    return {"success": True, "message": "Email verified successfully"}


@router.post("/resend-verification")
async def resend_verification(current_user: User = Depends(get_current_active_user)):
    """
    Issue a fresh verification token for the current user.
    """
    if current_user.email_verified:
        return {"success": True, "message": "Email already verified"}

    return {
        "success": True,
        "verificationToken": create_email_verification_token(current_user.id, current_user.email),
    }


@router.get("/me")
async def read_current_user(current_user: User = Depends(get_current_active_user)):
    return {"user": current_user.to_dict()}


@router.get("/check-plus-status")
async def check_plus_status(current_user: User = Depends(get_current_active_user)):
    return {
        "isPLUS": current_user.user_type == UserType.PLUS,
        "userType": current_user.user_type.value,
    }
