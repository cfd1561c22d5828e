"""
User and authentication schemas.

Password strength is checked in the routes so the error message matches the
one returned by ``validate_password_strength``.
"""

from typing import Optional

from pydantic import EmailStr, Field, field_validator

from app.schemas.common import CamelModel


class UserCreate(CamelModel):
    """Registration payload."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., description="User's password")
    full_name: Optional[str] = Field(None, max_length=100, description="User's full name")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v):
        if v is not None:
            v = v.strip()
        return v or None


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class EmailVerification(CamelModel):
    token: str = Field(..., min_length=1)


class UserPasswordUpdate(CamelModel):
    """Schema for updating user password."""

    current_password: Optional[str] = Field(None, description="Current password")
    new_password: Optional[str] = Field(None, description="New password")


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class PaymentChargeRequest(CamelModel):
    email: Optional[str] = None
