"""
Pydantic schemas package for AI Job Master.

Schemas are organized by domain:
- common: camelCase base model and status updates
- user: registration, login, password change
- generation: generate and save request bodies
- settings: API keys, preferences, prompts, notifications
- admin: user management, shared keys, usage limits
"""

from .common import CamelModel, StatusUpdate
from .user import (
    EmailVerification,
    PaymentChargeRequest,
    Token,
    UserCreate,
    UserLogin,
    UserPasswordUpdate,
)
from .generation import (
    CoverLetterGenerateRequest,
    CoverLetterSaveRequest,
    EmailGenerateRequest,
    EmailSaveRequest,
    LinkedInGenerateRequest,
    LinkedInSaveRequest,
)
from .settings import (
    ApiKeysUpdate,
    DefaultResumeRequest,
    NotificationUpdate,
    PreferencesUpdate,
    PromptsUpdate,
)
from .admin import (
    AdminUserTypeUpdate,
    AdminUserUpdate,
    FetchModelsRequest,
    MisuseMessageUpdate,
    SharedKeyCreate,
    SharedKeyModelsUpdate,
    SharedKeyToggle,
    UsageLimitUpdate,
)

__all__ = [
    # Common
    "CamelModel",
    "StatusUpdate",

    # User schemas
    "EmailVerification",
    "PaymentChargeRequest",
    "Token",
    "UserCreate",
    "UserLogin",
    "UserPasswordUpdate",

    # Generation schemas
    "CoverLetterGenerateRequest",
    "CoverLetterSaveRequest",
    "EmailGenerateRequest",
    "EmailSaveRequest",
    "LinkedInGenerateRequest",
    "LinkedInSaveRequest",

    # Settings schemas
    "ApiKeysUpdate",
    "DefaultResumeRequest",
    "NotificationUpdate",
    "PreferencesUpdate",
    "PromptsUpdate",

    # Admin schemas
    "AdminUserTypeUpdate",
    "AdminUserUpdate",
    "FetchModelsRequest",
    "MisuseMessageUpdate",
    "SharedKeyCreate",
    "SharedKeyModelsUpdate",
    "SharedKeyToggle",
    "UsageLimitUpdate",
]

SCHEMA_VERSION = "1.0.0"
