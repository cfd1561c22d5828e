"""
SQLAlchemy models package for AI Job Master.

Models included:
- User: authentication, plan, stored provider keys, preferences and usage counters
- Resume: extracted resume text
- CoverLetter, LinkedInMessage, EmailMessage: generated outreach content
- ActivityHistory: append-only log that backs the monthly activity quota
- SharedApiKey: admin-provisioned provider keys for PLUS users
- UsageLimitSettings, SystemSetting: admin-managed configuration
- CustomPrompt: per-tab prompt templates
- Notification: follow-up reminders
"""

from app.core.database import Base

from .enums import (
    ActivityType,
    ApplicationStatus,
    EmailMessageType,
    Length,
    LinkedInMessageType,
    Provider,
    TabType,
)
from .user import User, UserType
from .resume import Resume
from .cover_letter import CoverLetter
from .linkedin_message import LinkedInMessage
from .email_message import EmailMessage
from .activity_history import ActivityHistory
from .shared_api_key import SharedApiKey
from .settings import SystemSetting, UsageLimitSettings
from .custom_prompt import CustomPrompt
from .notification import Notification

ALL_MODELS = [
    User,
    Resume,
    CoverLetter,
    LinkedInMessage,
    EmailMessage,
    ActivityHistory,
    SharedApiKey,
    UsageLimitSettings,
    SystemSetting,
    CustomPrompt,
    Notification,
]

__all__ = [
    "Base",
    "ALL_MODELS",
    "ActivityHistory",
    "ActivityType",
    "ApplicationStatus",
    "CoverLetter",
    "CustomPrompt",
    "EmailMessage",
    "EmailMessageType",
    "Length",
    "LinkedInMessage",
    "LinkedInMessageType",
    "Notification",
    "Provider",
    "Resume",
    "SharedApiKey",
    "SystemSetting",
    "TabType",
    "UsageLimitSettings",
    "User",
    "UserType",
]
