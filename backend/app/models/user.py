"""
User model for AI Job Master.
Handles authentication, plan type, stored provider keys, preferences and
the monthly usage counters.
"""

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, Integer, String

from app.core.database import Base, new_uuid, utcnow
from app.models.enums import ApplicationStatus, Length, Provider


class UserType(str, enum.Enum):
    """Subscription plan of a user."""
    FREE = "FREE"
    PLUS = "PLUS"
    ADMIN = "ADMIN"


class User(Base):
    """
    User model with authentication, encrypted provider keys and usage counters.
    """
    __tablename__ = "users"

    # Primary identifiers
    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(200), nullable=True)

    # Authentication
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    email_verified_at = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)

    # Plan
    user_type = Column(Enum(UserType, name="user_type"), default=UserType.FREE, nullable=False, index=True)

    # Provider keys (AES encrypted) and the models each key can reach
    openai_api_key = Column(String(1024), nullable=True)
    anthropic_api_key = Column(String(1024), nullable=True)
    gemini_api_key = Column(String(1024), nullable=True)
    openai_models = Column(JSON, default=list, nullable=False)
    anthropic_models = Column(JSON, default=list, nullable=False)
    gemini_models = Column(JSON, default=list, nullable=False)

    # Preferences
    resume_link = Column(String(500), nullable=True)
    default_llm_model = Column(String(100), nullable=True)
    default_length = Column(Enum(Length, name="length"), default=Length.MEDIUM, nullable=False)
    auto_save = Column(Boolean, default=True, nullable=False)
    default_status = Column(
        Enum(ApplicationStatus, name="application_status"),
        default=ApplicationStatus.SENT,
        nullable=False,
    )
    followup_reminder_days = Column(Integer, default=7, nullable=False)

    # Monthly usage counters
    generation_count = Column(Integer, default=0, nullable=False)
    followup_generation_count = Column(Integer, default=0, nullable=False)
    activity_count = Column(Integer, default=0, nullable=False)
    monthly_reset_date = Column(DateTime, default=utcnow, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', user_type={self.user_type})>"

    def get_encrypted_key(self, provider: Provider) -> Optional[str]:
        return getattr(self, f"{provider.slug}_api_key")

    def set_provider_key(self, provider: Provider, encrypted_key: Optional[str], models: List[str]) -> None:
        setattr(self, f"{provider.slug}_api_key", encrypted_key)
        setattr(self, f"{provider.slug}_models", models)

    def get_provider_models(self, provider: Provider) -> List[str]:
        return list(getattr(self, f"{provider.slug}_models") or [])

    @property
    def has_any_api_key(self) -> bool:
        return bool(self.openai_api_key or self.anthropic_api_key or self.gemini_api_key)

    @property
    def is_plus_or_admin(self) -> bool:
        return self.user_type in (UserType.PLUS, UserType.ADMIN)

    def to_dict(self) -> Dict[str, Any]:
        """Convert user to dictionary (excluding secrets)."""
        return {
            "id": self.id,
            "email": self.email,
            "fullName": self.full_name,
            "userType": self.user_type.value,
            "isActive": self.is_active,
            "emailVerified": self.email_verified,
            "hasOpenaiKey": bool(self.openai_api_key),
            "hasAnthropicKey": bool(self.anthropic_api_key),
            "hasGeminiKey": bool(self.gemini_api_key),
            "resumeLink": self.resume_link,
            "generationCount": self.generation_count,
            "followupGenerationCount": self.followup_generation_count,
            "activityCount": self.activity_count,
            "monthlyResetDate": self.monthly_reset_date,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def preferences_dict(self) -> Dict[str, Any]:
        return {
            "defaultLlmModel": self.default_llm_model,
            "defaultLength": self.default_length.value if self.default_length else Length.MEDIUM.value,
            "autoSave": self.auto_save,
            "defaultStatus": self.default_status.value if self.default_status else ApplicationStatus.SENT.value,
            "followupReminderDays": self.followup_reminder_days,
            "resumeLink": self.resume_link,
        }

    def days_since_reset(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        return (now - self.monthly_reset_date).days
