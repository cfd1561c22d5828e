"""
Admin-managed configuration rows: per-plan usage limits and free-form system settings.
"""

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, Text

from app.core.database import Base, new_uuid, utcnow
from app.models.user import UserType


class UsageLimitSettings(Base):
    """Monthly limits for one user type. A limit of 0 means unlimited."""
    __tablename__ = "usage_limit_settings"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_type = Column(Enum(UserType, name="user_type"), unique=True, nullable=False)
    max_activities = Column(Integer, default=100, nullable=False)
    max_generations = Column(Integer, default=0, nullable=False)
    max_followup_generations = Column(Integer, default=0, nullable=False)
    include_followups = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<UsageLimitSettings(user_type={self.user_type}, max_activities={self.max_activities})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userType": self.user_type.value,
            "maxActivities": self.max_activities,
            "maxGenerations": self.max_generations,
            "maxFollowupGenerations": self.max_followup_generations,
            "includeFollowups": self.include_followups,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class SystemSetting(Base):
    """Key/value settings such as the misuse detection message."""
    __tablename__ = "system_settings"

    id = Column(String(36), primary_key=True, default=new_uuid)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(Text, nullable=False)
    description = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<SystemSetting(key='{self.key}')>"
