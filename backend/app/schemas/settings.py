"""Schemas for the user settings endpoints."""

from typing import Optional

from pydantic import Field, field_validator

from app.schemas.common import CamelModel


class ApiKeysUpdate(CamelModel):
    """
    Provider keys to store.

    A field left out is untouched; an empty string removes the stored key.
    """

    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None


class PreferencesUpdate(CamelModel):
    default_llm_model: Optional[str] = None
    default_length: Optional[str] = None
    auto_save: Optional[bool] = None
    default_status: Optional[str] = None
    followup_reminder_days: Optional[int] = Field(None, ge=1, le=90)
    resume_link: Optional[str] = None


class PromptsUpdate(CamelModel):
    cover_letter: Optional[str] = None
    linked_in: Optional[str] = None
    email: Optional[str] = None


class DefaultResumeRequest(CamelModel):
    resume_id: Optional[str] = None


class NotificationUpdate(CamelModel):
    notification_id: Optional[str] = None
    mark_all_as_read: bool = False

    @field_validator("notification_id")
    @classmethod
    def blank_to_none(cls, v):
        return v or None
