"""Schemas for the admin endpoints."""

from typing import Any, Dict, List, Optional

from app.schemas.common import CamelModel


class AdminUserUpdate(CamelModel):
    user_id: Optional[str] = None
    user_type: Optional[str] = None


class AdminUserTypeUpdate(CamelModel):
    user_type: Optional[str] = None


class SharedKeyCreate(CamelModel):
    provider: Optional[str] = None
    api_key: Optional[str] = None
    models: Optional[List[str]] = None


class SharedKeyToggle(CamelModel):
    id: Optional[str] = None
    is_active: Optional[bool] = None


class SharedKeyModelsUpdate(CamelModel):
    id: Optional[str] = None
    models: Optional[List[str]] = None


class FetchModelsRequest(CamelModel):
    api_key: Optional[str] = None
    provider: Optional[str] = None


class UsageLimitUpdate(CamelModel):
    user_type: Optional[str] = None
    max_activities: Optional[int] = None
    max_generations: Optional[int] = None
    max_followup_generations: Optional[int] = None
    include_followups: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        """Column values supplied in the request."""
        return self.model_dump(exclude={"user_type"}, exclude_none=True)


class MisuseMessageUpdate(CamelModel):
    message: Optional[Any] = None
