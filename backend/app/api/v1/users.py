from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.user import User
from app.services.shared_keys import get_available_shared_models
from app.services.stats_service import get_dashboard_stats

router = APIRouter()


@router.get("/user/profile")
async def get_user_profile(current_user: User = Depends(get_current_active_user)):
    """
    Plan and email of the current user.
    """
    return {"userType": current_user.user_type.value, "email": current_user.email}


@router.get("/dashboard/stats")
async def dashboard_stats(
    include_followups: Optional[bool] = Query(None, alias="includeFollowups"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Content counts, monthly usage and the five most recent items.

    Follow-up messages count toward the totals when ``includeFollowups`` is
    true; when it is omitted the plan's usage limit setting decides.
    """
    return await get_dashboard_stats(db, current_user, include_followups)


@router.get("/shared-models")
async def list_shared_models(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Models reachable through admin-provided shared keys (PLUS and ADMIN only).
    """
    if not current_user.is_plus_or_admin:
        return {"models": []}
    return {"models": await get_available_shared_models(db)}
