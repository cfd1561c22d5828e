from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.user import User
from app.schemas.settings import NotificationUpdate
from app.services.notification_service import NotificationService

router = APIRouter()


@router.get("")
async def list_notifications(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Latest notifications, creating any follow-up reminders that are due.
    """
    service = NotificationService(db, current_user)
    return {"notifications": await service.list_notifications()}


@router.put("")
async def mark_notifications_read(
    payload: NotificationUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = NotificationService(db, current_user)
    await service.mark_as_read(payload.notification_id, payload.mark_all_as_read)
    return {"success": True}


@router.get("/unread-count")
async def unread_count(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = NotificationService(db, current_user)
    return {"count": await service.unread_count()}
