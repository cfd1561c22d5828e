import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import (
    count_query_results,
    get_db,
    paginate_query,
    pagination_info,
    utcnow,
)
from app.core.security import get_current_active_user
from app.models.activity_history import ActivityHistory
from app.models.cover_letter import CoverLetter
from app.models.email_message import EmailMessage
from app.models.enums import ActivityType, ApplicationStatus, parse_enum
from app.models.linkedin_message import LinkedInMessage
from app.models.user import User
from app.schemas.common import StatusUpdate
from app.services.history_service import UNKNOWN_COMPANY, export_history_csv, get_history
from app.services.tracking import mark_activity_deleted

logger = logging.getLogger(__name__)

router = APIRouter()

# REQUESTED is set by the system for connection notes, never by the user
EDITABLE_STATUSES = (
    ApplicationStatus.DRAFT,
    ApplicationStatus.SENT,
    ApplicationStatus.DONE,
    ApplicationStatus.GHOST,
)
INVALID_STATUS_MESSAGE = "Valid status is required (DRAFT, SENT, DONE, GHOST)"

_ITEM_KINDS = {
    "cover-letter": (CoverLetter, ActivityType.COVER_LETTER, "Cover letter not found", "coverLetter"),
    "linkedin": (LinkedInMessage, ActivityType.LINKEDIN_MESSAGE, "LinkedIn message not found", "message"),
    "email": (EmailMessage, ActivityType.EMAIL_MESSAGE, "Email message not found", "message"),
}


@router.get("/history")
async def list_history(
    type_filter: Optional[str] = Query(None, alias="type"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Cover letters, LinkedIn messages and emails merged into one list.
    """
    history = await get_history(db, current_user, type_filter, status_filter, search)
    return {"history": history}


@router.get("/history/export")
async def export_history(
    type_filter: Optional[str] = Query(None, alias="type"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Download the filtered history as a CSV attachment.
    """
    csv_text = await export_history_csv(db, current_user, type_filter, status_filter, search)
    filename = f"job-applications-{utcnow().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _get_owned(db: AsyncSession, kind: str, item_id: str, user: User):
    model, _, not_found, _ = _ITEM_KINDS[kind]
    result = await db.execute(select(model).where(model.id == item_id, model.user_id == user.id))
    item = result.scalar_one_or_none()
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    return item


async def _read_item(db: AsyncSession, kind: str, item_id: str, user: User):
    item = await _get_owned(db, kind, item_id, user)
    return {_ITEM_KINDS[kind][3]: item.to_dict()}


async def _update_status(db: AsyncSession, kind: str, item_id: str, user: User, payload: StatusUpdate):
    new_status = parse_enum(ApplicationStatus, payload.status)
    if new_status not in EDITABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_STATUS_MESSAGE)

    item = await _get_owned(db, kind, item_id, user)
    item.status = new_status
    item.updated_at = utcnow()
    return {
        "success": True,
        "message": {"id": item.id, "status": item.status.value, "updatedAt": item.updated_at},
    }


async def _delete_item(db: AsyncSession, kind: str, item_id: str, user: User):
    item = await _get_owned(db, kind, item_id, user)
    activity_type = _ITEM_KINDS[kind][1]
    await db.delete(item)
    await mark_activity_deleted(
        db, user.id, activity_type, item.company_name or UNKNOWN_COMPANY, item.created_at
    )
    return {"success": True}


@router.get("/history/cover-letter/{item_id}")
async def get_cover_letter(
    item_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _read_item(db, "cover-letter", item_id, current_user)


@router.patch("/history/cover-letter/{item_id}")
async def update_cover_letter_status(
    item_id: str,
    payload: StatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _update_status(db, "cover-letter", item_id, current_user, payload)


@router.delete("/history/cover-letter/{item_id}")
async def delete_cover_letter(
    item_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _delete_item(db, "cover-letter", item_id, current_user)


@router.get("/history/linkedin/{item_id}")
async def get_linkedin_message(
    item_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _read_item(db, "linkedin", item_id, current_user)


@router.patch("/history/linkedin/{item_id}")
async def update_linkedin_status(
    item_id: str,
    payload: StatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _update_status(db, "linkedin", item_id, current_user, payload)


@router.delete("/history/linkedin/{item_id}")
async def delete_linkedin_message(
    item_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _delete_item(db, "linkedin", item_id, current_user)


@router.get("/history/email/{item_id}")
async def get_email_message(
    item_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _read_item(db, "email", item_id, current_user)


@router.patch("/history/email/{item_id}")
async def update_email_status(
    item_id: str,
    payload: StatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _update_status(db, "email", item_id, current_user, payload)


@router.delete("/history/email/{item_id}")
async def delete_email_message(
    item_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _delete_item(db, "email", item_id, current_user)


@router.get("/activity-history")
async def list_activity_history(
    search: Optional[str] = Query(None),
    type_filter: Optional[str] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Paginated activity log, including entries whose content was deleted.
    """
    query = select(ActivityHistory).where(ActivityHistory.user_id == current_user.id)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                ActivityHistory.company_name.ilike(pattern),
                ActivityHistory.position_title.ilike(pattern),
                ActivityHistory.recipient.ilike(pattern),
            )
        )
    activity_type = parse_enum(ActivityType, type_filter)
    if activity_type is not None:
        query = query.where(ActivityHistory.activity_type == activity_type)

    total_count = await count_query_results(db, query)
    result = await db.execute(paginate_query(query.order_by(ActivityHistory.created_at.desc()), page, limit))

    return {
        "activities": [activity.to_dict() for activity in result.scalars().all()],
        "pagination": pagination_info(page, limit, total_count),
    }
