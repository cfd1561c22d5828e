import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.email_message import EmailMessage
from app.models.enums import ApplicationStatus, EmailMessageType, LinkedInMessageType
from app.models.linkedin_message import LinkedInMessage
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_RESULT_LIMIT = 20


def _email_summary(message: EmailMessage) -> dict:
    return {
        "id": message.id,
        "companyName": message.company_name,
        "positionTitle": message.position_title,
        "recipientName": message.recipient_name,
        "recipientEmail": message.recipient_email,
        "subject": message.subject,
        "body": message.body,
        "createdAt": message.created_at,
        "status": message.status.value,
        "messageType": message.message_type.value,
    }


@router.get("/search/email")
async def search_email_messages(
    q: str = Query(""),
    message_id: Optional[str] = Query(None, alias="messageId"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Find an email to follow up on.

    With ``messageId`` the full message is returned. Otherwise the user's NEW
    emails matching ``q`` are searched, leaving out those already followed up.
    """
    try:
        if message_id:
            result = await db.execute(
                select(EmailMessage).where(EmailMessage.id == message_id, EmailMessage.user_id == current_user.id)
            )
            message = result.scalar_one_or_none()
            return {"message": message.to_dict() if message else None}

        followed_up = select(EmailMessage.parent_message_id).where(
            EmailMessage.user_id == current_user.id,
            EmailMessage.parent_message_id.isnot(None),
        )
        pattern = f"%{q}%"
        result = await db.execute(
            select(EmailMessage)
            .where(
                EmailMessage.user_id == current_user.id,
                EmailMessage.message_type == EmailMessageType.NEW,
                EmailMessage.id.not_in(followed_up),
                or_(
                    EmailMessage.company_name.ilike(pattern),
                    EmailMessage.position_title.ilike(pattern),
                    EmailMessage.recipient_name.ilike(pattern),
                    EmailMessage.recipient_email.ilike(pattern),
                    EmailMessage.subject.ilike(pattern),
                ),
            )
            .order_by(EmailMessage.created_at.desc())
            .limit(SEARCH_RESULT_LIMIT)
        )
    except Exception as e:
        logger.error(f"Email message search error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to search messages")

    return {"messages": [_email_summary(message) for message in result.scalars().all()]}


@router.get("/search/linkedin/connections")
async def search_linkedin_connections(
    q: str = Query(""),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Pending connection requests, so a note can be followed by a message.
    """
    query = select(LinkedInMessage).where(
        LinkedInMessage.user_id == current_user.id,
        LinkedInMessage.message_type == LinkedInMessageType.CONNECTION_NOTE,
        LinkedInMessage.status == ApplicationStatus.REQUESTED,
    )
    if q:
        pattern = f"%{q}%"
        query = query.where(
            or_(
                LinkedInMessage.recipient_name.ilike(pattern),
                LinkedInMessage.company_name.ilike(pattern),
                LinkedInMessage.position_title.ilike(pattern),
                LinkedInMessage.linkedin_url.ilike(pattern),
            )
        )

    try:
        result = await db.execute(query.order_by(LinkedInMessage.created_at.desc()).limit(SEARCH_RESULT_LIMIT))
    except Exception as e:
        logger.error(f"LinkedIn connection search error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to search connections")

    return {
        "messages": [
            {
                "id": message.id,
                "messageId": message.message_id,
                "recipientName": message.recipient_name,
                "recipientPosition": message.recipient_position,
                "companyName": message.company_name,
                "positionTitle": message.position_title,
                "linkedinUrl": message.linkedin_url,
                "content": message.content,
                "status": message.status.value,
                "createdAt": message.created_at,
            }
            for message in result.scalars().all()
        ]
    }
