"""
Explicit saves of generated content, plus deletes.

Saves honour an ``Idempotency-Key`` header: a repeated request from the same
user with the same key returns the first response without inserting again.
The key is stored on the saved row under a per-user unique constraint, so a
replay is recognised after the in-process cache has expired or on another
worker; the cache only short-circuits the lookup.
"""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import idempotency_cache
from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.cover_letter import CoverLetter
from app.models.email_message import EmailMessage
from app.models.enums import (
    ActivityType,
    ApplicationStatus,
    EmailMessageType,
    Length,
    LinkedInMessageType,
    parse_enum,
)
from app.models.linkedin_message import LinkedInMessage
from app.models.user import User
from app.schemas.generation import CoverLetterSaveRequest, EmailSaveRequest, LinkedInSaveRequest
from app.services.history_service import UNKNOWN_COMPANY
from app.services.message_id import generate_message_id
from app.services.tracking import mark_activity_deleted, track_activity_count

logger = logging.getLogger(__name__)

router = APIRouter()

Responder = Callable[[Any], Dict[str, Any]]


def _idempotency_cache_key(user: User, key: Optional[str]) -> Optional[str]:
    return f"{user.id}:{key}" if key else None


def _cached_response(cache_key: Optional[str]) -> Optional[Dict[str, Any]]:
    if cache_key is None:
        return None
    cached = idempotency_cache.get(cache_key)
    if cached is not None:
        logger.info(f"Returning cached response for idempotency key {cache_key}")
    return cached


def _remember(cache_key: Optional[str], response: Dict[str, Any]) -> Dict[str, Any]:
    if cache_key is not None:
        idempotency_cache.set(cache_key, response)
    return response


def _cover_letter_response(item: CoverLetter) -> Dict[str, Any]:
    return {"success": True, "id": item.id}


def _message_response(item) -> Dict[str, Any]:
    return {"success": True, "id": item.id, "messageId": item.message_id}


async def _find_saved(db: AsyncSession, model, user_id: str, key: Optional[str]):
    """The row an earlier request with this idempotency key created, if any."""
    if not key:
        return None
    result = await db.execute(select(model).where(model.user_id == user_id, model.idempotency_key == key))
    return result.scalar_one_or_none()


async def _replay(
    db: AsyncSession, model, user: User, key: Optional[str], respond: Responder
) -> Optional[Dict[str, Any]]:
    cache_key = _idempotency_cache_key(user, key)
    cached = _cached_response(cache_key)
    if cached is not None:
        return cached

    existing = await _find_saved(db, model, user.id, key)
    if existing is None:
        return None
    logger.info(f"Idempotency key {key} already saved as {existing.id}")
    return _remember(cache_key, respond(existing))


async def _store(
    db: AsyncSession,
    item,
    user: User,
    key: Optional[str],
    is_followup: bool,
    respond: Responder,
    failure: str,
) -> Dict[str, Any]:
    """
    Insert a saved item, count it against the monthly activity limit and commit.

    The response is cached only once the row is committed. When a concurrent
    request with the same key commits first, the unique constraint rejects
    this insert and the winner's row is returned instead.
    """
    model = type(item)
    user_id = user.id
    cache_key = _idempotency_cache_key(user, key)

    try:
        db.add(item)
        await db.flush()
        await track_activity_count(db, user, is_followup=is_followup)
        await db.commit()
        return _remember(cache_key, respond(item))
    except IntegrityError as e:
        await db.rollback()
        existing = await _find_saved(db, model, user_id, key)
        if existing is not None:
            logger.info(f"Idempotency key {key} was saved by a concurrent request")
            return _remember(cache_key, respond(existing))
        logger.error(f"{failure}: {e}")
    except Exception as e:
        await db.rollback()
        logger.error(f"{failure}: {e}")

    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure)


@router.post("/cover-letters/save")
async def save_cover_letter(
    payload: CoverLetterSaveRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Store a cover letter generated without ``saveToHistory``.
    """
    replayed = await _replay(db, CoverLetter, current_user, idempotency_key, _cover_letter_response)
    if replayed is not None:
        return replayed

    if not payload.content or not payload.job_description:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Content and job description are required",
        )

    cover_letter = CoverLetter(
        user_id=current_user.id,
        resume_id=payload.resume_id,
        company_name=payload.company_name,
        position_title=payload.position_title,
        job_description=payload.job_description,
        company_description=payload.company_description,
        content=payload.content,
        length=parse_enum(Length, payload.length, Length.MEDIUM),
        llm_model=payload.llm_model,
        idempotency_key=idempotency_key,
        status=parse_enum(ApplicationStatus, payload.status, ApplicationStatus.DRAFT),
    )
    return await _store(
        db, cover_letter, current_user, idempotency_key, False, _cover_letter_response, "Failed to save cover letter"
    )


@router.post("/linkedin-messages/save")
async def save_linkedin_message(
    payload: LinkedInSaveRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Store a LinkedIn message, follow-up or connection note.
    """
    replayed = await _replay(db, LinkedInMessage, current_user, idempotency_key, _message_response)
    if replayed is not None:
        return replayed

    message_type = parse_enum(LinkedInMessageType, payload.message_type)
    if not payload.content or message_type is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Content and message type are required",
        )
    if message_type != LinkedInMessageType.CONNECTION_NOTE and not payload.company_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Company name is required")

    default_status = (
        ApplicationStatus.REQUESTED
        if message_type == LinkedInMessageType.CONNECTION_NOTE
        else ApplicationStatus.SENT
    )

    message = LinkedInMessage(
        user_id=current_user.id,
        resume_id=payload.resume_id,
        parent_message_id=payload.parent_message_id,
        message_id=generate_message_id("linkedin"),
        message_type=message_type,
        linkedin_url=payload.linkedin_url,
        recipient_name=payload.recipient_name,
        recipient_position=payload.recipient_position,
        position_title=payload.position_title,
        areas_of_interest=payload.areas_of_interest,
        company_name=payload.company_name or "Unknown",
        job_description=payload.job_description,
        company_description=payload.company_description,
        content=payload.content,
        length=parse_enum(Length, payload.length, Length.MEDIUM),
        llm_model=payload.llm_model,
        idempotency_key=idempotency_key,
        status=parse_enum(ApplicationStatus, payload.status, default_status),
        request_referral=payload.request_referral,
    )
    return await _store(
        db,
        message,
        current_user,
        idempotency_key,
        message_type == LinkedInMessageType.FOLLOW_UP,
        _message_response,
        "Failed to save LinkedIn message",
    )


@router.post("/email-messages/save")
async def save_email_message(
    payload: EmailSaveRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Store an email with its subject and body.
    """
    replayed = await _replay(db, EmailMessage, current_user, idempotency_key, _message_response)
    if replayed is not None:
        return replayed

    message_type = parse_enum(EmailMessageType, payload.message_type)
    if (
        not payload.subject
        or not payload.body
        or not payload.recipient_email
        or not payload.company_name
        or message_type is None
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subject, body, recipient email, company name, and message type are required",
        )

    message = EmailMessage(
        user_id=current_user.id,
        resume_id=payload.resume_id,
        parent_message_id=payload.parent_message_id,
        message_id=generate_message_id("email"),
        message_type=message_type,
        recipient_email=payload.recipient_email,
        recipient_name=payload.recipient_name,
        position_title=payload.position_title,
        areas_of_interest=payload.areas_of_interest,
        company_name=payload.company_name,
        job_description=payload.job_description,
        company_description=payload.company_description,
        subject=payload.subject,
        body=payload.body,
        length=parse_enum(Length, payload.length, Length.MEDIUM),
        llm_model=payload.llm_model,
        idempotency_key=idempotency_key,
        status=parse_enum(ApplicationStatus, payload.status, ApplicationStatus.SENT),
        request_referral=payload.request_referral,
    )
    return await _store(
        db,
        message,
        current_user,
        idempotency_key,
        message_type == EmailMessageType.FOLLOW_UP,
        _message_response,
        "Failed to save email message",
    )


async def _delete_owned(db: AsyncSession, model, item_id: str, user: User, not_found: str):
    result = await db.execute(select(model).where(model.id == item_id, model.user_id == user.id))
    item = result.scalar_one_or_none()
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    await db.delete(item)
    return item


@router.delete("/cover-letters/{cover_letter_id}")
async def delete_cover_letter(
    cover_letter_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    item = await _delete_owned(db, CoverLetter, cover_letter_id, current_user, "Cover letter not found")
    await mark_activity_deleted(
        db, current_user.id, ActivityType.COVER_LETTER, item.company_name or UNKNOWN_COMPANY, item.created_at
    )
    return {"success": True}


@router.delete("/email-messages/{message_id}")
async def delete_email_message(
    message_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    item = await _delete_owned(db, EmailMessage, message_id, current_user, "Email message not found")
    await mark_activity_deleted(db, current_user.id, ActivityType.EMAIL_MESSAGE, item.company_name, item.created_at)
    return {"success": True}
