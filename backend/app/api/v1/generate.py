import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import (
    ApiKeyNotConfiguredError,
    ModelNotAvailableError,
    ServiceError,
    UsageLimitError,
)
from app.core.rate_limit import GENERATION_LIMIT, limiter
from app.core.security import get_verified_user
from app.models.user import User
from app.schemas.generation import (
    CoverLetterGenerateRequest,
    EmailGenerateRequest,
    LinkedInGenerateRequest,
)
from app.services.generation_service import GenerationService

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_http_error(error: ServiceError, fallback: str) -> HTTPException:
    """Key problems are the caller's to fix; anything else is a server failure."""
    if isinstance(error, (ApiKeyNotConfiguredError, ModelNotAvailableError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    logger.error(f"{fallback}: {error}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=fallback)


@router.post("/cover-letter")
@limiter.limit(GENERATION_LIMIT)
async def generate_cover_letter(
    request: Request,
    payload: CoverLetterGenerateRequest,
    current_user: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Generate a cover letter and, unless ``saveToHistory`` is false, store it.
    """
    service = GenerationService(db, current_user)
    try:
        return await service.generate_cover_letter(payload)
    except UsageLimitError:
        raise
    except ServiceError as e:
        raise _to_http_error(e, "Failed to generate cover letter")


@router.post("/linkedin")
@limiter.limit(GENERATION_LIMIT)
async def generate_linkedin_message(
    request: Request,
    payload: LinkedInGenerateRequest,
    current_user: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Generate a LinkedIn message, follow-up or connection note.
    """
    service = GenerationService(db, current_user)
    try:
        return await service.generate_linkedin_message(payload)
    except UsageLimitError:
        raise
    except ServiceError as e:
        raise _to_http_error(e, "Failed to generate LinkedIn message")


@router.post("/email")
@limiter.limit(GENERATION_LIMIT)
async def generate_email(
    request: Request,
    payload: EmailGenerateRequest,
    current_user: User = Depends(get_verified_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Generate an outreach or follow-up email, split into subject and body.
    """
    service = GenerationService(db, current_user)
    try:
        return await service.generate_email(payload)
    except UsageLimitError:
        raise
    except ServiceError as e:
        raise _to_http_error(e, "Failed to generate email")
