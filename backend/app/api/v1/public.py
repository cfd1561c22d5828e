from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limit import GENERAL_LIMIT, limiter
from app.services.stats_service import get_public_stats

router = APIRouter()


@router.get("/stats")
@limiter.limit(GENERAL_LIMIT)
async def public_stats(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Registered user count for the landing page. No authentication required.
    """
    return await get_public_stats(db)
