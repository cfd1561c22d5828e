"""
Usage accounting: activity history, monthly counters and plan limits.

Three counters live on the user row and reset every 30 days:
``generation_count`` and ``followup_generation_count`` (only generations made
with a shared key) and ``activity_count`` (saved content).
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import usage_limits_cache
from app.core.database import utcnow
from app.models.activity_history import ActivityHistory
from app.models.enums import ActivityType, ApplicationStatus
from app.models.settings import UsageLimitSettings
from app.models.user import User, UserType

logger = logging.getLogger(__name__)

RESET_PERIOD_DAYS = 30
DEFAULT_MAX_ACTIVITIES = 100

DEFAULT_USAGE_LIMITS = {
    UserType.FREE: 100,
    UserType.PLUS: 500,
    UserType.ADMIN: 0,
}


@dataclass
class UsageLimits:
    max_activities: int
    max_generations: int
    max_followup_generations: int
    include_followups: bool


@dataclass
class ActivityCheck:
    allowed: bool
    current_count: int
    limit: int
    reset_date: datetime


async def get_cached_usage_limits(db: AsyncSession, user_type: UserType) -> Optional[UsageLimits]:
    """Usage limits for a user type, cached for a few minutes."""
    cache_key = f"limits:{user_type.value}"
    cached = usage_limits_cache.get(cache_key)
    if cached is not None:
        return cached

    result = await db.execute(select(UsageLimitSettings).where(UsageLimitSettings.user_type == user_type))
    row = result.scalar_one_or_none()
    if row is None:
        return None

    limits = UsageLimits(
        max_activities=row.max_activities,
        max_generations=row.max_generations,
        max_followup_generations=row.max_followup_generations,
        include_followups=row.include_followups,
    )
    usage_limits_cache.set(cache_key, limits)
    return limits


def track_activity(
    db: AsyncSession,
    user_id: str,
    activity_type: ActivityType,
    company_name: str,
    position_title: Optional[str] = None,
    recipient: Optional[str] = None,
    status: Optional[ApplicationStatus] = None,
    llm_model: Optional[str] = None,
) -> None:
    """Record a saved activity. Errors are logged, never raised."""
    try:
        db.add(
            ActivityHistory(
                user_id=user_id,
                activity_type=activity_type,
                company_name=company_name,
                position_title=position_title,
                recipient=recipient,
                status=status,
                llm_model=llm_model,
                is_deleted=False,
            )
        )
    except Exception as e:
        logger.error(f"Failed to track activity: {e}")


def track_generation_history(
    db: AsyncSession,
    user_id: str,
    activity_type: ActivityType,
    company_name: str,
    position_title: Optional[str],
    recipient: Optional[str],
    llm_model: Optional[str],
    is_saved: bool,
    is_followup: bool,
) -> None:
    """Record a generation (saved or not) in the activity history."""
    try:
        db.add(
            ActivityHistory(
                user_id=user_id,
                activity_type=activity_type,
                company_name=company_name,
                position_title=position_title,
                recipient=recipient,
                llm_model=llm_model,
                is_saved=is_saved,
                is_followup=is_followup,
            )
        )
    except Exception as e:
        logger.error(f"Track generation history error: {e}")


async def mark_activity_deleted(
    db: AsyncSession,
    user_id: str,
    activity_type: ActivityType,
    company_name: str,
    created_at: datetime,
) -> None:
    """Soft-delete history rows created within a second of ``created_at``."""
    try:
        await db.execute(
            update(ActivityHistory)
            .where(
                ActivityHistory.user_id == user_id,
                ActivityHistory.activity_type == activity_type,
                ActivityHistory.company_name == company_name,
                ActivityHistory.created_at >= created_at - timedelta(seconds=1),
                ActivityHistory.created_at <= created_at + timedelta(seconds=1),
                ActivityHistory.is_deleted.is_(False),
            )
            .values(is_deleted=True)
        )
    except Exception as e:
        logger.error(f"Failed to mark activity as deleted: {e}")


async def get_monthly_activity_count(db: AsyncSession, user: User) -> int:
    """
    Count history rows since the user's reset date.

    Starts a new period (and returns 0) once 30 days have passed.
    """
    now = utcnow()
    if (now - user.monthly_reset_date).days >= RESET_PERIOD_DAYS:
        user.monthly_reset_date = now
        return 0

    result = await db.execute(
        select(func.count(ActivityHistory.id)).where(
            ActivityHistory.user_id == user.id,
            ActivityHistory.created_at >= user.monthly_reset_date,
        )
    )
    return result.scalar() or 0


async def can_create_activity(db: AsyncSession, user: User) -> ActivityCheck:
    try:
        if user.user_type == UserType.ADMIN:
            return ActivityCheck(True, 0, 0, user.monthly_reset_date)

        limits = await get_cached_usage_limits(db, user.user_type)
        limit = limits.max_activities if limits is not None else DEFAULT_MAX_ACTIVITIES

        # 0 means unlimited
        if limit == 0:
            return ActivityCheck(True, 0, 0, user.monthly_reset_date)

        current_count = user.activity_count or 0
        return ActivityCheck(current_count < limit, current_count, limit, user.monthly_reset_date)
    except Exception as e:
        logger.error(f"Failed to check activity limit: {e}")
        return ActivityCheck(True, 0, DEFAULT_MAX_ACTIVITIES, utcnow())


def get_days_until_reset(reset_date: datetime, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    next_reset = reset_date + timedelta(days=RESET_PERIOD_DAYS)
    days_left = math.ceil((next_reset - now).total_seconds() / 86400)
    return max(0, days_left)


async def check_usage_limits(db: AsyncSession, user: User, is_followup: bool = False) -> Tuple[bool, Optional[str]]:
    """Check the shared-key generation quota. Returns ``(allowed, reason)``."""
    if user.user_type == UserType.ADMIN:
        return True, None

    try:
        limits = await get_cached_usage_limits(db, user.user_type)
    except Exception as e:
        logger.error(f"Check usage limits error: {e}")
        return False, "Failed to check usage limits"

    if limits is None:
        return False, "Usage limits not configured"

    if is_followup:
        if limits.max_followup_generations > 0 and user.followup_generation_count >= limits.max_followup_generations:
            return False, (
                f"You've reached your monthly limit of {limits.max_followup_generations} "
                f"follow-up generations. Upgrade to PLUS for more."
            )
    elif limits.max_generations > 0 and user.generation_count >= limits.max_generations:
        return False, (
            f"You've reached your monthly limit of {limits.max_generations} generations. "
            f"Upgrade to PLUS for more."
        )

    return True, None


async def _increment_counter(db: AsyncSession, user: User, counter: str) -> None:
    """
    Add one to a usage counter on the user row.

    The increment runs in SQL so concurrent requests for the same user each
    count; the in-session user is then refreshed with the stored value.
    """
    column = getattr(User, counter)
    await db.execute(
        update(User)
        .where(User.id == user.id)
        .values({counter: func.coalesce(column, 0) + 1})
        .execution_options(synchronize_session=False)
    )
    await db.refresh(user, attribute_names=[counter])


async def track_generation(
    db: AsyncSession, user: User, is_followup: bool = False, using_shared_key: bool = False
) -> None:
    """Count a generation against the quota; generations on the user's own key are free."""
    if not using_shared_key:
        logger.info(f"User {user.id} used their own API key - generation not counted towards limits")
        return

    counter = "followup_generation_count" if is_followup else "generation_count"
    await _increment_counter(db, user, counter)


async def track_activity_count(db: AsyncSession, user: User, is_followup: bool = False) -> None:
    """Increment the saved-activity counter (never for admins)."""
    if user.user_type == UserType.ADMIN:
        return

    try:
        limits = await get_cached_usage_limits(db, user.user_type)
    except Exception as e:
        logger.error(f"Track activity count error: {e}")
        return

    if not is_followup or (limits and limits.include_followups):
        await _increment_counter(db, user, "activity_count")


async def check_activity_limit(db: AsyncSession, user: User, is_followup: bool = False) -> Tuple[bool, Optional[str]]:
    if user.user_type == UserType.ADMIN:
        return True, None

    limits = await get_cached_usage_limits(db, user.user_type)
    if limits is None:
        return False, "Usage limits not configured"

    if is_followup and not limits.include_followups:
        return True, None

    if limits.max_activities > 0 and user.activity_count >= limits.max_activities:
        return False, (
            f"You've reached your monthly limit of {limits.max_activities} saved activities. "
            f"Upgrade to PLUS for more."
        )
    return True, None


async def reset_monthly_counters(db: AsyncSession) -> int:
    """Zero the counters of every user whose reset date has passed."""
    now = utcnow()
    result = await db.execute(select(User.id).where(User.monthly_reset_date <= now))
    user_ids = list(result.scalars().all())

    if user_ids:
        await db.execute(
            update(User)
            .where(User.id.in_(user_ids))
            .values(
                generation_count=0,
                activity_count=0,
                followup_generation_count=0,
                monthly_reset_date=now + timedelta(days=RESET_PERIOD_DAYS),
            )
        )

    logger.info(f"Reset monthly counters for {len(user_ids)} users")
    return len(user_ids)


async def seed_usage_limits(db: AsyncSession) -> int:
    """Create the default limit rows that are missing. Returns how many were added."""
    result = await db.execute(select(UsageLimitSettings.user_type))
    existing = set(result.scalars().all())

    created = 0
    for user_type, max_activities in DEFAULT_USAGE_LIMITS.items():
        if user_type in existing:
            continue
        db.add(UsageLimitSettings(user_type=user_type, max_activities=max_activities))
        created += 1

    if created:
        await db.flush()
    return created
