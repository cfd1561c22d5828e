"""
Aggregate statistics for the user dashboard, the public landing page and the
admin panel.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import utcnow
from app.models.cover_letter import CoverLetter
from app.models.email_message import EmailMessage
from app.models.enums import EmailMessageType, LinkedInMessageType
from app.models.linkedin_message import LinkedInMessage
from app.models.resume import Resume
from app.models.user import User, UserType
from app.services.tracking import (
    DEFAULT_MAX_ACTIVITIES,
    get_cached_usage_limits,
    get_days_until_reset,
    get_monthly_activity_count,
)

logger = logging.getLogger(__name__)

HOURS_SAVED_PER_ITEM = 0.33
RECENT_ACTIVITY_LIMIT = 5
PUBLIC_FALLBACK_DISPLAY = "10,000+"

CONTENT_MODELS = (CoverLetter, LinkedInMessage, EmailMessage)


async def _count(db: AsyncSession, column, *conditions) -> int:
    query = select(func.count(column))
    if conditions:
        query = query.where(*conditions)
    result = await db.execute(query)
    return result.scalar() or 0


def _word_count(text: Optional[str]) -> int:
    return len((text or "").split())


async def _recent_activity(db: AsyncSession, user: User) -> List[Dict[str, Any]]:
    """The five most recent items across all content types."""
    def latest(model):
        return (
            select(model)
            .where(model.user_id == user.id)
            .order_by(model.created_at.desc())
            .limit(RECENT_ACTIVITY_LIMIT)
        )

    cover_letters = (await db.execute(latest(CoverLetter))).scalars().all()
    linkedin_messages = (await db.execute(latest(LinkedInMessage))).scalars().all()
    email_messages = (await db.execute(latest(EmailMessage))).scalars().all()

    parent_ids = set()
    for model in (LinkedInMessage, EmailMessage):
        result = await db.execute(
            select(model.parent_message_id).where(model.user_id == user.id, model.parent_message_id.isnot(None))
        )
        parent_ids.update(result.scalars().all())

    activity = [
        {
            "id": item.id,
            "type": "Cover Letter",
            "company": item.company_name or "N/A",
            "position": item.position_title or "N/A",
            "createdAt": item.created_at,
            "wordCount": _word_count(item.content),
            "status": None,
            "messageType": None,
            "hasFollowUp": False,
            "data": None,
        }
        for item in cover_letters
    ]
    activity.extend(
        {
            "id": item.id,
            "type": "LinkedIn",
            "company": item.company_name,
            "position": item.position_title,
            "createdAt": item.created_at,
            "wordCount": _word_count(item.content),
            "status": item.status.value,
            "messageType": item.message_type.value,
            "hasFollowUp": item.id in parent_ids,
            "data": {
                "linkedinUrl": item.linkedin_url,
                "recipientName": item.recipient_name,
                "jobDescription": item.job_description,
                "companyDescription": item.company_description,
                "resumeId": item.resume_id,
                "length": item.length.value if item.length else None,
                "llmModel": item.llm_model,
            },
        }
        for item in linkedin_messages
    )
    activity.extend(
        {
            "id": item.id,
            "type": "Email",
            "company": item.company_name,
            "position": item.position_title,
            "createdAt": item.created_at,
            "wordCount": _word_count(item.body),
            "status": item.status.value,
            "messageType": item.message_type.value,
            "hasFollowUp": item.id in parent_ids,
            "data": {
                "recipientEmail": item.recipient_email,
                "recipientName": item.recipient_name,
                "subject": item.subject,
                "jobDescription": item.job_description,
                "companyDescription": item.company_description,
                "resumeId": item.resume_id,
                "length": item.length.value if item.length else None,
                "llmModel": item.llm_model,
            },
        }
        for item in email_messages
    )

    activity.sort(key=lambda entry: entry["createdAt"], reverse=True)
    return activity[:RECENT_ACTIVITY_LIMIT]


async def get_dashboard_stats(
    db: AsyncSession,
    user: User,
    include_followups: Optional[bool] = None,
) -> Dict[str, Any]:
    """
    Counts, monthly usage and recent activity for the user's dashboard.

    Follow-up messages are left out of the message counts unless
    ``include_followups`` is set, or, when it is None, unless the user's plan
    counts follow-ups toward the activity quota.
    """
    limits = await get_cached_usage_limits(db, user.user_type)
    max_activities = (limits.max_activities if limits else 0) or DEFAULT_MAX_ACTIVITIES
    if include_followups is None:
        include_followups = bool(limits and limits.include_followups)

    monthly_count = await get_monthly_activity_count(db, user)
    days_until_reset = get_days_until_reset(user.monthly_reset_date)

    cover_letter_count = await _count(db, CoverLetter.id, CoverLetter.user_id == user.id)
    linkedin_conditions = [LinkedInMessage.user_id == user.id]
    email_conditions = [EmailMessage.user_id == user.id]
    if not include_followups:
        linkedin_conditions.append(LinkedInMessage.message_type == LinkedInMessageType.NEW)
        email_conditions.append(EmailMessage.message_type == EmailMessageType.NEW)
    linkedin_count = await _count(db, LinkedInMessage.id, *linkedin_conditions)
    email_count = await _count(db, EmailMessage.id, *email_conditions)

    # initial outreach only, whatever the follow-up setting
    activity_count = (
        cover_letter_count
        + await _count(
            db,
            LinkedInMessage.id,
            LinkedInMessage.user_id == user.id,
            LinkedInMessage.message_type == LinkedInMessageType.NEW,
        )
        + await _count(
            db,
            EmailMessage.id,
            EmailMessage.user_id == user.id,
            EmailMessage.message_type == EmailMessageType.NEW,
        )
    )

    total_generated = cover_letter_count + linkedin_count + email_count
    usage_percentage = min(round(monthly_count / max_activities * 100), 100) if max_activities > 0 else 0

    return {
        "totalCoverLetters": cover_letter_count,
        "totalLinkedInMessages": linkedin_count,
        "totalEmails": email_count,
        "totalGenerated": total_generated,
        "monthlyCount": monthly_count,
        "monthlyLimit": max_activities,
        "daysUntilReset": days_until_reset,
        "hoursSaved": round(total_generated * HOURS_SAVED_PER_ITEM, 1),
        "usagePercentage": usage_percentage,
        "maxActivities": max_activities,
        "userType": user.user_type.value,
        "recentActivity": await _recent_activity(db, user),
        "generationCount": user.generation_count or 0,
        "followupGenerationCount": user.followup_generation_count or 0,
        "activityCount": activity_count,
    }


async def get_public_stats(db: AsyncSession) -> Dict[str, Any]:
    """User count for the landing page; falls back to a fixed label."""
    try:
        total_users = await _count(db, User.id)
    except Exception as e:
        logger.error(f"Public stats error: {e}")
        return {"totalUsers": 0, "displayCount": PUBLIC_FALLBACK_DISPLAY}

    display = f"{total_users:,}+" if total_users > 0 else PUBLIC_FALLBACK_DISPLAY
    return {"totalUsers": total_users, "displayCount": display}


async def get_platform_stats(db: AsyncSession) -> Dict[str, Any]:
    """Platform-wide user, content and API key counts."""
    cover_letters = await _count(db, CoverLetter.id)
    linkedin_messages = await _count(db, LinkedInMessage.id)
    email_messages = await _count(db, EmailMessage.id)

    return {
        "users": {
            "total": await _count(db, User.id),
            "free": await _count(db, User.id, User.user_type == UserType.FREE),
            "plus": await _count(db, User.id, User.user_type == UserType.PLUS),
            "admin": await _count(db, User.id, User.user_type == UserType.ADMIN),
        },
        "content": {
            "resumes": await _count(db, Resume.id),
            "coverLetters": cover_letters,
            "linkedInMessages": linkedin_messages,
            "emailMessages": email_messages,
            "totalGenerated": cover_letters + linkedin_messages + email_messages,
        },
        "apiKeys": await _api_key_adoption(db),
    }


async def _api_key_adoption(db: AsyncSession) -> Dict[str, int]:
    return {
        "openai": await _count(db, User.id, User.openai_api_key.isnot(None)),
        "anthropic": await _count(db, User.id, User.anthropic_api_key.isnot(None)),
        "gemini": await _count(db, User.id, User.gemini_api_key.isnot(None)),
    }


async def _content_counts_by_user(db: AsyncSession, user_ids: Optional[List[str]] = None) -> Dict[str, Dict[str, int]]:
    """Per-user row counts for resumes and each content table."""
    counts: Dict[str, Dict[str, int]] = {}
    tables = {
        "resumes": Resume,
        "coverLetters": CoverLetter,
        "linkedinMessages": LinkedInMessage,
        "emailMessages": EmailMessage,
    }
    for key, model in tables.items():
        query = select(model.user_id, func.count(model.id)).group_by(model.user_id)
        if user_ids is not None:
            query = query.where(model.user_id.in_(user_ids))
        for user_id, count in (await db.execute(query)).all():
            counts.setdefault(user_id, {})[key] = count
    return counts


def _user_content_stats(counts: Dict[str, int]) -> Dict[str, int]:
    stats = {
        "resumes": counts.get("resumes", 0),
        "coverLetters": counts.get("coverLetters", 0),
        "linkedinMessages": counts.get("linkedinMessages", 0),
        "emailMessages": counts.get("emailMessages", 0),
    }
    stats["totalMessages"] = stats["coverLetters"] + stats["linkedinMessages"] + stats["emailMessages"]
    return stats


async def summarize_users(db: AsyncSession, users: List[User]) -> List[Dict[str, Any]]:
    """Admin list entries: key flags and content counts, never the keys."""
    counts = await _content_counts_by_user(db, [user.id for user in users])
    return [
        {
            "id": user.id,
            "email": user.email,
            "userType": user.user_type.value,
            "createdAt": user.created_at,
            "updatedAt": user.updated_at,
            "hasOpenaiKey": bool(user.openai_api_key),
            "hasAnthropicKey": bool(user.anthropic_api_key),
            "hasGeminiKey": bool(user.gemini_api_key),
            "stats": _user_content_stats(counts.get(user.id, {})),
        }
        for user in users
    ]


async def get_admin_dashboard(db: AsyncSession) -> Dict[str, Any]:
    """Platform stats plus the five newest users with their content counts."""
    result = await db.execute(select(User).order_by(User.created_at.desc()).limit(5))
    recent_users = list(result.scalars().all())

    return {
        "stats": await get_platform_stats(db),
        "recentUsers": await summarize_users(db, recent_users),
    }


async def get_user_activity(db: AsyncSession, user: User) -> Dict[str, Any]:
    """Everything one user has generated, for the admin user detail view."""
    def owned(model):
        return select(model).where(model.user_id == user.id).order_by(model.created_at.desc())

    cover_letters = (await db.execute(owned(CoverLetter))).scalars().all()
    linkedin_messages = (await db.execute(owned(LinkedInMessage))).scalars().all()
    email_messages = (await db.execute(owned(EmailMessage))).scalars().all()
    resumes = (await db.execute(owned(Resume))).scalars().all()

    def entry(item, item_type: str, title: str) -> Dict[str, Any]:
        return {
            "id": item.id,
            "type": item_type,
            "title": title,
            "companyName": item.company_name,
            "positionTitle": item.position_title,
            "messageType": item.message_type.value if hasattr(item, "message_type") else None,
            "status": item.status.value,
            "llmModel": item.llm_model,
            "createdAt": item.created_at,
        }

    def default_title(item) -> str:
        return f"{item.position_title or 'General'} at {item.company_name}"

    activities = [entry(item, "Cover Letter", default_title(item)) for item in cover_letters]
    activities.extend(entry(item, "LinkedIn", default_title(item)) for item in linkedin_messages)
    activities.extend(entry(item, "Email", item.subject or default_title(item)) for item in email_messages)
    activities.sort(key=lambda activity: activity["createdAt"], reverse=True)

    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "userType": user.user_type.value,
            "createdAt": user.created_at,
            "updatedAt": user.updated_at,
        },
        "activities": activities,
        "resumes": [resume.to_dict(include_content=False) for resume in resumes],
        "stats": {
            "coverLetters": len(cover_letters),
            "linkedInMessages": len(linkedin_messages),
            "emailMessages": len(email_messages),
            "totalContent": len(cover_letters) + len(linkedin_messages) + len(email_messages),
            "resumes": len(resumes),
        },
    }


async def _status_distribution(db: AsyncSession, model) -> List[Dict[str, Any]]:
    result = await db.execute(select(model.status, func.count(model.id)).group_by(model.status))
    return [{"status": status.value, "count": count} for status, count in result.all()]


async def get_analytics(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Growth, content volume, daily activity and distribution figures."""
    now = now or utcnow()
    last_30_days = now - timedelta(days=30)
    last_7_days = now - timedelta(days=7)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    totals = {}
    recent = {}
    daily = Counter()
    for key, model in zip(("coverLetters", "linkedInMessages", "emailMessages"), CONTENT_MODELS):
        totals[key] = await _count(db, model.id)
        result = await db.execute(select(model.created_at).where(model.created_at >= last_30_days))
        created = list(result.scalars().all())
        recent[key] = len(created)
        daily.update(timestamp.date() for timestamp in created)
    totals["all"] = sum(totals.values())
    recent["all"] = sum(recent.values())

    result = await db.execute(select(User.user_type, func.count(User.id)).group_by(User.user_type))
    user_type_distribution = [{"userType": user_type.value, "count": count} for user_type, count in result.all()]

    result = await db.execute(select(User.id, User.email, User.user_type))
    users = result.all()
    counts = await _content_counts_by_user(db)
    most_active = sorted(
        (
            {
                "id": row.id,
                "email": row.email,
                "userType": row.user_type.value,
                "totalContent": _user_content_stats(counts.get(row.id, {}))["totalMessages"],
            }
            for row in users
        ),
        key=lambda entry: entry["totalContent"],
        reverse=True,
    )[:10]

    return {
        "userGrowth": {
            "total": await _count(db, User.id),
            "last30Days": await _count(db, User.id, User.created_at >= last_30_days),
            "last7Days": await _count(db, User.id, User.created_at >= last_7_days),
            "today": await _count(db, User.id, User.created_at >= today),
        },
        "contentGeneration": {"total": totals, "last30Days": recent},
        "dailyStats": [{"date": day.isoformat(), "count": count} for day, count in sorted(daily.items())],
        "userTypeDistribution": user_type_distribution,
        "mostActiveUsers": most_active,
        "apiKeyAdoption": await _api_key_adoption(db),
        "statusDistribution": {
            "email": await _status_distribution(db, EmailMessage),
            "linkedIn": await _status_distribution(db, LinkedInMessage),
        },
    }
