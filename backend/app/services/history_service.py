"""
Unified history of generated content.

Cover letters, LinkedIn messages and emails live in separate tables; the
history views merge them into one list sorted newest first.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_history import ActivityHistory
from app.models.cover_letter import CoverLetter
from app.models.email_message import EmailMessage
from app.models.enums import ActivityType, ApplicationStatus, parse_enum
from app.models.linkedin_message import LinkedInMessage
from app.models.user import User

logger = logging.getLogger(__name__)

TYPE_COVER_LETTER = "Cover Letter"
TYPE_LINKEDIN = "LinkedIn"
TYPE_EMAIL = "Email"

CSV_HEADER = [
    "Type",
    "Company",
    "Position",
    "Status",
    "Date",
    "Content/Subject",
    "Body (Email only)",
    "Message Type",
    "Model Used",
    "Length",
]

UNKNOWN_COMPANY = "Unknown Company"


def _wants(type_filter: Optional[str], item_type: str) -> bool:
    return not type_filter or type_filter == "ALL" or type_filter == item_type


def _status_filter(status: Optional[str]) -> Optional[ApplicationStatus]:
    if not status or status == "ALL":
        return None
    return parse_enum(ApplicationStatus, status)


def _search_clause(model, search: Optional[str], include_interests: bool):
    if not search:
        return None
    pattern = f"%{search}%"
    columns = [model.company_name, model.position_title]
    if include_interests:
        columns.append(model.areas_of_interest)
    return or_(*(column.ilike(pattern) for column in columns))


async def _parent_ids(db: AsyncSession, model, user_id: str) -> Set[str]:
    """Ids of the user's messages that have at least one follow-up."""
    result = await db.execute(
        select(model.parent_message_id).where(model.user_id == user_id, model.parent_message_id.isnot(None))
    )
    return set(result.scalars().all())


async def _fetch(db: AsyncSession, user: User, status: Optional[str], search: Optional[str], include_interests: bool):
    """Load the three content tables for ``user`` with the history filters applied."""
    status_value = _status_filter(status)

    cover_query = select(CoverLetter).where(CoverLetter.user_id == user.id)
    clause = _search_clause(CoverLetter, search, include_interests=False)
    if clause is not None:
        cover_query = cover_query.where(clause)

    message_queries = []
    for model in (LinkedInMessage, EmailMessage):
        query = select(model).where(model.user_id == user.id)
        if status_value is not None:
            query = query.where(model.status == status_value)
        clause = _search_clause(model, search, include_interests)
        if clause is not None:
            query = query.where(clause)
        message_queries.append(query.order_by(model.created_at.desc()))

    cover_letters = (await db.execute(cover_query.order_by(CoverLetter.created_at.desc()))).scalars().all()
    linkedin_messages = (await db.execute(message_queries[0])).scalars().all()
    email_messages = (await db.execute(message_queries[1])).scalars().all()
    return cover_letters, linkedin_messages, email_messages


async def get_history(
    db: AsyncSession,
    user: User,
    type_filter: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Merged history of the user's content, newest first.

    ``status`` applies to messages only; cover letters have no outreach status
    in this view.
    """
    cover_letters, linkedin_messages, email_messages = await _fetch(
        db, user, status, search, include_interests=True
    )
    linkedin_parents = await _parent_ids(db, LinkedInMessage, user.id)
    email_parents = await _parent_ids(db, EmailMessage, user.id)

    history: List[Dict[str, Any]] = []
    if _wants(type_filter, TYPE_COVER_LETTER):
        history.extend(
            {
                "id": item.id,
                "type": TYPE_COVER_LETTER,
                "company": item.company_name or "N/A",
                "position": item.position_title or "N/A",
                "createdAt": item.created_at.isoformat(),
                "content": item.content,
            }
            for item in cover_letters
        )
    if _wants(type_filter, TYPE_LINKEDIN):
        history.extend(
            {
                "id": item.id,
                "type": TYPE_LINKEDIN,
                "company": item.company_name,
                "position": item.position_title or item.company_name,
                "status": item.status.value,
                "createdAt": item.created_at.isoformat(),
                "content": item.content,
                "messageType": item.message_type.value,
                "hasFollowUp": item.id in linkedin_parents,
            }
            for item in linkedin_messages
        )
    if _wants(type_filter, TYPE_EMAIL):
        history.extend(
            {
                "id": item.id,
                "type": TYPE_EMAIL,
                "company": item.company_name,
                "position": item.position_title or item.company_name,
                "status": item.status.value,
                "createdAt": item.created_at.isoformat(),
                "subject": item.subject,
                "body": item.body,
                "messageType": item.message_type.value,
                "hasFollowUp": item.id in email_parents,
            }
            for item in email_messages
        )

    history.sort(key=lambda entry: entry["createdAt"], reverse=True)
    return history


async def export_history_csv(
    db: AsyncSession,
    user: User,
    type_filter: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> str:
    """Render the user's history as CSV, newest first."""
    cover_letters, linkedin_messages, email_messages = await _fetch(
        db, user, status, search, include_interests=False
    )

    rows = []
    for item in cover_letters:
        rows.append((item.created_at, [
            TYPE_COVER_LETTER,
            item.company_name or "",
            item.position_title or "",
            "",
            item.created_at.isoformat(),
            item.content or "",
            "",
            "",
            item.llm_model or "",
            item.length.value if item.length else "",
        ]))
    for item in linkedin_messages:
        rows.append((item.created_at, [
            TYPE_LINKEDIN,
            item.company_name,
            item.position_title or "General Inquiry",
            item.status.value,
            item.created_at.isoformat(),
            item.content,
            "",
            item.message_type.value,
            item.llm_model or "",
            item.length.value if item.length else "",
        ]))
    for item in email_messages:
        rows.append((item.created_at, [
            TYPE_EMAIL,
            item.company_name,
            item.position_title or "General Inquiry",
            item.status.value,
            item.created_at.isoformat(),
            item.subject,
            item.body,
            item.message_type.value,
            item.llm_model or "",
            item.length.value if item.length else "",
        ]))

    rows = [row for created_at, row in sorted(rows, key=lambda r: r[0], reverse=True) if _wants(type_filter, row[0])]

    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    writer.writerows(rows)
    return output.getvalue().rstrip("\n")


async def _activity_exists(db: AsyncSession, user_id: str, activity_type: ActivityType, company_name: str, created_at) -> bool:
    result = await db.execute(
        select(ActivityHistory.id)
        .where(
            ActivityHistory.user_id == user_id,
            ActivityHistory.activity_type == activity_type,
            ActivityHistory.company_name == company_name,
            ActivityHistory.created_at == created_at,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def backfill_activity_history(db: AsyncSession) -> int:
    """
    Create activity rows for stored content that has none.

    A row matches on user, activity type, company name and creation time.
    Returns the number of rows created.
    """
    backfilled = 0

    sources = [
        (CoverLetter, ActivityType.COVER_LETTER, lambda item: None, lambda item: item.status),
        (LinkedInMessage, ActivityType.LINKEDIN_MESSAGE, lambda item: item.linkedin_url, lambda item: None),
        (EmailMessage, ActivityType.EMAIL_MESSAGE, lambda item: item.recipient_email, lambda item: None),
    ]

    for model, activity_type, recipient_of, status_of in sources:
        result = await db.execute(select(model).order_by(model.created_at.asc()))
        for item in result.scalars().all():
            company_name = item.company_name or UNKNOWN_COMPANY
            if await _activity_exists(db, item.user_id, activity_type, company_name, item.created_at):
                continue

            db.add(
                ActivityHistory(
                    user_id=item.user_id,
                    activity_type=activity_type,
                    company_name=company_name,
                    position_title=item.position_title,
                    recipient=recipient_of(item),
                    status=status_of(item),
                    llm_model=item.llm_model,
                    is_deleted=False,
                    created_at=item.created_at,
                )
            )
            # later rows in this pass must see it
            await db.flush()
            backfilled += 1

    logger.info(f"Backfilled {backfilled} activity history records")
    return backfilled
