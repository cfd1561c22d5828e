"""
Notification service for AI Job Master.

Notifications are in-app only. The one notification type is the follow-up
reminder: a LinkedIn message or email saved as SENT whose status has not
changed for ``followup_reminder_days`` days. Reminders are created when the
user lists notifications rather than by a scheduler.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import utcnow
from app.models.email_message import EmailMessage
from app.models.enums import ApplicationStatus
from app.models.linkedin_message import LinkedInMessage
from app.models.notification import FOLLOW_UP_REMINDER, Notification
from app.models.user import User

logger = logging.getLogger(__name__)

NOTIFICATION_LIST_LIMIT = 50
DEFAULT_REMINDER_DAYS = 7


class NotificationService:
    """Service for listing, creating and marking in-app notifications."""

    def __init__(self, db: AsyncSession, user: User):
        self.db = db
        self.user = user

    @property
    def reminder_days(self) -> int:
        return self.user.followup_reminder_days or DEFAULT_REMINDER_DAYS

    async def _reminded_ids(self, column) -> set:
        result = await self.db.execute(
            select(column).where(
                Notification.user_id == self.user.id,
                Notification.type == FOLLOW_UP_REMINDER,
                column.isnot(None),
            )
        )
        return set(result.scalars().all())

    async def create_followup_reminders(self) -> int:
        """
        Create reminders for stale SENT messages that do not have one yet.

        A message is stale when its last update is older than the user's
        reminder window; a message that already has a follow-up child is never
        stale. Returns the number of notifications created.
        """
        cutoff = utcnow() - timedelta(days=self.reminder_days)
        created = 0

        sources = [
            (LinkedInMessage, Notification.linkedin_message_id, "linkedin_message_id", "LinkedIn message"),
            (EmailMessage, Notification.email_message_id, "email_message_id", "email"),
        ]
        for model, notification_column, field_name, label in sources:
            already_reminded = await self._reminded_ids(notification_column)
            followed_up = select(model.parent_message_id).where(
                model.user_id == self.user.id,
                model.parent_message_id.isnot(None),
            )
            result = await self.db.execute(
                select(model).where(
                    model.user_id == self.user.id,
                    model.status == ApplicationStatus.SENT,
                    model.updated_at <= cutoff,
                    model.id.notin_(followed_up),
                )
            )
            for message in result.scalars().all():
                if message.id in already_reminded:
                    continue

                position = f" for {message.position_title}" if message.position_title else ""
                self.db.add(
                    Notification(
                        user_id=self.user.id,
                        type=FOLLOW_UP_REMINDER,
                        title=f"Time to follow up with {message.company_name}",
                        message=(
                            f"Your {label} to {message.company_name}{position} was sent "
                            f"{self.reminder_days} days ago without a status change. "
                            f"Consider sending a follow-up."
                        ),
                        **{field_name: message.id},
                    )
                )
                created += 1

        if created:
            await self.db.flush()
            logger.info(f"Created {created} follow-up reminders for user {self.user.id}")
        return created

    async def _message_summaries(self, model, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not ids:
            return {}
        result = await self.db.execute(
            select(model.id, model.company_name, model.position_title).where(model.id.in_(ids))
        )
        return {
            row.id: {"id": row.id, "companyName": row.company_name, "positionTitle": row.position_title}
            for row in result.all()
        }

    async def list_notifications(self) -> List[Dict[str, Any]]:
        """Latest notifications, newest first, with a summary of the linked message."""
        try:
            await self.create_followup_reminders()
        except Exception as e:
            logger.error(f"Failed to create follow-up reminders: {e}")

        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == self.user.id)
            .order_by(Notification.created_at.desc())
            .limit(NOTIFICATION_LIST_LIMIT)
        )
        notifications = list(result.scalars().all())

        linkedin = await self._message_summaries(
            LinkedInMessage, [n.linkedin_message_id for n in notifications if n.linkedin_message_id]
        )
        emails = await self._message_summaries(
            EmailMessage, [n.email_message_id for n in notifications if n.email_message_id]
        )

        items = []
        for notification in notifications:
            data = notification.to_dict()
            data["linkedInMessage"] = linkedin.get(notification.linkedin_message_id)
            data["emailMessage"] = emails.get(notification.email_message_id)
            items.append(data)
        return items

    async def mark_as_read(self, notification_id: Optional[str] = None, mark_all: bool = False) -> None:
        if mark_all:
            await self.db.execute(
                update(Notification)
                .where(Notification.user_id == self.user.id, Notification.is_read.is_(False))
                .values(is_read=True)
            )
        elif notification_id:
            await self.db.execute(
                update(Notification)
                .where(Notification.id == notification_id, Notification.user_id == self.user.id)
                .values(is_read=True)
            )

    async def unread_count(self) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == self.user.id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar() or 0
