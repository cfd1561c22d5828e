"""
In-app notifications (follow-up reminders for sent messages).
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from app.core.database import Base, new_uuid, utcnow

FOLLOW_UP_REMINDER = "FOLLOW_UP_REMINDER"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False, default=FOLLOW_UP_REMINDER)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False, index=True)

    linkedin_message_id = Column(
        String(36), ForeignKey("linkedin_messages.id", ondelete="CASCADE"), nullable=True
    )
    email_message_id = Column(
        String(36), ForeignKey("email_messages.id", ondelete="CASCADE"), nullable=True
    )

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}', read={self.is_read})>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "isRead": self.is_read,
            "linkedInMessageId": self.linkedin_message_id,
            "emailMessageId": self.email_message_id,
            "createdAt": self.created_at,
        }
