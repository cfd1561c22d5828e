"""
Activity history model.

One row per generation or save. Rows are soft-deleted (``is_deleted``) so the
monthly activity count is not reduced when the underlying content is removed.
"""

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, String

from app.core.database import Base, new_uuid, utcnow
from app.models.enums import ActivityType, ApplicationStatus


class ActivityHistory(Base):
    __tablename__ = "activity_history"
    __table_args__ = (
        Index("ix_activity_history_user_created", "user_id", "created_at"),
        Index("ix_activity_history_dedupe", "user_id", "activity_type", "company_name", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    activity_type = Column(Enum(ActivityType, name="activity_type"), nullable=False)
    company_name = Column(String(200), nullable=False)
    position_title = Column(String(200), nullable=True)
    recipient = Column(String(500), nullable=True)
    status = Column(Enum(ApplicationStatus, name="application_status"), nullable=True)
    llm_model = Column(String(100), nullable=True)

    is_deleted = Column(Boolean, default=False, nullable=False)
    is_saved = Column(Boolean, default=True, nullable=False)
    is_followup = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<ActivityHistory(id={self.id}, type={self.activity_type}, company='{self.company_name}')>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "activityType": self.activity_type.value,
            "companyName": self.company_name,
            "positionTitle": self.position_title,
            "recipient": self.recipient,
            "status": self.status.value if self.status else None,
            "llmModel": self.llm_model,
            "isDeleted": self.is_deleted,
            "createdAt": self.created_at,
        }
