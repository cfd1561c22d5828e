"""
LinkedIn message model.

A FOLLOW_UP message points at the message it follows through
``parent_message_id``; at most two messages are kept per recipient URL.
"""

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, Text, UniqueConstraint

from app.core.database import Base, new_uuid, utcnow
from app.models.enums import ApplicationStatus, Length, LinkedInMessageType


class LinkedInMessage(Base):
    __tablename__ = "linkedin_messages"
    __table_args__ = (UniqueConstraint("user_id", "idempotency_key", name="uq_linkedin_messages_user_idempotency"),)

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    resume_id = Column(String(36), ForeignKey("resumes.id", ondelete="SET NULL"), nullable=True)
    parent_message_id = Column(
        String(36), ForeignKey("linkedin_messages.id", ondelete="SET NULL"), nullable=True, index=True
    )
    message_id = Column(String(20), nullable=True, index=True)

    message_type = Column(Enum(LinkedInMessageType, name="linkedin_message_type"), nullable=False)
    linkedin_url = Column(String(500), nullable=True, index=True)
    recipient_name = Column(String(200), nullable=True)
    recipient_position = Column(String(200), nullable=True)
    position_title = Column(String(200), nullable=True)
    areas_of_interest = Column(Text, nullable=True)
    company_name = Column(String(200), nullable=False)
    job_description = Column(Text, nullable=True)
    company_description = Column(Text, nullable=True)
    content = Column(Text, nullable=False)

    length = Column(Enum(Length, name="length"), nullable=True)
    llm_model = Column(String(100), nullable=True)
    idempotency_key = Column(String(255), nullable=True)

    status = Column(
        Enum(ApplicationStatus, name="application_status"),
        default=ApplicationStatus.SENT,
        nullable=False,
    )
    request_referral = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<LinkedInMessage(id={self.id}, type={self.message_type}, company='{self.company_name}')>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "resumeId": self.resume_id,
            "parentMessageId": self.parent_message_id,
            "messageId": self.message_id,
            "messageType": self.message_type.value,
            "linkedinUrl": self.linkedin_url,
            "recipientName": self.recipient_name,
            "recipientPosition": self.recipient_position,
            "positionTitle": self.position_title,
            "areasOfInterest": self.areas_of_interest,
            "companyName": self.company_name,
            "jobDescription": self.job_description,
            "companyDescription": self.company_description,
            "content": self.content,
            "length": self.length.value if self.length else None,
            "llmModel": self.llm_model,
            "status": self.status.value,
            "requestReferral": self.request_referral,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
