"""
Cover letter model.
"""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text, UniqueConstraint

from app.core.database import Base, new_uuid, utcnow
from app.models.enums import ApplicationStatus, Length


class CoverLetter(Base):
    __tablename__ = "cover_letters"
    # NULL keys never collide, so saves without the header are unaffected
    __table_args__ = (UniqueConstraint("user_id", "idempotency_key", name="uq_cover_letters_user_idempotency"),)

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    resume_id = Column(String(36), ForeignKey("resumes.id", ondelete="SET NULL"), nullable=True)

    company_name = Column(String(200), nullable=True)
    position_title = Column(String(200), nullable=True)
    job_description = Column(Text, nullable=False)
    company_description = Column(Text, nullable=True)
    content = Column(Text, nullable=False)

    length = Column(Enum(Length, name="length"), nullable=True)
    llm_model = Column(String(100), nullable=True)
    idempotency_key = Column(String(255), nullable=True)

    status = Column(
        Enum(ApplicationStatus, name="application_status"),
        default=ApplicationStatus.DRAFT,
        nullable=False,
    )

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<CoverLetter(id={self.id}, company='{self.company_name}')>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "resumeId": self.resume_id,
            "companyName": self.company_name,
            "positionTitle": self.position_title,
            "jobDescription": self.job_description,
            "companyDescription": self.company_description,
            "content": self.content,
            "length": self.length.value if self.length else None,
            "llmModel": self.llm_model,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
