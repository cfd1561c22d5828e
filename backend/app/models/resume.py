"""
Resume model. Stores the text extracted from an uploaded PDF or DOCX.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from app.core.database import Base, new_uuid, utcnow


class Resume(Base):
    __tablename__ = "resumes"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    file_name = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Resume(id={self.id}, title='{self.title}', is_default={self.is_default})>"

    def to_dict(self, include_content: bool = True) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "isDefault": self.is_default,
            "createdAt": self.created_at,
        }
        if include_content:
            data["content"] = self.content
        return data
