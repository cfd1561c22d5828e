"""
User-defined prompt templates, one per generator tab.
"""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text, UniqueConstraint

from app.core.database import Base, new_uuid, utcnow
from app.models.enums import TabType

PROMPT_NAMES = {
    TabType.COVER_LETTER: "Cover Letter Prompt",
    TabType.LINKEDIN: "LinkedIn Prompt",
    TabType.EMAIL: "Email Prompt",
}


class CustomPrompt(Base):
    __tablename__ = "custom_prompts"
    __table_args__ = (UniqueConstraint("user_id", "tab_type", name="uq_custom_prompt_user_tab"),)

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tab_type = Column(Enum(TabType, name="tab_type"), nullable=False)
    name = Column(String(100), nullable=False)
    content = Column(Text, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<CustomPrompt(user_id={self.user_id}, tab={self.tab_type})>"
