"""
Request schemas for the generate and save endpoints.

Enum-valued fields arrive as plain strings and are parsed in the service layer,
where an unknown value falls back to a default instead of failing the request.
Required-field checks also happen there so the error messages stay specific.
"""

from typing import Any, Dict, Optional

from pydantic import Field

from app.schemas.common import CamelModel


class _GenerationBase(CamelModel):
    llm_model: Optional[str] = Field(None, description="Model id; 'shared:' prefix selects a shared key")
    resume_id: Optional[str] = None
    length: Optional[str] = Field(None, description="CONCISE, MEDIUM or LONG")
    company_name: Optional[str] = None
    position_title: Optional[str] = None
    job_description: Optional[str] = None
    company_description: Optional[str] = None
    save_to_history: bool = True

    def sanitizable_fields(self) -> Dict[str, Any]:
        """Free-text fields keyed by their wire names."""
        return self.model_dump(by_alias=True)


class CoverLetterGenerateRequest(_GenerationBase):
    pass


class LinkedInGenerateRequest(_GenerationBase):
    message_type: Optional[str] = Field(None, description="NEW, FOLLOW_UP or CONNECTION_NOTE")
    linkedin_url: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_position: Optional[str] = None
    areas_of_interest: Optional[str] = None
    parent_message_id: Optional[str] = None
    extra_content: Optional[str] = None
    request_referral: bool = False
    resume_attachment: bool = False
    simple_format: bool = False
    status: Optional[str] = None


class EmailGenerateRequest(_GenerationBase):
    message_type: Optional[str] = Field(None, description="NEW or FOLLOW_UP")
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    areas_of_interest: Optional[str] = None
    parent_message_id: Optional[str] = None
    extra_content: Optional[str] = None
    request_referral: bool = False
    resume_attachment: bool = False
    status: Optional[str] = None


class CoverLetterSaveRequest(CamelModel):
    content: Optional[str] = None
    job_description: Optional[str] = None
    company_name: Optional[str] = None
    position_title: Optional[str] = None
    company_description: Optional[str] = None
    resume_id: Optional[str] = None
    length: Optional[str] = None
    llm_model: Optional[str] = None
    status: Optional[str] = None


class LinkedInSaveRequest(CamelModel):
    content: Optional[str] = None
    message_type: Optional[str] = None
    company_name: Optional[str] = None
    linkedin_url: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_position: Optional[str] = None
    position_title: Optional[str] = None
    areas_of_interest: Optional[str] = None
    job_description: Optional[str] = None
    company_description: Optional[str] = None
    resume_id: Optional[str] = None
    parent_message_id: Optional[str] = None
    length: Optional[str] = None
    llm_model: Optional[str] = None
    status: Optional[str] = None
    request_referral: bool = False


class EmailSaveRequest(CamelModel):
    subject: Optional[str] = None
    body: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    company_name: Optional[str] = None
    message_type: Optional[str] = None
    position_title: Optional[str] = None
    areas_of_interest: Optional[str] = None
    job_description: Optional[str] = None
    company_description: Optional[str] = None
    resume_id: Optional[str] = None
    parent_message_id: Optional[str] = None
    length: Optional[str] = None
    llm_model: Optional[str] = None
    status: Optional[str] = None
    request_referral: bool = False
