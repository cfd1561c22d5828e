"""
Generation service for AI Job Master.

Turns a generate request into a prompt, calls the selected LLM provider and,
when asked to, stores the result as an activity.

Flow shared by the three content types:
- resolve the API key (user key or admin-provisioned shared key)
- enforce the shared-key generation quota
- build the prompt, preferring the user's custom prompt for the tab
- call the provider and short-circuit on a misuse response
- count the generation and optionally persist the content
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import UsageLimitError
from app.core.logging import security_logger
from app.models.cover_letter import CoverLetter
from app.models.custom_prompt import CustomPrompt
from app.models.email_message import EmailMessage
from app.models.enums import (
    ActivityType,
    ApplicationStatus,
    EmailMessageType,
    Length,
    LinkedInMessageType,
    TabType,
    parse_enum,
)
from app.models.linkedin_message import LinkedInMessage
from app.models.resume import Resume
from app.models.user import User
from app.schemas.generation import (
    CoverLetterGenerateRequest,
    EmailGenerateRequest,
    LinkedInGenerateRequest,
)
from app.services.api_key_service import SHARED_MODEL_PREFIX, ResolvedKey, resolve_api_key
from app.services.llm.prompts import (
    IMMUTABLE_SAFETY_RULE,
    PromptParams,
    build_custom_prompt,
    get_cover_letter_prompt,
    get_email_prompt,
    get_linkedin_prompt,
)
from app.services.llm.providers import generate_content
from app.services.message_id import generate_message_id
from app.services.misuse_detection import detect_misuse, get_misuse_message
from app.services.tracking import (
    can_create_activity,
    check_usage_limits,
    get_days_until_reset,
    track_activity,
    track_activity_count,
    track_generation,
    track_generation_history,
)
from app.utils.sanitization import sanitize_api_inputs

settings = get_settings()

logger = logging.getLogger(__name__)

MAX_MESSAGES_PER_RECIPIENT = 2
MISUSE_EMAIL_SUBJECT = "Nice try!"

_SUBJECT_PREFIX_RE = re.compile(r"^subject:\s*", re.IGNORECASE)
_LEADING_SUBJECT_RE = re.compile(r"^subject:\s*.+\n*", re.IGNORECASE)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def parse_email_content(content: str, position_title: Optional[str], company_name: str) -> Tuple[str, str]:
    """
    Split a generated email into ``(subject, body)``.

    The model is asked to start with a ``Subject:`` line. When that line is
    missing, the subject is derived from the position and company.
    """
    lines = content.split("\n")
    subject = ""
    body = ""

    subject_index = next((i for i, line in enumerate(lines) if line.lower().startswith("subject:")), None)
    if subject_index is not None:
        subject = _SUBJECT_PREFIX_RE.sub("", lines[subject_index]).strip()
        rest = lines[subject_index + 1:]
        if rest and (rest[0].lower().startswith("body:") or rest[0].strip() == ""):
            rest = rest[1:]
        body = "\n".join(rest).strip()

    if not subject or not body:
        body = _LEADING_SUBJECT_RE.sub("", content, count=1).strip() or content
        if not subject:
            subject = (
                f"Application for {position_title} at {company_name}"
                if position_title
                else f"Inquiry about opportunities at {company_name}"
            )

    return subject, body


class GenerationService:
    """Generates cover letters, LinkedIn messages and emails for one user."""

    def __init__(self, db: AsyncSession, user: User):
        self.db = db
        self.user = user

    async def _resolve_key(self, llm_model: str, is_followup: bool) -> ResolvedKey:
        resolved = await resolve_api_key(self.db, self.user, llm_model)
        if resolved.using_shared_key:
            await self._check_generation_quota(is_followup)
        return resolved

    async def _check_generation_quota(self, is_followup: bool) -> None:
        allowed, reason = await check_usage_limits(self.db, self.user, is_followup)
        if not allowed:
            raise UsageLimitError(reason, {"limitReached": True})

    async def _load_resume(self, resume_id: Optional[str]) -> Optional[Resume]:
        """The requested resume, or the default one when none is given; only the user's own."""
        query = select(Resume).where(Resume.user_id == self.user.id)
        if resume_id:
            query = query.where(Resume.id == resume_id)
        else:
            query = query.where(Resume.is_default.is_(True))
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def _build_prompt(self, tab_type: TabType, params: PromptParams, default_builder) -> Tuple[str, str]:
        """Use the stored custom prompt for the tab as the system prompt when one exists."""
        system_prompt, user_prompt = default_builder(params)

        result = await self.db.execute(
            select(CustomPrompt.content).where(
                CustomPrompt.user_id == self.user.id,
                CustomPrompt.tab_type == tab_type,
            )
        )
        template = result.scalar_one_or_none()
        if template and template.strip():
            system_prompt = IMMUTABLE_SAFETY_RULE + build_custom_prompt(template, params)

        return system_prompt, user_prompt

    async def _generate(self, resolved: ResolvedKey, prompts: Tuple[str, str], max_tokens: int) -> str:
        system_prompt, user_prompt = prompts
        return await generate_content(
            provider=resolved.provider,
            api_key=resolved.api_key,
            model=resolved.actual_model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            max_tokens=max_tokens,
        )

    async def _misuse_message(self, activity_type: ActivityType) -> str:
        security_logger.log_suspicious_activity(
            activity_type="prompt_misuse",
            details={"content_type": activity_type.value},
            user_id=self.user.id,
        )
        return await get_misuse_message(self.db)

    async def generate_cover_letter(self, request: CoverLetterGenerateRequest) -> Dict[str, Any]:
        """
        Generate a cover letter.

        Returns:
            ``{success, content, id, saved}``

        Raises:
            HTTPException: Missing fields
            UsageLimitError: Generation quota or monthly activity limit reached
            ServiceError: Key resolution or provider failure
        """
        fields = sanitize_api_inputs(request.sanitizable_fields())
        job_description = fields["jobDescription"]
        company_name = fields["companyName"]
        position_title = fields["positionTitle"]
        company_description = fields["companyDescription"]

        if not job_description or not request.llm_model:
            raise _bad_request("Job description and LLM model are required")

        if request.llm_model.startswith(SHARED_MODEL_PREFIX):
            await self._check_generation_quota(is_followup=False)

        activity_check = await can_create_activity(self.db, self.user)
        if not activity_check.allowed:
            days_left = get_days_until_reset(activity_check.reset_date)
            raise UsageLimitError(
                f"Monthly activity limit reached ({activity_check.current_count}/{activity_check.limit}). "
                f"Resets in {days_left} days.",
                {
                    "limitReached": True,
                    "currentCount": activity_check.current_count,
                    "limit": activity_check.limit,
                    "daysUntilReset": days_left,
                },
            )

        resolved = await resolve_api_key(self.db, self.user, request.llm_model)
        length = parse_enum(Length, request.length, Length.MEDIUM)

        resume = await self._load_resume(request.resume_id)
        # a resume id is stored only when it names one of the user's resumes
        resume_id = resume.id if resume is not None and request.resume_id else None
        params = PromptParams(
            length=length,
            resume_content=resume.content if resume is not None else None,
            resume_link=self.user.resume_link,
            job_description=job_description,
            company_description=company_description,
            company_name=company_name,
            position_title=position_title,
        )
        prompts = await self._build_prompt(TabType.COVER_LETTER, params, get_cover_letter_prompt)
        content = await self._generate(resolved, prompts, settings.cover_letter_max_tokens)

        if detect_misuse(content):
            return {
                "success": True,
                "content": await self._misuse_message(ActivityType.COVER_LETTER),
                "id": None,
                "saved": False,
            }

        await track_generation(self.db, self.user, is_followup=False, using_shared_key=resolved.using_shared_key)
        track_generation_history(
            self.db,
            user_id=self.user.id,
            activity_type=ActivityType.COVER_LETTER,
            company_name=company_name or "Unknown Company",
            position_title=position_title,
            recipient=None,
            llm_model=resolved.actual_model,
            is_saved=False,
            is_followup=False,
        )

        cover_letter_id = None
        if request.save_to_history:
            cover_letter = CoverLetter(
                user_id=self.user.id,
                resume_id=resume_id,
                company_name=company_name,
                position_title=position_title,
                job_description=job_description,
                company_description=company_description,
                content=content,
                length=length,
                llm_model=resolved.actual_model,
            )
            self.db.add(cover_letter)
            await self.db.flush()
            cover_letter_id = cover_letter.id

            await track_activity_count(self.db, self.user, is_followup=False)
            track_activity(
                self.db,
                user_id=self.user.id,
                activity_type=ActivityType.COVER_LETTER,
                company_name=company_name or "Unknown Company",
                position_title=position_title,
                status=cover_letter.status or ApplicationStatus.DRAFT,
                llm_model=resolved.actual_model,
            )

        logger.info(f"Generated cover letter for user {self.user.id} (saved={cover_letter_id is not None})")
        return {"success": True, "content": content, "id": cover_letter_id, "saved": cover_letter_id is not None}

    async def _linkedin_thread(self, linkedin_url: str) -> list:
        result = await self.db.execute(
            select(LinkedInMessage)
            .where(LinkedInMessage.user_id == self.user.id, LinkedInMessage.linkedin_url == linkedin_url)
            .order_by(LinkedInMessage.created_at.asc())
        )
        return list(result.scalars().all())

    async def generate_linkedin_message(self, request: LinkedInGenerateRequest) -> Dict[str, Any]:
        """
        Generate a LinkedIn message.

        Returns:
            ``{success, content, id, messageId, saved}``
        """
        fields = sanitize_api_inputs(request.sanitizable_fields())
        message_type = parse_enum(LinkedInMessageType, request.message_type)

        if not request.llm_model or not request.message_type:
            raise _bad_request("Message type and LLM model are required")
        if message_type is None:
            raise _bad_request("Invalid message type")

        linkedin_url = fields["linkedinUrl"]
        recipient_name = fields["recipientName"]
        company_name = fields["companyName"]
        position_title = fields["positionTitle"]

        if message_type == LinkedInMessageType.CONNECTION_NOTE:
            if not linkedin_url or not recipient_name:
                raise _bad_request("LinkedIn URL and recipient name are required for connection notes")
        elif not company_name:
            raise _bad_request("Company name is required")

        is_followup = message_type == LinkedInMessageType.FOLLOW_UP
        parent_message_id = request.parent_message_id

        if is_followup and linkedin_url:
            thread = await self._linkedin_thread(linkedin_url)
            if not thread:
                raise _bad_request("No initial message found. Send a NEW message first.")
            if len(thread) >= MAX_MESSAGES_PER_RECIPIENT:
                raise _bad_request("Already sent 2 messages to this recipient (1 initial + 1 follow-up)")
            if not parent_message_id:
                parent_message_id = thread[-1].id

        resolved = await self._resolve_key(request.llm_model, is_followup)
        length = parse_enum(Length, request.length, Length.MEDIUM)

        previous_message = None
        if is_followup and parent_message_id:
            result = await self.db.execute(
                select(LinkedInMessage.content).where(
                    LinkedInMessage.id == parent_message_id,
                    LinkedInMessage.user_id == self.user.id,
                )
            )
            previous_message = result.scalar_one_or_none()

        resume = await self._load_resume(request.resume_id)
        resume_id = resume.id if resume is not None and request.resume_id else None
        params = PromptParams(
            length=length,
            resume_content=resume.content if resume is not None else None,
            resume_link=self.user.resume_link,
            job_description=fields["jobDescription"],
            company_description=fields["companyDescription"],
            recipient_name=recipient_name,
            recipient_position=fields["recipientPosition"],
            position_title=position_title,
            areas_of_interest=fields["areasOfInterest"],
            company_name=company_name,
            previous_message=previous_message,
            extra_content=fields["extraContent"],
            message_type=message_type.value,
            request_referral=request.request_referral,
            resume_attachment=request.resume_attachment,
            simple_format=request.simple_format,
        )
        prompts = await self._build_prompt(TabType.LINKEDIN, params, get_linkedin_prompt)
        content = await self._generate(resolved, prompts, settings.linkedin_max_tokens)

        if detect_misuse(content):
            return {
                "success": True,
                "content": await self._misuse_message(ActivityType.LINKEDIN_MESSAGE),
                "id": None,
                "messageId": None,
                "saved": False,
            }

        await track_generation(self.db, self.user, is_followup=is_followup, using_shared_key=resolved.using_shared_key)
        track_generation_history(
            self.db,
            user_id=self.user.id,
            activity_type=ActivityType.LINKEDIN_MESSAGE,
            company_name=company_name or "Unknown Company",
            position_title=position_title,
            recipient=recipient_name,
            llm_model=resolved.actual_model,
            is_saved=False,
            is_followup=is_followup,
        )

        linkedin_message_id = None
        message_id = None
        if request.save_to_history:
            message_id = generate_message_id("linkedin")
            message_status = parse_enum(ApplicationStatus, request.status, ApplicationStatus.SENT)
            message = LinkedInMessage(
                user_id=self.user.id,
                resume_id=resume_id,
                parent_message_id=parent_message_id,
                message_id=message_id,
                message_type=message_type,
                linkedin_url=linkedin_url,
                recipient_name=recipient_name,
                recipient_position=fields["recipientPosition"],
                position_title=position_title,
                areas_of_interest=fields["areasOfInterest"],
                company_name=company_name or "Unknown",
                job_description=fields["jobDescription"],
                company_description=fields["companyDescription"],
                content=content,
                length=length,
                llm_model=resolved.actual_model,
                status=message_status,
                request_referral=request.request_referral,
            )
            self.db.add(message)
            await self.db.flush()
            linkedin_message_id = message.id

            await track_activity_count(self.db, self.user, is_followup=is_followup)
            if message_type == LinkedInMessageType.NEW:
                track_activity(
                    self.db,
                    user_id=self.user.id,
                    activity_type=ActivityType.LINKEDIN_MESSAGE,
                    company_name=message.company_name,
                    position_title=position_title,
                    recipient=recipient_name,
                    status=message_status,
                    llm_model=resolved.actual_model,
                )

        return {
            "success": True,
            "content": content,
            "id": linkedin_message_id,
            "messageId": message_id,
            "saved": linkedin_message_id is not None,
        }

    async def generate_email(self, request: EmailGenerateRequest) -> Dict[str, Any]:
        """
        Generate an email and split it into subject and body.

        Returns:
            ``{success, subject, body, id, messageId, saved}``
        """
        fields = sanitize_api_inputs(request.sanitizable_fields())
        recipient_email = fields["recipientEmail"]
        company_name = fields["companyName"]
        position_title = fields["positionTitle"]
        message_type = parse_enum(EmailMessageType, request.message_type)

        if not recipient_email or not company_name or not request.message_type or not request.llm_model:
            raise _bad_request("Recipient email, company name, message type, and LLM model are required")
        if message_type is None:
            raise _bad_request("Invalid message type")

        is_followup = message_type == EmailMessageType.FOLLOW_UP
        resolved = await self._resolve_key(request.llm_model, is_followup)
        length = parse_enum(Length, request.length, Length.MEDIUM)

        previous_message = None
        if is_followup and request.parent_message_id:
            result = await self.db.execute(
                select(EmailMessage).where(
                    EmailMessage.id == request.parent_message_id,
                    EmailMessage.user_id == self.user.id,
                )
            )
            parent = result.scalar_one_or_none()
            if parent is not None:
                previous_message = f"Subject: {parent.subject}\n\n{parent.body}"

        resume = await self._load_resume(request.resume_id)
        resume_id = resume.id if resume is not None and request.resume_id else None
        params = PromptParams(
            length=length,
            resume_content=resume.content if resume is not None else None,
            resume_link=self.user.resume_link,
            job_description=fields["jobDescription"],
            company_description=fields["companyDescription"],
            recipient_name=fields["recipientName"],
            position_title=position_title,
            areas_of_interest=fields["areasOfInterest"],
            company_name=company_name,
            previous_message=previous_message,
            extra_content=fields["extraContent"],
            message_type=message_type.value,
            request_referral=request.request_referral,
            resume_attachment=request.resume_attachment,
        )
        prompts = await self._build_prompt(TabType.EMAIL, params, get_email_prompt)
        content = await self._generate(resolved, prompts, settings.email_max_tokens)

        if detect_misuse(content):
            return {
                "success": True,
                "subject": MISUSE_EMAIL_SUBJECT,
                "body": await self._misuse_message(ActivityType.EMAIL_MESSAGE),
                "id": None,
                "messageId": None,
                "saved": False,
            }

        await track_generation(self.db, self.user, is_followup=is_followup, using_shared_key=resolved.using_shared_key)
        track_generation_history(
            self.db,
            user_id=self.user.id,
            activity_type=ActivityType.EMAIL_MESSAGE,
            company_name=company_name,
            position_title=position_title,
            recipient=recipient_email,
            llm_model=resolved.actual_model,
            is_saved=False,
            is_followup=is_followup,
        )

        subject, body = parse_email_content(content, position_title, company_name)

        email_message_id = None
        message_id = None
        if request.save_to_history:
            message_id = generate_message_id("email")
            message_status = parse_enum(ApplicationStatus, request.status, ApplicationStatus.SENT)
            email = EmailMessage(
                user_id=self.user.id,
                resume_id=resume_id,
                parent_message_id=request.parent_message_id,
                message_id=message_id,
                message_type=message_type,
                recipient_email=recipient_email,
                recipient_name=fields["recipientName"],
                position_title=position_title,
                areas_of_interest=fields["areasOfInterest"],
                company_name=company_name,
                job_description=fields["jobDescription"],
                company_description=fields["companyDescription"],
                subject=subject,
                body=body,
                length=length,
                llm_model=resolved.actual_model,
                status=message_status,
                request_referral=request.request_referral,
            )
            self.db.add(email)
            await self.db.flush()
            email_message_id = email.id

            await track_activity_count(self.db, self.user, is_followup=is_followup)
            if message_type == EmailMessageType.NEW:
                track_activity(
                    self.db,
                    user_id=self.user.id,
                    activity_type=ActivityType.EMAIL_MESSAGE,
                    company_name=company_name,
                    position_title=position_title,
                    recipient=recipient_email,
                    status=message_status,
                    llm_model=resolved.actual_model,
                )

        return {
            "success": True,
            "subject": subject,
            "body": body,
            "id": email_message_id,
            "messageId": message_id,
            "saved": email_message_id is not None,
        }
