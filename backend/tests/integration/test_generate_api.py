"""
Integration tests for the generation API endpoints.

The provider call is patched at ``generate_content`` so no vendor is contacted.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.core.exceptions import ProviderError
from app.models.activity_history import ActivityHistory
from app.models.cover_letter import CoverLetter
from app.models.custom_prompt import CustomPrompt
from app.models.email_message import EmailMessage
from app.models.enums import ActivityType, Provider, TabType
from app.models.linkedin_message import LinkedInMessage
from app.models.resume import Resume
from app.models.shared_api_key import SharedApiKey
from app.services.llm.prompts import IMMUTABLE_SAFETY_RULE
from app.services.message_id import is_valid_message_id
from app.services.misuse_detection import DEFAULT_MISUSE_MESSAGE
from app.utils.encryption import encrypt

MISUSE_RESPONSE = '{"misuseDetected": true, "message": "MISUSE_DETECTED"}'
GENERATE_CONTENT = "app.services.generation_service.generate_content"


@pytest.fixture
async def openai_user(db_session, test_user):
    """FREE user with a stored OpenAI key."""
    test_user.set_provider_key(Provider.OPENAI, encrypt("sk-user-key"), ["gpt-4o"])
    await db_session.commit()
    return test_user


@pytest.fixture
async def shared_key(db_session):
    key = SharedApiKey(provider=Provider.OPENAI, api_key=encrypt("sk-shared-key"), models=["gpt-4o-mini"])
    db_session.add(key)
    await db_session.commit()
    return key


def _cover_letter_request(**overrides):
    body = {
        "llmModel": "gpt-4o",
        "jobDescription": "Backend engineer building Python APIs",
        "companyName": "Acme",
        "positionTitle": "Backend Engineer",
        "length": "CONCISE",
    }
    body.update(overrides)
    return body


class TestCoverLetterGeneration:
    """Tests for POST /generate/cover-letter."""

    async def test_requires_verified_email(self, async_client: AsyncClient, unverified_headers):
        response = await async_client.post(
            "/api/v1/generate/cover-letter", json=_cover_letter_request(), headers=unverified_headers
        )

        assert response.status_code == 403
        error = response.json()["error"]
        assert error["details"]["code"] == "EMAIL_NOT_VERIFIED"
        assert error["details"]["action"] == "VERIFY_EMAIL"

    async def test_generate_and_save(self, async_client: AsyncClient, db_session, openai_user, auth_headers):
        with patch(GENERATE_CONTENT, new=AsyncMock(return_value="Dear Hiring Manager,")) as mock_generate:
            response = await async_client.post(
                "/api/v1/generate/cover-letter", json=_cover_letter_request(), headers=auth_headers
            )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["content"] == "Dear Hiring Manager,"
        assert data["saved"] is True

        kwargs = mock_generate.call_args.kwargs
        assert kwargs["api_key"] == "sk-user-key"
        assert kwargs["provider"] == "openai"
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["system_prompt"].startswith(IMMUTABLE_SAFETY_RULE)
        assert "Backend engineer building Python APIs" in kwargs["user_prompt"]

        cover_letter = await db_session.get(CoverLetter, data["id"])
        assert cover_letter.company_name == "Acme"
        assert cover_letter.status.value == "DRAFT"
        assert cover_letter.length.value == "CONCISE"

        history = (await db_session.execute(select(ActivityHistory))).scalars().all()
        assert sorted(row.is_saved for row in history) == [False, True]
        # own-key generations do not use the shared quota
        assert openai_user.generation_count == 0
        assert openai_user.activity_count == 1

    async def test_generate_without_saving(self, async_client: AsyncClient, db_session, openai_user, auth_headers):
        with patch(GENERATE_CONTENT, new=AsyncMock(return_value="Letter")):
            response = await async_client.post(
                "/api/v1/generate/cover-letter",
                json=_cover_letter_request(saveToHistory=False),
                headers=auth_headers,
            )

        assert response.json() == {"success": True, "content": "Letter", "id": None, "saved": False}
        assert (await db_session.execute(select(CoverLetter))).first() is None
        assert openai_user.activity_count == 0

    async def test_uses_default_resume(self, async_client: AsyncClient, db_session, openai_user, auth_headers):
        db_session.add(Resume(user_id=openai_user.id, title="Main", content="JANE DOE RESUME", is_default=True))
        await db_session.commit()

        with patch(GENERATE_CONTENT, new=AsyncMock(return_value="Letter")) as mock_generate:
            await async_client.post("/api/v1/generate/cover-letter", json=_cover_letter_request(), headers=auth_headers)

        assert "JANE DOE RESUME" in mock_generate.call_args.kwargs["user_prompt"]

    async def test_other_users_resume_is_not_linked(
        self, async_client: AsyncClient, db_session, openai_user, plus_user, auth_headers
    ):
        own = Resume(user_id=openai_user.id, title="Mine", content="MY RESUME")
        other = Resume(user_id=plus_user.id, title="Theirs", content="SOMEONE ELSE")
        db_session.add_all([own, other])
        await db_session.commit()

        with patch(GENERATE_CONTENT, new=AsyncMock(return_value="Letter")) as mock_generate:
            foreign = await async_client.post(
                "/api/v1/generate/cover-letter", json=_cover_letter_request(resumeId=other.id), headers=auth_headers
            )
            owned = await async_client.post(
                "/api/v1/generate/cover-letter", json=_cover_letter_request(resumeId=own.id), headers=auth_headers
            )

        assert "SOMEONE ELSE" not in mock_generate.call_args_list[0].kwargs["user_prompt"]
        assert (await db_session.get(CoverLetter, foreign.json()["id"])).resume_id is None
        assert (await db_session.get(CoverLetter, owned.json()["id"])).resume_id == own.id

    async def test_custom_prompt_replaces_system_prompt(
        self, async_client: AsyncClient, db_session, openai_user, auth_headers
    ):
        db_session.add(CustomPrompt(
            user_id=openai_user.id,
            tab_type=TabType.COVER_LETTER,
            name="Cover Letter Prompt",
            content="Write a short letter for {companyName}.",
        ))
        await db_session.commit()

        with patch(GENERATE_CONTENT, new=AsyncMock(return_value="Letter")) as mock_generate:
            await async_client.post("/api/v1/generate/cover-letter", json=_cover_letter_request(), headers=auth_headers)

        assert mock_generate.call_args.kwargs["system_prompt"] == IMMUTABLE_SAFETY_RULE + "Write a short letter for Acme."

    async def test_missing_fields(self, async_client: AsyncClient, openai_user, auth_headers):
        response = await async_client.post(
            "/api/v1/generate/cover-letter", json=_cover_letter_request(jobDescription=""), headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Job description and LLM model are required"

    async def test_missing_api_key(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/generate/cover-letter", json=_cover_letter_request(), headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "OpenAI API key not configured"

    async def test_unknown_model(self, async_client: AsyncClient, openai_user, auth_headers):
        response = await async_client.post(
            "/api/v1/generate/cover-letter", json=_cover_letter_request(llmModel="llama-3"), headers=auth_headers
        )

        assert response.status_code == 400
        assert "Could not determine provider" in response.json()["error"]["message"]

    async def test_provider_failure(self, async_client: AsyncClient, openai_user, auth_headers):
        with patch(GENERATE_CONTENT, new=AsyncMock(side_effect=ProviderError("AI generation failed: timeout"))):
            response = await async_client.post(
                "/api/v1/generate/cover-letter", json=_cover_letter_request(), headers=auth_headers
            )

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Failed to generate cover letter"

    async def test_misuse_response_is_replaced(self, async_client: AsyncClient, db_session, openai_user, auth_headers):
        with patch(GENERATE_CONTENT, new=AsyncMock(return_value=MISUSE_RESPONSE)):
            response = await async_client.post(
                "/api/v1/generate/cover-letter", json=_cover_letter_request(), headers=auth_headers
            )

        assert response.json() == {"success": True, "content": DEFAULT_MISUSE_MESSAGE, "id": None, "saved": False}
        assert (await db_session.execute(select(CoverLetter))).first() is None
        assert (await db_session.execute(select(ActivityHistory))).first() is None

    async def test_activity_limit(self, async_client: AsyncClient, db_session, openai_user, auth_headers, usage_limits):
        openai_user.activity_count = 3
        await db_session.commit()

        response = await async_client.post(
            "/api/v1/generate/cover-letter", json=_cover_letter_request(), headers=auth_headers
        )

        assert response.status_code == 429
        error = response.json()["error"]
        assert error["type"] == "UsageLimitError"
        assert error["message"].startswith("Monthly activity limit reached (3/3)")
        assert error["details"]["limitReached"] is True
        assert error["details"]["limit"] == 3


class TestSharedKeyGeneration:
    """Generations on admin-provisioned keys count against the plan quota."""

    async def test_plus_user_uses_shared_key(
        self, async_client: AsyncClient, plus_user, plus_headers, shared_key, usage_limits
    ):
        with patch(GENERATE_CONTENT, new=AsyncMock(return_value="Letter")) as mock_generate:
            response = await async_client.post(
                "/api/v1/generate/cover-letter",
                json=_cover_letter_request(llmModel="shared:gpt-4o-mini"),
                headers=plus_headers,
            )

        assert response.status_code == 200
        assert mock_generate.call_args.kwargs["api_key"] == "sk-shared-key"
        assert mock_generate.call_args.kwargs["model"] == "gpt-4o-mini"
        assert plus_user.generation_count == 1

    async def test_shared_generation_quota(
        self, async_client: AsyncClient, db_session, plus_user, plus_headers, shared_key, usage_limits
    ):
        plus_user.generation_count = 100
        await db_session.commit()

        response = await async_client.post(
            "/api/v1/generate/cover-letter",
            json=_cover_letter_request(llmModel="shared:gpt-4o-mini"),
            headers=plus_headers,
        )

        assert response.status_code == 429
        assert "monthly limit of 100 generations" in response.json()["error"]["message"]

    async def test_unknown_shared_model(self, async_client: AsyncClient, plus_headers, shared_key, usage_limits):
        response = await async_client.post(
            "/api/v1/generate/cover-letter",
            json=_cover_letter_request(llmModel="shared:gpt-4o"),
            headers=plus_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Selected shared model is not available"


class TestLinkedInGeneration:
    """Tests for POST /generate/linkedin."""

    async def test_new_message(self, async_client: AsyncClient, db_session, openai_user, auth_headers):
        with patch(GENERATE_CONTENT, new=AsyncMock(return_value="Hi Sam,")):
            response = await async_client.post(
                "/api/v1/generate/linkedin",
                json={
                    "llmModel": "gpt-4o",
                    "messageType": "NEW",
                    "companyName": "Acme",
                    "recipientName": "Sam Lee",
                    "linkedinUrl": "https://www.linkedin.com/in/samlee",
                },
                headers=auth_headers,
            )

        assert response.status_code == 200
        data = response.json()
        assert data["saved"] is True
        assert is_valid_message_id(data["messageId"])
        assert data["messageId"].startswith("LNK-")

        message = await db_session.get(LinkedInMessage, data["id"])
        assert message.status.value == "SENT"
        assert message.recipient_name == "Sam Lee"

    async def test_connection_note_requires_url_and_name(self, async_client: AsyncClient, openai_user, auth_headers):
        response = await async_client.post(
            "/api/v1/generate/linkedin",
            json={"llmModel": "gpt-4o", "messageType": "CONNECTION_NOTE", "recipientName": "Sam"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == (
            "LinkedIn URL and recipient name are required for connection notes"
        )

    async def test_message_requires_company(self, async_client: AsyncClient, openai_user, auth_headers):
        response = await async_client.post(
            "/api/v1/generate/linkedin",
            json={"llmModel": "gpt-4o", "messageType": "NEW"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Company name is required"

    async def test_invalid_message_type(self, async_client: AsyncClient, openai_user, auth_headers):
        response = await async_client.post(
            "/api/v1/generate/linkedin",
            json={"llmModel": "gpt-4o", "messageType": "POKE", "companyName": "Acme"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid message type"

    async def test_follow_up_thread_rules(self, async_client: AsyncClient, db_session, openai_user, auth_headers):
        follow_up = {
            "llmModel": "gpt-4o",
            "messageType": "FOLLOW_UP",
            "companyName": "Acme",
            "linkedinUrl": "https://www.linkedin.com/in/samlee",
        }

        with patch(GENERATE_CONTENT, new=AsyncMock(return_value="Following up")) as mock_generate:
            response = await async_client.post("/api/v1/generate/linkedin", json=follow_up, headers=auth_headers)
            assert response.status_code == 400
            assert response.json()["error"]["message"] == "No initial message found. Send a NEW message first."

            initial = await async_client.post(
                "/api/v1/generate/linkedin",
                json={**follow_up, "messageType": "NEW"},
                headers=auth_headers,
            )
            initial_id = initial.json()["id"]

            mock_generate.return_value = "Just checking in"
            response = await async_client.post("/api/v1/generate/linkedin", json=follow_up, headers=auth_headers)
            assert response.status_code == 200
            assert "Following up" in mock_generate.call_args.kwargs["user_prompt"]

            response = await async_client.post("/api/v1/generate/linkedin", json=follow_up, headers=auth_headers)
            assert response.status_code == 400
            assert response.json()["error"]["message"] == (
                "Already sent 2 messages to this recipient (1 initial + 1 follow-up)"
            )

        messages = (await db_session.execute(select(LinkedInMessage))).scalars().all()
        assert {m.parent_message_id for m in messages} == {None, initial_id}

        # only the NEW message is logged as a saved activity
        saved = (await db_session.execute(
            select(ActivityHistory).where(ActivityHistory.is_saved.is_(True))
        )).scalars().all()
        assert [row.activity_type for row in saved] == [ActivityType.LINKEDIN_MESSAGE]


class TestEmailGeneration:
    """Tests for POST /generate/email."""

    async def test_generate_email(self, async_client: AsyncClient, db_session, openai_user, auth_headers):
        content = "Subject: Backend Engineer at Acme\n\nDear Sam,\n\nI would love to join Acme."
        with patch(GENERATE_CONTENT, new=AsyncMock(return_value=content)):
            response = await async_client.post(
                "/api/v1/generate/email",
                json={
                    "llmModel": "gpt-4o",
                    "messageType": "NEW",
                    "companyName": "Acme",
                    "recipientEmail": "Sam@Acme.com",
                    "positionTitle": "Backend Engineer",
                },
                headers=auth_headers,
            )

        assert response.status_code == 200
        data = response.json()
        assert data["subject"] == "Backend Engineer at Acme"
        assert data["body"] == "Dear Sam,\n\nI would love to join Acme."
        assert data["messageId"].startswith("EML-")

        email = await db_session.get(EmailMessage, data["id"])
        assert email.recipient_email == "sam@acme.com"

    async def test_missing_fields(self, async_client: AsyncClient, openai_user, auth_headers):
        response = await async_client.post(
            "/api/v1/generate/email",
            json={"llmModel": "gpt-4o", "messageType": "NEW", "companyName": "Acme"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == (
            "Recipient email, company name, message type, and LLM model are required"
        )

    async def test_invalid_recipient_email(self, async_client: AsyncClient, openai_user, auth_headers):
        response = await async_client.post(
            "/api/v1/generate/email",
            json={
                "llmModel": "gpt-4o",
                "messageType": "NEW",
                "companyName": "Acme",
                "recipientEmail": "not-an-email",
            },
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid email format"

    async def test_misuse_returns_canned_subject(self, async_client: AsyncClient, openai_user, auth_headers):
        with patch(GENERATE_CONTENT, new=AsyncMock(return_value=MISUSE_RESPONSE)):
            response = await async_client.post(
                "/api/v1/generate/email",
                json={
                    "llmModel": "gpt-4o",
                    "messageType": "NEW",
                    "companyName": "Acme",
                    "recipientEmail": "sam@acme.com",
                },
                headers=auth_headers,
            )

        data = response.json()
        assert data["subject"] == "Nice try!"
        assert data["body"] == DEFAULT_MISUSE_MESSAGE
        assert data["saved"] is False
