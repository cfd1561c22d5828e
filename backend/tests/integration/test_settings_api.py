"""
Integration tests for the settings endpoints: API keys, models, resumes,
preferences, custom prompts and password changes.
"""

import io
from unittest.mock import AsyncMock, patch

from docx import Document
from httpx import AsyncClient
from sqlalchemy import select

from app.core.security import verify_password
from app.models.custom_prompt import CustomPrompt
from app.models.enums import Length, Provider, TabType
from app.models.resume import Resume
from app.models.shared_api_key import SharedApiKey
from app.utils.encryption import decrypt, encrypt

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _docx_upload(text: str = "Jane Doe\nPython developer"):
    document = Document()
    for line in text.split("\n"):
        document.add_paragraph(line)
    buffer = io.BytesIO()
    document.save(buffer)
    return {"file": ("resume.docx", buffer.getvalue(), DOCX_TYPE)}


class TestApiKeys:

    async def test_status_without_keys(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get("/api/v1/settings/api-keys", headers=auth_headers)

        assert response.json() == {"hasOpenaiKey": False, "hasAnthropicKey": False, "hasGeminiKey": False}

    async def test_save_valid_key(self, async_client: AsyncClient, test_user, auth_headers):
        with patch(
            "app.api.v1.settings.get_available_models", new=AsyncMock(return_value=["gpt-4o", "gpt-4o-mini"])
        ) as mock_models:
            response = await async_client.post(
                "/api/v1/settings/api-keys", json={"openaiApiKey": "sk-valid"}, headers=auth_headers
            )

        assert response.status_code == 200
        assert response.json()["message"] == "API keys saved successfully"
        mock_models.assert_awaited_once_with("sk-valid", "openai")
        assert decrypt(test_user.openai_api_key) == "sk-valid"
        assert test_user.openai_models == ["gpt-4o", "gpt-4o-mini"]

    async def test_reject_key_without_models(self, async_client: AsyncClient, test_user, auth_headers):
        with patch("app.api.v1.settings.get_available_models", new=AsyncMock(return_value=[])):
            response = await async_client.post(
                "/api/v1/settings/api-keys", json={"anthropicApiKey": "bad"}, headers=auth_headers
            )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid Anthropic API key or failed to fetch models"
        assert test_user.anthropic_api_key is None

    async def test_empty_string_removes_key(self, async_client: AsyncClient, db_session, test_user, auth_headers):
        test_user.set_provider_key(Provider.GEMINI, encrypt("g-key"), ["gemini-2.5-pro"])
        await db_session.commit()

        response = await async_client.post(
            "/api/v1/settings/api-keys", json={"geminiApiKey": ""}, headers=auth_headers
        )

        assert response.status_code == 200
        assert test_user.gemini_api_key is None
        assert test_user.gemini_models == []


class TestModels:

    async def test_models_requires_valid_provider(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get("/api/v1/settings/models", params={"provider": "mistral"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Valid provider is required (openai, anthropic, gemini)"

    async def test_models_requires_stored_key(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get("/api/v1/settings/models", params={"provider": "openai"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No openai API key configured"

    async def test_available_models_include_shared_for_plus(
        self, async_client: AsyncClient, db_session, plus_user, plus_headers
    ):
        plus_user.set_provider_key(Provider.OPENAI, encrypt("sk-plus"), ["gpt-4o"])
        db_session.add(SharedApiKey(provider=Provider.GEMINI, api_key=encrypt("g-shared"), models=["gemini-2.5-pro"]))
        await db_session.commit()

        own_models = AsyncMock(return_value=[{"id": "gpt-4o", "displayName": "GPT 4o"}])
        shared_models = AsyncMock(return_value=[{"id": "gemini-2.5-pro", "displayName": "Gemini 2.5 Pro"}])
        with patch("app.api.v1.settings.get_available_models_with_names", new=own_models), \
                patch("app.services.shared_keys.get_available_models_with_names", new=shared_models):
            response = await async_client.get("/api/v1/settings/available-models", headers=plus_headers)

        data = response.json()
        assert data["hasAnyKey"] is True
        assert data["models"] == [
            {"value": "gpt-4o", "label": "GPT 4o (OpenAI)", "provider": "openai", "isShared": False},
            {"value": "shared:gemini-2.5-pro", "label": "Gemini 2.5 Pro", "provider": "gemini", "isShared": True},
        ]
        assert data["modelsByProvider"]["openai"] == ["gpt-4o"]

    async def test_free_users_do_not_see_shared_models(self, async_client: AsyncClient, db_session, auth_headers):
        db_session.add(SharedApiKey(provider=Provider.OPENAI, api_key=encrypt("sk-shared"), models=["gpt-4o-mini"]))
        await db_session.commit()

        response = await async_client.get("/api/v1/settings/available-models", headers=auth_headers)

        assert response.json()["models"] == []
        assert response.json()["hasAnyKey"] is False


class TestResumes:

    async def test_upload_first_resume_becomes_default(self, async_client: AsyncClient, db_session, auth_headers):
        response = await async_client.post(
            "/api/v1/settings/resumes", files=_docx_upload(), data={"title": " Main "}, headers=auth_headers
        )

        assert response.status_code == 200
        resume = response.json()["resume"]
        assert resume["title"] == "Main"
        assert resume["isDefault"] is True
        assert "content" not in resume

        stored = await db_session.get(Resume, resume["id"])
        assert stored.content == "Jane Doe\nPython developer"
        assert stored.file_name == "resume.docx"

    async def test_upload_requires_title(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post("/api/v1/settings/resumes", files=_docx_upload(), headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "File and title are required"

    async def test_upload_rejects_other_file_types(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/settings/resumes",
            files={"file": ("resume.txt", b"plain text", "text/plain")},
            data={"title": "Text"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid file type. Only PDF and DOCX files are allowed."

    async def test_free_users_limited_to_three(self, async_client: AsyncClient, db_session, test_user, auth_headers):
        for index in range(3):
            db_session.add(Resume(user_id=test_user.id, title=f"Resume {index}", content="text"))
        await db_session.commit()

        response = await async_client.post(
            "/api/v1/settings/resumes", files=_docx_upload(), data={"title": "Fourth"}, headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Maximum of 3 resumes allowed for FREE users"

    async def test_default_switch_and_delete(self, async_client: AsyncClient, db_session, auth_headers):
        first = await async_client.post(
            "/api/v1/settings/resumes", files=_docx_upload("First"), data={"title": "First"}, headers=auth_headers
        )
        second = await async_client.post(
            "/api/v1/settings/resumes", files=_docx_upload("Second"), data={"title": "Second"}, headers=auth_headers
        )
        first_id, second_id = first.json()["resume"]["id"], second.json()["resume"]["id"]

        response = await async_client.post(
            "/api/v1/settings/resumes/default", json={"resumeId": second_id}, headers=auth_headers
        )
        assert response.json() == {"success": True}

        listed = await async_client.get("/api/v1/settings/resumes", headers=auth_headers)
        defaults = {resume["id"]: resume["isDefault"] for resume in listed.json()["resumes"]}
        assert defaults == {first_id: False, second_id: True}

        response = await async_client.delete(
            "/api/v1/settings/resumes", params={"id": second_id}, headers=auth_headers
        )
        assert response.json() == {"success": True}

        remaining = await db_session.get(Resume, first_id)
        await db_session.refresh(remaining)
        assert remaining.is_default is True

    async def test_delete_unknown_resume(self, async_client: AsyncClient, auth_headers):
        response = await async_client.delete("/api/v1/settings/resumes", params={"id": "missing"}, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Resume not found"


class TestPreferencesAndPrompts:

    async def test_default_preferences(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get("/api/v1/settings/preferences", headers=auth_headers)

        preferences = response.json()["preferences"]
        assert preferences["defaultLength"] == "MEDIUM"
        assert preferences["defaultStatus"] == "SENT"

    async def test_partial_update_keeps_other_fields(self, async_client: AsyncClient, test_user, auth_headers):
        await async_client.post(
            "/api/v1/settings/preferences",
            json={"defaultLength": "LONG", "resumeLink": "https://example.com/cv.pdf"},
            headers=auth_headers,
        )
        await async_client.post(
            "/api/v1/settings/preferences", json={"followupReminderDays": 5}, headers=auth_headers
        )

        assert test_user.default_length == Length.LONG
        assert test_user.resume_link == "https://example.com/cv.pdf"
        assert test_user.followup_reminder_days == 5

    async def test_reminder_days_are_bounded(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/settings/preferences", json={"followupReminderDays": 0}, headers=auth_headers
        )

        assert response.status_code == 422

    async def test_prompts_upsert_and_remove(self, async_client: AsyncClient, db_session, test_user, auth_headers):
        await async_client.post(
            "/api/v1/settings/prompts",
            json={"coverLetter": "  Be brief.  ", "linkedIn": "Be friendly."},
            headers=auth_headers,
        )
        await async_client.post(
            "/api/v1/settings/prompts",
            json={"coverLetter": "Be very brief.", "linkedIn": "   "},
            headers=auth_headers,
        )

        response = await async_client.get("/api/v1/settings/prompts", headers=auth_headers)
        assert response.json() == {"coverLetter": "Be very brief.", "linkedIn": "", "email": ""}

        prompts = (await db_session.execute(select(CustomPrompt))).scalars().all()
        assert [prompt.tab_type for prompt in prompts] == [TabType.COVER_LETTER]


class TestPasswordChange:

    async def test_change_password(self, async_client: AsyncClient, test_user, auth_headers):
        response = await async_client.post(
            "/api/v1/settings/password",
            json={"currentPassword": "TestPassword123!", "newPassword": "BrandNewPass456!"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert verify_password("BrandNewPass456!", test_user.hashed_password)

    async def test_wrong_current_password(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/settings/password",
            json={"currentPassword": "NotMyPassword1!", "newPassword": "BrandNewPass456!"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Current password is incorrect"

    async def test_weak_new_password(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/settings/password",
            json={"currentPassword": "TestPassword123!", "newPassword": "short"},
            headers=auth_headers,
        )

        assert response.status_code == 400
