"""
Unit tests for the LLM layer: prompt builders, model names, providers and model discovery.

Vendor SDK clients and HTTP calls are mocked.
"""

from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.core.exceptions import ModelNotAvailableError, ProviderError
from app.models.enums import Length
from app.services.llm.model_catalog import GEMINI_MAIN_MODELS, get_available_models, get_available_models_with_names
from app.services.llm.model_names import (
    get_model_display_name,
    get_model_display_name_with_provider,
    get_model_provider,
)
from app.services.llm.prompts import (
    IMMUTABLE_SAFETY_RULE,
    LENGTH_INSTRUCTIONS,
    PromptParams,
    build_custom_prompt,
    format_today,
    get_cover_letter_prompt,
    get_email_prompt,
    get_linkedin_prompt,
)
from app.services.llm.providers import (
    GeminiProvider,
    OpenAIProvider,
    generate_content,
    get_provider,
    get_provider_from_model,
)


def _mock_httpx_client(client_cls, **methods):
    """Make ``async with httpx.AsyncClient()`` yield a client with the given async methods."""
    client = MagicMock()
    for name, value in methods.items():
        setattr(client, name, AsyncMock(**value))
    client_cls.return_value.__aenter__.return_value = client
    return client


class TestModelNames:

    @pytest.mark.parametrize(
        "model,expected",
        [
            ("gpt-4o", "GPT 4o"),
            ("gpt-4o-mini", "GPT 4o Mini"),
            ("claude-3-5-sonnet-20240620", "Claude 3.5 Sonnet"),
            ("gemini-1.5-pro", "Gemini 1.5 Pro"),
            ("gemini-2.0-flash-exp", "Gemini 2.0 Flash"),
        ],
    )
    def test_display_names(self, model, expected):
        assert get_model_display_name(model) == expected

    def test_provider_labels(self):
        assert get_model_provider("gpt-4o") == "OpenAI"
        assert get_model_provider("claude-3-haiku-20240307") == "Anthropic"
        assert get_model_provider("gemini-2.5-pro") == "Google"
        assert get_model_provider("llama-3") == "Unknown"

    def test_display_name_with_provider(self):
        assert get_model_display_name_with_provider("gpt-4o") == "GPT 4o (OpenAI)"
        assert get_model_display_name_with_provider("custom-model") == "Custom Model"


class TestPrompts:

    def test_format_today(self):
        assert format_today(date(2026, 10, 8)) == "October 8, 2026"

    def test_cover_letter_prompt(self):
        params = PromptParams(
            length=Length.CONCISE,
            resume_content="Jane Doe, Python developer",
            job_description="Backend engineer building APIs",
            company_name="Acme",
            position_title="Backend Engineer",
        )

        system, user = get_cover_letter_prompt(params)

        assert system.startswith(IMMUTABLE_SAFETY_RULE)
        assert LENGTH_INSTRUCTIONS[Length.CONCISE] in system
        assert "POSITION: Backend Engineer at Acme" in user
        assert "Backend engineer building APIs" in user
        assert "Jane Doe, Python developer" in user

    def test_cover_letter_without_resume(self):
        _, user = get_cover_letter_prompt(PromptParams(job_description="Role"))
        assert "MY RESUME:\nNot provided" in user

    def test_linkedin_connection_note_mentions_recipient(self):
        params = PromptParams(
            recipient_name="Sam Lee",
            company_name="Acme",
            message_type="CONNECTION_NOTE",
        )

        system, user = get_linkedin_prompt(params)

        assert system.startswith(IMMUTABLE_SAFETY_RULE)
        assert "Sam Lee" in user

    def test_linkedin_follow_up_includes_previous_message(self):
        params = PromptParams(
            recipient_name="Sam Lee",
            company_name="Acme",
            position_title="Data Engineer",
            message_type="FOLLOW_UP",
            previous_message="Hi Sam, I applied for the Data Engineer role last week.",
        )

        _, user = get_linkedin_prompt(params)

        assert "I applied for the Data Engineer role last week." in user

    def test_email_prompt_asks_for_subject_line(self):
        params = PromptParams(
            recipient_name="Alex",
            company_name="Acme",
            position_title="QA Engineer",
            message_type="NEW",
        )

        system, _ = get_email_prompt(params)

        assert system.startswith(IMMUTABLE_SAFETY_RULE)
        assert "Subject:" in system

    def test_build_custom_prompt_fills_placeholders(self):
        params = PromptParams(
            length=Length.LONG,
            company_name="Acme",
            job_description="Build pipelines",
        )
        template = "Write for {companyName} about {jobDescription} to {recipientName}, {length}. {unknown}"

        prompt = build_custom_prompt(template, params)

        assert prompt == "Write for Acme about Build pipelines to Hiring Manager, LONG. {unknown}"


class TestProviders:

    @pytest.mark.parametrize(
        "model,provider",
        [
            ("gpt-4o-mini", "openai"),
            ("claude-3-5-haiku-20241022", "anthropic"),
            ("gemini-2.5-flash", "gemini"),
        ],
    )
    def test_provider_from_model(self, model, provider):
        assert get_provider_from_model(model) == provider

    def test_unknown_model_raises(self):
        with pytest.raises(ModelNotAvailableError):
            get_provider_from_model("llama-3-70b")

    def test_unknown_provider_raises(self):
        with pytest.raises(ModelNotAvailableError, match="Unsupported AI provider"):
            get_provider("mistral", "key")

    async def test_openai_generate(self):
        response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="Dear team"))])
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)

        with patch.object(OpenAIProvider, "_client", return_value=client):
            content = await generate_content("openai", "sk-test", "gpt-4o", "system", "user", max_tokens=100)

        assert content == "Dear team"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}

    async def test_vendor_failure_becomes_provider_error(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("connection reset"))

        with patch.object(OpenAIProvider, "_client", return_value=client):
            with pytest.raises(ProviderError, match="AI generation failed"):
                await generate_content("openai", "sk-test", "gpt-4o", "system", "user")

    async def test_gemini_generate_joins_parts(self):
        body = {"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "there"}]}}]}

        with patch("app.services.llm.providers.httpx.AsyncClient") as client_cls:
            client = _mock_httpx_client(client_cls, post={"return_value": httpx.Response(200, json=body)})
            content = await GeminiProvider("g-key").generate("gemini-2.5-flash", "sys", "usr", 50, 0.5)

        assert content == "Hello there"
        assert client.post.call_args.kwargs["params"] == {"key": "g-key"}
        assert client.post.call_args.kwargs["json"]["generationConfig"]["maxOutputTokens"] == 50

    async def test_gemini_error_status(self):
        with patch("app.services.llm.providers.httpx.AsyncClient") as client_cls:
            _mock_httpx_client(client_cls, post={"return_value": httpx.Response(403, json={})})
            with pytest.raises(ProviderError, match="Gemini API error: 403"):
                await GeminiProvider("g-key").generate("gemini-2.5-flash", "sys", "usr", 50, 0.5)


class TestModelCatalog:

    async def test_openai_models_are_filtered_and_cached(self):
        page = SimpleNamespace(data=[
            SimpleNamespace(id="gpt-4o-mini"),
            SimpleNamespace(id="whisper-1"),
            SimpleNamespace(id="gpt-4o"),
        ])

        with patch("app.services.llm.model_catalog.openai.AsyncOpenAI") as client_cls:
            client_cls.return_value.models.list = AsyncMock(return_value=page)

            first = await get_available_models("sk-test", "openai")
            second = await get_available_models("sk-test", "openai")

        assert first == ["gpt-4o", "gpt-4o-mini"]
        assert second == first
        assert client_cls.return_value.models.list.await_count == 1

    async def test_openai_failure_returns_empty_list(self):
        with patch("app.services.llm.model_catalog.openai.AsyncOpenAI") as client_cls:
            client_cls.return_value.models.list = AsyncMock(side_effect=RuntimeError("401 Unauthorized"))
            assert await get_available_models("sk-bad", "openai") == []

    async def test_unknown_provider(self):
        assert await get_available_models("key", "mistral") == []

    async def test_gemini_falls_back_to_known_models(self):
        with patch("app.services.llm.model_catalog.httpx.AsyncClient") as client_cls:
            _mock_httpx_client(client_cls, get={"side_effect": httpx.ConnectError("offline")})
            models = await get_available_models_with_names("g-key", "gemini")

        assert [model["id"] for model in models] == GEMINI_MAIN_MODELS

    async def test_gemini_models_from_api(self):
        body = {
            "models": [
                {"name": "models/gemini-2.5-pro", "displayName": "Gemini 2.5 Pro"},
                {"name": "models/embedding-001", "displayName": "Embedding"},
            ]
        }
        with patch("app.services.llm.model_catalog.httpx.AsyncClient") as client_cls:
            _mock_httpx_client(client_cls, get={"return_value": httpx.Response(200, json=body)})
            models = await get_available_models_with_names("g-key-2", "gemini")

        assert models == [{"id": "gemini-2.5-pro", "displayName": "Gemini 2.5 Pro"}]
