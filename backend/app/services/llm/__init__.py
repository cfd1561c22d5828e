"""
LLM integrations for AI Job Master.

Provider clients (OpenAI, Anthropic, Gemini), model discovery and display
names, and the prompt builders for cover letters, LinkedIn messages and
emails.

Usage:
    from app.services.llm import generate_content, get_cover_letter_prompt

    system_prompt, user_prompt = get_cover_letter_prompt(params)
    content = await generate_content(provider, api_key, model, system_prompt, user_prompt)
"""

from app.services.llm.model_catalog import get_available_models, get_available_models_with_names
from app.services.llm.model_names import (
    get_model_display_name,
    get_model_display_name_with_provider,
    get_model_provider,
)
from app.services.llm.prompts import (
    IMMUTABLE_SAFETY_RULE,
    PromptParams,
    build_custom_prompt,
    get_cover_letter_prompt,
    get_email_prompt,
    get_linkedin_prompt,
)
from app.services.llm.providers import (
    LLMProvider,
    ProviderError,
    generate_content,
    get_provider,
    get_provider_from_model,
    validate_api_key,
)

__all__ = [
    "get_available_models",
    "get_available_models_with_names",
    "get_model_display_name",
    "get_model_display_name_with_provider",
    "get_model_provider",
    "IMMUTABLE_SAFETY_RULE",
    "PromptParams",
    "build_custom_prompt",
    "get_cover_letter_prompt",
    "get_email_prompt",
    "get_linkedin_prompt",
    "LLMProvider",
    "ProviderError",
    "generate_content",
    "get_provider",
    "get_provider_from_model",
    "validate_api_key",
]
