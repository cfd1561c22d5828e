"""
Model discovery for a provider API key.

Results are cached per provider and key digest in ``model_cache`` so the
settings pages do not hit vendor endpoints on every render.
"""

import logging
from typing import Dict, List

import httpx
import openai

from app.core.cache import model_cache
from app.core.config import get_settings
from app.services.llm.model_names import get_model_display_name
from app.services.llm.providers import GEMINI_API_URL
from app.utils.encryption import hash_api_key

settings = get_settings()

logger = logging.getLogger(__name__)

ANTHROPIC_MODELS_URL = "https://api.anthropic.com/v1/models"
ANTHROPIC_VERSION = "2023-06-01"

OPENAI_ALLOWED_MODELS = {
    "gpt-3.5-turbo",
    "gpt-4.1",
    "gpt-4o",
    "gpt-4o-mini",
    "gpt-5",
    "gpt-5-mini",
    "gpt-5-nano",
    "gpt-5-pro",
    "gpt-5.1",
}

ANTHROPIC_FALLBACK_MODELS = [
    {"id": "claude-opus-4-5-20251101", "displayName": "Claude Opus 4.5"},
    {"id": "claude-haiku-4-5-20251001", "displayName": "Claude Haiku 4.5"},
    {"id": "claude-sonnet-4-5-20250929", "displayName": "Claude Sonnet 4.5"},
    {"id": "claude-opus-4-1-20250805", "displayName": "Claude Opus 4.1"},
    {"id": "claude-opus-4-20250514", "displayName": "Claude Opus 4"},
    {"id": "claude-sonnet-4-20250514", "displayName": "Claude Sonnet 4"},
    {"id": "claude-3-7-sonnet-20250219", "displayName": "Claude Sonnet 3.7"},
    {"id": "claude-3-5-haiku-20241022", "displayName": "Claude Haiku 3.5"},
    {"id": "claude-3-haiku-20240307", "displayName": "Claude Haiku 3"},
]

GEMINI_MAIN_MODELS = [
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-3-pro-preview",
]


def _cache_key(provider: str, api_key: str) -> str:
    return f"models:{provider}:{hash_api_key(api_key)}"


async def _openai_models(api_key: str) -> List[Dict[str, str]]:
    client = openai.AsyncOpenAI(api_key=api_key, timeout=settings.llm_timeout)
    page = await client.models.list()
    models = [
        {"id": model.id, "displayName": get_model_display_name(model.id)}
        for model in page.data
        if model.id in OPENAI_ALLOWED_MODELS
    ]
    return sorted(models, key=lambda m: m["id"])


async def _anthropic_models(api_key: str) -> List[Dict[str, str]]:
    try:
        async with httpx.AsyncClient(timeout=settings.llm_timeout) as client:
            response = await client.get(
                ANTHROPIC_MODELS_URL,
                headers={"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
            )
        if response.status_code == 200:
            return [
                {"id": model["id"], "displayName": model.get("display_name") or get_model_display_name(model["id"])}
                for model in response.json().get("data", [])
            ]
    except httpx.HTTPError as e:
        logger.error(f"Failed to fetch Anthropic models from API: {e}")

    return [dict(model) for model in ANTHROPIC_FALLBACK_MODELS]


async def _gemini_models(api_key: str) -> List[Dict[str, str]]:
    try:
        async with httpx.AsyncClient(timeout=settings.llm_timeout) as client:
            response = await client.get(f"{GEMINI_API_URL}/models", params={"key": api_key})
        if response.status_code == 200:
            data = response.json()
            if data.get("models"):
                allowed = {f"models/{model_id}" for model_id in GEMINI_MAIN_MODELS}
                models = [
                    {
                        "id": model["name"].replace("models/", "", 1),
                        "displayName": model.get("displayName") or get_model_display_name(model["name"]),
                    }
                    for model in data["models"]
                    if model.get("name") in allowed
                ]
                return sorted(models, key=lambda m: m["id"])
    except httpx.HTTPError as e:
        logger.error(f"Failed to fetch Gemini models from API: {e}")

    return [{"id": model_id, "displayName": get_model_display_name(model_id)} for model_id in GEMINI_MAIN_MODELS]


_FETCHERS = {
    "openai": _openai_models,
    "anthropic": _anthropic_models,
    "gemini": _gemini_models,
}


async def get_available_models_with_names(api_key: str, provider: str) -> List[Dict[str, str]]:
    """
    List the chat models an API key can use, with display names.

    Returns an empty list for unknown providers or when the vendor call fails.
    """
    fetcher = _FETCHERS.get(provider)
    if fetcher is None:
        return []

    cache_key = _cache_key(provider, api_key)
    cached = model_cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        models = await fetcher(api_key)
    except Exception as e:
        logger.error(f"Failed to get models for {provider}: {e}")
        return []

    model_cache.set(cache_key, models)
    return models


async def get_available_models(api_key: str, provider: str) -> List[str]:
    models = await get_available_models_with_names(api_key, provider)
    return [model["id"] for model in models]
