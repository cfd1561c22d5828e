"""
LLM provider integrations.

Each vendor is wrapped in an :class:`LLMProvider` so generation code can stay
vendor-neutral. Clients are created per call with the caller's (decrypted)
API key; no client or key is kept between requests.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Type

import anthropic
import httpx
import openai

from app.core.config import get_settings
from app.core.exceptions import ModelNotAvailableError, ProviderError
from app.core.logging import performance_logger

settings = get_settings()

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"
ANTHROPIC_VALIDATION_MODEL = "claude-3-haiku-20240307"


class LLMProvider(ABC):
    """Interface every vendor integration implements."""

    provider_name: str = ""

    def __init__(self, api_key: str):
        self.api_key = api_key

    @abstractmethod
    async def generate(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the generated text for a system/user prompt pair."""

    @abstractmethod
    async def validate_key(self) -> bool:
        """Return True if the API key is accepted by the vendor."""


class OpenAIProvider(LLMProvider):
    provider_name = "openai"

    def _client(self) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(api_key=self.api_key, timeout=settings.llm_timeout)

    async def generate(self, model, system_prompt, user_prompt, max_tokens, temperature) -> str:
        response = await self._client().chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def validate_key(self) -> bool:
        try:
            await self._client().models.list()
            return True
        except Exception as e:
            logger.error(f"API key validation failed for openai: {e}")
            return False


class AnthropicProvider(LLMProvider):
    provider_name = "anthropic"

    def _client(self) -> anthropic.AsyncAnthropic:
        return anthropic.AsyncAnthropic(api_key=self.api_key, timeout=settings.llm_timeout)

    async def generate(self, model, system_prompt, user_prompt, max_tokens, temperature) -> str:
        response = await self._client().messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        if not response.content:
            return ""
        block = response.content[0]
        return block.text if block.type == "text" else ""

    async def validate_key(self) -> bool:
        # A one-token request; only an authentication failure marks the key invalid
        try:
            await self._client().messages.create(
                model=ANTHROPIC_VALIDATION_MODEL,
                max_tokens=1,
                messages=[{"role": "user", "content": "test"}],
            )
            return True
        except anthropic.AuthenticationError:
            return False
        except Exception as e:
            logger.warning(f"Anthropic validation inconclusive: {e}")
            return True


class GeminiProvider(LLMProvider):
    """Google Gemini through the public REST API."""

    provider_name = "gemini"

    async def generate(self, model, system_prompt, user_prompt, max_tokens, temperature) -> str:
        payload = {
            "contents": [{"parts": [{"text": f"{system_prompt}\n\n{user_prompt}"}]}],
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": temperature,
            },
        }

        async with httpx.AsyncClient(timeout=settings.llm_timeout) as client:
            response = await client.post(
                f"{GEMINI_API_URL}/models/{model}:generateContent",
                params={"key": self.api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
            )

        if response.status_code != 200:
            raise ProviderError(f"Gemini API error: {response.status_code}")

        candidates = response.json().get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)

    async def validate_key(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=settings.llm_timeout) as client:
                response = await client.get(f"{GEMINI_API_URL}/models", params={"key": self.api_key})
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"API key validation failed for gemini: {e}")
            return False


PROVIDERS: Dict[str, Type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


def get_provider(provider_name: str, api_key: str) -> LLMProvider:
    """
    Instantiate the provider for ``provider_name``.

    Raises:
        ModelNotAvailableError: If the provider is not supported
    """
    provider_class = PROVIDERS.get((provider_name or "").lower())
    if provider_class is None:
        raise ModelNotAvailableError(f"Unsupported AI provider: {provider_name}")
    return provider_class(api_key)


def get_provider_from_model(model: str) -> str:
    """Determine the provider slug from a model id."""
    if "gpt" in model:
        return "openai"
    if "claude" in model:
        return "anthropic"
    if "gemini" in model:
        return "gemini"
    raise ModelNotAvailableError(f"Could not determine provider for model: {model}")


async def generate_content(
    provider: str,
    api_key: str,
    model: str,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int = 2000,
    temperature: Optional[float] = None,
) -> str:
    """
    Generate content with the given provider.

    Raises:
        ProviderError: If the vendor call fails
        ModelNotAvailableError: If the provider is not supported
    """
    llm = get_provider(provider, api_key)
    if temperature is None:
        temperature = settings.llm_temperature

    start_time = time.time()
    try:
        content = await llm.generate(model, system_prompt, user_prompt, max_tokens, temperature)
        performance_logger.log_llm_request(provider, model, time.time() - start_time, success=True)
        return content
    except ProviderError:
        performance_logger.log_llm_request(provider, model, time.time() - start_time, success=False)
        raise
    except Exception as e:
        performance_logger.log_llm_request(provider, model, time.time() - start_time, success=False)
        logger.error(f"AI generation error ({provider}/{model}): {e}")
        raise ProviderError(f"AI generation failed: {e}") from e


async def validate_api_key(api_key: str, provider: str) -> bool:
    try:
        return await get_provider(provider, api_key).validate_key()
    except ModelNotAvailableError:
        return False
