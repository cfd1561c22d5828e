"""
Resolution of the API key used for a generation request.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ApiKeyNotConfiguredError, ModelNotAvailableError
from app.models.enums import Provider
from app.models.user import User
from app.services.llm.providers import get_provider_from_model
from app.services.shared_keys import get_shared_api_key
from app.utils.encryption import decrypt

SHARED_MODEL_PREFIX = "shared:"

_PROVIDER_LABELS = {"openai": "OpenAI", "anthropic": "Anthropic", "gemini": "Gemini"}


@dataclass
class ResolvedKey:
    api_key: str
    using_shared_key: bool
    actual_model: str
    provider: str


async def resolve_api_key(db: AsyncSession, user: User, model: str) -> ResolvedKey:
    """
    Pick the shared key (for ``shared:`` models on PLUS/ADMIN accounts) or the user's own key.

    Raises:
        ModelNotAvailableError: Shared model missing, or the model has no known provider
        ApiKeyNotConfiguredError: The user has not stored a key for the provider
    """
    is_shared_selection = model.startswith(SHARED_MODEL_PREFIX)
    actual_model = model[len(SHARED_MODEL_PREFIX):] if is_shared_selection else model
    provider = get_provider_from_model(actual_model)

    if is_shared_selection and user.is_plus_or_admin:
        shared_key = await get_shared_api_key(db, actual_model)
        if not shared_key:
            raise ModelNotAvailableError("Selected shared model is not available")
        return ResolvedKey(shared_key, True, actual_model, provider)

    encrypted_key = user.get_encrypted_key(Provider(provider.upper()))
    if not encrypted_key:
        raise ApiKeyNotConfiguredError(f"{_PROVIDER_LABELS[provider]} API key not configured")

    return ResolvedKey(decrypt(encrypted_key), False, actual_model, provider)
