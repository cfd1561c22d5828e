"""
Lookup of admin-provisioned shared API keys.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import shared_models_cache
from app.models.shared_api_key import SharedApiKey
from app.services.llm.model_catalog import get_available_models_with_names
from app.utils.encryption import decrypt

logger = logging.getLogger(__name__)

SHARED_MODELS_CACHE_KEY = "shared-models-all"


async def _active_keys(db: AsyncSession) -> List[SharedApiKey]:
    result = await db.execute(
        select(SharedApiKey).where(SharedApiKey.is_active.is_(True)).order_by(SharedApiKey.created_at)
    )
    return list(result.scalars().all())


async def get_shared_api_key(db: AsyncSession, model: str) -> Optional[str]:
    """Return the decrypted key of the first active shared key that lists ``model``."""
    try:
        for key in await _active_keys(db):
            if model in (key.models or []):
                return decrypt(key.api_key)
        return None
    except Exception as e:
        logger.error(f"Get shared API key error: {e}")
        return None


async def is_shared_model(db: AsyncSession, model: str) -> bool:
    try:
        return any(model in (key.models or []) for key in await _active_keys(db))
    except Exception as e:
        logger.error(f"Check shared model error: {e}")
        return False


async def get_available_shared_models(db: AsyncSession) -> List[Dict[str, Any]]:
    """
    All models offered through active shared keys, with display names.

    Entries look like ``{"model", "displayName", "provider", "isShared", "keyId"}``.
    """
    cached = shared_models_cache.get(SHARED_MODELS_CACHE_KEY)
    if cached is not None:
        return cached

    try:
        keys = await _active_keys(db)
    except Exception as e:
        logger.error(f"Get available shared models error: {e}")
        return []

    shared_models: List[Dict[str, Any]] = []
    for key in keys:
        provider = key.provider.slug
        try:
            catalog = await get_available_models_with_names(decrypt(key.api_key), provider)
            names = {model["id"]: model["displayName"] for model in catalog}
            entries = [(model_id, names[model_id]) for model_id in key.models or [] if model_id in names]
        except Exception as e:
            logger.error(f"Failed to fetch display names for shared {provider} models: {e}")
            entries = [(model_id, model_id) for model_id in key.models or []]

        shared_models.extend(
            {
                "model": model_id,
                "displayName": display_name,
                "provider": provider,
                "isShared": True,
                "keyId": key.id,
            }
            for model_id, display_name in entries
        )

    shared_models_cache.set(SHARED_MODELS_CACHE_KEY, shared_models)
    return shared_models
