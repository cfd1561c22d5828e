"""
Admin endpoints: user management, shared keys, usage limits, settings and
platform reporting. Every route requires an ADMIN account and every change
is written to the security log.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import invalidate_shared_models_cache, invalidate_usage_limits_cache
from app.core.database import count_query_results, get_db, paginate_query, pagination_info
from app.core.logging import security_logger
from app.core.security import get_current_admin_user
from app.models.enums import Provider, parse_enum
from app.models.settings import UsageLimitSettings
from app.models.shared_api_key import SharedApiKey
from app.models.user import User, UserType
from app.schemas.admin import (
    AdminUserTypeUpdate,
    AdminUserUpdate,
    FetchModelsRequest,
    MisuseMessageUpdate,
    SharedKeyCreate,
    SharedKeyModelsUpdate,
    SharedKeyToggle,
    UsageLimitUpdate,
)
from app.services.history_service import backfill_activity_history
from app.services.llm.model_catalog import get_available_models_with_names
from app.services.misuse_detection import get_misuse_message, set_misuse_message
from app.services.stats_service import (
    get_admin_dashboard,
    get_analytics,
    get_platform_stats,
    get_user_activity,
    summarize_users,
)
from app.utils.encryption import decrypt, encrypt, mask_api_key

logger = logging.getLogger(__name__)

router = APIRouter()


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# Users

@router.get("/users")
async def list_users(
    user_type: Optional[str] = Query(None, alias="userType"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Search and page through users, newest first.
    """
    query = select(User)
    type_filter = parse_enum(UserType, user_type)
    if type_filter is not None:
        query = query.where(User.user_type == type_filter)
    if search:
        query = query.where(User.email.ilike(f"%{search}%"))

    try:
        total_count = await count_query_results(db, query)
        result = await db.execute(paginate_query(query.order_by(User.created_at.desc()), page, limit))
        users = await summarize_users(db, list(result.scalars().all()))
    except Exception as e:
        logger.error(f"Admin get users error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch users")

    return {"users": users, "pagination": pagination_info(page, limit, total_count)}


@router.put("/users")
async def update_user_type(
    payload: AdminUserUpdate,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    if not payload.user_id:
        raise _bad_request("Missing userId")
    user_type = parse_enum(UserType, payload.user_type)
    if user_type is None:
        raise _bad_request("Invalid userType. Must be one of: FREE, PLUS, ADMIN")
    if payload.user_id == admin.id and user_type != UserType.ADMIN:
        raise _bad_request("You cannot change your own admin status")

    user = await _get_user_or_404(db, payload.user_id)
    user.user_type = user_type
    security_logger.log_admin_action(admin.id, "update_user_type", target=user.id, details={"userType": user_type.value})

    return {"user": {"id": user.id, "email": user.email, "userType": user.user_type.value}}


@router.patch("/users/{user_id}")
async def patch_user_type(
    user_id: str,
    payload: AdminUserTypeUpdate,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    user_type = parse_enum(UserType, payload.user_type)
    if user_type is None:
        raise _bad_request("Valid userType is required (FREE, PLUS, ADMIN)")
    if user_id == admin.id and user_type != UserType.ADMIN:
        raise _bad_request("You cannot change your own admin status")

    user = await _get_user_or_404(db, user_id)
    user.user_type = user_type
    security_logger.log_admin_action(admin.id, "update_user_type", target=user.id, details={"userType": user_type.value})

    return {
        "success": True,
        "user": {
            "id": user.id,
            "email": user.email,
            "userType": user.user_type.value,
            "updatedAt": user.updated_at,
        },
    }


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a user; their content goes with them.
    """
    if user_id == admin.id:
        raise _bad_request("You cannot delete your own account")

    user = await _get_user_or_404(db, user_id)
    await db.delete(user)
    security_logger.log_admin_action(admin.id, "delete_user", target=user_id, details={"email": user.email})

    return {"success": True}


@router.get("/users/{user_id}/activity")
async def user_activity(
    user_id: str,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_user_or_404(db, user_id)
    return await get_user_activity(db, user)


# Shared keys

def _masked(key: SharedApiKey) -> dict:
    try:
        masked = mask_api_key(decrypt(key.api_key))
    except Exception as e:
        logger.error(f"Failed to decrypt shared key {key.id}: {e}")
        masked = "********"
    return key.to_dict(masked_key=masked)


async def _get_shared_key_or_404(db: AsyncSession, key_id: str) -> SharedApiKey:
    result = await db.execute(select(SharedApiKey).where(SharedApiKey.id == key_id))
    key = result.scalar_one_or_none()
    if key is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Key not found")
    return key


@router.get("/shared-keys")
async def list_shared_keys(
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(SharedApiKey).order_by(SharedApiKey.created_at.desc()))
    return {"keys": [_masked(key) for key in result.scalars().all()]}


@router.post("/shared-keys")
async def create_shared_key(
    payload: SharedKeyCreate,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    provider = parse_enum(Provider, (payload.provider or "").upper())
    if provider is None or not payload.api_key or not payload.models:
        raise _bad_request("Provider, API key, and models are required")

    key = SharedApiKey(
        provider=provider,
        api_key=encrypt(payload.api_key),
        models=list(payload.models),
        is_active=True,
    )
    db.add(key)
    await db.commit()

    invalidate_shared_models_cache()
    security_logger.log_admin_action(admin.id, "create_shared_key", target=key.id, details={"provider": provider.value})

    return {"key": key.to_dict(masked_key=mask_api_key(payload.api_key))}


@router.delete("/shared-keys")
async def delete_shared_key(
    key_id: Optional[str] = Query(None, alias="id"),
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    if not key_id:
        raise _bad_request("Key ID is required")

    key = await _get_shared_key_or_404(db, key_id)
    await db.delete(key)
    await db.commit()

    invalidate_shared_models_cache()
    security_logger.log_admin_action(admin.id, "delete_shared_key", target=key_id)

    return {"success": True}


@router.patch("/shared-keys")
async def toggle_shared_key(
    payload: SharedKeyToggle,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    if not payload.id or payload.is_active is None:
        raise _bad_request("Key ID and status are required")

    key = await _get_shared_key_or_404(db, payload.id)
    key.is_active = payload.is_active
    await db.commit()

    invalidate_shared_models_cache()
    security_logger.log_admin_action(
        admin.id, "toggle_shared_key", target=key.id, details={"isActive": payload.is_active}
    )

    return {"key": key.to_dict()}


@router.get("/shared-keys/decrypt")
async def decrypt_shared_key(
    key_id: Optional[str] = Query(None, alias="id"),
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Reveal a shared key in plain text.
    """
    if not key_id:
        raise _bad_request("Key ID is required")

    key = await _get_shared_key_or_404(db, key_id)
    security_logger.log_admin_action(admin.id, "decrypt_shared_key", target=key.id)

    return {"id": key.id, "provider": key.provider.value, "apiKey": decrypt(key.api_key)}


@router.post("/shared-keys/fetch-models")
async def fetch_shared_key_models(
    payload: FetchModelsRequest,
    admin: User = Depends(get_current_admin_user),
):
    """
    List the models a candidate key can reach before it is saved.
    """
    if not payload.api_key or not payload.provider:
        raise _bad_request("API key and provider are required")

    provider = parse_enum(Provider, payload.provider.upper())
    if provider is None:
        raise _bad_request("Invalid provider. Must be one of: openai, anthropic, gemini")

    models = await get_available_models_with_names(payload.api_key, provider.slug)
    if not models:
        raise _bad_request(f"Failed to fetch models from {provider.slug}. Please check the API key.")

    return {
        "models": [
            {"value": model["id"], "label": model["displayName"], "provider": provider.slug}
            for model in models
        ]
    }


@router.patch("/shared-keys/models")
async def update_shared_key_models(
    payload: SharedKeyModelsUpdate,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    if not payload.id or not payload.models:
        raise _bad_request("Key ID and models array (with at least one model) are required")

    key = await _get_shared_key_or_404(db, payload.id)
    key.models = list(payload.models)
    await db.commit()

    invalidate_shared_models_cache()
    security_logger.log_admin_action(
        admin.id, "update_shared_key_models", target=key.id, details={"models": key.models}
    )

    return {"success": True, "key": key.to_dict()}


# Usage limits and settings

async def _all_limits(db: AsyncSession) -> list:
    result = await db.execute(select(UsageLimitSettings).order_by(UsageLimitSettings.user_type))
    return [limit.to_dict() for limit in result.scalars().all()]


async def _upsert_usage_limit(db: AsyncSession, admin: User, payload: UsageLimitUpdate) -> dict:
    user_type = parse_enum(UserType, payload.user_type)
    if (
        user_type is None
        or payload.max_activities is None
        or payload.max_generations is None
        or payload.max_followup_generations is None
    ):
        raise _bad_request("Missing required fields")

    result = await db.execute(select(UsageLimitSettings).where(UsageLimitSettings.user_type == user_type))
    limit = result.scalar_one_or_none()
    if limit is None:
        limit = UsageLimitSettings(user_type=user_type)
        db.add(limit)

    limit.max_activities = payload.max_activities
    limit.max_generations = payload.max_generations
    limit.max_followup_generations = payload.max_followup_generations
    limit.include_followups = bool(payload.include_followups)
    await db.commit()

    invalidate_usage_limits_cache()
    security_logger.log_admin_action(admin.id, "update_usage_limits", target=user_type.value, details=payload.changes())

    return {"limit": limit.to_dict()}


async def _update_misuse_message(db: AsyncSession, admin: User, payload: MisuseMessageUpdate) -> dict:
    if not isinstance(payload.message, str):
        raise _bad_request("Message is required and must be a string")
    message = payload.message.strip()
    if not message:
        raise _bad_request("Message cannot be empty")

    await set_misuse_message(db, message)
    security_logger.log_admin_action(admin.id, "update_misuse_message")

    return {"success": True, "message": message}


@router.get("/usage-limits")
async def list_usage_limits(
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return {"limits": await _all_limits(db)}


@router.put("/usage-limits")
async def update_usage_limits(
    payload: UsageLimitUpdate,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await _upsert_usage_limit(db, admin, payload)


@router.get("/settings")
async def get_admin_settings(
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return {"limits": await _all_limits(db), "misuseMessage": await get_misuse_message(db)}


@router.put("/settings")
async def update_admin_settings(
    payload: UsageLimitUpdate,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await _upsert_usage_limit(db, admin, payload)


@router.patch("/settings")
async def patch_admin_settings(
    payload: MisuseMessageUpdate,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await _update_misuse_message(db, admin, payload)


@router.get("/misuse-message")
async def read_misuse_message(
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return {"message": await get_misuse_message(db)}


@router.put("/misuse-message")
async def update_misuse_message(
    payload: MisuseMessageUpdate,
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await _update_misuse_message(db, admin, payload)


# Reporting

@router.get("/stats")
async def platform_stats(
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_platform_stats(db)


@router.get("/dashboard")
async def admin_dashboard(
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_admin_dashboard(db)


@router.get("/analytics")
async def analytics(
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_analytics(db)


@router.post("/backfill-activity")
async def backfill_activity(
    admin: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create activity history rows for content saved before tracking existed.
    """
    count = await backfill_activity_history(db)
    security_logger.log_admin_action(admin.id, "backfill_activity", details={"backfilledCount": count})

    return {
        "success": True,
        "backfilledCount": count,
        "message": f"Successfully backfilled {count} activity history records",
    }
