import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import invalidate_provider_cache
from app.core.database import get_db
from app.core.exceptions import DecryptionError, InputValidationError
from app.core.rate_limit import AUTH_LIMIT, SETTINGS_LIMIT, limiter
from app.core.security import (
    get_current_active_user,
    get_password_hash,
    validate_password_strength,
    verify_password,
)
from app.models.custom_prompt import PROMPT_NAMES, CustomPrompt
from app.models.enums import ApplicationStatus, Length, Provider, TabType, parse_enum
from app.models.resume import Resume
from app.models.user import User, UserType
from app.schemas.settings import ApiKeysUpdate, DefaultResumeRequest, PreferencesUpdate, PromptsUpdate
from app.schemas.user import UserPasswordUpdate
from app.services.llm.model_catalog import get_available_models, get_available_models_with_names
from app.services.resume_parser import extract_text
from app.services.shared_keys import get_available_shared_models
from app.utils.encryption import decrypt, encrypt

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_RESUMES = {UserType.FREE: 3, UserType.PLUS: 8, UserType.ADMIN: 999}

# Labels used in model pickers; Gemini models are listed under Google
PICKER_LABELS = {"openai": "OpenAI", "anthropic": "Anthropic", "gemini": "Google"}
ERROR_LABELS = {"openai": "OpenAI", "anthropic": "Anthropic", "gemini": "Gemini"}

PROMPT_FIELDS = {
    TabType.COVER_LETTER: "coverLetter",
    TabType.LINKEDIN: "linkedIn",
    TabType.EMAIL: "email",
}


# API keys

@router.get("/api-keys")
async def get_api_key_status(current_user: User = Depends(get_current_active_user)):
    """
    Which provider keys are stored. Keys themselves are never returned.
    """
    return {
        "hasOpenaiKey": bool(current_user.openai_api_key),
        "hasAnthropicKey": bool(current_user.anthropic_api_key),
        "hasGeminiKey": bool(current_user.gemini_api_key),
    }


@router.post("/api-keys")
@limiter.limit(SETTINGS_LIMIT)
async def save_api_keys(
    request: Request,
    payload: ApiKeysUpdate,
    current_user: User = Depends(get_current_active_user),
):
    """
    Store provider keys.

    A non-empty key is validated by listing its models; the key is kept
    encrypted together with that model list. An empty string removes the key.
    """
    submitted = {
        Provider.OPENAI: payload.openai_api_key,
        Provider.ANTHROPIC: payload.anthropic_api_key,
        Provider.GEMINI: payload.gemini_api_key,
    }

    try:
        for provider, api_key in submitted.items():
            if api_key is None:
                continue

            if api_key == "":
                current_user.set_provider_key(provider, None, [])
            else:
                models = await get_available_models(api_key, provider.slug)
                if not models:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"Invalid {ERROR_LABELS[provider.slug]} API key or failed to fetch models",
                    )
                current_user.set_provider_key(provider, encrypt(api_key), models)

            invalidate_provider_cache(provider.slug)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Save API keys error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save API keys")

    return {"success": True, "message": "API keys saved successfully"}


@router.get("/models")
async def list_provider_models(
    provider: Optional[str] = Query(None),
    current_user: User = Depends(get_current_active_user),
):
    """
    Models reachable with the user's stored key for one provider.
    """
    provider_enum = parse_enum(Provider, (provider or "").upper())
    if provider_enum is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Valid provider is required (openai, anthropic, gemini)",
        )

    encrypted_key = current_user.get_encrypted_key(provider_enum)
    if not encrypted_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No {provider_enum.slug} API key configured",
        )

    models = await get_available_models_with_names(decrypt(encrypted_key), provider_enum.slug)
    return {"provider": provider_enum.slug, "models": models}


@router.get("/available-models")
async def list_available_models(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Models for the generator picker: the user's own keys first, then shared models.
    """
    models = []
    for provider in Provider:
        encrypted_key = current_user.get_encrypted_key(provider)
        if not encrypted_key:
            continue
        try:
            catalog = await get_available_models_with_names(decrypt(encrypted_key), provider.slug)
        except DecryptionError as e:
            logger.error(f"Failed to fetch {PICKER_LABELS[provider.slug]} models: {e}")
            continue
        models.extend(
            {
                "value": model["id"],
                "label": f"{model['displayName']} ({PICKER_LABELS[provider.slug]})",
                "provider": provider.slug,
                "isShared": False,
            }
            for model in catalog
        )

    if current_user.is_plus_or_admin:
        models.extend(
            {
                "value": f"shared:{shared['model']}",
                "label": shared.get("displayName") or shared["model"],
                "provider": shared["provider"],
                "isShared": True,
            }
            for shared in await get_available_shared_models(db)
        )

    return {
        "hasAnyKey": current_user.has_any_api_key,
        "models": models,
        "modelsByProvider": {provider.slug: current_user.get_provider_models(provider) for provider in Provider},
    }


# Resumes

async def _user_resumes(db: AsyncSession, user: User):
    result = await db.execute(
        select(Resume).where(Resume.user_id == user.id).order_by(Resume.created_at.desc())
    )
    return list(result.scalars().all())


@router.get("/resumes")
async def list_resumes(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    resumes = await _user_resumes(db, current_user)
    return {"resumes": [resume.to_dict(include_content=False) for resume in resumes]}


@router.post("/resumes")
async def upload_resume(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Upload a PDF or DOCX resume and store its extracted text.

    The user's first resume becomes the default.
    """
    existing = await _user_resumes(db, current_user)
    max_resumes = MAX_RESUMES.get(current_user.user_type, MAX_RESUMES[UserType.FREE])
    if len(existing) >= max_resumes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Maximum of {max_resumes} resumes allowed for {current_user.user_type.value} users",
        )

    if file is None or not title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File and title are required")

    data = await file.read()
    try:
        content = extract_text(file.filename, file.content_type, data)
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    resume = Resume(
        user_id=current_user.id,
        title=title.strip(),
        file_name=file.filename,
        content=content,
        is_default=not existing,
    )
    db.add(resume)
    await db.flush()
    logger.info(f"Resume {resume.id} uploaded by user {current_user.id}")

    return {"success": True, "resume": resume.to_dict(include_content=False)}


@router.delete("/resumes")
async def delete_resume(
    resume_id: Optional[str] = Query(None, alias="id"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    if not resume_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Resume ID is required")

    result = await db.execute(
        select(Resume).where(Resume.id == resume_id, Resume.user_id == current_user.id)
    )
    resume = result.scalar_one_or_none()
    if resume is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resume not found")

    was_default = resume.is_default
    await db.delete(resume)
    await db.flush()

    if was_default:
        result = await db.execute(
            select(Resume)
            .where(Resume.user_id == current_user.id)
            .order_by(Resume.created_at.asc())
            .limit(1)
        )
        replacement = result.scalar_one_or_none()
        if replacement is not None:
            replacement.is_default = True

    return {"success": True}


@router.post("/resumes/default")
async def set_default_resume(
    payload: DefaultResumeRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    if not payload.resume_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Resume ID is required")

    result = await db.execute(
        select(Resume).where(Resume.id == payload.resume_id, Resume.user_id == current_user.id)
    )
    resume = result.scalar_one_or_none()
    if resume is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resume not found")

    await db.execute(
        update(Resume)
        .where(Resume.user_id == current_user.id, Resume.id != resume.id)
        .values(is_default=False)
    )
    resume.is_default = True
    return {"success": True}


# Preferences

@router.get("/preferences")
async def get_preferences(current_user: User = Depends(get_current_active_user)):
    return {"preferences": current_user.preferences_dict()}


@router.post("/preferences")
async def save_preferences(
    payload: PreferencesUpdate,
    current_user: User = Depends(get_current_active_user),
):
    """
    Update generator defaults. Fields left out keep their current value.
    """
    changes = payload.model_dump(exclude_unset=True)
    if "default_llm_model" in changes:
        current_user.default_llm_model = payload.default_llm_model or None
    if "default_length" in changes:
        current_user.default_length = parse_enum(Length, payload.default_length, Length.MEDIUM)
    if payload.auto_save is not None:
        current_user.auto_save = payload.auto_save
    if "default_status" in changes:
        current_user.default_status = parse_enum(ApplicationStatus, payload.default_status, ApplicationStatus.SENT)
    if payload.followup_reminder_days is not None:
        current_user.followup_reminder_days = payload.followup_reminder_days
    if "resume_link" in changes:
        current_user.resume_link = payload.resume_link or None

    return {"success": True}


# Custom prompts

@router.get("/prompts")
async def get_prompts(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(CustomPrompt).where(CustomPrompt.user_id == current_user.id))
    stored = {prompt.tab_type: prompt.content for prompt in result.scalars().all()}
    return {field: stored.get(tab_type, "") for tab_type, field in PROMPT_FIELDS.items()}


@router.post("/prompts")
async def save_prompts(
    payload: PromptsUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Upsert one custom prompt per tab. A blank prompt removes the stored one.
    """
    submitted = {
        TabType.COVER_LETTER: payload.cover_letter,
        TabType.LINKEDIN: payload.linked_in,
        TabType.EMAIL: payload.email,
    }

    for tab_type, content in submitted.items():
        if content is None:
            continue

        if not content.strip():
            await db.execute(
                delete(CustomPrompt).where(
                    CustomPrompt.user_id == current_user.id,
                    CustomPrompt.tab_type == tab_type,
                )
            )
            continue

        result = await db.execute(
            select(CustomPrompt).where(
                CustomPrompt.user_id == current_user.id,
                CustomPrompt.tab_type == tab_type,
            )
        )
        prompt = result.scalar_one_or_none()
        if prompt is None:
            db.add(
                CustomPrompt(
                    user_id=current_user.id,
                    tab_type=tab_type,
                    name=PROMPT_NAMES[tab_type],
                    content=content.strip(),
                )
            )
        else:
            prompt.content = content.strip()

    return {"success": True}


# Password

@router.post("/password")
@limiter.limit(AUTH_LIMIT)
async def change_password(
    request: Request,
    payload: UserPasswordUpdate,
    current_user: User = Depends(get_current_active_user),
):
    if not payload.current_password or not payload.new_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password and new password are required",
        )

    password_error = validate_password_strength(payload.new_password)
    if password_error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=password_error)

    if not verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    current_user.hashed_password = get_password_hash(payload.new_password)
    logger.info(f"Password changed for user {current_user.id}")
    return {"success": True, "message": "Password updated successfully"}
