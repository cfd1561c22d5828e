"""
Detection of the canned response the models return for off-topic requests.
"""

import logging
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.settings import SystemSetting
from app.services.llm.prompts import MISUSE_MARKER

logger = logging.getLogger(__name__)

DEFAULT_MISUSE_MESSAGE = (
    "I built the platform you are using 😊, now go back to prompt and change it "
    "accordingly, I am smarter than you bro 👍"
)

MISUSE_MESSAGE_KEY = "misuse_detection_message"
MISUSE_MESSAGE_DESCRIPTION = "Message shown to users when prompt misuse is detected"

_MISUSE_JSON_RE = re.compile(r'\{\s*"misuseDetected"\s*:\s*true', re.IGNORECASE)


def detect_misuse(content: str) -> bool:
    """
    True when the response is the misuse JSON object rather than real content.

    Career content that merely mentions the marker is longer than 200
    characters and is not flagged.
    """
    trimmed = (content or "").strip()
    if len(trimmed) > 200:
        return False
    return MISUSE_MARKER in trimmed and bool(_MISUSE_JSON_RE.search(trimmed))


async def get_misuse_message(db: AsyncSession) -> str:
    try:
        result = await db.execute(select(SystemSetting).where(SystemSetting.key == MISUSE_MESSAGE_KEY))
        setting = result.scalar_one_or_none()
        if setting and setting.value:
            return setting.value
    except Exception as e:
        logger.error(f"Error fetching misuse message: {e}")
    return DEFAULT_MISUSE_MESSAGE


async def set_misuse_message(db: AsyncSession, message: str) -> None:
    result = await db.execute(select(SystemSetting).where(SystemSetting.key == MISUSE_MESSAGE_KEY))
    setting = result.scalar_one_or_none()

    if setting:
        setting.value = message
    else:
        db.add(
            SystemSetting(
                key=MISUSE_MESSAGE_KEY,
                value=message,
                description=MISUSE_MESSAGE_DESCRIPTION,
            )
        )
    await db.flush()
