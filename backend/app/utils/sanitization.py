"""
Input sanitisation for text that ends up inside LLM prompts.

Prompt-injection phrases are neutralised rather than rejected so a job
description that happens to contain one still produces output.
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from app.core.exceptions import InputValidationError

logger = logging.getLogger(__name__)

REMOVED_PLACEHOLDER = "[content removed]"

_INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(all\s+)?(previous|above|prior)\s+(instructions|prompts|rules|commands)", re.IGNORECASE),
    re.compile(r"disregard\s+(all\s+)?(previous|above|prior)\s+(instructions|prompts|rules|commands)", re.IGNORECASE),
    re.compile(r"forget\s+(all\s+)?(previous|above|prior)\s+(instructions|prompts|rules|commands)", re.IGNORECASE),
    re.compile(r"new\s+(instructions|prompt|role|task)\s*:", re.IGNORECASE),
    re.compile(r"system\s*(prompt|message|role)\s*:", re.IGNORECASE),
    re.compile(r"you\s+are\s+now\s+(a|an)", re.IGNORECASE),
    re.compile(r"pretend\s+(you|to)\s+(are|be)", re.IGNORECASE),
    re.compile(r"act\s+as\s+(if|a|an)", re.IGNORECASE),
    re.compile(r"roleplay\s+as", re.IGNORECASE),
]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_NAME_DISALLOWED_RE = re.compile(r"[^\w\s.,&'()-]")

# field -> (kind, max length)
_FIELD_RULES = {
    "jobDescription": ("prompt", 20000),
    "companyDescription": ("prompt", 10000),
    "areasOfInterest": ("prompt", 1000),
    "extraContent": ("prompt", 5000),
    "companyName": ("name", 200),
    "positionTitle": ("name", 200),
    "recipientName": ("name", 100),
    "recipientPosition": ("name", 200),
    "recipientEmail": ("email", None),
    "linkedinUrl": ("url", None),
}


def sanitize_prompt_input(text: Optional[str], max_length: int = 10000) -> str:
    if not text:
        return ""

    sanitized = text[:max_length].replace("\x00", "")

    for pattern in _INJECTION_PATTERNS:
        if pattern.search(sanitized):
            logger.warning("Potential prompt injection detected in user input")
            sanitized = pattern.sub(REMOVED_PLACEHOLDER, sanitized)

    sanitized = re.sub(r"\n{4,}", "\n\n\n", sanitized)
    return sanitized.strip()


def sanitize_name(text: Optional[str], max_length: int = 200) -> str:
    """Clean a company, position or person name ("AT&T" and "O'Reilly" survive)."""
    if not text:
        return ""

    sanitized = text.strip()[:max_length]
    sanitized = _CONTROL_CHARS_RE.sub("", sanitized)
    sanitized = _NAME_DISALLOWED_RE.sub("", sanitized)
    return sanitized.strip()


def sanitize_email(text: Optional[str]) -> str:
    if not text:
        return ""

    sanitized = text.strip().lower()
    if not _EMAIL_RE.match(sanitized):
        raise InputValidationError("Invalid email format")

    return re.sub(r"[^a-z0-9@._+-]", "", sanitized)


def sanitize_url(text: Optional[str]) -> str:
    """Accept only absolute http(s) URLs."""
    if not text:
        return ""

    sanitized = text.strip()
    parsed = urlparse(sanitized)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InputValidationError("Invalid URL format")
    return sanitized


def sanitize_api_inputs(fields: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """
    Sanitise the free-text fields of a generation request.

    Unknown fields are ignored. Empty values come back as ``None``.

    Raises:
        InputValidationError: For a malformed recipient email or LinkedIn URL
    """
    result: Dict[str, Optional[str]] = {}
    for field, (kind, max_length) in _FIELD_RULES.items():
        value = fields.get(field)
        if not value:
            result[field] = None
            continue

        if kind == "prompt":
            cleaned = sanitize_prompt_input(value, max_length)
        elif kind == "name":
            cleaned = sanitize_name(value, max_length)
        elif kind == "email":
            cleaned = sanitize_email(value)
        else:
            cleaned = sanitize_url(value)

        result[field] = cleaned or None
    return result
