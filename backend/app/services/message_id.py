"""
Human readable message identifiers such as ``LNK-20231125-A3F9``.
"""

import re
import secrets
import string

from app.core.database import utcnow

_PREFIXES = {"linkedin": "LNK", "email": "EML"}
_ALPHABET = string.ascii_uppercase + string.digits
_MESSAGE_ID_RE = re.compile(r"^(LNK|EML)-\d{8}-[A-Z0-9]{4}$")


def generate_message_id(message_kind: str) -> str:
    """Return ``LNK-YYYYMMDD-XXXX`` for "linkedin" or ``EML-YYYYMMDD-XXXX`` otherwise."""
    prefix = _PREFIXES.get(message_kind, "EML")
    date_str = utcnow().strftime("%Y%m%d")
    code = "".join(secrets.choice(_ALPHABET) for _ in range(4))
    return f"{prefix}-{date_str}-{code}"


def is_valid_message_id(message_id: str) -> bool:
    return bool(message_id) and bool(_MESSAGE_ID_RE.match(message_id))
