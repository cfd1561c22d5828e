"""
Enumerations shared by the content models.
"""

import enum


class ApplicationStatus(str, enum.Enum):
    """Outreach status of a generated document or message."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    DONE = "DONE"
    GHOST = "GHOST"
    REQUESTED = "REQUESTED"


class Length(str, enum.Enum):
    """Requested length of generated content."""
    CONCISE = "CONCISE"
    MEDIUM = "MEDIUM"
    LONG = "LONG"


class LinkedInMessageType(str, enum.Enum):
    NEW = "NEW"
    FOLLOW_UP = "FOLLOW_UP"
    CONNECTION_NOTE = "CONNECTION_NOTE"


class EmailMessageType(str, enum.Enum):
    NEW = "NEW"
    FOLLOW_UP = "FOLLOW_UP"


class ActivityType(str, enum.Enum):
    """Kinds of activity counted toward the monthly quota."""
    COVER_LETTER = "COVER_LETTER"
    LINKEDIN_MESSAGE = "LINKEDIN_MESSAGE"
    EMAIL_MESSAGE = "EMAIL_MESSAGE"


class TabType(str, enum.Enum):
    """Generator tab a custom prompt applies to."""
    COVER_LETTER = "COVER_LETTER"
    LINKEDIN = "LINKEDIN"
    EMAIL = "EMAIL"


class Provider(str, enum.Enum):
    """LLM vendors whose keys may be stored."""
    OPENAI = "OPENAI"
    ANTHROPIC = "ANTHROPIC"
    GEMINI = "GEMINI"

    @property
    def slug(self) -> str:
        return self.value.lower()


def parse_enum(enum_class, value, default=None):
    """Return the enum member for ``value`` or ``default`` when it is not valid."""
    if value is None:
        return default
    try:
        return enum_class(value)
    except ValueError:
        return default
