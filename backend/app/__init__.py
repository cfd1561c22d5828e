"""
AI Job Master - Main Application Package

This package contains the FastAPI backend for AI Job Master. It provides APIs
for generating cover letters, LinkedIn messages and outreach emails, and for
tracking the applications they are sent for.

Key Features:
- Generation with the user's own OpenAI, Anthropic or Gemini key
- Admin-provisioned shared keys for PLUS users, with monthly quotas
- Application history with outreach status and CSV export
- Follow-up reminders and follow-up thread rules
- Coinbase Commerce checkout for the PLUS plan

Architecture:
- FastAPI with async/await support
- Async SQLAlchemy 2.0 (SQLite for development, PostgreSQL in production)
- In-process TTL caches for model lists, limits and idempotency keys
- Pydantic v2 for data validation

Package Structure:
- api/: REST API endpoints and route handlers
- core/: Core infrastructure (config, security, database, logging, caching)
- models/: SQLAlchemy database models
- schemas/: Pydantic schemas for request validation
- services/: Business logic services and LLM provider integrations
- utils/: Encryption and input sanitization helpers

Usage:
    from app.main import app
    from app.core import get_settings, get_db
    from app.services import GenerationService, NotificationService
"""

# Package metadata
__version__ = "1.0.0"
__title__ = "AI Job Master"
__description__ = "AI-generated job application outreach and tracking"
__license__ = "MIT"

# Core imports for package-level access
from app.core.config import get_settings
from app.core.database import get_db

# Package-level configuration
settings = get_settings()

# Export commonly used items
__all__ = [
    "__version__",
    "__title__",
    "__description__",
    "__license__",
    "get_settings",
    "get_db",
    "settings",
]
