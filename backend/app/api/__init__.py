"""
API Package for AI Job Master

API Structure:
- v1/: Version 1 API endpoints
  - auth.py: Registration, login and email verification
  - users.py: Profile, dashboard stats and shared models
  - generate.py: Cover letter, LinkedIn and email generation
  - saves.py / history.py: Stored content and its outreach status
  - settings.py: API keys, resumes, preferences, prompts and password
  - notifications.py, messages.py: Follow-up reminders and follow-up search
  - payment.py: PLUS plan checkout and webhook
  - admin.py: User management, shared keys, limits and reporting
"""

from fastapi import APIRouter
from app.api.v1 import api_router as v1_router

# Main API router that includes all versions
api_router = APIRouter()

api_router.include_router(v1_router, prefix="/v1")

API_VERSION = "1.0.0"
API_TITLE = "AI Job Master API"
API_DESCRIPTION = """
## AI Job Master

Generates cover letters, LinkedIn messages and outreach emails with the
user's own OpenAI, Anthropic or Gemini key, or with admin-provided shared
keys on the PLUS plan, and tracks every application sent.

- Interactive API documentation available at `/docs`
- ReDoc documentation available at `/redoc`
"""

__all__ = ["api_router", "API_VERSION", "API_TITLE", "API_DESCRIPTION"]
