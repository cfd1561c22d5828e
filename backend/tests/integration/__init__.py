"""
Integration Tests Package for AI Job Master

This package contains integration tests that drive the FastAPI app over
HTTP against an in-memory SQLite database. LLM providers, model listing and
the payment provider are patched at the service boundary.

Test Organization:
- test_auth_api.py: registration, login and email verification
- test_generate_api.py: generation, quotas and misuse handling
- test_content_api.py: saves, idempotency, history and CSV export
- test_settings_api.py: API keys, resumes, preferences, prompts and password
- test_notifications_api.py: follow-up reminders and follow-up search
- test_admin_api.py: user management, shared keys, limits and reporting
- test_payment_api.py: checkout and webhook handling
- test_app.py: health, error bodies and public stats

Usage:
    pytest backend/tests/integration/
"""
