"""
Services package for AI Job Master.

Business logic shared by the API routers: content generation, API key
resolution, usage tracking, history, notifications, payments and stats.
Routers import the concrete modules directly; the names below are the
public entry points.
"""

from app.services.api_key_service import ResolvedKey, resolve_api_key
from app.services.generation_service import GenerationService, parse_email_content
from app.services.history_service import (
    backfill_activity_history,
    export_history_csv,
    get_history,
)
from app.services.message_id import generate_message_id, is_valid_message_id
from app.services.misuse_detection import detect_misuse, get_misuse_message, set_misuse_message
from app.services.notification_service import NotificationService
from app.services.payment_service import create_charge, handle_webhook_event, verify_webhook_signature
from app.services.resume_parser import extract_text
from app.services.shared_keys import get_available_shared_models, get_shared_api_key, is_shared_model
from app.services.stats_service import (
    get_analytics,
    get_dashboard_stats,
    get_platform_stats,
    get_public_stats,
)
from app.services.tracking import (
    can_create_activity,
    check_activity_limit,
    check_usage_limits,
    reset_monthly_counters,
    track_activity,
    track_generation,
)

__all__ = [
    "ResolvedKey",
    "resolve_api_key",
    "GenerationService",
    "parse_email_content",
    "get_history",
    "export_history_csv",
    "backfill_activity_history",
    "generate_message_id",
    "is_valid_message_id",
    "detect_misuse",
    "get_misuse_message",
    "set_misuse_message",
    "NotificationService",
    "create_charge",
    "handle_webhook_event",
    "verify_webhook_signature",
    "extract_text",
    "get_shared_api_key",
    "is_shared_model",
    "get_available_shared_models",
    "get_dashboard_stats",
    "get_public_stats",
    "get_platform_stats",
    "get_analytics",
    "can_create_activity",
    "check_activity_limit",
    "check_usage_limits",
    "reset_monthly_counters",
    "track_activity",
    "track_generation",
]
