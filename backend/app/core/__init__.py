"""
Core module initialization for AI Job Master.

This module provides access to the core functionality: configuration,
security, database, logging and caching.

Usage:
    from app.core import get_settings, get_db, setup_logging
    from app.core.security import create_access_token, verify_password
    from app.core.database import DatabaseManager, get_db_session
"""

from .config import (
    Settings,
    get_settings,
    settings
)

from .security import (
    get_password_hash,
    verify_password,
    validate_password_strength,
    create_access_token,
    create_email_verification_token,
    verify_token,
    create_signature,
    verify_signature,
    mask_sensitive_data,
    get_client_ip,
    SecurityHeaders,
    constant_time_compare,
    get_current_user,
    get_current_active_user,
    get_verified_user,
    get_current_admin_user,
    pwd_context
)

from .database import (
    Base,
    DatabaseManager,
    db_manager,
    get_db,
    get_db_session,
    init_db,
    close_db,
    check_db_health,
    paginate_query,
    count_query_results,
    pagination_info,
    utcnow
)

from .logging import (
    setup_logging,
    get_logger,
    set_request_context,
    clear_request_context,
    PerformanceLogger,
    SecurityLogger,
    performance_logger,
    security_logger,
    request_id_var,
    user_id_var
)

from .cache import (
    TTLCache,
    cache_stats,
    clear_all_caches
)

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    "settings",

    # Security
    "get_password_hash",
    "verify_password",
    "validate_password_strength",
    "create_access_token",
    "create_email_verification_token",
    "verify_token",
    "create_signature",
    "verify_signature",
    "mask_sensitive_data",
    "get_client_ip",
    "SecurityHeaders",
    "constant_time_compare",
    "get_current_user",
    "get_current_active_user",
    "get_verified_user",
    "get_current_admin_user",
    "pwd_context",

    # Database
    "Base",
    "DatabaseManager",
    "db_manager",
    "get_db",
    "get_db_session",
    "init_db",
    "close_db",
    "check_db_health",
    "paginate_query",
    "count_query_results",
    "pagination_info",
    "utcnow",

    # Logging
    "setup_logging",
    "get_logger",
    "set_request_context",
    "clear_request_context",
    "PerformanceLogger",
    "SecurityLogger",
    "performance_logger",
    "security_logger",
    "request_id_var",
    "user_id_var",

    # Caching
    "TTLCache",
    "cache_stats",
    "clear_all_caches",
]
