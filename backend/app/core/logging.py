"""
Logging setup for AI Job Master.

Everything goes through the stdlib ``logging`` tree:

- ``setup_logging()`` installs one console handler (JSON in production,
  coloured text otherwise) and an optional rotating JSON file.
- Request and user ids live in context variables, set by the request
  middleware and the auth dependency, and are stamped on every record.
- ``performance_logger`` records request and provider call timings.
- ``security_logger`` records logins, denied admin access, admin actions,
  bad webhook signatures and prompt misuse.
"""

import sys
import json
import logging
import logging.handlers
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pathlib import Path
from contextvars import ContextVar

from app.core.config import get_settings

settings = get_settings()

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_ATTRS = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

# Third-party loggers and the level they are held at.
_LIBRARY_LEVELS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "anthropic": logging.WARNING,
    "slowapi": logging.WARNING,
    "asyncio": logging.WARNING,
}

# Provider calls slower than this are logged at WARNING.
SLOW_LLM_CALL_SECONDS = 30.0


def _context() -> Dict[str, str]:
    context = {}
    request_id = request_id_var.get()
    if request_id:
        context["request_id"] = request_id
    user_id = user_id_var.get()
    if user_id:
        context["user_id"] = user_id
    return context


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, with request context and ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_context())

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and key not in entry and value is not None:
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Compact coloured lines for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{timestamp} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        request_id = request_id_var.get()
        if request_id:
            line += f" [{request_id[:8]}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextFilter(logging.Filter):
    """Copy the request and user ids onto the record for plain-text handlers."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _context().items():
            setattr(record, key, value)
        return True


class _EventLogger:
    """Base for loggers that emit records tagged with an ``event_type``."""

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _emit(self, level: int, message: str, event_type: str, **fields: Any) -> None:
        self.logger.log(level, message, extra={"event_type": event_type, **fields})


class PerformanceLogger(_EventLogger):
    """Timings for HTTP requests and LLM provider calls."""

    def __init__(self, logger_name: str = "performance"):
        super().__init__(logger_name)

    def log_request_time(
        self,
        method: str,
        path: str,
        duration: float,
        status_code: int,
        user_id: Optional[str] = None,
    ) -> None:
        self._emit(
            logging.INFO,
            f"{method} {path} -> {status_code} in {duration:.3f}s",
            "request_processed",
            method=method,
            path=path,
            duration=round(duration, 4),
            status_code=status_code,
            user_id=user_id,
        )

    def log_llm_request(self, provider: str, model: str, duration: float, success: bool = True) -> None:
        if not success:
            level = logging.ERROR
        elif duration > SLOW_LLM_CALL_SECONDS:
            level = logging.WARNING
        else:
            level = logging.INFO
        self._emit(
            level,
            f"{provider} call to {model} {'succeeded' if success else 'failed'} in {duration:.2f}s",
            "llm_request",
            provider=provider,
            model=model,
            duration=round(duration, 4),
            success=success,
        )


class SecurityLogger(_EventLogger):
    """Audit trail for authentication, admin actions and abuse signals."""

    def __init__(self, logger_name: str = "security"):
        super().__init__(logger_name)

    def log_login_attempt(
        self,
        email: str,
        success: bool,
        ip_address: str,
        user_agent: Optional[str] = None,
    ) -> None:
        self._emit(
            logging.INFO if success else logging.WARNING,
            "Login successful" if success else "Login failed",
            "login_attempt",
            email=email,
            success=success,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def log_permission_denied(self, user_id: str, resource: str, action: str, ip_address: str) -> None:
        self._emit(
            logging.WARNING,
            f"Admin access denied for {action} {resource}",
            "permission_denied",
            user_id=user_id,
            resource=resource,
            action=action,
            ip_address=ip_address,
        )

    def log_admin_action(
        self,
        admin_id: str,
        action: str,
        target: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._emit(
            logging.INFO,
            f"Admin action: {action}",
            "admin_action",
            admin_id=admin_id,
            action=action,
            target=target,
            details=details or {},
        )

    def log_suspicious_activity(
        self,
        activity_type: str,
        details: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Bad webhook signatures and detected prompt misuse."""
        self._emit(
            logging.WARNING,
            f"Suspicious activity: {activity_type}",
            "suspicious_activity",
            activity_type=activity_type,
            details=details,
            ip_address=ip_address,
            user_id=user_id,
        )


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if settings.is_production and settings.log_format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(ColoredConsoleFormatter())
    return handler


def _file_handler(log_file: str) -> Optional[logging.Handler]:
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        logging.getLogger(__name__).error(f"File logging disabled, cannot open {log_file}: {e}")
        return None
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logging() -> None:
    """Configure the root logger from settings. Safe to call more than once."""
    level = getattr(logging, settings.log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handlers = [_console_handler()]
    if settings.log_file:
        file_handler = _file_handler(settings.log_file)
        if file_handler is not None:
            handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(ContextFilter())
        root_logger.addHandler(handler)

    for name, library_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)
    if settings.is_production:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging initialized at {settings.log_level} ({settings.log_format})")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_request_context(request_id: str, user_id: Optional[str] = None) -> None:
    """Bind the request id (and user id, when known) to the current context."""
    request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)


def set_user_context(user_id: str) -> None:
    user_id_var.set(user_id)


def clear_request_context() -> None:
    request_id_var.set(None)
    user_id_var.set(None)


performance_logger = PerformanceLogger()
security_logger = SecurityLogger()


def log_startup_info() -> None:
    get_logger("startup").info(
        f"Starting {settings.app_name} {settings.app_version}",
        extra={
            "environment": settings.env,
            "debug": settings.debug,
            "database": settings.database_url.split("://", 1)[0],
            "rate_limit_enabled": settings.rate_limit_enabled,
            "email_verification": settings.require_email_verification,
        },
    )


def log_shutdown_info() -> None:
    get_logger("shutdown").info(f"Stopping {settings.app_name}", extra={"environment": settings.env})
