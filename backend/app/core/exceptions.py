"""Custom exceptions for AI Job Master."""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base exception for service-related errors."""
    pass


class ApiKeyNotConfiguredError(ServiceError):
    """Raised when the user has no API key stored for the model's provider."""
    pass


class ModelNotAvailableError(ServiceError):
    """Raised when a model (or its shared key) is not available."""
    pass


class ProviderError(ServiceError):
    """Raised when an LLM provider call fails."""
    pass


class DecryptionError(ServiceError):
    """Raised when an encrypted value cannot be decrypted."""
    pass


class PaymentError(ServiceError):
    """Raised when the payment provider rejects a request."""
    pass


class InputValidationError(ValueError):
    """Raised when user input fails sanitisation."""
    pass


class UsageLimitError(ServiceError):
    """Raised when a generation or activity quota is exhausted."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
