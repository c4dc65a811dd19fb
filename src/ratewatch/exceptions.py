"""Custom exception classes for the ratewatch application."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ValidationError


class RatewatchError(Exception):
    """Base exception for ratewatch application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationException(RatewatchError):
    """Exception for validation errors."""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, str]] = None,
    ):
        super().__init__(
            message=message,
            details={"field_errors": field_errors or {}},
        )

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationException":
        """Flatten a pydantic ValidationError into field errors."""
        field_errors = {}
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"]) or "__root__"
            field_errors[field_path] = error["msg"]
        return cls(field_errors=field_errors)


class AlertNotFoundError(RatewatchError):
    """Exception for an alert id that is not in the store."""

    def __init__(self, alert_id: str):
        super().__init__(
            message=f"Alert with identifier '{alert_id}' not found",
            details={"alert_id": alert_id},
        )
        self.alert_id = alert_id


class PersistenceError(RatewatchError):
    """Exception for alert store read/write failures."""

    def __init__(self, operation: str, message: str):
        super().__init__(
            message=f"Alert store {operation} failed: {message}",
            details={"operation": operation},
        )
        self.operation = operation


class ProviderError(RatewatchError):
    """Base exception for rate provider failures."""

    def __init__(self, provider: str, operation: str, message: str):
        super().__init__(
            message=f"{provider} provider error during {operation}: {message}",
            details={"provider": provider, "operation": operation},
        )
        self.provider = provider


class ProviderNetworkError(ProviderError):
    """Timeout, connection failure or server-side error from a provider."""


class RateLimitedError(ProviderError):
    """Provider refused the request because of rate limiting."""

    def __init__(
        self, provider: str, operation: str, retry_after: Optional[int] = None
    ):
        super().__init__(provider, operation, "rate limit exceeded")
        self.retry_after = retry_after
        self.details["retry_after"] = retry_after


class QuoteNotFoundError(ProviderError):
    """Provider does not know the requested pair or asset."""


class SchedulerErrorCode(Enum):
    """Failure classes for background job submission."""

    UNAVAILABLE = "unavailable"
    TOO_MANY_PENDING = "too_many_pending"
    NOT_PERMITTED = "not_permitted"
    UNKNOWN = "unknown"


class SchedulerError(RatewatchError):
    """Exception raised by a scheduler backend when a request is refused."""

    def __init__(self, code: SchedulerErrorCode, message: str, job_id: str = None):
        super().__init__(
            message=message,
            details={"code": code.value, "job_id": job_id},
        )
        self.code = code
        self.job_id = job_id


class NotificationError(RatewatchError):
    """Exception for notification delivery errors."""

    def __init__(self, channel: str, message: str):
        super().__init__(
            message=f"{channel} notification failed: {message}",
            details={"channel": channel},
        )
        self.channel = channel
