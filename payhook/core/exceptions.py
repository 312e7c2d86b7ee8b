"""
Custom Exception Hierarchy

Structured exceptions shared by the webhook engine and its admin API.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    NOT_FOUND = "ERR_1002"

    # Webhook errors (2xxx)
    WEBHOOK_EVENT_NOT_FOUND = "ERR_2001"
    WEBHOOK_UNKNOWN_PROVIDER = "ERR_2002"
    WEBHOOK_INVALID_PAYLOAD = "ERR_2003"
    WEBHOOK_NOT_RETRYABLE = "ERR_2004"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class WebhookException(AppException):
    """Base exception for webhook processing errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int = 400,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        if provider:
            self.details["provider"] = provider


class UnknownProviderError(WebhookException):
    """No gateway adapter is registered for the event's provider"""

    def __init__(self, provider: str):
        super().__init__(
            message=f"Unknown webhook provider: {provider}",
            error_code=ErrorCode.WEBHOOK_UNKNOWN_PROVIDER,
            provider=provider,
        )


class InvalidWebhookPayloadError(WebhookException):
    """The stored payload lacks a field the adapter needs"""

    def __init__(self, provider: str, field: str):
        super().__init__(
            message=f"{provider} payload is missing '{field}'",
            error_code=ErrorCode.WEBHOOK_INVALID_PAYLOAD,
            provider=provider,
            details={"field": field},
        )


class WebhookEventNotFoundError(NotFoundException):
    """Raised when a webhook event does not exist"""

    def __init__(self, event_id: str):
        super().__init__(
            resource="WebhookEvent",
            identifier=event_id,
            error_code=ErrorCode.WEBHOOK_EVENT_NOT_FOUND,
        )


class WebhookNotRetryableError(WebhookException):
    """Manual retry was requested for an event that already completed"""

    def __init__(self, event_id: str, status: str):
        super().__init__(
            message=f"Webhook event {event_id} is {status} and cannot be retried",
            error_code=ErrorCode.WEBHOOK_NOT_RETRYABLE,
            details={"event_id": event_id, "status": status},
            status_code=409,
        )
