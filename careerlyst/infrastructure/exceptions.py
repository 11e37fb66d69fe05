"""
Custom Exceptions for Careerlyst Billing

Hierarchical exception classes for proper error handling across layers.
Each class maps to one HTTP status in the API exception handlers.
"""

from typing import Optional, Dict, Any


class CareerlystError(Exception):
    """Base exception for all Careerlyst errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.message,
            "type": self.__class__.__name__,
            "details": self.details
        }


class ValidationError(CareerlystError):
    """Raised when input or upstream data fails validation."""
    status_code = 400


class MissingPeriodError(ValidationError):
    """Raised when a subscription's billing period cannot be determined."""

    def __init__(
        self,
        subscription_id: Optional[str],
        period_start: Any = None,
        period_end: Any = None,
    ):
        super().__init__(
            "Subscription missing required period dates",
            details={
                "subscription_id": subscription_id,
                "current_period_start": period_start,
                "current_period_end": period_end,
            },
        )


class NotFoundError(CareerlystError):
    """Raised when a requested resource is not found."""
    status_code = 404

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        identifier: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if resource:
            details["resource"] = resource
        if identifier:
            details["identifier"] = identifier
        super().__init__(message, details, original_error)


class ConflictError(CareerlystError):
    """Raised when another request already holds the work; caller should retry."""
    status_code = 409


class ReservationConflictError(ConflictError):
    """Raised when a reservation row already exists for the same key."""

    def __init__(self, key: Dict[str, Any], original_error: Optional[Exception] = None):
        super().__init__(
            "A request for this company is already in progress",
            details={"key": key},
            original_error=original_error,
        )


class UpstreamServiceError(CareerlystError):
    """Raised when an external API returns an error."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if service:
            details["service"] = service
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class StripeServiceError(UpstreamServiceError):
    """Raised when a Stripe API call fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, "stripe", operation, original_error)


class WizaServiceError(UpstreamServiceError):
    """Raised when a Wiza API call fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, "wiza", operation, original_error)


class PersistenceError(CareerlystError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class ConfigurationError(CareerlystError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
