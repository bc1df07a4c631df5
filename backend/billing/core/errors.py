"""Error Hierarchy: typed, categorized exceptions for every billing failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Every BillingError carries kind == ErrorKind.DOMAIN; raw failures carry no kind
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Classification is a tag checked structurally (is_domain_error), not isinstance:
      any exception exposing kind == ErrorKind.DOMAIN counts as already classified
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

UNKNOWN_ERROR_MESSAGE = "Unknown error"


class ErrorKind(str, Enum):
    """Classification tag distinguishing domain errors from raw failures."""
    DOMAIN = "domain"


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    PAYMENT = "payment"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    operation: str | None = None
    resource_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class BillingError(Exception):
    """Base exception for all classified billing errors."""

    kind = ErrorKind.DOMAIN

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "operation": self.context.operation,
                    "resource_id": self.context.resource_id,
                },
            }
        }


# --- Domain Errors (400-level) ---------------------------------

class ValidationError(BillingError):
    """Input failed a business validation rule."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ResourceNotFoundError(BillingError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.resource_id = resource_id
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )
        self.resource_type = resource_type


class ConflictError(BillingError):
    """Write collides with existing state (duplicate key, concurrent update)."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class PaymentRequiredError(BillingError):
    """Operation needs an active paid subscription."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "PAYMENT_REQUIRED", ErrorCategory.PAYMENT,
            ErrorSeverity.WARNING, context, 402,
        )


# --- Infrastructure Errors (500-level) -------------------------

class DatabaseError(BillingError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class OperationFailedError(BillingError):
    """Unclassified failure normalized into the uniform server-fault shape."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INTERNAL_ERROR", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )


# --- Classification ---------------------------------------------

def is_domain_error(exc: BaseException) -> bool:
    """True when the failure already carries the domain classification tag."""
    return getattr(exc, "kind", None) is ErrorKind.DOMAIN


def describe_failure(exc: BaseException) -> str:
    """Human message of a raw failure, or the unknown-error fallback."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or UNKNOWN_ERROR_MESSAGE


def to_domain_error(
    exc: BaseException, default_message: str, operation: str | None = None,
) -> BillingError:
    """Return exc untouched if classified, else wrap it as OperationFailedError.

    The wrapped error answers clients with default_message only; the raw
    failure text stays in message and __cause__ for logs.
    """
    if is_domain_error(exc):
        return exc
    return OperationFailedError(
        f"{default_message}: {describe_failure(exc)}",
        ErrorContext(operation=operation, user_message=default_message),
    )
