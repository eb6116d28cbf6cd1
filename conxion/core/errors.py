"""Error Hierarchy — typed, categorized exceptions for all ConXion failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the REST envelope {"ok": false, "error": {...}}
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with ConxionError base: FastAPI global handler catches all
    - RuleViolationError carries the snake_case rule code as both code and message,
      because clients branch on it; routes may re-map its HTTP status
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


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
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    resource_id: str | None = None
    debug_info: dict[str, Any] | None = None


class ConxionError(Exception):
    """Base exception for all ConXion errors."""

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
            "ok": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
            },
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvalidRequestError(ConxionError):
    """Request payload is missing required fields or is malformed."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_REQUEST", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class RuleViolationError(ConxionError):
    """A domain rule rejected the operation (e.g. cannot_reference_self)."""
    def __init__(
        self,
        code: str,
        message: str | None = None,
        http_status: int = 400,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message or code, code, ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, http_status,
        )

    @classmethod
    def from_rule(cls, error: dict) -> "RuleViolationError":
        """Build from the error dict returned by the pure enforce_* checks."""
        return cls(
            error["error_code"],
            error.get("message"),
            error.get("http_status", 400),
        )


class AuthenticationError(ConxionError):
    """Bearer token missing or invalid."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "UNAUTHENTICATED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class NotAuthorizedError(ConxionError):
    """Caller is authenticated but not allowed to act on the resource."""
    def __init__(
        self, message: str = "Not authorized.", code: str = "not_authorized",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.AUTHORIZATION,
            ErrorSeverity.ERROR, context, 403,
        )


class ResourceNotFoundError(ConxionError):
    """Requested resource does not exist."""
    def __init__(
        self, message: str, code: str = "not_found",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(ConxionError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
