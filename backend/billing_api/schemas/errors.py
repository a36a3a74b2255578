from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel
from pydantic import ConfigDict


class ErrorCode(str, Enum):
    """Application error codes carried by AppError and logged with it."""

    # Authentication & authorization
    UNAUTHENTICATED = "UNAUTHENTICATED"
    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Validation & input
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    # Resources
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_ALREADY_EXISTS"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    RESOURCE_LOCKED = "RESOURCE_LOCKED"

    # Billing
    PAYMENT_FAILED = "PAYMENT_FAILED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"

    # External services
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    ZARINPAL_ERROR = "ZARINPAL_ERROR"
    EMAIL_SERVICE_ERROR = "EMAIL_SERVICE_ERROR"

    # System
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def error_slug_for_status(status_code: int) -> str:
    """Map HTTP status codes to canonical error slugs."""
    if status_code == 422:
        return "validation_error"
    if status_code == 404:
        return "not_found"
    if status_code == 400:
        return "bad_request"
    if status_code >= 500:
        return "internal_error"
    if status_code == 401:
        return "unauthorized"
    if status_code == 402:
        return "payment_required"
    if status_code == 403:
        return "forbidden"
    if status_code == 409:
        return "conflict"
    if status_code == 410:
        return "gone"
    if status_code == 429:
        return "rate_limited"
    return "http_error"


class ErrorResponse(BaseModel):
    """
    Canonical API error payload.
    - error: machine-readable category
    - message: short human-readable summary
    - code: HTTP status code
    - error_code: application error code, when the error carried one
    - detail: optional structured details (validation issues, client-safe context)
    - correlation_id: echoed from the request when present
    """

    error: str
    message: str
    code: int
    error_code: Optional[str] = None
    detail: Optional[Any] = None
    correlation_id: Optional[str] = None

    # Ignore unexpected fields; callers should use model_dump(exclude_none=True)
    model_config = ConfigDict(extra="ignore")
