"""
Propagation policy per error-context variant.

Maps each context ``type`` to a tier (recoverable / transient / fatal), an
HTTP status, an application error code and a severity, and decides how much
of a context a client is allowed to see.
"""
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from billing_api.core.guards import context_type
from billing_api.schemas.errors import ErrorCode, ErrorSeverity


class ErrorTier(str, Enum):
    recoverable = "recoverable"
    transient = "transient"
    fatal = "fatal"


_TIERS: Dict[str, ErrorTier] = {
    "authentication": ErrorTier.recoverable,
    "authorization": ErrorTier.recoverable,
    "validation": ErrorTier.recoverable,
    "not_found": ErrorTier.recoverable,
    "conflict": ErrorTier.recoverable,
    "rate_limit": ErrorTier.recoverable,
    "insufficient_funds": ErrorTier.recoverable,
    "database": ErrorTier.transient,
    "external_service": ErrorTier.transient,
    "email_service": ErrorTier.transient,
    "payment": ErrorTier.transient,
    "zarinpal": ErrorTier.transient,
    "internal": ErrorTier.fatal,
}

_STATUS_CODES: Dict[str, int] = {
    "authentication": 401,
    "authorization": 403,
    "payment": 402,
    "insufficient_funds": 402,
    "database": 500,
    "validation": 422,
    "external_service": 502,
    "zarinpal": 502,
    "email_service": 502,
    "not_found": 404,
    "conflict": 409,
    "rate_limit": 429,
    "internal": 500,
}

_ERROR_CODES: Dict[str, ErrorCode] = {
    "authentication": ErrorCode.UNAUTHENTICATED,
    "authorization": ErrorCode.UNAUTHORIZED,
    "payment": ErrorCode.PAYMENT_FAILED,
    "insufficient_funds": ErrorCode.INSUFFICIENT_FUNDS,
    "database": ErrorCode.DATABASE_ERROR,
    "validation": ErrorCode.VALIDATION_ERROR,
    "external_service": ErrorCode.EXTERNAL_SERVICE_ERROR,
    "zarinpal": ErrorCode.ZARINPAL_ERROR,
    "email_service": ErrorCode.EMAIL_SERVICE_ERROR,
    "not_found": ErrorCode.RESOURCE_NOT_FOUND,
    "conflict": ErrorCode.RESOURCE_CONFLICT,
    "rate_limit": ErrorCode.RATE_LIMIT_EXCEEDED,
    "internal": ErrorCode.INTERNAL_SERVER_ERROR,
}

_SEVERITIES: Dict[str, ErrorSeverity] = {
    "authentication": ErrorSeverity.MEDIUM,
    "authorization": ErrorSeverity.MEDIUM,
    "payment": ErrorSeverity.HIGH,
    "insufficient_funds": ErrorSeverity.MEDIUM,
    "database": ErrorSeverity.HIGH,
    "validation": ErrorSeverity.LOW,
    "external_service": ErrorSeverity.HIGH,
    "zarinpal": ErrorSeverity.HIGH,
    "email_service": ErrorSeverity.MEDIUM,
    "not_found": ErrorSeverity.LOW,
    "conflict": ErrorSeverity.LOW,
    "rate_limit": ErrorSeverity.LOW,
    "internal": ErrorSeverity.CRITICAL,
}

# Authentication contexts refine their code by failure reason
_AUTH_REASON_CODES: Dict[str, ErrorCode] = {
    "token_expired": ErrorCode.TOKEN_EXPIRED,
    "account_locked": ErrorCode.RESOURCE_LOCKED,
}

SENSITIVE_KEY_PARTS = ("password", "token", "secret", "key", "authorization")
REDACTED = "[REDACTED]"


def tier_for(context: Any) -> ErrorTier:
    return _TIERS.get(context_type(context) or "internal", ErrorTier.fatal)


def is_retryable(context: Any) -> bool:
    """Only transient infrastructure failures are candidates for an outer retry."""
    return tier_for(context) is ErrorTier.transient


def status_for(context: Any) -> int:
    return _STATUS_CODES.get(context_type(context) or "internal", 500)


def code_for(context: Any) -> ErrorCode:
    tag = context_type(context) or "internal"
    if tag == "authentication":
        reason = getattr(context, "failure_reason", None)
        if isinstance(context, Mapping):
            reason = context.get("failureReason", context.get("failure_reason"))
        return _AUTH_REASON_CODES.get(reason, ErrorCode.UNAUTHENTICATED)
    return _ERROR_CODES.get(tag, ErrorCode.INTERNAL_SERVER_ERROR)


def severity_for(context: Any) -> ErrorSeverity:
    return _SEVERITIES.get(context_type(context) or "internal", ErrorSeverity.CRITICAL)


def redact(data: Any) -> Any:
    """Replace values under sensitive-looking keys, recursing into containers."""
    if isinstance(data, Mapping):
        cleaned = {}
        for key, value in data.items():
            if isinstance(key, str) and any(part in key.lower() for part in SENSITIVE_KEY_PARTS):
                cleaned[key] = REDACTED
            else:
                cleaned[key] = redact(value)
        return cleaned
    if isinstance(data, (list, tuple)):
        return [redact(item) for item in data]
    return data


def context_dict(context: Any) -> Dict[str, Any]:
    if isinstance(context, Mapping):
        return dict(context)
    to_dict = getattr(context, "to_dict", None)
    if to_dict is not None:
        return to_dict()
    return {}


def public_detail(context: Any, status_code: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    The part of a context a client may see.

    ``status_code`` is the status actually returned; it defaults to the one
    implied by the context. Server-side failures (5xx) expose nothing; their
    full context belongs in logs only. Everything else is returned with
    sensitive keys redacted.
    """
    status = status_code if status_code is not None else status_for(context)
    if context is None or status >= 500:
        return None
    return redact(context_dict(context))
