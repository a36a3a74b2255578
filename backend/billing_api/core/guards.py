"""
Predicates that narrow an error context to one variant.

Guards look at the ``type`` tag only; a value with the right tag but a
missing required field still passes. Use ``is_valid_error_context`` when the
full shape matters.
"""
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from billing_api.schemas.error_context import parse_error_context


def context_type(context: Any) -> Optional[str]:
    """Return the discriminant of a context model or mapping, else None."""
    if isinstance(context, Mapping):
        tag = context.get("type")
    else:
        tag = getattr(context, "type", None)
    return tag if isinstance(tag, str) else None


def _has_type(context: Any, tag: str) -> bool:
    return context_type(context) == tag


def is_authentication_error(context: Any) -> bool:
    return _has_type(context, "authentication")


def is_authorization_error(context: Any) -> bool:
    return _has_type(context, "authorization")


def is_payment_error(context: Any) -> bool:
    return _has_type(context, "payment")


def is_insufficient_funds_error(context: Any) -> bool:
    return _has_type(context, "insufficient_funds")


def is_database_error(context: Any) -> bool:
    return _has_type(context, "database")


def is_validation_error(context: Any) -> bool:
    return _has_type(context, "validation")


def is_external_service_error(context: Any) -> bool:
    return _has_type(context, "external_service")


def is_zarinpal_error(context: Any) -> bool:
    return _has_type(context, "zarinpal")


def is_email_service_error(context: Any) -> bool:
    return _has_type(context, "email_service")


def is_not_found_error(context: Any) -> bool:
    return _has_type(context, "not_found")


def is_conflict_error(context: Any) -> bool:
    return _has_type(context, "conflict")


def is_rate_limit_error(context: Any) -> bool:
    return _has_type(context, "rate_limit")


def is_internal_error(context: Any) -> bool:
    return _has_type(context, "internal")


def is_valid_error_context(context: Any, kind: Optional[str] = None) -> bool:
    """Full shape check: the value parses as a context (of ``kind`` if given)."""
    if kind is not None and context_type(context) != kind:
        return False
    if not isinstance(context, Mapping):
        to_dict = getattr(context, "to_dict", None)
        if to_dict is None:
            return False
        context = to_dict()
    try:
        parse_error_context(context)
    except ValidationError:
        return False
    return True
