"""
Zarinpal gateway error handling.

Parses gateway response bodies, maps gateway status codes onto HTTP statuses
and user-facing messages, and raises ``AppError`` with a ``zarinpal``
context so the gateway code and authority travel with the failure.
"""
import json
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field, ValidationError

from billing_api.core.builders import ErrorContextBuilders
from billing_api.core.errors import AppError
from billing_api.core.logging import api_logger


class ZarinPalError(BaseModel):
    message: str
    code: int  # gateway sends numeric strings at times; pydantic coerces
    validations: List[Any] = Field(default_factory=list)


class ZarinPalUserMessage(NamedTuple):
    user_message: str
    action_required: str
    severity: str  # error | warning | info


class ParsedZarinPalResponse(NamedTuple):
    is_error: bool
    error: Optional[ZarinPalError] = None
    data: Optional[Any] = None


_HTTP_STATUS_BY_CODE: Dict[int, int] = {
    -74: 401,  # invalid merchant id
    -80: 403,  # merchant has no direct debit access
    -9: 400,  # transaction failure
    -33: 400,  # transaction not successful
    -52: 400,  # bank error
    -10: 401,  # invalid ip or merchant
    -15: 401,
    -40: 401,
    -11: 503,  # merchant not active
    -17: 503,
    -12: 429,  # attempts limit exceeded
    -31: 404,  # transaction not found
    -34: 404,
    -41: 400,  # invalid amount
    -30: 403,  # service not allowed
    -53: 410,  # transaction cancelled
}

_AUTH_CODES = frozenset({-74, -80, -10, -15, -40})
_SERVICE_CODES = frozenset({-11, -17, -30})

_USER_MESSAGES: Dict[int, ZarinPalUserMessage] = {
    -9: ZarinPalUserMessage(
        "Payment transaction failed. Please try again.",
        "Retry payment with same or different payment method",
        "error",
    ),
    -74: ZarinPalUserMessage(
        "Payment system configuration error. Please contact support to resolve this issue.",
        "Contact technical support to update merchant configuration",
        "error",
    ),
    -80: ZarinPalUserMessage(
        "Direct debit service is not activated for this account. Please contact support to enable this feature.",
        "Request direct debit service activation from ZarinPal support",
        "error",
    ),
    -11: ZarinPalUserMessage(
        "Payment gateway is currently inactive. Please contact support.",
        "Contact support to activate merchant account",
        "error",
    ),
    -12: ZarinPalUserMessage(
        "Too many payment attempts. Please try again later.",
        "Wait and retry after some time",
        "warning",
    ),
    -52: ZarinPalUserMessage(
        "Bank processing error occurred. Please try again.",
        "Retry payment or try different payment method",
        "error",
    ),
    -53: ZarinPalUserMessage(
        "Payment was cancelled by user or system.",
        "Start new payment if needed",
        "info",
    ),
    100: ZarinPalUserMessage("Payment verified successfully.", "No action required", "info"),
    101: ZarinPalUserMessage("This payment has already been verified.", "No action required", "info"),
}

_FALLBACK_USER_MESSAGE = ZarinPalUserMessage(
    "An unexpected payment error occurred. Please try again or contact support.",
    "Contact technical support for assistance",
    "error",
)


def map_zarinpal_status(code: int) -> int:
    return _HTTP_STATUS_BY_CODE.get(code, 400)


def is_zarinpal_auth_error(code: int) -> bool:
    return code in _AUTH_CODES


def is_zarinpal_service_error(code: int) -> bool:
    return code in _SERVICE_CODES


def get_zarinpal_user_message(code: int) -> ZarinPalUserMessage:
    return _USER_MESSAGES.get(code, _FALLBACK_USER_MESSAGE)


def parse_zarinpal_response(response_text: str) -> ParsedZarinPalResponse:
    """
    Classify a raw gateway response body.

    An ``errors`` object that matches the gateway error shape wins. Otherwise a
    missing ``data``, or an empty one next to ``errors``, counts as an error.
    Unparseable bodies are errors with nothing extracted.
    """
    try:
        parsed = json.loads(response_text)
    except (TypeError, ValueError):
        return ParsedZarinPalResponse(is_error=True)
    if not isinstance(parsed, dict):
        return ParsedZarinPalResponse(is_error=True)

    errors = parsed.get("errors")
    if isinstance(errors, dict) and errors:
        try:
            return ParsedZarinPalResponse(is_error=True, error=ZarinPalError.model_validate(errors))
        except ValidationError:
            pass  # malformed errors object: classify by ``data`` below

    data = parsed.get("data")
    # the gateway answers failures with an empty ``data`` next to ``errors``
    empty = isinstance(data, (dict, list)) and not data
    is_error = data is None or (empty and errors is not None)
    return ParsedZarinPalResponse(is_error=is_error, data=data)


def raise_zarinpal_error(
    operation: str,
    http_status: int,
    response_text: str,
    authority: Optional[str] = None,
) -> None:
    """Raise an AppError describing a failed gateway call."""
    parsed = parse_zarinpal_response(response_text)
    context_fields: Dict[str, Any] = {
        "operation": operation,
        "authority": authority,
        "originalHttpStatus": http_status,
    }

    if parsed.is_error and parsed.error is not None:
        code = parsed.error.code
        context = ErrorContextBuilders.zarinpal(
            context_fields,
            zarinpal_status=code,
            gatewayMessage=parsed.error.message,
        )
        api_logger.warn(
            "Zarinpal request failed",
            {"operation": operation, "zarinpalStatus": code, "httpStatus": http_status},
        )
        raise AppError(
            f"ZarinPal {operation} failed",
            context,
            status_code=map_zarinpal_status(code),
        )

    context = ErrorContextBuilders.zarinpal(context_fields, responseBody=response_text)
    api_logger.error(
        "Zarinpal returned an unparseable response",
        {"operation": operation, "httpStatus": http_status},
    )
    raise AppError(f"ZarinPal {operation} failed: Invalid response", context, status_code=502)
