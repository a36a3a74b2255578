from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Type, Union

from billing_api.schemas.error_context import (
    AuthenticationErrorContext,
    AuthorizationErrorContext,
    BaseErrorContext,
    ConflictErrorContext,
    DatabaseErrorContext,
    EmailServiceErrorContext,
    ExternalServiceErrorContext,
    FieldError,
    InsufficientFundsErrorContext,
    InternalErrorContext,
    NotFoundErrorContext,
    PaymentErrorContext,
    RateLimitErrorContext,
    ValidationErrorContext,
    ZarinPalErrorContext,
)


Overrides = Optional[Mapping[str, Any]]


def utc_timestamp() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _field_names(model: Type[BaseErrorContext]) -> Dict[str, str]:
    names = {}
    for name, info in model.model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
    return names


def _build(model: Type[BaseErrorContext], defaults: Dict[str, Any], context: Overrides, extra: Dict[str, Any]):
    names = _field_names(model)
    data = {"timestamp": utc_timestamp(), **defaults}
    for source in (context or {}, extra):
        for key, value in source.items():
            # camelCase and snake_case spellings of a field collapse to one key
            data[names.get(key, key)] = value
    return model.model_validate(data)


class ErrorContextBuilders:
    """
    One constructor per context variant.

    Each builder fills the discriminant and required fields, stamps the current
    UTC time, then applies caller overrides (mapping and/or keyword arguments,
    either spelling). Overrides win, including over ``timestamp``.
    """

    @staticmethod
    def authentication(failure_reason: str, context: Overrides = None, **extra: Any) -> AuthenticationErrorContext:
        return _build(AuthenticationErrorContext, {"type": "authentication", "failure_reason": failure_reason}, context, extra)

    @staticmethod
    def authorization(context: Overrides = None, **extra: Any) -> AuthorizationErrorContext:
        return _build(AuthorizationErrorContext, {"type": "authorization"}, context, extra)

    @staticmethod
    def payment(provider: str, context: Overrides = None, **extra: Any) -> PaymentErrorContext:
        return _build(PaymentErrorContext, {"type": "payment", "provider": provider}, context, extra)

    @staticmethod
    def insufficient_funds(requested_amount: float, context: Overrides = None, **extra: Any) -> InsufficientFundsErrorContext:
        return _build(
            InsufficientFundsErrorContext,
            {"type": "insufficient_funds", "requested_amount": requested_amount},
            context,
            extra,
        )

    @staticmethod
    def database(operation: str, context: Overrides = None, **extra: Any) -> DatabaseErrorContext:
        return _build(DatabaseErrorContext, {"type": "database", "operation": operation}, context, extra)

    @staticmethod
    def validation(
        field_errors: Iterable[Union[FieldError, Mapping[str, Any]]],
        context: Overrides = None,
        **extra: Any,
    ) -> ValidationErrorContext:
        return _build(ValidationErrorContext, {"type": "validation", "field_errors": list(field_errors)}, context, extra)

    @staticmethod
    def external_service(service_name: str, context: Overrides = None, **extra: Any) -> ExternalServiceErrorContext:
        return _build(
            ExternalServiceErrorContext,
            {"type": "external_service", "service_name": service_name},
            context,
            extra,
        )

    @staticmethod
    def zarinpal(context: Overrides = None, **extra: Any) -> ZarinPalErrorContext:
        return _build(ZarinPalErrorContext, {"type": "zarinpal"}, context, extra)

    @staticmethod
    def email_service(provider: str, context: Overrides = None, **extra: Any) -> EmailServiceErrorContext:
        return _build(EmailServiceErrorContext, {"type": "email_service", "provider": provider}, context, extra)

    @staticmethod
    def not_found(resource: str, context: Overrides = None, **extra: Any) -> NotFoundErrorContext:
        return _build(NotFoundErrorContext, {"type": "not_found", "resource": resource}, context, extra)

    @staticmethod
    def conflict(resource: str, context: Overrides = None, **extra: Any) -> ConflictErrorContext:
        return _build(ConflictErrorContext, {"type": "conflict", "resource": resource}, context, extra)

    @staticmethod
    def rate_limit(
        limit: int,
        window_ms: int,
        current_count: int,
        context: Overrides = None,
        **extra: Any,
    ) -> RateLimitErrorContext:
        return _build(
            RateLimitErrorContext,
            {"type": "rate_limit", "limit": limit, "window_ms": window_ms, "current_count": current_count},
            context,
            extra,
        )

    @staticmethod
    def internal(context: Overrides = None, **extra: Any) -> InternalErrorContext:
        return _build(InternalErrorContext, {"type": "internal"}, context, extra)
