"""
Structured error contexts attached to application errors.

Every context is a frozen pydantic model tagged by ``type``. Typed fields use
snake_case attributes and camelCase wire names. Unknown keys are kept in a
separate side map (``additional_fields``); they are diagnostic only and must
not drive control flow.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


ErrorContextType = Literal[
    "authentication",
    "authorization",
    "payment",
    "insufficient_funds",
    "database",
    "validation",
    "external_service",
    "zarinpal",
    "email_service",
    "not_found",
    "conflict",
    "rate_limit",
    "internal",
]

AuthFailureReason = Literal["invalid_credentials", "account_locked", "token_expired", "missing_token"]
PaymentProvider = Literal["zarinpal", "stripe", "other"]
DatabaseOperation = Literal["select", "insert", "update", "delete", "transaction"]
EmailProvider = Literal["ses", "sendgrid", "other"]


class BaseErrorContext(BaseModel):
    correlation_id: Optional[str] = None
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    operation: Optional[str] = None
    timestamp: Optional[str] = None  # ISO-8601, UTC

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    @property
    def additional_fields(self) -> Dict[str, Any]:
        """Keys outside the declared shape, as supplied by the caller."""
        return dict(self.model_extra or {})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AuthenticationErrorContext(BaseErrorContext):
    type: Literal["authentication"] = "authentication"
    failure_reason: AuthFailureReason
    attempted_email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuthorizationErrorContext(BaseErrorContext):
    type: Literal["authorization"] = "authorization"
    required_role: Optional[str] = None
    user_role: Optional[str] = None
    resource: Optional[str] = None
    action: Optional[str] = None


class PaymentErrorContext(BaseErrorContext):
    type: Literal["payment"] = "payment"
    provider: PaymentProvider
    payment_id: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    gateway_error: Optional[str] = None
    gateway_code: Optional[str] = None


class InsufficientFundsErrorContext(BaseErrorContext):
    type: Literal["insufficient_funds"] = "insufficient_funds"
    requested_amount: float
    available_amount: Optional[float] = None
    account_id: Optional[str] = None


class DatabaseErrorContext(BaseErrorContext):
    type: Literal["database"] = "database"
    operation: DatabaseOperation
    query: Optional[str] = None
    table: Optional[str] = None
    constraint: Optional[str] = None
    sql_state: Optional[str] = None


class FieldError(BaseModel):
    field: str
    message: str
    value: Optional[Any] = None

    model_config = ConfigDict(frozen=True)


class ValidationErrorContext(BaseErrorContext):
    type: Literal["validation"] = "validation"
    field_errors: List[FieldError]
    schema_name: Optional[str] = None


class ExternalServiceErrorContext(BaseErrorContext):
    type: Literal["external_service"] = "external_service"
    service_name: str
    endpoint: Optional[str] = None
    http_status: Optional[int] = None
    response_time: Optional[float] = None
    retry_attempt: Optional[int] = None


class ZarinPalErrorContext(BaseErrorContext):
    type: Literal["zarinpal"] = "zarinpal"
    authority: Optional[str] = None
    ref_id: Optional[str] = None
    zarinpal_status: Optional[int] = None
    card_pan: Optional[str] = None


class EmailServiceErrorContext(BaseErrorContext):
    type: Literal["email_service"] = "email_service"
    provider: EmailProvider
    recipient: Optional[str] = None
    template: Optional[str] = None


class NotFoundErrorContext(BaseErrorContext):
    type: Literal["not_found"] = "not_found"
    resource: str
    resource_id: Optional[str] = None
    search_criteria: Optional[Dict[str, Any]] = None


class ConflictErrorContext(BaseErrorContext):
    type: Literal["conflict"] = "conflict"
    resource: str
    conflicting_field: Optional[str] = None
    existing_value: Optional[Any] = None


class RateLimitErrorContext(BaseErrorContext):
    type: Literal["rate_limit"] = "rate_limit"
    limit: int
    window_ms: int
    current_count: int
    reset_time: Optional[str] = None


class InternalErrorContext(BaseErrorContext):
    type: Literal["internal"] = "internal"
    component: Optional[str] = None
    stack_trace: Optional[str] = None
    memory_usage: Optional[int] = None


ErrorContext = Annotated[
    Union[
        AuthenticationErrorContext,
        AuthorizationErrorContext,
        PaymentErrorContext,
        InsufficientFundsErrorContext,
        DatabaseErrorContext,
        ValidationErrorContext,
        ExternalServiceErrorContext,
        ZarinPalErrorContext,
        EmailServiceErrorContext,
        NotFoundErrorContext,
        ConflictErrorContext,
        RateLimitErrorContext,
        InternalErrorContext,
    ],
    Field(discriminator="type"),
]

CONTEXT_MODELS: Dict[str, type] = {
    "authentication": AuthenticationErrorContext,
    "authorization": AuthorizationErrorContext,
    "payment": PaymentErrorContext,
    "insufficient_funds": InsufficientFundsErrorContext,
    "database": DatabaseErrorContext,
    "validation": ValidationErrorContext,
    "external_service": ExternalServiceErrorContext,
    "zarinpal": ZarinPalErrorContext,
    "email_service": EmailServiceErrorContext,
    "not_found": NotFoundErrorContext,
    "conflict": ConflictErrorContext,
    "rate_limit": RateLimitErrorContext,
    "internal": InternalErrorContext,
}

_error_context_adapter: TypeAdapter = TypeAdapter(ErrorContext)


def parse_error_context(data: Any) -> BaseErrorContext:
    """Validate a plain mapping into its tagged variant.

    Raises ``pydantic.ValidationError`` for an unknown tag or a variant whose
    required fields are missing.
    """
    return _error_context_adapter.validate_python(data)


def error_context_to_dict(context: BaseErrorContext) -> Dict[str, Any]:
    return context.to_dict()
