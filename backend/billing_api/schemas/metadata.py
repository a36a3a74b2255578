"""
Schemas for loosely-typed metadata blobs stored alongside billing records.

Each schema extends ``BaseMetadata`` (audit fields) with domain fields.
Validation is data-driven: the pydantic model is the schema, and the
``validate_*`` helpers turn a rejection into ``MetadataValidationError``.
Unknown keys are dropped. Values are never coerced: ``"5000"`` is not a
positive int and ``"true"`` is not a bool.
"""
import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    TypeAdapter,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from billing_api.core.builders import ErrorContextBuilders
from billing_api.core.errors import MetadataValidationError
from billing_api.schemas.error_context import FieldError


_ISO_UTC = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(\.\d+)?Z$")


def _check_iso_datetime(value: str) -> str:
    match = _ISO_UTC.match(value)
    if not match:
        raise ValueError("must be an ISO-8601 UTC datetime, e.g. 2024-01-31T12:00:00Z")
    try:
        datetime.strptime(match.group(1), "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        raise ValueError("is not a valid calendar datetime") from None
    return value


IsoDatetime = Annotated[str, AfterValidator(_check_iso_datetime)]
CurrencyCode = Annotated[str, Field(min_length=3, max_length=3)]
LanguageCode = Annotated[str, Field(min_length=2, max_length=2)]


class MetadataModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        strict=True,
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BaseMetadata(MetadataModel):
    created_by: Optional[str] = None
    created_at: Optional[IsoDatetime] = None
    updated_by: Optional[str] = None
    updated_at: Optional[IsoDatetime] = None
    version: Optional[PositiveInt] = None
    tags: Optional[List[str]] = None


class ProductMetadata(BaseMetadata):
    features: List[str]
    tier: Literal["free", "starter", "pro", "power", "enterprise"]
    popular: bool
    messages_per_month: PositiveInt
    ai_models_limit: PositiveInt
    conversations_per_month: PositiveInt


class PaymentMetadata(BaseMetadata):
    source: Literal["web", "mobile", "api", "webhook"]
    gateway: str
    gateway_transaction_id: Optional[str] = None
    currency: CurrencyCode
    exchange_rate: Optional[PositiveFloat] = None
    fees: Optional[NonNegativeFloat] = None
    description: Optional[str] = None


class SubscriptionMetadata(BaseMetadata):
    plan_type: Literal["monthly", "yearly", "lifetime"]
    auto_renewal: bool
    trial_end: Optional[IsoDatetime] = None
    promotion_code: Optional[str] = None
    discount_amount: Optional[NonNegativeFloat] = None
    next_billing_date: Optional[IsoDatetime] = None


class UserPreferences(MetadataModel):
    language: LanguageCode
    timezone: str
    notifications: bool


class UserMetadata(BaseMetadata):
    preferences: Optional[UserPreferences] = None
    last_login: Optional[IsoDatetime] = None
    login_count: Optional[NonNegativeInt] = None
    referred_by: Optional[str] = None


M = TypeVar("M", bound=BaseModel)


def format_validation_issues(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "(root)"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def field_errors_from(exc: ValidationError) -> List[FieldError]:
    field_errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "(root)"
        if err.get("type") == "missing":
            field_errors.append(FieldError(field=loc, message=err.get("msg", "")))
        else:
            field_errors.append(FieldError(field=loc, message=err.get("msg", ""), value=err.get("input")))
    return field_errors


def _validate(schema: Type[M], label: str, data: Any) -> M:
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        context = ErrorContextBuilders.validation(field_errors_from(exc), schema_name=schema.__name__)
        raise MetadataValidationError(
            f"{label} metadata validation failed: {format_validation_issues(exc)}",
            context=context,
        ) from exc


def validate_product_metadata(data: Any) -> ProductMetadata:
    return _validate(ProductMetadata, "Product", data)


def validate_payment_metadata(data: Any) -> PaymentMetadata:
    return _validate(PaymentMetadata, "Payment", data)


def validate_subscription_metadata(data: Any) -> SubscriptionMetadata:
    return _validate(SubscriptionMetadata, "Subscription", data)


def validate_user_metadata(data: Any) -> UserMetadata:
    return _validate(UserMetadata, "User", data)


def parse_typed_metadata(data: Any, schema: Type[M]) -> Optional[M]:
    """Validate against ``schema``; None on mismatch, never raises."""
    try:
        return schema.model_validate(data)
    except ValidationError:
        return None


# Tagged metadata: one record shape per owner type, selected by ``type``.

class PlanChange(MetadataModel):
    from_product_id: str
    to_product_id: str
    from_price: float
    to_price: float
    changed_at: IsoDatetime
    effective_date: IsoDatetime


class SubscriptionRecordMetadata(MetadataModel):
    type: Literal["subscription"] = "subscription"
    plan_change_history: Optional[List[PlanChange]] = None
    auto_renewal: Optional[bool] = None
    trial_end: Optional[IsoDatetime] = None


class PaymentRecordMetadata(MetadataModel):
    type: Literal["payment"] = "payment"
    payment_method: Optional[Literal["card", "bank_transfer", "wallet"]] = None
    retry_attempts: Optional[NonNegativeInt] = None
    failure_reason: Optional[str] = None


class UserRecordMetadata(MetadataModel):
    type: Literal["user"] = "user"
    preferences: Optional[Dict[str, bool]] = None
    last_login: Optional[IsoDatetime] = None
    timezone: Optional[str] = None


class ProductRecordMetadata(MetadataModel):
    type: Literal["product"] = "product"
    features: Optional[List[str]] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None


TaggedMetadata = Annotated[
    Union[SubscriptionRecordMetadata, PaymentRecordMetadata, UserRecordMetadata, ProductRecordMetadata],
    Field(discriminator="type"),
]

_tagged_metadata_adapter: TypeAdapter = TypeAdapter(TaggedMetadata)


class MetadataParseResult(BaseModel):
    success: bool
    data: Optional[TaggedMetadata] = None
    error: Optional[str] = None


def parse_metadata(data: Any) -> MetadataParseResult:
    """Parse a tagged metadata record without raising."""
    try:
        parsed = _tagged_metadata_adapter.validate_python(data)
    except ValidationError as exc:
        return MetadataParseResult(success=False, error=f"Invalid metadata structure: {format_validation_issues(exc)}")
    return MetadataParseResult(success=True, data=parsed)


class MetadataValidateResponse(BaseModel):
    kind: str
    metadata: Dict[str, Any]
