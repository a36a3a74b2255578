"""
Structured context shapes for log records.

Looser than error contexts: there is no discriminant, every shape accepts
extra keys, and any plain mapping is also a valid log context.
"""
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class LogContextModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )


class RequestContext(LogContextModel):
    request_id: str
    method: str
    path: str
    user_id: Optional[str] = None
    operation: Optional[str] = None


class DatabaseContext(LogContextModel):
    operation: Literal["select", "insert", "update", "delete", "transaction"]
    table: Optional[str] = None
    duration: Optional[float] = None
    affected_rows: Optional[int] = None


class PaymentContext(LogContextModel):
    currency: str
    provider: Literal["zarinpal", "stripe", "other"]
    payment_id: Optional[str] = None
    amount: Optional[float] = None
    status: Optional[Literal["pending", "completed", "failed", "cancelled"]] = None


class AuthContext(LogContextModel):
    user_id: str
    action: Literal["login", "logout", "token_refresh", "permission_check"]
    success: bool


class ValidationIssue(BaseModel):
    field: str
    message: str


class ValidationContext(LogContextModel):
    field_count: int
    validation_type: Literal["body", "query", "params", "headers"]
    schema_name: Optional[str] = None
    errors: Optional[List[ValidationIssue]] = None


class PerformanceContext(LogContextModel):
    duration: float
    memory_usage: Optional[int] = None
    item_count: Optional[int] = None
    cache_hit: Optional[bool] = None


LogContext = Union[
    RequestContext,
    DatabaseContext,
    PaymentContext,
    AuthContext,
    ValidationContext,
    PerformanceContext,
    Mapping[str, Any],
]


def log_context_dict(context: Optional[Any]) -> Dict[str, Any]:
    """Flatten any accepted log context to a camelCase dict."""
    if context is None:
        return {}
    if isinstance(context, BaseModel):
        return context.model_dump(by_alias=True, exclude_none=True)
    if isinstance(context, Mapping):
        return dict(context)
    raise TypeError(f"unsupported log context: {type(context).__name__}")
