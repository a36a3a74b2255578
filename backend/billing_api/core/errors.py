import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from billing_api.core.builders import ErrorContextBuilders
from billing_api.core.config import settings
from billing_api.core.logging import api_logger, logger
from billing_api.core.taxonomy import (
    code_for,
    context_dict,
    is_retryable,
    public_detail,
    redact,
    severity_for,
    status_for,
    tier_for,
)
from billing_api.schemas.error_context import BaseErrorContext
from billing_api.schemas.errors import ErrorCode, ErrorResponse, ErrorSeverity, error_slug_for_status
from billing_api.schemas.log_context import RequestContext


_STATUS_MESSAGES: Dict[int, str] = {
    400: "Bad request",
    401: "Unauthorized",
    402: "Payment required",
    403: "Forbidden",
    404: "Not found",
    409: "Conflict",
    422: "Validation failed",
    429: "Too many requests",
}
_DEFAULT_4XX_MESSAGE = "HTTP error"
_DEFAULT_5XX_MESSAGE = "Internal server error"

_CONTEXT_MESSAGES: Dict[str, str] = {
    "authentication": "Authentication required",
    "authorization": "Insufficient permissions",
    "payment": "Payment processing failed",
    "insufficient_funds": "Insufficient funds",
    "database": "Database operation failed",
    "validation": "Validation failed",
    "external_service": "External service error",
    "zarinpal": "Payment gateway error",
    "email_service": "Email delivery failed",
    "conflict": "Resource conflict",
    "rate_limit": "Too many requests",
    "internal": _DEFAULT_5XX_MESSAGE,
}

REQUEST_ID_HEADER = "X-Request-ID"


def _status_message(code: int) -> str:
    if code >= 500:
        return _DEFAULT_5XX_MESSAGE
    return _STATUS_MESSAGES.get(code, _DEFAULT_4XX_MESSAGE)


def _default_message(context: BaseErrorContext) -> str:
    if context.type == "not_found":
        return f"{context.resource} not found"
    return _CONTEXT_MESSAGES.get(context.type, _DEFAULT_5XX_MESSAGE)


class AppError(Exception):
    """
    Application error carrying a structured ErrorContext.

    Code, HTTP status and severity default from the context variant. The
    context is read-only and belongs to this error alone.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[BaseErrorContext] = None,
        *,
        code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        severity: Optional[ErrorSeverity] = None,
        correlation_id: Optional[str] = None,
    ):
        self.context = context if context is not None else ErrorContextBuilders.internal()
        self.message = message or _default_message(self.context)
        self.code = code or code_for(self.context)
        self.status_code = status_code or status_for(self.context)
        self.severity = severity or severity_for(self.context)
        self.correlation_id = correlation_id or self.context.correlation_id
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.context)

    def to_log_dict(self) -> Dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "statusCode": self.status_code,
            "severity": self.severity.value,
            "tier": tier_for(self.context).value,
            "context": redact(context_dict(self.context)),
            "timestamp": self.timestamp.isoformat(),
            "correlationId": self.correlation_id,
        }


class MetadataValidationError(AppError):
    """Raised when a metadata blob does not match its schema."""

    def __init__(self, message: str, context: BaseErrorContext, correlation_id: Optional[str] = None):
        super().__init__(message, context, correlation_id=correlation_id)


def _request_id(request: Request) -> str:
    return request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex


def _build_error_response(
    *,
    request: Request,
    status_code: int,
    message: Optional[str] = None,
    detail: Optional[Any] = None,
    error_code: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> JSONResponse:
    error_slug = error_slug_for_status(status_code)
    msg = message or _status_message(status_code)
    payload = ErrorResponse(
        error=error_slug,
        message=msg,
        code=status_code,
        error_code=error_code,
        detail=detail,
        correlation_id=correlation_id,
    ).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=payload, media_type="application/json")


def _sanitize_validation_detail(detail: Any) -> Any:
    """
    Ensure validation detail is JSON-serializable.
    Pydantic may include an Exception instance in ctx.error; convert to str.
    """
    if isinstance(detail, list):
        sanitized = []
        for item in detail:
            if isinstance(item, dict):
                ctx = item.get("ctx")
                if isinstance(ctx, dict) and "error" in ctx and isinstance(ctx["error"], BaseException):
                    new_item = dict(item)
                    new_ctx = dict(ctx)
                    new_ctx["error"] = str(ctx["error"])
                    new_item["ctx"] = new_ctx
                    sanitized.append(new_item)
                    continue
            sanitized.append(item)
        return sanitized
    return detail


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code = exc.status_code
    correlation_id = exc.correlation_id or _request_id(request)
    log_context = RequestContext(
        request_id=correlation_id,
        method=request.method,
        path=request.url.path,
        user_id=exc.context.user_id,
        error=exc.to_log_dict(),
    )
    # 5xx responses carry neither the error message nor context, whatever the context type
    if status_code >= 500:
        api_logger.error("Application error", log_context)
        message = _DEFAULT_5XX_MESSAGE
        detail = None
    else:
        api_logger.warn("Application error", log_context)
        message = exc.message
        detail = public_detail(exc.context, status_code) if settings.EXPOSE_ERROR_DETAIL else None
    return _build_error_response(
        request=request,
        status_code=status_code,
        message=message,
        detail=detail,
        error_code=exc.code.value,
        correlation_id=correlation_id,
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    status_code = 422
    detail = _sanitize_validation_detail(exc.errors())
    logger.warning(
        "Validation error: %s %s status=%s issues=%d",
        request.method,
        request.url.path,
        status_code,
        len(detail) if isinstance(detail, list) else 1,
    )
    return _build_error_response(
        request=request,
        status_code=status_code,
        message=_STATUS_MESSAGES.get(422, "Validation failed"),
        detail=detail,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        correlation_id=request.headers.get(REQUEST_ID_HEADER),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status_code = exc.status_code
    detail = getattr(exc, "detail", None)
    if 400 <= status_code < 500:
        logger.warning(
            "HTTPException: %s %s status=%s error=%s detail=%r",
            request.method,
            request.url.path,
            status_code,
            error_slug_for_status(status_code),
            detail,
        )
    else:
        logger.error(
            "HTTPException-5xx: %s %s status=%s error=%s detail=%r",
            request.method,
            request.url.path,
            status_code,
            error_slug_for_status(status_code),
            detail,
        )
    return _build_error_response(
        request=request,
        status_code=status_code,
        message=_status_message(status_code),
        detail=detail,
        correlation_id=request.headers.get(REQUEST_ID_HEADER),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = 500
    logger.error(
        "Unhandled exception: %s %s status=%s",
        request.method,
        request.url.path,
        status_code,
        exc_info=True,
    )
    return _build_error_response(
        request=request,
        status_code=status_code,
        message=_DEFAULT_5XX_MESSAGE,
        detail=None,  # do not leak server internals
        correlation_id=request.headers.get(REQUEST_ID_HEADER),
    )
