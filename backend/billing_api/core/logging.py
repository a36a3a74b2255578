import json
import logging
from typing import Any, Optional, Union

from pythonjsonlogger import jsonlogger

from billing_api.core.config import settings
from billing_api.core.taxonomy import redact
from billing_api.schemas.log_context import LogContext, log_context_dict


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends the structured context as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = getattr(record, "context", None)
        if context:
            base += " | context=" + json.dumps(context, default=str, sort_keys=True)
        return base


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"levelname": "level"},
        )
    return ContextFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")


logger = logging.getLogger("billing-api")
logger.setLevel(settings.LOG_LEVEL.upper())

handler = logging.StreamHandler()
handler.setFormatter(build_formatter(settings.LOG_FORMAT))

if not logger.handlers:
    logger.addHandler(handler)


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class TypedLogger:
    """
    Logger facade taking a message plus an optional structured context.

    The context (a log-context model or a plain mapping) is flattened to a
    camelCase dict, sensitive keys are redacted, and the result is attached to
    the record as ``context``.
    """

    def __init__(self, base: logging.Logger):
        self._logger = base

    def log(
        self,
        level: Union[int, str],
        message: str,
        context: Optional[LogContext] = None,
        exc_info: Any = None,
    ) -> None:
        if isinstance(level, str):
            level = _LEVELS[level.lower()]
        payload = log_context_dict(context)
        extra = {"context": redact(payload)} if payload else {}
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, context: Optional[LogContext] = None) -> None:
        self.log(logging.DEBUG, message, context)

    def info(self, message: str, context: Optional[LogContext] = None) -> None:
        self.log(logging.INFO, message, context)

    def warn(self, message: str, context: Optional[LogContext] = None) -> None:
        self.log(logging.WARNING, message, context)

    warning = warn

    def error(
        self,
        message: str,
        context_or_error: Union[BaseException, LogContext, None] = None,
        context: Optional[LogContext] = None,
    ) -> None:
        if isinstance(context_or_error, BaseException):
            exc = context_or_error
            payload = log_context_dict(context)
            payload["error"] = {"name": type(exc).__name__, "message": str(exc)}
            self.log(logging.ERROR, message, payload, exc_info=(type(exc), exc, exc.__traceback__))
            return
        self.log(logging.ERROR, message, context_or_error if context_or_error is not None else context)


api_logger = TypedLogger(logger)
