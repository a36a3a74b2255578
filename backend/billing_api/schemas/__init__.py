from .errors import ErrorCode, ErrorResponse, ErrorSeverity
from .error_context import (
    BaseErrorContext,
    ErrorContext,
    FieldError,
    parse_error_context,
    error_context_to_dict,
)
from .log_context import LogContext
