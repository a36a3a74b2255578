import re
from typing import Any, Optional

from sqlalchemy.exc import DBAPIError

from billing_api.core.builders import ErrorContextBuilders
from billing_api.core.errors import AppError
from billing_api.core.logging import api_logger
from billing_api.schemas.error_context import DatabaseErrorContext
from billing_api.schemas.log_context import DatabaseContext


# sqlite reports constraint failures as "UNIQUE constraint failed: table.column"
_SQLITE_CONSTRAINT = re.compile(r"constraint failed: (\S+)", re.IGNORECASE)


def _sql_state(orig: Any) -> Optional[str]:
    # psycopg 3 exposes ``sqlstate``, psycopg2 ``pgcode``, sqlite3 ``sqlite_errorname``
    for attr in ("sqlstate", "pgcode", "sqlite_errorname"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    return None


def _constraint(orig: Any) -> Optional[str]:
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", None) if diag is not None else None
    if name:
        return name
    match = _SQLITE_CONSTRAINT.search(str(orig))
    return match.group(1) if match else None


def database_error_context(
    exc: DBAPIError,
    operation: str,
    table: Optional[str] = None,
    **context: Any,
) -> DatabaseErrorContext:
    """Describe a failed driver call as a ``database`` error context."""
    orig = exc.orig
    return ErrorContextBuilders.database(
        operation,
        context,
        query=exc.statement,
        table=table,
        constraint=_constraint(orig),
        sql_state=_sql_state(orig),
    )


def database_error(
    exc: DBAPIError,
    operation: str,
    table: Optional[str] = None,
    **context: Any,
) -> AppError:
    """Log a failed driver call and wrap it in an AppError for the caller to raise."""
    error_context = database_error_context(exc, operation, table, **context)
    api_logger.error(
        "Database operation failed",
        DatabaseContext(operation=error_context.operation, table=table, sqlState=error_context.sql_state),
    )
    return AppError(context=error_context)
