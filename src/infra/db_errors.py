"""Map asyncpg / PostgreSQL failures onto the Result error types.

The department store relies on PostgreSQL constraints for the invariants the
allocator cannot enforce alone: the primary key on ``departments.id`` settles
allocation races, the self-referencing foreign key rejects dangling parents.
"""

from __future__ import annotations

from typing import Any, Dict

import asyncpg

from src.infra.result import DatabaseError, Err, Error, Result, SystemError


class _MissingPoolError(Exception):
    """Stand-in type that never matches when asyncpg does not export PoolError."""


# asyncpg 並未在型別註解中公開 PoolError，因此以 getattr 動態取得。
PoolError: type[BaseException] = getattr(asyncpg, "PoolError", _MissingPoolError)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

POSTGRES_ERROR_CODES = {
    "08000": "connection_exception",
    "08003": "connection_does_not_exist",
    "08006": "connection_failure",
    "08001": "sqlclient_unable_to_establish_sqlconnection",
    "08004": "sqlserver_rejected_establishment_of_sqlconnection",
    "23502": "not_null_violation",
    FOREIGN_KEY_VIOLATION: "foreign_key_violation",
    UNIQUE_VIOLATION: "unique_violation",
    "23514": "check_violation",
    "25006": "read_only_sql_transaction",
    "40001": "serialization_failure",
    "40P01": "deadlock_detected",
    "57014": "query_canceled",
    "42P01": "undefined_table",
    "42703": "undefined_column",
}


def map_postgres_error(error: asyncpg.PostgresError) -> DatabaseError:
    """Map a PostgreSQL error to ``DatabaseError`` with sqlstate-aware context."""
    raw_sqlstate = getattr(error, "sqlstate", None)
    sqlstate: str | None = str(raw_sqlstate) if raw_sqlstate is not None else None
    message = str(error)

    context: Dict[str, Any] = {
        "sqlstate": sqlstate,
        "error_type": (
            POSTGRES_ERROR_CODES.get(sqlstate, "unknown_postgres_error")
            if sqlstate is not None
            else "unknown_postgres_error"
        ),
        "original_message": message,
    }

    table_name = getattr(error, "table_name", None)
    if table_name:
        context["table_name"] = table_name

    if sqlstate in (UNIQUE_VIOLATION, FOREIGN_KEY_VIOLATION):
        constraint_name = getattr(error, "constraint_name", None)
        if constraint_name:
            context["constraint_name"] = constraint_name
        detail = getattr(error, "detail", None)
        if detail:
            context["detail"] = detail

    elif sqlstate in ("40001", "40P01"):
        context["retry_possible"] = True

    elif sqlstate == "57014":
        context["timeout"] = True

    elif sqlstate is not None and sqlstate.startswith("08"):
        context["connection_error"] = True

    return DatabaseError(message=message, context=context, cause=error)


def map_connection_pool_error(error: BaseException) -> SystemError:
    """Map asyncpg pool errors to ``SystemError``."""
    context: Dict[str, Any] = {
        "error_type": type(error).__name__,
        "original_message": str(error),
        "pool_error": True,
    }
    if isinstance(error, asyncpg.TooManyConnectionsError):
        context["too_many_connections"] = True
        context["retry_possible"] = True
    elif isinstance(error, asyncpg.InterfaceError):
        context["interface_error"] = True

    return SystemError(
        message=f"Connection pool error: {error}",
        context=context,
        cause=error,
    )


def map_asyncpg_error(error: BaseException) -> Result[Any, DatabaseError | SystemError]:
    """Map any exception raised by the driver to an ``Err``."""
    if isinstance(error, asyncpg.PostgresError):
        return Err(map_postgres_error(error))
    if isinstance(error, PoolError):
        return Err(map_connection_pool_error(error))
    if isinstance(error, asyncpg.InterfaceError):
        return Err(
            SystemError(
                message=f"Database interface error: {error}",
                context={"interface_error": True, "original_error": str(error)},
                cause=error,
            )
        )
    if isinstance(error, TimeoutError):
        return Err(
            SystemError(
                message=f"Database operation timed out: {error}",
                context={"timeout": True, "original_error": str(error)},
                cause=error,
            )
        )
    return Err(
        SystemError(
            message=f"Database error: {error}",
            context={"generic_db_error": True, "original_error": str(error)},
            cause=error,
        )
    )


def is_unique_violation(error: Error) -> bool:
    """True when ``error`` came from a unique / primary key constraint."""
    if error.context.get("sqlstate") == UNIQUE_VIOLATION:
        return True
    return isinstance(error.cause, asyncpg.UniqueViolationError)


__all__ = [
    "FOREIGN_KEY_VIOLATION",
    "POSTGRES_ERROR_CODES",
    "UNIQUE_VIOLATION",
    "is_unique_violation",
    "map_asyncpg_error",
    "map_connection_pool_error",
    "map_postgres_error",
]
