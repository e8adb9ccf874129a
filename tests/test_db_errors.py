"""Tests for database error mapping helpers."""

from __future__ import annotations

import asyncpg
import pytest

import src.infra.db_errors as db_errors_module
from src.infra.db_errors import (
    is_unique_violation,
    map_asyncpg_error,
    map_connection_pool_error,
    map_postgres_error,
)
from src.infra.result import DatabaseError, Err, SystemError


def _build_pg_error(sqlstate: str, detail: str | None = None) -> asyncpg.PostgresError:
    error = asyncpg.PostgresError(f"error-{sqlstate}")
    error.sqlstate = sqlstate
    # 提供最小但具代表性的表/約束上下文
    error.table_name = "departments"
    if detail:
        error.detail = detail
    error.constraint_name = "departments_pkey"
    return error


def test_map_postgres_error_sets_context() -> None:
    pg_error = _build_pg_error("23505", detail="Key (id)=(910) already exists.")
    mapped = map_postgres_error(pg_error)

    assert isinstance(mapped, DatabaseError)
    assert mapped.context["sqlstate"] == "23505"
    assert mapped.context["error_type"] == "unique_violation"
    assert mapped.context["constraint_name"] == "departments_pkey"
    assert "already exists" in mapped.context["detail"]
    assert mapped.context["table_name"] == "departments"
    assert mapped.cause is pg_error


def test_map_postgres_error_flags_timeouts_and_connection_loss() -> None:
    assert map_postgres_error(_build_pg_error("57014")).context["timeout"] is True
    assert map_postgres_error(_build_pg_error("08006")).context["connection_error"] is True


def test_map_postgres_error_unknown_sqlstate() -> None:
    mapped = map_postgres_error(_build_pg_error("XX000"))

    assert mapped.context["error_type"] == "unknown_postgres_error"


def test_map_connection_pool_error_marks_retryable() -> None:
    pool_error = asyncpg.TooManyConnectionsError("pool full")
    mapped = map_connection_pool_error(pool_error)

    assert isinstance(mapped, SystemError)
    assert mapped.context["too_many_connections"] is True
    assert mapped.context["retry_possible"] is True


def test_map_asyncpg_error_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    class DummyPoolError(Exception):
        pass

    monkeypatch.setattr(db_errors_module, "PoolError", DummyPoolError, raising=False)

    result = map_asyncpg_error(TimeoutError("db slow"))

    assert isinstance(result, Err)
    err_obj = result.unwrap_err()
    assert isinstance(err_obj, SystemError)
    assert err_obj.context["timeout"] is True


def test_map_asyncpg_error_postgres_err() -> None:
    pg_error = _build_pg_error("40001")
    result = map_asyncpg_error(pg_error)

    assert isinstance(result, Err)
    err_obj = result.unwrap_err()
    assert isinstance(err_obj, DatabaseError)
    assert err_obj.context["retry_possible"] is True


def test_map_asyncpg_error_refused_connection_is_system_error() -> None:
    result = map_asyncpg_error(ConnectionRefusedError(111, "Connection refused"))

    assert isinstance(result, Err)
    assert isinstance(result.unwrap_err(), SystemError)


def test_is_unique_violation_from_context_or_cause() -> None:
    assert is_unique_violation(DatabaseError("dup", context={"sqlstate": "23505"})) is True
    assert is_unique_violation(
        DatabaseError("dup", cause=asyncpg.UniqueViolationError("dup"))
    ) is True
    assert is_unique_violation(DatabaseError("fk", context={"sqlstate": "23503"})) is False
    assert is_unique_violation(SystemError("refused")) is False
