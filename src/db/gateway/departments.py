"""Gateway for the self-referencing ``departments`` table.

Each method issues exactly one statement on the connection it is handed; the
caller owns connection acquisition and transaction scope.
"""

from __future__ import annotations

from typing import Iterable

import asyncpg

from src.infra.db_errors import map_asyncpg_error
from src.infra.result import DatabaseError, Err, Error, Ok, Result, async_returns_result
from src.infra.types.db import ConnectionProtocol, Row
from src.orgchart.models import Department


def _row_to_department(row: Row) -> Department:
    """將資料庫 row 轉換為 Department 資料模型。"""
    parent_id = row["parent_id"]
    return Department(
        id=int(row["id"]),
        name=str(row["name"]),
        parent_id=int(parent_id) if parent_id is not None else None,
    )


class DepartmentGateway:
    """Store operations used by the allocator and the subtree materializer."""

    def __init__(self, *, schema: str = "public") -> None:
        self._schema = schema

    @async_returns_result(DatabaseError)
    async def existing_ids(
        self,
        connection: ConnectionProtocol,
        *,
        candidates: Iterable[int],
    ) -> Result[list[int], Error]:
        """Return the subset of ``candidates`` already present, ascending."""
        ids = sorted(set(candidates))
        if not ids:
            return Ok([])
        sql = f"SELECT id FROM {self._schema}.departments WHERE id = ANY($1::int[]) ORDER BY id"
        try:
            rows = await connection.fetch(sql, ids)
        except asyncpg.PostgresError as exc:
            return map_asyncpg_error(exc)
        return Ok([int(row["id"]) for row in rows])

    @async_returns_result(DatabaseError)
    async def max_id(self, connection: ConnectionProtocol) -> Result[int | None, Error]:
        """Largest department id, ``None`` when the table is empty."""
        sql = f"SELECT max(id) FROM {self._schema}.departments"
        try:
            value = await connection.fetchval(sql)
        except asyncpg.PostgresError as exc:
            return map_asyncpg_error(exc)
        return Ok(int(value) if value is not None else None)

    @async_returns_result(DatabaseError)
    async def get_department(
        self,
        connection: ConnectionProtocol,
        *,
        department_id: int,
    ) -> Result[Department | None, Error]:
        sql = f"SELECT id, name, parent_id FROM {self._schema}.departments WHERE id = $1"
        try:
            row = await connection.fetchrow(sql, department_id)
        except asyncpg.PostgresError as exc:
            return map_asyncpg_error(exc)
        if row is None:
            return Ok(None)
        return Ok(_row_to_department(row))

    @async_returns_result(DatabaseError)
    async def children_of(
        self,
        connection: ConnectionProtocol,
        *,
        parent_ids: Iterable[int],
    ) -> Result[list[Department], Error]:
        """Direct children of any id in ``parent_ids``, ordered by (parent_id, id)."""
        ids = sorted(set(parent_ids))
        if not ids:
            return Ok([])
        sql = f"""
            SELECT id, name, parent_id
            FROM {self._schema}.departments
            WHERE parent_id = ANY($1::int[])
            ORDER BY parent_id, id
        """
        try:
            rows = await connection.fetch(sql, ids)
        except asyncpg.PostgresError as exc:
            return map_asyncpg_error(exc)
        return Ok([_row_to_department(row) for row in rows])

    @async_returns_result(DatabaseError)
    async def insert_department(
        self,
        connection: ConnectionProtocol,
        *,
        department_id: int,
        name: str,
        parent_id: int | None,
    ) -> Result[Department, Error]:
        """Insert one department with a pre-allocated id.

        A lost allocation race surfaces as ``Err(DatabaseError)`` whose context
        carries sqlstate ``23505`` (see ``is_unique_violation``).
        """
        sql = f"""
            INSERT INTO {self._schema}.departments (id, name, parent_id)
            VALUES ($1, $2, $3)
            RETURNING id, name, parent_id
        """
        try:
            row = await connection.fetchrow(sql, department_id, name, parent_id)
        except asyncpg.PostgresError as exc:
            return map_asyncpg_error(exc)
        if row is None:
            return Err(DatabaseError("Failed to insert department"))
        return Ok(_row_to_department(row))


__all__ = ["Department", "DepartmentGateway"]
