from __future__ import annotations

from datetime import date
from typing import Iterable, cast

import asyncpg

from src.infra.db_errors import map_asyncpg_error
from src.infra.result import DatabaseError, Error, Ok, Result, async_returns_result
from src.infra.types.db import ConnectionProtocol, Row
from src.orgchart.models import Employee


def _row_to_employee(row: Row) -> Employee:
    return Employee(
        id=int(row["id"]),
        name=str(row["name"]),
        department_id=int(row["department_id"]),
        position=str(row["position"] or ""),
        hire_date=cast(date | None, row["hire_date"]),
        employee_number=str(row["employee_number"] or ""),
    )


class EmployeeGateway:
    """Read-only access to ``employees``."""

    def __init__(self, *, schema: str = "public") -> None:
        self._schema = schema

    @async_returns_result(DatabaseError)
    async def list_by_departments(
        self,
        connection: ConnectionProtocol,
        *,
        department_ids: Iterable[int],
    ) -> Result[list[Employee], Error]:
        """員工清單，依 (department_id, name) 排序。"""
        ids = sorted(set(department_ids))
        if not ids:
            return Ok([])
        sql = f"""
            SELECT id, name, department_id, position, hire_date, employee_number
            FROM {self._schema}.employees
            WHERE department_id = ANY($1::int[])
            ORDER BY department_id, name, id
        """
        try:
            rows = await connection.fetch(sql, ids)
        except asyncpg.PostgresError as exc:
            return map_asyncpg_error(exc)
        return Ok([_row_to_employee(row) for row in rows])


__all__ = ["Employee", "EmployeeGateway"]
