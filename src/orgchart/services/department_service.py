"""Department Service.

Wires the id allocator, the subtree materializer and the gateways to a
connection pool. Every public method acquires its own connection, so calls
from independent requests run concurrently.
"""

from __future__ import annotations

from typing import cast

import asyncpg
import structlog

from src.config.settings import AllocatorSettings, get_allocator_settings
from src.db.gateway.departments import DepartmentGateway
from src.db.gateway.employees import EmployeeGateway
from src.infra.db_errors import is_unique_violation, map_asyncpg_error
from src.infra.result import Err, Error, Ok, Result
from src.infra.retry import bounded_retry
from src.infra.types.db import PoolProtocol
from src.orgchart.models import Department, Employee, SubtreeNode
from src.orgchart.services.department_errors import (
    DepartmentIdConflictError,
    InvalidDepartmentNameError,
)
from src.orgchart.services.id_allocator import DepartmentIdAllocator
from src.orgchart.services.subtree_materializer import SubtreeMaterializer

LOGGER = structlog.get_logger(__name__)

MAX_NAME_LENGTH = 100

# Raised while acquiring a connection, including a server that rejects the
# session, before any statement runs.
_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncpg.InterfaceError,
    asyncpg.PostgresError,
)


class _AttemptFailed(Exception):
    """Carries a non-retryable Err out of a tenacity attempt."""

    def __init__(self, error: Error) -> None:
        super().__init__(str(error))
        self.error = error


class DepartmentService:
    """Business logic for the department tree."""

    def __init__(
        self,
        pool: PoolProtocol,
        *,
        gateway: DepartmentGateway | None = None,
        employee_gateway: EmployeeGateway | None = None,
        allocator: DepartmentIdAllocator | None = None,
        materializer: SubtreeMaterializer | None = None,
        settings: AllocatorSettings | None = None,
    ) -> None:
        self._pool = pool
        self._gateway = gateway or DepartmentGateway()
        self._employee_gateway = employee_gateway or EmployeeGateway()
        self._settings = settings or get_allocator_settings()
        self._allocator = allocator or DepartmentIdAllocator(
            gateway=self._gateway, settings=self._settings
        )
        self._materializer = materializer or SubtreeMaterializer(gateway=self._gateway)

    async def create_department(
        self,
        *,
        name: str,
        parent_id: int | None = None,
    ) -> Result[Department, Error]:
        """建立部門：配置 id 後寫入。

        A unique violation on insert means another writer took the same id
        between probe and insert; allocation and insert are then repeated with a
        fresh probe, up to ``insert_max_attempts`` times in total.
        """
        name_stripped = name.strip()
        if not name_stripped or len(name_stripped) > MAX_NAME_LENGTH:
            return Err(InvalidDepartmentNameError())

        # parent_id 0 means "top level", same as None.
        normalized_parent = parent_id or None

        try:
            async for attempt in bounded_retry(
                max_attempts=self._settings.insert_max_attempts,
                wait_seconds=self._settings.insert_retry_wait_seconds,
                retry_on=DepartmentIdConflictError,
            ):
                with attempt:
                    department = await self._allocate_and_insert(
                        name=name_stripped,
                        parent_id=normalized_parent,
                        attempt_number=attempt.retry_state.attempt_number,
                    )
        except DepartmentIdConflictError as exc:
            LOGGER.warning(
                "department.create.conflict_exhausted",
                parent_id=normalized_parent,
                department_id=exc.department_id,
                attempts=self._settings.insert_max_attempts,
            )
            return Err(exc)
        except _AttemptFailed as exc:
            return Err(exc.error)
        except _CONNECTION_ERRORS as exc:
            return cast(Result[Department, Error], map_asyncpg_error(exc))

        LOGGER.info(
            "department.created",
            department_id=department.id,
            parent_id=department.parent_id,
        )
        return Ok(department)

    async def _allocate_and_insert(
        self,
        *,
        name: str,
        parent_id: int | None,
        attempt_number: int,
    ) -> Department:
        async with self._pool.acquire() as connection:
            allocated = await self._allocator.allocate(connection, parent_id=parent_id)
            if isinstance(allocated, Err):
                raise _AttemptFailed(allocated.error)
            new_id = cast(Ok[int, Error], allocated).value

            inserted = await self._gateway.insert_department(
                connection,
                department_id=new_id,
                name=name,
                parent_id=parent_id,
            )

        if isinstance(inserted, Err):
            error = inserted.error
            if is_unique_violation(error):
                LOGGER.info(
                    "department.create.conflict",
                    department_id=new_id,
                    parent_id=parent_id,
                    attempt=attempt_number,
                )
                raise DepartmentIdConflictError(new_id, cause=error)
            raise _AttemptFailed(error)

        return cast(Ok[Department, Error], inserted).value

    async def get_subtree(self, *, root_id: int) -> Result[list[SubtreeNode], Error]:
        """取得部門樹（含根節點），依 level、parent_id、id 排序。"""
        try:
            async with self._pool.acquire() as connection:
                return await self._materializer.materialize(connection, root_id=root_id)
        except _CONNECTION_ERRORS as exc:
            return cast(Result[list[SubtreeNode], Error], map_asyncpg_error(exc))

    async def list_subtree_employees(
        self,
        *,
        department_id: int,
    ) -> Result[list[Employee], Error]:
        """列出部門及其所有下層部門的員工。"""
        try:
            async with self._pool.acquire() as connection:
                subtree_result = await self._materializer.materialize(
                    connection, root_id=department_id
                )
                if isinstance(subtree_result, Err):
                    return Err(subtree_result.error)
                nodes = cast(Ok[list[SubtreeNode], Error], subtree_result).value
                if not nodes:
                    return Ok([])
                return await self._employee_gateway.list_by_departments(
                    connection, department_ids=[node.id for node in nodes]
                )
        except _CONNECTION_ERRORS as exc:
            return cast(Result[list[Employee], Error], map_asyncpg_error(exc))


__all__ = ["DepartmentService"]
