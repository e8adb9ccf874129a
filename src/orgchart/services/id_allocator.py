"""Sparse hierarchical department id allocation with gap filling.

A child id is found with one probe of the parent's fixed candidate window
instead of a table scan: the lowest free slot wins, whether it is a gap left
by a deleted sibling or the first unused slot after the last one.

The allocator only computes ids. It holds no state between calls and does not
serialize concurrent callers; two requests may compute the same id, and the
primary key on ``departments.id`` decides which insert wins (see
``DepartmentService.create_department`` for the bounded retry).
"""

from __future__ import annotations

from typing import cast

import structlog

from src.config.settings import AllocatorSettings, get_allocator_settings
from src.db.gateway.departments import DepartmentGateway
from src.infra.result import Err, Error, Ok, Result
from src.infra.types.db import ConnectionProtocol
from src.orgchart.identifiers import (
    can_have_children,
    child_candidates,
    child_increment,
    is_valid_id,
    next_root_id,
)
from src.orgchart.services.department_errors import (
    InvalidParentError,
    OutOfRangeError,
    SlotsExhaustedError,
)

LOGGER = structlog.get_logger(__name__)


class DepartmentIdAllocator:
    def __init__(
        self,
        *,
        gateway: DepartmentGateway | None = None,
        settings: AllocatorSettings | None = None,
    ) -> None:
        self._gateway = gateway or DepartmentGateway()
        self._settings = settings or get_allocator_settings()

    @property
    def settings(self) -> AllocatorSettings:
        return self._settings

    async def allocate(
        self,
        connection: ConnectionProtocol,
        *,
        parent_id: int | None = None,
    ) -> Result[int, Error]:
        """Compute the next free id under ``parent_id`` (root level when None or 0).

        Returns:
            Ok(id) on success; Err with InvalidParentError, SlotsExhaustedError,
            OutOfRangeError, or the store's DatabaseError / SystemError.
        """
        if parent_id:
            result = await self._allocate_child(connection, parent_id)
        else:
            result = await self._allocate_root(connection)

        if isinstance(result, Err):
            return result

        new_id = cast(Ok[int, Error], result).value
        if not is_valid_id(new_id, self._settings.max_id_num):
            LOGGER.info(
                "department.allocate.out_of_range",
                parent_id=parent_id,
                department_id=new_id,
                max_id_num=self._settings.max_id_num,
            )
            return Err(OutOfRangeError(new_id, self._settings.max_id_num))

        LOGGER.info("department.allocate.assigned", parent_id=parent_id, department_id=new_id)
        return Ok(new_id)

    async def _allocate_child(
        self, connection: ConnectionProtocol, parent_id: int
    ) -> Result[int, Error]:
        if not can_have_children(parent_id):
            return Err(InvalidParentError(parent_id))

        slots = self._settings.child_slots
        candidates = child_candidates(parent_id, slots)
        LOGGER.debug(
            "department.allocate.probe",
            parent_id=parent_id,
            increment=child_increment(parent_id),
            candidates=list(candidates),
        )

        existing_result = await self._gateway.existing_ids(connection, candidates=candidates)
        if isinstance(existing_result, Err):
            return Err(existing_result.error)
        existing = cast(Ok[list[int], Error], existing_result).value

        # Walk the candidate window and the sorted hits in lock-step: the first
        # candidate that differs from the next hit (or outruns the hits) is free.
        hits = iter(existing)
        for candidate in candidates:
            found = next(hits, None)
            if found is None:
                return Ok(candidate)
            if found != candidate:
                LOGGER.debug(
                    "department.allocate.gap",
                    parent_id=parent_id,
                    department_id=candidate,
                    next_existing=found,
                )
                return Ok(candidate)

        return Err(SlotsExhaustedError(parent_id, slots))

    async def _allocate_root(self, connection: ConnectionProtocol) -> Result[int, Error]:
        max_result = await self._gateway.max_id(connection)
        if isinstance(max_result, Err):
            return Err(max_result.error)
        max_id = cast(Ok[int | None, Error], max_result).value

        if not max_id:
            return Ok(self._settings.first_root_id)
        return Ok(next_root_id(max_id))


__all__ = ["DepartmentIdAllocator"]
