"""Subtree closure over the ``departments`` parent pointers.

The expansion is breadth-first: each round asks the store for the children of
the previous round's nodes and stops once a round adds nothing. Every
occurrence carries its ancestry path, so a malformed graph (a node with two
parents, or a cycle) can yield the same id more than once; ``dedupe_by_path``
keeps one row per id, the occurrence with the smallest path string.
"""

from __future__ import annotations

from typing import Iterable, cast

import structlog

from src.db.gateway.departments import DepartmentGateway
from src.infra.result import Err, Error, Ok, Result
from src.infra.types.db import ConnectionProtocol
from src.orgchart.models import Department, SubtreeNode

LOGGER = structlog.get_logger(__name__)


def dedupe_by_path(nodes: Iterable[SubtreeNode]) -> list[SubtreeNode]:
    """Keep, per id, the occurrence whose path string sorts first.

    Ties keep the first one seen. Input order is otherwise preserved.
    """
    best: dict[int, SubtreeNode] = {}
    for node in nodes:
        current = best.get(node.id)
        if current is None or node.path_key < current.path_key:
            best[node.id] = node
    return list(best.values())


def subtree_sort_key(node: SubtreeNode) -> tuple[int, int, int]:
    parent_id = node.parent_id if node.parent_id is not None else -1
    return (node.level, parent_id, node.id)


class SubtreeMaterializer:
    def __init__(self, *, gateway: DepartmentGateway | None = None) -> None:
        self._gateway = gateway or DepartmentGateway()

    async def materialize(
        self,
        connection: ConnectionProtocol,
        *,
        root_id: int,
    ) -> Result[list[SubtreeNode], Error]:
        """Return ``root_id`` and all of its descendants, one row per id.

        The rounds run inside a single REPEATABLE READ read-only transaction so
        they all observe the same snapshot. A missing root yields ``Ok([])``.
        Rows are ordered by (level, parent_id, id).
        """
        async with connection.transaction(isolation="repeatable_read", readonly=True):
            result = await self._expand(connection, root_id)

        if isinstance(result, Err):
            return result

        occurrences = cast(Ok[list[SubtreeNode], Error], result).value
        nodes = sorted(dedupe_by_path(occurrences), key=subtree_sort_key)
        LOGGER.info(
            "department.subtree.materialized",
            root_id=root_id,
            nodes=len(nodes),
            depth=nodes[-1].level if nodes else None,
        )
        return Ok(nodes)

    async def _expand(
        self, connection: ConnectionProtocol, root_id: int
    ) -> Result[list[SubtreeNode], Error]:
        root_result = await self._gateway.get_department(connection, department_id=root_id)
        if isinstance(root_result, Err):
            return Err(root_result.error)
        root = cast(Ok[Department | None, Error], root_result).value
        if root is None:
            LOGGER.info("department.subtree.root_missing", root_id=root_id)
            return Ok([])

        seed = SubtreeNode(
            id=root.id,
            name=root.name,
            parent_id=root.parent_id,
            level=0,
            path=(root.id,),
        )
        occurrences: list[SubtreeNode] = [seed]
        frontier: list[SubtreeNode] = [seed]

        while frontier:
            children_result = await self._gateway.children_of(
                connection, parent_ids={node.id for node in frontier}
            )
            if isinstance(children_result, Err):
                return Err(children_result.error)
            children = cast(Ok[list[Department], Error], children_result).value

            by_parent: dict[int, list[Department]] = {}
            for child in children:
                if child.parent_id is not None:
                    by_parent.setdefault(child.parent_id, []).append(child)

            next_frontier: list[SubtreeNode] = []
            for node in frontier:
                for child in by_parent.get(node.id, ()):
                    if child.id in node.path:
                        # Cycle back into this node's own ancestry.
                        continue
                    next_frontier.append(
                        SubtreeNode(
                            id=child.id,
                            name=child.name,
                            parent_id=child.parent_id,
                            level=node.level + 1,
                            path=node.path + (child.id,),
                        )
                    )

            occurrences.extend(next_frontier)
            frontier = next_frontier

        return Ok(occurrences)


__all__ = ["SubtreeMaterializer", "dedupe_by_path", "subtree_sort_key"]
