from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

__all__ = ["Department", "Employee", "SubtreeNode"]


@dataclass(slots=True, frozen=True)
class Department:
    id: int
    name: str
    parent_id: int | None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "parent_id": self.parent_id}


@dataclass(slots=True, frozen=True)
class SubtreeNode:
    """One row of a materialized subtree.

    ``path`` runs from the subtree root down to this node, both inclusive.
    """

    id: int
    name: str
    parent_id: int | None
    level: int
    path: tuple[int, ...]

    @property
    def path_key(self) -> str:
        return ",".join(str(node_id) for node_id in self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "level": self.level,
            "path": list(self.path),
        }


@dataclass(slots=True, frozen=True)
class Employee:
    id: int
    name: str
    department_id: int
    position: str
    hire_date: date | None
    employee_number: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "department_id": self.department_id,
            "position": self.position,
            "hire_date": self.hire_date.isoformat() if self.hire_date else None,
            "employee_number": self.employee_number,
        }
