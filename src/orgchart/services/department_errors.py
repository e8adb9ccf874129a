"""Department id allocation and tree error types."""

from __future__ import annotations

from enum import Enum
from typing import Any

from src.infra.result import BusinessLogicError, ValidationError


class DepartmentErrorCode(str, Enum):
    """部門操作錯誤代碼。

    命名規則: DEPARTMENT_<CATEGORY>_<DETAIL>
    """

    DEPARTMENT_ALLOCATION_INVALID_PARENT = "DEPARTMENT_ALLOCATION_INVALID_PARENT"
    DEPARTMENT_ALLOCATION_SLOTS_EXHAUSTED = "DEPARTMENT_ALLOCATION_SLOTS_EXHAUSTED"
    DEPARTMENT_ALLOCATION_OUT_OF_RANGE = "DEPARTMENT_ALLOCATION_OUT_OF_RANGE"
    DEPARTMENT_CREATE_ID_CONFLICT = "DEPARTMENT_CREATE_ID_CONFLICT"
    DEPARTMENT_VALIDATION_INVALID_NAME = "DEPARTMENT_VALIDATION_INVALID_NAME"
    DEPARTMENT_UNKNOWN_ERROR = "DEPARTMENT_UNKNOWN_ERROR"


class DepartmentError(BusinessLogicError):
    """部門操作的基礎錯誤類型。"""

    error_code: DepartmentErrorCode = DepartmentErrorCode.DEPARTMENT_UNKNOWN_ERROR
    # Conflicts are the only kind a caller should retry.
    retryable: bool = False

    def __init__(
        self, message: str, *, error_code: DepartmentErrorCode | None = None, **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)
        if error_code is not None:
            self.error_code = error_code


class InvalidParentError(DepartmentError):
    """The parent id has no trailing zero digit, so it has no child keyspace."""

    error_code = DepartmentErrorCode.DEPARTMENT_ALLOCATION_INVALID_PARENT

    def __init__(self, parent_id: int, **kwargs: Any) -> None:
        super().__init__(
            f"Department {parent_id} cannot have sub-departments",
            context={"parent_id": parent_id},
            **kwargs,
        )
        self.parent_id = parent_id


class SlotsExhaustedError(DepartmentError):
    """Every child slot of the parent is taken."""

    error_code = DepartmentErrorCode.DEPARTMENT_ALLOCATION_SLOTS_EXHAUSTED

    def __init__(self, parent_id: int, slots: int, **kwargs: Any) -> None:
        super().__init__(
            f"Department {parent_id} already has the maximum of {slots} sub-departments",
            context={"parent_id": parent_id, "slots": slots},
            **kwargs,
        )
        self.parent_id = parent_id


class OutOfRangeError(DepartmentError):
    """The computed id falls outside ``1 <= id < max_id_num``."""

    error_code = DepartmentErrorCode.DEPARTMENT_ALLOCATION_OUT_OF_RANGE

    def __init__(self, department_id: int, max_id_num: int, **kwargs: Any) -> None:
        super().__init__(
            f"Department id {department_id} is outside the keyspace [1, {max_id_num})",
            context={"department_id": department_id, "max_id_num": max_id_num},
            **kwargs,
        )
        self.department_id = department_id


class DepartmentIdConflictError(DepartmentError):
    """A concurrent writer inserted the allocated id first."""

    error_code = DepartmentErrorCode.DEPARTMENT_CREATE_ID_CONFLICT
    retryable = True

    def __init__(self, department_id: int, **kwargs: Any) -> None:
        super().__init__(
            f"Department id {department_id} was taken by a concurrent insert",
            context={"department_id": department_id},
            **kwargs,
        )
        self.department_id = department_id


class InvalidDepartmentNameError(DepartmentError, ValidationError):
    error_code = DepartmentErrorCode.DEPARTMENT_VALIDATION_INVALID_NAME

    def __init__(self, message: str = "部門名稱必須為 1-100 個字元", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


__all__ = [
    "DepartmentError",
    "DepartmentErrorCode",
    "DepartmentIdConflictError",
    "InvalidDepartmentNameError",
    "InvalidParentError",
    "OutOfRangeError",
    "SlotsExhaustedError",
]
