"""Result / Err 錯誤處理工具。

Store and service calls return ``Ok(value)`` or ``Err(error)`` instead of
raising, so the caller decides whether a failure is retried, reported or
turned into an exit code. ``Error`` carries a message, structured context and
the underlying exception; ``to_dict`` is what the CLI prints.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Mapping,
    ParamSpec,
    TypeVar,
    Union,
    cast,
)

import structlog

LOGGER = structlog.get_logger(__name__)

T = TypeVar("T")
E = TypeVar("E")
P = ParamSpec("P")

_REDACTED = "***redacted***"
_SENSITIVE_FRAGMENTS: tuple[str, ...] = ("password", "passwd", "secret", "token", "dsn", "url")


def _redact(context: Mapping[str, Any]) -> dict[str, Any]:
    """遮罩 context 中的連線字串與密碼（遞迴處理巢狀 dict）。"""
    cleaned: dict[str, Any] = {}
    for key, value in context.items():
        if any(fragment in str(key).lower() for fragment in _SENSITIVE_FRAGMENTS):
            cleaned[key] = _REDACTED
        elif isinstance(value, Mapping):
            cleaned[key] = _redact(cast(Mapping[str, Any], value))
        else:
            cleaned[key] = value
    return cleaned


class Error(Exception):
    """Failure carried inside ``Err``."""

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

    def __str__(self) -> str:
        return self.message

    def log_safe_context(self) -> dict[str, Any]:
        return _redact(self.context)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "context": self.log_safe_context(),
        }


class DatabaseError(Error):
    """資料庫相關錯誤（SQL 失敗、約束違反）。"""


class ValidationError(Error):
    """輸入驗證失敗。"""


class BusinessLogicError(Error):
    """業務規則違反。"""


class SystemError(Error):
    """系統層級錯誤（連線池、網路、逾時）。"""


@dataclass(slots=True)
class Ok(Generic[T, E]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> E:
        raise RuntimeError("Called unwrap_err() on Ok value.")

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(slots=True)
class Err(Generic[T, E]):
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        raise RuntimeError(f"Called unwrap() on Err value: {self.error!r}")

    def unwrap_err(self) -> E:
        return self.error

    def unwrap_or(self, default: T) -> T:
        return default


Result = Union[Ok[T, E], Err[T, E]]


def async_returns_result(
    error_type: type[Error] = Error,
) -> Callable[[Callable[P, Awaitable[Any]]], Callable[P, Awaitable[Result[Any, Error]]]]:
    """將非同步函數的回傳值與例外統一為 Result。

    - A returned ``Ok`` / ``Err`` passes through; any other value becomes ``Ok``.
    - A raised ``Error`` becomes ``Err`` unchanged.
    - Any other exception becomes ``Err(error_type(...))`` with the exception as
      ``cause``, and is logged once here.
    """

    def decorator(
        func: Callable[P, Awaitable[Any]],
    ) -> Callable[P, Awaitable[Result[Any, Error]]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[Any, Error]:
            try:
                value = await func(*args, **kwargs)
            except Error as exc:
                return Err(exc)
            except Exception as exc:
                error = error_type(str(exc), cause=exc)
                LOGGER.error(
                    "result.unexpected_exception",
                    function=func.__qualname__,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                return Err(error)
            if isinstance(value, (Ok, Err)):
                return cast(Result[Any, Error], value)
            return Ok(value)

        return wrapper

    return decorator


__all__ = [
    "BusinessLogicError",
    "DatabaseError",
    "Err",
    "Error",
    "Ok",
    "Result",
    "SystemError",
    "ValidationError",
    "async_returns_result",
]
