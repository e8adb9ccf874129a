"""Structural types for the slice of asyncpg the department store touches.

Gateways only read rows and insert single records; the materializer also opens
read-only snapshot transactions. Unit tests satisfy the same protocols with
in-memory fakes.
"""

from __future__ import annotations

from typing import Any, AsyncContextManager, Literal, Mapping, Protocol, Self

# asyncpg spells isolation levels in snake case.
IsolationLevel = Literal["read_committed", "repeatable_read", "serializable"]

Row = Mapping[str, Any]


class TransactionProtocol(Protocol):
    async def __aenter__(self) -> Self: ...
    async def __aexit__(self, exc_type, exc, tb) -> None: ...  # type: ignore[no-untyped-def]


class ConnectionProtocol(Protocol):
    async def fetchval(
        self,
        query: str,
        *args: Any,
        column: int = 0,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> Any: ...

    async def fetchrow(
        self, query: str, *args: Any, timeout: float | None = None  # noqa: ASYNC109
    ) -> Row | None: ...

    async def fetch(
        self, query: str, *args: Any, timeout: float | None = None  # noqa: ASYNC109
    ) -> list[Row]: ...

    def transaction(
        self,
        *,
        isolation: IsolationLevel | None = None,
        readonly: bool = False,
        deferrable: bool = False,
    ) -> TransactionProtocol: ...


class PoolProtocol(Protocol):
    def acquire(
        self, *, timeout: float | None = None
    ) -> AsyncContextManager[ConnectionProtocol]: ...


__all__ = [
    "ConnectionProtocol",
    "IsolationLevel",
    "PoolProtocol",
    "Row",
    "TransactionProtocol",
]
