"""Adapter protocols — the backend-agnostic contract consumers depend on."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, TypeVar, runtime_checkable

from omnidb.results import QueryResult

T = TypeVar("T")


@runtime_checkable
class TransactionContext(Protocol):
    """Adapter-shaped view bound to one open transaction or session.

    Only valid inside a single ``transaction()`` body. It cannot be connected or
    disconnected; the owning adapter controls the handle's lifetime.
    """

    async def query(self, statement: str, parameters: Any = None) -> QueryResult:
        """Run one statement inside the open transaction."""
        ...

    async def transaction(self, body: Callable[[TransactionContext], Awaitable[T]]) -> T:
        """Run *body* against this same context; no nested transaction is opened."""
        ...

    async def health_check(self) -> bool:
        """Report whether the transaction handle is still usable."""
        ...


@runtime_checkable
class Adapter(Protocol):
    """Uniform connect/query/transaction/health capability set for one backend."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None:
        """Acquire the native handle. A second call on a live adapter is a no-op."""
        ...

    async def disconnect(self) -> None:
        """Release the native handle. Safe to call repeatedly."""
        ...

    async def query(self, statement: str, parameters: Any = None) -> QueryResult:
        """Execute one statement (SQL) or operation (document) against the live handle."""
        ...

    async def transaction(self, body: Callable[[TransactionContext], Awaitable[T]]) -> T:
        """Run *body* inside one transaction, committing on success and rolling back on failure."""
        ...

    async def health_check(self) -> bool:
        """Issue a liveness check. Never raises."""
        ...

