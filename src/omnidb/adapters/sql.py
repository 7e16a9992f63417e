"""Shared machinery for the pooled SQL adapters (PostgreSQL, MySQL).

Each adapter owns one SQLAlchemy ``AsyncEngine``; the engine's pool is the
native pool. Statements are sent with ``exec_driver_sql`` so placeholder
syntax stays driver-native and is never rewritten here.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.engine import URL, CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from omnidb.adapters import _driver_message
from omnidb.config import MySQLConfig, PostgresConfig, install_credential_filter
from omnidb.exceptions import ConnectionFailedError, NotConnectedError, QueryError
from omnidb.results import QueryResult

T = TypeVar("T")

# Exceptions wrapped at the adapter seam. Connect errors raised by a driver's own
# connect call (asyncpg, aiomysql) reach SQLAlchemy's pool unwrapped.
_DRIVER_ERRORS = (SQLAlchemyError, OSError)


def _bind(parameters: Sequence[Any] | None) -> tuple[Any, ...]:
    """Positional parameters as the tuple DBAPI drivers expect."""
    if parameters is None:
        return ()
    return tuple(parameters)


def _normalize(result: CursorResult[Any], *, with_lastrowid: bool) -> QueryResult:
    """Convert a buffered cursor result into a :class:`QueryResult`."""
    if result.returns_rows:
        return QueryResult(rows=[dict(row) for row in result.mappings().all()])
    rowcount = result.rowcount if result.rowcount >= 0 else None
    last_insert_id = (result.lastrowid or None) if with_lastrowid else None
    return QueryResult(rows=[], last_insert_id=last_insert_id, affected_row_count=rowcount)


def _query_error(
    exc: BaseException, statement: str, parameters: tuple[Any, ...], log: logging.Logger
) -> QueryError:
    log.error("Query failed: %s (%d params): %s", statement, len(parameters), type(exc).__name__)
    return QueryError(f"Query failed: {_driver_message(exc)}", statement, cause=exc)


class PooledSQLAdapter(ABC):
    """Base class for adapters backed by a pooled SQLAlchemy async engine.

    Subclasses supply the driver URL, the pool size and the transaction
    protocol; connect/disconnect/query/health_check are shared.
    """

    label: str = "SQL"
    dialect: str = ""
    _with_lastrowid: bool = False

    def __init__(self, config: PostgresConfig | MySQLConfig, logger: logging.Logger | None = None) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(type(self).__module__)
        self._engine: AsyncEngine | None = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @abstractmethod
    def placeholder(self, position: int) -> str:
        """Driver-native placeholder for the 1-based parameter *position*."""

    @abstractmethod
    def _url(self) -> URL: ...

    @abstractmethod
    def _pool_size(self) -> int: ...

    def _describe_target(self) -> str:
        return f"{self._config.host}:{self._config.port}/{self._config.database}"

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise NotConnectedError(f"{self.label} adapter is not connected; call connect() first")
        return self._engine

    async def connect(self) -> None:
        """Create the engine pool and check out one connection to verify it."""
        if self._engine is not None:
            self._logger.warning("%s adapter already connected; ignoring connect()", self.label)
            return

        options: dict[str, Any] = {"pool_size": self._pool_size(), "max_overflow": 0}
        options.update(self._config.engine_options)
        engine: AsyncEngine | None = None
        try:
            engine = create_async_engine(self._url(), **options)
            async with engine.connect():
                pass
        except Exception as exc:
            if engine is not None:
                await engine.dispose()
            self._logger.error(
                "Failed to connect to %s at %s: %s", self.label, self._describe_target(), type(exc).__name__
            )
            raise ConnectionFailedError(
                f"{self.label} connection failed: {_driver_message(exc)}", cause=exc
            ) from exc

        if options.get("echo"):
            install_credential_filter()
        self._engine = engine
        self._logger.info("Connected to %s at %s", self.label, self._describe_target())

    async def disconnect(self) -> None:
        """Dispose the engine pool. No-op when not connected."""
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.dispose()
        self._logger.info("Disconnected from %s", self.label)

    async def query(self, statement: str, parameters: Sequence[Any] | None = None) -> QueryResult:
        """Run one statement on a pooled connection and commit it."""
        engine = self._require_engine()
        params = _bind(parameters)
        self._logger.debug("Executing query: %s (%d params)", statement, len(params))
        try:
            async with engine.begin() as conn:
                result = await conn.exec_driver_sql(statement, params)
                return _normalize(result, with_lastrowid=self._with_lastrowid)
        except _DRIVER_ERRORS as exc:
            raise _query_error(exc, statement, params, self._logger) from exc

    async def _checkout(self) -> AsyncConnection:
        """Check out a pooled connection for a transaction."""
        engine = self._require_engine()
        try:
            return await engine.connect()
        except _DRIVER_ERRORS as exc:
            self._logger.error("Connection checkout from %s pool failed: %s", self.label, type(exc).__name__)
            raise ConnectionFailedError(
                f"{self.label} connection checkout failed: {_driver_message(exc)}", cause=exc
            ) from exc

    @abstractmethod
    async def transaction(self, body: Callable[[Any], Awaitable[T]]) -> T:
        """Run *body* inside one transaction on a checked-out connection."""

    async def health_check(self) -> bool:
        """Run ``SELECT 1`` on a pooled connection. Never raises."""
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.exec_driver_sql("SELECT 1")
            return True
        except Exception as exc:
            self._logger.debug("%s health check failed: %s", self.label, type(exc).__name__)
            return False


class PooledSQLTransaction:
    """Transaction context over one checked-out pooled connection."""

    def __init__(self, connection: AsyncConnection, adapter: PooledSQLAdapter) -> None:
        self._connection = connection
        self._adapter = adapter
        self._logger = adapter._logger

    @property
    def dialect(self) -> str:
        return self._adapter.dialect

    def placeholder(self, position: int) -> str:
        return self._adapter.placeholder(position)

    async def query(self, statement: str, parameters: Sequence[Any] | None = None) -> QueryResult:
        """Run one statement inside the open transaction."""
        params = _bind(parameters)
        self._logger.debug("Executing query in transaction: %s (%d params)", statement, len(params))
        try:
            result = await self._connection.exec_driver_sql(statement, params)
        except _DRIVER_ERRORS as exc:
            raise _query_error(exc, statement, params, self._logger) from exc
        return _normalize(result, with_lastrowid=self._adapter._with_lastrowid)

    async def transaction(self, body: Callable[[Any], Awaitable[T]]) -> T:
        """Run *body* against this same context; no savepoint is created."""
        return await body(self)

    async def health_check(self) -> bool:
        """Probe the checked-out connection. False once the transaction is unusable."""
        try:
            await self._connection.exec_driver_sql("SELECT 1")
            return True
        except Exception:
            return False
