"""Embedded SQLite adapter (aiosqlite through SQLAlchemy).

The adapter holds a single ``AsyncConnection`` for its whole life; there is no
checkout, so transactions run ``BEGIN`` / ``COMMIT`` / ``ROLLBACK`` on that
shared handle. The handle runs in ``AUTOCOMMIT`` isolation so those statements
are the only transaction control.

Statements are routed by a case-insensitive leading-keyword test:
``INSERT``/``UPDATE``/``DELETE`` take the mutation path and report
``last_insert_id`` and ``affected_row_count`` with no rows; everything else is
read as rows.

The shared handle is not guarded by a lock. Concurrent callers, including a
second task running its own transaction, interleave on the same connection.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from omnidb.adapters import _driver_message, _is_mutation
from omnidb.adapters.sql import _DRIVER_ERRORS, _bind, _query_error
from omnidb.config import SQLiteConfig
from omnidb.exceptions import ConnectionFailedError, NotConnectedError
from omnidb.results import QueryResult

T = TypeVar("T")


async def _run(
    conn: AsyncConnection, statement: str, parameters: Sequence[Any] | None, log: logging.Logger
) -> QueryResult:
    params = _bind(parameters)
    log.debug("Executing query: %s (%d params)", statement, len(params))
    try:
        result = await conn.exec_driver_sql(statement, params)
    except _DRIVER_ERRORS as exc:
        raise _query_error(exc, statement, params, log) from exc
    if _is_mutation(statement):
        return QueryResult(rows=[], last_insert_id=result.lastrowid, affected_row_count=result.rowcount)
    rows = [dict(row) for row in result.mappings().all()] if result.returns_rows else []
    return QueryResult(rows=rows)


class SQLiteTransaction:
    """Transaction context over the adapter's shared handle."""

    dialect = "sqlite"

    def __init__(self, connection: AsyncConnection, log: logging.Logger) -> None:
        self._connection = connection
        self._logger = log

    def placeholder(self, position: int) -> str:
        return "?"

    async def query(self, statement: str, parameters: Sequence[Any] | None = None) -> QueryResult:
        return await _run(self._connection, statement, parameters, self._logger)

    async def transaction(self, body: Callable[[SQLiteTransaction], Awaitable[T]]) -> T:
        """Run *body* against this same context; no savepoint is created."""
        return await body(self)

    async def health_check(self) -> bool:
        try:
            await self._connection.exec_driver_sql("SELECT 1")
            return True
        except Exception:
            return False


class SQLiteAdapter:
    """Single-handle SQLite adapter. ``filename`` may be ``:memory:``."""

    label = "SQLite"
    dialect = "sqlite"

    def __init__(self, config: SQLiteConfig, logger: logging.Logger | None = None) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._engine: AsyncEngine | None = None
        self._connection: AsyncConnection | None = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def placeholder(self, position: int) -> str:
        return "?"

    def _require_connection(self) -> AsyncConnection:
        if self._connection is None:
            raise NotConnectedError("SQLite adapter is not connected; call connect() first")
        return self._connection

    async def connect(self) -> None:
        """Open the database file and keep one connection for the adapter's lifetime."""
        if self._connection is not None:
            self._logger.warning("SQLite adapter already connected; ignoring connect()")
            return

        options: dict[str, Any] = {"poolclass": StaticPool}
        options.update(self._config.engine_options)
        engine: AsyncEngine | None = None
        try:
            engine = create_async_engine(URL.create("sqlite+aiosqlite", database=self._config.filename), **options)
            conn = await engine.connect()
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
        except Exception as exc:
            if engine is not None:
                await engine.dispose()
            self._logger.error("Failed to open SQLite database %s: %s", self._config.filename, type(exc).__name__)
            raise ConnectionFailedError(f"SQLite connection failed: {_driver_message(exc)}", cause=exc) from exc

        self._engine = engine
        self._connection = conn
        self._logger.info("Connected to SQLite database %s", self._config.filename)

    async def disconnect(self) -> None:
        """Close the handle and dispose the engine. No-op when not connected."""
        if self._connection is None:
            return
        conn, self._connection = self._connection, None
        engine, self._engine = self._engine, None
        await conn.close()
        if engine is not None:
            await engine.dispose()
        self._logger.info("Disconnected from SQLite")

    async def query(self, statement: str, parameters: Sequence[Any] | None = None) -> QueryResult:
        """Run one statement on the shared handle."""
        return await _run(self._require_connection(), statement, parameters, self._logger)

    async def _control(self, conn: AsyncConnection, statement: str) -> None:
        try:
            await conn.exec_driver_sql(statement)
        except _DRIVER_ERRORS as exc:
            raise _query_error(exc, statement, (), self._logger) from exc

    async def transaction(self, body: Callable[[SQLiteTransaction], Awaitable[T]]) -> T:
        """Run *body* between ``BEGIN`` and ``COMMIT`` on the shared handle.

        Any exception from *body* or from ``COMMIT`` issues ``ROLLBACK`` and is
        re-raised. The handle itself stays open.
        """
        conn = self._require_connection()
        await self._control(conn, "BEGIN")
        try:
            result = await body(SQLiteTransaction(conn, self._logger))
            await self._control(conn, "COMMIT")
            self._logger.debug("Transaction committed")
        except Exception as exc:
            await self._control(conn, "ROLLBACK")
            self._logger.error("Transaction rolled back: %s", type(exc).__name__)
            raise
        return result

    async def health_check(self) -> bool:
        """Run ``SELECT 1`` on the shared handle. Never raises."""
        if self._connection is None:
            return False
        try:
            await self._connection.exec_driver_sql("SELECT 1")
            return True
        except Exception as exc:
            self._logger.debug("SQLite health check failed: %s", type(exc).__name__)
            return False
