"""PostgreSQL adapter (asyncpg through a pooled SQLAlchemy engine).

Transactions are driven by explicit ``BEGIN`` / ``COMMIT`` / ``ROLLBACK``
statements on a checked-out connection running in ``AUTOCOMMIT`` isolation, so
the statements are the only transaction control the server sees.
Placeholders are asyncpg's numbered ``$1, $2, ...``.
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection

from omnidb.adapters.sql import _DRIVER_ERRORS, PooledSQLAdapter, PooledSQLTransaction, _query_error
from omnidb.config import PostgresConfig

T = TypeVar("T")


class PostgresTransaction(PooledSQLTransaction):
    """Transaction context bound to one checked-out PostgreSQL connection."""


class PostgresAdapter(PooledSQLAdapter):
    """Pooled PostgreSQL adapter."""

    label = "PostgreSQL"
    dialect = "postgresql"
    _config: PostgresConfig

    def placeholder(self, position: int) -> str:
        return f"${position}"

    def _url(self) -> URL:
        return URL.create(
            "postgresql+asyncpg",
            username=self._config.user,
            password=self._config.password,
            host=self._config.host,
            port=self._config.port,
            database=self._config.database,
        )

    def _pool_size(self) -> int:
        return self._config.max_connections

    async def _control(self, conn: AsyncConnection, statement: str) -> None:
        try:
            await conn.exec_driver_sql(statement)
        except _DRIVER_ERRORS as exc:
            raise _query_error(exc, statement, (), self._logger) from exc

    async def transaction(self, body: Callable[[PostgresTransaction], Awaitable[T]]) -> T:
        """Run *body* inside ``BEGIN`` ... ``COMMIT`` on one checked-out connection.

        Any exception from *body* or from ``COMMIT`` issues ``ROLLBACK`` and is
        re-raised. The connection goes back to the pool in every case.
        """
        conn = await self._checkout()
        try:
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
            await self._control(conn, "BEGIN")
            try:
                result = await body(PostgresTransaction(conn, self))
                await self._control(conn, "COMMIT")
                self._logger.debug("Transaction committed")
            except Exception as exc:
                await self._control(conn, "ROLLBACK")
                self._logger.error("Transaction rolled back: %s", type(exc).__name__)
                raise
            return result
        finally:
            await conn.close()
