"""MySQL adapter (aiomysql through a pooled SQLAlchemy engine).

Transactions use the driver's own ``commit()`` / ``rollback()`` calls via a
SQLAlchemy ``Transaction`` on a checked-out connection. Placeholders are
aiomysql's ``%s``.
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncTransaction

from omnidb.adapters.sql import _DRIVER_ERRORS, PooledSQLAdapter, PooledSQLTransaction, _query_error
from omnidb.config import MySQLConfig

T = TypeVar("T")


class MySQLTransaction(PooledSQLTransaction):
    """Transaction context bound to one checked-out MySQL connection."""


class MySQLAdapter(PooledSQLAdapter):
    """Pooled MySQL adapter. ``last_insert_id`` is reported for inserts."""

    label = "MySQL"
    dialect = "mysql"
    _with_lastrowid = True
    _config: MySQLConfig

    def placeholder(self, position: int) -> str:
        return "%s"

    def _url(self) -> URL:
        return URL.create(
            "mysql+aiomysql",
            username=self._config.user,
            password=self._config.password,
            host=self._config.host,
            port=self._config.port,
            database=self._config.database,
        )

    def _pool_size(self) -> int:
        return self._config.connection_limit

    async def _finish(self, trans: AsyncTransaction, *, commit: bool) -> None:
        try:
            if commit:
                await trans.commit()
            else:
                await trans.rollback()
        except _DRIVER_ERRORS as exc:
            raise _query_error(exc, "COMMIT" if commit else "ROLLBACK", (), self._logger) from exc

    async def transaction(self, body: Callable[[MySQLTransaction], Awaitable[T]]) -> T:
        """Run *body* inside a driver-level transaction on one checked-out connection.

        Any exception from *body* or from the commit rolls back and is
        re-raised. The connection goes back to the pool in every case.
        """
        conn = await self._checkout()
        try:
            trans = await conn.begin()
            try:
                result = await body(MySQLTransaction(conn, self))
                await self._finish(trans, commit=True)
                self._logger.debug("Transaction committed")
            except Exception as exc:
                await self._finish(trans, commit=False)
                self._logger.error("Transaction rolled back: %s", type(exc).__name__)
                raise
            return result
        finally:
            await conn.close()
