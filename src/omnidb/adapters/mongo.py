"""MongoDB adapter backed by Motor.

``query(collection, operation)`` takes a collection name and a descriptor with
exactly one key:

    {"find": {...filter}}
    {"insert_one": {...document}}
    {"update_one": {"filter": {...}, "update": {...}}}
    {"delete_one": {...filter}}

Transactions run in a client session: ``commit_transaction()`` on success,
``abort_transaction()`` on failure, and ``end_session()`` exactly once either
way. Every operation issued through the transaction context carries that
session.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, TypeVar

from motor.motor_asyncio import AsyncIOMotorClient

from omnidb.adapters import _driver_message
from omnidb.config import MongoConfig, redact_url
from omnidb.exceptions import ConnectionFailedError, NotConnectedError, QueryError
from omnidb.results import QueryResult

T = TypeVar("T")

OPERATIONS = ("find", "insert_one", "update_one", "delete_one")


def _operation_name(collection: str, operation: Any, log: logging.Logger) -> str:
    """Return the single recognised key of *operation*, or raise QueryError."""
    if isinstance(operation, Mapping) and len(operation) == 1:
        (name,) = operation.keys()
        if name in OPERATIONS:
            return name
    log.error("Unsupported MongoDB operation on %s: %r", collection, operation)
    raise QueryError(
        f"Unsupported MongoDB operation: expected one of {', '.join(OPERATIONS)}, got {operation!r}",
        collection,
    )


async def _run_operation(
    database: Any,
    collection: str,
    operation: Mapping[str, Any],
    log: logging.Logger,
    session: Any = None,
) -> QueryResult:
    name = _operation_name(collection, operation, log)
    statement = f"{collection}.{name}"
    arg = operation[name]
    # A filter or document must be given explicitly; ``{}`` matches every document.
    if not isinstance(arg, Mapping):
        log.error("MongoDB %s needs a document or filter, got %r", statement, arg)
        raise QueryError(f"{name} requires a document or filter mapping, got {arg!r}", statement)
    log.debug("Executing MongoDB operation: %s", statement)
    coll = database[collection]
    try:
        if name == "find":
            cursor = coll.find(arg, session=session)
            return QueryResult(rows=[dict(doc) for doc in await cursor.to_list(length=None)])
        if name == "insert_one":
            result = await coll.insert_one(arg, session=session)
            return QueryResult(last_insert_id=result.inserted_id, affected_row_count=1)
        if name == "update_one":
            if "filter" not in arg or "update" not in arg:
                log.error("MongoDB %s is missing 'filter' or 'update'", statement)
                raise QueryError("update_one requires 'filter' and 'update'", statement)
            result = await coll.update_one(arg["filter"], arg["update"], session=session)
            return QueryResult(affected_row_count=result.modified_count)
        result = await coll.delete_one(arg, session=session)
        return QueryResult(affected_row_count=result.deleted_count)
    except QueryError:
        raise
    except Exception as exc:
        log.error("MongoDB operation failed: %s: %s", statement, type(exc).__name__)
        raise QueryError(f"MongoDB operation failed: {_driver_message(exc)}", statement, cause=exc) from exc


class MongoTransaction:
    """Transaction context bound to one client session."""

    def __init__(self, database: Any, session: Any, log: logging.Logger) -> None:
        self._database = database
        self._session = session
        self._logger = log

    @property
    def session(self) -> Any:
        return self._session

    async def query(self, statement: str, parameters: Mapping[str, Any] | None = None) -> QueryResult:
        """Run one operation on *statement* (a collection name) inside the session."""
        return await _run_operation(self._database, statement, parameters or {}, self._logger, self._session)

    async def transaction(self, body: Callable[[MongoTransaction], Awaitable[T]]) -> T:
        """Run *body* against this same session; no nested transaction is started."""
        return await body(self)

    async def health_check(self) -> bool:
        """True while the session is open and inside its transaction."""
        try:
            return not self._session.has_ended and bool(self._session.in_transaction)
        except Exception:
            return False


class MongoAdapter:
    """Session-based MongoDB adapter."""

    label = "MongoDB"

    def __init__(self, config: MongoConfig, logger: logging.Logger | None = None) -> None:
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._client: Any = None
        self._database: Any = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def _require_database(self) -> Any:
        if self._database is None:
            raise NotConnectedError("MongoDB adapter is not connected; call connect() first")
        return self._database

    async def connect(self) -> None:
        """Create the client, select the database and verify with ``ping``."""
        if self._client is not None:
            self._logger.warning("MongoDB adapter already connected; ignoring connect()")
            return

        options: dict[str, Any] = {"maxPoolSize": self._config.max_pool_size}
        options.update(self._config.client_options)
        client: Any = None
        try:
            client = AsyncIOMotorClient(self._config.url, **options)
            await client.admin.command("ping")
        except Exception as exc:
            if client is not None:
                client.close()
            self._logger.error(
                "Failed to connect to MongoDB at %s: %s", redact_url(self._config.url), type(exc).__name__
            )
            raise ConnectionFailedError(f"MongoDB connection failed: {_driver_message(exc)}", cause=exc) from exc

        self._client = client
        self._database = client[self._config.database]
        self._logger.info(
            "Connected to MongoDB at %s (database=%s)", redact_url(self._config.url), self._config.database
        )

    async def disconnect(self) -> None:
        """Close the client. No-op when not connected."""
        if self._client is None:
            return
        client, self._client, self._database = self._client, None, None
        client.close()
        self._logger.info("Disconnected from MongoDB")

    async def query(self, statement: str, parameters: Mapping[str, Any] | None = None) -> QueryResult:
        """Run one operation against the collection named by *statement*."""
        database = self._require_database()
        return await _run_operation(database, statement, parameters or {}, self._logger)

    async def transaction(self, body: Callable[[MongoTransaction], Awaitable[T]]) -> T:
        """Run *body* inside a session transaction.

        An exception from *body* aborts the transaction and is re-raised. A
        failed commit is not followed by an abort; the server has already
        discarded the transaction. The session is always ended, exactly once.
        """
        database = self._require_database()
        try:
            session = await self._client.start_session()
        except Exception as exc:
            self._logger.error("Failed to start MongoDB session: %s", type(exc).__name__)
            raise ConnectionFailedError(
                f"MongoDB session start failed: {_driver_message(exc)}", cause=exc
            ) from exc
        try:
            session.start_transaction()
            try:
                result = await body(MongoTransaction(database, session, self._logger))
            except Exception as exc:
                await self._end_transaction(session.abort_transaction, "abort_transaction")
                self._logger.error("MongoDB transaction rolled back: %s", type(exc).__name__)
                raise
            await self._end_transaction(session.commit_transaction, "commit_transaction")
            self._logger.debug("MongoDB transaction committed")
            return result
        finally:
            await session.end_session()

    async def _end_transaction(self, finish: Callable[[], Awaitable[Any]], name: str) -> None:
        try:
            await finish()
        except Exception as exc:
            self._logger.error("MongoDB %s failed: %s", name, type(exc).__name__)
            raise QueryError(f"MongoDB {name} failed: {_driver_message(exc)}", name, cause=exc) from exc

    async def health_check(self) -> bool:
        """Send an administrative ``ping``. Never raises."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception as exc:
            self._logger.debug("MongoDB health check failed: %s", type(exc).__name__)
            return False
