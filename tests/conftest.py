"""Shared fixtures.

The pooled adapters are exercised against an in-memory SQLite engine: the
engine factory they call is replaced so no PostgreSQL or MySQL server is
needed. Statements in those tests therefore use ``?`` placeholders.
"""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool


@pytest.fixture
def engine_calls(monkeypatch) -> list[tuple]:
    """Swap ``create_async_engine`` in the pooled-SQL module for an in-memory SQLite one.

    Each call is recorded as ``(url, kwargs)``.
    """
    calls: list[tuple] = []

    def fake_create_async_engine(url, **kwargs):
        calls.append((url, kwargs))
        return create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    monkeypatch.setattr("omnidb.adapters.sql.create_async_engine", fake_create_async_engine)
    return calls


@pytest.fixture
def unreachable_engine(monkeypatch) -> None:
    """Swap ``create_async_engine`` for one whose first checkout fails."""

    def fake_create_async_engine(url, **kwargs):
        return create_async_engine("sqlite+aiosqlite:////nonexistent-omnidb-dir/nested/db.sqlite")

    monkeypatch.setattr("omnidb.adapters.sql.create_async_engine", fake_create_async_engine)


@pytest.fixture
def refusing_engine():
    """An engine whose every new connection fails the way asyncpg/aiomysql do when the server is down.

    The error comes from the driver's own connect call, so SQLAlchemy's pool
    re-raises it without wrapping.
    """

    async def refuse():
        raise ConnectionRefusedError(111, "Connect call failed ('10.0.0.5', 5432)")

    return create_async_engine("sqlite+aiosqlite://", async_creator=refuse)
