"""Connection façade — owns exactly one adapter chosen by backend type."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from omnidb.adapters.mongo import MongoAdapter
from omnidb.adapters.mysql import MySQLAdapter
from omnidb.adapters.postgres import PostgresAdapter
from omnidb.adapters.sqlite import SQLiteAdapter
from omnidb.config import DEFAULT_PROFILE_PATH, BackendType, load_profiles
from omnidb.exceptions import ValidationError
from omnidb.protocols import Adapter
from omnidb.validator import parse_connection_config

_ADAPTERS: dict[BackendType, type] = {
    BackendType.POSTGRES: PostgresAdapter,
    BackendType.MYSQL: MySQLAdapter,
    BackendType.SQLITE: SQLiteAdapter,
    BackendType.MONGODB: MongoAdapter,
}


class Connection:
    """Entry point for one backend.

    The config is validated once, here, before any adapter exists. Everything
    after construction forwards to the adapter.

    Example::

        conn = Connection("sqlite", {"filename": ":memory:"})
        await conn.connect()
        result = await conn.get_adapter().query("SELECT 1 AS one")
        await conn.disconnect()
    """

    def __init__(
        self,
        backend: BackendType | str,
        config: Mapping[str, Any] | BaseModel | None,
        logger: logging.Logger | None = None,
    ) -> None:
        parsed = parse_connection_config(backend, config)
        self._backend = BackendType(backend)
        self._adapter: Adapter = _ADAPTERS[self._backend](parsed, logger=logger)

    @classmethod
    def from_profile(
        cls,
        name: str = "default",
        path: str | Path = DEFAULT_PROFILE_PATH,
        logger: logging.Logger | None = None,
    ) -> Connection:
        """Build a connection from a named entry in a JSON profile file."""
        profiles = load_profiles(path)
        if name not in profiles:
            raise ValidationError(f"Connection profile '{name}' not found. Available: {list(profiles.keys())}")
        profile = profiles[name]
        return cls(profile.type, profile.config, logger=logger)

    @property
    def backend(self) -> BackendType:
        return self._backend

    async def connect(self) -> None:
        await self._adapter.connect()

    async def disconnect(self) -> None:
        await self._adapter.disconnect()

    def get_adapter(self) -> Adapter:
        return self._adapter

    async def health_check(self) -> bool:
        return await self._adapter.health_check()

    async def __aenter__(self) -> Connection:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.disconnect()

    def __repr__(self) -> str:
        return f"<Connection {self._backend.value}>"
