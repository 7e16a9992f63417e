"""omnidb — one async data-access contract over PostgreSQL, MySQL, SQLite and MongoDB."""

from omnidb.adapters.mongo import MongoAdapter, MongoTransaction
from omnidb.adapters.mysql import MySQLAdapter, MySQLTransaction
from omnidb.adapters.postgres import PostgresAdapter, PostgresTransaction
from omnidb.adapters.sqlite import SQLiteAdapter, SQLiteTransaction
from omnidb.config import (
    BackendType,
    ConnectionProfile,
    MongoConfig,
    MySQLConfig,
    PostgresConfig,
    SQLiteConfig,
    load_profiles,
    redact_url,
)
from omnidb.connection import Connection
from omnidb.exceptions import (
    ConnectionFailedError,
    NotConnectedError,
    OmniDBError,
    QueryError,
    ValidationError,
)
from omnidb.model import ColumnSchema, ColumnType, Model, ModelSchema
from omnidb.protocols import Adapter, TransactionContext
from omnidb.query_builder import QueryBuilder
from omnidb.results import QueryResult
from omnidb.validator import validate_connection_config, validate_model_schema

__all__ = [
    "Adapter",
    "BackendType",
    "ColumnSchema",
    "ColumnType",
    "Connection",
    "ConnectionFailedError",
    "ConnectionProfile",
    "Model",
    "ModelSchema",
    "MongoAdapter",
    "MongoConfig",
    "MongoTransaction",
    "MySQLAdapter",
    "MySQLConfig",
    "MySQLTransaction",
    "NotConnectedError",
    "OmniDBError",
    "PostgresAdapter",
    "PostgresConfig",
    "PostgresTransaction",
    "QueryBuilder",
    "QueryError",
    "QueryResult",
    "SQLiteAdapter",
    "SQLiteConfig",
    "SQLiteTransaction",
    "TransactionContext",
    "ValidationError",
    "load_profiles",
    "redact_url",
    "validate_connection_config",
    "validate_model_schema",
]
