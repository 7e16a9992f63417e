"""Tests for config and model-schema pre-flight checks."""

import pytest
from omnidb.config import BackendType, MongoConfig, PostgresConfig
from omnidb.exceptions import ValidationError
from omnidb.model import ColumnSchema, ModelSchema
from omnidb.validator import parse_connection_config, validate_connection_config, validate_model_schema


def test_valid_configs_pass():
    validate_connection_config("sqlite", {"filename": "app.db"})
    validate_connection_config(BackendType.MONGODB, {"url": "mongodb://h", "database": "d"})
    validate_connection_config(
        "postgres", {"host": "h", "port": 5432, "database": "d", "user": "u", "password": "p"}
    )


def test_missing_fields_are_all_reported():
    """Every absent field is listed, in declaration order."""
    with pytest.raises(ValidationError) as exc_info:
        validate_connection_config("mysql", {"host": "h", "port": 3306})
    assert exc_info.value.message == "Invalid config for mysql: missing required fields: database, user, password"


def test_falsy_required_field_counts_as_missing():
    """An empty string is as good as absent."""
    with pytest.raises(ValidationError, match="password"):
        validate_connection_config(
            "postgres", {"host": "h", "port": 5432, "database": "d", "user": "u", "password": ""}
        )


def test_unsupported_tag():
    with pytest.raises(ValidationError) as exc_info:
        validate_connection_config("cassandra", {"hosts": ["a"]})
    assert exc_info.value.message == "Unsupported database type: cassandra"


def test_missing_config():
    """Only None counts as an absent config."""
    with pytest.raises(ValidationError, match="Configuration is required"):
        validate_connection_config("sqlite", None)


def test_empty_config_reports_every_field():
    """An empty mapping is checked field by field like any other config."""
    with pytest.raises(ValidationError) as exc_info:
        validate_connection_config("mongodb", {})
    assert exc_info.value.message == "Invalid config for mongodb: missing required fields: url, database"


def test_parse_returns_typed_model():
    parsed = parse_connection_config("mongodb", {"url": "mongodb://h", "database": "d"})
    assert isinstance(parsed, MongoConfig)
    assert parsed.max_pool_size == 10


def test_parse_passes_through_typed_model():
    """An already-typed config model is returned as is."""
    config = PostgresConfig(host="h", port=1, database="d", user="u", password="p")
    assert parse_connection_config("postgres", config) is config


def test_parse_rejects_bad_types():
    """Type errors from pydantic are rewrapped with the cause chained."""
    with pytest.raises(ValidationError, match="Invalid config for postgres") as exc_info:
        parse_connection_config(
            "postgres", {"host": "h", "port": "not-a-port", "database": "d", "user": "u", "password": "p"}
        )
    assert exc_info.value.__cause__ is not None


def test_parse_rejects_unknown_keys():
    """Config models forbid extra keys."""
    with pytest.raises(ValidationError):
        parse_connection_config("sqlite", {"filename": "a.db", "journal": "wal"})


def test_parse_rejects_non_positive_pool_size():
    with pytest.raises(ValidationError):
        parse_connection_config(
            "mysql",
            {"host": "h", "port": 3306, "database": "d", "user": "u", "password": "p", "connection_limit": 0},
        )


# ---------------------------------------------------------------------------
# Model schemas
# ---------------------------------------------------------------------------


def test_model_schema_valid():
    validate_model_schema(ModelSchema(table="users", columns=[ColumnSchema(attribute="id")]))


def test_model_schema_requires_table():
    with pytest.raises(ValidationError, match="table name"):
        validate_model_schema(ModelSchema(table="", columns=[ColumnSchema(attribute="id")]))


def test_model_schema_requires_columns():
    with pytest.raises(ValidationError, match="at least one column"):
        validate_model_schema(ModelSchema(table="users"))


def test_model_schema_none():
    with pytest.raises(ValidationError):
        validate_model_schema(None)
