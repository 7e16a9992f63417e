"""Pre-flight shape checks for connection configs and model schemas.

These run before any adapter or native client exists. They only test for the
presence of required fields; types, ranges and credential formats are left to
the drivers.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from omnidb.config import CONFIG_MODELS, BackendConfig, BackendType
from omnidb.exceptions import ValidationError

_REQUIRED_FIELDS: dict[BackendType, tuple[str, ...]] = {
    BackendType.POSTGRES: ("host", "port", "database", "user", "password"),
    BackendType.MYSQL: ("host", "port", "database", "user", "password"),
    BackendType.SQLITE: ("filename",),
    BackendType.MONGODB: ("url", "database"),
}


def _as_mapping(config: Mapping[str, Any] | BaseModel) -> Mapping[str, Any]:
    if isinstance(config, BaseModel):
        return config.model_dump()
    return config


def _resolve_backend(backend: BackendType | str) -> BackendType:
    try:
        return BackendType(backend)
    except ValueError:
        raise ValidationError(f"Unsupported database type: {backend}") from None


def validate_connection_config(backend: BackendType | str, config: Mapping[str, Any] | BaseModel | None) -> None:
    """Check that *config* carries every field *backend* needs.

    Raises:
        ValidationError: If the config is None, a required field is absent
            or falsy, or *backend* is not a supported tag.
    """
    if config is None:
        raise ValidationError("Configuration is required")

    backend_type = _resolve_backend(backend)
    values = _as_mapping(config)
    missing = [name for name in _REQUIRED_FIELDS[backend_type] if not values.get(name)]
    if missing:
        raise ValidationError(
            f"Invalid config for {backend_type.value}: missing required fields: {', '.join(missing)}"
        )


def parse_connection_config(
    backend: BackendType | str, config: Mapping[str, Any] | BaseModel | None
) -> BackendConfig:
    """Validate *config* and build the backend's typed config model."""
    validate_connection_config(backend, config)
    backend_type = BackendType(backend)
    model_cls = CONFIG_MODELS[backend_type]
    if isinstance(config, model_cls):
        return config  # type: ignore[return-value]
    try:
        return model_cls.model_validate(dict(_as_mapping(config)))  # type: ignore[arg-type,return-value]
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid config for {backend_type.value}: {exc}", cause=exc) from exc


def validate_model_schema(schema: Any) -> None:
    """Check that a model schema names a table and declares at least one column."""
    if schema is None or not getattr(schema, "table", None):
        raise ValidationError("Model schema must declare a table name")
    if not getattr(schema, "columns", None):
        raise ValidationError(f"Model schema for '{schema.table}' must declare at least one column")
