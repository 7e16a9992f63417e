"""Minimal active-record layer over the SQL adapters.

Models describe their storage with an explicit :class:`ModelSchema` instead of
decorators::

    class User(Model):
        __schema__ = ModelSchema(
            table="users",
            columns=[
                ColumnSchema(attribute="id", column_type=ColumnType.INTEGER, primary_key=True),
                ColumnSchema(attribute="name"),
                ColumnSchema(attribute="email", column="email_address"),
            ],
        )

    Model.set_connection(connection)
    user = await User.create(name="Ada", email="ada@example.com")

Every operation accepts ``using=`` to run through a transaction context
instead of the connection's adapter.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel, Field, field_validator

from omnidb.connection import Connection
from omnidb.exceptions import NotConnectedError, ValidationError
from omnidb.query_builder import QueryBuilder
from omnidb.validator import validate_model_schema

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}$")

M = TypeVar("M", bound="Model")


class ColumnType(str, Enum):
    """Declared storage type of a column. Informational; no coercion is applied."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    JSON = "json"


class ColumnSchema(BaseModel):
    """One mapped attribute and the storage column behind it."""

    attribute: str = Field(description="Python attribute name on the model instance.")
    column: str | None = Field(default=None, description="Storage column name; defaults to the attribute name.")
    column_type: ColumnType = Field(default=ColumnType.STRING)
    primary_key: bool = Field(default=False)

    model_config = {"extra": "forbid"}

    @field_validator("attribute", "column")
    @classmethod
    def validate_identifier(cls, v: str | None) -> str | None:
        if v is not None and not _IDENTIFIER_RE.match(v):
            raise ValueError(f"{v!r} is not a valid identifier")
        return v

    @property
    def storage_name(self) -> str:
        return self.column or self.attribute


class ModelSchema(BaseModel):
    """Table name plus the ordered list of mapped columns."""

    table: str
    columns: list[ColumnSchema] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        if v and not _IDENTIFIER_RE.match(v):
            raise ValueError(f"Table name {v!r} is not a valid identifier")
        return v

    @property
    def primary_key(self) -> ColumnSchema:
        """The column flagged ``primary_key``, else the one named ``id``."""
        for col in self.columns:
            if col.primary_key:
                return col
        for col in self.columns:
            if col.attribute == "id":
                return col
        raise ValidationError(f"Model schema for '{self.table}' has no primary key column")


class Model:
    """Active-record base class. Subclasses set ``__schema__``."""

    __schema__: ClassVar[ModelSchema]
    _connection: ClassVar[Connection | None] = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "__schema__" in cls.__dict__:
            validate_model_schema(cls.__schema__)

    def __init__(self, **values: Any) -> None:
        unknown = set(values) - {col.attribute for col in self.__schema__.columns}
        if unknown:
            raise ValidationError(f"Unknown attributes for {type(self).__name__}: {', '.join(sorted(unknown))}")
        object.__setattr__(self, "_set_attributes", set())
        for col in self.__schema__.columns:
            object.__setattr__(self, col.attribute, None)
        for name, value in values.items():
            setattr(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        # Assigned columns, None included, are written by the next save().
        super().__setattr__(name, value)
        if any(col.attribute == name for col in self.__schema__.columns):
            self._set_attributes.add(name)

    @classmethod
    def set_connection(cls, connection: Connection) -> None:
        """Bind *connection* to this class and, when called on ``Model``, to every model."""
        cls._connection = connection

    @classmethod
    def _resolve_adapter(cls, using: Any = None) -> Any:
        adapter = using
        if adapter is None:
            if cls._connection is None:
                raise NotConnectedError(f"No connection set for {cls.__name__}; call set_connection() first")
            adapter = cls._connection.get_adapter()
        if not hasattr(adapter, "placeholder"):
            raise ValidationError(f"{cls.__name__} requires a SQL backend")
        return adapter

    @classmethod
    def _from_row(cls: type[M], row: dict[str, Any]) -> M:
        attributes = {col.storage_name: col.attribute for col in cls.__schema__.columns}
        instance = cls(**{attributes[key]: value for key, value in row.items() if key in attributes})
        instance._set_attributes.clear()
        return instance

    @classmethod
    async def find(cls: type[M], id: Any, *, using: Any = None) -> M | None:
        """Load the row whose primary key equals *id*, or None."""
        adapter = cls._resolve_adapter(using)
        pk = cls.__schema__.primary_key
        result = await QueryBuilder(cls.__schema__.table, adapter).where(pk.storage_name, "=", id).execute()
        row = result.first()
        return cls._from_row(row) if row is not None else None

    @classmethod
    async def find_all(cls: type[M], *, using: Any = None) -> list[M]:
        adapter = cls._resolve_adapter(using)
        result = await QueryBuilder(cls.__schema__.table, adapter).execute()
        return [cls._from_row(row) for row in result.rows]

    @classmethod
    async def create(cls: type[M], *, using: Any = None, **data: Any) -> M:
        instance = cls(**data)
        await instance.save(using=using)
        return instance

    def _assigned(self) -> list[tuple[ColumnSchema, Any]]:
        pk = self.__schema__.primary_key
        return [
            (col, getattr(self, col.attribute))
            for col in self.__schema__.columns
            if col is not pk and col.attribute in self._set_attributes
        ]

    async def save(self, *, using: Any = None) -> None:
        """INSERT when the primary key is unset, otherwise UPDATE the assigned columns.

        Only assigned columns are written, so an INSERT leaves the rest to their
        column defaults and ``instance.email = None`` sets ``email`` to NULL.
        """
        adapter = self._resolve_adapter(using)
        schema = self.__schema__
        pk = schema.primary_key
        pk_value = getattr(self, pk.attribute)
        assigned = self._assigned()
        values = [value for _, value in assigned]

        if pk_value is None:
            if assigned:
                columns = ", ".join(col.storage_name for col, _ in assigned)
                placeholders = ", ".join(adapter.placeholder(i) for i in range(1, len(assigned) + 1))
                sql = f"INSERT INTO {schema.table} ({columns}) VALUES ({placeholders})"
            elif adapter.dialect == "mysql":
                sql = f"INSERT INTO {schema.table} () VALUES ()"
            else:
                sql = f"INSERT INTO {schema.table} DEFAULT VALUES"
            if adapter.dialect == "postgresql":
                sql += f" RETURNING {pk.storage_name}"
            result = await adapter.query(sql, values)
            row = result.first()
            setattr(self, pk.attribute, row[pk.storage_name] if row is not None else result.last_insert_id)
            self._set_attributes.clear()
            return

        if not assigned:
            return
        assignments = ", ".join(
            f"{col.storage_name} = {adapter.placeholder(i)}" for i, (col, _) in enumerate(assigned, start=1)
        )
        sql = (
            f"UPDATE {schema.table} SET {assignments} "
            f"WHERE {pk.storage_name} = {adapter.placeholder(len(assigned) + 1)}"
        )
        await adapter.query(sql, [*values, pk_value])
        self._set_attributes.clear()

    async def delete(self, *, using: Any = None) -> None:
        adapter = self._resolve_adapter(using)
        pk = self.__schema__.primary_key
        pk_value = getattr(self, pk.attribute)
        if pk_value is None:
            raise ValidationError(f"Cannot delete {type(self).__name__} without a primary key value")
        sql = f"DELETE FROM {self.__schema__.table} WHERE {pk.storage_name} = {adapter.placeholder(1)}"
        await adapter.query(sql, [pk_value])

    def to_dict(self) -> dict[str, Any]:
        return {col.attribute: getattr(self, col.attribute) for col in self.__schema__.columns}

    def __repr__(self) -> str:
        pk = self.__schema__.primary_key
        return f"<{type(self).__name__} {pk.attribute}={getattr(self, pk.attribute)!r}>"
