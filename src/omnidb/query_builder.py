"""Fluent SELECT builder over any SQL adapter."""

from __future__ import annotations

import re
from typing import Any

from omnidb.exceptions import QueryError, ValidationError
from omnidb.results import QueryResult

# Identifier, optionally qualified with a table name: "name" or "users.name".
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}(\.[A-Za-z_][A-Za-z0-9_]{0,63})?$")

OPERATORS = frozenset({"=", "!=", "<>", "<", "<=", ">", ">=", "LIKE", "NOT LIKE", "IS", "IS NOT"})


def _check_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ValidationError(f"Invalid SQL identifier: {name!r}")
    return name


def _check_count(value: int, what: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"{what} must be a non-negative integer, got {value!r}")
    return value


class QueryBuilder:
    """Build a parameterized ``SELECT`` and optionally run it.

    Placeholders come from ``adapter.placeholder(position)`` so the SQL matches
    the driver; without an adapter numbered ``$n`` placeholders are emitted.
    """

    def __init__(self, table: str, adapter: Any = None) -> None:
        self._table = _check_identifier(table)
        self._adapter = adapter
        self._fields: list[str] = ["*"]
        self._conditions: list[str] = []
        self._params: list[Any] = []
        self._order_by: str | None = None
        self._limit: int | None = None
        self._offset: int | None = None

    @property
    def parameters(self) -> list[Any]:
        return list(self._params)

    def _placeholder(self, position: int) -> str:
        placeholder = getattr(self._adapter, "placeholder", None)
        if placeholder is None:
            return f"${position}"
        return placeholder(position)

    def select(self, *fields: str) -> QueryBuilder:
        self._fields = [f if f == "*" else _check_identifier(f) for f in fields] or ["*"]
        return self

    def where(self, column: str, operator: str, value: Any) -> QueryBuilder:
        """Add a condition; conditions are joined with ``AND``."""
        op = operator.upper().strip()
        if op not in OPERATORS:
            raise ValidationError(f"Unsupported operator: {operator!r}")
        self._params.append(value)
        self._conditions.append(f"{_check_identifier(column)} {op} {self._placeholder(len(self._params))}")
        return self

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder:
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValidationError(f"Order direction must be ASC or DESC, got {direction!r}")
        self._order_by = f"ORDER BY {_check_identifier(column)} {direction}"
        return self

    def limit(self, count: int) -> QueryBuilder:
        self._limit = _check_count(count, "limit")
        return self

    def offset(self, count: int) -> QueryBuilder:
        self._offset = _check_count(count, "offset")
        return self

    def build(self) -> str:
        sql = f"SELECT {', '.join(self._fields)} FROM {self._table}"
        if self._conditions:
            sql += f" WHERE {' AND '.join(self._conditions)}"
        if self._order_by:
            sql += f" {self._order_by}"
        if self._limit is not None:
            sql += f" LIMIT {self._limit}"
        if self._offset is not None:
            sql += f" OFFSET {self._offset}"
        return sql

    async def execute(self) -> QueryResult:
        """Run the built query on the adapter."""
        sql = self.build()
        if self._adapter is None:
            raise QueryError("QueryBuilder has no adapter to execute against", sql)
        return await self._adapter.query(sql, self._params)
