"""Normalized result shape returned by every adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class QueryResult:
    """Outcome of one statement or document operation.

    ``rows`` is always a list; mutations leave it empty and report
    ``last_insert_id`` / ``affected_row_count`` where the backend provides them.
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    last_insert_id: Any | None = None
    affected_row_count: int | None = None

    def first(self) -> dict[str, Any] | None:
        """Return the first row, or None when the result has no rows."""
        return self.rows[0] if self.rows else None
