"""Backend adapters — one per supported storage engine."""

from __future__ import annotations

import re

# Leading-keyword test used by the embedded backend to pick the mutation path.
# It is a prefix match on the stripped text, not a parser: a statement that
# starts with a comment or a CTE is treated as a read.
_MUTATION_RE = re.compile(r"^(INSERT|UPDATE|DELETE)", re.IGNORECASE)


def _is_mutation(statement: str) -> bool:
    """Return True if *statement* starts with INSERT, UPDATE or DELETE (any case)."""
    return bool(_MUTATION_RE.match(statement.strip()))


def _driver_message(exc: BaseException) -> str:
    """Best-effort driver message for wrapping into a domain error.

    SQLAlchemy DBAPI errors carry the driver's own exception in ``orig``; its
    text is shorter than SQLAlchemy's and omits the echoed statement.
    """
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc) or type(exc).__name__
