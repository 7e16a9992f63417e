"""Error taxonomy shared by every adapter.

Driver exceptions (SQLAlchemy, motor/pymongo, OS errors) are caught at the
adapter seam and re-raised as one of these so callers only ever handle three
kinds of failure: connecting, querying and validating.
"""

from __future__ import annotations


class OmniDBError(Exception):
    """Base exception for all data-layer errors.

    Attributes:
        message: Human-readable description, including the driver message when
            the error wraps a native failure.
    """

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        self.message = message
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class ConnectionFailedError(OmniDBError):
    """Raised when an adapter cannot acquire a native handle."""


class NotConnectedError(ConnectionFailedError):
    """Raised when an operation needs a live handle and the adapter has none."""


class QueryError(OmniDBError):
    """Raised when a statement or document operation fails against a live handle.

    Attributes:
        statement: The SQL text, or ``"<collection>.<operation>"`` for document
            operations, that triggered the failure.
    """

    def __init__(
        self,
        message: str,
        statement: str | None = None,
        *,
        cause: BaseException | None = None,
    ) -> None:
        self.statement = statement
        super().__init__(message, cause=cause)


class ValidationError(OmniDBError):
    """Raised when a config or model schema is malformed, before any I/O."""
