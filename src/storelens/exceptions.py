from __future__ import annotations

from pathlib import Path
from typing import Optional


class StoreLensError(RuntimeError):
    """Base class for errors surfaced to callers of storelens.

    Every error carries a human-readable ``message`` and a
    ``recovery_suggestion`` so a presentation layer can show both.
    """

    default_suggestion: Optional[str] = None

    def __init__(self, message: str, *, suggestion: Optional[str] = None):
        self.message = message
        self.recovery_suggestion = suggestion or self.default_suggestion
        super().__init__(message)


class StoreConnectionError(StoreLensError):
    """Raised when the connection lifecycle cannot proceed."""


class UnopenableDatabaseError(StoreConnectionError):
    """Raised when neither a read-write nor a read-only open succeeded."""

    default_suggestion = (
        "Check that the path points to an existing SQLite file and that it is "
        "readable. If another application is writing to it, close that "
        "application or copy the file and open the copy."
    )

    def __init__(
        self,
        path: Path | str,
        *,
        read_write_error: Optional[BaseException] = None,
        read_only_error: Optional[BaseException] = None,
    ):
        self.path = Path(path)
        self.read_write_error = read_write_error
        self.read_only_error = read_only_error

        reasons = []
        if read_write_error is not None:
            reasons.append(f"read-write: {read_write_error}")
        if read_only_error is not None:
            reasons.append(f"read-only: {read_only_error}")
        detail = f" ({'; '.join(reasons)})" if reasons else ""
        super().__init__(f"Unable to open database at {self.path}{detail}")


class NotConnectedError(StoreConnectionError):
    """Raised when an operation needs an open handle and there is none."""

    default_suggestion = "Connect to a database before running this operation."

    def __init__(self, operation: Optional[str] = None):
        self.operation = operation
        what = f" for {operation}" if operation else ""
        super().__init__(f"No database connection available{what}")


class TableNotFoundError(StoreLensError):
    """Raised when a table name is not present in the catalog."""

    default_suggestion = "List the tables of the database and pick one of those names."

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"No table named {table!r} in the database")


class DecodeError(StoreLensError):
    """A single cell or catalog row could not be decoded.

    Only raised inside the decoding layer; callers see ``Null`` values or
    skipped columns instead.
    """


class MetadataError(StoreLensError):
    """Store metadata or the embedded model cache is missing or corrupt."""

    default_suggestion = "The file will be shown as plain SQLite tables."


class ArchiveError(MetadataError):
    """The decompressed model cache is not a readable keyed archive."""


class MutationError(StoreLensError):
    """An insert, update or delete statement failed."""

    default_suggestion = (
        "Check that the database is opened read-write and that the values "
        "satisfy the table's constraints."
    )

    def __init__(
        self,
        message: str,
        *,
        suggestion: Optional[str] = None,
        completed: int = 0,
    ):
        self.completed = completed
        super().__init__(message, suggestion=suggestion)


class PreconditionViolation(StoreLensError):
    """A row was addressed without primary-key values or a row id.

    This is a programming error in the caller: records of tables without a
    primary key must be fetched with their row id.
    """

    default_suggestion = "Fetch the record from the database before modifying it."


class ClientClosedError(StoreLensError):
    """Work was submitted to a client that has been shut down."""

    default_suggestion = "Create a new DatabaseClient."

    def __init__(self) -> None:
        super().__init__("The database client has been shut down")
