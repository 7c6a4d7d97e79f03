"""Typed access to SQLite and CoreData/SwiftData store files."""

from .client import AsyncDatabaseClient, DatabaseClient
from .config import SQLITE_EXTENSIONS, StoreLensConfig, is_sqlite_path
from .exceptions import (
    ClientClosedError,
    DecodeError,
    MetadataError,
    MutationError,
    NotConnectedError,
    PreconditionViolation,
    StoreConnectionError,
    StoreLensError,
    TableNotFoundError,
    UnopenableDatabaseError,
)
from .models import (
    AccessMode,
    Column,
    DatabaseMetadata,
    DisplayMode,
    EntityDescriptor,
    EntityObject,
    ModelObject,
    Property,
    Record,
    Table,
    TableObject,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "DatabaseClient",
    "AsyncDatabaseClient",
    "StoreLensConfig",
    "SQLITE_EXTENSIONS",
    "is_sqlite_path",
    "AccessMode",
    "Column",
    "Table",
    "Record",
    "Property",
    "EntityDescriptor",
    "DatabaseMetadata",
    "DisplayMode",
    "TableObject",
    "EntityObject",
    "ModelObject",
    "StoreLensError",
    "StoreConnectionError",
    "UnopenableDatabaseError",
    "NotConnectedError",
    "TableNotFoundError",
    "DecodeError",
    "MetadataError",
    "MutationError",
    "PreconditionViolation",
    "ClientClosedError",
]
