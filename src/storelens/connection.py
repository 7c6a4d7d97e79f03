"""Connection lifecycle for a single SQLite handle.

``connect`` opens read-write when it can and falls back to an immutable
read-only handle when the file is locked by another writer, uses a WAL
journal we cannot share, or is not writable. The previous handle is only
closed once the new one has passed its self-check, so a failed reconnect
leaves the existing connection usable.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Optional, Tuple

from .archive import ManagedObjectModel
from .config import StoreLensConfig
from .exceptions import NotConnectedError, UnopenableDatabaseError
from .modelcache import ModelCacheLoader, ObjectGraph
from .models import CLOSED, AccessMode, ConnectionState, DatabaseMetadata

_logger = logging.getLogger(__name__)


def database_uri(path: Path, *, read_only: bool) -> str:
    """SQLite URI for a file; read-only handles are immutable and take no locks."""
    base = path.absolute().as_uri()
    if read_only:
        return f"{base}?mode=ro&immutable=1"
    # mode=rw never creates a missing file
    return f"{base}?mode=rw"


def writable_location(path: Path) -> bool:
    """True when both the file and its directory (for the journal) accept writes."""
    return os.access(path, os.W_OK) and os.access(path.absolute().parent, os.W_OK)


def _close_quietly(handle: sqlite3.Connection) -> None:
    try:
        handle.close()
    except sqlite3.Error as exc:
        _logger.debug("Ignoring error while closing handle: %s", exc)


class ConnectionManager:
    """Owns the one active handle and the object graph loaded with it."""

    def __init__(
        self,
        config: Optional[StoreLensConfig] = None,
        model_cache_loader: Optional[ModelCacheLoader] = None,
    ):
        self.config = config or StoreLensConfig.from_env()
        self._loader = model_cache_loader or ModelCacheLoader()
        self._state: ConnectionState = CLOSED
        self._object_graph: Optional[ObjectGraph] = None

    # --------------------------- State -------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state.is_open

    @property
    def access_mode(self) -> Optional[AccessMode]:
        return self._state.access_mode

    @property
    def path(self) -> Optional[Path]:
        return self._state.path

    @property
    def handle(self) -> sqlite3.Connection:
        if self._state.handle is None:
            raise NotConnectedError()
        return self._state.handle

    @property
    def metadata(self) -> Optional[DatabaseMetadata]:
        return self._object_graph.metadata if self._object_graph else None

    @property
    def model(self) -> Optional[ManagedObjectModel]:
        return self._object_graph.model if self._object_graph else None

    # --------------------------- Lifecycle ---------------------------

    def connect(self, path: Path | str, force_read_only: Optional[bool] = None) -> AccessMode:
        """Open ``path`` and make it the current connection.

        Raises
        ------
        UnopenableDatabaseError
            If every permitted open attempt failed. The previous connection,
            if any, is left untouched.
        """
        path = Path(path)
        if force_read_only is None:
            force_read_only = self.config.force_read_only

        handle, mode = self._open(path, force_read_only)
        try:
            object_graph = self._load_object_graph(path, handle)
        except BaseException:
            _close_quietly(handle)
            raise

        previous = self._state
        self._state = ConnectionState(handle=handle, access_mode=mode, path=path)
        self._object_graph = object_graph
        if previous.handle is not None:
            _logger.debug("Closing previous connection to %s", previous.path)
            _close_quietly(previous.handle)

        _logger.info("Connected to %s (%s)", path, mode.value)
        return mode

    def close(self) -> None:
        """Release the handle and forget loaded metadata; no-op when closed."""
        previous = self._state
        self._state = CLOSED
        self._object_graph = None
        if previous.handle is None:
            return
        try:
            previous.handle.close()
        except sqlite3.Error as exc:
            _logger.warning("Error while closing %s: %s", previous.path, exc)
        else:
            _logger.info("Closed connection to %s", previous.path)

    # --------------------------- Internal helpers --------------------

    def _open(self, path: Path, force_read_only: bool) -> Tuple[sqlite3.Connection, AccessMode]:
        if force_read_only:
            try:
                return self._open_checked(path, read_only=True), AccessMode.READ_ONLY_REQUESTED
            except sqlite3.Error as exc:
                raise UnopenableDatabaseError(path, read_only_error=exc) from exc

        try:
            return self._open_checked(path, read_only=False), AccessMode.READ_WRITE
        except sqlite3.Error as rw_exc:
            _logger.info("Read-write open of %s failed (%s); retrying read-only", path, rw_exc)
            try:
                handle = self._open_checked(path, read_only=True)
            except sqlite3.Error as ro_exc:
                raise UnopenableDatabaseError(
                    path, read_write_error=rw_exc, read_only_error=ro_exc
                ) from ro_exc
            return handle, AccessMode.READ_ONLY_FALLBACK

    def _open_checked(self, path: Path, *, read_only: bool) -> sqlite3.Connection:
        handle = sqlite3.connect(
            database_uri(path, read_only=read_only),
            uri=True,
            timeout=self.config.busy_timeout,
        )
        try:
            self._self_check(handle, path)
            if not read_only and not writable_location(path):
                # SQLite quietly opens such files read-only under mode=rw
                raise sqlite3.OperationalError(f"{path} is not writable")
        except BaseException:
            _close_quietly(handle)
            raise
        return handle

    def _self_check(self, handle: sqlite3.Connection, path: Path) -> None:
        rows = handle.execute(f"PRAGMA {self.config.integrity_check}").fetchall()
        results = [r[0] for r in rows]
        if results != ["ok"]:
            # Readable but damaged: keep the handle, the user still wants to look
            _logger.warning("%s reported problems in %s: %s", self.config.integrity_check, path, results[:5])

    def _load_object_graph(self, path: Path, handle: sqlite3.Connection) -> Optional[ObjectGraph]:
        if not self.config.is_object_graph_store(path):
            return None
        try:
            return self._loader.load(handle)
        except Exception as exc:
            _logger.warning("Could not load the object graph of %s: %s", path, exc, exc_info=True)
            return None
