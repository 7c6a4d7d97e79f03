from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .env_loader import load_env_files

_logger = logging.getLogger(__name__)

# Pick up a local .env for library use as well (scripts creating a client directly)
load_env_files(quiet=True)

SQLITE_EXTENSIONS: Tuple[str, ...] = (".db", ".sqlite", ".sqlite3", ".store")

INTEGRITY_CHECKS = ("quick_check", "integrity_check")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def is_sqlite_path(path: Path | str) -> bool:
    """True when the file extension is one of the recognised store types."""
    return Path(path).suffix.lower() in SQLITE_EXTENSIONS


def _normalise_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


# ----------------------------------------------------------------------
# Configuration dataclass
# ----------------------------------------------------------------------
@dataclass
class StoreLensConfig:
    """Settings for opening and reading store files."""

    # Seconds a read-write open waits on another writer's lock before the
    # self-check gives up and the read-only fallback is tried.
    busy_timeout: float = 1.0

    # PRAGMA run once per successful open
    integrity_check: str = "quick_check"

    # Files with these extensions get their model cache loaded
    object_graph_extensions: Tuple[str, ...] = (".store",)

    # Default for connect() when the caller does not say
    force_read_only: bool = False

    def __post_init__(self) -> None:
        if self.integrity_check not in INTEGRITY_CHECKS:
            raise ValueError(
                f"integrity_check must be one of {', '.join(INTEGRITY_CHECKS)}, "
                f"got {self.integrity_check!r}"
            )
        if self.busy_timeout < 0:
            raise ValueError("busy_timeout must not be negative")
        self.object_graph_extensions = tuple(
            _normalise_extension(ext) for ext in self.object_graph_extensions if ext.strip()
        )

    def is_object_graph_store(self, path: Path | str) -> bool:
        return Path(path).suffix.lower() in self.object_graph_extensions

    @classmethod
    def from_env(cls) -> StoreLensConfig:
        """Load configuration from environment variables."""
        raw_exts: Optional[str] = os.getenv("STORELENS_OBJECT_GRAPH_EXTENSIONS")
        extensions = (
            tuple(raw_exts.split(",")) if raw_exts is not None else cls.object_graph_extensions
        )
        cfg = cls(
            busy_timeout=_env_float("STORELENS_BUSY_TIMEOUT", cls.busy_timeout),
            integrity_check=os.getenv("STORELENS_INTEGRITY_CHECK", cls.integrity_check).strip(),
            object_graph_extensions=extensions,
            force_read_only=_env_bool("STORELENS_READ_ONLY", cls.force_read_only),
        )
        _logger.debug("Loaded configuration: %s", cfg)
        return cfg
