from __future__ import annotations

import pytest

from storelens.config import SQLITE_EXTENSIONS, StoreLensConfig, is_sqlite_path

_VARS = (
    "STORELENS_BUSY_TIMEOUT",
    "STORELENS_INTEGRITY_CHECK",
    "STORELENS_OBJECT_GRAPH_EXTENSIONS",
    "STORELENS_READ_ONLY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_from_empty_environment():
    cfg = StoreLensConfig.from_env()
    assert cfg == StoreLensConfig()
    assert cfg.busy_timeout == 1.0
    assert cfg.integrity_check == "quick_check"
    assert cfg.object_graph_extensions == (".store",)
    assert cfg.force_read_only is False


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("STORELENS_BUSY_TIMEOUT", "0.25")
    monkeypatch.setenv("STORELENS_INTEGRITY_CHECK", "integrity_check")
    monkeypatch.setenv("STORELENS_OBJECT_GRAPH_EXTENSIONS", "store, SQLITE ,")
    monkeypatch.setenv("STORELENS_READ_ONLY", "yes")

    cfg = StoreLensConfig.from_env()

    assert cfg.busy_timeout == 0.25
    assert cfg.integrity_check == "integrity_check"
    assert cfg.object_graph_extensions == (".store", ".sqlite")
    assert cfg.force_read_only is True
    assert cfg.is_object_graph_store("x/Model.SQLITE")


@pytest.mark.parametrize(
    "name, value",
    [
        ("STORELENS_BUSY_TIMEOUT", "soon"),
        ("STORELENS_BUSY_TIMEOUT", "-1"),
        ("STORELENS_INTEGRITY_CHECK", "vacuum"),
        ("STORELENS_READ_ONLY", "maybe"),
    ],
)
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        StoreLensConfig.from_env()


def test_object_graph_detection():
    cfg = StoreLensConfig()
    assert cfg.is_object_graph_store("Model.store")
    assert not cfg.is_object_graph_store("Model.sqlite")


@pytest.mark.parametrize(
    "path, expected",
    [
        ("a.db", True),
        ("a.SQLite", True),
        ("dir/a.sqlite3", True),
        ("a.store", True),
        ("a.sqlite-wal", False),
        ("a.txt", False),
        ("noext", False),
    ],
)
def test_is_sqlite_path(path, expected):
    assert is_sqlite_path(path) is expected
    assert ".store" in SQLITE_EXTENSIONS
