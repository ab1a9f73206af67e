"""
Shared pytest fixtures and configuration for hscstore tests.
"""

import pytest

from hscstore.storage import MemoryStorage


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point the default persistent storage at a temporary directory."""
    home = tmp_path / "hscstore-home"
    monkeypatch.setenv("HSCSTORE_HOME", str(home))
    return home


@pytest.fixture
def memory_storage():
    """Provide a fresh session-scoped storage backend."""
    return MemoryStorage()


@pytest.fixture
def counter_creator():
    """A creator with a count, a label and the usual actions."""

    def creator(api):
        return {
            "count": 0,
            "label": "",
            "increase": lambda: api.set_state(lambda s: {"count": s["count"] + 1}),
            "decrease": lambda: api.set_state(lambda s: {"count": s["count"] - 1}),
            "set_label": lambda value: api.set_state({"label": value}),
        }

    return creator
