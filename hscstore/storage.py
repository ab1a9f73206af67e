"""
hscstore Storage - Key/Value String Backends
============================================

Persistence writes one JSON string per store under the store's name. Any object
with ``get_item``, ``set_item`` and ``remove_item`` can serve as the backend.

Backends
--------

**MemoryStorage**: Process-local, session-scoped storage. Optionally bounded by
``max_bytes`` to behave like a quota-limited store.

**FileStorage**: Persistent storage, one ``<key>.json`` file per record in a
directory. Writes go to a temporary file first and are moved into place, so a
crash never leaves a half-written record behind.

The default persistent directory is ``~/.hscstore``; set ``HSCSTORE_HOME`` to
use another location.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, Union, runtime_checkable
from urllib.parse import quote

from .exceptions import StorageError

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "HSCSTORE_HOME"


@runtime_checkable
class StateStorage(Protocol):
    """Structural interface every storage backend satisfies."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """
    Dict-backed storage living as long as the process (or the object).

    Args:
        max_bytes: Optional quota over the summed UTF-8 size of all values.
            Writes exceeding it raise ``StorageError``.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        self._items: Dict[str, str] = {}
        self._max_bytes = max_bytes

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"Storage values must be strings, got {type(value).__name__}")
        if self._max_bytes is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._items.items() if k != key)
            if used + len(value.encode("utf-8")) > self._max_bytes:
                raise StorageError(f"Quota of {self._max_bytes} bytes exceeded writing '{key}'")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items


class FileStorage:
    """
    Directory-backed persistent storage.

    Args:
        directory: Where records are kept (default: ``$HSCSTORE_HOME`` or
            ``~/.hscstore``). Created on first write.
    """

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(directory) if directory is not None else default_directory()

    def path_for(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read '{path}': {e}") from e

    def set_item(self, key: str, value: str) -> None:
        path = self.path_for(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Could not write '{path}': {e}") from e
        logger.debug(f"Wrote record '{key}' to {path}")

    def remove_item(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not remove '{path}': {e}") from e

    def __repr__(self) -> str:
        return f"FileStorage({str(self.directory)!r})"


def default_directory() -> Path:
    configured = os.environ.get(HOME_ENV_VAR)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".hscstore"


def default_storage() -> FileStorage:
    """The persistent backend used when a store does not configure one."""
    return FileStorage(default_directory())
