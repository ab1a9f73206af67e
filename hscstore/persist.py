"""
hscstore Persistence - Versioned Save and Rehydration
=====================================================

This module keeps a projection of a store's state in a key/value storage backend
and restores it when the application starts again.

Record Format
-------------

Every store writes exactly one string under its configured name:

```json
{"state": {"count": 5}, "version": 1}
```

Lifecycle
---------

1. ``create_persist_store`` (or ``persist`` for an existing store) subscribes a
   ``PersistenceController`` to committed state changes.
2. Nothing is written until the binding layer calls ``PersistStore.mount()``.
   Writing earlier could overwrite the stored record before it was read.
3. ``mount()`` rehydrates (unless ``skip_hydration`` is set) and then saves the
   current state.
4. Every later change is saved. Failures are logged and otherwise ignored.

Rehydration reads the record once, migrates it when its version differs from the
configured one, and merges it over the store's initial state: persisted values
win per key, everything else keeps its initial value.

```python
from hscstore import PersistOptions, create_persist_store
from hscstore.storage import MemoryStorage

store = create_persist_store(
    lambda api: {"count": 0, "font_size": 12},
    PersistOptions(
        name="settings",
        storage=MemoryStorage(),
        version=1,
        migrate=lambda state, version: {**state, "font_size": 16},
    ),
)
store.mount()
```
"""

import json
import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence

from .context import StoreContext
from .exceptions import MigrationError
from .storage import StateStorage, default_storage
from .store import Store, create_store
from .types import Creator, Middleware, State, Unsubscribe

logger = logging.getLogger(__name__)


def strip_internal_fields(state: Mapping[str, Any]) -> State:
    """Default projection: drop underscore-prefixed fields and callables."""
    return {
        key: value
        for key, value in state.items()
        if not key.startswith("_") and not callable(value)
    }


def keep_state(persisted_state: Any, version: int) -> Any:
    """Default migration: use the persisted state unchanged."""
    return persisted_state


@dataclass
class PersistOptions:
    """
    Attributes:
        name: Storage key of the record. Required.
        storage: Backend; defaults to the persistent ``FileStorage``.
        partialize: Projection of the state that gets persisted.
        version: Version written into records and expected on rehydration.
        migrate: ``(persisted_state, stored_version) -> state`` used when the
            stored version differs from ``version``.
        on_rehydrate_storage: Called after rehydration with the restored state,
            or ``None`` when nothing was restored.
        skip_hydration: Do not rehydrate on ``mount()``; manual ``rehydrate()``
            calls still work.
    """

    name: str
    storage: Optional[StateStorage] = None
    partialize: Callable[[State], Mapping[str, Any]] = strip_internal_fields
    version: int = 0
    migrate: Callable[[Any, int], Any] = keep_state
    on_rehydrate_storage: Optional[Callable[[Optional[State]], None]] = None
    skip_hydration: bool = False

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("PersistOptions.name must be a non-empty string")
        if isinstance(self.version, bool) or not isinstance(self.version, int):
            raise TypeError(f"PersistOptions.version must be an int, got {self.version!r}")
        if self.storage is None:
            self.storage = default_storage()
        elif not isinstance(self.storage, StateStorage):
            raise TypeError(
                f"PersistOptions.storage must provide get_item/set_item/remove_item, "
                f"got {type(self.storage).__name__}"
            )


def _resolved(value: Any) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


class PersistenceController:
    """
    Saves committed state and restores it once.

    Subscribes itself to ``store`` on construction; ``detach`` removes the
    subscription.
    """

    def __init__(self, store: Store, options: PersistOptions):
        self._store = store
        self._options = options
        self._initial_state: State = dict(store.get_state() or {})
        self._unsubscribe: Optional[Unsubscribe] = store.subscribe(self.commit)

    @property
    def context(self) -> StoreContext:
        return self._store.context

    @property
    def on_hydrate(self) -> Optional[Callable[[Optional[State]], None]]:
        return self._options.on_rehydrate_storage

    def get_options(self) -> PersistOptions:
        return self._options

    def has_hydrated(self) -> bool:
        return self.context.is_hydrated

    def get_store_state(self) -> StoreContext:
        """A copy of the store's lifecycle flags, for debugging."""
        return self.context.copy()

    def commit(self, state: State) -> None:
        """Write ``state``'s projection to storage, once the store is mounted."""
        if not self.context.is_mounted:
            logger.debug(f"Store '{self._options.name}' not mounted yet, skipping save")
            return
        try:
            payload = json.dumps(
                {
                    "state": dict(self._options.partialize(state)),
                    "version": self._options.version,
                }
            )
            self._options.storage.set_item(self._options.name, payload)
        except Exception as e:
            logger.error(f"Could not save store '{self._options.name}': {e}", exc_info=True)
            return
        logger.debug(f"Saved store '{self._options.name}'")

    def force_save(self) -> None:
        self.commit(self._store.get_state())

    def rehydrate(self) -> "Future[Optional[State]]":
        """
        Restore the persisted record into the store.

        Runs at most once per store. Never raises: parse or migration failures
        are logged, hydration is still marked complete and the callback gets
        ``None``.

        Returns:
            An already resolved future holding the restored state, or ``None``
            when nothing was restored (or hydration had already happened).
        """
        context = self.context
        if context.is_hydrated:
            return _resolved(None)

        name = self._options.name
        try:
            raw = self._options.storage.get_item(name)
            if not raw:
                context.is_hydrated = True
                logger.debug(f"No persisted record for store '{name}'")
                self._notify_hydrated(None)
                return _resolved(None)

            migrated = self._migrate(json.loads(raw))
            restored = {**self._initial_state, **migrated}

            context.is_hydrated = True
            self._store.cell.set_state(restored)
            hydrated = self._store.get_state()
        except Exception as e:
            logger.error(f"Could not rehydrate store '{name}': {e}", exc_info=True)
            context.is_hydrated = True
            self._notify_hydrated(None)
            return _resolved(None)

        logger.debug(f"Rehydrated store '{name}'")
        self._notify_hydrated(hydrated)
        return _resolved(hydrated)

    def clear_storage(self) -> None:
        try:
            self._options.storage.remove_item(self._options.name)
        except Exception as e:
            logger.error(f"Could not clear storage of store '{self._options.name}': {e}", exc_info=True)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _migrate(self, record: Any) -> Mapping[str, Any]:
        if not isinstance(record, Mapping) or "state" not in record:
            raise MigrationError(f"Malformed record for store '{self._options.name}'")

        persisted_state = record["state"]
        stored_version = record.get("version")
        if stored_version == self._options.version:
            migrated = persisted_state
        else:
            logger.debug(
                f"Migrating store '{self._options.name}' "
                f"from version {stored_version} to {self._options.version}"
            )
            migrated = self._options.migrate(persisted_state, stored_version)

        if not isinstance(migrated, Mapping):
            raise MigrationError(
                f"Migration of store '{self._options.name}' produced "
                f"{type(migrated).__name__}, expected a mapping"
            )
        return migrated

    def _notify_hydrated(self, state: Optional[State]) -> None:
        callback = self._options.on_rehydrate_storage
        if callback is None:
            return
        try:
            callback(state)
        except Exception:
            logger.exception(f"on_rehydrate_storage callback of '{self._options.name}' raised")


class PersistStore(Store):
    """
    A store whose state survives restarts.

    Shares cell, context and write path with the store it wraps and adds the
    ``persist`` controller plus the ``mount`` hook for the binding layer.
    """

    def __init__(self, store: Store, options: PersistOptions):
        super().__init__(store.cell, store.context)
        self._write = store._write
        self.persist = PersistenceController(self, options)

    def mount(self) -> None:
        """
        Mark the store active. Call once after the host environment's first attach.

        Rehydrates unless ``skip_hydration`` is set, then saves the current state.
        Later calls do nothing.
        """
        if self.context.is_mounted:
            return
        self.context.is_mounted = True
        options = self.persist.get_options()
        if not options.skip_hydration and not self.context.is_hydrated:
            self.persist.rehydrate()
        self.persist.commit(self.get_state())

    def hydrate(self, server_state: Mapping[str, Any]) -> "PersistStore":
        """Seed with server-produced state, straight into the cell."""
        self.cell.set_state(server_state)
        return self

    def cleanup(self) -> None:
        self.persist.detach()

    def __repr__(self) -> str:
        return f"Persist{super().__repr__()}"


def create_persist_store(
    creator: Creator,
    options: PersistOptions,
    middleware: Optional[Sequence[Middleware]] = None,
) -> PersistStore:
    """Create a store with ``middleware`` and make it persistent."""
    return PersistStore(create_store(creator, middleware), options)


def persist(store: Store, options: PersistOptions) -> PersistStore:
    """Make an existing store persistent."""
    return PersistStore(store, options)
