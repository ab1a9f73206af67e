"""
hscstore - Reactive State Container with Composable Middleware
==============================================================

A small reactive store: one mutable state cell with change notification, wrapped
by middleware for cached derived values, time-travel history and versioned
persistence.
"""

__version__ = "0.3.0"

from .composer import WriteRouter, compose_middleware, create_initial_state
from .context import StoreContext
from .exceptions import (
    CircularDependencyError,
    ComputationError,
    HscStoreError,
    MigrationError,
    StorageError,
    ValidationError,
)
from .middleware import (
    ComputedCache,
    FieldRule,
    HistoryEntry,
    TimeTravelHistory,
    computed_middleware,
    get_state_with_computed,
    schema_middleware,
    time_travel_middleware,
)
from .persist import (
    PersistenceController,
    PersistOptions,
    PersistStore,
    create_persist_store,
    persist,
    strip_internal_fields,
)
from .storage import FileStorage, MemoryStorage, StateStorage
from .store import StateCell, Store, create_store, same_value
from .types import Creator, Middleware, State, StoreApi

__all__ = [
    # Store engine
    "StateCell",
    "Store",
    "StoreApi",
    "StoreContext",
    "create_store",
    "same_value",
    "compose_middleware",
    "WriteRouter",
    "create_initial_state",
    # Types
    "Creator",
    "Middleware",
    "State",
    # Middleware
    "ComputedCache",
    "computed_middleware",
    "get_state_with_computed",
    "TimeTravelHistory",
    "HistoryEntry",
    "time_travel_middleware",
    "FieldRule",
    "schema_middleware",
    # Persistence
    "PersistOptions",
    "PersistenceController",
    "PersistStore",
    "create_persist_store",
    "persist",
    "strip_internal_fields",
    "StateStorage",
    "MemoryStorage",
    "FileStorage",
    # Exceptions
    "HscStoreError",
    "CircularDependencyError",
    "ComputationError",
    "MigrationError",
    "StorageError",
    "ValidationError",
]
