"""
hscstore Middleware
===================

Creator transforms that can be composed around a store.

- ``computed_middleware``: lazily evaluated, cached derived values (``_computed``)
- ``time_travel_middleware``: bounded linear undo/redo history (``_time_travel``)
- ``schema_middleware``: synchronous per-field checks (``_schema``)
"""

from .computed import (
    COMPUTED_KEY,
    ComputedCache,
    ComputedDefinition,
    computed_middleware,
    get_state_with_computed,
)
from .schema import SCHEMA_KEY, FieldError, FieldRule, SchemaValidator, schema_middleware
from .time_travel import (
    TIME_TRAVEL_KEY,
    HistoryEntry,
    TimeTravelHistory,
    TimeTravelOptions,
    time_travel_middleware,
)

__all__ = [
    "COMPUTED_KEY",
    "ComputedCache",
    "ComputedDefinition",
    "computed_middleware",
    "get_state_with_computed",
    "SCHEMA_KEY",
    "FieldError",
    "FieldRule",
    "SchemaValidator",
    "schema_middleware",
    "TIME_TRAVEL_KEY",
    "HistoryEntry",
    "TimeTravelHistory",
    "TimeTravelOptions",
    "time_travel_middleware",
]
