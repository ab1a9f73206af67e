"""
hscstore Time-Travel Middleware - Linear Undo/Redo History
==========================================================

The time-travel middleware records every committed snapshot into a bounded log
and exposes it under the reserved ``_time_travel`` field of the state.

History is a single linear log with a cursor, not a tree. Writing after moving
the cursor back discards everything after the cursor (branch-on-write):

```python
history = store.get_state()["_time_travel"]

store.set_state({"count": 1})
store.set_state({"count": 2})
store.set_state({"count": 3})
history.go_back()              # count == 2
store.set_state({"count": 4})  # the entry with count == 3 is gone
```

Jumps write the target snapshot into the store while the store's
``is_time_traveling`` flag is held, so the jump itself is never recorded.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import List, Optional

from ..store import same_value
from ..types import Creator, Middleware, PartialOrUpdater, State, StoreApi

logger = logging.getLogger(__name__)

TIME_TRAVEL_KEY = "_time_travel"

_MISSING = object()


@dataclass(frozen=True)
class TimeTravelOptions:
    """
    Attributes:
        max_history: Maximum number of entries kept; the oldest is evicted first.
        enabled: When False nothing is recorded; writes pass straight through.
    """

    max_history: int = 100
    enabled: bool = True

    def __post_init__(self):
        if not isinstance(self.max_history, int) or self.max_history < 1:
            raise ValueError(f"max_history must be a positive integer, got {self.max_history!r}")


@dataclass(frozen=True)
class HistoryEntry:
    state: State
    timestamp: float
    active: bool = False


class TimeTravelHistory:
    """
    Snapshot log plus cursor for one store.

    ``api`` is the view this middleware received; its ``set_state`` is the write
    path below the middleware, which jumps use to restore snapshots.
    """

    def __init__(self, api: StoreApi, options: Optional[TimeTravelOptions] = None):
        self._api = api
        self.options = options or TimeTravelOptions()
        self._entries: List[HistoryEntry] = []
        self._cursor = -1
        self._seed_pending = False

    @property
    def enabled(self) -> bool:
        return self.options.enabled

    def seed(self, state: State) -> None:
        """
        Start the log with the store's initial snapshot as entry 0.

        Middleware further out add their own fields after this one returns, so
        entry 0 is replaced by the complete live snapshot the first time the
        history is used.
        """
        self._entries = [HistoryEntry(state=state, timestamp=time.time())]
        self._cursor = 0
        self._seed_pending = True

    def set_state(self, partial: PartialOrUpdater) -> None:
        """The wrapped write primitive handed to the creator."""
        context = self._api.context
        if not self.enabled or context.is_time_traveling:
            self._api.set_state(partial)
            return

        self._settle_seed()
        before = self._api.get_state()
        self._api.set_state(partial)
        after = self._api.get_state()
        if after is not None and after is not before:
            self.record(after)

    def record(self, state: State) -> None:
        if not self.enabled:
            return
        self._settle_seed()
        if self._entries and self._entries[self._cursor].state is state:
            return

        if self._cursor < len(self._entries) - 1:
            del self._entries[self._cursor + 1 :]

        self._entries.append(HistoryEntry(state=state, timestamp=time.time()))
        while len(self._entries) > self.options.max_history:
            self._entries.pop(0)

        self._cursor = len(self._entries) - 1

    def go_back(self) -> bool:
        if self._cursor <= 0:
            return False
        self._travel(self._cursor - 1)
        return True

    def go_forward(self) -> bool:
        if self._cursor >= len(self._entries) - 1:
            return False
        self._travel(self._cursor + 1)
        return True

    def jump_to_state(self, index: int) -> bool:
        if isinstance(index, bool) or not isinstance(index, int):
            return False
        if index < 0 or index >= len(self._entries):
            return False
        self._travel(index)
        return True

    def clear_history(self) -> None:
        """Collapse the log to a single entry holding the current live state."""
        current = self._api.get_state()
        if current is None:
            return
        self._entries = [HistoryEntry(state=current, timestamp=time.time())]
        self._cursor = 0
        self._seed_pending = False

    def get_history(self) -> List[HistoryEntry]:
        self._settle_seed()
        return [
            replace(entry, active=index == self._cursor)
            for index, entry in enumerate(self._entries)
        ]

    def get_current_index(self) -> int:
        return self._cursor

    def get_history_length(self) -> int:
        return len(self._entries)

    def _travel(self, index: int) -> None:
        self._settle_seed()
        context = self._api.context
        previous = context.is_time_traveling
        context.is_time_traveling = True
        try:
            self._cursor = index
            self._api.set_state(self._entries[index].state)
        finally:
            context.is_time_traveling = previous
        logger.debug(f"Time travel to history entry {index} of {len(self._entries)}")

    def _settle_seed(self) -> None:
        if not self._seed_pending:
            return
        live = self._api.get_state()
        if live is None:
            return
        self._seed_pending = False
        seeded = self._entries[0].state
        # Only adopt the live snapshot while it still holds the seeded values
        if live is not seeded and all(
            same_value(live.get(key, _MISSING), value) for key, value in seeded.items()
        ):
            self._entries[0] = replace(self._entries[0], state=live)

    def __repr__(self) -> str:
        return f"TimeTravelHistory(length={len(self._entries)}, cursor={self._cursor})"


def time_travel_middleware(max_history: int = 100, enabled: bool = True) -> Middleware:
    """
    Create a middleware recording a bounded, linear history of snapshots.

    Args:
        max_history: Maximum number of entries kept.
        enabled: Whether writes are recorded at all.

    Raises:
        ValueError: If ``max_history`` is not a positive integer.
    """
    options = TimeTravelOptions(max_history=max_history, enabled=enabled)

    def middleware(creator: Creator) -> Creator:
        def create(api: StoreApi) -> State:
            history = TimeTravelHistory(api, options)
            state = creator(api.with_set_state(history.set_state))
            state = {**state, TIME_TRAVEL_KEY: history}
            history.seed(state)
            return state

        return create

    return middleware
