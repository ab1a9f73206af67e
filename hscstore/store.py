"""
hscstore Store - Reactive State Container
=========================================

This module provides the state cell at the bottom of every hscstore store and
the ``Store`` facade that applications talk to.

Core Components
---------------

**StateCell**: Holds the current snapshot, diffs incoming partial updates key by
key and notifies listeners synchronously after every committed change.

**Store**: The public surface (``get_state``, ``set_state``, ``subscribe``,
``hydrate``). Writes made through ``Store.set_state`` pass every middleware,
the first one in the list intercepting them first.

**create_store**: Builds a cell, composes the middleware around the creator and
seeds the cell with the creator's initial snapshot.

Change Detection
----------------

A write is a no-op unless at least one key in the partial differs from the
current value under ``same_value``. Equal writes create no new snapshot and
notify nobody, so ``get_state()`` keeps returning the very same dict.

Basic Usage
-----------

```python
from hscstore import create_store

def counter(api):
    return {
        "count": 0,
        "increase": lambda: api.set_state(lambda s: {"count": s["count"] + 1}),
    }

store = create_store(counter)
unsubscribe = store.subscribe(lambda state: print(state["count"]))
store.get_state()["increase"]()  # prints 1
unsubscribe()
```
"""

import logging
import math
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from .composer import WriteRouter, compose_middleware, create_initial_state
from .context import StoreContext
from .types import (
    Creator,
    Listener,
    Middleware,
    PartialOrUpdater,
    SetState,
    State,
    StoreApi,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def same_value(a: Any, b: Any) -> bool:
    """
    Compare two field values the way the store decides whether a key changed.

    Numbers compare by value (``1 == 1.0``) except that NaN equals NaN and
    ``0.0`` differs from ``-0.0``. Booleans are never equal to numbers.
    Strings and bytes compare by value; everything else compares by identity.
    """
    if a is b:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return False
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        if a != a and b != b:
            return True
        if a == 0 and b == 0:
            return math.copysign(1.0, a) == math.copysign(1.0, b)
        return a == b
    if isinstance(a, (str, bytes)) and type(a) is type(b):
        return a == b
    return False


class StateCell:
    """
    Holds the live snapshot and the listener registrations of one store.
    """

    def __init__(self):
        self._state: Optional[State] = None
        # token -> listener; dicts keep insertion order, which is the notification order
        self._listeners: Dict[int, Listener] = {}
        self._next_token = 0

    def get_state(self) -> Optional[State]:
        return self._state

    def set_state(self, partial: PartialOrUpdater) -> None:
        """
        Merge a partial snapshot (or the result of an updater) into the state.

        Args:
            partial: A mapping of changed fields, or a function receiving the
                current state and returning such a mapping.

        Raises:
            TypeError: If the partial (or the updater's result) is not a mapping.
        """
        current = self._state
        if callable(partial):
            partial = partial(current if current is not None else {})
        if partial is None:
            return
        if not isinstance(partial, Mapping):
            raise TypeError(
                f"set_state expects a mapping, got {type(partial).__name__}"
            )

        if current is None:
            self._state = dict(partial)
            self._notify(self._state)
            return

        if not self._has_changes(current, partial):
            return

        new_state = dict(current)
        new_state.update(partial)
        self._state = new_state
        self._notify(new_state)

    def seed(self, state: Mapping[str, Any]) -> None:
        """Install the initial snapshot produced by a creator, without notifying."""
        self._state = dict(state)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """
        Register a listener called with every new snapshot.

        Returns:
            A function removing exactly this registration. Calling it more than
            once has no further effect.
        """
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def listener_count(self) -> int:
        return len(self._listeners)

    @staticmethod
    def _has_changes(current: State, partial: Mapping[str, Any]) -> bool:
        for key, value in partial.items():
            if not same_value(current.get(key, _MISSING), value):
                return True
        return False

    def _notify(self, state: State) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(state)
            except Exception:
                logger.exception(f"Listener {listener!r} raised during notification")


class Store:
    """
    Public facade over a ``StateCell`` and the middleware composed around it.

    Attributes:
        context: The store's ``StoreContext`` lifecycle flags.
        api: The unwrapped ``StoreApi`` (writes go straight into the cell).
    """

    def __init__(self, cell: Optional[StateCell] = None, context: Optional[StoreContext] = None):
        self._cell = cell if cell is not None else StateCell()
        self.context = context if context is not None else StoreContext()
        self.api = StoreApi(
            set_state=self._cell.set_state,
            get_state=self._cell.get_state,
            subscribe=self._cell.subscribe,
            context=self.context,
        )
        # Replaced by create_store with the entry of its WriteRouter, so external
        # writes pass every middleware, outermost first.
        self._write: SetState = self._cell.set_state

    @property
    def cell(self) -> StateCell:
        return self._cell

    def get_state(self) -> State:
        return self._cell.get_state()

    def set_state(self, partial: PartialOrUpdater) -> None:
        self._write(partial)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self._cell.subscribe(listener)

    def hydrate(self, server_state: Mapping[str, Any]) -> "Store":
        """Seed the store with externally produced state (e.g. from a server render)."""
        self.set_state(server_state)
        return self

    def select(self, selector: Optional[Callable[[State], Any]] = None) -> Any:
        state = self.get_state()
        return selector(state) if selector is not None else state

    def __repr__(self) -> str:
        state = self.get_state() or {}
        fields = [
            f"{key}={value!r}"
            for key, value in state.items()
            if not key.startswith("_") and not callable(value)
        ]
        return f"Store({', '.join(fields)})"


def create_store(
    creator: Creator, middleware: Optional[Sequence[Middleware]] = None
) -> Store:
    """
    Create a store from a creator and an ordered list of middleware.

    Args:
        creator: Function receiving a ``StoreApi`` and returning the initial
            state (data fields plus action functions).
        middleware: Transforms applied around the creator; the first entry is
            the outermost.

    Returns:
        A ready ``Store`` seeded with the creator's initial state.
    """
    store = Store()
    router = WriteRouter(store.cell.set_state)
    composed = compose_middleware(creator, middleware or (), router)
    state = create_initial_state(composed, creator, router.bind(store.api), router)
    store._write = router.write
    store.cell.seed(state)
    return store
