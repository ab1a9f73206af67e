"""
hscstore Common Types - Shared Type Definitions
===============================================

Shared type definitions for the store engine and its middleware. Keeping them
in one module avoids circular imports between ``store``, ``composer`` and the
middleware packages.

Key Types:
- ``State``: a plain dict snapshot of the store
- ``StoreApi``: what a creator receives (write primitive, read primitive, subscribe, context)
- ``Creator``: ``StoreApi -> State``, builds the initial snapshot plus actions
- ``Middleware``: ``Creator -> Creator``
"""

from dataclasses import dataclass, replace
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    Protocol,
    Union,
    runtime_checkable,
)

from .context import StoreContext

# ============================================================================
# STATE TYPES
# ============================================================================

State = Dict[str, Any]
PartialState = Mapping[str, Any]
Updater = Callable[[State], PartialState]
PartialOrUpdater = Union[PartialState, Updater]

Listener = Callable[[State], None]
Unsubscribe = Callable[[], None]

SetState = Callable[[PartialOrUpdater], None]
GetState = Callable[[], State]
Subscribe = Callable[[Listener], Unsubscribe]


# ============================================================================
# CREATOR / MIDDLEWARE TYPES
# ============================================================================


@dataclass(frozen=True)
class StoreApi:
    """
    The primitives handed to a creator.

    A middleware that needs to intercept writes derives a new view with
    ``with_set_state`` and passes that view to the creator it wraps. All
    views of one store share the same cell and the same ``StoreContext``.
    """

    set_state: SetState
    get_state: GetState
    subscribe: Subscribe
    context: StoreContext

    def with_set_state(self, set_state: SetState) -> "StoreApi":
        return replace(self, set_state=set_state)


Creator = Callable[[StoreApi], State]


@runtime_checkable
class Middleware(Protocol):
    """A transform from one creator into an augmented creator."""

    def __call__(self, creator: Creator) -> Creator: ...
