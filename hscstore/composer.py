"""
hscstore Composer - Middleware Composition
==========================================

Middleware are plain ``Creator -> Creator`` transforms. ``compose_middleware``
applies them in reverse list order so that the first middleware in the list
ends up outermost:

```python
composed = compose_middleware(base, [m0, m1, m2])
# equivalent to m0(m1(m2(base)))
```

The outermost middleware is the last to delegate to the base creator and the
first to intercept calls to ``set_state`` coming from outside.

Write Routing
-------------

A middleware intercepts writes by handing its inner creator a ``StoreApi`` whose
``set_state`` is its own wrapper, and the wrapper delegates to the ``set_state``
it received itself. Writes made by the creator's actions therefore travel from
the innermost wrapper outwards to the cell.

Writes coming from outside (``Store.set_state``) travel the other way: they
enter the outermost wrapper first and move inwards, one wrapper per middleware
in list order, before reaching the cell. ``WriteRouter`` makes this possible.
It records the wrapper each middleware installs and gives every layer a relay
as its delegate. A relay continues outwards for action writes and inwards for
external ones.

Composition is forgiving. A transform that raises is skipped and composition
continues from the creator as it stood before that transform. If the fully
composed creator fails while building the initial state, ``create_initial_state``
falls back to the unmodified base creator, so a store always starts with some
state.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from .types import Creator, Middleware, PartialOrUpdater, SetState, State, StoreApi

logger = logging.getLogger(__name__)


class WriteRouter:
    """
    Routes writes between the wrappers installed by composed middleware.

    Layers are identified by their position in the middleware list.
    ``write`` is the entry point for external writes.

    Args:
        cell_write: The write primitive of the state cell.
    """

    def __init__(self, cell_write: SetState):
        self._cell_write = cell_write
        # layer -> set_state the layer handed to its inner creator
        self._wrappers: Dict[int, SetState] = {}
        # layer -> next applied layer further inside (None: the base creator)
        self._inner_of: Dict[int, Optional[int]] = {}
        self._outermost: Optional[int] = None
        # True while an external write is moving inwards
        self._inbound: List[bool] = []

    def bind(self, api: StoreApi) -> StoreApi:
        """The api handed to the outermost layer."""
        return api.with_set_state(self._root_relay)

    def tap(self, index: int, inner: Creator, inner_layer: Optional[int]) -> Creator:
        """
        Wrap ``inner`` so the layer at ``index`` reports the wrapper it installs.

        Args:
            index: Position of the middleware about to wrap ``inner``.
            inner: The creator that middleware wraps.
            inner_layer: Position of the applied middleware inside ``inner``,
                or ``None`` when ``inner`` is the base creator.
        """
        inward = self._inner_of.get(inner_layer) if inner_layer is not None else None

        def relay(partial: PartialOrUpdater) -> None:
            if self._is_inbound():
                if inner_layer is None:
                    self._to_cell(partial)
                else:
                    self._forward(inward, partial)
            else:
                self._forward(index, partial)

        def tapped(api: StoreApi) -> State:
            self._wrappers[index] = api.set_state
            return inner(api.with_set_state(relay))

        return tapped

    def applied(self, index: int, inner_layer: Optional[int]) -> None:
        """Record that the middleware at ``index`` now wraps ``inner_layer``."""
        self._inner_of[index] = inner_layer
        self._outermost = index

    def reset(self) -> None:
        """Forget every layer; writes go straight to the cell."""
        self._wrappers.clear()
        self._inner_of.clear()
        self._outermost = None

    def write(self, partial: PartialOrUpdater) -> None:
        """Entry point for writes coming from outside the store."""
        entry = self._wrappers.get(self._outermost) if self._outermost is not None else None
        if entry is None:
            self._to_cell(partial)
            return
        self._inbound.append(True)
        try:
            entry(partial)
        finally:
            self._inbound.pop()

    def _root_relay(self, partial: PartialOrUpdater) -> None:
        if self._is_inbound() and self._outermost is not None:
            self._forward(self._inner_of.get(self._outermost), partial)
        else:
            self._to_cell(partial)

    def _forward(self, layer: Optional[int], partial: PartialOrUpdater) -> None:
        wrapper = self._wrappers.get(layer) if layer is not None else None
        if wrapper is None:
            self._to_cell(partial)
        else:
            wrapper(partial)

    def _to_cell(self, partial: PartialOrUpdater) -> None:
        # Listeners run inside the cell write; their own writes start fresh
        self._inbound.append(False)
        try:
            self._cell_write(partial)
        finally:
            self._inbound.pop()

    def _is_inbound(self) -> bool:
        return bool(self._inbound) and self._inbound[-1]


def compose_middleware(
    creator: Creator,
    middleware: Sequence[Middleware],
    router: Optional[WriteRouter] = None,
) -> Creator:
    """
    Wrap ``creator`` with every middleware, first entry outermost.

    Args:
        creator: The base creator.
        middleware: Ordered transforms.
        router: Optional ``WriteRouter`` recording the layers for external writes.

    Returns:
        The composed creator. Middleware that raised while wrapping are left out.
    """
    composed = creator
    inner_layer: Optional[int] = None
    for index in range(len(middleware) - 1, -1, -1):
        transform = middleware[index]
        if not callable(transform):
            logger.error(f"Middleware at position {index} is not callable, skipping")
            continue
        inner = router.tap(index, composed, inner_layer) if router is not None else composed
        try:
            composed = transform(inner)
        except Exception:
            logger.exception(f"Middleware at position {index} failed to apply, skipping")
            continue
        if router is not None:
            router.applied(index, inner_layer)
        inner_layer = index
    return composed


def create_initial_state(
    composed: Creator,
    base: Creator,
    api: StoreApi,
    router: Optional[WriteRouter] = None,
) -> State:
    """
    Produce the initial snapshot, falling back to the base creator on failure.

    Args:
        composed: The creator returned by ``compose_middleware``.
        base: The unmodified creator used as fallback.
        api: The store primitives handed to the creator.
        router: The router used during composition; reset on fallback.

    Returns:
        The initial state as a new dict.

    Raises:
        Exception: Whatever the base creator raises when the fallback fails too.
    """
    try:
        return _checked(composed(api))
    except Exception:
        logger.exception("Store initialization failed, retrying without middleware")
    if router is not None:
        router.reset()
    return _checked(base(api))


def _checked(state) -> State:
    if not isinstance(state, Mapping):
        raise TypeError(f"Creator must return a mapping, got {type(state).__name__}")
    return dict(state)
