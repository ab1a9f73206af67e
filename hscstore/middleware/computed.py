"""
hscstore Computed Middleware - Lazy Derived Values
==================================================

The computed middleware attaches a ``ComputedCache`` to the store under the
reserved ``_computed`` field. Each computed value is a pure function of the
state, evaluated on first read and cached until one of its dependencies changes.

Dependencies are declared explicitly, per computed name, as a list of state
fields and/or other computed names. A computed without declared dependencies is
treated as depending on the whole state and goes stale after every change.

```python
from hscstore import create_store
from hscstore.middleware import computed_middleware

store = create_store(
    lambda api: {"count": 2, "multiplier": 3},
    [
        computed_middleware(
            computed={
                "doubled": lambda s: s["count"] * 2,
                "combined": lambda s: s["_computed"].get("doubled") * s["multiplier"],
            },
            depends_on={
                "doubled": ["count"],
                "combined": ["doubled", "multiplier"],
            },
        )
    ],
)

cache = store.get_state()["_computed"]
cache.get("combined")  # 12
store.set_state({"count": 3})  # invalidates doubled, and through it combined
cache.get("combined")  # 18
```

Invalidation works by diffing the last snapshot the cache has seen against the
current one. The diff runs after every write passing through the middleware and
again before every read, so writes that reach the cell by another route
(time-travel jumps, rehydration) are still picked up.
"""

import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from cachetools import Cache

from ..exceptions import CircularDependencyError, ComputationError, HscStoreError
from ..store import same_value
from ..types import Creator, GetState, Middleware, PartialOrUpdater, State, StoreApi
from ..util.dependency_graph import DependencyGraph

logger = logging.getLogger(__name__)

COMPUTED_KEY = "_computed"

_MISSING = object()


@dataclass(frozen=True)
class ComputedDefinition:
    """
    A named derived value.

    Attributes:
        name: Key under which the value is exposed.
        fn: Pure function of the state.
        depends_on: Keys (state fields or computed names) the value depends on,
            or ``None`` to depend on the whole state.
    """

    name: str
    fn: Callable[[State], Any]
    depends_on: Optional[Tuple[str, ...]] = None


class ComputedCache:
    """
    Memoized computed values with dependency-based invalidation.

    Entries start stale. ``get`` evaluates stale entries against the current
    state and serves fresh ones from the cache.
    """

    def __init__(self, definitions: Iterable[ComputedDefinition], get_state: GetState):
        self._definitions: Dict[str, ComputedDefinition] = {}
        for definition in definitions:
            self._definitions[definition.name] = definition
        self._get_state = get_state

        self._graph = DependencyGraph()
        self._whole_state: Set[str] = set()
        for definition in self._definitions.values():
            self._graph.add_node(definition.name)
            if definition.depends_on is None:
                self._whole_state.add(definition.name)
                continue
            for dependency in definition.depends_on:
                self._graph.add_edge(dependency, definition.name)

        # Dependencies come before their dependents
        self._evaluation_order: List[str] = [
            name for name in self._graph.topological_sort() if name in self._definitions
        ]

        # Sized to the definitions, so nothing is ever evicted: presence means fresh
        self._values: Cache = Cache(maxsize=max(len(self._definitions), 1))
        self._evaluating: List[str] = []
        self._seen: Optional[State] = None
        self._stats = {"hits": 0, "computations": 0, "invalidations": 0}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, name: str) -> Any:
        """
        Return the value of a computed, evaluating it if stale.

        Raises:
            KeyError: If ``name`` is not a computed definition.
            CircularDependencyError: If evaluation re-enters ``name``.
            ComputationError: If the computed function raised.
        """
        if name not in self._definitions:
            raise KeyError(name)
        self.sync()
        if name in self._values:
            self._stats["hits"] += 1
            return self._values[name]
        return self._evaluate(name)

    def is_fresh(self, name: str) -> bool:
        if name not in self._definitions:
            raise KeyError(name)
        self.sync()
        return name in self._values

    def get_computed_keys(self) -> List[str]:
        return list(self._definitions)

    def get_snapshot_with_computed(self) -> State:
        """Base state plus every computed value, as one plain dict."""
        self.sync()
        snapshot = dict(self._get_state() or {})
        for name in self._definitions:
            snapshot[name] = self.get(name)
        return snapshot

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    # ------------------------------------------------------------------
    # Forced recomputation
    # ------------------------------------------------------------------

    def recompute(self, name: str) -> Any:
        """Discard the cached value of ``name`` and evaluate it again now."""
        if name not in self._definitions:
            raise KeyError(name)
        self.sync()
        self._values.pop(name, None)
        return self._evaluate(name)

    def recompute_all(self) -> Dict[str, Any]:
        """
        Discard every cached value and evaluate each computed exactly once.

        Values are evaluated dependencies first, so a computed reading another
        one always finds it fresh.
        """
        self.sync()
        self._values.clear()
        for name in self._evaluation_order:
            self.get(name)
        return {name: self.get(name) for name in self._definitions}

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def sync(self) -> None:
        """Invalidate entries affected by changes since the last seen snapshot."""
        current = self._get_state()
        previous = self._seen
        if current is previous:
            return
        self._seen = current

        if previous is None or current is None:
            self._values.clear()
            return

        changed = {
            key
            for key in previous.keys() | current.keys()
            if not same_value(previous.get(key, _MISSING), current.get(key, _MISSING))
        }
        if changed:
            self.invalidate(changed)

    def invalidate(self, changed_keys: Iterable[str]) -> Set[str]:
        """
        Mark every computed depending (transitively) on ``changed_keys`` stale.

        Returns:
            The computed names that were marked stale.
        """
        stale = self._graph.invalidation_closure(changed_keys)
        stale |= self._whole_state
        stale |= self._graph.invalidation_closure(self._whole_state)
        for name in stale:
            if self._values.pop(name, _MISSING) is not _MISSING:
                self._stats["invalidations"] += 1
        return stale

    def _evaluate(self, name: str) -> Any:
        if name in self._evaluating:
            chain = " -> ".join(self._evaluating + [name])
            raise CircularDependencyError(f"Computed values read each other in a cycle: {chain}")

        definition = self._definitions[name]
        state = self._get_state()
        self._evaluating.append(name)
        try:
            value = definition.fn(state if state is not None else {})
        except HscStoreError:
            raise
        except Exception as e:
            logger.error(f"Computation error in '{name}': {e}")
            raise ComputationError(name, e) from e
        finally:
            self._evaluating.pop()

        self._values[name] = value
        self._stats["computations"] += 1
        return value

    def __repr__(self) -> str:
        fresh = [name for name in self._definitions if name in self._values]
        return f"ComputedCache(definitions={list(self._definitions)}, fresh={fresh})"


def computed_middleware(
    computed: Mapping[str, Callable[[State], Any]],
    depends_on: Optional[Mapping[str, Sequence[str]]] = None,
) -> Middleware:
    """
    Create a middleware exposing cached derived values under ``_computed``.

    Args:
        computed: Computed name -> pure function of the state.
        depends_on: Computed name -> keys it depends on. Names missing here
            depend on the whole state.

    Raises:
        ValueError: If ``depends_on`` names a computed that does not exist.
    """
    depends_on = depends_on or {}
    unknown = set(depends_on) - set(computed)
    if unknown:
        raise ValueError(f"Dependencies declared for unknown computed values: {sorted(unknown)}")

    definitions = [
        ComputedDefinition(
            name=name,
            fn=fn,
            depends_on=tuple(depends_on[name]) if name in depends_on else None,
        )
        for name, fn in computed.items()
    ]

    def middleware(creator: Creator) -> Creator:
        def create(api: StoreApi) -> State:
            cache = ComputedCache(definitions, api.get_state)

            def computed_set(partial: PartialOrUpdater) -> None:
                api.set_state(partial)
                cache.sync()

            state = creator(api.with_set_state(computed_set))
            return {**state, COMPUTED_KEY: cache}

        return create

    return middleware


def get_state_with_computed(store) -> State:
    """Return ``store``'s state merged with its computed values, if it has any."""
    state = store.get_state()
    cache = state.get(COMPUTED_KEY)
    if isinstance(cache, ComputedCache):
        return cache.get_snapshot_with_computed()
    return dict(state)
