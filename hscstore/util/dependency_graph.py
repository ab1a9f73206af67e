"""
hscstore Dependency Graph - Invalidation Edges Between Keys
===========================================================

This module maintains the dependency graph behind the computed middleware. Nodes
are keys: either plain state fields or computed names. An edge ``A -> B`` means
"B depends on A", so when A changes, B (and everything depending on B) must be
invalidated.

Key Features:
- Cycle detection when edges are added (DFS reachability check)
- Reverse-edge closure for cascading invalidation
- Kahn-style topological ordering for inspection and debugging

Usage:
    graph = DependencyGraph()

    graph.add_edge("count", "doubled")           # doubled depends on count
    graph.add_edge("doubled", "combined_value")  # combined_value depends on doubled

    graph.invalidation_closure({"count"})
    # {"doubled", "combined_value"}

    graph.add_edge("combined_value", "doubled")  # raises CircularDependencyError
"""

from collections import defaultdict, deque
from typing import Dict, Iterable, List, Set

from ..exceptions import CircularDependencyError


class DependencyGraph:
    """
    Directed graph of key dependencies with cycle detection.

    Attributes:
        graph: Forward edges (key -> keys that depend on it)
        reverse_graph: Reverse edges (key -> keys it depends on)
        indegrees: Number of incoming edges for each key
        nodes: Set of all keys in the graph
    """

    def __init__(self):
        self.graph: Dict[str, Set[str]] = defaultdict(set)
        self.reverse_graph: Dict[str, Set[str]] = defaultdict(set)
        self.indegrees: Dict[str, int] = defaultdict(int)
        self.nodes: Set[str] = set()

    def add_node(self, node: str) -> None:
        if node not in self.nodes:
            self.nodes.add(node)
            _ = self.graph[node]
            _ = self.reverse_graph[node]

    def add_edge(self, dependency: str, dependent: str) -> None:
        """
        Record that ``dependent`` must be invalidated when ``dependency`` changes.

        Args:
            dependency: The key being depended upon.
            dependent: The computed name depending on it.

        Raises:
            CircularDependencyError: If the edge would close a cycle.
        """
        self.add_node(dependency)
        self.add_node(dependent)

        if dependent in self.graph[dependency]:
            return

        if self._can_reach(dependent, dependency):
            raise CircularDependencyError(
                f"'{dependent}' cannot depend on '{dependency}': "
                f"'{dependency}' already depends on '{dependent}'"
            )

        self.graph[dependency].add(dependent)
        self.reverse_graph[dependent].add(dependency)
        self.indegrees[dependent] += 1

    def get_dependents(self, node: str) -> Set[str]:
        return set(self.graph.get(node, ()))

    def get_dependencies(self, node: str) -> Set[str]:
        return set(self.reverse_graph.get(node, ()))

    def invalidation_closure(self, changed: Iterable[str]) -> Set[str]:
        """
        Collect every key that transitively depends on any of ``changed``.

        Walks the forward edges one hop at a time until no new key is reached.
        The changed keys themselves are only included when something they
        depend on is also among them.

        Args:
            changed: Keys whose values changed.

        Returns:
            The set of dependent keys to invalidate.
        """
        affected: Set[str] = set()
        queue = deque(changed)
        while queue:
            key = queue.popleft()
            for dependent in self.graph.get(key, ()):
                if dependent not in affected:
                    affected.add(dependent)
                    queue.append(dependent)
        return affected

    def topological_sort(self) -> List[str]:
        """
        Order keys so that every key comes after everything it depends on.

        Ties are broken alphabetically so the order is stable.
        """
        indegrees = {node: self.indegrees.get(node, 0) for node in self.nodes}
        queue = deque(sorted(node for node, degree in indegrees.items() if degree == 0))
        result: List[str] = []

        while queue:
            node = queue.popleft()
            result.append(node)
            for dependent in sorted(self.graph[node]):
                indegrees[dependent] -= 1
                if indegrees[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(self.nodes):
            raise CircularDependencyError("Dependency graph contains cycles")

        return result

    def _can_reach(self, start: str, target: str) -> bool:
        """Iterative DFS: is there a path ``start -> ... -> target``?"""
        if start == target:
            return True
        visited: Set[str] = set()
        stack = [start]
        while stack:
            node = stack.pop()
            if node == target:
                return True
            if node in visited:
                continue
            visited.add(node)
            stack.extend(self.graph.get(node, ()))
        return False

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node: object) -> bool:
        return node in self.nodes

    def __str__(self) -> str:
        edges = sum(len(dependents) for dependents in self.graph.values())
        return f"DependencyGraph(nodes={len(self.nodes)}, edges={edges})"
