"""
hscstore Utils
==============

Support data structures for the store middleware.

Classes:
- DependencyGraph: key dependency edges with cycle detection and invalidation closure
"""

from .dependency_graph import DependencyGraph

__all__ = ["DependencyGraph"]
