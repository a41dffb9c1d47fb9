"""Directed dependency graphs over identity-keyed entities, with leveling and cycle detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

import networkx as nx

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


class Entity(Protocol):
    """Anything with a stable identity (``path``) and a display ``name``."""

    path: str
    name: str


T = TypeVar("T", bound=Entity)


def sort_key(entity: Entity) -> tuple[str, str]:
    """Display order for entities: case-insensitive name, then path so that equal names stay stable."""
    return entity.name.casefold(), entity.path


class EntityGraph(nx.DiGraph, Generic[T]):
    """A dependency graph whose nodes are entity identities (paths).

    An edge ``a -> b`` means "a depends on b". The entity records themselves are kept in a lookup table
    (the ``entity`` node attribute), so graph equality never relies on object identity.
    """

    entity_type: type[T]

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Validate that subclasses assign an entity_type."""
        if not hasattr(cls, "entity_type") or cls.entity_type is None:
            msg = f"{cls.__name__} must assign an `entity_type` class variable"
            raise TypeError(msg)

    def add_entity(self, entity: T) -> None:
        """Add an entity as a node of the graph."""
        if not isinstance(entity, self.entity_type):
            msg = f"{self.__class__.__name__} only accepts {self.entity_type.__name__} nodes, not {entity!r}"
            raise TypeError(msg)
        self.add_node(entity.path, entity=entity)

    def add_dependency(self, dependent: T, dependency: T) -> bool:
        """Record that ``dependent`` depends on ``dependency``. Self edges are ignored.

        Returns:
            True if an edge was added

        """
        if dependent.path == dependency.path:
            return False
        if dependent.path not in self:
            self.add_entity(dependent)
        if dependency.path not in self:
            self.add_entity(dependency)
        self.add_edge(dependent.path, dependency.path)
        return True

    def entity(self, key: str) -> T:
        """Look up the entity record for a node key."""
        return self.nodes[key]["entity"]  # type: ignore[no-any-return]

    def entities(self) -> Iterator[T]:
        """Iterate over the entity records in insertion order."""
        for key in self:
            yield self.entity(key)

    def dependencies(self, entity: T) -> list[T]:
        """Return the direct dependencies of ``entity`` in insertion order."""
        if entity.path not in self:
            return []
        return [self.entity(key) for key in self.successors(entity.path)]

    def roots(self) -> list[T]:
        """Return the entities nothing depends on, sorted for display."""
        return sorted((self.entity(key) for key, degree in self.in_degree() if degree == 0), key=sort_key)

    def usages(self) -> dict[str, list[T]]:
        """Return the inverted (used-by) graph of this graph."""
        return invert(self)

    def levels(self, scope: T | None = None) -> LevelAssignment:
        """Assign topological levels to this graph (see :func:`assign_levels`)."""
        return assign_levels(self, None if scope is None else scope.path)

    def cycles(self) -> list[list[T]]:
        """Enumerate dependency cycles as chains of entities (see :func:`find_cycles`)."""
        return [[self.entity(key) for key in cycle] for cycle in find_cycles(self)]


@dataclass
class LevelAssignment:
    """Topological levels keyed by node identity.

    Nodes caught in a dependency cycle (and everything that depends on them) receive no level.
    """

    levels: dict[str, int] = field(default_factory=dict)
    has_cycle: bool = False

    def __contains__(self, key: object) -> bool:
        """Check whether a node received a level."""
        return key in self.levels

    def __getitem__(self, key: str) -> int:
        """Get the level of a node."""
        return self.levels[key]

    def __len__(self) -> int:
        """Return the number of leveled nodes."""
        return len(self.levels)

    def get(self, key: str, default: int | None = None) -> int | None:
        """Get the level of a node, or ``default`` if it has none."""
        return self.levels.get(key, default)


def dependency_closure(graph: nx.DiGraph, start: str) -> set[str]:
    """Return ``start`` and every node reachable from it, using an explicit stack rather than recursion."""
    closure = {start}
    stack = [start]
    while stack:
        current = stack.pop()
        for dep in graph.successors(current):
            if dep not in closure:
                closure.add(dep)
                stack.append(dep)
    return closure


def assign_levels(graph: nx.DiGraph, scope: str | None = None) -> LevelAssignment:
    """Assign each node its topological level using Kahn's algorithm.

    ``level(n) = 1 + max(level(d) for d in deps(n))``, or ``0`` when ``n`` has no dependencies. Each round
    levels the whole frontier of nodes whose dependencies are all leveled. If a round finds no such node
    while nodes remain, those nodes are part of (or depend on) a cycle: a warning is logged, ``has_cycle``
    is set, and the remaining nodes are left without a level.

    Args:
        graph: the dependency graph; an edge ``a -> b`` means ``a`` depends on ``b``
        scope: if given, only this node and its transitive dependencies are leveled

    Returns:
        the level assignment

    """
    if scope is not None:
        if scope not in graph:
            msg = f"{scope!r} is not a node of the graph"
            raise KeyError(msg)
        remaining = dependency_closure(graph, scope)
    else:
        remaining = set(graph.nodes)

    result = LevelAssignment()
    while remaining:
        ready = sorted(
            node for node in remaining if all(dep in result.levels for dep in graph.successors(node))
        )
        if not ready:
            logger.warning(
                "Circular dependency detected; %d node(s) could not be assigned a level: %s",
                len(remaining),
                ", ".join(sorted(remaining)),
            )
            result.has_cycle = True
            break
        for node in ready:
            result.levels[node] = max((result.levels[dep] + 1 for dep in graph.successors(node)), default=0)
        remaining.difference_update(ready)
    return result


def find_cycles(graph: nx.DiGraph, order: Iterable[str] | None = None) -> list[list[str]]:
    """Enumerate cycles by depth-first search, reporting one chain per back edge.

    Each chain starts and ends at the node the back edge returns to, e.g. ``[a, b, a]``. Nodes are visited
    at most once, so this reports the cycles a single DFS traversal sees rather than every elementary
    cycle. The traversal uses an explicit stack of ``(node, remaining dependencies)`` frames.

    Args:
        graph: the dependency graph
        order: the order in which to start the traversal; defaults to the graph's node order

    """
    cycles: list[list[str]] = []
    visited: set[str] = set()
    for start in graph.nodes if order is None else order:
        if start in visited:
            continue
        visited.add(start)
        path = [start]
        on_stack = {start}
        stack = [(start, iter(list(graph.successors(start))))]
        while stack:
            node, deps = stack[-1]
            dep = next(deps, None)
            if dep is None:
                stack.pop()
                path.pop()
                on_stack.discard(node)
                continue
            if dep in on_stack:
                cycles.append([*path[path.index(dep) :], dep])
            elif dep not in visited:
                visited.add(dep)
                path.append(dep)
                on_stack.add(dep)
                stack.append((dep, iter(list(graph.successors(dep)))))
    return cycles


def invert(graph: EntityGraph[T]) -> dict[str, list[T]]:
    """Invert a dependency graph: for every edge ``a -> b`` the result maps ``b`` to ``[a, ...]``.

    Lists follow the dependency graph's iteration order; callers sort them for display.
    """
    usages: dict[str, list[T]] = {}
    for key in graph:
        dependent = graph.entity(key)
        for dep in graph.successors(key):
            usages.setdefault(dep, []).append(dependent)
    return usages
