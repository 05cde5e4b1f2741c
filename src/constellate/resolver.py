"""Topological ordering of a :class:`~constellate.graph.SystemGraph`.

The resolved order drives construction, and is used unchanged by the lifecycle
coordinator to start components; stopping uses its exact reverse.
"""

import heapq
from typing import Callable, Iterable, Optional

from constellate.errors import CyclicDependency
from constellate.graph import SystemGraph

__all__ = ["resolve_order", "validate_order"]

_VISITING = 1
_VISITED = 2


class _DependencyGraph:
    """
    Internal helper to represent and traverse the component dependencies of a system.

    Each node corresponds to a component, and each edge indicates a dependency on
    another component. External inputs are not nodes.
    """

    def __init__(self, graph: SystemGraph):
        self._names = list(graph.specs)
        self._position = {name: index for index, name in enumerate(self._names)}
        self._dependencies: dict[str, list[str]] = {
            name: list(dict.fromkeys(graph.component_dependencies(name)))
            for name in self._names
        }

    def find_cycle(self) -> Optional[list[str]]:
        """
        Depth-first search for a cycle, visiting nodes and their dependencies in
        declaration order.

        Returns:
            The names on the first cycle found, starting from the node the back
            edge points at, or None if the graph is acyclic.
        """
        colour: dict[str, int] = {}

        for root in self._names:
            if root in colour:
                continue
            colour[root] = _VISITING
            path = [root]
            stack = [iter(self._dependencies[root])]

            while stack:
                dependency = next(stack[-1], None)
                if dependency is None:
                    colour[path.pop()] = _VISITED
                    stack.pop()
                elif colour.get(dependency) == _VISITING:
                    return path[path.index(dependency):]
                elif dependency not in colour:
                    colour[dependency] = _VISITING
                    path.append(dependency)
                    stack.append(iter(self._dependencies[dependency]))

        return None

    def traverse(self):
        """
        Perform a topological traversal of an acyclic dependency graph.

        Whenever several nodes have all of their dependencies yielded, the one
        declared first is yielded next.

        Yields:
            Component names in an order where all dependencies of each node
            are yielded before the node itself.
        """
        remaining = {name: set(deps) for name, deps in self._dependencies.items()}
        dependents: dict[str, list[str]] = {name: [] for name in self._names}
        for name, dependencies in remaining.items():
            for dependency in dependencies:
                dependents[dependency].append(name)

        ready_to_materialise = [
            self._position[name] for name, deps in remaining.items() if not deps
        ]
        heapq.heapify(ready_to_materialise)

        while ready_to_materialise:
            next_item = self._names[heapq.heappop(ready_to_materialise)]
            yield next_item

            for dependee in dependents[next_item]:
                dependencies = remaining[dependee]
                dependencies.discard(next_item)
                if not dependencies:
                    heapq.heappush(ready_to_materialise, self._position[dependee])


def resolve_order(graph: SystemGraph) -> tuple[str, ...]:
    """Compute the order in which a system's components are constructed and started.

    Args:
        graph: A validated system graph.

    Returns:
        Every component name exactly once, each after all of its dependencies.
        Ties are broken by declaration order, so the result is stable across calls.

    Raises:
        CyclicDependency: If the components depend on each other in a cycle.

    Example:
        >>> resolve_order(build_graph([
        ...     DependencySpec("service", make_service, ("db",)),
        ...     DependencySpec("clock", make_clock),
        ...     DependencySpec("db", make_db),
        ... ]))
        ('clock', 'db', 'service')
    """
    dependency_graph = _DependencyGraph(graph)

    cycle = dependency_graph.find_cycle()
    if cycle is not None:
        raise CyclicDependency(cycle)

    return tuple(dependency_graph.traverse())


def validate_order(
    order: Iterable[str],
    names: Iterable[str],
    dependencies_of: Callable[[str], Iterable[str]],
) -> tuple[str, ...]:
    """Check that an explicitly supplied order is a topological order of ``names``.

    Args:
        order: The proposed order.
        names: Every component name.
        dependencies_of: Returns the names of the components a component depends on.

    Returns:
        The order as a tuple.

    Raises:
        ValueError: If the order does not name each component exactly once, or places
            a component before one of its dependencies.
    """
    order, names = tuple(order), list(names)
    if len(order) != len(set(order)) or set(order) != set(names):
        raise ValueError(
            f"Order {list(order)} does not name each of the components {names} exactly once"
        )
    position = {name: index for index, name in enumerate(order)}
    for name in order:
        for dependency in dependencies_of(name):
            if position[dependency] >= position[name]:
                raise ValueError(f"Order places <{name}> before its dependency <{dependency}>")
    return order
