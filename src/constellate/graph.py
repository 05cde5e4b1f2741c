"""Building validated dependency graphs from component declarations.

A :class:`SystemGraph` is the static, validated description of a system: the
declarations keyed by name in declaration order, one alias-resolved edge per
constructor parameter, and the set of keys that must be supplied as external
inputs when the system is initialised.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Mapping, Optional, Union

from constellate.domain import Dependency, DependencySpec
from constellate.errors import DependencyError, DuplicateComponent, UnresolvedDependency

__all__ = ["SystemGraph", "build_graph"]


@dataclass(frozen=True)
class SystemGraph:
    """
    A validated set of component declarations and their dependency edges.

    Attributes:
        specs: Mapping from component names to their declarations, in declaration order.
        edges: Mapping from component names to their alias-resolved dependencies,
            one per constructor parameter, in parameter order.
        external_keys: Keys that are not components and must be supplied as external inputs.
        permitted_keys: The external input keys declared when the graph was built, which
            may include keys no component uses. None if the keys were deduced.
    """

    specs: dict[str, DependencySpec]
    edges: dict[str, list[Dependency]]
    external_keys: FrozenSet[str]
    permitted_keys: Optional[FrozenSet[str]] = None

    def __contains__(self, name: str) -> bool:
        return name in self.specs

    def __iter__(self):
        return iter(self.specs)

    def __len__(self) -> int:
        return len(self.specs)

    def component_dependencies(self, name: str) -> list[str]:
        """Names of the components (not external inputs) that ``name`` depends on, in parameter order."""
        return [
            dependency.source_key
            for dependency in self.edges[name]
            if dependency.source_key in self.specs
        ]


def build_graph(
    specs: Union[Mapping[str, DependencySpec], Iterable[DependencySpec]],
    external_keys: Optional[Iterable[str]] = None,
) -> SystemGraph:
    """
    Constructs a SystemGraph from component declarations.

    Validates that:
      - Each component has a unique name.
      - Every parameter resolves, through its alias if it has one, to either another
        component or a permitted external input key.

    Args:
        specs: Declarations, either keyed by component name or as an iterable.
        external_keys: The keys that will be supplied as external inputs at initialisation
            time. If None, any source key that is not a component name is taken to be an
            external input.

    Returns:
        The validated SystemGraph.

    Raises:
        DuplicateComponent: If two declarations share a name.
        UnresolvedDependency: If a parameter resolves to neither a component nor a
            permitted external input.

    Example:
        >>> graph = build_graph([
        ...     DependencySpec("db", make_db, ("url",)),
        ...     DependencySpec("service", make_service, ("store",), {"store": "db"}),
        ... ])
        >>> graph.external_keys  # frozenset({"url"})
    """
    specs_by_name = _specs_by_unique_name(specs)
    permitted = None if external_keys is None else frozenset(external_keys)

    edges: dict[str, list[Dependency]] = {}
    required_externals = set()
    for name, spec in specs_by_name.items():
        dependencies = spec.dependencies
        for dependency in dependencies:
            key = dependency.source_key
            if key in specs_by_name:
                continue
            if permitted is not None and key not in permitted:
                raise UnresolvedDependency(name, dependency.parameter_name, key)
            required_externals.add(key)
        edges[name] = dependencies

    return SystemGraph(specs_by_name, edges, frozenset(required_externals), permitted)


def _specs_by_unique_name(
    specs: Union[Mapping[str, DependencySpec], Iterable[DependencySpec]],
) -> dict[str, DependencySpec]:
    if isinstance(specs, Mapping):
        for name, spec in specs.items():
            if name != spec.name:
                raise DependencyError(
                    f"Declaration for component <{spec.name}> is registered under '{name}'"
                )
        return dict(specs)

    specs_by_name = {}
    for spec in specs:
        if spec.name in specs_by_name:
            raise DuplicateComponent(spec.name)
        specs_by_name[spec.name] = spec

    return specs_by_name
