"""High level entry points for constructing systems from a registry."""

from typing import Any, Iterable, Mapping, Optional

from constellate.compiler import SystemInitializer, compile_graph
from constellate.graph import build_graph
from constellate.registry import ComponentRegistry
from constellate.system import System

__all__ = ["make_initializer", "make_system"]


def make_initializer(
    registry: ComponentRegistry,
    profiles: Optional[set[str]] = None,
    external_keys: Optional[Iterable[str]] = None,
) -> SystemInitializer:
    """Create a :class:`SystemInitializer` for the given registry.

    The registry is filtered by the optional profile set, the remaining declarations
    are validated into a graph and the graph is compiled.

    Args:
        registry: The component registry containing declared constructors.
        profiles: An optional set of profile names used to filter active declarations.
            If None, all declarations are included regardless of profile.
        external_keys: The keys that may be supplied as external inputs. Keys no
            declaration uses are accepted and ignored. If None, any dependency that no
            declaration provides is taken to be an external input, and only those keys
            are accepted.

    Returns:
        The compiled initializer, reusable across calls.

    Raises:
        DependencyError: If declarations are duplicated, unresolvable or cyclic.

    Example:
        >>> registry = ComponentRegistry()
        >>> initializer = make_initializer(registry, {"dev"})
        >>> print(initializer.order, initializer.required_inputs)
    """
    graph = build_graph(registry.registered_specs(profiles), external_keys)
    return compile_graph(graph)


def make_system(
    registry: ComponentRegistry,
    inputs: Optional[Mapping[str, Any]] = None,
    profiles: Optional[set[str]] = None,
) -> System:
    """Construct and return a :class:`System`, not yet started.

    Declarations are selected from the registry, resolved into an order and then
    instantiated in that order.

    Args:
        registry: The component registry containing declared constructors.
        inputs: Mapping supplying a value for every dependency no declaration provides.
            Inputs that no selected declaration uses are ignored.
        profiles: An optional set of profile names used to filter active declarations.

    Returns:
        The constructed :class:`System`.

    Raises:
        DependencyError: If declarations are duplicated or cyclic, or a dependency is
            neither declared nor supplied.
        ConstructionFailed: If a constructor raises.
    """
    inputs = inputs or {}
    initializer = make_initializer(registry, profiles, inputs.keys())
    return initializer(inputs)
