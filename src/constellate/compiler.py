"""
Compiling a system graph into a reusable initializer.

A :class:`SystemInitializer` is built once per graph. Each call with a fresh set of
external inputs invokes every constructor exactly once, in topological order, and
returns a new, independent :class:`~constellate.system.System`. Constructors only
ever see dependencies that have already been constructed, in their raw
(not yet started) form.
"""

import logging
from typing import Any, Mapping, Optional

from constellate.errors import ConstructionFailed, ExternalInputError
from constellate.graph import SystemGraph
from constellate.resolver import resolve_order, validate_order
from constellate.system import System

__all__ = ["SystemInitializer", "compile_graph"]

logger = logging.getLogger(__name__)


class SystemInitializer:
    """Instantiate the components of a :class:`SystemGraph`."""

    def __init__(self, graph: SystemGraph, order: tuple[str, ...]):
        validate_order(order, graph.specs, graph.component_dependencies)
        self._graph = graph
        self.order = order
        self._wiring = {
            name: {
                dependency.parameter_name: dependency.source_key
                for dependency in graph.edges[name]
                if dependency.source_key in graph.specs
            }
            for name in order
        }

    @property
    def graph(self) -> SystemGraph:
        return self._graph

    @property
    def required_inputs(self) -> frozenset:
        """Keys that every call must supply as external inputs."""
        return self._graph.external_keys

    @property
    def permitted_inputs(self) -> frozenset:
        """Keys a call may supply: the permitted external keys if the graph declares them,
        otherwise exactly the required ones."""
        if self._graph.permitted_keys is None:
            return self._graph.external_keys
        return self._graph.permitted_keys

    def __call__(self, inputs: Optional[Mapping[str, Any]] = None) -> System:
        """Construct all components.

        Args:
            inputs: Mapping of external input keys to values.

        Returns:
            A :class:`System` holding the constructed components.

        Raises:
            ExternalInputError: If required inputs are missing, or inputs outside the
                permitted keys are supplied. Permitted inputs no component uses are ignored.
            ConstructionFailed: If a constructor raises. Components already constructed
                are discarded; none of them has been started.
        """
        inputs = dict(inputs or {})
        _validate_inputs(self.required_inputs, self.permitted_inputs, inputs.keys())

        built: dict[str, Any] = {}

        def get_value(key: str) -> Any:
            if key in built:
                return built[key]
            return inputs[key]

        for component_name in self.order:
            spec = self._graph.specs[component_name]
            call_kwargs = {
                dependency.parameter_name: get_value(dependency.source_key)
                for dependency in self._graph.edges[component_name]
            }

            logger.debug("Constructing component %s", component_name)
            try:
                built[component_name] = spec.construct(**call_kwargs)
            except Exception as e:
                raise ConstructionFailed(component_name, e) from e

        return System(built, self.order, self._wiring)


def compile_graph(graph: SystemGraph, order: Optional[tuple[str, ...]] = None) -> SystemInitializer:
    """Compile a graph into a reusable :class:`SystemInitializer`.

    Args:
        graph: The validated system graph.
        order: An explicit construction order. Defaults to :func:`resolve_order` of the graph.

    Returns:
        The initializer.

    Raises:
        CyclicDependency: If no order is given and the graph contains a cycle.
        ValueError: If an explicit order does not name every component exactly once,
            or places a component before one of its dependencies.
    """
    if order is None:
        order = resolve_order(graph)
        logger.debug("Resolved construction order %s", order)
    return SystemInitializer(graph, tuple(order))


def _validate_inputs(required_inputs, permitted_inputs, input_keys):
    """Validate that the provided inputs contain every required item and only permitted ones.

    Raises:
        ExternalInputError: If required items are missing or unexpected items are provided.
    """
    missing = required_inputs - input_keys
    unexpected = input_keys - permitted_inputs
    if missing or unexpected:
        raise ExternalInputError(missing, unexpected)
