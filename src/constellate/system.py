"""Container for the components of one initialised system.

A :class:`System` is a read-only mapping from component name to component,
iterated in the topological order used to build it. It also remembers how its
components were wired together, which the lifecycle coordinator needs in order
to hand each component the current value of its dependencies.
"""

from typing import Any, Iterator, Mapping

from constellate.domain import ComponentState

__all__ = ["System"]


class System(Mapping[str, Any]):
    """Components produced by one initializer call.

    Attributes:
        order: The topological order the components were constructed in.

    Example:
        >>> system = initializer({"url": "sqlite://"})
        >>> system["db"]              # The constructed database component
        >>> system.state("db")        # ComponentState.CONSTRUCTED
        >>> list(system)              # Component names in construction order
    """

    def __init__(
        self,
        components: dict[str, Any],
        order: tuple[str, ...],
        wiring: dict[str, dict[str, str]],
    ):
        self._components = components
        self.order = order
        self._wiring = wiring
        self._states = {name: ComponentState.CONSTRUCTED for name in components}
        # The value of each dependency that each component was last handed.
        self._associated = {
            name: {dependency: components[dependency] for dependency in wiring[name].values()}
            for name in components
        }

    def __getitem__(self, item: str) -> Any:
        return self._components[item]

    def __iter__(self) -> Iterator[str]:
        return iter(self.order)

    def __len__(self) -> int:
        return len(self._components)

    def __repr__(self) -> str:
        return f"System({dict(self._components)!r})"

    def state(self, name: str) -> ComponentState:
        return self._states[name]

    def wiring(self, name: str) -> dict[str, str]:
        """Parameter names of ``name`` mapped to the components that supplied them.

        Parameters supplied by external inputs are not included.
        """
        return dict(self._wiring[name])

    def _replace(self, name: str, component: Any, state: ComponentState = None):
        if name not in self._components:
            raise KeyError(name)
        self._components[name] = component
        if state is not None:
            self._states[name] = state

    def _associations(self, name: str) -> dict[str, Any]:
        return self._associated[name]
