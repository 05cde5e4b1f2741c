"""Domain models used throughout the framework."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from constellate.errors import DependencyError

__all__ = ["Dependency", "DependencySpec", "ComponentState"]


@dataclass(frozen=True)
class Dependency:
    """Represents a dependency required by a component.

    Attributes:
        parameter_name: The parameter name under which the constructor receives the dependency.
        source_key: The component name or external input key that supplies it.
    """

    parameter_name: str
    source_key: str


@dataclass(frozen=True)
class DependencySpec:
    """Static declaration of one component.

    Attributes:
        name: Unique name of the component within a system.
        construct: Callable invoked with one keyword argument per parameter.
        params: Ordered parameter names the constructor requires.
        aliases: Mapping from parameter name to the key it is resolved against.
            Parameters without an alias are resolved against their own name.

    Example:
        >>> DependencySpec("service", make_service, ("db",), {"db": "postgres"})
        >>> # make_service(db=<the component named "postgres">)
    """

    name: str
    construct: Callable[..., Any]
    params: tuple[str, ...] = ()
    aliases: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        params = tuple(self.params)
        object.__setattr__(self, "params", params)
        object.__setattr__(self, "aliases", dict(self.aliases))

        if len(set(params)) != len(params):
            raise DependencyError(
                f"Component <{self.name}> declares duplicate parameters {list(params)}"
            )
        undeclared = [p for p in self.aliases if p not in params]
        if undeclared:
            raise DependencyError(
                f"Component <{self.name}> aliases undeclared parameters {undeclared}"
            )

    def source_key(self, param: str) -> str:
        return self.aliases.get(param, param)

    @property
    def dependencies(self) -> list[Dependency]:
        return [Dependency(param, self.source_key(param)) for param in self.params]


class ComponentState(Enum):
    """Where a component stands in its lifecycle."""

    CONSTRUCTED = "constructed"
    STARTED = "started"
    STOPPED = "stopped"
    FAILED = "failed"
