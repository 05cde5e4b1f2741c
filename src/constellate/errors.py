"""Exceptions raised while declaring, building and running component systems.

Static errors (bad declarations, unresolvable or cyclic graphs) derive from
:class:`DependencyError` and are raised before any constructor runs. Runtime
errors derive from :class:`ComponentFailure` and always chain the exception
raised by the offending component.
"""

from typing import Any, Iterable, Optional

__all__ = [
    "DependencyError",
    "UnresolvedDependency",
    "CyclicDependency",
    "DuplicateComponent",
    "ExternalInputError",
    "ComponentFailure",
    "ConstructionFailed",
    "StartupFailed",
    "ShutdownFailed",
]


class DependencyError(Exception):
    """Raised when a component's dependency cannot be resolved or is misdeclared."""

    pass


class UnresolvedDependency(DependencyError):
    """A parameter resolves to a key that is neither a component nor an external input."""

    def __init__(self, component: str, parameter: str, key: str):
        self.component = component
        self.parameter = parameter
        self.key = key
        super().__init__(
            f"Dependency <{parameter}> of component <{component}> resolves to '{key}', "
            "which is neither a component nor a permitted external input"
        )


class CyclicDependency(DependencyError):
    """The dependency graph contains a cycle.

    Attributes:
        cycle: Component names on the cycle, in dependency order. The first
            name depends on the second, and so on; the last depends on the first.
    """

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        path = " -> ".join(cycle + cycle[:1])
        super().__init__(f"Cyclic dependency: {path}")


class DuplicateComponent(DependencyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate component name '{name}'")


class ExternalInputError(DependencyError):
    """External inputs supplied to an initializer do not match what the graph requires."""

    def __init__(self, missing: Iterable[str] = (), unexpected: Iterable[str] = ()):
        self.missing = frozenset(missing)
        self.unexpected = frozenset(unexpected)
        problems = []
        if self.missing:
            problems.append(f"Missing items {set(self.missing)} from provided inputs")
        if self.unexpected:
            problems.append(f"Unexpected items {set(self.unexpected)} in provided inputs")
        super().__init__("; ".join(problems))


class ComponentFailure(Exception):
    """Base class for failures raised by component code while a system is built or run."""

    pass


class ConstructionFailed(ComponentFailure):
    def __init__(self, name: str, cause: BaseException):
        self.name = name
        self.cause = cause
        super().__init__(f"Constructor for component <{name}> failed: {cause!r}")


class StartupFailed(ComponentFailure):
    """A component failed to start; already-started components have been stopped.

    Attributes:
        name: The component whose start raised.
        cause: The exception it raised.
        rollback_failures: ``(name, exception)`` pairs for components whose
            stop raised during rollback.
        system: The system after rollback.
    """

    def __init__(
        self,
        name: str,
        cause: BaseException,
        rollback_failures: Optional[list[tuple[str, BaseException]]] = None,
        system: Any = None,
    ):
        self.name = name
        self.cause = cause
        self.rollback_failures = rollback_failures or []
        self.system = system
        message = f"Component <{name}> failed to start: {cause!r}"
        if self.rollback_failures:
            message += (
                f"; rollback could not stop {[n for n, _ in self.rollback_failures]}"
            )
        super().__init__(message)


class ShutdownFailed(ComponentFailure):
    """One or more components failed to stop; every other component was still stopped."""

    def __init__(self, failures: list[tuple[str, BaseException]], system: Any = None):
        self.failures = failures
        self.system = system
        details = ", ".join(f"<{name}>: {cause!r}" for name, cause in failures)
        super().__init__(f"Components failed to stop: {details}")

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.failures]
