"""
Coordinated start and stop of the components of a :class:`~constellate.system.System`.

Components may implement ``start()`` and ``stop()``, each returning the component
value that replaces the stored one (or None, meaning the component updated itself in
place). Components without these methods are treated as always started.

Starting walks the system's topological order forward. Before a component is started
it is re-associated with the current values of the components it depends on, so a
dependent always holds its dependencies in their started form. If a start raises,
every component already started is stopped again, in reverse order, before the
failure is re-raised as :class:`~constellate.errors.StartupFailed`.

Stopping walks the order in reverse and attempts every component, whatever happens to
the others; failures are collected and raised together as
:class:`~constellate.errors.ShutdownFailed` once the pass is complete.
"""

import copy
import dataclasses
import logging
from contextlib import contextmanager
from typing import Any, Iterable, Mapping, MutableMapping, Optional

from constellate.domain import ComponentState
from constellate.errors import ShutdownFailed, StartupFailed
from constellate.resolver import validate_order
from constellate.system import System

__all__ = ["Lifecycle", "reassociate", "start_system", "stop_system", "running"]

logger = logging.getLogger(__name__)


class Lifecycle:
    """Base class for components with a lifecycle; both transitions default to no-ops."""

    def start(self):
        return self

    def stop(self):
        return self


def reassociate(component: Any, replacements: Iterable[tuple[Any, Any]]) -> Any:
    """Return ``component`` holding the current values of its dependencies.

    Each ``(previous, current)`` pair swaps ``current`` into every field of the
    component that holds exactly ``previous`` (compared by identity), whatever the
    field is called: a mapping value, a dataclass field, a named tuple field or an
    instance attribute. Fields holding anything else, such as a value the component
    derived from a dependency, are left alone.

    Mappings, dataclasses and named tuples are copied rather than modified; other
    objects are updated in place. A read-only mapping that is not a mutable mapping
    comes back as a plain ``dict``. The component is returned unchanged if no field
    holds a previous value.

    Example:
        >>> reassociate({"name": "b", "source": old_a}, [(old_a, started_a)])
        {'name': 'b', 'source': started_a}
    """
    swapped = [(previous, current) for previous, current in replacements if previous is not current]
    if not swapped:
        return component

    if isinstance(component, Mapping):
        updates = _updates(component.items(), swapped)
        if not updates:
            return component
        if isinstance(component, MutableMapping):
            updated = copy.copy(component)
            updated.update(updates)
            return updated
        return {**component, **updates}

    if dataclasses.is_dataclass(component) and not isinstance(component, type):
        fields = [
            (f.name, getattr(component, f.name)) for f in dataclasses.fields(component) if f.init
        ]
        updates = _updates(fields, swapped)
        return dataclasses.replace(component, **updates) if updates else component

    if isinstance(component, tuple) and hasattr(component, "_fields"):
        updates = _updates(zip(component._fields, component), swapped)
        return component._replace(**updates) if updates else component

    attributes = getattr(component, "__dict__", {})
    for name, value in _updates(attributes.items(), swapped).items():
        setattr(component, name, value)
    return component


def start_system(system: System, order: Optional[Iterable[str]] = None) -> System:
    """Start every component, each after all of its dependencies.

    Args:
        system: The system to start. It is updated in place.
        order: The order to start components in; defaults to the order the system
            was built in.

    Returns:
        The system, holding the started components.

    Raises:
        StartupFailed: If a component's start raises. Components started before it
            have been stopped again, in reverse order.
        ValueError: If ``order`` does not name each component once, after its dependencies.
    """
    order = _checked_order(system, order)
    started: list[str] = []

    for name in order:
        component = _reassociate(system, name)

        logger.debug("Starting component %s", name)
        try:
            component = _transition(component, "start")
        except Exception as e:
            logger.error(
                "Component %s failed to start; stopping %s", name, started[::-1], exc_info=True
            )
            system._replace(name, component, ComponentState.FAILED)
            rollback_failures = _stop_components(system, reversed(started))
            _reassociate_all(system, order)
            raise StartupFailed(name, e, rollback_failures, system) from e

        system._replace(name, component, ComponentState.STARTED)
        started.append(name)

    return system


def stop_system(system: System, order: Optional[Iterable[str]] = None) -> System:
    """Stop every component, each before any of its dependencies.

    Every component is attempted even if others fail. Once all have been attempted,
    dependents are re-associated with the stopped values of their dependencies.

    Args:
        system: The system to stop. It is updated in place.
        order: The order the system was started in; components are stopped in its
            reverse. Defaults to the order the system was built in.

    Returns:
        The system, holding the stopped components.

    Raises:
        ShutdownFailed: If one or more components' stop raised, listing all of them.
        ValueError: If ``order`` does not name each component once, after its dependencies.
    """
    order = _checked_order(system, order)

    failures = _stop_components(system, reversed(order))
    _reassociate_all(system, order)

    if failures:
        raise ShutdownFailed(failures, system)
    return system


@contextmanager
def running(system: System, order: Optional[Iterable[str]] = None):
    """Start ``system`` for the duration of a ``with`` block, stopping it on exit.

    Example:
        >>> with running(initializer(inputs)) as system:
        ...     system["server"].serve_forever()
    """
    order = _checked_order(system, order)
    start_system(system, order)
    try:
        yield system
    finally:
        stop_system(system, order)


def _stop_components(system: System, names: Iterable[str]) -> list[tuple[str, Exception]]:
    failures = []
    for name in names:
        component = system[name]
        logger.debug("Stopping component %s", name)
        try:
            component = _transition(component, "stop")
        except Exception as e:
            logger.warning("Component %s failed to stop: %r", name, e, exc_info=True)
            failures.append((name, e))
        system._replace(name, component, ComponentState.STOPPED)
    return failures


def _transition(component: Any, capability: str) -> Any:
    method = getattr(component, capability, None)
    if not callable(method):
        return component
    result = method()
    return component if result is None else result


def _reassociate(system: System, name: str) -> Any:
    held = system._associations(name)
    component = reassociate(
        system[name], [(held[dependency], system[dependency]) for dependency in held]
    )
    system._replace(name, component)
    for dependency in held:
        held[dependency] = system[dependency]
    return component


def _reassociate_all(system: System, order: tuple[str, ...]):
    for name in order:
        _reassociate(system, name)


def _updates(items: Iterable[tuple[str, Any]], swapped: list[tuple[Any, Any]]) -> dict[str, Any]:
    updates = {}
    for field, value in items:
        for previous, current in swapped:
            if value is previous:
                updates[field] = current
                break
    return updates


def _checked_order(system: System, order: Optional[Iterable[str]]) -> tuple[str, ...]:
    if order is None:
        return system.order
    return validate_order(order, system.order, lambda name: system.wiring(name).values())
