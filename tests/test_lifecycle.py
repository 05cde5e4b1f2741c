from collections import namedtuple
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any

import pytest

from constellate.compiler import compile_graph
from constellate.domain import ComponentState, DependencySpec
from constellate.errors import ShutdownFailed, StartupFailed
from constellate.graph import build_graph
from constellate.lifecycle import (
    Lifecycle,
    reassociate,
    running,
    start_system,
    stop_system,
)


@dataclass(frozen=True)
class Switch:
    """A component whose start and stop are pure inverses."""

    name: str
    log: Any = None
    dep: Any = None
    started: bool = False

    def start(self):
        if self.log is not None:
            self.log.append(("start", self.name))
        return replace(self, started=True)

    def stop(self):
        if self.log is not None:
            self.log.append(("stop", self.name))
        return replace(self, started=False)


class Faulty(Lifecycle):
    def __init__(self, log, fail_on):
        self.log = log
        self.fail_on = fail_on

    def start(self):
        self.log.append(("start", "faulty"))
        if self.fail_on == "start":
            raise RuntimeError("cannot start")
        return self

    def stop(self):
        self.log.append(("stop", "faulty"))
        if self.fail_on == "stop":
            raise RuntimeError("cannot stop")
        return self


@pytest.fixture
def log():
    return []


def make_system(*specs, inputs=None):
    return compile_graph(build_graph(list(specs)))(inputs)


def chain(log):
    return make_system(
        DependencySpec("c", lambda dep: Switch("c", log, dep), ("dep",), {"dep": "b"}),
        DependencySpec("b", lambda dep: Switch("b", log, dep), ("dep",), {"dep": "a"}),
        DependencySpec("a", lambda: Switch("a", log)),
    )


def test_dependent_holds_started_dependency():
    system = make_system(
        DependencySpec("a", lambda: Switch("a")),
        DependencySpec("b", lambda foo: {"name": "b", "foo": foo}, ("foo",), {"foo": "a"}),
    )
    constructed_a = system["a"]

    start_system(system)

    assert system["a"] == Switch("a", started=True)
    assert system["b"]["foo"] == Switch("a", started=True)
    assert system["b"]["foo"] is system["a"]
    assert constructed_a.started is False


def test_dependent_is_reassociated_before_its_own_start():
    seen = []

    @dataclass
    class Client:
        server: Any

        def start(self):
            seen.append(self.server.started)
            return self

    system = make_system(
        DependencySpec("server", lambda: Switch("server")),
        DependencySpec("client", Client, ("server",)),
    )

    start_system(system)

    assert seen == [True]


def test_start_and_stop_orders_are_reversed(log):
    system = chain(log)

    start_system(system)
    stop_system(system)

    assert log == [
        ("start", "a"),
        ("start", "b"),
        ("start", "c"),
        ("stop", "c"),
        ("stop", "b"),
        ("stop", "a"),
    ]


def test_states_follow_lifecycle(log):
    system = chain(log)

    start_system(system)
    assert {system.state(n) for n in system} == {ComponentState.STARTED}

    stop_system(system)
    assert {system.state(n) for n in system} == {ComponentState.STOPPED}


def test_components_without_lifecycle_are_left_alone(log):
    config = {"debug": True}
    system = make_system(
        DependencySpec("config", lambda settings: settings, ("settings",)),
        DependencySpec("a", lambda: Switch("a", log)),
        inputs={"settings": config},
    )

    start_system(system)
    stop_system(system)

    assert system["config"] is config
    assert log == [("start", "a"), ("stop", "a")]


def test_start_returning_none_keeps_component():
    class Mutable:
        def __init__(self):
            self.running = False

        def start(self):
            self.running = True

        def stop(self):
            self.running = False

    system = make_system(DependencySpec("m", Mutable))
    component = system["m"]

    start_system(system)

    assert system["m"] is component
    assert component.running


def test_start_failure_rolls_back_started_components(log):
    system = make_system(
        DependencySpec("a", lambda: Switch("a", log)),
        DependencySpec("b", lambda a: Faulty(log, "start"), ("a",)),
        DependencySpec("c", lambda b: Switch("c", log, b), ("b",)),
    )

    with pytest.raises(StartupFailed, match="Component <b> failed to start") as error:
        start_system(system)

    assert error.value.name == "b"
    assert isinstance(error.value.cause, RuntimeError)
    assert error.value.__cause__ is error.value.cause
    assert error.value.rollback_failures == []
    assert error.value.system is system
    assert log == [("start", "a"), ("start", "faulty"), ("stop", "a")]
    assert system["a"] == Switch("a", log)
    assert system.state("a") is ComponentState.STOPPED
    assert system.state("b") is ComponentState.FAILED
    assert system.state("c") is ComponentState.CONSTRUCTED


def test_rollback_stop_failures_are_reported(log):
    class StubbornSwitch(Switch):
        def stop(self):
            raise RuntimeError("stuck")

    system = make_system(
        DependencySpec("a", lambda: Switch("a", log)),
        DependencySpec("stubborn", lambda: StubbornSwitch("stubborn", log)),
        DependencySpec("faulty", lambda: Faulty(log, "start")),
    )

    with pytest.raises(StartupFailed, match=r"rollback could not stop \['stubborn'\]") as error:
        start_system(system)

    assert [name for name, _ in error.value.rollback_failures] == ["stubborn"]
    assert system["a"].started is False


def test_stop_failures_do_not_halt_the_pass(log):
    system = make_system(
        DependencySpec("first", lambda: Switch("first", log)),
        DependencySpec("middle", lambda: Faulty(log, "stop")),
        DependencySpec("last", lambda: Switch("last", log)),
    )
    start_system(system)
    del log[:]

    with pytest.raises(ShutdownFailed, match="Components failed to stop: <middle>") as error:
        stop_system(system)

    assert log == [("stop", "last"), ("stop", "faulty"), ("stop", "first")]
    assert error.value.names == ["middle"]
    assert error.value.system is system
    assert system["first"].started is False
    assert system["last"].started is False
    assert system.state("middle") is ComponentState.STOPPED


def test_stop_after_start_restores_constructed_values():
    system = make_system(
        DependencySpec("a", lambda: Switch("a")),
        DependencySpec("b", lambda dep: Switch("b", dep=dep), ("dep",), {"dep": "a"}),
        DependencySpec("c", lambda a, b: {"a": a, "b": b}, ("a", "b")),
    )
    constructed = dict(system)

    stop_system(start_system(system))

    assert dict(system) == constructed


def test_explicit_order_is_used_and_reversed(log):
    system = make_system(
        DependencySpec("x", lambda: Switch("x", log)),
        DependencySpec("y", lambda: Switch("y", log)),
    )

    start_system(system, ["y", "x"])
    stop_system(system, ["y", "x"])

    assert log == [("start", "y"), ("start", "x"), ("stop", "x"), ("stop", "y")]


def test_explicit_order_must_respect_dependencies(log):
    system = chain(log)

    with pytest.raises(ValueError, match="places <b> before its dependency <a>"):
        start_system(system, ["b", "a", "c"])

    assert log == []


def test_running_stops_on_exit(log):
    system = chain(log)

    with pytest.raises(KeyError):
        with running(system) as started:
            assert started["c"].started
            raise KeyError("boom")

    assert [event for event, _ in log] == ["start"] * 3 + ["stop"] * 3
    assert not system["c"].started


@dataclass(frozen=True)
class Session:
    url: str


@dataclass(frozen=True)
class Database:
    url: str
    open: bool = False

    def session(self):
        return Session(self.url)

    def start(self):
        return replace(self, open=True)

    def stop(self):
        return replace(self, open=False)


def test_values_derived_from_a_dependency_are_kept():
    class Dao:
        def __init__(self, db):
            self.db = db.session()

    system = make_system(
        DependencySpec("db", lambda: Database("sqlite://")),
        DependencySpec("dao", Dao, ("db",)),
    )
    session = system["dao"].db

    start_system(system)
    assert system["dao"].db is session

    stop_system(system)
    assert system["dao"].db is session


def test_dependency_held_under_another_name_is_reassociated():
    class Client:
        def __init__(self, db):
            self._conn = db

        def start(self):
            assert self._conn.open
            return self

    system = make_system(
        DependencySpec("db", lambda: Database("sqlite://")),
        DependencySpec("client", Client, ("db",)),
    )

    start_system(system)
    assert system["client"]._conn is system["db"]
    assert system["db"].open

    stop_system(system)
    assert system["client"]._conn == Database("sqlite://")


def test_dependency_held_in_a_list_is_left_alone():
    system = make_system(
        DependencySpec("db", lambda: Database("sqlite://")),
        DependencySpec("pool", lambda db: {"members": [db]}, ("db",)),
    )

    start_system(system)

    assert system["pool"]["members"] == [Database("sqlite://")]


def test_reassociate_mapping_copies():
    old, new = object(), object()
    original = {"name": "b", "foo": old}

    updated = reassociate(original, [(old, new), (object(), object())])

    assert updated == {"name": "b", "foo": new}
    assert original == {"name": "b", "foo": old}


def test_reassociate_read_only_mapping_becomes_dict():
    old, new = object(), object()
    original = MappingProxyType({"foo": old, "bar": 1})

    updated = reassociate(original, [(old, new)])

    assert type(updated) is dict
    assert updated == {"foo": new, "bar": 1}
    assert reassociate(original, [(object(), new)]) is original


def test_reassociate_returns_same_object_when_nothing_changes():
    value = object()
    component = {"foo": value}

    assert reassociate(component, [(value, value)]) is component
    assert reassociate(component, [(object(), object())]) is component
    switch = Switch("s", dep=value)
    assert reassociate(switch, [(value, value)]) is switch


def test_reassociate_replaces_every_field_holding_the_previous_value():
    old, new = object(), object()
    switch = Switch("s", log=old, dep=old)

    assert reassociate(switch, [(old, new)]) == Switch("s", log=new, dep=new)


def test_reassociate_named_tuple():
    Pair = namedtuple("Pair", ["left", "right"])
    old, new = object(), object()

    assert reassociate(Pair("left", old), [(old, new)]) == Pair("left", new)


def test_reassociate_plain_object_in_place():
    class Holder:
        def __init__(self, db):
            self._db = db
            self.name = "holder"

    old, new = object(), object()
    holder = Holder(old)

    assert reassociate(holder, [(old, new)]) is holder
    assert holder._db is new
    assert holder.name == "holder"


def test_reassociate_leaves_other_values_alone():
    old, new = object(), object()

    assert reassociate(42, [(old, new)]) == 42
    assert reassociate("text", [(old, new)]) == "text"
