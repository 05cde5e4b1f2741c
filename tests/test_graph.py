import pytest

from constellate.compiler import compile_graph
from constellate.domain import Dependency, DependencySpec
from constellate.errors import (
    DependencyError,
    DuplicateComponent,
    ExternalInputError,
    UnresolvedDependency,
)
from constellate.graph import build_graph


def construct(**kwargs):
    return kwargs


def test_edges_follow_aliases():
    graph = build_graph(
        [
            DependencySpec("a", construct),
            DependencySpec("b", construct, ("foo", "url"), {"foo": "a"}),
        ]
    )

    assert graph.edges["b"] == [Dependency("foo", "a"), Dependency("url", "url")]
    assert graph.component_dependencies("b") == ["a"]
    assert graph.external_keys == frozenset({"url"})
    assert graph.permitted_keys is None


def test_specs_keep_declaration_order():
    graph = build_graph(
        [DependencySpec(name, construct) for name in ["zeta", "alpha", "mu"]]
    )

    assert list(graph) == ["zeta", "alpha", "mu"]
    assert len(graph) == 3
    assert "alpha" in graph


def test_accepts_mapping_of_specs():
    specs = {
        "a": DependencySpec("a", construct),
        "b": DependencySpec("b", construct, ("a",)),
    }

    graph = build_graph(specs)

    assert graph.specs == specs
    assert graph.external_keys == frozenset()


def test_mapping_key_must_match_spec_name():
    with pytest.raises(DependencyError, match="registered under 'b'"):
        build_graph({"b": DependencySpec("a", construct)})


def test_duplicate_names_raise():
    with pytest.raises(DuplicateComponent, match="Duplicate component name 'x'"):
        build_graph([DependencySpec("x", construct), DependencySpec("x", construct)])


def test_declared_external_keys_are_permitted():
    graph = build_graph(
        [DependencySpec("db", construct, ("url",))], external_keys={"url", "unused"}
    )

    assert graph.external_keys == frozenset({"url"})
    assert graph.permitted_keys == frozenset({"url", "unused"})


def test_initializer_accepts_declared_external_keys_nothing_uses():
    graph = build_graph(
        [DependencySpec("db", construct, ("url",))], external_keys={"url", "port"}
    )
    initializer = compile_graph(graph)

    system = initializer({"url": "sqlite://", "port": 5432})

    assert system["db"] == {"url": "sqlite://"}
    with pytest.raises(ExternalInputError, match="Missing items {'url'}"):
        initializer({"port": 5432})
    with pytest.raises(ExternalInputError, match="Unexpected items {'host'}"):
        initializer({"url": "sqlite://", "host": "localhost"})


def test_undeclared_external_key_raises():
    with pytest.raises(UnresolvedDependency) as error:
        build_graph(
            [
                DependencySpec("a", construct),
                DependencySpec("b", construct, ("foo",), {"foo": "missing"}),
            ],
            external_keys=set(),
        )

    assert error.value.component == "b"
    assert error.value.parameter == "foo"
    assert error.value.key == "missing"
    assert "Dependency <foo> of component <b> resolves to 'missing'" in str(error.value)


def test_components_take_precedence_over_external_keys():
    graph = build_graph(
        [DependencySpec("a", construct), DependencySpec("b", construct, ("a",))],
        external_keys={"a"},
    )

    assert graph.external_keys == frozenset()
    assert graph.component_dependencies("b") == ["a"]
