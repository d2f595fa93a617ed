import itertools
import pytest
from dockyard.errors import CyclicDependency
from dockyard.MODELS.service_definition import ServiceSpec
from dockyard.MODELS.topology import Topology
from dockyard.RUNNERS.dependency_resolver import DependencyOrderer


def make_topology(edges):
    """Builds a topology from {name: [dependencies]} in the given order."""
    return Topology(services={
        name: ServiceSpec(name=name, image="busybox", depends_on=deps)
        for name, deps in edges.items()
    })


def assert_dependencies_first(topology, order):
    position = {name: i for i, name in enumerate(order)}
    for name, svc in topology.services.items():
        for dep in svc.depends_on:
            assert position[dep] < position[name]


def test_web_after_db():
    topology = make_topology({"web": ["db"], "db": []})
    assert DependencyOrderer().resolve_order(topology) == ["db", "web"]


def test_independent_services_keep_declaration_order():
    topology = make_topology({"a": ["c"], "b": [], "c": [], "d": []})
    assert DependencyOrderer().resolve_order(topology) == ["b", "c", "a", "d"]


@pytest.mark.parametrize("edges", [
    {"proxy": ["web", "api"], "web": ["api"], "api": ["db", "cache"], "db": [], "cache": []},
    {"a": [], "b": ["a"], "c": ["a", "b"], "d": ["c"], "e": ["a"]},
    {"x": ["y"], "y": ["z"], "z": []},
])
def test_dependencies_precede_dependents(edges):
    # every declaration order of the same graph must yield a valid order
    for names in itertools.permutations(edges):
        topology = make_topology({n: edges[n] for n in names})
        order = DependencyOrderer().resolve_order(topology)
        assert sorted(order) == sorted(edges)
        assert_dependencies_first(topology, order)


def test_two_service_cycle():
    topology = make_topology({"a": ["b"], "b": ["a"]})
    with pytest.raises(CyclicDependency) as excinfo:
        DependencyOrderer().resolve_order(topology)
    assert excinfo.value.cycle == ["a", "b", "a"]
    assert excinfo.value.kind == "CyclicDependency"


def test_self_dependency_is_a_cycle():
    topology = make_topology({"a": ["a"]})
    with pytest.raises(CyclicDependency):
        DependencyOrderer().resolve_order(topology)


def test_cycle_deeper_in_graph():
    topology = make_topology({"web": ["api"], "api": ["db"], "db": ["api"]})
    with pytest.raises(CyclicDependency) as excinfo:
        DependencyOrderer().resolve_order(topology)
    assert excinfo.value.cycle == ["api", "db", "api"]


def test_targets_limit_to_dependency_closure():
    topology = make_topology({"web": ["api"], "api": ["db"], "db": [], "worker": ["db"]})
    assert DependencyOrderer().resolve_order(topology, ["api"]) == ["db", "api"]


def test_shutdown_order_is_reversed():
    topology = make_topology({"web": ["db"], "db": []})
    assert DependencyOrderer().shutdown_order(topology) == ["web", "db"]
