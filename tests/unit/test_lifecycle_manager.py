import pytest
from dockyard.errors import InvalidTransition, SchemaViolation, UnitNotFound
from dockyard.ISOLATION.backend import InMemoryBackend
from dockyard.MANAGERS.lifecycle_manager import LifecycleManager
from dockyard.MANAGERS.unit_registry import UnitRegistry
from dockyard.MODELS.runtime_unit import UnitState
from dockyard.MODELS.service_definition import ServiceSpec


@pytest.fixture
def manager():
    return LifecycleManager(UnitRegistry(), InMemoryBackend())


@pytest.fixture
def service():
    return ServiceSpec(name="web", image="nginx", command=["nginx", "-g", "daemon off;"],
                       environment={"MODE": "test"})


class TestLifecycleManager:
    """Tests for the unit state machine."""

    def test_create(self, manager, service):
        unit = manager.create(service)
        assert unit.state == UnitState.CREATED
        assert unit.name == "web"
        assert unit.service is service
        assert len(unit.id) == 64
        assert manager.registry.get(unit.id) is unit

    def test_registry_starts_empty(self):
        assert len(UnitRegistry()) == 0

    def test_pause_from_created_is_invalid(self, manager, service):
        unit = manager.create(service)
        with pytest.raises(InvalidTransition) as excinfo:
            manager.pause(unit.id)
        assert excinfo.value.state == "created"
        assert unit.state == UnitState.CREATED

    def test_pause_then_start_resumes(self, manager, service):
        unit = manager.create(service)
        manager.start(unit.id)
        manager.pause(unit.id)
        assert unit.state == UnitState.PAUSED
        manager.start(unit.id)
        assert unit.state == UnitState.RUNNING

    def test_rm_running_is_invalid_until_stopped(self, manager, service):
        unit = manager.create(service)
        manager.start(unit.id)
        with pytest.raises(InvalidTransition):
            manager.remove(unit.id)
        manager.stop(unit.id)
        manager.remove(unit.id)
        assert unit.state == UnitState.REMOVED

    def test_rm_created(self, manager, service):
        unit = manager.create(service)
        assert manager.remove(unit.id).state == UnitState.REMOVED

    @pytest.mark.parametrize("operation", ["start", "stop", "pause", "restart", "remove"])
    def test_removed_is_terminal(self, manager, service, operation):
        unit = manager.create(service)
        manager.remove(unit.id)
        with pytest.raises(InvalidTransition):
            getattr(manager, operation)(unit.id)

    def test_pause_stopped_is_invalid(self, manager, service):
        unit = manager.create(service)
        manager.start(unit.id)
        manager.stop(unit.id)
        with pytest.raises(InvalidTransition):
            manager.pause(unit.id)

    def test_stop_paused_is_invalid(self, manager, service):
        unit = manager.create(service)
        manager.start(unit.id)
        manager.pause(unit.id)
        with pytest.raises(InvalidTransition):
            manager.stop(unit.id)

    def test_restart(self, manager, service):
        unit = manager.create(service)
        with pytest.raises(InvalidTransition):
            manager.restart(unit.id)
        manager.start(unit.id)
        manager.restart(unit.id)
        assert unit.state == UnitState.RUNNING
        manager.stop(unit.id)
        manager.restart(unit.id)
        assert unit.state == UnitState.RUNNING

    def test_unknown_unit(self, manager):
        with pytest.raises(UnitNotFound) as excinfo:
            manager.start("nope")
        assert excinfo.value.identifier == "nope"

    def test_lookup_by_name_and_prefix(self, manager, service):
        unit = manager.create(service)
        assert manager.registry.get("web") is unit
        assert manager.registry.get(unit.id[:6]) is unit

    def test_name_in_use(self, manager, service):
        manager.create(service)
        with pytest.raises(SchemaViolation):
            manager.create(service)

    def test_name_reusable_after_remove(self, manager, service):
        first = manager.create(service)
        manager.remove(first.id)
        second = manager.create(service)
        assert manager.registry.get("web") is second

    def test_logs_are_finite_and_fresh_per_call(self, manager, service):
        unit = manager.create(service)
        manager.start(unit.id)
        manager.stop(unit.id)

        stream = manager.logs(unit.id)
        lines = list(stream)
        assert [line.split(" ", 2)[2] for line in lines] == [
            "created from image nginx",
            "started nginx -g 'daemon off;'",
            "stopped",
        ]
        assert list(stream) == []
        assert list(manager.logs(unit.id)) == lines

    def test_logs_of_removed_unit(self, manager, service):
        unit = manager.create(service)
        manager.remove(unit.id)
        with pytest.raises(InvalidTransition):
            manager.logs(unit.id)

    def test_exec_requires_running(self, manager, service):
        unit = manager.create(service)
        with pytest.raises(InvalidTransition):
            manager.exec(unit.id, ["echo", "hi"])
        manager.start(unit.id)
        assert manager.exec(unit.id, ["echo", "hi"]).output == ["hi"]
        assert manager.exec(unit.id, ["env"]).output == ["MODE=test"]
        assert manager.exec(unit.id, ["false"]).exit_code == 1
