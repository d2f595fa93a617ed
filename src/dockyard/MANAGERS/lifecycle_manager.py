# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Lifecycle management for runtime units.
"""
import logging
from typing import Dict, Iterator, List, Optional

from ..errors import InvalidTransition, SchemaViolation
from ..ISOLATION.backend import ExecResult, IsolationBackend
from ..MODELS.runtime_unit import RuntimeUnit, UnitState
from ..MODELS.service_definition import ServiceSpec
from .unit_registry import UnitRegistry

logger = logging.getLogger(__name__)

CREATED = UnitState.CREATED
RUNNING = UnitState.RUNNING
PAUSED = UnitState.PAUSED
STOPPED = UnitState.STOPPED
REMOVED = UnitState.REMOVED

# operation -> {current state: next state}; anything missing is illegal
TRANSITIONS: Dict[str, Dict[UnitState, UnitState]] = {
    "start": {CREATED: RUNNING, PAUSED: RUNNING, STOPPED: RUNNING},
    "pause": {RUNNING: PAUSED},
    "stop": {RUNNING: STOPPED},
    "restart": {RUNNING: RUNNING, STOPPED: RUNNING},
    "remove": {CREATED: REMOVED, STOPPED: REMOVED},
}


class LifecycleManager:
    """
    Creates runtime units and moves them through their state machine.

    The manager owns no state of its own: units live in the registry it is
    given and process isolation is delegated to the backend.
    """
    def __init__(self, registry: UnitRegistry, backend: IsolationBackend):
        """
        :param registry: Registry that holds the units.
        :param backend: Backend that provides the actual processes.
        """
        self.registry = registry
        self.backend = backend

    def create(self,
               service: ServiceSpec,
               name: Optional[str] = None,
               project: Optional[str] = None,
               interactive: bool = False,
               tty: bool = False,
               image_id: Optional[str] = None) -> RuntimeUnit:
        """
        Creates a unit in the Created state.

        :param service: The service the unit is created from.
        :param name: Unit name; defaults to the service's container_name or name.
        :param image_id: Id of the local image the service reference resolved to.
        :return: The new unit.
        :raises SchemaViolation: If a live unit already uses the name.
        """
        name = name or service.container_name or service.name
        if self.registry.find_by_name(name) is not None:
            raise SchemaViolation("name", f"unit name '{name}' is already in use")

        unit = RuntimeUnit(
            id=self.registry.new_id(),
            name=name,
            service=service,
            image_id=image_id,
            project=project,
            interactive=interactive,
            tty=tty,
        )
        self.backend.create(unit)
        self.registry.add(unit)
        logger.debug("Created unit %s (%s) from image %s", unit.name, unit.short_id, service.image)
        return unit

    def start(self, ref: str) -> RuntimeUnit:
        """Starts a created or stopped unit, or resumes a paused one."""
        unit = self.registry.get(ref)
        previous = unit.state
        self._transition(unit, "start")
        if previous == PAUSED:
            self.backend.resume(unit)
        else:
            self.backend.start(unit)
        return self._commit(unit, "start")

    def stop(self, ref: str) -> RuntimeUnit:
        unit = self.registry.get(ref)
        self._transition(unit, "stop")
        self.backend.stop(unit)
        return self._commit(unit, "stop")

    def pause(self, ref: str) -> RuntimeUnit:
        unit = self.registry.get(ref)
        self._transition(unit, "pause")
        self.backend.pause(unit)
        return self._commit(unit, "pause")

    def restart(self, ref: str) -> RuntimeUnit:
        """Stops the unit if it is running, then starts it again."""
        unit = self.registry.get(ref)
        self._transition(unit, "restart")
        if unit.state == RUNNING:
            self.backend.stop(unit)
        self.backend.start(unit)
        return self._commit(unit, "restart")

    def remove(self, ref: str) -> RuntimeUnit:
        """Removes a created or stopped unit. Removed is terminal."""
        unit = self.registry.get(ref)
        self._transition(unit, "remove")
        self.backend.remove(unit)
        return self._commit(unit, "remove")

    def logs(self, ref: str) -> Iterator[str]:
        """
        Returns the unit's log lines as a lazy, finite iterator.
        Each call produces a fresh iterator; an exhausted one stays exhausted.
        """
        unit = self.registry.get(ref)
        if unit.state == REMOVED:
            raise InvalidTransition(unit.name, "read logs of", unit.state.value)
        return self.backend.logs(unit)

    def exec(self, ref: str, command: List[str]) -> ExecResult:
        """Runs a command inside a running unit."""
        unit = self.registry.get(ref)
        if unit.state != RUNNING:
            raise InvalidTransition(unit.name, "exec in", unit.state.value)
        return self.backend.exec(unit, command)

    def _transition(self, unit: RuntimeUnit, operation: str) -> None:
        if unit.state not in TRANSITIONS[operation]:
            raise InvalidTransition(unit.name, operation, unit.state.value)

    def _commit(self, unit: RuntimeUnit, operation: str) -> RuntimeUnit:
        new_state = TRANSITIONS[operation][unit.state]
        logger.debug("%s: %s -> %s", unit.name, unit.state.value, new_state.value)
        unit.state = new_state
        return unit
