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
Orchestration of a whole topology: compose up and compose down.
"""
import logging
from typing import List, Optional, Sequence

from ..errors import SchemaViolation
from ..MODELS.runtime_unit import RuntimeUnit, UnitState
from ..MODELS.topology import Topology
from ..REGISTRY.image_store import ImageRegistry, ImageStore
from ..RUNNERS.dependency_resolver import DependencyOrderer
from .lifecycle_manager import LifecycleManager

logger = logging.getLogger(__name__)


class ServiceOrchestrator:
    """
    Brings the services of a topology up and down in dependency order.
    """
    def __init__(self,
                 topology: Topology,
                 lifecycle: LifecycleManager,
                 store: ImageStore,
                 registry: ImageRegistry,
                 project: str):
        """
        Initializes the orchestrator.

        :param topology: Parsed descriptor.
        :param lifecycle: Manager used for every unit operation.
        :param store: Local images; missing ones are pulled from ``registry``.
        :param project: Project name, used to name and group units.
        """
        self.topology = topology
        self.lifecycle = lifecycle
        self.store = store
        self.registry = registry
        self.project = project
        self.orderer = DependencyOrderer()

    def unit_name(self, service: str) -> str:
        svc = self.topology.services[service]
        return svc.container_name or f"{self.project}-{service}-1"

    def up(self, services: Optional[Sequence[str]] = None) -> List[RuntimeUnit]:
        """
        Creates and starts services in dependency order.

        Images are resolved for every service before any unit is touched, so a
        missing image fails the command without starting anything. Units that
        are already running are left alone.

        :param services: Only these services (and their dependencies).
        :return: The project's units in start order.
        """
        for name in services or []:
            if name not in self.topology.services:
                raise SchemaViolation(f"services.{name}", "no such service")

        order = self.orderer.resolve_order(self.topology, services or None)
        logger.info("Starting services in order: %s", ", ".join(order))

        images = {name: self.store.ensure(self.topology.services[name].image, self.registry)
                  for name in order}

        for name in order:
            unit = self.lifecycle.registry.find_by_name(self.unit_name(name))
            if unit is not None and unit.project != self.project:
                raise SchemaViolation("container_name",
                                      f"unit name '{unit.name}' is already in use")

        units = []
        for name in order:
            unit = self.lifecycle.registry.find_by_name(self.unit_name(name))
            if unit is None:
                unit = self.lifecycle.create(self.topology.services[name],
                                             name=self.unit_name(name),
                                             project=self.project,
                                             image_id=images[name].id)
            if unit.state == UnitState.RUNNING:
                logger.info("Service %s is already running", name)
            else:
                logger.info("Starting service: %s", name)
                self.lifecycle.start(unit.id)
            units.append(unit)
        return units

    def down(self) -> List[RuntimeUnit]:
        """
        Stops and removes the project's units, dependents first.

        :return: The removed units in removal order.
        """
        removed = []
        names = [self.unit_name(name) for name in self.orderer.shutdown_order(self.topology)]
        # units of services no longer in the descriptor go first
        orphans = [u.name for u in self.lifecycle.registry.list(show_all=True, project=self.project)
                   if u.name not in names]

        for unit_name in orphans + names:
            unit = self.lifecycle.registry.find_by_name(unit_name)
            if unit is None or unit.project != self.project:
                continue
            logger.info("Stopping service: %s", unit.name)
            if unit.state == UnitState.PAUSED:
                self.lifecycle.start(unit.id)
            if unit.state == UnitState.RUNNING:
                self.lifecycle.stop(unit.id)
            removed.append(self.lifecycle.remove(unit.id))
        return removed

    def ps(self) -> List[RuntimeUnit]:
        """
        Returns the project's non-removed units.
        """
        return self.lifecycle.registry.list(show_all=True, project=self.project)
