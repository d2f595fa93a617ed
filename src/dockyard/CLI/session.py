"""
Per-invocation wiring of registry, image store, backend and dispatcher.
"""
import os
from typing import Optional

from ..ISOLATION.backend import InMemoryBackend
from ..MANAGERS.lifecycle_manager import LifecycleManager
from ..MANAGERS.state_store import StateStore
from ..MANAGERS.unit_registry import UnitRegistry
from ..MODELS.topology import Topology
from ..PARSERS.descriptor_parser import DescriptorParser
from ..REGISTRY.image_store import ImageRegistry, ImageStore, StaticRegistry
from .dispatcher import Dispatcher


class Session:
    """
    Everything one CLI invocation works with. State is loaded from the
    state file when one is configured and written back by ``save``.
    """
    def __init__(self,
                 descriptor_path: str = "docker-compose.yml",
                 project_name: Optional[str] = None,
                 state_path: Optional[str] = None,
                 registry: Optional[ImageRegistry] = None):
        self.descriptor_path = descriptor_path
        self.project_name = project_name or self._default_project(descriptor_path)
        self.state = StateStore(state_path)

        snapshot = self.state.load()
        self.units = UnitRegistry(snapshot.units)
        self.images = ImageStore(snapshot.images)
        self.backend = InMemoryBackend(snapshot.logs)
        self.registry = registry or StaticRegistry()
        self.lifecycle = LifecycleManager(self.units, self.backend)
        self.dispatcher = Dispatcher(self.lifecycle, self.images, self.registry,
                                     self.load_topology, self.project_name)

    def load_topology(self) -> Topology:
        return DescriptorParser().parse(self.descriptor_path)

    def save(self) -> None:
        self.state.save(self.units, self.images, self.backend)

    @staticmethod
    def _default_project(descriptor_path: str) -> str:
        directory = os.path.basename(os.path.dirname(os.path.abspath(descriptor_path)))
        name = "".join(c for c in directory.lower() if c.isalnum() or c in "-_")
        return name or "default"
