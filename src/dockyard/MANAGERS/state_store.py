"""
Optional JSON persistence of units, images and logs between invocations.
"""
import logging
import os
from typing import Dict, List, Optional
from pydantic import BaseModel, ValidationError

from ..errors import MalformedDescriptor
from ..ISOLATION.backend import InMemoryBackend
from ..MODELS.container_image import ContainerImage
from ..MODELS.runtime_unit import RuntimeUnit
from ..REGISTRY.image_store import ImageStore
from .unit_registry import UnitRegistry

logger = logging.getLogger(__name__)


class StateSnapshot(BaseModel):
    """
    Everything one invocation hands over to the next.
    """
    units: List[RuntimeUnit] = []
    images: List[ContainerImage] = []
    logs: Dict[str, List[str]] = {}


class StateStore:
    """
    Reads and writes a StateSnapshot as a JSON file. With no path, nothing is persisted.
    """
    def __init__(self, path: Optional[str] = None):
        self.path = path

    def load(self) -> StateSnapshot:
        if not self.path or not os.path.exists(self.path):
            return StateSnapshot()
        try:
            with open(self.path, "r") as f:
                return StateSnapshot.model_validate_json(f.read())
        except (OSError, ValidationError) as exc:
            raise MalformedDescriptor(f"cannot load state file {self.path}: {exc}",
                                      identifier=self.path) from exc

    def save(self, registry: UnitRegistry, store: ImageStore, backend: InMemoryBackend) -> None:
        if not self.path:
            return
        snapshot = StateSnapshot(units=list(registry), images=store.list(), logs=backend.export_logs())
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w") as f:
            f.write(snapshot.model_dump_json(indent=2))
        os.replace(tmp_path, self.path)
        logger.debug("Saved %d units and %d images to %s", len(snapshot.units), len(snapshot.images), self.path)
