"""
Models for a parsed descriptor: the service topology.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from .service_definition import ServiceSpec


class Topology(BaseModel):
    """
    All services of one descriptor, keyed by name in declaration order.
    Equivalent to a parsed docker-compose.yml file.
    """
    model_config = ConfigDict(frozen=True)

    version: Optional[str] = None
    services: Dict[str, ServiceSpec] = {}

    def names(self) -> List[str]:
        return list(self.services)

    def to_descriptor(self) -> Dict[str, object]:
        data: Dict[str, object] = {}
        if self.version is not None:
            data["version"] = self.version
        data["services"] = {name: svc.to_descriptor() for name, svc in self.services.items()}
        return data
