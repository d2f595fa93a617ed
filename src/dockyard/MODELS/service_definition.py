"""
Models for a single service of a descriptor: ports, volumes and the service itself.
"""
from typing import List, Dict, Optional
from pydantic import BaseModel, ConfigDict


class PortMapping(BaseModel):
    """
    A host:container port pair. ``host`` is None when the port is not published.
    """
    model_config = ConfigDict(frozen=True)

    host: Optional[int] = None
    container: int
    protocol: str = "tcp"

    def to_descriptor(self) -> str:
        value = str(self.container) if self.host is None else f"{self.host}:{self.container}"
        if self.protocol != "tcp":
            value += f"/{self.protocol}"
        return value


class VolumeMount(BaseModel):
    """
    Defines a mapping between a host path and a path inside the unit.
    """
    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    read_only: bool = False

    def to_descriptor(self) -> str:
        value = f"{self.source}:{self.target}"
        return value + ":ro" if self.read_only else value


class ServiceSpec(BaseModel):
    """
    The full definition of a single service as declared in a descriptor.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    image: str

    ports: List[PortMapping] = []
    volumes: List[VolumeMount] = []
    environment: Dict[str, str] = {}
    depends_on: List[str] = []

    # Execution
    command: List[str] = []
    env_file: List[str] = []
    container_name: Optional[str] = None

    def to_descriptor(self) -> Dict[str, object]:
        """
        Renders the service back into its descriptor mapping, omitting empty fields.
        """
        data: Dict[str, object] = {"image": self.image}
        if self.container_name:
            data["container_name"] = self.container_name
        if self.command:
            data["command"] = list(self.command)
        if self.ports:
            data["ports"] = [p.to_descriptor() for p in self.ports]
        if self.volumes:
            data["volumes"] = [v.to_descriptor() for v in self.volumes]
        if self.env_file:
            data["env_file"] = list(self.env_file)
        if self.environment:
            data["environment"] = dict(self.environment)
        if self.depends_on:
            data["depends_on"] = list(self.depends_on)
        return data
