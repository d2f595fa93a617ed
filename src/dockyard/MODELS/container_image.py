"""
Models representing images held in the local image store.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Optional
from pydantic import BaseModel, Field


class ImageSource(str, Enum):
    PULLED = "pulled"
    BUILT = "built"


class ContainerImage(BaseModel):
    """
    A local image, either pulled from a registry or built from a Dockerfile.
    """
    reference: str
    id: str
    source: ImageSource = ImageSource.PULLED
    base_image: Optional[str] = None

    env_vars: Dict[str, str] = {}
    working_directory: Optional[str] = None
    exposed_ports: List[int] = []

    cmd: List[str] = []
    entrypoint: List[str] = []

    labels: Dict[str, str] = {}
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def short_id(self) -> str:
        return self.id.split(":", 1)[-1][:12]
