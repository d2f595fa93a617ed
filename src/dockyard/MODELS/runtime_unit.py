"""
Models for runtime units, the live instances created from a service.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from .service_definition import ServiceSpec


class UnitState(str, Enum):
    """
    Lifecycle states of a runtime unit. REMOVED is terminal.
    """
    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    REMOVED = "removed"


class RuntimeUnit(BaseModel):
    """
    A unit created from one ServiceSpec. Only the lifecycle manager mutates ``state``.
    """
    id: str
    name: str
    service: ServiceSpec
    image_id: Optional[str] = None
    state: UnitState = UnitState.CREATED
    project: Optional[str] = None
    interactive: bool = False
    tty: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def short_id(self) -> str:
        return self.id[:12]

    @property
    def is_active(self) -> bool:
        """True while the unit holds a live process (running or paused)."""
        return self.state in (UnitState.RUNNING, UnitState.PAUSED)
