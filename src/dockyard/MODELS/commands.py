"""
Tagged command variants accepted by the dispatcher, one model per command kind.
"""
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field


class BuildCommand(BaseModel):
    kind: Literal["build"] = "build"
    tag: str
    path: str


class RunCommand(BaseModel):
    kind: Literal["run"] = "run"
    image: str
    name: Optional[str] = None
    detach: bool = False
    interactive: bool = False
    tty: bool = False
    volumes: List[str] = []
    ports: List[str] = []
    environment: List[str] = []
    command: List[str] = []


class PullCommand(BaseModel):
    kind: Literal["pull"] = "pull"
    image: str


class ImagesCommand(BaseModel):
    kind: Literal["images"] = "images"


class PsCommand(BaseModel):
    kind: Literal["ps"] = "ps"
    show_all: bool = False


class StopCommand(BaseModel):
    kind: Literal["stop"] = "stop"
    unit: str


class StartCommand(BaseModel):
    kind: Literal["start"] = "start"
    unit: str


class RestartCommand(BaseModel):
    kind: Literal["restart"] = "restart"
    unit: str


class PauseCommand(BaseModel):
    kind: Literal["pause"] = "pause"
    unit: str


class RmCommand(BaseModel):
    kind: Literal["rm"] = "rm"
    unit: str


class RmiCommand(BaseModel):
    kind: Literal["rmi"] = "rmi"
    image: str


class LogsCommand(BaseModel):
    kind: Literal["logs"] = "logs"
    unit: str


class ExecCommand(BaseModel):
    kind: Literal["exec"] = "exec"
    unit: str
    command: List[str] = Field(min_length=1)


class ComposeUpCommand(BaseModel):
    """Create and start the descriptor's services (or the named ones and their dependencies)."""
    kind: Literal["compose up"] = "compose up"
    detach: bool = False
    services: List[str] = []


class ComposeDownCommand(BaseModel):
    """Stop and remove every unit of the project, dependents first."""
    kind: Literal["compose down"] = "compose down"


Command = Annotated[
    Union[
        BuildCommand,
        RunCommand,
        PullCommand,
        ImagesCommand,
        PsCommand,
        StopCommand,
        StartCommand,
        RestartCommand,
        PauseCommand,
        RmCommand,
        RmiCommand,
        LogsCommand,
        ExecCommand,
        ComposeUpCommand,
        ComposeDownCommand,
    ],
    Field(discriminator="kind"),
]

COMMAND_TYPES = (
    BuildCommand, RunCommand, PullCommand, ImagesCommand, PsCommand,
    StopCommand, StartCommand, RestartCommand, PauseCommand, RmCommand,
    RmiCommand, LogsCommand, ExecCommand, ComposeUpCommand, ComposeDownCommand,
)
