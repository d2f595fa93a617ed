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
Command dispatcher: turns command variants into lifecycle and image operations.
"""
import logging
import os
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from pydantic import TypeAdapter, ValidationError

from ..BUILDERS.image_builder import ImageBuilder
from ..errors import ImageNotFound, InvalidTransition, MissingArgument, SchemaViolation, UnknownCommand
from ..MANAGERS.lifecycle_manager import LifecycleManager
from ..MANAGERS.service_orchestrator import ServiceOrchestrator
from ..MODELS import commands as cmds
from ..MODELS.runtime_unit import RuntimeUnit
from ..MODELS.service_definition import ServiceSpec
from ..MODELS.topology import Topology
from ..PARSERS.descriptor_parser import DescriptorParser
from ..REGISTRY.image_reference import ImageReference
from ..REGISTRY.image_store import ImageRegistry, ImageStore

logger = logging.getLogger(__name__)

COMMAND_ADAPTER = TypeAdapter(cmds.Command)
KNOWN_COMMANDS = {t.model_fields["kind"].default: t for t in cmds.COMMAND_TYPES}


def parse_command(kind: str, **fields: Any):
    """
    Builds the command variant for ``kind`` from CLI arguments.
    Arguments left as None count as not supplied.

    :raises UnknownCommand: If ``kind`` is not part of the vocabulary.
    :raises MissingArgument: If a required argument is absent or empty.
    """
    if kind not in KNOWN_COMMANDS:
        raise UnknownCommand(kind)
    data = {k: v for k, v in fields.items() if v is not None}
    data["kind"] = kind
    try:
        return COMMAND_ADAPTER.validate_python(data)
    except ValidationError as exc:
        error = exc.errors()[0]
        argument = str(error["loc"][-1]) if error["loc"] else kind
        if error["type"] in ("missing", "too_short"):
            raise MissingArgument(kind, argument) from exc
        raise SchemaViolation(f"{kind}.{argument}", error["msg"]) from exc


@dataclass
class CommandResult:
    """Output lines of a command, possibly lazy, and the exit code it asks for."""
    output: Iterable[str]
    exit_code: int = 0


class Dispatcher:
    """
    Executes one command at a time against the lifecycle manager and the image store.

    There is exactly one handler per command kind; constructing a dispatcher
    with a kind left unhandled is a programming error.
    """
    def __init__(self,
                 lifecycle: LifecycleManager,
                 store: ImageStore,
                 registry: ImageRegistry,
                 load_topology: Callable[[], Topology],
                 project: str):
        """
        :param load_topology: Called by compose commands to parse the descriptor.
        :param project: Project name for compose commands.
        """
        self.lifecycle = lifecycle
        self.store = store
        self.registry = registry
        self.load_topology = load_topology
        self.project = project
        self.builder = ImageBuilder(store, registry)

        self._handlers: Dict[type, Callable[[Any], CommandResult]] = {
            cmds.BuildCommand: self._build,
            cmds.RunCommand: self._run,
            cmds.PullCommand: self._pull,
            cmds.ImagesCommand: self._images,
            cmds.PsCommand: self._ps,
            cmds.StopCommand: self._stop,
            cmds.StartCommand: self._start,
            cmds.RestartCommand: self._restart,
            cmds.PauseCommand: self._pause,
            cmds.RmCommand: self._rm,
            cmds.RmiCommand: self._rmi,
            cmds.LogsCommand: self._logs,
            cmds.ExecCommand: self._exec,
            cmds.ComposeUpCommand: self._compose_up,
            cmds.ComposeDownCommand: self._compose_down,
        }
        missing = [t.__name__ for t in cmds.COMMAND_TYPES if t not in self._handlers]
        if missing:
            raise TypeError(f"no handler for {', '.join(missing)}")

    def dispatch(self, command) -> CommandResult:
        logger.debug("Dispatching %s", command.kind)
        return self._handlers[type(command)](command)

    def _build(self, command: cmds.BuildCommand) -> CommandResult:
        image = self.builder.build(command.path, command.tag)
        return CommandResult([f"Successfully built {image.short_id}",
                              f"Successfully tagged {ImageReference.parse(image.reference)}"])

    def _run(self, command: cmds.RunCommand) -> CommandResult:
        image = self.store.ensure(command.image, self.registry)
        parser = DescriptorParser()

        environment = dict(image.env_vars)
        environment.update(parser.parse_environment("run.env", list(command.environment), os.environ))
        name = command.name or self._generate_name(command.image)
        spec = ServiceSpec(
            name=name,
            image=command.image,
            ports=[parser.parse_port("run.publish", p) for p in command.ports],
            volumes=[parser.parse_volume("run.volume", v) for v in command.volumes],
            environment=environment,
            command=self._full_command(image.entrypoint, list(command.command) or image.cmd),
        )

        unit = self.lifecycle.create(spec, name=name, interactive=command.interactive, tty=command.tty,
                                     image_id=image.id)
        self.lifecycle.start(unit.id)
        if command.detach:
            return CommandResult([unit.id])
        return CommandResult(self.lifecycle.logs(unit.id))

    def _pull(self, command: cmds.PullCommand) -> CommandResult:
        image = self.store.pull(command.image, self.registry)
        ref = ImageReference.parse(command.image)
        return CommandResult([f"Digest: {image.id}",
                              f"Status: Downloaded image for {ref}",
                              ref.full_name])

    def _images(self, command: cmds.ImagesCommand) -> CommandResult:
        lines = [f"{'REPOSITORY':30} {'TAG':12} {'IMAGE ID':14} {'SOURCE':8}"]
        for image in self.store.list():
            ref = ImageReference.parse(image.reference)
            repository = ref.short_name.rsplit(":", 1)[0] if ref.tag else ref.short_name.split("@")[0]
            lines.append(f"{repository:30} {ref.tag or '<none>':12} {image.short_id:14} {image.source.value:8}")
        return CommandResult(lines)

    def _ps(self, command: cmds.PsCommand) -> CommandResult:
        lines = [f"{'UNIT ID':14} {'IMAGE':24} {'COMMAND':24} {'STATUS':10} {'PORTS':20} NAMES"]
        for unit in self.lifecycle.registry.list(show_all=command.show_all):
            lines.append(self._ps_row(unit))
        return CommandResult(lines)

    def _stop(self, command: cmds.StopCommand) -> CommandResult:
        self.lifecycle.stop(command.unit)
        return CommandResult([command.unit])

    def _start(self, command: cmds.StartCommand) -> CommandResult:
        self.lifecycle.start(command.unit)
        return CommandResult([command.unit])

    def _restart(self, command: cmds.RestartCommand) -> CommandResult:
        self.lifecycle.restart(command.unit)
        return CommandResult([command.unit])

    def _pause(self, command: cmds.PauseCommand) -> CommandResult:
        self.lifecycle.pause(command.unit)
        return CommandResult([command.unit])

    def _rm(self, command: cmds.RmCommand) -> CommandResult:
        self.lifecycle.remove(command.unit)
        return CommandResult([command.unit])

    def _rmi(self, command: cmds.RmiCommand) -> CommandResult:
        image = self.store.get(command.image)
        if image is not None:
            users = self.lifecycle.registry.using_image(image.id, self._image_id)
            if users:
                raise InvalidTransition(image.reference, "remove image",
                                        f"used by unit {users[0].name}")
        image = self.store.remove(command.image)
        return CommandResult([f"Untagged: {image.reference}", f"Deleted: {image.id}"])

    def _image_id(self, reference: str) -> Optional[str]:
        try:
            image = self.store.get(reference)
        except ImageNotFound:
            return None
        return image.id if image is not None else None

    def _logs(self, command: cmds.LogsCommand) -> CommandResult:
        return CommandResult(self.lifecycle.logs(command.unit))

    def _exec(self, command: cmds.ExecCommand) -> CommandResult:
        result = self.lifecycle.exec(command.unit, list(command.command))
        return CommandResult(result.output, result.exit_code)

    def _compose_up(self, command: cmds.ComposeUpCommand) -> CommandResult:
        orchestrator = self._orchestrator()
        units = orchestrator.up(list(command.services))
        lines: List[str] = [f"Container {unit.name}  Started" for unit in units]
        if command.detach:
            return CommandResult(lines)
        return CommandResult(self._chain(lines, self._prefixed_logs(units)))

    def _compose_down(self, command: cmds.ComposeDownCommand) -> CommandResult:
        units = self._orchestrator().down()
        return CommandResult([f"Container {unit.name}  Removed" for unit in units])

    def _orchestrator(self) -> ServiceOrchestrator:
        return ServiceOrchestrator(self.load_topology(), self.lifecycle, self.store,
                                   self.registry, self.project)

    def _prefixed_logs(self, units: List[RuntimeUnit]) -> Iterator[str]:
        width = max(len(u.service.name) for u in units) if units else 0
        for unit in units:
            for line in self.lifecycle.logs(unit.id):
                yield f"{unit.service.name:{width}} | {line}"

    @staticmethod
    def _chain(first: Iterable[str], second: Iterable[str]) -> Iterator[str]:
        yield from first
        yield from second

    @staticmethod
    def _full_command(entrypoint: List[str], cmd: List[str]) -> List[str]:
        # ENTRYPOINT is the executable when set; CMD becomes its arguments
        return list(entrypoint) + list(cmd)

    @staticmethod
    def _generate_name(image: str) -> str:
        base = ImageReference.parse(image).repository.rsplit("/", 1)[-1]
        return f"{base}-{secrets.token_hex(3)}"

    @staticmethod
    def _ps_row(unit: RuntimeUnit) -> str:
        command = " ".join(unit.service.command)
        if len(command) > 22:
            command = command[:19] + "..."
        ports = ", ".join(p.to_descriptor() for p in unit.service.ports)
        return (f"{unit.short_id:14} {unit.service.image:24} {command!r:24} "
                f"{unit.state.value:10} {ports:20} {unit.name}")
