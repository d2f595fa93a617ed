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
Isolation backend interface and the in-process backend.

The lifecycle manager only tracks logical state; everything that touches the
sandboxed process goes through an IsolationBackend.
"""

import logging
import shlex
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Protocol, runtime_checkable

from ..MODELS.runtime_unit import RuntimeUnit

logger = logging.getLogger(__name__)


@dataclass
class ExecResult:
    """Outcome of a command executed inside a unit."""
    exit_code: int
    output: List[str] = field(default_factory=list)


@runtime_checkable
class IsolationBackend(Protocol):
    """
    Protocol for the component that creates and destroys sandboxed processes.
    Every call blocks until the backend has acknowledged the change.
    """

    def create(self, unit: RuntimeUnit) -> None:
        ...

    def start(self, unit: RuntimeUnit) -> None:
        ...

    def stop(self, unit: RuntimeUnit) -> None:
        ...

    def pause(self, unit: RuntimeUnit) -> None:
        ...

    def resume(self, unit: RuntimeUnit) -> None:
        ...

    def remove(self, unit: RuntimeUnit) -> None:
        ...

    def logs(self, unit: RuntimeUnit) -> Iterator[str]:
        """Yields the unit's log lines recorded so far."""
        ...

    def exec(self, unit: RuntimeUnit, command: List[str]) -> ExecResult:
        ...


class InMemoryBackend:
    """
    Backend that simulates processes inside the current interpreter.

    Each lifecycle event appends a line to the unit's log, which makes the
    log stream deterministic and easy to assert on.
    """

    def __init__(self, logs: Optional[Dict[str, List[str]]] = None):
        """
        Args:
            logs: Previously recorded log lines keyed by unit id.
        """
        self._logs: Dict[str, List[str]] = {k: list(v) for k, v in (logs or {}).items()}

    def create(self, unit: RuntimeUnit) -> None:
        self._logs.setdefault(unit.id, [])
        self._record(unit, f"created from image {unit.service.image}")

    def start(self, unit: RuntimeUnit) -> None:
        command = " ".join(shlex.quote(c) for c in unit.service.command)
        self._record(unit, f"started {command}" if command else "started")
        for mapping in unit.service.ports:
            if mapping.host is not None:
                self._record(unit, f"listening on {mapping.host} -> {mapping.container}/{mapping.protocol}")

    def stop(self, unit: RuntimeUnit) -> None:
        self._record(unit, "stopped")

    def pause(self, unit: RuntimeUnit) -> None:
        self._record(unit, "paused")

    def resume(self, unit: RuntimeUnit) -> None:
        self._record(unit, "resumed")

    def remove(self, unit: RuntimeUnit) -> None:
        logger.debug("Releasing backend resources of %s", unit.name)

    def logs(self, unit: RuntimeUnit) -> Iterator[str]:
        # snapshot, so lines recorded while iterating are not yielded
        for line in list(self._logs.get(unit.id, [])):
            yield line

    def exec(self, unit: RuntimeUnit, command: List[str]) -> ExecResult:
        """
        Understands a handful of commands: echo, env, true and false.
        Anything else succeeds without output.
        """
        self._record(unit, f"exec {' '.join(shlex.quote(c) for c in command)}")
        program, args = command[0], command[1:]
        if program == "echo":
            return ExecResult(0, [" ".join(args)])
        if program == "env":
            return ExecResult(0, [f"{k}={v}" for k, v in sorted(unit.service.environment.items())])
        if program == "false":
            return ExecResult(1)
        return ExecResult(0)

    def export_logs(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self._logs.items()}

    def _record(self, unit: RuntimeUnit, message: str) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        self._logs.setdefault(unit.id, []).append(f"{stamp} {unit.name} {message}")
