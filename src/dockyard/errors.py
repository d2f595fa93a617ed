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
Exception hierarchy for Dockyard.

Every error carries the kind name shown to the user, the offending
identifier (service, unit, field, command or image) and the process exit
code used by the CLI.
"""
from typing import Any, Dict, Optional


class DockyardError(Exception):
    """
    Base class for all failures surfaced to the caller of a command.
    """
    kind = "DockyardError"
    exit_code = 1

    def __init__(self, message: str, identifier: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.identifier = identifier
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class DescriptorError(DockyardError):
    """Raised for descriptor and Dockerfile problems."""
    exit_code = 3


class MalformedDescriptor(DescriptorError):
    """The descriptor text is not syntactically valid."""
    kind = "MalformedDescriptor"


class SchemaViolation(DescriptorError):
    """A field is unknown, missing, duplicated or of the wrong type."""
    kind = "SchemaViolation"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"'{field}': {reason}", identifier=field,
                         context={"field": field, "reason": reason})


class CyclicDependency(DockyardError):
    """The service dependency graph contains a cycle."""
    kind = "CyclicDependency"
    exit_code = 4

    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(
            f"circular dependency {' -> '.join(self.cycle)}",
            identifier=self.cycle[0] if self.cycle else None,
            context={"cycle": self.cycle},
        )


class UnitError(DockyardError):
    exit_code = 5


class UnitNotFound(UnitError):
    """No runtime unit matches the given id or name."""
    kind = "UnitNotFound"

    def __init__(self, unit_id: str, reason: str = "no such unit"):
        super().__init__(f"{reason}: {unit_id}", identifier=unit_id)


class InvalidTransition(UnitError):
    """The requested operation is not legal from the current state."""
    kind = "InvalidTransition"

    def __init__(self, identifier: str, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(
            f"cannot {operation} {identifier} while it is {state}",
            identifier=identifier,
            context={"operation": operation, "state": state},
        )


class CommandError(DockyardError):
    exit_code = 2


class UnknownCommand(CommandError):
    """The command name is not part of the vocabulary."""
    kind = "UnknownCommand"

    def __init__(self, name: str):
        super().__init__(f"unknown command '{name}'", identifier=name)


class MissingArgument(CommandError):
    """A required positional argument or option was not supplied."""
    kind = "MissingArgument"

    def __init__(self, command: str, argument: str):
        self.command = command
        self.argument = argument
        super().__init__(f"'{command}' requires argument '{argument}'",
                         identifier=argument,
                         context={"command": command})


class ImageNotFound(DockyardError):
    """The image reference cannot be resolved locally or by the registry."""
    kind = "ImageNotFound"
    exit_code = 6

    def __init__(self, reference: str, reason: str = "image not found"):
        super().__init__(f"{reason}: {reference}", identifier=reference)
