"""
Parsers for Dockerfiles, extracting instructions and arguments.
"""
import json
import re
import shlex
from typing import List
from ..errors import MalformedDescriptor
from ..MODELS.dockerfile_ast import Instruction

INSTRUCTION = re.compile(r"^([A-Za-z]+)(?:\s+(.*))?$")
EXEC_FORM = {"CMD", "ENTRYPOINT", "RUN", "SHELL", "VOLUME"}


class DockerfileParser:
    """
    Parser for Dockerfile instructions.
    """
    def parse(self, dockerfile_path: str) -> List[Instruction]:
        """
        Parses a Dockerfile from a file path.

        Args:
            dockerfile_path (str): Path to the Dockerfile.

        Returns:
            List[Instruction]: List of parsed instructions.
        """
        try:
            with open(dockerfile_path, 'r') as f:
                content = f.read()
        except OSError as exc:
            raise MalformedDescriptor(f"cannot read {dockerfile_path}: {exc.strerror}",
                                      identifier=dockerfile_path) from exc
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> List[Instruction]:
        """
        Parses a Dockerfile from a string content.

        Comment lines are dropped, backslash continuations are joined and each
        instruction keeps the line it started on.
        """
        instructions = []
        pending = ""
        start_line = 0

        for number, line in enumerate(content.splitlines(), start=1):
            stripped = line.strip()
            if not pending and (not stripped or stripped.startswith("#")):
                continue
            if pending and stripped.startswith("#"):
                continue
            if not pending:
                start_line = number
            if stripped.endswith("\\"):
                pending += stripped[:-1] + " "
                continue
            instructions.append(self._parse_instruction(pending + stripped, start_line))
            pending = ""

        if pending.strip():
            instructions.append(self._parse_instruction(pending.strip(), start_line))
        return instructions

    def _parse_instruction(self, text: str, line: int) -> Instruction:
        match = INSTRUCTION.match(text.strip())
        if not match:
            raise MalformedDescriptor(f"Dockerfile line {line}: cannot parse '{text.strip()}'",
                                      identifier=f"line {line}")
        inst = match.group(1).upper()
        args_str = (match.group(2) or "").strip()
        if not args_str:
            raise MalformedDescriptor(f"Dockerfile line {line}: {inst} requires arguments",
                                      identifier=inst)

        if inst in EXEC_FORM and args_str.startswith("["):
            try:
                args = json.loads(args_str)
            except json.JSONDecodeError:
                # Not valid JSON, Docker falls back to the shell form
                args = ["/bin/sh", "-c", args_str]
            else:
                args = [str(a) for a in args]
        elif inst in ("CMD", "ENTRYPOINT"):
            args = ["/bin/sh", "-c", args_str]
        elif inst in ("ENV", "LABEL", "ARG"):
            args = self._parse_pairs(inst, args_str, line)
        elif inst in ("EXPOSE", "VOLUME"):
            args = args_str.split()
        else:
            args = [args_str]

        return Instruction(instruction=inst, arguments=args, raw=text.strip(), line=line)

    def _parse_pairs(self, inst: str, args_str: str, line: int) -> List[str]:
        """
        Normalizes KEY=VALUE and the legacy 'KEY VALUE' form into KEY=VALUE items.
        """
        try:
            tokens = shlex.split(args_str)
        except ValueError as exc:
            raise MalformedDescriptor(f"Dockerfile line {line}: {exc}", identifier=inst) from exc
        if inst == "ARG" or all("=" in t for t in tokens):
            return tokens
        key, _, value = args_str.partition(" ")
        return [f"{key}={value.strip()}"]
