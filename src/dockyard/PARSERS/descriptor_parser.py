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
Parser for compose-style deployment descriptors.
"""
import logging
import os
import re
import shlex
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import dotenv_values

from ..errors import MalformedDescriptor, SchemaViolation
from ..MODELS.service_definition import PortMapping, ServiceSpec, VolumeMount
from ..MODELS.topology import Topology
from ..UTILS.string_interpolation import EnvironmentInterpolator

logger = logging.getLogger(__name__)

TOP_LEVEL_FIELDS = {"version", "services"}
SERVICE_FIELDS = {
    "image", "ports", "volumes", "environment", "depends_on",
    "command", "env_file", "container_name",
}
SERVICE_NAME = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")
PORT_PATTERN = re.compile(r"^(?:(?P<host>\d+):)?(?P<container>\d+)(?:/(?P<protocol>tcp|udp|sctp))?$")


class _UniqueKeyLoader(yaml.SafeLoader):
    """
    SafeLoader that refuses duplicate keys instead of keeping the last one.
    """
    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            if key_node.tag == "tag:yaml.org,2002:merge":
                # keys pulled in by "<<" may be overridden
                continue
            key = self.construct_object(key_node, deep=deep)
            try:
                duplicate = key in seen
            except TypeError:
                # unhashable keys are reported by the base constructor
                continue
            if duplicate:
                raise SchemaViolation(str(key), f"duplicate key on line {key_node.start_mark.line + 1}")
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


class DescriptorParser:
    """
    Parser for docker-compose.yml style descriptors.
    """
    def __init__(self, context: Optional[Mapping[str, str]] = None):
        """
        Initializes the parser with an optional variable context for interpolation.

        :param context: Variables for interpolation. When omitted, the process
            environment overlaid on the descriptor's .env file is used.
        """
        self.context = context

    def parse(self, descriptor_path: str) -> Topology:
        """
        Parses a descriptor from a path.

        :param descriptor_path: Path to the descriptor file.
        :return: Parsed topology.
        """
        try:
            with open(descriptor_path, "r") as f:
                content = f.read()
        except OSError as exc:
            raise MalformedDescriptor(f"cannot read {descriptor_path}: {exc.strerror}",
                                      identifier=descriptor_path) from exc
        return self.parse_from_string(content, base_dir=os.path.dirname(os.path.abspath(descriptor_path)))

    def parse_from_string(self, content: str, base_dir: str = ".") -> Topology:
        """
        Parses a descriptor from a string.

        :param content: YAML content of the descriptor.
        :param base_dir: Directory against which env_file paths and .env are resolved.
        :return: Parsed topology.
        """
        try:
            data = yaml.load(content, Loader=_UniqueKeyLoader)
        except (yaml.YAMLError, ValueError) as exc:
            # ValueError comes from scalars such as impossible dates
            mark = getattr(exc, "problem_mark", None)
            where = f" (line {mark.line + 1}, column {mark.column + 1})" if mark else ""
            problem = getattr(exc, "problem", None) or str(exc)
            raise MalformedDescriptor(f"invalid YAML{where}: {problem}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SchemaViolation("<root>", "descriptor must be a mapping")
        self._check_fields("", data, TOP_LEVEL_FIELDS)

        context = self._context(base_dir)
        data = EnvironmentInterpolator(context).interpolate_tree(data)

        version = data.get("version")
        if version is not None:
            version = str(version)

        if "services" not in data:
            raise SchemaViolation("services", "missing required field")
        raw_services = data["services"]
        if not isinstance(raw_services, dict):
            raise SchemaViolation("services", "must be a mapping of service names")

        services: Dict[str, ServiceSpec] = {}
        for name, spec in raw_services.items():
            if not isinstance(name, str) or not SERVICE_NAME.match(name):
                raise SchemaViolation(f"services.{name}", "invalid service name")
            services[name] = self._parse_service(name, spec, base_dir, context)

        for name, svc in services.items():
            for dep in svc.depends_on:
                if dep not in services:
                    raise SchemaViolation(f"services.{name}.depends_on",
                                          f"depends on undefined service '{dep}'")

        return Topology(version=version, services=services)

    def dump(self, topology: Topology) -> str:
        """
        Serializes a topology back into descriptor YAML.
        """
        return yaml.safe_dump(self._escape(topology.to_descriptor()), sort_keys=False, default_flow_style=False)

    def _escape(self, value: Any) -> Any:
        # literal dollars must survive interpolation on the next parse
        if isinstance(value, str):
            return value.replace("$", "$$")
        if isinstance(value, dict):
            return {k: self._escape(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._escape(v) for v in value]
        return value

    def _context(self, base_dir: str) -> Dict[str, str]:
        if self.context is not None:
            return dict(self.context)
        context = {}
        env_path = os.path.join(base_dir, ".env")
        if os.path.isfile(env_path):
            context.update({k: v for k, v in dotenv_values(env_path).items() if v is not None})
        context.update(os.environ)
        return context

    def _check_fields(self, prefix: str, data: Dict[Any, Any], allowed) -> None:
        for key in data:
            if key not in allowed:
                raise SchemaViolation(f"{prefix}{key}", "unknown field")

    def _parse_service(self, name: str, spec: Any, base_dir: str, context: Mapping[str, str]) -> ServiceSpec:
        """
        Parses a single service definition.

        :param name: The name of the service.
        :param spec: The service mapping from the descriptor.
        :return: A ServiceSpec instance.
        """
        prefix = f"services.{name}."
        if not isinstance(spec, dict):
            raise SchemaViolation(f"services.{name}", "service definition must be a mapping")
        self._check_fields(prefix, spec, SERVICE_FIELDS)

        image = spec.get("image")
        if image is None:
            raise SchemaViolation(prefix + "image", "missing required field")
        if not isinstance(image, str) or not image.strip():
            raise SchemaViolation(prefix + "image", "must be a non-empty string")

        env_files = self._to_list(prefix + "env_file", spec.get("env_file"))
        environment: Dict[str, str] = {}
        for env_file in env_files:
            environment.update(self._load_env_file(prefix + "env_file", base_dir, env_file))
        environment.update(self.parse_environment(prefix + "environment", spec.get("environment"), context))

        container_name = spec.get("container_name")
        if container_name is not None and not isinstance(container_name, str):
            raise SchemaViolation(prefix + "container_name", "must be a string")

        return ServiceSpec(
            name=name,
            image=image,
            ports=[self.parse_port(prefix + "ports", p) for p in self._to_list(prefix + "ports", spec.get("ports"), allow_int=True)],
            volumes=[self.parse_volume(prefix + "volumes", v) for v in self._to_list(prefix + "volumes", spec.get("volumes"))],
            environment=environment,
            depends_on=self._parse_depends_on(prefix + "depends_on", spec.get("depends_on")),
            command=self._parse_command(prefix + "command", spec.get("command")),
            env_file=env_files,
            container_name=container_name,
        )

    def parse_port(self, field: str, value: Any) -> PortMapping:
        match = PORT_PATTERN.match(str(value))
        if not match:
            raise SchemaViolation(field, f"invalid port mapping '{value}'")
        host = int(match.group("host")) if match.group("host") else None
        container = int(match.group("container"))
        for port in (host, container):
            if port is not None and not 0 < port < 65536:
                raise SchemaViolation(field, f"port out of range in '{value}'")
        return PortMapping(host=host, container=container, protocol=match.group("protocol") or "tcp")

    def parse_volume(self, field: str, value: str) -> VolumeMount:
        parts = value.split(":")
        if len(parts) == 3 and parts[2] in ("ro", "rw"):
            return VolumeMount(source=parts[0], target=parts[1], read_only=(parts[2] == "ro"))
        if len(parts) == 2 and parts[0] and parts[1]:
            return VolumeMount(source=parts[0], target=parts[1])
        raise SchemaViolation(field, f"invalid volume mapping '{value}'")

    def parse_environment(self, field: str, value: Any, context: Mapping[str, str]) -> Dict[str, str]:
        """
        Accepts both the mapping form and the list of KEY=VALUE strings.
        A key without a value takes its value from the interpolation context.
        """
        if value is None:
            return {}
        if isinstance(value, list):
            pairs = {}
            for item in value:
                if not isinstance(item, str):
                    raise SchemaViolation(field, f"invalid entry {item!r}")
                key, sep, val = item.partition("=")
                pairs[key] = val if sep else None
            value = pairs
        if not isinstance(value, dict):
            raise SchemaViolation(field, "must be a mapping or a list of KEY=VALUE strings")

        environment = {}
        for key, val in value.items():
            if not isinstance(key, str) or not key:
                raise SchemaViolation(field, f"invalid variable name {key!r}")
            if val is None:
                if key in context:
                    environment[key] = context[key]
                continue
            if isinstance(val, (dict, list)):
                raise SchemaViolation(f"{field}.{key}", "must be a scalar")
            environment[key] = str(val).lower() if isinstance(val, bool) else str(val)
        return environment

    def _parse_depends_on(self, field: str, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, dict):
            value = list(value)
        deps = []
        for dep in self._to_list(field, value):
            if dep not in deps:
                deps.append(dep)
        return deps

    def _parse_command(self, field: str, value: Any) -> List[str]:
        if isinstance(value, str):
            try:
                return shlex.split(value)
            except ValueError as exc:
                raise SchemaViolation(field, str(exc)) from exc
        return [str(v) for v in self._to_list(field, value, allow_int=True)]

    def _load_env_file(self, field: str, base_dir: str, path: str) -> Dict[str, str]:
        full_path = os.path.join(base_dir, path)
        if not os.path.isfile(full_path):
            raise SchemaViolation(field, f"env file {full_path} not found")
        logger.debug("Loading environment file %s", full_path)
        return {k: v if v is not None else "" for k, v in dotenv_values(full_path).items()}

    def _to_list(self, field: str, val: Any, allow_int: bool = False) -> List[Any]:
        """
        Helper to ensure a value is a list of strings.

        :param field: Field path used in error messages.
        :param val: The value to convert.
        :return: A list of strings (or ints when allowed).
        """
        if val is None:
            return []
        if isinstance(val, str):
            return [val]
        if not isinstance(val, list):
            raise SchemaViolation(field, "must be a string or a list")
        for item in val:
            if isinstance(item, bool) or not (isinstance(item, str) or (allow_int and isinstance(item, int))):
                raise SchemaViolation(field, f"invalid entry {item!r}")
        return list(val)
