"""
Utilities for interpolating environment variables into descriptor values.
"""
import logging
import re
from typing import Any, Dict, Mapping

from ..errors import MalformedDescriptor, SchemaViolation

logger = logging.getLogger(__name__)


class EnvironmentInterpolator:
    """
    Interpolates variables in descriptor values.
    Supports $VAR, ${VAR}, ${VAR:-default}, ${VAR-default}, ${VAR:+alt},
    ${VAR+alt}, ${VAR:?error}, ${VAR?error} and the $$ escape.
    """
    PATTERN = re.compile(
        r"\$(?:"
        r"(?P<escaped>\$)"
        r"|(?P<named>[A-Za-z_][A-Za-z0-9_]*)"
        r"|\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?:(?P<modifier>:?[-+?])(?P<arg>[^}]*))?\}"
        r"|(?P<invalid>\{[^}]*\}?)"
        r")"
    )

    def __init__(self, context: Mapping[str, str]):
        """
        :param context: Variables available for substitution.
        """
        self.context = context

    def interpolate(self, template: str, where: str = "value") -> str:
        """
        Interpolates a single string.

        :param template: The string containing placeholders.
        :param where: Field path used in error messages.
        :return: The interpolated string.
        :raises SchemaViolation: If a ${VAR:?error} variable is missing.
        :raises MalformedDescriptor: If a placeholder cannot be parsed.
        """
        def replace(match: "re.Match[str]") -> str:
            if match.group("escaped"):
                return "$"
            if match.group("invalid") is not None:
                raise MalformedDescriptor(
                    f"invalid interpolation format for {where}: '{match.group(0)}'",
                    identifier=where,
                )
            name = match.group("named") or match.group("braced")
            return self._resolve(name, match.group("modifier"), match.group("arg"), where)

        return self.PATTERN.sub(replace, template)

    def interpolate_tree(self, value: Any, where: str = "") -> Any:
        """
        Recursively interpolates every string inside nested lists and mappings.
        Mapping keys are left untouched.
        """
        if isinstance(value, str):
            return self.interpolate(value, where or "value")
        if isinstance(value, dict):
            return {k: self.interpolate_tree(v, f"{where}.{k}" if where else str(k))
                    for k, v in value.items()}
        if isinstance(value, list):
            return [self.interpolate_tree(v, f"{where}[{i}]") for i, v in enumerate(value)]
        return value

    def _resolve(self, name: str, modifier: str, arg: str, where: str) -> str:
        value = self.context.get(name)
        is_set = value is not None
        # The ':' variants also treat an empty value as unset
        if modifier and modifier.startswith(":"):
            is_set = bool(value)
            modifier = modifier[1:]

        if modifier == "-":
            return value if is_set else arg
        if modifier == "+":
            return arg if is_set else ""
        if modifier == "?":
            if not is_set:
                raise SchemaViolation(where, arg or f"required variable {name} is missing a value")
            return value

        if value is None:
            logger.warning("The %s variable is not set. Defaulting to a blank string.", name)
            return ""
        return value
