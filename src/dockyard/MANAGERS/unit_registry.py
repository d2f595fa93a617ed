"""
Registry of runtime units owned by one command invocation.
"""
import secrets
from typing import Callable, Dict, Iterable, List, Optional
from ..errors import UnitNotFound
from ..MODELS.runtime_unit import RuntimeUnit, UnitState


class UnitRegistry:
    """
    Holds every unit known to this invocation, keyed by id in creation order.
    Starts empty unless units are handed in (e.g. loaded from a state file).
    """
    def __init__(self, units: Optional[Iterable[RuntimeUnit]] = None):
        self._units: Dict[str, RuntimeUnit] = {}
        for unit in units or []:
            self.add(unit)

    def __len__(self) -> int:
        return len(self._units)

    def __iter__(self):
        return iter(list(self._units.values()))

    def new_id(self) -> str:
        while True:
            unit_id = secrets.token_hex(32)
            if unit_id not in self._units:
                return unit_id

    def add(self, unit: RuntimeUnit) -> RuntimeUnit:
        self._units[unit.id] = unit
        return unit

    def get(self, ref: str) -> RuntimeUnit:
        """
        Finds a unit by full id, name, or unique id prefix.

        :raises UnitNotFound: If nothing matches or the prefix is ambiguous.
        """
        if ref in self._units:
            return self._units[ref]

        named = [u for u in self._units.values() if u.name == ref]
        if named:
            live = [u for u in named if u.state != UnitState.REMOVED]
            return (live or named)[-1]

        matches = [u for u in self._units.values() if ref and u.id.startswith(ref)]
        if len(matches) > 1:
            raise UnitNotFound(ref, reason="multiple units match")
        if not matches:
            raise UnitNotFound(ref)
        return matches[0]

    def find_by_name(self, name: str) -> Optional[RuntimeUnit]:
        """Returns the live (non-removed) unit with this name, if any."""
        for unit in self._units.values():
            if unit.name == name and unit.state != UnitState.REMOVED:
                return unit
        return None

    def list(self, show_all: bool = False, project: Optional[str] = None) -> List[RuntimeUnit]:
        """
        Lists running and paused units, or every non-removed unit with ``show_all``.
        """
        units = []
        for unit in self._units.values():
            if unit.state == UnitState.REMOVED:
                continue
            if not show_all and not unit.is_active:
                continue
            if project is not None and unit.project != project:
                continue
            units.append(unit)
        return units

    def using_image(self, image_id: str,
                    resolve: Callable[[str], Optional[str]] = lambda ref: None) -> List[RuntimeUnit]:
        """
        Non-removed units created from the image ``image_id``.

        Units recorded without an image id have their image reference mapped
        to an id with ``resolve``.
        """
        users = []
        for unit in self._units.values():
            if unit.state == UnitState.REMOVED:
                continue
            unit_image = unit.image_id or resolve(unit.service.image)
            if unit_image == image_id:
                users.append(unit)
        return users
