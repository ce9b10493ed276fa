"""Named saved routes used to prefill the driver's route builder."""
import json
from pathlib import Path
from typing import Dict, List, Tuple

from loguru import logger

from configurations.config import Config
from core.errors import InvalidRouteError
from core.route_model import Route


class SavedRouteStore:
    """JSON file mapping a user-chosen name to a serialized route."""

    def __init__(self, path: str = None):
        self.path = Path(path or Config.SAVED_ROUTES_PATH)

    def _read(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def names(self) -> List[str]:
        return sorted(self._read())

    def save(self, name: str, route: Route) -> None:
        if not name or not name.strip():
            raise InvalidRouteError("Please enter a route name")
        data = self._read()
        data[name.strip()] = route.to_dict()
        self._write(data)
        logger.info(f"Route \"{name.strip()}\" saved")

    def load(self, name: str) -> Tuple[str, List[str]]:
        """Return (destination name, waypoint names in visiting-index order)."""
        data = self._read()
        if name not in data:
            raise KeyError(f"No saved route named {name}")
        route = Route.from_dict(data[name])
        return route.destination_name, route.waypoint_names()

    def delete(self, name: str) -> bool:
        data = self._read()
        if name not in data:
            return False
        del data[name]
        self._write(data)
        return True
