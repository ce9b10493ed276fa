"""Route representation: the ordered stop plan of one vehicle.

Index 0 is always the trip's final destination. Waypoints carry indices
1..n and the vehicle visits them in decreasing index order, so a larger
index means the stop comes earlier on the road.
"""
from typing import Dict, Iterator, List, Optional, Sequence, Any

from core.errors import InvalidRouteError
from models.transit import Coordinates, RouteEntry, Stop, VehicleState


class Route:
    """Mapping from stop name to RouteEntry."""

    def __init__(self, entries: Dict[str, RouteEntry]):
        indices = [entry.index for entry in entries.values()]
        if indices.count(0) != 1:
            raise InvalidRouteError("Route must contain exactly one destination entry (index 0)")
        if len(set(indices)) != len(indices):
            raise InvalidRouteError(f"Route indices must be unique, got {sorted(indices)}")
        if any(index < 0 for index in indices):
            raise InvalidRouteError("Route indices must be non-negative")
        self._entries = dict(entries)

    def __getitem__(self, stop_name: str) -> RouteEntry:
        return self._entries[stop_name]

    def __contains__(self, stop_name: object) -> bool:
        return stop_name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Route):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        plan = ", ".join(f"{name}:{entry.index}" for name, entry in self.ordered_entries())
        return f"Route({plan})"

    def get(self, stop_name: str) -> Optional[RouteEntry]:
        return self._entries.get(stop_name)

    @property
    def destination_name(self) -> str:
        return self.ordered_entries()[0][0]

    def ordered_entries(self) -> List[tuple]:
        """(name, entry) pairs by ascending index, destination first."""
        return sorted(self._entries.items(), key=lambda item: item[1].index)

    def visiting_order(self) -> List[tuple]:
        """(name, entry) pairs in the order the vehicle drives them."""
        return list(reversed(self.ordered_entries()))

    def waypoint_names(self) -> List[str]:
        return [name for name, entry in self.ordered_entries() if entry.index != 0]

    def stops_until(self, stop_name: str) -> List[str]:
        """Stop names the vehicle will pass up to and including stop_name."""
        names = [name for name, _ in self.visiting_order()]
        if stop_name not in names:
            return []
        return names[: names.index(stop_name) + 1]

    def as_stops(self) -> List[Stop]:
        """Route entries as Stops, ordered by index."""
        return [
            Stop(id=entry.stop_id, name=name, latitude=entry.latitude, longitude=entry.longitude)
            for name, entry in self.ordered_entries()
        ]

    def without(self, stop_name: str) -> "Route":
        """Drop a visited waypoint and re-index the rest."""
        entry = self._entries.get(stop_name)
        if entry is None:
            raise InvalidRouteError(f"Stop {stop_name} is not on this route")
        if entry.index == 0:
            raise InvalidRouteError("The destination entry cannot be pruned")

        entries = {}
        position = 0
        for name, current in self.ordered_entries():
            if name == stop_name:
                continue
            entries[name] = RouteEntry(
                stop_id=current.stop_id,
                index=position,
                latitude=current.latitude,
                longitude=current.longitude,
            )
            position += 1
        return Route(entries)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "stop_id": entry.stop_id,
                "index": entry.index,
                "latitude": entry.latitude,
                "longitude": entry.longitude,
            }
            for name, entry in self.ordered_entries()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> "Route":
        # Older clients wrote the destination without an index field.
        entries = {}
        try:
            for name, value in data.items():
                entries[name] = RouteEntry(
                    stop_id=str(value.get("stop_id", name)),
                    index=int(value.get("index", 0)),
                    latitude=float(value["latitude"]),
                    longitude=float(value["longitude"]),
                )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InvalidRouteError(f"Malformed route entry: {e}") from e
        return cls(entries)


def build_route(destination: Stop, waypoints: Sequence[Stop]) -> Route:
    """Build a route with the destination at index 0 and waypoints at 1..n."""
    seen = {destination.name}
    entries = {
        destination.name: RouteEntry(
            stop_id=destination.id,
            index=0,
            latitude=destination.latitude,
            longitude=destination.longitude,
        )
    }
    for position, waypoint in enumerate(waypoints):
        if waypoint.name in seen:
            raise InvalidRouteError(f"Duplicate stop in route: {waypoint.name}")
        seen.add(waypoint.name)
        entries[waypoint.name] = RouteEntry(
            stop_id=waypoint.id,
            index=position + 1,
            latitude=waypoint.latitude,
            longitude=waypoint.longitude,
        )
    return Route(entries)


async def publish_route(store, vehicle_id: str, driver_id: str, route: Route) -> None:
    """Atomically replace the vehicle's published route."""
    await store.set(vehicle_id, {"route": route.to_dict()}, driver_id=driver_id)


def vehicle_state_from_record(vehicle_id: str, record: Dict[str, Any]) -> VehicleState:
    """Parse a raw store record into a VehicleState."""
    coordinates = record.get("coordinates")
    route = record.get("route")
    return VehicleState(
        vehicle_id=vehicle_id,
        driver_id=record.get("driver_id"),
        coordinates=Coordinates.from_dict(coordinates) if coordinates else None,
        route=Route.from_dict(route) if route else None,
    )
