"""Data models for stops, routes and vehicle state."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from datetime import datetime


@dataclass(frozen=True)
class Stop:
    id: str
    name: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float
    timestamp: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinates":
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class RouteEntry:
    stop_id: str
    index: int
    latitude: float
    longitude: float

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)


@dataclass
class VehicleState:
    vehicle_id: str
    driver_id: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    route: Optional["Route"] = None  # core.route_model.Route

    @property
    def is_claimed(self) -> bool:
        return bool(self.driver_id)


@dataclass(frozen=True)
class Candidate:
    vehicle_id: str
    route: "Route"


@dataclass
class MatchResult:
    through_buses: List[str] = field(default_factory=list)
    destination_only_buses: List[str] = field(default_factory=list)


@dataclass
class CandidateEta:
    vehicle_id: str
    stops_until_destination: List[str]
    eta_to_source: Optional[str] = None
    eta_to_destination: Optional[str] = None
    seconds_to_destination: Optional[float] = None


@dataclass
class StoreEntry:
    entry_id: str
    entry_type: str
    vehicle_id: str
    data: Dict[str, Any]
    timestamp: datetime
