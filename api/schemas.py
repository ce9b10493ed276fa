"""Request and response bodies for the fleet API."""
from typing import List, Optional

from pydantic import BaseModel


class DriverRequest(BaseModel):
    driver_id: str


class RouteRequest(BaseModel):
    driver_id: str
    destination: str
    waypoints: List[str] = []


class LocationRequest(BaseModel):
    driver_id: str
    latitude: float
    longitude: float
    timestamp: Optional[float] = None


class BusSearchItem(BaseModel):
    vehicle_id: str
    stops_until_destination: List[str]
    eta_to_source: Optional[str] = None
    eta_to_destination: Optional[str] = None


class SearchResponse(BaseModel):
    source: Optional[str]
    destination: str
    through_buses: List[BusSearchItem]
    destination_only_buses: List[BusSearchItem]
