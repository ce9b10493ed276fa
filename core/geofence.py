"""Geofence checks: which stop, if any, is the vehicle currently at."""
import math
from typing import Iterable, Optional

from loguru import logger

from core.errors import GeofenceInputError
from models.transit import Coordinates, Stop

EARTH_RADIUS_METERS = 6371000
DEFAULT_RADIUS_METERS = 200


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two coordinates in meters."""
    lat1, lon1, lat2, lon2 = map(math.radians, [a.latitude, a.longitude, b.latitude, b.longitude])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(min(1.0, h)))


def _stop_coordinates(stop: Stop) -> Coordinates:
    try:
        lat = float(stop.latitude)
        lon = float(stop.longitude)
    except (TypeError, ValueError) as e:
        raise GeofenceInputError(f"Invalid bus stop location data: {stop!r}") from e
    if math.isnan(lat) or math.isnan(lon) or not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        raise GeofenceInputError(f"Invalid bus stop location data: {stop!r}")
    return Coordinates(lat, lon)


def locate(current: Coordinates, stops: Iterable[Stop],
           radius_meters: int = DEFAULT_RADIUS_METERS) -> Optional[str]:
    """Return the name of the first stop within radius of current, or None.

    Stops are scanned in the order given; when several stops overlap the
    first one wins, so callers wanting route order should pass stops sorted
    by route index. Stops with malformed coordinates are skipped.
    """
    for stop in stops:
        try:
            stop_coords = _stop_coordinates(stop)
        except GeofenceInputError as e:
            logger.warning(f"Skipping stop in geofence scan: {e}")
            continue

        if haversine_distance(current, stop_coords) <= radius_meters:
            logger.debug(f"Inside bus stop range: {stop.name}")
            return stop.name
    return None
