"""OSRM routing oracle used for bus ETA estimates."""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import requests
from loguru import logger

from core.errors import EtaTransportError
from models.transit import Coordinates

# OSRM codes meaning "no route between these points" rather than a failure
NO_ROUTE_CODES = ("NoRoute", "NoSegment")


@dataclass
class OracleLeg:
    duration: float
    distance: float = 0.0


@dataclass
class OracleRoute:
    legs: List[OracleLeg] = field(default_factory=list)


@dataclass
class OracleResponse:
    routes: List[OracleRoute] = field(default_factory=list)


class OSRMRoutingOracle:
    def __init__(self, osrm_url: str = "http://router.project-osrm.org",
                 profile: str = "driving", timeout: float = 10):
        self.osrm_url = osrm_url.rstrip('/')
        self.profile = profile
        self.timeout = timeout

    def route(self, origin: Coordinates, destination: Coordinates,
              waypoints: Optional[Sequence[Coordinates]] = None) -> OracleResponse:
        """Query a driving route origin -> waypoints... -> destination."""
        points = [origin] + list(waypoints or []) + [destination]

        # Format coordinates for OSRM (lon,lat)
        coord_string = ";".join(f"{p.longitude},{p.latitude}" for p in points)
        url = f"{self.osrm_url}/route/v1/{self.profile}/{coord_string}"
        params = {
            'overview': 'false',
            'steps': 'false',
        }

        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"OSRM request failed: {e}")
            raise EtaTransportError(f"OSRM request failed: {e}") from e
        except ValueError as e:
            logger.error(f"OSRM returned malformed JSON: {e}")
            raise EtaTransportError("OSRM returned malformed JSON") from e

        if not isinstance(data, dict):
            logger.error(f"OSRM returned unexpected payload type {type(data).__name__}")
            raise EtaTransportError("Unexpected OSRM response: body is not an object")

        code = data.get('code')
        if code in NO_ROUTE_CODES:
            logger.warning(f"OSRM found no route: {data.get('message', code)}")
            return OracleResponse()
        if code != 'Ok':
            logger.warning(f"OSRM returned error: {data.get('message', 'Unknown error')}")
            raise EtaTransportError(f"OSRM returned {code}: {data.get('message', 'Unknown error')}")

        return self._process_osrm_response(data)

    def _process_osrm_response(self, data: dict) -> OracleResponse:
        try:
            routes = []
            for route in data.get('routes') or []:
                if not isinstance(route, dict):
                    raise TypeError(f"route is {type(route).__name__}, expected object")
                legs = []
                for leg in route.get('legs') or []:
                    if not isinstance(leg, dict):
                        raise TypeError(f"leg is {type(leg).__name__}, expected object")
                    legs.append(OracleLeg(duration=float(leg['duration']),
                                          distance=float(leg.get('distance') or 0)))
                routes.append(OracleRoute(legs=legs))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Unexpected OSRM response: {e}")
            raise EtaTransportError(f"Unexpected OSRM response: {e}") from e
        return OracleResponse(routes=routes)
