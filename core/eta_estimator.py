"""ETA estimates chained through a vehicle's remaining stops."""
import asyncio
import math
from typing import Optional, Sequence

from loguru import logger

from core.errors import EtaError, EtaUnavailable
from models.transit import CandidateEta, Coordinates, Stop, VehicleState


def to_minutes(seconds: float) -> int:
    """Round a duration to whole minutes, halves rounding up."""
    return int(math.floor(seconds / 60 + 0.5))


def format_eta(seconds: float) -> str:
    return f"{to_minutes(seconds)} mins"


class EtaEstimator:
    """Estimate travel times with an external routing oracle.

    The oracle is any object with a blocking
    ``route(origin, destination, waypoints) -> OracleResponse`` method; it is
    called off the event loop. Nothing is cached, every estimate issues a
    fresh oracle call.
    """

    def __init__(self, oracle):
        self.oracle = oracle

    async def estimate(self, origin: Coordinates, ordered_stops: Sequence[Coordinates],
                       target: Coordinates) -> float:
        """Total seconds from origin to target passing ordered_stops[:-1] in order."""
        waypoints = list(ordered_stops[:-1]) if ordered_stops else None

        response = await asyncio.to_thread(self.oracle.route, origin, target, waypoints)

        if not response.routes or not response.routes[0].legs:
            raise EtaUnavailable("Routing oracle returned no route")
        return float(sum(leg.duration for leg in response.routes[0].legs))

    async def estimate_candidate(self, state: VehicleState, destination_name: str,
                                 source: Optional[Stop] = None) -> CandidateEta:
        """ETA strings for one bus to the rider's source and destination.

        Failures are turned into placeholder strings so one bus never breaks
        a whole search.
        """
        route = state.route
        stops = route.stops_until(destination_name) if route is not None else []
        result = CandidateEta(vehicle_id=state.vehicle_id, stops_until_destination=stops)

        if state.coordinates is None or not stops:
            result.eta_to_destination = EtaUnavailable.placeholder
            if source is not None:
                result.eta_to_source = EtaUnavailable.placeholder
            return result

        origin = state.coordinates

        if source is not None:
            target = Coordinates(source.latitude, source.longitude)
            try:
                result.eta_to_source = format_eta(await self.estimate(origin, [], target))
            except EtaError as e:
                logger.warning(f"ETA to source failed for {state.vehicle_id}: {e}")
                result.eta_to_source = e.placeholder

        ordered = [route[name].coordinates for name in stops]
        try:
            seconds = await self.estimate(origin, ordered, route[destination_name].coordinates)
            result.seconds_to_destination = seconds
            result.eta_to_destination = format_eta(seconds)
        except EtaError as e:
            logger.warning(f"ETA to destination failed for {state.vehicle_id}: {e}")
            result.eta_to_destination = e.placeholder

        return result
