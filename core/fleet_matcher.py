"""Match active buses against a rider's source and destination stops."""
from typing import Dict, List, Optional, Sequence

from loguru import logger

from models.transit import Candidate, MatchResult, Stop, VehicleState


def match(all_vehicles: Sequence[VehicleState], source: Optional[Stop], destination: Stop) -> MatchResult:
    """Split vehicles into through buses and destination-only buses.

    A vehicle whose route has an entry for the destination is a
    destination-only bus. It is also a through bus when its route has an
    entry for the source with a strictly larger index, i.e. the source is
    visited before the destination. Stops are matched by exact name.
    """
    result = MatchResult()

    for vehicle in all_vehicles:
        route = vehicle.route
        if route is None or destination.name not in route:
            continue

        result.destination_only_buses.append(vehicle.vehicle_id)

        if source is not None and source.name in route:
            if route[source.name].index > route[destination.name].index:
                result.through_buses.append(vehicle.vehicle_id)

    logger.info(
        f"Matched {len(result.through_buses)} through buses and "
        f"{len(result.destination_only_buses)} destination buses for {destination.name}"
    )
    return result


def candidates_for(vehicle_ids: Sequence[str], vehicles: Sequence[VehicleState]) -> List[Candidate]:
    """Candidates for the given ids, in the order of vehicle_ids."""
    by_id: Dict[str, VehicleState] = {v.vehicle_id: v for v in vehicles}
    return [
        Candidate(vehicle_id=vid, route=by_id[vid].route)
        for vid in vehicle_ids
        if vid in by_id and by_id[vid].route is not None
    ]


def rank_by_arrival(candidates: Sequence[Candidate], destination_name: str) -> List[Candidate]:
    """Order candidates by how many stops they still visit before the destination."""
    return sorted(
        candidates,
        key=lambda c: (len(c.route.stops_until(destination_name)), c.vehicle_id),
    )
