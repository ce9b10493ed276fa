"""Rider session: search the live fleet for buses between two stops."""
import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from core.errors import PreconditionError
from core.eta_estimator import EtaEstimator
from core.fleet_matcher import candidates_for, match, rank_by_arrival
from models.transit import CandidateEta, Stop, VehicleState
from services.stop_catalog import StopCatalog


@dataclass
class SearchResult:
    source: Optional[str]
    destination: str
    through_buses: List[CandidateEta] = field(default_factory=list)
    destination_only_buses: List[CandidateEta] = field(default_factory=list)


class RiderSession:
    def __init__(self, store, catalog: StopCatalog, estimator: EtaEstimator):
        self.store = store
        self.catalog = catalog
        self.estimator = estimator

    def _resolve(self, stop_name: Optional[str]) -> Optional[Stop]:
        if not stop_name:
            return None
        stop = self.catalog.get(stop_name)
        if stop is None:
            raise KeyError(f"Unknown stop {stop_name}")
        return stop

    async def search(self, source_name: Optional[str], destination_name: str) -> SearchResult:
        """One snapshot read, matching, then per-bus ETAs ranked by arrival order."""
        if not destination_name:
            raise PreconditionError("Please select a destination")
        source = self._resolve(source_name)
        destination = self._resolve(destination_name)

        vehicles = await self.store.snapshot()
        matched = match(vehicles, source, destination)
        by_id = {v.vehicle_id: v for v in vehicles}

        through = rank_by_arrival(candidates_for(matched.through_buses, vehicles), destination.name)
        dest_only = rank_by_arrival(candidates_for(matched.destination_only_buses, vehicles), destination.name)

        through_etas = await asyncio.gather(*[
            self.estimator.estimate_candidate(by_id[c.vehicle_id], destination.name, source)
            for c in through
        ])
        dest_only_etas = await asyncio.gather(*[
            self.estimator.estimate_candidate(by_id[c.vehicle_id], destination.name)
            for c in dest_only
        ])

        logger.info(f"Search {source_name or '-'} -> {destination_name}: "
                    f"{len(through_etas)} through, {len(dest_only_etas)} destination-only")
        return SearchResult(
            source=source.name if source else None,
            destination=destination.name,
            through_buses=list(through_etas),
            destination_only_buses=list(dest_only_etas),
        )

    async def track(self, vehicle_id: str) -> VehicleState:
        """Current state of one bus for the map view."""
        return await self.store.get(vehicle_id)
