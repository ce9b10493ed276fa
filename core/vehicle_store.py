"""Shared vehicle-state store with claim locking and change subscriptions."""
import copy
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from core.errors import ClaimConflictError, PreconditionError, TransitError
from core.route_model import Route, vehicle_state_from_record
from models.transit import Coordinates, StoreEntry, VehicleState

logger = logging.getLogger(__name__)

ALL_VEHICLES = "*"
WRITABLE_FIELDS = ("coordinates", "route")

Listener = Callable[[VehicleState], None]


class VehicleStateStore:
    """In-memory key-value store of vehicle records keyed by vehicle id.

    Records are kept in their serialized form (plain dicts) and parsed into
    VehicleState on read. Route and coordinate writes are only accepted from
    the driver currently holding the vehicle's claim.
    """

    def __init__(self, vehicle_ids: Iterable[str] = ()):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._entries: List[StoreEntry] = []
        self._listeners: Dict[str, List[Tuple[Listener, bool]]] = {}
        self._lock = threading.Lock()
        for vehicle_id in vehicle_ids:
            self.register_vehicle(vehicle_id)

    def register_vehicle(self, vehicle_id: str) -> None:
        """Add a catalog vehicle with no claim, location or route."""
        with self._lock:
            self._records.setdefault(vehicle_id, {"driver_id": None})
            logger.info(f"Registered vehicle {vehicle_id}")

    def vehicle_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._records)

    @property
    def entries(self) -> List[StoreEntry]:
        with self._lock:
            return list(self._entries)

    async def get(self, vehicle_id: str) -> VehicleState:
        """Single read of one vehicle."""
        with self._lock:
            record = copy.deepcopy(self._require(vehicle_id))
        return vehicle_state_from_record(vehicle_id, record)

    async def snapshot(self) -> List[VehicleState]:
        """Single read of every vehicle, ordered by vehicle id."""
        with self._lock:
            records = copy.deepcopy(self._records)
        return [self._parse_lenient(vid, records[vid]) for vid in sorted(records)]

    async def set(self, vehicle_id: str, patch: Dict[str, Any], driver_id: Optional[str] = None) -> None:
        """Partial update of route and/or coordinates."""
        unknown = set(patch) - set(WRITABLE_FIELDS)
        if unknown:
            raise PreconditionError(f"Fields {sorted(unknown)} cannot be written with set(); use claim/release")
        if patch.get("route"):
            # Raises InvalidRouteError before anything is written
            Route.from_dict(patch["route"])
        if patch.get("coordinates"):
            try:
                Coordinates.from_dict(patch["coordinates"])
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise PreconditionError(f"Malformed coordinates for {vehicle_id}: {e}") from e

        with self._lock:
            record = self._require(vehicle_id)
            self._check_holder(vehicle_id, record, driver_id)
            for key, value in patch.items():
                record[key] = copy.deepcopy(value)
            self._log_entry(vehicle_id, "set", {"fields": sorted(patch)})
        await self._notify(vehicle_id)

    async def remove(self, vehicle_id: str, field: str, driver_id: Optional[str] = None) -> None:
        """Delete a sub-field (e.g. the route) of a vehicle record."""
        if field not in WRITABLE_FIELDS:
            raise PreconditionError(f"Field {field} cannot be removed")

        with self._lock:
            record = self._require(vehicle_id)
            self._check_holder(vehicle_id, record, driver_id)
            record.pop(field, None)
            self._log_entry(vehicle_id, "remove", {"field": field})
        await self._notify(vehicle_id)

    async def claim(self, vehicle_id: str, driver_id: str) -> VehicleState:
        """Compare-and-swap claim: succeeds only if no other driver holds it."""
        if not driver_id:
            raise PreconditionError("A driver id is required to claim a vehicle")

        with self._lock:
            record = self._require(vehicle_id)
            holder = record.get("driver_id")
            if holder and holder != driver_id:
                raise ClaimConflictError(vehicle_id, holder)
            record["driver_id"] = driver_id
            self._log_entry(vehicle_id, "claim", {"driver_id": driver_id})
            state = vehicle_state_from_record(vehicle_id, copy.deepcopy(record))
        logger.info(f"Vehicle {vehicle_id} claimed by {driver_id}")
        await self._notify(vehicle_id)
        return state

    async def release(self, vehicle_id: str, driver_id: str) -> None:
        """Clear route and coordinates, then release the claim as the last write."""
        with self._lock:
            record = self._require(vehicle_id)
            self._check_holder(vehicle_id, record, driver_id)
            record.pop("route", None)
            record.pop("coordinates", None)
            record["driver_id"] = None
            self._log_entry(vehicle_id, "release", {"driver_id": driver_id})
        logger.info(f"Vehicle {vehicle_id} released by {driver_id}")
        await self._notify(vehicle_id)

    def subscribe(self, key: str, listener: Listener, once: bool = False) -> Callable[[], None]:
        """Listen for changes on one vehicle or on all ("*"). Returns an unsubscribe handle."""
        handle = (listener, once)
        with self._lock:
            self._listeners.setdefault(key, []).append(handle)

        def unsubscribe() -> None:
            with self._lock:
                handles = self._listeners.get(key, [])
                if handle in handles:
                    handles.remove(handle)

        return unsubscribe

    def _parse_lenient(self, vehicle_id: str, record: Dict[str, Any]) -> VehicleState:
        """Parse a record, dropping route and coordinates it cannot read."""
        try:
            return vehicle_state_from_record(vehicle_id, record)
        except (TransitError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable state for {vehicle_id}: {e}")
            return VehicleState(vehicle_id=vehicle_id, driver_id=record.get("driver_id"))

    def _require(self, vehicle_id: str) -> Dict[str, Any]:
        try:
            return self._records[vehicle_id]
        except KeyError:
            raise KeyError(f"Unknown vehicle {vehicle_id}") from None

    def _check_holder(self, vehicle_id: str, record: Dict[str, Any], driver_id: Optional[str]) -> None:
        holder = record.get("driver_id")
        if not holder or holder != driver_id:
            raise PreconditionError(f"Driver {driver_id} does not hold vehicle {vehicle_id}")

    def _log_entry(self, vehicle_id: str, entry_type: str, data: Dict[str, Any]) -> None:
        self._entries.append(StoreEntry(
            entry_id=f"{entry_type}_{vehicle_id}_{len(self._entries)}",
            entry_type=entry_type,
            vehicle_id=vehicle_id,
            data=data,
            timestamp=datetime.now(),
        ))

    async def _notify(self, vehicle_id: str) -> None:
        with self._lock:
            handles = [(ALL_VEHICLES, h) for h in self._listeners.get(ALL_VEHICLES, [])]
            handles += [(vehicle_id, h) for h in self._listeners.get(vehicle_id, [])]
            for key, handle in handles:
                if handle[1]:
                    self._listeners[key].remove(handle)
            record = copy.deepcopy(self._records[vehicle_id])

        if not handles:
            return
        state = self._parse_lenient(vehicle_id, record)
        for _, (listener, _) in handles:
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Store listener failed for {vehicle_id}: {e}")
