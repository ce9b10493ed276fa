"""Driver-side loop publishing the bus position on a fixed interval."""
import asyncio
from enum import Enum
from typing import Callable, Optional, Tuple

from loguru import logger

from configurations.config import Config
from core.errors import LocationUnavailableError, PreconditionError, TransitError
from core.geofence import locate
from core.route_model import Route, publish_route
from models.transit import Coordinates


class PublisherState(Enum):
    IDLE = "idle"
    TRACKING = "tracking"


async def record_position(store, vehicle_id: str, driver_id: str, route: Route,
                          position: Coordinates, radius_meters: int) -> Tuple[Optional[str], Route]:
    """Publish a position fix and prune the waypoint it arrived at.

    Returns the located stop name (or None between stops) and the route,
    which is a new, republished Route when a waypoint was pruned.
    """
    await store.set(vehicle_id, {"coordinates": position.to_dict()}, driver_id=driver_id)

    name = locate(position, route.as_stops(), radius_meters)
    entry = route.get(name) if name else None
    if entry is not None and entry.index != 0:
        route = route.without(name)
        await publish_route(store, vehicle_id, driver_id, route)
        logger.info(f"📍 {vehicle_id} reached waypoint {name}, {len(route) - 1} left")
    return name, route


class LocationPublisher:
    """Samples the device position and publishes it for one claimed vehicle.

    Every tick writes the coordinates to the store, runs the geofence over
    the route's stops and prunes a waypoint once the bus arrives at it. At
    most one tick runs at a time; an interval that fires while the previous
    tick is still running is skipped.
    """

    def __init__(self, store, location_provider, driver_id: str,
                 interval: float = None, radius_meters: int = None,
                 failure_warn_threshold: int = None,
                 on_route_change: Optional[Callable[[Route], None]] = None,
                 on_location: Optional[Callable[[Optional[str]], None]] = None):
        self.store = store
        self.location_provider = location_provider
        self.driver_id = driver_id
        self.interval = interval if interval is not None else Config.TICK_INTERVAL_SECONDS
        self.radius_meters = radius_meters if radius_meters is not None else Config.GEOFENCE_RADIUS_METERS
        self.failure_warn_threshold = (failure_warn_threshold if failure_warn_threshold is not None
                                       else Config.TICK_FAILURE_WARN_THRESHOLD)
        self.on_route_change = on_route_change
        self.on_location = on_location

        self.state = PublisherState.IDLE
        self.vehicle_id: Optional[str] = None
        self.route: Optional[Route] = None
        self.current_location_name: Optional[str] = None
        self.skipped_ticks = 0
        self.consecutive_failures = 0
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    async def start(self, vehicle_id: str, route: Optional[Route]) -> None:
        """Begin tracking; requires a route and a claim held by this driver."""
        if self.state is PublisherState.TRACKING:
            raise PreconditionError(f"Already tracking vehicle {self.vehicle_id}")
        if route is None:
            raise PreconditionError("A route must be set before starting the trip")

        vehicle = await self.store.get(vehicle_id)
        if vehicle.driver_id != self.driver_id:
            raise PreconditionError(f"Vehicle {vehicle_id} is not claimed by driver {self.driver_id}")

        self.vehicle_id = vehicle_id
        self.route = route
        self.consecutive_failures = 0
        self.skipped_ticks = 0
        self.state = PublisherState.TRACKING
        self._task = asyncio.create_task(self._run())
        logger.info(f"🚌 Started tracking {vehicle_id} every {self.interval:.1f}s")

    def stop(self) -> None:
        """Cancel the recurring tick. No-op when already idle."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None
        if self.state is PublisherState.TRACKING:
            logger.info(f"Stopped tracking {self.vehicle_id}")
        self.state = PublisherState.IDLE

    async def end_trip(self, vehicle_id: Optional[str] = None) -> None:
        """Stop tracking and clear the published route, best effort."""
        vehicle_id = vehicle_id or self.vehicle_id
        self.stop()
        self.vehicle_id = None
        if vehicle_id is not None:
            try:
                await self.store.remove(vehicle_id, "route", driver_id=self.driver_id)
                logger.info(f"Trip ended and route removed for {vehicle_id}")
            except (TransitError, KeyError) as e:
                logger.error(f"Failed to remove route from {vehicle_id}: {e}")
        self.route = None
        self.current_location_name = None

    async def tick(self) -> Optional[str]:
        """One sample: publish coordinates, geofence, prune a visited waypoint."""
        if self.vehicle_id is None or self.route is None:
            raise PreconditionError("No vehicle or route to publish for")

        position = await self.location_provider.get_current_position()
        name, route = await record_position(
            self.store, self.vehicle_id, self.driver_id, self.route, position, self.radius_meters,
        )
        self.current_location_name = name

        if route is not self.route:
            self.route = route
            if self.on_route_change is not None:
                self.on_route_change(route)
        # Called on every successful tick, including those between stops
        if self.on_location is not None:
            self.on_location(name)
        return name

    async def run_ticks(self, count: int) -> None:
        """Run count ticks back to back with the loop's error handling."""
        for _ in range(count):
            await self._safe_tick()

    async def _run(self) -> None:
        while True:
            if self._inflight is not None and not self._inflight.done():
                self.skipped_ticks += 1
                logger.debug(f"Previous tick still running for {self.vehicle_id}, skipping")
            else:
                self._inflight = asyncio.create_task(self._safe_tick())
            await asyncio.sleep(self.interval)

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except LocationUnavailableError as e:
            self._record_failure(f"No location fix: {e}")
        except TransitError as e:
            self._record_failure(f"Error sending location data: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error in location tick for {self.vehicle_id}")
            self._record_failure(str(e))
        else:
            self.consecutive_failures = 0

    def _record_failure(self, message: str) -> None:
        self.consecutive_failures += 1
        logger.warning(message)
        if self.consecutive_failures == self.failure_warn_threshold:
            logger.error(f"⚠️ {self.consecutive_failures} consecutive location ticks failed for {self.vehicle_id}")
