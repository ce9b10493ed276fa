"""Driver session: claim a bus, plan its route and run the trip."""
from typing import Callable, Dict, List, Optional

from loguru import logger

from core.errors import ClaimConflictError, InvalidRouteError, PreconditionError
from core.location_publisher import LocationPublisher, PublisherState
from core.route_model import Route, build_route, publish_route
from models.transit import Stop
from services.saved_routes import SavedRouteStore
from services.stop_catalog import StopCatalog


class DriverSession:
    """State of one driver's client: selected bus, destination and waypoints."""

    def __init__(self, store, catalog: StopCatalog, driver_id: str, location_provider,
                 saved_routes: Optional[SavedRouteStore] = None, interval: float = None,
                 on_location: Optional[Callable[[Optional[str]], None]] = None):
        self.store = store
        self.catalog = catalog
        self.driver_id = driver_id
        self.saved_routes = saved_routes or SavedRouteStore()
        self.publisher = LocationPublisher(
            store, location_provider, driver_id,
            interval=interval, on_route_change=self._on_route_change,
            on_location=on_location,
        )

        self.selected_vehicle: Optional[str] = None
        self.destination: Optional[Stop] = None
        self.waypoints: List[Stop] = []

    @property
    def trip_started(self) -> bool:
        return self.publisher.state is PublisherState.TRACKING

    @property
    def current_location_name(self) -> Optional[str]:
        return self.publisher.current_location_name

    async def list_vehicles(self) -> List[Dict[str, object]]:
        """Vehicles with their lock state, as shown in the bus picker."""
        vehicles = await self.store.snapshot()
        return [
            {
                "vehicle_id": v.vehicle_id,
                "label": f"{v.vehicle_id} (Locked)" if v.is_claimed else v.vehicle_id,
                "locked": v.is_claimed,
            }
            for v in vehicles
        ]

    async def select_vehicle(self, vehicle_id: str) -> None:
        """Claim a vehicle, releasing the one currently held first."""
        if vehicle_id == self.selected_vehicle:
            return

        vehicle = await self.store.get(vehicle_id)
        if vehicle.is_claimed and vehicle.driver_id != self.driver_id:
            # Fail before giving up the current bus
            raise ClaimConflictError(vehicle_id, vehicle.driver_id)

        if self.selected_vehicle:
            await self.unselect_vehicle()

        await self.store.claim(vehicle_id, self.driver_id)
        self.selected_vehicle = vehicle_id
        logger.info(f"Driver {self.driver_id} selected {vehicle_id}")
        await self._sync_route()

    async def unselect_vehicle(self) -> None:
        """End any trip and release the claim."""
        if not self.selected_vehicle:
            return
        vehicle_id = self.selected_vehicle
        await self.end_trip()
        await self.store.release(vehicle_id, self.driver_id)
        self.selected_vehicle = None

    async def set_destination(self, stop: Stop) -> None:
        self.destination = stop
        await self._sync_route()

    async def add_waypoint(self, stop: Stop) -> None:
        self.waypoints.append(stop)
        await self._sync_route()

    async def update_waypoint(self, position: int, stop: Stop) -> None:
        self.waypoints[position] = stop
        await self._sync_route()

    async def remove_waypoint(self, position: int) -> None:
        del self.waypoints[position]
        await self._sync_route()

    def build(self) -> Route:
        if self.destination is None:
            raise PreconditionError("Please select a destination")
        return build_route(self.destination, self.waypoints)

    async def start_trip(self) -> None:
        if not self.selected_vehicle or self.destination is None:
            raise PreconditionError("Please select both a bus and a destination before starting the trip")

        route = self.build()
        await publish_route(self.store, self.selected_vehicle, self.driver_id, route)
        await self.publisher.start(self.selected_vehicle, route)

    async def end_trip(self) -> None:
        await self.publisher.end_trip(self.selected_vehicle)

    async def logout(self) -> None:
        """Stop tracking and give the bus back."""
        self.publisher.stop()
        await self.unselect_vehicle()
        logger.info(f"Driver {self.driver_id} logged out")

    def save_route(self, name: str) -> None:
        self.saved_routes.save(name, self.build())

    async def load_saved_route(self, name: str) -> None:
        """Prefill destination and waypoints from a saved route."""
        destination_name, waypoint_names = self.saved_routes.load(name)

        stops = []
        for stop_name in [destination_name] + waypoint_names:
            stop = self.catalog.get(stop_name)
            if stop is None:
                raise InvalidRouteError(f"Saved route {name} uses unknown stop {stop_name}")
            stops.append(stop)

        self.destination = stops[0]
        self.waypoints = stops[1:]
        await self._sync_route()

    async def _sync_route(self) -> None:
        # Keep the published route in step with the planner while a bus is held
        if not self.selected_vehicle or self.destination is None:
            return
        route = self.build()
        await publish_route(self.store, self.selected_vehicle, self.driver_id, route)
        if self.trip_started:
            self.publisher.route = route

    def _on_route_change(self, route: Route) -> None:
        self.waypoints = [stop for stop in self.waypoints if stop.name in route]
