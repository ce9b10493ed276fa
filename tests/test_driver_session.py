"""Tests for the driver session: claiming, planning and trips."""
import asyncio

import pytest

from core.errors import ClaimConflictError, InvalidRouteError, PreconditionError
from core.vehicle_store import VehicleStateStore
from models.transit import Coordinates
from services.driver_session import DriverSession
from services.location_provider import StaticLocationProvider
from services.saved_routes import SavedRouteStore


class TestDriverSession:
    @pytest.fixture(autouse=True)
    def _session(self, catalog, stops, tmp_path):
        self.stops = stops
        self.store = VehicleStateStore(["BUS-1", "BUS-2"])
        self.saved = SavedRouteStore(str(tmp_path / "routes.json"))
        self.provider = StaticLocationProvider(Coordinates(0.0, 0.0))
        self.driver = DriverSession(self.store, catalog, "driver-1", self.provider,
                                    saved_routes=self.saved, interval=10)
        self.other = DriverSession(self.store, catalog, "driver-2", self.provider,
                                   saved_routes=self.saved, interval=10)

    def test_locked_vehicle_cannot_be_selected(self):
        async def scenario():
            await self.other.select_vehicle("BUS-1")
            with pytest.raises(ClaimConflictError):
                await self.driver.select_vehicle("BUS-1")
            return await self.driver.list_vehicles()

        listing = asyncio.run(scenario())
        assert listing[0] == {"vehicle_id": "BUS-1", "label": "BUS-1 (Locked)", "locked": True}
        assert listing[1]["locked"] is False
        assert self.driver.selected_vehicle is None

    def test_switching_vehicle_releases_previous(self):
        async def scenario():
            await self.driver.select_vehicle("BUS-1")
            await self.driver.set_destination(self.stops["A"])
            await self.driver.select_vehicle("BUS-2")
            return await self.store.get("BUS-1"), await self.store.get("BUS-2")

        bus1, bus2 = asyncio.run(scenario())
        assert bus1.driver_id is None and bus1.route is None
        assert bus2.driver_id == "driver-1"
        assert bus2.route.destination_name == "A"

    def test_start_trip_preconditions(self):
        with pytest.raises(PreconditionError):
            asyncio.run(self.driver.start_trip())

        async def scenario():
            await self.driver.select_vehicle("BUS-1")
            await self.driver.start_trip()

        with pytest.raises(PreconditionError):
            asyncio.run(scenario())

    def test_planner_changes_republish_route(self):
        async def scenario():
            await self.driver.select_vehicle("BUS-1")
            await self.driver.set_destination(self.stops["A"])
            await self.driver.add_waypoint(self.stops["B"])
            await self.driver.add_waypoint(self.stops["C"])
            await self.driver.update_waypoint(0, self.stops["D"])
            await self.driver.remove_waypoint(1)
            return await self.store.get("BUS-1")

        vehicle = asyncio.run(scenario())
        assert vehicle.route.to_dict().keys() == {"A", "D"}
        assert vehicle.route["D"].index == 1

    def test_trip_lifecycle(self):
        async def scenario():
            await self.driver.select_vehicle("BUS-1")
            await self.driver.set_destination(self.stops["A"])
            await self.driver.add_waypoint(self.stops["B"])
            await self.driver.start_trip()
            started = self.driver.trip_started
            await self.driver.end_trip()
            ended = await self.store.get("BUS-1")
            await self.driver.logout()
            return started, ended, await self.store.get("BUS-1")

        started, ended, released = asyncio.run(scenario())
        assert started is True
        assert ended.route is None and ended.driver_id == "driver-1"
        assert released.driver_id is None
        assert self.driver.trip_started is False

    def test_visited_waypoint_leaves_planner(self):
        async def scenario():
            await self.driver.select_vehicle("BUS-1")
            await self.driver.set_destination(self.stops["A"])
            await self.driver.add_waypoint(self.stops["B"])
            await self.driver.add_waypoint(self.stops["C"])
            await self.driver.start_trip()
            b = self.stops["B"]
            self.provider.position = Coordinates(b.latitude, b.longitude)
            await self.driver.publisher.run_ticks(1)
            self.driver.publisher.stop()

        asyncio.run(scenario())
        assert self.driver.current_location_name == "B"
        assert [w.name for w in self.driver.waypoints] == ["C"]

    def test_saved_routes_round_trip(self):
        async def scenario():
            await self.driver.set_destination(self.stops["A"])
            await self.driver.add_waypoint(self.stops["C"])
            await self.driver.add_waypoint(self.stops["B"])
            self.driver.save_route("morning")
            await self.other.load_saved_route("morning")

        asyncio.run(scenario())
        assert self.other.destination == self.stops["A"]
        assert [w.name for w in self.other.waypoints] == ["C", "B"]

    def test_blank_route_name_rejected(self):
        asyncio.run(self.driver.set_destination(self.stops["A"]))
        with pytest.raises(InvalidRouteError):
            self.driver.save_route("   ")
