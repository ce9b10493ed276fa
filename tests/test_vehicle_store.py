"""Tests for the shared vehicle-state store."""
import asyncio

import pytest

from core.errors import ClaimConflictError, InvalidRouteError, PreconditionError
from core.fleet_matcher import match
from core.route_model import build_route
from core.vehicle_store import VehicleStateStore


class TestVehicleStateStore:
    def setup_method(self):
        self.store = VehicleStateStore(["BUS-1", "BUS-2"])

    def test_claim_is_compare_and_swap(self):
        async def scenario():
            await self.store.claim("BUS-1", "driver-1")
            # re-claim by the holder is fine
            await self.store.claim("BUS-1", "driver-1")
            with pytest.raises(ClaimConflictError):
                await self.store.claim("BUS-1", "driver-2")
            return await self.store.get("BUS-1")

        vehicle = asyncio.run(scenario())
        assert vehicle.driver_id == "driver-1"

    def test_only_holder_can_write(self, stops):
        route = build_route(stops["A"], [stops["B"]])

        async def scenario():
            with pytest.raises(PreconditionError):
                await self.store.set("BUS-1", {"route": route.to_dict()}, driver_id="driver-1")
            await self.store.claim("BUS-1", "driver-1")
            with pytest.raises(PreconditionError):
                await self.store.set("BUS-1", {"route": route.to_dict()}, driver_id="driver-2")
            with pytest.raises(PreconditionError):
                await self.store.set("BUS-1", {"driver_id": "driver-2"}, driver_id="driver-1")
            await self.store.set("BUS-1", {"route": route.to_dict()}, driver_id="driver-1")
            return await self.store.get("BUS-1")

        assert asyncio.run(scenario()).route == route

    def test_release_clears_state_and_lock_last(self, stops):
        route = build_route(stops["A"], [stops["B"]])
        seen = []

        async def scenario():
            await self.store.claim("BUS-1", "driver-1")
            await self.store.set("BUS-1", {
                "route": route.to_dict(),
                "coordinates": {"latitude": 1.0, "longitude": 2.0, "timestamp": 3},
            }, driver_id="driver-1")
            self.store.subscribe("BUS-1", seen.append)
            await self.store.release("BUS-1", "driver-1")
            return await self.store.get("BUS-1")

        vehicle = asyncio.run(scenario())
        assert vehicle.driver_id is None
        assert vehicle.route is None
        assert vehicle.coordinates is None
        # a listener never observes an unlocked vehicle with stale data
        assert all(s.driver_id or (s.route is None and s.coordinates is None) for s in seen)
        assert self.store.entries[-1].entry_type == "release"

    def test_release_by_other_driver_rejected(self):
        async def scenario():
            await self.store.claim("BUS-1", "driver-1")
            await self.store.release("BUS-1", "driver-2")

        with pytest.raises(PreconditionError):
            asyncio.run(scenario())

    def test_subscriptions(self):
        all_changes, once_changes = [], []

        async def scenario():
            unsubscribe = self.store.subscribe("*", all_changes.append)
            self.store.subscribe("BUS-1", once_changes.append, once=True)
            await self.store.claim("BUS-1", "driver-1")
            await self.store.claim("BUS-2", "driver-2")
            await self.store.release("BUS-1", "driver-1")
            unsubscribe()
            await self.store.release("BUS-2", "driver-2")

        asyncio.run(scenario())
        assert [s.vehicle_id for s in all_changes] == ["BUS-1", "BUS-2", "BUS-1"]
        assert len(once_changes) == 1
        assert once_changes[0].driver_id == "driver-1"

    def test_unknown_vehicle(self):
        with pytest.raises(KeyError):
            asyncio.run(self.store.get("BUS-9"))

    def test_snapshot_is_a_copy(self):
        async def scenario():
            snapshot = await self.store.snapshot()
            snapshot[0].driver_id = "someone"
            return await self.store.get(snapshot[0].vehicle_id)

        assert asyncio.run(scenario()).driver_id is None

    def test_malformed_route_write_rejected(self, stops):
        route = build_route(stops["A"], [stops["B"]])
        bad = {"X": {"stop_id": "x", "index": 1, "latitude": 1.0, "longitude": 2.0}}

        async def scenario():
            await self.store.claim("BUS-1", "driver-1")
            await self.store.set("BUS-1", {"route": route.to_dict()}, driver_id="driver-1")
            with pytest.raises(InvalidRouteError):
                await self.store.set("BUS-1", {"route": bad}, driver_id="driver-1")
            with pytest.raises(InvalidRouteError):
                await self.store.set("BUS-1", {"route": {"A": {"index": 0}}}, driver_id="driver-1")
            with pytest.raises(PreconditionError):
                await self.store.set("BUS-1", {"coordinates": {"latitude": "north"}}, driver_id="driver-1")
            return await self.store.get("BUS-1")

        # the previous route is untouched
        assert asyncio.run(scenario()).route == route

    def test_unreadable_record_does_not_break_snapshot(self, stops):
        route = build_route(stops["A"], [stops["B"]])

        async def scenario():
            for vid in ("BUS-1", "BUS-2"):
                await self.store.claim(vid, f"driver-{vid}")
            await self.store.set("BUS-1", {"route": route.to_dict()}, driver_id="driver-BUS-1")
            # a record written by another client that skipped validation
            self.store._records["BUS-2"]["route"] = {"X": {"index": 1, "latitude": 1.0, "longitude": 2.0}}
            return await self.store.snapshot()

        vehicles = asyncio.run(scenario())
        assert vehicles[1].vehicle_id == "BUS-2"
        assert vehicles[1].route is None
        assert vehicles[1].driver_id == "driver-BUS-2"
        assert match(vehicles, stops["B"], stops["A"]).through_buses == ["BUS-1"]
