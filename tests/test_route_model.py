"""Tests for route construction, pruning and serialization."""
import asyncio

import pytest

from core.errors import InvalidRouteError, PreconditionError
from core.route_model import Route, build_route, publish_route
from core.vehicle_store import VehicleStateStore
from models.transit import RouteEntry


def test_build_route_indices(stops):
    route = build_route(stops["A"], [stops["C"], stops["B"]])

    assert route["A"].index == 0
    assert route["C"].index == 1
    assert route["B"].index == 2
    assert route.destination_name == "A"
    assert route.waypoint_names() == ["C", "B"]
    assert [name for name, _ in route.visiting_order()] == ["B", "C", "A"]


def test_exactly_one_destination_entry(stops):
    for waypoints in ([], [stops["B"]], [stops["B"], stops["C"], stops["D"]]):
        route = build_route(stops["A"], waypoints)
        zeros = [name for name in route if route[name].index == 0]
        assert zeros == ["A"]


def test_duplicate_destination_rejected(stops):
    with pytest.raises(InvalidRouteError):
        build_route(stops["A"], [stops["B"], stops["A"]])


def test_duplicate_waypoint_rejected(stops):
    with pytest.raises(InvalidRouteError):
        build_route(stops["A"], [stops["B"], stops["B"]])


def test_route_requires_single_zero_index():
    with pytest.raises(InvalidRouteError):
        Route({"A": RouteEntry("a", 1, 0.0, 0.0)})
    with pytest.raises(InvalidRouteError):
        Route({"A": RouteEntry("a", 0, 0.0, 0.0), "B": RouteEntry("b", 0, 0.0, 0.0)})


def test_stops_until(stops):
    route = build_route(stops["A"], [stops["B"], stops["C"], stops["D"]])

    assert route.stops_until("B") == ["D", "C", "B"]
    assert route.stops_until("A") == ["D", "C", "B", "A"]
    assert route.stops_until("Z") == []


def test_without_reindexes_remaining_waypoints(stops):
    route = build_route(stops["A"], [stops["B"], stops["C"], stops["D"]])

    pruned = route.without("C")

    assert "C" not in pruned
    assert pruned["A"].index == 0
    assert pruned["B"].index == 1
    assert pruned["D"].index == 2
    # original untouched
    assert route["C"].index == 2


def test_destination_cannot_be_pruned(stops):
    route = build_route(stops["A"], [stops["B"]])
    with pytest.raises(InvalidRouteError):
        route.without("A")


def test_from_dict_treats_missing_index_as_destination():
    route = Route.from_dict({
        "Main Gate": {"latitude": 1.0, "longitude": 2.0},
        "Library": {"index": 1, "latitude": 1.1, "longitude": 2.1},
    })

    assert route.destination_name == "Main Gate"
    assert route["Library"].index == 1


def test_to_dict_from_dict(stops):
    route = build_route(stops["A"], [stops["B"], stops["C"]])
    assert Route.from_dict(route.to_dict()) == route


def test_publish_route_requires_claim(stops):
    store = VehicleStateStore(["BUS-1"])
    route = build_route(stops["A"], [stops["B"]])

    async def scenario():
        with pytest.raises(PreconditionError):
            await publish_route(store, "BUS-1", "driver-1", route)
        await store.claim("BUS-1", "driver-1")
        await publish_route(store, "BUS-1", "driver-1", route)
        return await store.get("BUS-1")

    vehicle = asyncio.run(scenario())
    assert vehicle.route == route
