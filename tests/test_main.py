"""Tests for the trip replay command."""
import asyncio

from conftest import FakeOracle
from core.eta_estimator import EtaEstimator
from main import TripReplay


def test_replay_reports_every_stop_reached(tmp_path):
    stops_csv = tmp_path / "stops.csv"
    stops_csv.write_text(
        "id,name,Latitude,Longitude\n"
        "a,A,12.9716,77.5946\n"
        "b,B,12.9816,77.5946\n"
        "c,C,12.9916,77.5946\n"
    )
    trace_csv = tmp_path / "trace.csv"
    # each stop is seen on exactly one tick
    trace_csv.write_text(
        "latitude,longitude\n"
        "12.9916,77.5946\n"
        "0.0,0.0\n"
        "12.9816,77.5946\n"
        "0.0,0.0\n"
        "12.9716,77.5946\n"
    )
    replay = TripReplay(str(stops_csv), ["BUS-1"], interval=0.01)
    replay.estimator = EtaEstimator(FakeOracle())

    results = asyncio.run(replay.run(
        trace_csv=str(trace_csv),
        vehicle_id="BUS-1",
        driver_id="driver-1",
        destination="A",
        waypoints=["B", "C"],
    ))

    assert results['visited'] == ["C", "B", "A"]
    buses = results['search'].destination_only_buses
    assert [b.vehicle_id for b in buses] == ["BUS-1"]
    assert buses[0].eta_to_destination == "5 mins"
