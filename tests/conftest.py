"""Shared test fixtures."""
import pytest

from models.transit import Stop
from routing.osrm_oracle import OracleLeg, OracleResponse, OracleRoute
from services.stop_catalog import StopCatalog

# Roughly 111 m per 0.001 degree of latitude
BASE_LAT, BASE_LNG = 12.9716, 77.5946


class FakeOracle:
    """Records calls and answers with fixed leg durations."""

    def __init__(self, leg_seconds=(300.0,), error=None):
        self.leg_seconds = list(leg_seconds)
        self.error = error
        self.calls = []

    def route(self, origin, destination, waypoints=None):
        self.calls.append({"origin": origin, "destination": destination, "waypoints": waypoints})
        if self.error is not None:
            raise self.error
        if not self.leg_seconds:
            return OracleResponse()
        return OracleResponse(routes=[OracleRoute(legs=[OracleLeg(duration=s) for s in self.leg_seconds])])


@pytest.fixture
def stops():
    return {
        "A": Stop("stop-a", "A", BASE_LAT, BASE_LNG),
        "B": Stop("stop-b", "B", BASE_LAT + 0.01, BASE_LNG),
        "C": Stop("stop-c", "C", BASE_LAT + 0.02, BASE_LNG),
        "D": Stop("stop-d", "D", BASE_LAT + 0.03, BASE_LNG),
    }


@pytest.fixture
def catalog(stops):
    return StopCatalog.from_stops(list(stops.values()))


@pytest.fixture
def fake_oracle():
    return FakeOracle()
