"""Main entry point for the live bus tracking system."""
import asyncio
import sys
import argparse
from loguru import logger

from configurations.config import Config
from core.errors import TransitError
from core.eta_estimator import EtaEstimator
from core.vehicle_store import VehicleStateStore
from routing.osrm_oracle import OSRMRoutingOracle
from services.driver_session import DriverSession
from services.location_provider import ReplayLocationProvider
from services.rider_session import RiderSession
from services.saved_routes import SavedRouteStore
from services.stop_catalog import StopCatalog


class TripReplay:
    """Replays a recorded driver trip through the live tracking pipeline, then runs a rider search."""

    def __init__(self, stops_csv: str, vehicle_ids: list, osrm_url: str = Config.OSRM_URL,
                 interval: float = Config.TICK_INTERVAL_SECONDS):
        self.catalog = StopCatalog(csv_path=stops_csv)
        self.store = VehicleStateStore(vehicle_ids)
        self.estimator = EtaEstimator(OSRMRoutingOracle(osrm_url, Config.OSRM_PROFILE, Config.OSRM_TIMEOUT_SECONDS))
        self.interval = interval

    async def run(self, trace_csv: str, vehicle_id: str, driver_id: str, destination: str,
                  waypoints: list, source: str = None, rider_destination: str = None) -> dict:
        """Drive the trip from the trace, then search as a rider."""
        provider = ReplayLocationProvider.from_csv(trace_csv)
        visited = []

        def record_stop(name):
            if name and name not in visited:
                visited.append(name)

        driver = DriverSession(self.store, self.catalog, driver_id, provider,
                               saved_routes=SavedRouteStore(), interval=self.interval,
                               on_location=record_stop)

        logger.info(f"1️⃣ Claiming {vehicle_id} for {driver_id}...")
        await driver.select_vehicle(vehicle_id)

        logger.info("2️⃣ Planning route...")
        await driver.set_destination(self._stop(destination))
        for name in waypoints:
            await driver.add_waypoint(self._stop(name))

        logger.info(f"3️⃣ Replaying {len(provider.points)} positions...")
        await driver.start_trip()
        while not provider.exhausted:
            await asyncio.sleep(self.interval)
        # Let the last tick land before searching
        await asyncio.sleep(self.interval)

        logger.info("4️⃣ Searching as a rider...")
        rider = RiderSession(self.store, self.catalog, self.estimator)
        result = await rider.search(source, rider_destination or destination)

        await driver.logout()
        logger.success("✅ Replay completed")
        return {'visited': visited, 'search': result}

    def _stop(self, name: str):
        stop = self.catalog.get(name)
        if stop is None:
            raise KeyError(f"Unknown stop {name}")
        return stop


def _print_buses(title: str, buses: list):
    print(f"\n{title}")
    if not buses:
        print("  No buses available.")
    for bus in buses:
        print(f"  🚌 {bus.vehicle_id}: {' -> '.join(bus.stops_until_destination)}")
        if bus.eta_to_source is not None:
            print(f"     ETA to source: {bus.eta_to_source}")
        print(f"     ETA to destination: {bus.eta_to_destination}")


def main():
    """Command line interface for the bus tracker."""
    parser = argparse.ArgumentParser(description="Live Bus Tracker")
    parser.add_argument("--api", action="store_true", help="Start FastAPI server")
    parser.add_argument("--port", type=int, default=Config.API_PORT, help="Port for FastAPI server")
    parser.add_argument("--stops", default=Config.STOPS_CSV, help="Path to bus stops CSV file")
    parser.add_argument("--vehicles", default="BUS-1", help="Comma-separated vehicle ids")
    parser.add_argument("--trace", help="GPS trace CSV (latitude,longitude) to replay")
    parser.add_argument("--vehicle", help="Vehicle to drive during replay")
    parser.add_argument("--driver", default="driver-1", help="Driver id for replay")
    parser.add_argument("--destination", help="Trip destination stop")
    parser.add_argument("--waypoint", action="append", default=[], help="Waypoint stop, in driving order (repeatable)")
    parser.add_argument("--source", help="Rider source stop")
    parser.add_argument("--rider-destination", help="Rider destination stop (defaults to trip destination)")
    parser.add_argument("--osrm-url", default=Config.OSRM_URL, help="OSRM server URL")
    parser.add_argument("--interval", type=float, default=Config.TICK_INTERVAL_SECONDS, help="Seconds between location ticks")
    parser.add_argument("--log-level", default=Config.LOG_LEVEL, help="Log level")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    vehicle_ids = [v.strip() for v in args.vehicles.split(",") if v.strip()]

    if args.api:
        # Start FastAPI server
        import uvicorn
        from api.app import create_app
        app = create_app(store=VehicleStateStore(vehicle_ids), catalog=StopCatalog(csv_path=args.stops))
        logger.info(f"🚀 Starting FastAPI server on port {args.port}...")
        try:
            uvicorn.run(app, host=Config.API_HOST, port=args.port)
        except OSError as e:
            logger.error(f"❌ Server startup failed: {e}")
            sys.exit(1)
        return

    if not all([args.stops, args.trace, args.destination]):
        parser.error("--stops, --trace and --destination are required when not using --api")

    vehicle_id = args.vehicle or vehicle_ids[0]
    if vehicle_id not in vehicle_ids:
        vehicle_ids.append(vehicle_id)

    replay = TripReplay(args.stops, vehicle_ids, args.osrm_url, args.interval)
    try:
        results = asyncio.run(replay.run(
            trace_csv=args.trace,
            vehicle_id=vehicle_id,
            driver_id=args.driver,
            destination=args.destination,
            waypoints=args.waypoint,
            source=args.source,
            rider_destination=args.rider_destination,
        ))
    except (TransitError, KeyError, ValueError) as e:
        logger.error(f"❌ Replay failed: {e}")
        sys.exit(1)

    search = results['search']
    print(f"\nStops reached: {', '.join(results['visited']) or 'none'}")
    _print_buses(f"Source to Destination Buses ({search.source or '-'} -> {search.destination})", search.through_buses)
    _print_buses(f"Only Destination Buses ({search.destination})", search.destination_only_buses)

if __name__ == "__main__":
    main()
