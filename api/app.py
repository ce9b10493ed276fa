"""FastAPI application for live bus tracking."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from api.fleet_api import router as fleet_router
from configurations.config import Config
from core.eta_estimator import EtaEstimator
from core.vehicle_store import VehicleStateStore
from routing.osrm_oracle import OSRMRoutingOracle
from services.stop_catalog import StopCatalog


def create_app(store: VehicleStateStore = None, catalog: StopCatalog = None,
               estimator: EtaEstimator = None) -> FastAPI:
    """Build the API with explicitly constructed store, catalog and estimator."""
    app = FastAPI(
        title="Live Bus Tracker",
        description="Real-time bus locations and source-to-destination bus search",
        version="1.0.0"
    )

    app.state.store = store or VehicleStateStore()
    app.state.catalog = catalog or StopCatalog()
    app.state.estimator = estimator or EtaEstimator(
        OSRMRoutingOracle(Config.OSRM_URL, Config.OSRM_PROFILE, Config.OSRM_TIMEOUT_SECONDS)
    )
    app.state.geofence_radius = Config.GEOFENCE_RADIUS_METERS

    # Include fleet API routes
    app.include_router(fleet_router)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "vehicles": len(app.state.store.vehicle_ids())}

    logger.info(f"🚌 Live Bus Tracker API ready with {len(app.state.store.vehicle_ids())} vehicles")
    return app
