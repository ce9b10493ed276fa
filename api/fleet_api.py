"""Fleet API endpoints for drivers and riders."""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from typing import Optional

from api.schemas import (
    BusSearchItem, DriverRequest, LocationRequest, RouteRequest, SearchResponse,
)
from configurations.config import Config
from core.errors import (
    ClaimConflictError, EtaError, InvalidRouteError, PreconditionError, StoreTransportError, TransitError,
)
from core.geofence import locate
from core.location_publisher import record_position
from core.route_model import build_route, publish_route
from models.transit import Coordinates, VehicleState
from services.rider_session import RiderSession
from visualization.fleet_map import FleetMapGenerator

router = APIRouter(prefix="/api", tags=["fleet"])

# Security scheme
security = HTTPBearer()

def verify_api_key(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify API key from Authorization header."""
    if credentials.credentials != Config.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return credentials.credentials

def _to_http(e: Exception) -> HTTPException:
    if isinstance(e, KeyError):
        return HTTPException(status_code=404, detail=str(e.args[0]) if e.args else "Not found")
    if isinstance(e, ClaimConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, InvalidRouteError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, PreconditionError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, StoreTransportError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, EtaError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=f"Request failed: {str(e)}")

def _vehicle_payload(vehicle: VehicleState) -> dict:
    return {
        "vehicle_id": vehicle.vehicle_id,
        "driver_id": vehicle.driver_id,
        "locked": vehicle.is_claimed,
        "coordinates": vehicle.coordinates.to_dict() if vehicle.coordinates else None,
        "route": vehicle.route.to_dict() if vehicle.route else None,
    }

def _stop_or_404(catalog, name: str):
    stop = catalog.get(name)
    if stop is None:
        raise HTTPException(status_code=404, detail=f"Unknown stop {name}")
    return stop

@router.get("/stops")
async def list_stops(request: Request):
    """List the bus stop catalog."""
    stops = request.app.state.catalog.list_stops()
    return JSONResponse({
        "status": "success",
        "count": len(stops),
        "data": [
            {"id": s.id, "name": s.name, "latitude": s.latitude, "longitude": s.longitude}
            for s in stops
        ]
    })

@router.get("/vehicles")
async def list_vehicles(request: Request):
    """List all vehicles with their lock state."""
    vehicles = await request.app.state.store.snapshot()
    return JSONResponse({
        "status": "success",
        "summary": {
            "total": len(vehicles),
            "locked": sum(1 for v in vehicles if v.is_claimed),
            "with_route": sum(1 for v in vehicles if v.route is not None),
        },
        "vehicles": [_vehicle_payload(v) for v in vehicles]
    })

@router.get("/vehicles/{vehicle_id}")
async def get_vehicle(vehicle_id: str, request: Request):
    """Get specific vehicle by ID."""
    try:
        vehicle = await request.app.state.store.get(vehicle_id)
    except (KeyError, TransitError) as e:
        raise _to_http(e)
    return JSONResponse({"status": "success", "data": _vehicle_payload(vehicle)})

@router.post("/vehicles/{vehicle_id}/claim")
async def claim_vehicle(vehicle_id: str, body: DriverRequest, request: Request,
                        api_key: str = Depends(verify_api_key)):
    """Lock a vehicle for a driver."""
    try:
        vehicle = await request.app.state.store.claim(vehicle_id, body.driver_id)
    except (KeyError, TransitError) as e:
        raise _to_http(e)
    return JSONResponse({"status": "success", "data": _vehicle_payload(vehicle)})

@router.post("/vehicles/{vehicle_id}/release")
async def release_vehicle(vehicle_id: str, body: DriverRequest, request: Request,
                          api_key: str = Depends(verify_api_key)):
    """Clear route and location, then unlock the vehicle."""
    try:
        await request.app.state.store.release(vehicle_id, body.driver_id)
    except (KeyError, TransitError) as e:
        raise _to_http(e)
    return JSONResponse({"status": "success", "message": f"Vehicle {vehicle_id} released"})

@router.put("/vehicles/{vehicle_id}/route")
async def put_route(vehicle_id: str, body: RouteRequest, request: Request,
                    api_key: str = Depends(verify_api_key)):
    """Build and publish a route from stop names."""
    catalog = request.app.state.catalog
    destination = _stop_or_404(catalog, body.destination)
    waypoints = [_stop_or_404(catalog, name) for name in body.waypoints]

    try:
        route = build_route(destination, waypoints)
        await publish_route(request.app.state.store, vehicle_id, body.driver_id, route)
    except (KeyError, TransitError) as e:
        raise _to_http(e)
    return JSONResponse({"status": "success", "route": route.to_dict()})

@router.delete("/vehicles/{vehicle_id}/route")
async def delete_route(vehicle_id: str, request: Request, driver_id: str = Query(...),
                       api_key: str = Depends(verify_api_key)):
    """Remove the vehicle's route, ending its trip."""
    try:
        await request.app.state.store.remove(vehicle_id, "route", driver_id=driver_id)
    except (KeyError, TransitError) as e:
        raise _to_http(e)
    return JSONResponse({"status": "success", "message": f"Route removed from {vehicle_id}"})

@router.post("/vehicles/{vehicle_id}/location")
async def post_location(vehicle_id: str, body: LocationRequest, request: Request,
                        api_key: str = Depends(verify_api_key)):
    """Accept a position fix from the driver app."""
    store = request.app.state.store
    position = Coordinates(body.latitude, body.longitude, body.timestamp)
    radius = request.app.state.geofence_radius

    try:
        vehicle = await store.get(vehicle_id)
        if vehicle.route is not None:
            name, route = await record_position(store, vehicle_id, body.driver_id, vehicle.route, position, radius)
        else:
            await store.set(vehicle_id, {"coordinates": position.to_dict()}, driver_id=body.driver_id)
            name = locate(position, request.app.state.catalog.list_stops(), radius)
            route = None
    except (KeyError, TransitError) as e:
        raise _to_http(e)

    return JSONResponse({
        "status": "success",
        "location_name": name,
        "route": route.to_dict() if route else None,
    })

@router.get("/search", response_model=SearchResponse)
async def search_buses(request: Request, destination: str, source: Optional[str] = None):
    """Find buses going to destination, and those passing source first."""
    rider = RiderSession(request.app.state.store, request.app.state.catalog, request.app.state.estimator)
    try:
        result = await rider.search(source, destination)
    except (KeyError, TransitError) as e:
        raise _to_http(e)

    def item(eta) -> BusSearchItem:
        return BusSearchItem(
            vehicle_id=eta.vehicle_id,
            stops_until_destination=eta.stops_until_destination,
            eta_to_source=eta.eta_to_source,
            eta_to_destination=eta.eta_to_destination,
        )

    return SearchResponse(
        source=result.source,
        destination=result.destination,
        through_buses=[item(e) for e in result.through_buses],
        destination_only_buses=[item(e) for e in result.destination_only_buses],
    )

@router.get("/vehicles/{vehicle_id}/map", response_class=HTMLResponse)
async def vehicle_map(vehicle_id: str, request: Request):
    """Interactive map of one bus and its remaining route."""
    try:
        vehicle = await request.app.state.store.get(vehicle_id)
    except (KeyError, TransitError) as e:
        raise _to_http(e)

    try:
        m = FleetMapGenerator().create_vehicle_map(vehicle)
        return HTMLResponse(content=m._repr_html_())
    except Exception as e:
        logger.error(f"Map generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Map generation failed: {str(e)}")
