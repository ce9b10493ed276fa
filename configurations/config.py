"""Configuration settings for the bus tracking system."""
import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

class Config:
    # Routing oracle (OSRM) settings
    OSRM_URL: str = os.getenv("OSRM_URL", "http://router.project-osrm.org")
    OSRM_PROFILE: str = os.getenv("OSRM_PROFILE", "driving")
    OSRM_TIMEOUT_SECONDS: float = float(os.getenv("OSRM_TIMEOUT_SECONDS", "10"))

    # Geofence radius around each stop
    GEOFENCE_RADIUS_METERS: int = int(os.getenv("GEOFENCE_RADIUS_METERS", "200"))

    # Driver location loop
    TICK_INTERVAL_SECONDS: float = float(os.getenv("TICK_INTERVAL_SECONDS", "2.0"))
    TICK_FAILURE_WARN_THRESHOLD: int = int(os.getenv("TICK_FAILURE_WARN_THRESHOLD", "5"))

    # Stop catalog sources
    STOPS_CSV: Optional[str] = os.getenv("STOPS_CSV")
    STOPS_API_URL: Optional[str] = os.getenv("STOPS_API_URL")

    # Saved routes file
    SAVED_ROUTES_PATH: str = os.getenv("SAVED_ROUTES_PATH", "saved_routes.json")

    # API settings
    API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
    API_PORT: int = int(os.getenv("API_PORT", "8080"))
    API_KEY: str = os.getenv("API_KEY", "bus-tracker-dev-key")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
