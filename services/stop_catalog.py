"""Stop catalog service: the read-only list of bus stops."""
import math
from typing import Dict, List, Optional

import pandas as pd
import requests
from loguru import logger

from configurations.config import Config
from models.transit import Stop


class StopCatalog:
    """Loads bus stops once per session from a CSV file or an HTTP endpoint."""

    def __init__(self, csv_path: Optional[str] = None, api_url: Optional[str] = None):
        self.csv_path = csv_path or Config.STOPS_CSV
        self.api_url = api_url or Config.STOPS_API_URL
        self._stops: Optional[List[Stop]] = None

        logger.info(f"StopCatalog initialized with source: {self.csv_path or self.api_url or 'none'}")

    @classmethod
    def from_stops(cls, stops: List[Stop]) -> "StopCatalog":
        catalog = cls()
        catalog._stops = list(stops)
        return catalog

    def list_stops(self) -> List[Stop]:
        """All stops; loaded on first call and reused afterwards."""
        if self._stops is None:
            if self.csv_path:
                df = pd.read_csv(self.csv_path)
            elif self.api_url:
                df = self._fetch_remote_stops()
            else:
                logger.warning("No stop catalog source configured")
                df = pd.DataFrame(columns=['id', 'name', 'latitude', 'longitude'])
            self._stops = self._process_stop_data(df)
            logger.success(f"Loaded {len(self._stops)} bus stops")
        return list(self._stops)

    def get(self, name_or_id: str) -> Optional[Stop]:
        """Look up a stop by name, falling back to id."""
        stops = self.list_stops()
        for stop in stops:
            if stop.name == name_or_id:
                return stop
        for stop in stops:
            if stop.id == name_or_id:
                return stop
        return None

    def by_name(self) -> Dict[str, Stop]:
        return {stop.name: stop for stop in self.list_stops()}

    def _fetch_remote_stops(self) -> pd.DataFrame:
        logger.info(f"Fetching bus stops from: {self.api_url}")
        response = requests.get(self.api_url, headers={'accept': 'application/json'}, timeout=30)
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict):
            data = data.get('data', data.get('stops', []))
        return pd.DataFrame(data)

    def _process_stop_data(self, df: pd.DataFrame) -> List[Stop]:
        """Normalize column names and build Stops, dropping unusable rows."""
        df = df.rename(columns={
            'Latitude': 'latitude', 'Longitude': 'longitude',
            'lat': 'latitude', 'lng': 'longitude', 'lon': 'longitude',
            'stop_id': 'id',
        })
        if 'id' not in df.columns:
            raise ValueError("Stop data must have an id column")
        if 'name' not in df.columns:
            df['name'] = df['id']

        stops = []
        for row in df.to_dict('records'):
            stop_id = str(row['id'])
            name = row.get('name')
            if name is None or (isinstance(name, float) and math.isnan(name)) or not str(name).strip():
                name = stop_id
            try:
                lat = float(row.get('latitude'))
                lon = float(row.get('longitude'))
            except (TypeError, ValueError):
                logger.warning(f"Skipping stop {stop_id} with invalid coordinates")
                continue
            if math.isnan(lat) or math.isnan(lon):
                logger.warning(f"Skipping stop {stop_id} with missing coordinates")
                continue
            stops.append(Stop(id=stop_id, name=str(name), latitude=lat, longitude=lon))
        return stops
