"""Device location providers feeding the driver location loop."""
import time
from pathlib import Path
from typing import List, Optional

import pandas as pd
from loguru import logger

from core.errors import LocationUnavailableError
from models.transit import Coordinates


class LocationProvider:
    """Interface: ``await get_current_position()`` returns Coordinates."""

    async def get_current_position(self) -> Coordinates:
        raise NotImplementedError


class StaticLocationProvider(LocationProvider):
    """Reports a fixed position, or no fix at all when position is None."""

    def __init__(self, position: Optional[Coordinates] = None):
        self.position = position

    async def get_current_position(self) -> Coordinates:
        if self.position is None:
            raise LocationUnavailableError("No location fix available")
        return Coordinates(self.position.latitude, self.position.longitude, time.time() * 1000)


class ReplayLocationProvider(LocationProvider):
    """Replays a recorded GPS trace, one fix per call."""

    def __init__(self, points: List[Coordinates]):
        self.points = list(points)
        self._cursor = 0

    @classmethod
    def from_csv(cls, csv_path: str) -> "ReplayLocationProvider":
        """Load a trace CSV with latitude and longitude columns."""
        df = pd.read_csv(Path(csv_path))
        missing = {'latitude', 'longitude'} - set(df.columns)
        if missing:
            raise ValueError(f"Trace file {csv_path} is missing columns: {sorted(missing)}")
        df = df.dropna(subset=['latitude', 'longitude'])
        points = [
            Coordinates(float(row.latitude), float(row.longitude),
                        float(row.timestamp) if 'timestamp' in df.columns else None)
            for row in df.itertuples(index=False)
        ]
        logger.info(f"Loaded {len(points)} trace points from {csv_path}")
        return cls(points)

    @property
    def exhausted(self) -> bool:
        return self._cursor >= len(self.points)

    async def get_current_position(self) -> Coordinates:
        if self.exhausted:
            raise LocationUnavailableError("Trace has no more positions")
        point = self.points[self._cursor]
        self._cursor += 1
        timestamp = point.timestamp if point.timestamp is not None else time.time() * 1000
        return Coordinates(point.latitude, point.longitude, timestamp)
