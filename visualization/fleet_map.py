"""Create interactive Folium maps of a bus and its remaining route."""
import folium
from loguru import logger
from typing import List, Optional

from models.transit import Stop, VehicleState

class FleetMapGenerator:
    def __init__(self, route_color: str = '#2563eb'):
        self.route_color = route_color

    def create_vehicle_map(self, vehicle: VehicleState, stops: Optional[List[Stop]] = None,
                           zoom_start: int = 14) -> folium.Map:
        """Map with the bus marker, its route in visiting order and optional catalog stops."""
        center = self._center(vehicle, stops)
        m = folium.Map(location=center, zoom_start=zoom_start, tiles='OpenStreetMap')

        if stops:
            self._add_stop_markers(m, stops)

        if vehicle.route is not None:
            self._add_route_layer(m, vehicle)

        if vehicle.coordinates is not None:
            folium.Marker(
                location=[vehicle.coordinates.latitude, vehicle.coordinates.longitude],
                popup=f"🚌 {vehicle.vehicle_id}",
                tooltip=vehicle.vehicle_id,
                icon=folium.Icon(color='blue', icon='bus', prefix='fa')
            ).add_to(m)

        folium.LayerControl(position='topright', collapsed=False).add_to(m)
        logger.info(f"Created Folium map for {vehicle.vehicle_id}")
        return m

    def _add_route_layer(self, map_obj: folium.Map, vehicle: VehicleState):
        route = vehicle.route
        route_group = folium.FeatureGroup(name=f"🛣️ Route ({len(route)} stops)", show=True)

        path = []
        if vehicle.coordinates is not None:
            path.append([vehicle.coordinates.latitude, vehicle.coordinates.longitude])

        for position, (name, entry) in enumerate(route.visiting_order(), start=1):
            path.append([entry.latitude, entry.longitude])
            if entry.index == 0:
                icon = folium.Icon(color='red', icon='flag')
                popup = f"🏁 Destination: {name}"
            else:
                icon = folium.Icon(color='orange', icon='info-sign')
                popup = f"{position}. {name}"
            folium.Marker(location=[entry.latitude, entry.longitude], popup=popup,
                          tooltip=name, icon=icon).add_to(route_group)

        if len(path) >= 2:
            folium.PolyLine(locations=path, color=self.route_color, weight=5, opacity=0.8).add_to(route_group)
        route_group.add_to(map_obj)

    def _add_stop_markers(self, map_obj: folium.Map, stops: List[Stop]):
        stop_group = folium.FeatureGroup(name=f"📍 Bus stops ({len(stops)})", show=False)
        for stop in stops:
            folium.CircleMarker(
                location=[stop.latitude, stop.longitude],
                radius=4,
                color='gray',
                fill=True,
                popup=stop.name
            ).add_to(stop_group)
        stop_group.add_to(map_obj)

    def _center(self, vehicle: VehicleState, stops: Optional[List[Stop]]) -> List[float]:
        if vehicle.coordinates is not None:
            return [vehicle.coordinates.latitude, vehicle.coordinates.longitude]
        points = []
        if vehicle.route is not None:
            points = [(e.latitude, e.longitude) for _, e in vehicle.route.ordered_entries()]
        elif stops:
            points = [(s.latitude, s.longitude) for s in stops]
        if not points:
            return [0.0, 0.0]
        return [sum(p[0] for p in points) / len(points), sum(p[1] for p in points) / len(points)]

    def save_map(self, map_obj: folium.Map, output_path: str):
        map_obj.save(output_path)
        logger.info(f"Map saved to {output_path}")
