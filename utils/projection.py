"""Spherical Mercator (EPSG:3857) screen projection used by the map view"""
import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798

LatLon = Tuple[float, float]
Point = Tuple[float, float]


def _scale(zoom: float) -> float:
    return TILE_SIZE * (2.0 ** zoom)


def project(lat: float, lon: float, zoom: float) -> Point:
    """lat/lon -> absolute pixel coordinates of the world map at zoom (y grows southwards)"""
    scale = _scale(zoom)
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    sin = math.sin(math.radians(lat))
    x = scale * (lon + 180.0) / 360.0
    y = scale * (0.5 - math.log((1 + sin) / (1 - sin)) / (4 * math.pi))
    return x, y


def unproject(x: float, y: float, zoom: float) -> LatLon:
    """Inverse of project()"""
    scale = _scale(zoom)
    lon = x / scale * 360.0 - 180.0
    n = math.pi - 2.0 * math.pi * y / scale
    lat = math.degrees(math.atan(math.sinh(n)))
    return lat, lon


@dataclass(frozen=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Iterable[LatLon]) -> Optional['Bounds']:
        points = list(points)
        if not points:
            return None
        lats = [p[0] for p in points]
        lons = [p[1] for p in points]
        return cls(min(lats), min(lons), max(lats), max(lons))

    def pad(self, ratio: float) -> 'Bounds':
        """Grow by ratio of the height/width on every side"""
        dh = abs(self.north - self.south) * ratio
        dw = abs(self.east - self.west) * ratio
        return Bounds(self.south - dh, self.west - dw, self.north + dh, self.east + dw)

    @property
    def center(self) -> LatLon:
        return (self.south + self.north) / 2.0, (self.west + self.east) / 2.0

    def contains(self, lat: float, lon: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lon <= self.east

    def to_list(self):
        """[[south, west], [north, east]], as Leaflet expects"""
        return [[self.south, self.west], [self.north, self.east]]


@dataclass(frozen=True)
class Viewport:
    center: LatLon
    zoom: int
    width: int = 1024
    height: int = 768
    min_zoom: int = 0
    max_zoom: int = 18

    @property
    def pixel_origin(self) -> Point:
        cx, cy = project(self.center[0], self.center[1], self.zoom)
        return cx - self.width / 2.0, cy - self.height / 2.0

    def to_screen(self, lat: float, lon: float) -> Point:
        """Container pixel position of lat/lon at the current view"""
        x, y = project(lat, lon, self.zoom)
        ox, oy = self.pixel_origin
        return x - ox, y - oy

    def from_screen(self, x: float, y: float) -> LatLon:
        ox, oy = self.pixel_origin
        return unproject(x + ox, y + oy, self.zoom)

    def with_view(self, center: LatLon, zoom: Optional[int] = None) -> 'Viewport':
        zoom = self.zoom if zoom is None else self.clamp_zoom(zoom)
        return replace(self, center=(float(center[0]), float(center[1])), zoom=zoom)

    def clamp_zoom(self, zoom: float) -> int:
        """Nearest whole zoom level within the viewport limits"""
        return int(round(max(self.min_zoom, min(self.max_zoom, zoom))))

    def bounds_zoom(self, bounds: Bounds, padding: float = 0.0, max_zoom: Optional[int] = None) -> int:
        """Largest zoom at which bounds fit inside the viewport minus padding pixels per side"""
        top = self.max_zoom if max_zoom is None else self.clamp_zoom(max_zoom)
        avail_w = max(1.0, self.width - 2 * padding)
        avail_h = max(1.0, self.height - 2 * padding)
        for zoom in range(top, self.min_zoom - 1, -1):
            x1, y1 = project(bounds.north, bounds.west, zoom)
            x2, y2 = project(bounds.south, bounds.east, zoom)
            if abs(x2 - x1) <= avail_w and abs(y2 - y1) <= avail_h:
                return zoom
        return self.min_zoom

    def fit_bounds(self, bounds: Bounds, padding: float = 0.0, max_zoom: Optional[int] = None) -> Tuple[LatLon, int]:
        """Center and zoom that show bounds, like Leaflet's fitBounds"""
        zoom = self.bounds_zoom(bounds, padding, max_zoom)
        x1, y1 = project(bounds.north, bounds.west, zoom)
        x2, y2 = project(bounds.south, bounds.east, zoom)
        return unproject((x1 + x2) / 2.0, (y1 + y2) / 2.0, zoom), zoom
