"""Circular fan-out layout for expanded clusters"""
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from config import Config
from utils.projection import LatLon, project, unproject

Segment = Tuple[LatLon, LatLon]


def spread_multiplier(zoom: float, zoom_requested: bool = False, config=None) -> float:
    """Wider fans when zoomed out, and wider again for an explicit zoom-in activation"""
    config = config if config else Config()
    multiplier = 1.0 + config.SPREAD_PER_ZOOM_LEVEL * (config.SPREAD_REFERENCE_ZOOM - zoom)
    multiplier = float(np.clip(multiplier, 1.0, config.SPREAD_MAX_MULTIPLIER))
    if zoom_requested:
        multiplier *= config.ZOOM_REQUEST_SPREAD
    return multiplier


def fan_out_radius(count: int, multiplier: float = 1.0, config=None) -> float:
    config = config if config else Config()
    radius = (config.FAN_OUT_BASE_RADIUS_PX + count * config.FAN_OUT_RADIUS_PER_ASSET_PX) * multiplier
    return float(np.clip(radius, config.FAN_OUT_MIN_RADIUS_PX, config.FAN_OUT_MAX_RADIUS_PX))


def fan_out_positions(center: LatLon, count: int, zoom: float,
                      multiplier: float = 1.0, config=None) -> List[LatLon]:
    """
    Evenly spaced positions on a circle around center, starting at angle 0.

    The circle is laid out in projected pixels at `zoom`, so its radius stays
    the same on screen whatever the zoom.
    """
    if count <= 1:
        return [center]
    radius = fan_out_radius(count, multiplier, config)
    cx, cy = project(center[0], center[1], zoom)
    angles = np.arange(count) * (2 * np.pi / count)
    xs = cx + radius * np.cos(angles)
    ys = cy + radius * np.sin(angles)
    return [unproject(float(x), float(y), zoom) for x, y in zip(xs, ys)]


def branch_point(center: LatLon, zoom: float, multiplier: float = 1.0, config=None) -> LatLon:
    """Junction for the connector lines, a fixed pixel offset above the centroid"""
    config = config if config else Config()
    cx, cy = project(center[0], center[1], zoom)
    return unproject(cx, cy - config.BRANCH_OFFSET_PX * multiplier, zoom)


@dataclass
class FanOutGeometry:
    center: LatLon
    positions: List[LatLon]
    branch: LatLon
    multiplier: float
    zoom: float
    connectors: List[Segment] = field(default_factory=list)


def build_fan_out(center: LatLon, count: int, zoom: float,
                  multiplier: float = 1.0, config=None) -> FanOutGeometry:
    """Positions plus connector tree: centroid -> branch, then branch -> each position"""
    positions = fan_out_positions(center, count, zoom, multiplier, config)
    branch = branch_point(center, zoom, multiplier, config)
    connectors: List[Segment] = [(center, branch)]
    connectors.extend((branch, pos) for pos in positions)
    return FanOutGeometry(
        center=center,
        positions=positions,
        branch=branch,
        multiplier=multiplier,
        zoom=zoom,
        connectors=connectors,
    )
