"""Merge location groups whose markers would overlap on screen"""
import logging
import math
from typing import Callable, Dict, List, Optional, Tuple

from config import Config
from models import Group, ResolvedCoordinate

logger = logging.getLogger(__name__)

ProjectFn = Callable[[float, float], Tuple[float, float]]


def collision_threshold(config=None) -> float:
    """Marker diameter plus buffer, in pixels"""
    config = config if config else Config()
    return float(config.MARKER_DIAMETER_PX + config.COLLISION_BUFFER_PX)


def _combine(a: Group, b: Group, coords: ResolvedCoordinate) -> Group:
    return Group(
        coords=coords,
        assets=list(a.assets) + list(b.assets),
        location_keys=list(a.location_keys) + list(b.location_keys),
    )


def coarsen_groups(groups: List[Group], precision: int) -> List[Group]:
    """Fold groups whose coordinates round to the same grid cell.

    The folded centroid is the mean of the members' coordinates; the rounding
    only decides membership.
    """
    cells: Dict[Tuple[float, float], List[Group]] = {}
    for group in groups:
        cells.setdefault(group.coords.rounded(precision).as_tuple(), []).append(group)

    folded = []
    for members in cells.values():
        if len(members) == 1:
            g = members[0]
            folded.append(Group(coords=g.coords, assets=list(g.assets), location_keys=list(g.location_keys)))
            continue
        lat = sum(m.coords.lat for m in members) / len(members)
        lon = sum(m.coords.lon for m in members) / len(members)
        folded.append(Group(
            coords=ResolvedCoordinate(lat, lon),
            assets=[a for m in members for a in m.assets],
            location_keys=[k for m in members for k in m.location_keys],
        ))
    return folded


def _merge_pass(groups: List[Group], project_to_screen: ProjectFn, threshold: float) -> List[Group]:
    accepted: List[Group] = []
    positions: List[Tuple[float, float]] = []
    for group in groups:
        x, y = project_to_screen(group.coords.lat, group.coords.lon)
        for i, (ax, ay) in enumerate(positions):
            if math.hypot(x - ax, y - ay) < threshold:
                target = accepted[i]
                merged = _combine(target, group, ResolvedCoordinate.mean(target.coords, group.coords))
                accepted[i] = merged
                positions[i] = project_to_screen(merged.coords.lat, merged.coords.lon)
                break
        else:
            accepted.append(group)
            positions.append((x, y))
    return accepted


def merge_groups(groups: List[Group], project_to_screen: ProjectFn,
                 threshold: Optional[float] = None, precision: Optional[int] = None,
                 config=None) -> List[Group]:
    """
    Merge groups that would collide at the current view.

    Args:
        groups: Resolved location groups, in resolution order
        project_to_screen: (lat, lon) -> screen pixel position at the current zoom
        threshold: Collision distance in pixels (marker diameter + buffer by default)
        precision: Decimal places of the coarsening grid

    Returns:
        New groups, pairwise at least `threshold` pixels apart. Passes repeat
        until nothing merges, so merging the result again is a no-op.
    """
    config = config if config else Config()
    threshold = collision_threshold(config) if threshold is None else float(threshold)
    precision = config.COORDINATE_PRECISION if precision is None else int(precision)

    current = coarsen_groups(groups, precision)
    passes = 0
    while True:
        passes += 1
        merged = _merge_pass(current, project_to_screen, threshold)
        if len(merged) == len(current):
            break
        current = merged

    logger.info(f"Proximity merge: {len(groups)} location groups -> {len(merged)} markers ({passes} passes)")
    return merged
