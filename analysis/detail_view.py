"""Expand/collapse state machine for cluster detail views"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union

from analysis.fan_out import Segment, build_fan_out, spread_multiplier
from config import Config
from models import Asset, Group
from utils.projection import Bounds, LatLon, Viewport

logger = logging.getLogger(__name__)


class ViewState(Enum):
    COLLAPSED = "collapsed"
    EXPANDED = "expanded"


# Events
@dataclass(frozen=True)
class MarkerClicked:
    group_key: str


@dataclass(frozen=True)
class MarkerDoubleClicked:
    group_key: str


@dataclass(frozen=True)
class MapClicked:
    pass


@dataclass(frozen=True)
class ViewportChanged:
    center: LatLon
    zoom: float


Event = Union[MarkerClicked, MarkerDoubleClicked, MapClicked, ViewportChanged]


# Effects
@dataclass
class CameraRequest:
    bounds: Optional[Bounds] = None
    center: Optional[LatLon] = None
    zoom: Optional[int] = None
    max_zoom: Optional[int] = None
    animate: bool = True

    def to_dict(self) -> Dict:
        data = {'type': 'camera', 'animate': self.animate}
        if self.bounds is not None:
            data['bounds'] = self.bounds.to_list()
        if self.center is not None:
            data['center'] = list(self.center)
        if self.zoom is not None:
            data['zoom'] = self.zoom
        if self.max_zoom is not None:
            data['max_zoom'] = self.max_zoom
        return data


@dataclass
class OpenPopup:
    group_key: str

    def to_dict(self) -> Dict:
        return {'type': 'popup', 'group': self.group_key}


Effect = Union[CameraRequest, OpenPopup]


@dataclass
class DetailOverlay:
    """Fanned asset markers and connector lines of the expanded group"""
    group_key: str
    assets: List[Asset]
    positions: List[LatLon]
    connectors: List[Segment]
    multiplier: float
    zoom: int
    destroyed: bool = False

    def destroy(self):
        self.destroyed = True
        self.positions = []
        self.connectors = []

    def to_dict(self) -> Dict:
        return {
            'group': self.group_key,
            'zoom': self.zoom,
            'spread': self.multiplier,
            'positions': [list(p) for p in self.positions],
            'connectors': [[list(a), list(b)] for a, b in self.connectors],
            'assets': [a.name for a in self.assets],
        }


class DetailViewController:
    """
    Owns the single live DetailOverlay of a map session.

    Events go in through dispatch(); camera and popup requests come out.
    Camera requests are also applied to the controller's own viewport so the
    next layout is computed at the zoom the map will show.
    """

    def __init__(self, groups: List[Group], viewport: Viewport,
                 overview: Optional[Bounds] = None, config=None):
        self.config = config if config else Config()
        self.groups: Dict[str, Group] = {g.key: g for g in groups}
        self.viewport = viewport
        self.overview = overview

        self.state = ViewState.COLLAPSED
        self.active_group: Optional[str] = None
        self.overlay: Optional[DetailOverlay] = None
        self.transitions: List[Dict] = []

    def dispatch(self, event: Event) -> List[Effect]:
        if isinstance(event, MarkerClicked):
            return self._activate(event.group_key, zoom_requested=False)
        if isinstance(event, MarkerDoubleClicked):
            return self._activate(event.group_key, zoom_requested=True)
        if isinstance(event, MapClicked):
            if self.state == ViewState.EXPANDED:
                self._collapse()
                return [self._apply(self._overview_request())]
            return []
        if isinstance(event, ViewportChanged):
            self._on_viewport(event.center, event.zoom)
            return []
        raise TypeError(f"Unsupported event: {event!r}")

    def _activate(self, key: str, zoom_requested: bool) -> List[Effect]:
        group = self.groups.get(key)
        if group is None:
            logger.warning(f"Ignoring activation of unknown group {key}")
            return []

        if group.size == 1:
            if self.state == ViewState.EXPANDED:
                self._collapse()
            effects: List[Effect] = [OpenPopup(key)]
            if self.config.RECENTER_SINGLE:
                zoom = self.viewport.zoom + self.config.DETAIL_ZOOM_STEP if zoom_requested else self.viewport.zoom
                effects.append(self._apply(CameraRequest(center=group.coords.as_tuple(),
                                                         zoom=self.viewport.clamp_zoom(zoom))))
            return effects

        if self.state == ViewState.EXPANDED and self.active_group == key:
            if not zoom_requested:
                self._collapse()
                return [self._apply(self._overview_request())]
            # zoom-in on the open group recenters without collapsing
            self._destroy_overlay()
        elif self.state == ViewState.EXPANDED:
            self._collapse()

        target_zoom = self.viewport.clamp_zoom(
            self.viewport.zoom + (self.config.DETAIL_ZOOM_STEP if zoom_requested else 0))
        multiplier = spread_multiplier(target_zoom, zoom_requested, self.config)
        self._expand(group, target_zoom, multiplier)

        if not (self.config.FLY_TO_DETAIL or zoom_requested):
            return []
        points = list(self.overlay.positions) + [group.coords.as_tuple()]
        request = CameraRequest(bounds=Bounds.from_points(points), max_zoom=target_zoom)
        return [self._apply(request)]

    def _expand(self, group: Group, zoom: int, multiplier: float):
        geometry = build_fan_out(group.coords.as_tuple(), group.size, zoom, multiplier, self.config)
        self.overlay = DetailOverlay(
            group_key=group.key,
            assets=list(group.assets),
            positions=geometry.positions,
            connectors=geometry.connectors,
            multiplier=multiplier,
            zoom=zoom,
        )
        group.last_spread_multiplier = multiplier
        if group.marker is not None:
            group.marker.expanded = True
        if self.state != ViewState.EXPANDED or self.active_group != group.key:
            self._transition_to(ViewState.EXPANDED, group.key)

    def _collapse(self):
        self._destroy_overlay()
        group = self.groups.get(self.active_group)
        if group is not None and group.marker is not None:
            group.marker.expanded = False
        self._transition_to(ViewState.COLLAPSED, None)

    def _destroy_overlay(self):
        if self.overlay is not None:
            self.overlay.destroy()
            self.overlay = None

    def _on_viewport(self, center: LatLon, zoom: float):
        self.viewport = self.viewport.with_view(center, zoom)
        if self.state != ViewState.EXPANDED:
            return
        group = self.groups[self.active_group]
        multiplier = group.last_spread_multiplier or spread_multiplier(self.viewport.zoom, config=self.config)
        if self.overlay is not None and self.overlay.zoom == self.viewport.zoom \
                and self.overlay.multiplier == multiplier:
            return
        self._destroy_overlay()
        self._expand(group, self.viewport.zoom, multiplier)

    def _overview_request(self) -> CameraRequest:
        if self.overview is None:
            return CameraRequest(center=self.config.DEFAULT_CENTER, zoom=self.config.DEFAULT_ZOOM)
        return CameraRequest(bounds=self.overview, max_zoom=self.config.OVERVIEW_MAX_ZOOM)

    def _apply(self, request: CameraRequest) -> CameraRequest:
        """Move the controller's viewport to where the camera request lands"""
        if request.bounds is not None:
            center, zoom = self.viewport.fit_bounds(request.bounds, max_zoom=request.max_zoom)
        else:
            center = request.center
            zoom = self.viewport.zoom if request.zoom is None else request.zoom
        self._on_viewport(center, zoom)
        return request

    def _transition_to(self, new_state: ViewState, group_key: Optional[str]):
        old_state, old_group = self.state, self.active_group
        self.state = new_state
        self.active_group = group_key
        self.transitions.append({
            'from': old_state.value, 'to': new_state.value,
            'group': group_key, 'previous_group': old_group, 'timestamp': time.time(),
        })
        logger.info(f"Detail view: {old_state.value}({old_group}) -> {new_state.value}({group_key})")

    def get_state(self) -> Dict:
        return {
            'state': self.state.value,
            'active_group': self.active_group,
            'zoom': self.viewport.zoom,
            'center': list(self.viewport.center),
            'overlay': self.overlay.to_dict() if self.overlay else None,
        }
