# -*- coding: utf-8 -*-
"""Cluster markers and folium map output for the Asset Map"""
import html
import json
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import folium

from config import Config as AppConfig
from models import Asset, Group
from utils.projection import Bounds, Viewport

logger = logging.getLogger(__name__)

CLUSTER_CSS = """
<style>
.asset-cluster { background: transparent; }
.asset-cluster__inner {
    display: flex; align-items: center; justify-content: center;
    width: 38px; height: 38px; border-radius: 50%;
    background: #1E88E5; color: #fff; font-weight: bold; font-size: 14px;
    border: 3px solid #fff; box-shadow: 0 2px 6px rgba(0,0,0,0.3);
    box-sizing: border-box;
}
.asset-cluster--large .asset-cluster__inner { background: #E53935; font-size: 13px; }
.asset-cluster--expanded .asset-cluster__inner { background: #757575; opacity: 0.85; }
.asset-detail-marker { background: transparent; }
.asset-detail-marker__dot {
    width: 14px; height: 14px; border-radius: 50%;
    background: #FB8C00; border: 2px solid #fff; box-shadow: 0 1px 4px rgba(0,0,0,0.4);
    box-sizing: border-box;
}
.asset-map-title {
    position: fixed; top: 10px; left: 50px; z-index: 9999;
    background: rgba(255,255,255,0.9); padding: 6px 12px; border-radius: 6px;
    font-family: 'Segoe UI', Arial, sans-serif; font-size: 16px; font-weight: bold;
}
</style>
"""


class MapRenderError(Exception):
    """The map substrate could not produce output."""


def escape(value) -> str:
    return html.escape('' if value is None else str(value))


def asset_popup_html(asset: Asset) -> str:
    """Popup body for a single asset"""
    parts = [f"<strong>{escape(asset.name)}</strong>",
             f"{escape(asset.city)}, {escape(asset.state)}"]
    if asset.ip:
        parts.append(f"<code>{escape(asset.ip)}</code>")
    if asset.notes:
        parts.append(f"<em>{escape(asset.notes)}</em>")
    return '<br/>'.join(parts)


def cluster_tooltip(group: Group, limit: int = 5) -> str:
    names = [a.name for a in group.assets[:limit]]
    more = group.size - len(names)
    label = ', '.join(names) + (f" and {more} more" if more > 0 else '')
    return f"{group.size} assets: {label}. Click to expand"


@dataclass
class ClusterMarker:
    group_key: str
    location: Tuple[float, float]
    count: int
    popup_html: Optional[str] = None
    tooltip: Optional[str] = None
    large: bool = False
    expanded: bool = False

    @property
    def css_class(self) -> str:
        classes = ['asset-cluster']
        if self.large:
            classes.append('asset-cluster--large')
        if self.expanded:
            classes.append('asset-cluster--expanded')
        return ' '.join(classes)

    @property
    def badge_html(self) -> Optional[str]:
        if self.count <= 1:
            return None
        return f'<span class="asset-cluster__inner">{self.count}</span>'

    def to_dict(self) -> Dict:
        return {
            'group': self.group_key,
            'location': list(self.location),
            'count': self.count,
            'large': self.large,
            'expanded': self.expanded,
            'tooltip': self.tooltip,
        }


class ClusterRenderer:
    """One marker per group, hit-testing, and the folium rendering of map state"""

    def __init__(self, config=None):
        self.config = config if config else AppConfig()
        self.markers: Dict[str, ClusterMarker] = {}
        self.hit_radius = self.config.MARKER_DIAMETER_PX / 2.0

    def render(self, groups: List[Group]) -> List[ClusterMarker]:
        """Clear every marker and build one per group"""
        self.markers = {}
        for group in groups:
            marker = ClusterMarker(
                group_key=group.key,
                location=group.coords.as_tuple(),
                count=group.size,
                large=group.size >= self.config.LARGE_CLUSTER_THRESHOLD,
            )
            if group.size == 1:
                marker.popup_html = asset_popup_html(group.assets[0])
            else:
                marker.tooltip = cluster_tooltip(group)
            group.marker = marker
            self.markers[marker.group_key] = marker
        logger.info(f"Rendered {len(self.markers)} markers")
        return list(self.markers.values())

    def hit_test(self, viewport: Viewport, x: float, y: float) -> Optional[str]:
        """Group key of the marker nearest to screen point (x, y), if within the marker radius"""
        best_key, best_dist = None, None
        for key, marker in self.markers.items():
            mx, my = viewport.to_screen(*marker.location)
            dist = math.hypot(mx - x, my - y)
            if dist <= self.hit_radius and (best_dist is None or dist < best_dist):
                best_key, best_dist = key, dist
        return best_key

    # ------------------------------------------------------------------
    # folium output
    # ------------------------------------------------------------------
    def build_map(self, viewport: Viewport, title: Optional[str] = None,
                  overlay=None, interactive: bool = True) -> folium.Map:
        m = folium.Map(
            location=list(viewport.center),
            zoom_start=viewport.zoom,
            tiles=None,
            width='100%',
            height='100%',
            min_zoom=viewport.min_zoom,
            max_zoom=viewport.max_zoom,
        )
        folium.TileLayer(tiles=self.config.TILE_URL, attr=self.config.TILE_ATTRIBUTION, name='OpenStreetMap').add_to(m)
        m.get_root().header.add_child(folium.Element(CLUSTER_CSS))
        if title:
            m.get_root().html.add_child(folium.Element(f'<div class="asset-map-title">{escape(title)}</div>'))

        layer = folium.FeatureGroup(name=f"Assets ({sum(mk.count for mk in self.markers.values())})")
        for marker in self.markers.values():
            self._add_marker(layer, marker)
        layer.add_to(m)

        detail = self._add_detail_overlay(m, overlay) if overlay is not None else None
        if interactive:
            self._add_event_wiring(m, layer, detail)
        return m

    def render_html(self, viewport: Viewport, title: Optional[str] = None,
                    overlay=None, embed: bool = False, interactive: bool = True) -> str:
        """Full HTML page (or an embeddable iframe snippet) for the current map state"""
        try:
            m = self.build_map(viewport, title, overlay, interactive)
            return m._repr_html_() if embed else m.get_root().render()
        except Exception as e:
            logger.error(f"Error creating asset map: {e}", exc_info=True)
            raise MapRenderError(str(e)) from e

    def _add_marker(self, layer: folium.FeatureGroup, marker: ClusterMarker):
        # `group` lands in the Leaflet marker options for the event script
        if marker.count <= 1:
            folium.Marker(
                location=list(marker.location),
                popup=folium.Popup(marker.popup_html, max_width=250),
                group=marker.group_key,
            ).add_to(layer)
            return
        size = self.config.MARKER_DIAMETER_PX
        folium.Marker(
            location=list(marker.location),
            icon=folium.DivIcon(
                html=marker.badge_html,
                icon_size=(size, size),
                icon_anchor=(size // 2, size // 2),
                class_name=marker.css_class,
            ),
            tooltip=marker.tooltip,
            group=marker.group_key,
        ).add_to(layer)

    def _add_detail_overlay(self, m: folium.Map, overlay) -> folium.FeatureGroup:
        group = folium.FeatureGroup(name=f"Expanded ({len(overlay.assets)} assets)")
        for start, end in overlay.connectors:
            folium.PolyLine(
                locations=[list(start), list(end)],
                color='#FB8C00',
                weight=2,
                opacity=0.8,
            ).add_to(group)
        for asset, position in zip(overlay.assets, overlay.positions):
            folium.Marker(
                location=list(position),
                icon=folium.DivIcon(
                    html='<div class="asset-detail-marker__dot"></div>',
                    icon_size=(14, 14),
                    icon_anchor=(7, 7),
                    class_name='asset-detail-marker',
                ),
                popup=folium.Popup(asset_popup_html(asset), max_width=250),
                tooltip=escape(asset.name),
            ).add_to(group)
        group.add_to(m)
        return group

    def _add_event_wiring(self, m: folium.Map, layer: folium.FeatureGroup,
                          detail: Optional[folium.FeatureGroup]):
        """Send marker clicks, map clicks and pan/zoom to the backend and apply its answer"""
        endpoint = json.dumps(f"{self.config.MAP_EVENTS_URL}?view=page")
        detail_name = detail.get_name() if detail is not None else 'null'

        event_script = f"""
        <script>
        (function() {{
            const ENDPOINT = {endpoint};
            const PENDING_KEY = 'assetMapPendingEffects';
            const CLICK_DELAY = {int(self.config.CLICK_DELAY_MS)};
            let clickTimer = null;
            let moveTimer = null;

            function openPopup(layer, group) {{
                layer.eachLayer(marker => {{
                    if (marker.options.group === group) marker.openPopup();
                }});
            }}

            function applyEffects(map, layer, effects) {{
                (effects || []).forEach(effect => {{
                    if (effect.type === 'camera') {{
                        if (effect.bounds) {{
                            map.fitBounds(effect.bounds, {{maxZoom: effect.max_zoom, animate: effect.animate}});
                        }} else {{
                            map.setView(effect.center, effect.zoom, {{animate: effect.animate}});
                        }}
                    }} else if (effect.type === 'popup') {{
                        openPopup(layer, effect.group);
                    }}
                }});
            }}

            function sendEvent(map, layer, event) {{
                fetch(ENDPOINT, {{
                    method: 'POST',
                    headers: {{'Content-Type': 'application/json'}},
                    body: JSON.stringify(event)
                }})
                .then(resp => resp.ok ? resp.json() : null)
                .then(data => {{
                    if (!data) return;
                    if (data.redraw && data.map_html) {{
                        // the new page is already at the requested camera
                        const popups = (data.effects || []).filter(e => e.type === 'popup');
                        sessionStorage.setItem(PENDING_KEY, JSON.stringify(popups));
                        document.open();
                        document.write(data.map_html);
                        document.close();
                    }} else {{
                        applyEffects(map, layer, data.effects);
                    }}
                }})
                .catch(err => console.warn('Map event failed', err));
            }}

            document.addEventListener('DOMContentLoaded', function() {{
                const map = {m.get_name()};
                const layer = {layer.get_name()};
                const detail = {detail_name};

                layer.eachLayer(marker => {{
                    marker.on('click', e => {{
                        L.DomEvent.stopPropagation(e);
                        clearTimeout(clickTimer);
                        clickTimer = setTimeout(() => sendEvent(map, layer, {{type: 'click', group: marker.options.group}}), CLICK_DELAY);
                    }});
                    marker.on('dblclick', e => {{
                        L.DomEvent.stopPropagation(e);
                        clearTimeout(clickTimer);
                        sendEvent(map, layer, {{type: 'dblclick', group: marker.options.group}});
                    }});
                }});
                if (detail) {{
                    detail.eachLayer(item => item.on('click dblclick', L.DomEvent.stopPropagation));
                }}

                map.on('click', () => {{
                    clearTimeout(clickTimer);
                    clickTimer = setTimeout(() => sendEvent(map, layer, {{type: 'map_click'}}), CLICK_DELAY);
                }});
                map.on('dblclick', () => clearTimeout(clickTimer));
                map.on('zoomend moveend', () => {{
                    clearTimeout(moveTimer);
                    moveTimer = setTimeout(() => {{
                        const c = map.getCenter();
                        sendEvent(map, layer, {{type: 'viewport', center: [c.lat, c.lng], zoom: map.getZoom()}});
                    }}, 150);
                }});

                const pending = JSON.parse(sessionStorage.getItem(PENDING_KEY) || '[]');
                sessionStorage.removeItem(PENDING_KEY);
                applyEffects(map, layer, pending);
            }});
        }})();
        </script>
        """

        m.get_root().html.add_child(folium.Element(event_script))


def overview_bounds(groups: List[Group], padding: float) -> Optional[Bounds]:
    """Padded bounds of every group, or None when there is nothing to show"""
    bounds = Bounds.from_points(g.coords.as_tuple() for g in groups)
    return bounds.pad(padding) if bounds else None
