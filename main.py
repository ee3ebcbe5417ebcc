"""Main application for the Asset Map"""
import argparse
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from analysis.detail_view import (CameraRequest, DetailViewController, MapClicked,
                                  MarkerClicked, MarkerDoubleClicked)
from analysis.proximity_merger import merge_groups
from config import Config
from data_collection.nominatim_client import NominatimClient
from data_preparation.asset_loader import AssetLoader, AssetSourceError, save_payload
from data_preparation.coordinate_resolver import CoordinateResolver
from data_preparation.location_grouper import LocationGroup, group_assets_by_location
from models import Asset, Group
from utils.api_manager import RequestPacer
from utils.cache import GeocodeCache
from utils.map_generator import ClusterMarker, ClusterRenderer, MapRenderError, overview_bounds
from utils.metrics import dropped_assets_counter, metrics_collector
from utils.projection import Bounds, Viewport

logger = logging.getLogger(__name__)


@dataclass
class RenderResult:
    """Outcome of one fetch-resolve-merge-render cycle"""
    cycle_id: int
    title: str
    groups: List[Group]
    dropped: List[Asset]
    markers: List[ClusterMarker]
    camera: CameraRequest
    viewport: Viewport
    overview: Optional[Bounds] = None
    warnings: List[str] = field(default_factory=list)
    stale: bool = False

    @property
    def plotted(self) -> int:
        return sum(g.size for g in self.groups)

    def summary(self) -> Dict:
        return {
            'cycle': self.cycle_id,
            'groups': len(self.groups),
            'plotted': self.plotted,
            'dropped': [a.name for a in self.dropped],
            'stale': self.stale,
        }


class AssetMapTool:
    """Asset geocoding, clustering and detail-view engine behind the map page"""

    def __init__(self, config=None, cache: Optional[GeocodeCache] = None,
                 client: Optional[NominatimClient] = None,
                 pacer: Optional[RequestPacer] = None,
                 loader: Optional[AssetLoader] = None):
        self.config = config if config else Config()
        self.cache = cache if cache is not None else GeocodeCache()
        self.client = client or NominatimClient(self.config)
        # one pacing context for every resolver this engine creates
        self.pacer = pacer or RequestPacer(self.config.GEOCODE_MIN_INTERVAL)
        self.loader = loader or AssetLoader(self.config)

        self.renderer = ClusterRenderer(self.config)
        self.controller: Optional[DetailViewController] = None
        self.result: Optional[RenderResult] = None
        self.title = self.config.DEFAULT_TITLE

        self._cycle = 0
        self._lock = threading.RLock()
        # held from grouping through commit; a second load waits its turn
        self._cycle_lock = threading.Lock()

    def default_viewport(self) -> Viewport:
        return Viewport(
            center=tuple(self.config.DEFAULT_CENTER),
            zoom=self.config.DEFAULT_ZOOM,
            width=self.config.VIEWPORT_WIDTH,
            height=self.config.VIEWPORT_HEIGHT,
            min_zoom=self.config.MIN_ZOOM,
            max_zoom=self.config.MAX_ZOOM,
        )

    def new_resolver(self) -> CoordinateResolver:
        return CoordinateResolver(client=self.client, cache=self.cache, pacer=self.pacer, config=self.config)

    # ---------------------- Render cycle ----------------------
    def load_and_render(self, path: Optional[str] = None, viewport: Optional[Viewport] = None) -> RenderResult:
        """Read the stored asset document (and remote source) then run a render cycle"""
        warnings = []
        try:
            document = self.loader.load(path)
            title, assets = document.title, document.assets
        except AssetSourceError as e:
            logger.warning(f"Asset source unavailable: {e}")
            title, assets = self.config.DEFAULT_TITLE, []
            warnings.append(self.config.ASSETS_UNAVAILABLE_MESSAGE)
        result = self.run_render_cycle(assets, viewport=viewport, title=title)
        result.warnings[:0] = warnings
        return result

    def import_csv(self, csv_path: str, title: Optional[str] = None, save: bool = False) -> RenderResult:
        """
        Render assets from a CSV export.

        Args:
            csv_path: CSV file with name/city/state (and optional notes/ip) columns
            title: Map title, the default title when omitted
            save: Also store the import as the asset document the web app serves

        Raises:
            AssetSourceError: The CSV could not be read or lacks required columns
        """
        assets, skipped = self.loader.load_csv(csv_path)
        if skipped:
            logger.warning(f"Skipped {skipped} CSV rows without name, city and state")
        title = title or self.config.DEFAULT_TITLE
        if save:
            save_payload(self.config.DATA_FILE, {'title': title, 'assets': [a.to_dict() for a in assets]})
        return self.run_render_cycle(assets, title=title)

    @metrics_collector.track_render_cycle
    def run_render_cycle(self, assets: List[Asset], viewport: Optional[Viewport] = None,
                         title: Optional[str] = None, fit_to_assets: bool = True) -> RenderResult:
        """
        Group, resolve, merge and render the given assets.

        The merge runs once per load at the zoom the map lands on: the overview
        of the resolved locations when fit_to_assets is set, otherwise the
        supplied viewport. Later pan/zoom never re-clusters.

        Returns:
            RenderResult; `stale` is set when the session was invalidated or a
            newer cycle started meanwhile, in which case the current session is
            left untouched. Cycles run one at a time.
        """
        with self._cycle_lock:
            return self._run_cycle(assets, viewport, title, fit_to_assets)

    def _run_cycle(self, assets: List[Asset], viewport: Optional[Viewport], title: Optional[str],
                   fit_to_assets: bool) -> RenderResult:
        with self._lock:
            self._cycle += 1
            cycle_id = self._cycle
        viewport = viewport or self.default_viewport()
        title = title or self.config.DEFAULT_TITLE
        logger.info(f"Render cycle {cycle_id}: {len(assets)} assets")

        located = group_assets_by_location(assets)
        resolved = self._resolve(located)
        groups, dropped = self._build_groups(located, resolved)

        warnings = []
        overview = overview_bounds(groups, self.config.OVERVIEW_PADDING)
        if overview is None:
            if assets:
                warnings.append(self.config.NO_ASSETS_PLOTTED_MESSAGE)
            camera = CameraRequest(center=tuple(self.config.DEFAULT_CENTER),
                                   zoom=self.config.DEFAULT_ZOOM, animate=False)
            view = viewport.with_view(camera.center, camera.zoom)
        else:
            camera = CameraRequest(bounds=overview, max_zoom=self.config.OVERVIEW_MAX_ZOOM, animate=False)
            if fit_to_assets:
                center, zoom = viewport.fit_bounds(overview, max_zoom=self.config.OVERVIEW_MAX_ZOOM)
                view = viewport.with_view(center, zoom)
            else:
                view = viewport

        merged = self._merge(groups, view)
        renderer = ClusterRenderer(self.config)
        markers = renderer.render(merged)

        result = RenderResult(
            cycle_id=cycle_id,
            title=title,
            groups=merged,
            dropped=dropped,
            markers=markers,
            camera=camera,
            viewport=view,
            overview=overview,
            warnings=warnings,
        )

        with self._lock:
            if cycle_id != self._cycle:
                logger.warning(f"Render cycle {cycle_id} superseded by cycle {self._cycle}; discarding")
                result.stale = True
                return result
            self.renderer = renderer
            self.controller = DetailViewController(merged, view, overview=overview, config=self.config)
            self.result = result
            self.title = title

        logger.info(f"Render cycle {cycle_id}: {len(merged)} markers, {result.plotted} assets plotted, "
                    f"{len(dropped)} dropped")
        return result

    @metrics_collector.track_stage('resolve')
    def _resolve(self, located: Dict[str, LocationGroup]):
        resolver = self.new_resolver()
        return resolver.resolve_many((g.city, g.state) for g in located.values())

    def _build_groups(self, located: Dict[str, LocationGroup], resolved) -> Tuple[List[Group], List[Asset]]:
        groups, dropped = [], []
        for key, location in located.items():
            coords = resolved.get(key)
            if coords is None:
                for asset in location.assets:
                    logger.warning(f"No coordinates found for {asset.name} ({location.city}, {location.state})")
                dropped.extend(location.assets)
                continue
            groups.append(Group(coords=coords, assets=list(location.assets), location_keys=[key]))
        if dropped:
            dropped_assets_counter.inc(len(dropped))
        return groups, dropped

    @metrics_collector.track_stage('merge')
    def _merge(self, groups: List[Group], view: Viewport) -> List[Group]:
        return merge_groups(groups, view.to_screen, config=self.config)

    def invalidate(self):
        """Drop the current session and supersede any cycle still running"""
        with self._lock:
            self._cycle += 1
            self.controller = None
            self.result = None

    # ---------------------- Interaction ----------------------
    def dispatch(self, event) -> List:
        """Route one map event into the detail view; no-op before the first cycle"""
        with self._lock:
            if self.controller is None:
                return []
            return self.controller.dispatch(event)

    def handle_click(self, x: float, y: float, double: bool = False) -> List:
        """Screen-space click: hit-test the markers, then dispatch"""
        with self._lock:
            if self.controller is None:
                return []
            key = self.renderer.hit_test(self.controller.viewport, x, y)
            if key is None:
                event = MapClicked()
            elif double:
                event = MarkerDoubleClicked(key)
            else:
                event = MarkerClicked(key)
            return self.controller.dispatch(event)

    def render_html(self, embed: bool = False, interactive: bool = True) -> Optional[str]:
        """HTML for the current session, or None when the map cannot be produced.

        interactive pages post their events back to the backend; a written
        file has no backend to answer them.
        """
        with self._lock:
            if self.controller is None:
                viewport, overlay = self.default_viewport(), None
            else:
                viewport, overlay = self.controller.viewport, self.controller.overlay
            try:
                return self.renderer.render_html(viewport, self.title, overlay, embed=embed, interactive=interactive)
            except MapRenderError as e:
                logger.warning(f"Map output unavailable: {e}")
                if self.result is not None and self.config.MAP_UNAVAILABLE_MESSAGE not in self.result.warnings:
                    self.result.warnings.append(self.config.MAP_UNAVAILABLE_MESSAGE)
                return None


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Render the asset map to an HTML file')
    parser.add_argument('--csv', help='Import assets from a CSV export instead of the stored asset document')
    parser.add_argument('--title', help='Map title for a CSV import')
    parser.add_argument('--save', action='store_true',
                        help='Store the CSV import as the asset document served by the web app')
    parser.add_argument('--output', help='HTML file to write (defaults to ASSET_MAP_OUTPUT)')
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point"""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        tool = AssetMapTool()
        if args.csv:
            result = tool.import_csv(args.csv, title=args.title, save=args.save)
        else:
            result = tool.load_and_render()
        for warning in result.warnings:
            logger.warning(warning)

        page = tool.render_html(interactive=False)
        if page is None:
            raise RuntimeError("Map output could not be produced")
        output = args.output or tool.config.MAP_OUTPUT_FILE
        os.makedirs(os.path.dirname(os.path.abspath(output)), exist_ok=True)
        with open(output, "w", encoding="utf-8") as f:
            f.write(page)

        logger.info(f"Map complete: {result.summary()}. Saved to {output}")

    except Exception as e:
        logger.error(f"Application error: {e}")
        raise


if __name__ == "__main__":
    main()
