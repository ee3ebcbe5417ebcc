import threading
import time

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

import main as main_module
from analysis.detail_view import MarkerClicked, ViewState
from data_preparation.asset_loader import read_payload
from fakes import AUSTIN, FakeGeocoder, make_assets, texas_geocoder
from main import AssetMapTool, parse_args
from utils.api_manager import RequestPacer
from utils.map_generator import MapRenderError
from utils.metrics import REGISTRY


@pytest.fixture
def tool(config, cache, geocoder, pacer):
    return AssetMapTool(config=config, cache=cache, client=geocoder, pacer=pacer)


def test_austin_dallas_scenario(tool, geocoder):
    assets = make_assets(('S1', 'Austin', 'TX'), ('S2', 'Austin', 'TX'), ('S3', 'Dallas', 'TX'))
    result = tool.run_render_cycle(assets)

    assert [g.size for g in result.groups] == [2, 1]
    assert result.warnings == []
    assert result.dropped == []
    assert sorted(geocoder.queries) == ['Austin, TX', 'Dallas, TX']

    austin = result.groups[0]
    assert austin.coords == AUSTIN
    tool.dispatch(MarkerClicked(austin.key))
    assert tool.controller.state == ViewState.EXPANDED
    assert len(tool.controller.overlay.positions) == 2
    assert len(tool.controller.overlay.connectors) == 3


def test_click_by_screen_position(tool):
    tool.run_render_cycle(make_assets(('S1', 'Austin', 'TX'), ('S2', 'Austin', 'TX'), ('S3', 'Dallas', 'TX')))
    view = tool.controller.viewport
    x, y = view.to_screen(*AUSTIN.as_tuple())

    tool.handle_click(x, y)
    assert tool.controller.state == ViewState.EXPANDED

    tool.handle_click(1, 1)
    assert tool.controller.state == ViewState.COLLAPSED


def test_one_failed_lookup_among_many(config, cache, pacer):
    client = texas_geocoder()
    client.errors = {'houston, tx'}
    tool = AssetMapTool(config=config, cache=cache, client=client, pacer=pacer)
    assets = make_assets(('S1', 'Austin', 'TX'), ('S2', 'Houston', 'TX'), ('S3', 'Dallas', 'TX'))

    result = tool.run_render_cycle(assets)
    assert result.plotted == len(assets) - 1
    assert [a.name for a in result.dropped] == ['S2']
    assert result.warnings == []


def test_only_asset_fails(config, cache, pacer):
    tool = AssetMapTool(config=config, cache=cache, client=FakeGeocoder(), pacer=pacer)
    result = tool.run_render_cycle(make_assets(('S1', 'Atlantis', 'XX')))
    assert result.groups == []
    assert result.warnings == [config.NO_ASSETS_PLOTTED_MESSAGE]
    assert result.camera.center == tuple(config.DEFAULT_CENTER)


def test_no_assets_no_warning(tool):
    result = tool.run_render_cycle([])
    assert result.groups == [] and result.warnings == []


def test_second_cycle_uses_cache(tool, geocoder):
    assets = make_assets(('S1', 'Austin', 'TX'))
    tool.run_render_cycle(assets)
    tool.run_render_cycle(assets)
    assert geocoder.queries == ['Austin, TX']


def test_stale_cycle_does_not_replace_session(tool, monkeypatch):
    tool.run_render_cycle(make_assets(('S1', 'Austin', 'TX')))
    current = tool.result

    original = tool._merge

    def merge_then_restart(groups, view):
        # a newer load starts while this one is still merging
        tool._cycle += 1
        return original(groups, view)

    monkeypatch.setattr(tool, '_merge', merge_then_restart)
    result = tool.run_render_cycle(make_assets(('S2', 'Dallas', 'TX')))
    assert result.stale
    assert tool.result is current


def test_assets_saved_mid_cycle_discard_it(tool, monkeypatch):
    original = tool._merge

    def merge_then_invalidate(groups, view):
        tool.invalidate()
        return original(groups, view)

    monkeypatch.setattr(tool, '_merge', merge_then_invalidate)
    result = tool.run_render_cycle(make_assets(('S1', 'Austin', 'TX')))
    assert result.stale
    assert tool.result is None and tool.controller is None


def test_concurrent_cycles_run_one_at_a_time(config, cache, monkeypatch):
    tool = AssetMapTool(config=config, cache=cache, client=texas_geocoder(), pacer=RequestPacer(0.0))
    active, peak = [0], [0]
    counter_lock = threading.Lock()
    original = tool._resolve

    def tracked_resolve(located):
        with counter_lock:
            active[0] += 1
            peak[0] = max(peak[0], active[0])
        try:
            time.sleep(0.05)
            return original(located)
        finally:
            with counter_lock:
                active[0] -= 1

    monkeypatch.setattr(tool, '_resolve', tracked_resolve)
    barrier = threading.Barrier(2)
    results = []

    def load(rows):
        barrier.wait()
        results.append(tool.run_render_cycle(make_assets(*rows)))

    threads = [threading.Thread(target=load, args=([('S1', 'Austin', 'TX')],)),
               threading.Thread(target=load, args=([('S2', 'Dallas', 'TX')],))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert peak[0] == 1
    assert sorted(r.cycle_id for r in results) == [1, 2]
    assert not any(r.stale for r in results)
    assert tool.result.cycle_id == 2


def test_map_render_failure_keeps_results(tool, monkeypatch, config):
    result = tool.run_render_cycle(make_assets(('S1', 'Austin', 'TX')))

    def broken(*args, **kwargs):
        raise MapRenderError('tiles unavailable')

    monkeypatch.setattr(tool.renderer, 'render_html', broken)
    assert tool.render_html() is None
    assert config.MAP_UNAVAILABLE_MESSAGE in result.warnings
    assert len(result.groups) == 1


def test_load_and_render_missing_file(tool, tmp_path, config):
    result = tool.load_and_render(str(tmp_path / 'missing.json'))
    assert result.groups == []
    assert result.warnings == [config.ASSETS_UNAVAILABLE_MESSAGE]


def test_dropped_assets_metric(config, cache, pacer):
    before = REGISTRY.get_sample_value('asset_map_dropped_assets_total') or 0
    tool = AssetMapTool(config=config, cache=cache, client=FakeGeocoder(), pacer=pacer)
    tool.run_render_cycle(make_assets(('S1', 'Atlantis', 'XX'), ('S2', 'Atlantis', 'XX')))
    assert REGISTRY.get_sample_value('asset_map_dropped_assets_total') == before + 2


CSV_ROWS = 'name,city,state\nS1,Austin,TX\nS2,Austin,TX\nS3,Dallas,TX\n,Houston,TX\n'


def test_import_csv_renders_and_saves(tool, tmp_path, config, monkeypatch):
    path = tmp_path / 'assets.csv'
    path.write_text(CSV_ROWS, encoding='utf-8')
    monkeypatch.setattr(config, 'DATA_FILE', str(tmp_path / 'assets.json'))

    result = tool.import_csv(str(path), title='Lab', save=True)
    assert [g.size for g in result.groups] == [2, 1]
    assert result.title == 'Lab'

    stored = read_payload(config.DATA_FILE)
    assert stored['title'] == 'Lab'
    assert [a['name'] for a in stored['assets']] == ['S1', 'S2', 'S3']


def test_parse_args_defaults():
    args = parse_args([])
    assert args.csv is None and args.output is None and not args.save


def test_main_writes_csv_import(tool, tmp_path, monkeypatch):
    path = tmp_path / 'assets.csv'
    path.write_text(CSV_ROWS, encoding='utf-8')
    output = tmp_path / 'out' / 'map.html'
    monkeypatch.setattr(main_module, 'AssetMapTool', lambda: tool)

    main_module.main(['--csv', str(path), '--title', 'Lab Assets', '--output', str(output)])

    page = output.read_text(encoding='utf-8')
    assert 'Lab Assets' in page
    assert '/api/map/events' not in page
    assert tool.result.plotted == 3


cities = st.sampled_from([('Austin', 'TX'), ('Dallas', 'TX'), ('Houston', 'TX'), ('Denver', 'CO'),
                          ('Atlantis', 'XX'), ('', 'TX')])


@given(st.lists(cities, max_size=25))
@settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_every_asset_is_plotted_or_dropped_once(config, cache, clock, rows):
    tool = AssetMapTool(config=config, cache=cache, client=texas_geocoder(),
                        pacer=RequestPacer(0.0, clock=clock, sleep=clock.sleep))
    assets = make_assets(*[(f"a{i}", city, state) for i, (city, state) in enumerate(rows)])

    result = tool.run_render_cycle(assets)
    names = [a.name for g in result.groups for a in g.assets] + [a.name for a in result.dropped]
    assert sorted(names) == sorted(a.name for a in assets)
