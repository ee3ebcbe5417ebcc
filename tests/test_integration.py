import pytest

from app import create_app
from config import Config
from fakes import texas_geocoder
from main import AssetMapTool
from utils.api_manager import RequestPacer

PAYLOAD = {
    'title': 'Field Assets',
    'assets': [
        {'name': 'S1', 'city': 'Austin', 'state': 'TX', 'notes': 'Rack 4'},
        {'name': 'S2', 'city': 'Austin', 'state': 'TX'},
        {'name': 'S3', 'city': 'Dallas', 'state': 'TX'},
    ],
}


@pytest.fixture
def app(tmp_path, clock):
    class TestConfig(Config):
        DATA_FILE = str(tmp_path / 'assets.json')
        DATABASE_URL = 'sqlite://'

    tool = AssetMapTool(config=TestConfig(), client=texas_geocoder(),
                        pacer=RequestPacer(1.0, clock=clock, sleep=clock.sleep))
    app = create_app(TestConfig, tool=tool)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def test_metrics_endpoint(client):
    resp = client.get('/metrics')
    assert resp.status_code == 200
    assert b'asset_map_render_cycles_total' in resp.data


def test_health_endpoints(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}
    assert client.get('/readyz').status_code == 200


def test_root_redirects_until_configured(client):
    resp = client.get('/')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/configure')
    assert client.get('/configure').status_code == 200
    assert client.get('/api/assets').status_code == 404
    assert client.get('/api/map').status_code == 404


@pytest.mark.parametrize('payload, message', [
    ({'assets': PAYLOAD['assets']}, None),
    ({'title': 'x', 'assets': []}, 'Assets must be a non-empty array'),
    ({'title': 'x', 'assets': [{'name': 'S1', 'city': 'Austin'}]}, None),
    ({'title': 'x', 'assets': [{'name': 'S1', 'city': 'Austin', 'state': ' '}]}, 'missing required field: state'),
])
def test_save_assets_validation(client, payload, message):
    resp = client.post('/api/assets', json=payload)
    assert resp.status_code == 400
    assert 'error' in resp.get_json()
    if message:
        assert message in resp.get_json()['error']


def test_save_assets_rejects_non_json(client):
    resp = client.post('/api/assets', data='nope', content_type='text/plain')
    assert resp.status_code == 400


def test_save_and_fetch_assets(client):
    resp = client.post('/api/assets', json=PAYLOAD)
    assert resp.status_code == 201
    assert client.get('/api/assets').get_json() == PAYLOAD


def test_map_and_events(client):
    client.post('/api/assets', json=PAYLOAD)

    assert client.post('/api/map/events', json={'type': 'map_click'}).status_code == 409

    data = client.get('/api/map').get_json()
    assert data['status'] == 'ok'
    assert data['title'] == 'Field Assets'
    assert data['warnings'] == []
    assert [m['count'] for m in data['markers']] == [2, 1]
    assert data['state']['state'] == 'collapsed'
    assert data['map_html']

    austin = data['markers'][0]['group']
    resp = client.post('/api/map/events', json={'type': 'click', 'group': austin})
    event = resp.get_json()
    assert resp.status_code == 200
    assert event['state'] == 'expanded'
    assert event['active_group'] == austin
    assert len(event['overlay']['connectors']) == 3
    assert event['effects'][0]['type'] == 'camera'

    event = client.post('/api/map/events', json={'type': 'viewport', 'center': [30.27, -97.74], 'zoom': 11}).get_json()
    assert event['overlay']['zoom'] == 11

    event = client.post('/api/map/events', json={'type': 'map_click'}).get_json()
    assert event['state'] == 'collapsed'
    assert event['overlay'] is None


def test_invalid_event(client):
    client.post('/api/assets', json=PAYLOAD)
    client.get('/api/map')
    assert client.post('/api/map/events', json={'type': 'viewport'}).status_code == 400
    assert client.post('/api/map/events', json=['click']).status_code == 400


def test_map_page(client):
    client.post('/api/assets', json=PAYLOAD)
    resp = client.get('/')
    assert resp.status_code == 200
    assert b'Field Assets' in resp.data
    assert b'leaflet' in resp.data.lower()


def test_map_page_sends_events_to_backend(client):
    client.post('/api/assets', json=PAYLOAD)
    page = client.get('/').get_data(as_text=True)
    assert '/api/map/events' in page
    assert "'dblclick'" in page
    assert 'zoomend moveend' in page


def test_events_report_redraw_and_full_page(client):
    client.post('/api/assets', json=PAYLOAD)
    austin = client.get('/api/map').get_json()['markers'][0]['group']

    event = client.post('/api/map/events?view=page', json={'type': 'click', 'group': austin}).get_json()
    assert event['redraw']
    assert '<html' in event['map_html'] and 'srcdoc' not in event['map_html']
    assert 'asset-cluster asset-cluster--expanded' in event['map_html']

    def viewport(zoom):
        return client.post('/api/map/events', json={'type': 'viewport', 'center': [30.27, -97.74],
                                                  'zoom': zoom}).get_json()

    event = viewport(14)
    assert event['redraw'] and event['overlay']['zoom'] == 14
    assert not viewport(13.6)['redraw']

    event = viewport(10.6)
    assert event['redraw']
    assert event['overlay']['zoom'] == 11
    assert not event['effects']
