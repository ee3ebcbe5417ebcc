import pytest
from pydantic import ValidationError

from config_validator import AssetPayload, MapEventRequest, validate_asset_payload


def test_valid_payload_is_normalized():
    result = validate_asset_payload({
        'title': 'Lab',
        'assets': [{'name': ' S1 ', 'city': 'Austin', 'state': 'TX', 'ip': '10.0.0.1'}],
    })
    assert result['assets'] == [{'name': 'S1', 'city': 'Austin', 'state': 'TX', 'ip': '10.0.0.1'}]


@pytest.mark.parametrize('payload', [
    {'assets': [{'name': 'S1', 'city': 'Austin', 'state': 'TX'}]},
    {'title': '  ', 'assets': [{'name': 'S1', 'city': 'Austin', 'state': 'TX'}]},
    {'title': 'Lab', 'assets': []},
    {'title': 'Lab', 'assets': [{'name': 'S1', 'city': '', 'state': 'TX'}]},
    {'title': 'Lab', 'assets': [{'name': 'S1', 'city': 'Austin', 'state': 'TX', 'notes': 5}]},
    {'title': 'Lab', 'assets': [], 'remoteSource': {'enabled': True}},
    {'title': 'Lab', 'assets': [], 'remoteSource': {'enabled': True, 'url': 'ftp://x'}},
])
def test_invalid_payloads(payload):
    with pytest.raises(ValidationError):
        validate_asset_payload(payload)


def test_remote_source_allows_empty_assets():
    result = validate_asset_payload({
        'title': 'Remote Source Map',
        'assets': [],
        'remoteSource': {'enabled': True, 'url': 'https://example.com/assets'},
    })
    assert result['remoteSource'] == {'enabled': True, 'url': 'https://example.com/assets'}
    assert result['assets'] == []


def test_missing_field_message():
    with pytest.raises(ValidationError) as exc:
        AssetPayload(title='Lab', assets=[{'name': 'S1', 'city': ' ', 'state': 'TX'}])
    assert 'missing required field: city' in str(exc.value)


def test_map_event_requests():
    assert MapEventRequest(type='click', group='30.267200,-97.743100').group
    assert MapEventRequest(type='dblclick', x=10, y=20).x == 10
    assert MapEventRequest(type='viewport', center=[30.0, -97.0], zoom=9).center == (30.0, -97.0)
    assert MapEventRequest(type='viewport', center=[30.0, -97.0], zoom=10.6).zoom == 10.6
    with pytest.raises(ValidationError):
        MapEventRequest(type='viewport', center=[30.0, -97.0], zoom=22.5)
    with pytest.raises(ValidationError):
        MapEventRequest(type='click')
    with pytest.raises(ValidationError):
        MapEventRequest(type='viewport', zoom=9)
    with pytest.raises(ValidationError):
        MapEventRequest(type='hover')
