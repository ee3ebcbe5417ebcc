"""Configuration settings for the Asset Map"""
import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class Config:
    # Storage
    DATA_DIR = os.getenv('ASSET_MAP_DATA_DIR', os.path.join(BASE_DIR, 'data'))
    DATA_FILE = os.getenv('ASSET_MAP_DATA_FILE', os.path.join(DATA_DIR, 'assets.json'))
    MAP_OUTPUT_FILE = os.getenv('ASSET_MAP_OUTPUT', os.path.join(DATA_DIR, 'asset_map.html'))
    DATABASE_URL = os.getenv('DATABASE_URL', f"sqlite:///{os.path.join(DATA_DIR, 'geocode_cache.db')}")

    # Geocoding (OpenStreetMap Nominatim usage policy: max 1 request/second, identify the app)
    GEOCODER_URL = os.getenv('GEOCODER_URL', 'https://nominatim.openstreetmap.org/search')
    GEOCODER_USER_AGENT = os.getenv('GEOCODER_USER_AGENT', 'asset-map/1.0 (self-hosted)')
    GEOCODER_LANGUAGE = os.getenv('GEOCODER_LANGUAGE', 'en')
    GEOCODE_TIMEOUT = float(os.getenv('GEOCODE_TIMEOUT', '10'))
    GEOCODE_MIN_INTERVAL = float(os.getenv('GEOCODE_MIN_INTERVAL', '1.0'))  # seconds between batches
    GEOCODE_BATCH_SIZE = int(os.getenv('GEOCODE_BATCH_SIZE', '5'))

    # Remote asset source
    REMOTE_SOURCE_TIMEOUT = float(os.getenv('REMOTE_SOURCE_TIMEOUT', '15'))
    MAX_PAYLOAD_BYTES = 1_000_000

    # Clustering
    COORDINATE_PRECISION = 4  # decimal places of the coarsening grid (~11 m)
    MARKER_DIAMETER_PX = 38
    COLLISION_BUFFER_PX = 8
    LARGE_CLUSTER_THRESHOLD = int(os.getenv('LARGE_CLUSTER_THRESHOLD', '10'))

    # Fan-out layout (screen pixels)
    FAN_OUT_BASE_RADIUS_PX = 30
    FAN_OUT_RADIUS_PER_ASSET_PX = 12
    FAN_OUT_MIN_RADIUS_PX = 40
    FAN_OUT_MAX_RADIUS_PX = 120
    BRANCH_OFFSET_PX = 18
    SPREAD_REFERENCE_ZOOM = 8
    SPREAD_PER_ZOOM_LEVEL = 0.05
    SPREAD_MAX_MULTIPLIER = 1.4
    ZOOM_REQUEST_SPREAD = 1.25

    # Map view
    DEFAULT_TITLE = 'IT Assets Map'
    DEFAULT_CENTER = (39.5, -98.35)
    DEFAULT_ZOOM = 4
    MIN_ZOOM = 0
    MAX_ZOOM = 18
    VIEWPORT_WIDTH = int(os.getenv('VIEWPORT_WIDTH', '1024'))
    VIEWPORT_HEIGHT = int(os.getenv('VIEWPORT_HEIGHT', '768'))
    OVERVIEW_PADDING = 0.2  # fraction of the bounds added on every side
    OVERVIEW_MAX_ZOOM = int(os.getenv('OVERVIEW_MAX_ZOOM', '12'))
    DETAIL_ZOOM_STEP = 2  # zoom levels added by an explicit zoom-in activation
    FLY_TO_DETAIL = os.getenv('FLY_TO_DETAIL', 'true').lower() == 'true'
    RECENTER_SINGLE = os.getenv('RECENTER_SINGLE', 'true').lower() == 'true'
    TILE_URL = 'https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png'
    TILE_ATTRIBUTION = '&copy; <a href="https://www.openstreetmap.org/">OpenStreetMap</a> contributors'
    MAP_EVENTS_URL = os.getenv('MAP_EVENTS_URL', '/api/map/events')
    CLICK_DELAY_MS = 250  # a click waits this long for a possible double-click

    # User-visible messages
    NO_ASSETS_PLOTTED_MESSAGE = 'Unable to plot any assets. Check that city/state values are valid.'
    MAP_UNAVAILABLE_MESSAGE = 'Map library failed to load. Asset list is still available.'
    ASSETS_UNAVAILABLE_MESSAGE = 'Unable to load assets. Try refreshing or reconfiguring.'
