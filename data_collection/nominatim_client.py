"""OpenStreetMap Nominatim place-name search client"""
import logging
from typing import Optional

import requests

from config import Config
from models import ResolvedCoordinate

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """The external lookup failed (network, HTTP status, malformed body)."""


class NominatimClient:
    """Single-result place-name search returning the first candidate's coordinates"""

    def __init__(self, config=None, session: Optional[requests.Session] = None):
        self.config = config if config else Config()
        self.base_url = self.config.GEOCODER_URL
        self.timeout = self.config.GEOCODE_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': self.config.GEOCODER_USER_AGENT,
            'Accept-Language': self.config.GEOCODER_LANGUAGE,
        })

    def search(self, query: str) -> Optional[ResolvedCoordinate]:
        """
        Look up a free-form place name.

        Returns:
            The first candidate's coordinates, or None when there is no candidate

        Raises:
            GeocodingError: on timeout, connection failure, HTTP error or malformed response
        """
        params = {'format': 'json', 'q': query, 'limit': 1}
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise GeocodingError(f"Timeout after {self.timeout}s looking up '{query}'")
        except requests.exceptions.RequestException as e:
            raise GeocodingError(f"Connection error looking up '{query}': {e}")

        if response.status_code != 200:
            raise GeocodingError(f"Geocoding request failed with status {response.status_code}")

        try:
            results = response.json()
        except ValueError:
            raise GeocodingError(f"Malformed geocoding response for '{query}'")

        if not isinstance(results, list) or not results:
            return None

        first = results[0]
        try:
            return ResolvedCoordinate(float(first['lat']), float(first['lon']))
        except (KeyError, TypeError, ValueError):
            raise GeocodingError(f"Malformed geocoding candidate for '{query}': {first!r}")
