"""Durable geocode cache for the Asset Map"""
import logging
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from database import Database, db as default_db
from models import GeocodeCacheEntry, ResolvedCoordinate

logger = logging.getLogger(__name__)


class GeocodeCache:
    """
    LocationKey -> ResolvedCoordinate store backed by the geocode_cache table.
    Entries never expire and are never overwritten or removed. Storage errors
    are logged and treated as a miss so resolution can carry on without the cache.
    """

    def __init__(self, database: Optional[Database] = None):
        self._db = database or default_db

    def _session(self):
        if not self._db.is_initialized and not self._db.initialize():
            raise SQLAlchemyError("geocode cache database unavailable")
        return self._db.get_session()

    def get(self, key: str) -> Optional[ResolvedCoordinate]:
        """Get a cached coordinate, or None on a miss or a storage failure."""
        try:
            session = self._session()
            try:
                entry = session.get(GeocodeCacheEntry, key)
                if entry is None:
                    return None
                return ResolvedCoordinate(float(entry.lat), float(entry.lon))
            finally:
                session.close()
        except SQLAlchemyError as e:
            logger.warning(f"Unable to read geocode cache for '{key}': {e}")
            return None

    def put(self, key: str, coords: ResolvedCoordinate) -> bool:
        """Add a coordinate for key. Returns False when nothing was written."""
        session = None
        try:
            session = self._session()
            if session.get(GeocodeCacheEntry, key) is not None:
                return False
            session.add(GeocodeCacheEntry(location_key=key, lat=coords.lat, lon=coords.lon))
            session.commit()
            logger.debug(f"Cached coordinates for '{key}'")
            return True
        except SQLAlchemyError as e:
            if session is not None:
                session.rollback()
            logger.warning(f"Unable to persist geocode cache for '{key}': {e}")
            return False
        finally:
            if session is not None:
                session.close()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        try:
            session = self._session()
            try:
                return session.query(GeocodeCacheEntry).count()
            finally:
                session.close()
        except SQLAlchemyError as e:
            logger.warning(f"Unable to count geocode cache entries: {e}")
            return 0

