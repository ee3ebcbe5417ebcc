#!/usr/bin/env python3
"""Cached, rate-limited city/state geocoding for asset locations"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Set, Tuple

from config import Config
from data_collection.nominatim_client import GeocodingError, NominatimClient
from data_preparation.location_grouper import location_query, make_location_key
from models import ResolvedCoordinate
from utils.api_manager import RequestPacer, batched
from utils.cache import GeocodeCache
from utils.metrics import cache_hit_counter, geocode_lookup_counter

logger = logging.getLogger(__name__)


class CoordinateResolver:
    """Resolve (city, state) pairs through the durable cache, then the external lookup.

    One instance serves one render cycle: keys that failed are remembered and
    not looked up again until reset(). The pacer may be shared with other
    resolvers that call the same service.
    """

    def __init__(self, client: Optional[NominatimClient] = None,
                 cache: Optional[GeocodeCache] = None,
                 pacer: Optional[RequestPacer] = None,
                 config=None):
        self.config = config if config else Config()
        self.client = client or NominatimClient(self.config)
        self.cache = cache if cache is not None else GeocodeCache()
        self.pacer = pacer or RequestPacer(self.config.GEOCODE_MIN_INTERVAL)
        self.batch_size = max(1, int(self.config.GEOCODE_BATCH_SIZE))
        self._failed: Set[str] = set()
        self.lookups = 0

    def reset(self):
        """Forget failed keys so a new cycle may try them again"""
        self._failed.clear()

    def resolve(self, city: str, state: str) -> Optional[ResolvedCoordinate]:
        """Resolve one place; None means the asset is not plottable"""
        if not _has_text(city) or not _has_text(state):
            return None
        key = make_location_key(city, state)

        cached = self._cached(key)
        if cached is not None:
            return cached
        if key in self._failed:
            return None

        self.pacer.wait()
        self.lookups += 1
        coords = self._lookup(location_query(city, state))
        return self._store(key, coords)

    def resolve_many(self, locations: Iterable[Tuple[str, str]]) -> Dict[str, Optional[ResolvedCoordinate]]:
        """
        Resolve unique (city, state) pairs, keyed by LocationKey.

        Cached keys are answered before any wait. The rest are looked up in
        batches of up to batch_size concurrent requests; the pacer gates each
        batch, not each request inside it.
        """
        results: Dict[str, Optional[ResolvedCoordinate]] = {}
        pending: List[Tuple[str, str]] = []
        queued: Set[str] = set()

        for city, state in locations:
            if not _has_text(city) or not _has_text(state):
                results[make_location_key(city, state)] = None
                continue
            key = make_location_key(city, state)
            if key in results or key in queued:
                continue
            cached = self._cached(key)
            if cached is not None:
                results[key] = cached
            elif key in self._failed:
                results[key] = None
            else:
                pending.append((key, location_query(city, state)))
                queued.add(key)

        if pending:
            logger.info(f"Geocoding {len(pending)} uncached locations in batches of {self.batch_size}")

        for batch in batched(pending, self.batch_size):
            self.pacer.wait()
            self.lookups += len(batch)
            if len(batch) == 1:
                found = [self._lookup(batch[0][1])]
            else:
                with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix='geocode') as pool:
                    found = list(pool.map(self._lookup, [query for _, query in batch]))
            for (key, _), coords in zip(batch, found):
                results[key] = self._store(key, coords)

        return results

    def _cached(self, key: str) -> Optional[ResolvedCoordinate]:
        coords = self.cache.get(key)
        if coords is not None:
            cache_hit_counter.inc()
            logger.debug(f"Geocode cache hit for '{key}'")
        return coords

    def _lookup(self, query: str) -> Optional[ResolvedCoordinate]:
        """External call only; runs on worker threads, so it does not touch the cache"""
        try:
            coords = self.client.search(query)
        except GeocodingError as e:
            logger.warning(f"Geocoding failed for '{query}': {e}")
            geocode_lookup_counter.labels(status='error').inc()
            return None
        if coords is None:
            logger.warning(f"No coordinates found for '{query}'")
            geocode_lookup_counter.labels(status='not_found').inc()
            return None
        geocode_lookup_counter.labels(status='success').inc()
        return coords

    def _store(self, key: str, coords: Optional[ResolvedCoordinate]) -> Optional[ResolvedCoordinate]:
        if coords is None:
            self._failed.add(key)
            return None
        self.cache.put(key, coords)
        return coords


def _has_text(value) -> bool:
    return bool(str(value or '').strip())
