"""Application metrics collection using Prometheus"""
import time
import functools
import logging
from prometheus_client import (
    Counter, Histogram, CollectorRegistry, CONTENT_TYPE_LATEST, generate_latest
)

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry()

render_cycle_counter = Counter(
    'asset_map_render_cycles_total',
    'Total number of asset map render cycles',
    ['status'],
    registry=REGISTRY
)

render_cycle_duration = Histogram(
    'asset_map_render_cycle_duration_seconds',
    'Time spent in a full fetch-resolve-merge-render cycle',
    ['stage'],
    buckets=[0.05, 0.1, 0.5, 1, 2, 5, 10, 30, 60],
    registry=REGISTRY
)

geocode_lookup_counter = Counter(
    'asset_map_geocode_lookups_total',
    'External geocoding lookups',
    ['status'],
    registry=REGISTRY
)

cache_hit_counter = Counter(
    'asset_map_geocode_cache_hits_total',
    'Locations answered from the durable geocode cache',
    registry=REGISTRY
)

dropped_assets_counter = Counter(
    'asset_map_dropped_assets_total',
    'Assets left off the map because their location could not be resolved',
    registry=REGISTRY
)

group_count_histogram = Histogram(
    'asset_map_groups_count',
    'Number of markers produced per render cycle',
    buckets=[1, 2, 5, 10, 25, 50, 100, 250],
    registry=REGISTRY
)


class MetricsCollector:
    @staticmethod
    def track_render_cycle(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.time()
            status = 'success'
            try:
                result = func(*args, **kwargs)
                groups = getattr(result, 'groups', None)
                if groups is not None:
                    group_count_histogram.observe(len(groups))
                if getattr(result, 'stale', False):
                    status = 'stale'
                return result
            except Exception:
                status = 'failed'
                raise
            finally:
                dur = time.time() - start
                render_cycle_duration.labels(stage='total').observe(dur)
                render_cycle_counter.labels(status=status).inc()
                logger.info(f"Render cycle finished: status={status}, duration={dur:.2f}s")
        return wrapper

    @staticmethod
    def track_stage(stage_name: str):
        def decorator(func):
            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                with render_cycle_duration.labels(stage=stage_name).time():
                    return func(*args, **kwargs)
            return wrapper
        return decorator


def metrics_payload():
    """Return (body, content_type) for the /metrics endpoint"""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


metrics_collector = MetricsCollector()
