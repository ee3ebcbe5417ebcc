"""Group assets by normalized city/state so each place is geocoded once"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from models import Asset


def _clean(value) -> str:
    return ' '.join(str(value or '').split())


def make_location_key(city: str, state: str) -> str:
    """Case-insensitive 'city, state' key used for geocode deduplication and caching"""
    return f"{_clean(city)}, {_clean(state)}".lower()


def location_query(city: str, state: str) -> str:
    """Search term sent to the external lookup"""
    return f"{_clean(city)}, {_clean(state)}"


@dataclass
class LocationGroup:
    city: str
    state: str
    assets: List[Asset] = field(default_factory=list)

    @property
    def key(self) -> str:
        return make_location_key(self.city, self.state)


def group_assets_by_location(assets: Iterable[Asset]) -> Dict[str, LocationGroup]:
    """
    Partition assets by LocationKey, ordered by first occurrence.

    The first asset seen for a key supplies the city/state spelling used for
    the lookup. Coordinates are not consulted here.
    """
    grouped: Dict[str, LocationGroup] = {}
    for asset in assets:
        key = make_location_key(asset.city, asset.state)
        group = grouped.get(key)
        if group is None:
            group = LocationGroup(city=_clean(asset.city), state=_clean(asset.state))
            grouped[key] = group
        group.assets.append(asset)
    return grouped
