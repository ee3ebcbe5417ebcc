"""Data models for the Asset Map"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, String, Float, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class GeocodeCacheEntry(Base):
    __tablename__ = 'geocode_cache'

    location_key = Column(String(255), primary_key=True)
    lat = Column(Float, nullable=False)
    lon = Column(Float, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


@dataclass(frozen=True)
class Asset:
    name: str
    city: str
    state: str
    ip: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Asset':
        return cls(
            name=str(data.get('name', '')).strip(),
            city=str(data.get('city', '') or '').strip(),
            state=str(data.get('state', '') or '').strip(),
            ip=(str(data['ip']).strip() or None) if data.get('ip') else None,
            notes=(str(data['notes']).strip() or None) if data.get('notes') else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {'name': self.name, 'city': self.city, 'state': self.state}
        if self.ip:
            data['ip'] = self.ip
        if self.notes:
            data['notes'] = self.notes
        return data


@dataclass(frozen=True)
class ResolvedCoordinate:
    lat: float
    lon: float

    def rounded(self, precision: int) -> 'ResolvedCoordinate':
        return ResolvedCoordinate(round(self.lat, precision), round(self.lon, precision))

    def as_tuple(self):
        return (self.lat, self.lon)

    @staticmethod
    def mean(a: 'ResolvedCoordinate', b: 'ResolvedCoordinate') -> 'ResolvedCoordinate':
        return ResolvedCoordinate((a.lat + b.lat) / 2.0, (a.lon + b.lon) / 2.0)


def format_coordinate_key(coords: ResolvedCoordinate) -> str:
    return f"{coords.lat:.6f},{coords.lon:.6f}"


@dataclass
class Group:
    """One screen marker: assets sharing a resolved or merged coordinate"""
    coords: ResolvedCoordinate
    assets: List[Asset]
    location_keys: List[str] = field(default_factory=list)
    marker: Optional[Any] = None
    last_spread_multiplier: Optional[float] = None

    @property
    def key(self) -> str:
        return format_coordinate_key(self.coords)

    @property
    def size(self) -> int:
        return len(self.assets)
