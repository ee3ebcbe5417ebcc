"""Asset payload validation using Pydantic (v2)"""
from typing import List, Literal, Optional, Dict, Any, Tuple
from pydantic import BaseModel, Field, field_validator, model_validator


class AssetRecord(BaseModel):
    name: str
    city: str
    state: str
    notes: Optional[str] = None
    ip: Optional[str] = None

    @field_validator('name', 'city', 'state')
    @classmethod
    def _require_text(cls, v: str, info):
        if not v.strip():
            raise ValueError(f'missing required field: {info.field_name}')
        return v.strip()

    @field_validator('notes', 'ip')
    @classmethod
    def _strip_optional(cls, v: Optional[str]):
        if v is None:
            return None
        v = v.strip()
        return v or None


class RemoteSource(BaseModel):
    enabled: bool = False
    url: Optional[str] = Field(None, pattern=r'^https?://')

    @model_validator(mode='after')
    def _require_url_when_enabled(self):
        if self.enabled and not self.url:
            raise ValueError('remoteSource.url is required when the remote source is enabled')
        return self


class AssetPayload(BaseModel):
    title: str
    assets: List[AssetRecord] = Field(default_factory=list)
    remote_source: Optional[RemoteSource] = Field(None, alias='remoteSource')

    model_config = {'populate_by_name': True}

    @field_validator('title')
    @classmethod
    def _require_title(cls, v: str):
        if not v.strip():
            raise ValueError('Title is required')
        return v.strip()

    @model_validator(mode='after')
    def _require_assets(self):
        # A remote source supplies the assets at render time
        remote = self.remote_source is not None and self.remote_source.enabled
        if not self.assets and not remote:
            raise ValueError('Assets must be a non-empty array')
        return self


def validate_asset_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and normalize a stored asset document"""
    if not isinstance(payload, dict):
        raise ValueError('Payload must be an object')
    model = AssetPayload(**(payload or {}))
    return model.model_dump(by_alias=True, exclude_none=True)


class MapEventRequest(BaseModel):
    """Interaction event posted by the map page"""
    type: Literal['click', 'dblclick', 'map_click', 'viewport']
    group: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    center: Optional[Tuple[float, float]] = None
    # fractional when the map zooms without snapping
    zoom: Optional[float] = Field(None, ge=0, le=22)

    @model_validator(mode='after')
    def _require_target(self):
        if self.type in ('click', 'dblclick') and self.group is None and (self.x is None or self.y is None):
            raise ValueError('click events need a group or x/y screen coordinates')
        if self.type == 'viewport' and (self.center is None or self.zoom is None):
            raise ValueError('viewport events need center and zoom')
        return self
