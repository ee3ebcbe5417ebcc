#!/usr/bin/env python3
"""Load asset lists from the stored JSON document, CSV exports or a remote source"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd
import requests
from pydantic import ValidationError

from config import Config
from config_validator import AssetRecord, validate_asset_payload
from models import Asset

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('name', 'city', 'state')


class AssetSourceError(Exception):
    """The asset file or the remote source could not be read."""


@dataclass
class AssetDocument:
    title: str
    assets: List[Asset] = field(default_factory=list)
    remote_source: Optional[Dict[str, Any]] = None
    skipped: int = 0

    @property
    def remote_enabled(self) -> bool:
        return bool(self.remote_source and self.remote_source.get('enabled'))


def read_payload(path: str) -> Dict[str, Any]:
    """Read and validate the stored asset document"""
    if not os.path.exists(path):
        raise AssetSourceError(f"Assets file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
        return validate_asset_payload(raw)
    except (OSError, ValueError) as e:
        # pydantic's ValidationError is a ValueError
        raise AssetSourceError(f"Unable to read assets file {path}: {e}") from e


def save_payload(path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate then write the asset document; validation errors propagate unchanged"""
    document = validate_asset_payload(payload)
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2)
    logger.info(f"Saved {len(document.get('assets', []))} assets to {path}")
    return document


def records_to_assets(records: Iterable[Dict[str, Any]]) -> Tuple[List[Asset], int]:
    """Validate loose records one by one; invalid ones are skipped and counted"""
    assets, skipped = [], 0
    for i, record in enumerate(records):
        try:
            model = AssetRecord(**record) if isinstance(record, dict) else None
        except ValidationError as e:
            logger.warning(f"Skipping asset record {i}: {e.errors()[0].get('msg')}")
            model = None
        if model is None:
            skipped += 1
            continue
        assets.append(Asset.from_dict(model.model_dump()))
    return assets, skipped


class AssetLoader:
    """Builds the ordered asset list a render cycle works on"""

    def __init__(self, config=None, session: Optional[requests.Session] = None):
        self.config = config if config else Config()
        self.session = session or requests.Session()

    def load(self, path: Optional[str] = None) -> AssetDocument:
        path = path or self.config.DATA_FILE
        payload = read_payload(path)
        assets, skipped = records_to_assets(payload.get('assets', []))
        document = AssetDocument(
            title=payload['title'],
            assets=assets,
            remote_source=payload.get('remoteSource'),
            skipped=skipped,
        )
        if document.remote_enabled:
            remote_assets, remote_skipped = self.fetch_remote(document.remote_source['url'])
            document.assets.extend(remote_assets)
            document.skipped += remote_skipped
        logger.info(f"Loaded {len(document.assets)} assets for '{document.title}'"
                    + (f" ({document.skipped} skipped)" if document.skipped else ''))
        return document

    def fetch_remote(self, url: str) -> Tuple[List[Asset], int]:
        """
        Fetch assets from a remote JSON endpoint.

        Accepts either a bare array of asset records or an object with an
        `assets` array.
        """
        try:
            response = self.session.get(url, timeout=self.config.REMOTE_SOURCE_TIMEOUT,
                                        headers={'Accept': 'application/json'})
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise AssetSourceError(f"Remote asset source {url} failed: {e}") from e
        except ValueError as e:
            raise AssetSourceError(f"Remote asset source {url} returned invalid JSON") from e

        records = data.get('assets') if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise AssetSourceError(f"Remote asset source {url} did not return an asset list")
        logger.info(f"Fetched {len(records)} asset records from {url}")
        return records_to_assets(records)

    @staticmethod
    def load_csv(csv_path: str) -> Tuple[List[Asset], int]:
        """Read assets from a CSV export with name/city/state (and optional notes/ip) columns"""
        try:
            df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
        except (OSError, ValueError) as e:
            raise AssetSourceError(f"Unable to read CSV {csv_path}: {e}") from e

        df.columns = [str(c).strip().lower() for c in df.columns]
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise AssetSourceError(f"CSV {csv_path} is missing columns: {', '.join(missing)}")

        columns = [c for c in ('name', 'city', 'state', 'notes', 'ip') if c in df.columns]
        df = df[columns].apply(lambda col: col.str.strip())
        records = [{k: v for k, v in row.items() if v} for row in df.to_dict(orient='records')]
        return records_to_assets(records)
