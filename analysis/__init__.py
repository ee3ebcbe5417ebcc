"""Clustering and detail-view layout for the Asset Map"""

from .detail_view import DetailViewController, ViewState
from .fan_out import build_fan_out, fan_out_positions
from .proximity_merger import merge_groups

__all__ = ["DetailViewController", "ViewState", "build_fan_out", "fan_out_positions", "merge_groups"]
