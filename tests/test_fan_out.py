import math

import pytest
from hypothesis import given, settings, strategies as st

from analysis.fan_out import (branch_point, build_fan_out, fan_out_positions, fan_out_radius,
                              spread_multiplier)
from utils.projection import project

CENTER = (30.2672, -97.7431)


def test_single_asset_returns_center():
    assert fan_out_positions(CENTER, 1, 10) == [CENTER]
    assert fan_out_positions(CENTER, 0, 10) == [CENTER]


def test_spread_multiplier_bounds():
    assert spread_multiplier(8) == 1.0
    assert spread_multiplier(15) == 1.0
    assert spread_multiplier(4) == pytest.approx(1.2)
    assert spread_multiplier(0) == pytest.approx(1.4)
    assert spread_multiplier(8, zoom_requested=True) == pytest.approx(1.25)


def test_radius_is_clamped():
    assert fan_out_radius(1) == 42
    assert fan_out_radius(2) == 54
    assert fan_out_radius(50) == 120
    assert fan_out_radius(2, 0.1) == 40


def test_first_point_at_angle_zero():
    zoom = 10
    positions = fan_out_positions(CENTER, 4, zoom)
    cx, cy = project(*CENTER, zoom)
    px, py = project(*positions[0], zoom)
    assert px - cx == pytest.approx(fan_out_radius(4), abs=1e-6)
    assert py - cy == pytest.approx(0.0, abs=1e-6)


@given(st.integers(min_value=2, max_value=40), st.integers(min_value=2, max_value=16),
       st.floats(min_value=1.0, max_value=1.75))
@settings(max_examples=60, deadline=None)
def test_points_are_distinct_and_equidistant(count, zoom, multiplier):
    positions = fan_out_positions(CENTER, count, zoom, multiplier)
    assert len(positions) == count
    assert len({(round(lat, 9), round(lon, 9)) for lat, lon in positions}) == count

    radius = fan_out_radius(count, multiplier)
    cx, cy = project(*CENTER, zoom)
    for lat, lon in positions:
        x, y = project(lat, lon, zoom)
        assert math.hypot(x - cx, y - cy) == pytest.approx(radius, rel=1e-6)


def test_branch_point_sits_above_centroid():
    zoom = 9
    cx, cy = project(*CENTER, zoom)
    bx, by = project(*branch_point(CENTER, zoom, 1.25), zoom)
    assert bx == pytest.approx(cx)
    assert cy - by == pytest.approx(18 * 1.25)


def test_connectors_run_centroid_branch_then_each_position():
    geometry = build_fan_out(CENTER, 2, 10, 1.0)
    assert len(geometry.positions) == 2
    assert len(geometry.connectors) == 3
    assert geometry.connectors[0] == (CENTER, geometry.branch)
    assert [end for _, end in geometry.connectors[1:]] == geometry.positions
    assert all(start == geometry.branch for start, _ in geometry.connectors[1:])
