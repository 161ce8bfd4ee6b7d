from __future__ import annotations

import math

import pytest

from liftquest.catalog import get_category
from liftquest.models import WorkoutInputs
from liftquest.placement import cardio_value, rank_tier, ratio_anchor_level, saturating_level, skill_level


def test_bench_anchor_interpolation() -> None:
    anchors = get_category("bench_press").placement_anchors
    assert ratio_anchor_level(1.0, anchors) == 45
    assert ratio_anchor_level(1.125, anchors) == 55
    assert ratio_anchor_level(0.1, anchors) == 0
    assert ratio_anchor_level(5.0, anchors) == 100


def test_skill_level_uses_bodyweight_ratio_for_lifts() -> None:
    bench = get_category("bench_press")
    assert skill_level(bench, 90.0, bodyweight_kg=90.0) == 45
    assert skill_level(bench, 90.0, bodyweight_kg=45.0) == 96


def test_saturating_curve() -> None:
    assert saturating_level(0.0, 10.0, 1.0) == 0
    assert saturating_level(10.0, 10.0, 1.0) == round(100 * (1 - math.exp(-1)))
    assert saturating_level(1e9, 10.0, 1.0) == 100


def test_cardio_value_boosts_speed_by_distance() -> None:
    assert cardio_value(5.0, 25.0) == pytest.approx(12.0 * (1 + 0.05 * math.log1p(5.0)))
    assert cardio_value(500.0, 2500.0) == pytest.approx(12.0 * 1.15)
    assert cardio_value(0.0, 30.0) == 0.0


def test_cardio_skill_level_is_speed_based() -> None:
    running = get_category("running")
    slow = skill_level(running, 0.0, WorkoutInputs(distance_km=5.0, duration_min=40.0))
    fast = skill_level(running, 0.0, WorkoutInputs(distance_km=5.0, duration_min=20.0))
    assert 0 < slow < fast <= 100


@pytest.mark.parametrize("level,tier", [(0, 1), (9, 1), (10, 2), (45, 5), (95, 10), (100, 10)])
def test_rank_tier(level: int, tier: int) -> None:
    assert rank_tier(level) == tier
