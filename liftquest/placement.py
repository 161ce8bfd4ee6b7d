from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from .catalog import ExerciseCategory
from .models import WorkoutInputs
from .performance import resolve_bodyweight, speed_kmh

MIN_SKILL_LEVEL = 0
MAX_SKILL_LEVEL = 100
MAX_RANK_TIER = 10
CARDIO_DISTANCE_BOOST = 0.05
CARDIO_DISTANCE_BOOST_CAP = 0.15


def _clamp_level(value: float) -> int:
    return int(min(MAX_SKILL_LEVEL, max(MIN_SKILL_LEVEL, round(value))))


def ratio_anchor_level(ratio: float, anchors: Sequence[tuple[float, float]]) -> int:
    """Linear interpolation between (ratio, level) anchors, flat beyond either end."""
    if not anchors:
        return MIN_SKILL_LEVEL
    xs = np.array([point[0] for point in anchors], dtype=float)
    ys = np.array([point[1] for point in anchors], dtype=float)
    return _clamp_level(float(np.interp(max(0.0, ratio), xs, ys)))


def saturating_level(value: float, scale: float, alpha: float) -> int:
    """`100 * (1 - exp(-(value / scale) ** alpha))`, rounded and clamped."""
    if value <= 0 or scale <= 0:
        return MIN_SKILL_LEVEL
    return _clamp_level(100.0 * (1.0 - math.exp(-((value / scale) ** alpha))))


def cardio_value(distance_km: float, minutes: float) -> float:
    """Speed first; distance only nudges the value with a capped log boost."""
    speed = speed_kmh(distance_km, minutes)
    if speed <= 0:
        return 0.0
    boost = min(CARDIO_DISTANCE_BOOST_CAP, CARDIO_DISTANCE_BOOST * math.log1p(distance_km))
    return speed * (1.0 + boost)


def skill_level(
    category: ExerciseCategory,
    performance: float,
    inputs: Optional[WorkoutInputs] = None,
    *,
    bodyweight_kg: Optional[float] = None,
) -> int:
    """
    Place a session on the absolute 0-100 skill scale.

    1RM lifts use est1RM / bodyweight against the lift's anchor table. Paced cardio
    uses speed with a small distance bonus. Everything else runs its performance
    value through the category's saturating curve.
    """
    if category.placement_anchors:
        ratio = performance / resolve_bodyweight(bodyweight_kg)
        return ratio_anchor_level(ratio, category.placement_anchors)
    if category.is_cardio:
        inputs = inputs or WorkoutInputs()
        value = cardio_value(inputs.distance_value, inputs.minutes_value)
        return saturating_level(value, category.placement_scale, category.placement_alpha)
    return saturating_level(performance, category.placement_scale, category.placement_alpha)


def rank_tier(level: int) -> int:
    """Map a 0-100 skill level to a 1-10 rank tier."""
    return int(min(MAX_RANK_TIER, max(1, 1 + int(level) // 10)))
