"""Attribute growth from a logged session.

The budget of attribute points for a session is tied to the XP the session
actually banked on the level ladder, with a floor derived from the session's
intensity so even a low-XP day shows visible growth. The budget is spread across
the category's stat-weight vector; bigger PRs sharpen the spread towards the
category's primary attributes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from . import catalog
from .catalog import ExerciseCategory
from .models import StatBlock, UserProfile, WorkoutInputs
from .performance import resolve_bodyweight, speed_kmh

STATS_PER_XP = 0.007
MIN_BUDGET_COEFFICIENT = 0.18
MIN_BUDGET_OFFSET = 10.0
BUDGET_FOCUS_MULTIPLIERS: dict[str, float] = {
    "endurance": 1.25,
    "bodyweight": 1.15,
    "explosive": 1.10,
}
MAX_EMPHASIS_EXPONENT = 3.0
EMPHASIS_PER_BOOST = 0.5
DISPLAY_SCALE = 10.0

IntensityFormula = Callable[[WorkoutInputs, float], float]


def _loaded_tonnage(inputs: WorkoutInputs, bodyweight: float) -> float:
    return inputs.weight_value * inputs.reps_value


def _bodyweight_reps(inputs: WorkoutInputs, bodyweight: float) -> float:
    return inputs.reps_value * 6.0 * (bodyweight + inputs.weight_value) / bodyweight


def _timed_hold(inputs: WorkoutInputs, bodyweight: float) -> float:
    return inputs.minutes_value * 40.0 * (bodyweight + inputs.weight_value) / bodyweight


def _explosive_reps(inputs: WorkoutInputs, bodyweight: float) -> float:
    return inputs.reps_value * 8.0 * (1.0 + inputs.weight_value / bodyweight)


def _sprint(inputs: WorkoutInputs, bodyweight: float) -> float:
    speed = speed_kmh(inputs.distance_value, inputs.minutes_value)
    if speed > 0:
        return speed * 10.0
    if inputs.minutes_value > 0:
        return 300.0 / inputs.minutes_value
    return 0.0


def _paced_endurance(inputs: WorkoutInputs, bodyweight: float) -> float:
    speed = speed_kmh(inputs.distance_value, inputs.minutes_value)
    return inputs.distance_value * 5.0 * speed


def _duration_conditioning(inputs: WorkoutInputs, bodyweight: float) -> float:
    ratio = (bodyweight + inputs.weight_value) / bodyweight
    return inputs.minutes_value * 25.0 * math.sqrt(ratio)


def _mobility(inputs: WorkoutInputs, bodyweight: float) -> float:
    return inputs.minutes_value * 15.0


INTENSITY_FORMULAS: dict[str, IntensityFormula] = {
    catalog.ONE_REP_MAX: _loaded_tonnage,
    catalog.TONNAGE: _loaded_tonnage,
    catalog.BODYWEIGHT_REPS: _bodyweight_reps,
    catalog.TIMED_HOLD: _timed_hold,
    catalog.EXPLOSIVE_REPS: _explosive_reps,
    catalog.SPRINT: _sprint,
    catalog.PACED_ENDURANCE: _paced_endurance,
    catalog.DURATION_CONDITIONING: _duration_conditioning,
    catalog.MOBILITY: _mobility,
}


def intensity_score(
    category: ExerciseCategory,
    inputs: WorkoutInputs,
    bodyweight_kg: Optional[float] = None,
) -> float:
    formula = INTENSITY_FORMULAS[category.family]
    return max(0.0, float(formula(inputs, resolve_bodyweight(bodyweight_kg))))


def minimum_budget(score: float, focus: str) -> float:
    """Floor that guarantees every logged session visibly moves the stats."""
    multiplier = BUDGET_FOCUS_MULTIPLIERS.get(focus, 1.0)
    return MIN_BUDGET_COEFFICIENT * math.log10(max(0.0, score) + MIN_BUDGET_OFFSET) * multiplier


def session_budget(xp_delta: float, score: float, focus: str, *, stats_per_xp: float = STATS_PER_XP) -> float:
    return max(max(0.0, xp_delta) * stats_per_xp, minimum_budget(score, focus))


def pr_boost(pr_ratio: Optional[float], baseline_ratio: Optional[float]) -> float:
    """`max(0, log2(1RM PR ratio), log2(baseline ratio))`, ignoring missing ratios."""
    boost = 0.0
    for ratio in (pr_ratio, baseline_ratio):
        if ratio is not None and ratio > 0:
            boost = max(boost, math.log2(ratio))
    return boost


def emphasis_exponent(boost: float) -> float:
    return min(MAX_EMPHASIS_EXPONENT, 1.0 + EMPHASIS_PER_BOOST * max(0.0, boost))


def distribute(weights: np.ndarray | tuple[float, ...], budget: float, exponent: float = 1.0) -> np.ndarray:
    """Raise weights to `exponent`, renormalise and scale so the result sums to `budget`."""
    vector = np.clip(np.asarray(weights, dtype=float), 0.0, None) ** exponent
    total = vector.sum()
    if total <= 0:
        return np.full(vector.shape, budget / vector.size)
    return vector / total * budget


@dataclass(frozen=True)
class StatGainResult:
    gains: StatBlock
    budget: float
    score: float
    exponent: float
    first_time: bool


class StatDistributor:
    def __init__(self, stats_per_xp: float = STATS_PER_XP, display_scale: float = DISPLAY_SCALE):
        self.stats_per_xp = stats_per_xp
        self.display_scale = display_scale

    def compute(
        self,
        profile: UserProfile,
        category: ExerciseCategory,
        inputs: WorkoutInputs,
        xp_delta: float,
        *,
        pr_ratio: Optional[float] = None,
        baseline_ratio: Optional[float] = None,
        bodyweight_kg: Optional[float] = None,
    ) -> StatGainResult:
        """
        Work out the stat gains for one session without touching the profile.

        The first session of a category replaces the distribution with the
        category's fixed first-time grant; later sessions are scaled for display.
        """
        score = intensity_score(category, inputs, bodyweight_kg)
        budget = session_budget(xp_delta, score, category.focus, stats_per_xp=self.stats_per_xp)
        exponent = emphasis_exponent(pr_boost(pr_ratio, baseline_ratio))

        first_time = category.id not in profile.first_stat_grant_applied
        if first_time:
            gains = StatBlock.from_array(category.first_time_grant)
        else:
            vector = distribute(category.stat_weights, budget, exponent) * self.display_scale
            gains = StatBlock.from_array(vector)
        return StatGainResult(gains=gains, budget=budget, score=score, exponent=exponent, first_time=first_time)

    def apply(self, profile: UserProfile, category: ExerciseCategory, result: StatGainResult) -> None:
        profile.stats = profile.stats.add(result.gains)
        if result.first_time:
            profile.first_stat_grant_applied.add(category.id)
