"""Per-family performance metrics.

Each formula family maps raw workout inputs to one non-negative scalar. The value
is only meaningful relative to earlier sessions of the same category: it feeds
the personal baseline, PR detection and skill placement.
"""

from __future__ import annotations

from typing import Callable, Optional

from . import catalog
from .catalog import ExerciseCategory
from .models import DEFAULT_BODYWEIGHT_KG, WorkoutInputs

BRZYCKI_MAX_REPS = 15
LOAD_RATIO_EXPONENT = 0.65
HOLD_LOAD_EXPONENT = 0.30
CONDITIONING_LOAD_EXPONENT = 0.5
SPRINT_DISTANCE_EXPONENT = 0.25
ENDURANCE_DISTANCE_EXPONENT = 0.5

Formula = Callable[[WorkoutInputs, float], float]


def resolve_bodyweight(bodyweight_kg: Optional[float]) -> float:
    if bodyweight_kg is None or bodyweight_kg <= 0:
        return DEFAULT_BODYWEIGHT_KG
    return float(bodyweight_kg)


def estimate_one_rep_max(weight_kg: float, reps: int) -> float:
    """Brzycki estimate; 0 outside the 1-15 rep range it is calibrated for."""
    if weight_kg <= 0 or reps < 1 or reps > BRZYCKI_MAX_REPS:
        return 0.0
    if reps == 1:
        return float(weight_kg)
    return weight_kg / (1.0278 - 0.0278 * reps)


def speed_kmh(distance_km: float, minutes: float) -> float:
    if distance_km <= 0 or minutes <= 0:
        return 0.0
    return distance_km / (minutes / 60.0)


def _one_rep_max(inputs: WorkoutInputs, bodyweight: float) -> float:
    return estimate_one_rep_max(inputs.weight_value, inputs.reps_value)


def _tonnage(inputs: WorkoutInputs, bodyweight: float) -> float:
    return inputs.weight_value * inputs.reps_value


def _bodyweight_reps(inputs: WorkoutInputs, bodyweight: float) -> float:
    effective = bodyweight + inputs.weight_value
    return inputs.reps_value * (effective / bodyweight) ** LOAD_RATIO_EXPONENT


def _timed_hold(inputs: WorkoutInputs, bodyweight: float) -> float:
    effective = bodyweight + inputs.weight_value
    return inputs.minutes_value * (effective / bodyweight) ** HOLD_LOAD_EXPONENT


def _explosive_reps(inputs: WorkoutInputs, bodyweight: float) -> float:
    load = inputs.weight_value
    ratio = load / bodyweight if load > 0 else 1.0
    return inputs.reps_value * ratio ** LOAD_RATIO_EXPONENT


def _sprint(inputs: WorkoutInputs, bodyweight: float) -> float:
    distance = inputs.distance_value
    minutes = inputs.minutes_value
    if distance > 0 and minutes > 0:
        return speed_kmh(distance, minutes) * distance ** SPRINT_DISTANCE_EXPONENT
    if minutes > 0:
        return 60.0 / minutes
    return 0.0


def _paced_endurance(inputs: WorkoutInputs, bodyweight: float) -> float:
    distance = inputs.distance_value
    minutes = inputs.minutes_value
    if distance <= 0 or minutes <= 0:
        return 0.0
    return speed_kmh(distance, minutes) * distance ** ENDURANCE_DISTANCE_EXPONENT


def _duration_conditioning(inputs: WorkoutInputs, bodyweight: float) -> float:
    minutes = inputs.minutes_value
    if minutes <= 0:
        return 0.0
    effective = bodyweight + inputs.weight_value
    return minutes * (effective / bodyweight) ** CONDITIONING_LOAD_EXPONENT


def _mobility(inputs: WorkoutInputs, bodyweight: float) -> float:
    return inputs.minutes_value


FORMULAS: dict[str, Formula] = {
    catalog.ONE_REP_MAX: _one_rep_max,
    catalog.TONNAGE: _tonnage,
    catalog.BODYWEIGHT_REPS: _bodyweight_reps,
    catalog.TIMED_HOLD: _timed_hold,
    catalog.EXPLOSIVE_REPS: _explosive_reps,
    catalog.SPRINT: _sprint,
    catalog.PACED_ENDURANCE: _paced_endurance,
    catalog.DURATION_CONDITIONING: _duration_conditioning,
    catalog.MOBILITY: _mobility,
}


def compute_performance(
    category: ExerciseCategory,
    inputs: WorkoutInputs,
    bodyweight_kg: Optional[float] = None,
) -> float:
    """Return the category-specific performance scalar (never negative)."""
    formula = FORMULAS[category.family]
    value = formula(inputs, resolve_bodyweight(bodyweight_kg))
    return max(0.0, float(value))
