"""Static exercise reference data.

Every category carries the data the engine needs to score it: the focus group it
belongs to, the formula family used for its performance metric, a six-value
stat-weight vector (size, strength, dexterity, agility, endurance, vitality), the
one-time "character creation" grant applied the first time it is logged, and the
constants used to place it on the 0-100 skill scale.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .models import ValidationError

ONE_REP_MAX = "one_rep_max"
TONNAGE = "tonnage"
BODYWEIGHT_REPS = "bodyweight_reps"
TIMED_HOLD = "timed_hold"
EXPLOSIVE_REPS = "explosive_reps"
SPRINT = "sprint"
PACED_ENDURANCE = "paced_endurance"
DURATION_CONDITIONING = "duration_conditioning"
MOBILITY = "mobility"

FORMULA_FAMILIES: tuple[str, ...] = (
    ONE_REP_MAX,
    TONNAGE,
    BODYWEIGHT_REPS,
    TIMED_HOLD,
    EXPLOSIVE_REPS,
    SPRINT,
    PACED_ENDURANCE,
    DURATION_CONDITIONING,
    MOBILITY,
)

Vector = tuple[float, float, float, float, float, float]
Anchors = tuple[tuple[float, float], ...]


@dataclass(frozen=True)
class ExerciseCategory:
    id: str
    name: str
    focus: str
    family: str
    stat_weights: Vector
    first_time_grant: Vector
    one_rm_eligible: bool = False
    # Saturating-curve constants (S, alpha); unused when ratio anchors are set.
    placement_scale: float = 1.0
    placement_alpha: float = 1.0
    # (est1RM / bodyweight, level) pairs, ascending.
    placement_anchors: Anchors = ()

    @property
    def is_cardio(self) -> bool:
        return self.family == PACED_ENDURANCE


def _lift(
    id: str,
    name: str,
    focus: str,
    weights: Vector,
    grant: Vector,
    anchors: Anchors,
) -> ExerciseCategory:
    return ExerciseCategory(
        id=id,
        name=name,
        focus=focus,
        family=ONE_REP_MAX,
        stat_weights=weights,
        first_time_grant=grant,
        one_rm_eligible=True,
        placement_anchors=anchors,
    )


def _category(
    id: str,
    name: str,
    focus: str,
    family: str,
    weights: Vector,
    grant: Vector,
    scale: float,
    alpha: float,
) -> ExerciseCategory:
    return ExerciseCategory(
        id=id,
        name=name,
        focus=focus,
        family=family,
        stat_weights=weights,
        first_time_grant=grant,
        placement_scale=scale,
        placement_alpha=alpha,
    )


_CATEGORIES: tuple[ExerciseCategory, ...] = (
    # Compound lifts scored by estimated one-rep max.
    _lift(
        "back_squat", "Back Squat", "strength",
        (0.25, 0.45, 0.05, 0.05, 0.10, 0.10), (3, 6, 1, 1, 2, 2),
        ((0.5, 0), (0.75, 10), (1.0, 25), (1.25, 40), (1.5, 55), (1.75, 68), (2.0, 80), (2.5, 93), (3.0, 100)),
    ),
    _lift(
        "front_squat", "Front Squat", "strength",
        (0.20, 0.40, 0.10, 0.10, 0.10, 0.10), (2, 5, 2, 1, 2, 2),
        ((0.4, 0), (0.7, 12), (0.9, 28), (1.1, 45), (1.35, 63), (1.6, 80), (1.9, 93), (2.2, 100)),
    ),
    _lift(
        "deadlift", "Deadlift", "strength",
        (0.20, 0.50, 0.05, 0.05, 0.10, 0.10), (3, 7, 1, 0, 2, 2),
        ((0.5, 0), (1.0, 15), (1.25, 28), (1.5, 42), (2.0, 65), (2.5, 83), (3.0, 95), (3.5, 100)),
    ),
    _lift(
        "romanian_deadlift", "Romanian Deadlift", "hypertrophy",
        (0.35, 0.35, 0.05, 0.05, 0.10, 0.10), (4, 4, 1, 1, 2, 2),
        ((0.4, 0), (0.8, 15), (1.1, 32), (1.4, 52), (1.7, 70), (2.0, 85), (2.4, 96), (2.7, 100)),
    ),
    _lift(
        "bench_press", "Bench Press", "strength",
        (0.30, 0.45, 0.10, 0.00, 0.05, 0.10), (4, 6, 2, 0, 1, 2),
        ((0.25, 0), (0.5, 10), (0.75, 25), (1.0, 45), (1.25, 65), (1.5, 80), (1.75, 90), (2.0, 96), (2.25, 100)),
    ),
    _lift(
        "overhead_press", "Overhead Press", "strength",
        (0.25, 0.40, 0.15, 0.05, 0.05, 0.10), (3, 5, 3, 1, 1, 2),
        ((0.2, 0), (0.4, 12), (0.55, 28), (0.7, 45), (0.85, 62), (1.0, 78), (1.2, 92), (1.4, 100)),
    ),
    _lift(
        "power_clean", "Power Clean", "explosive",
        (0.10, 0.30, 0.15, 0.30, 0.05, 0.10), (1, 4, 3, 4, 1, 2),
        ((0.3, 0), (0.6, 15), (0.8, 32), (1.0, 50), (1.2, 68), (1.4, 83), (1.6, 94), (1.8, 100)),
    ),
    # Loaded accessories scored by tonnage.
    _category("barbell_row", "Barbell Row", "hypertrophy", TONNAGE,
              (0.35, 0.35, 0.10, 0.00, 0.10, 0.10), (4, 4, 2, 0, 1, 1), 800.0, 0.8),
    _category("incline_bench_press", "Incline Bench Press", "hypertrophy", TONNAGE,
              (0.45, 0.30, 0.10, 0.00, 0.05, 0.10), (5, 3, 1, 0, 1, 1), 700.0, 0.8),
    _category("dumbbell_bench_press", "Dumbbell Bench Press", "hypertrophy", TONNAGE,
              (0.45, 0.25, 0.15, 0.00, 0.05, 0.10), (5, 3, 2, 0, 1, 1), 500.0, 0.8),
    _category("lat_pulldown", "Lat Pulldown", "hypertrophy", TONNAGE,
              (0.45, 0.25, 0.10, 0.05, 0.05, 0.10), (5, 3, 1, 1, 1, 1), 700.0, 0.8),
    _category("leg_press", "Leg Press", "hypertrophy", TONNAGE,
              (0.45, 0.30, 0.00, 0.05, 0.10, 0.10), (5, 3, 0, 1, 2, 1), 2500.0, 0.8),
    _category("bicep_curl", "Bicep Curl", "hypertrophy", TONNAGE,
              (0.60, 0.20, 0.10, 0.00, 0.05, 0.05), (6, 2, 1, 0, 1, 1), 250.0, 0.8),
    _category("tricep_extension", "Tricep Extension", "hypertrophy", TONNAGE,
              (0.60, 0.20, 0.10, 0.00, 0.05, 0.05), (6, 2, 1, 0, 1, 1), 250.0, 0.8),
    _category("walking_lunge", "Walking Lunge", "hypertrophy", TONNAGE,
              (0.35, 0.20, 0.15, 0.10, 0.10, 0.10), (4, 2, 2, 1, 1, 1), 600.0, 0.8),
    _category("hip_thrust", "Hip Thrust", "hypertrophy", TONNAGE,
              (0.45, 0.35, 0.00, 0.05, 0.05, 0.10), (5, 4, 0, 1, 1, 1), 1200.0, 0.8),
    _category("lateral_raise", "Lateral Raise", "hypertrophy", TONNAGE,
              (0.65, 0.10, 0.15, 0.00, 0.05, 0.05), (6, 1, 2, 0, 1, 1), 150.0, 0.8),
    # Bodyweight and skill reps with optional added load.
    _category("push_up", "Push-up", "bodyweight", BODYWEIGHT_REPS,
              (0.20, 0.25, 0.10, 0.05, 0.25, 0.15), (2, 3, 1, 1, 3, 2), 40.0, 0.9),
    _category("pull_up", "Pull-up", "bodyweight", BODYWEIGHT_REPS,
              (0.25, 0.35, 0.15, 0.05, 0.10, 0.10), (3, 4, 2, 1, 1, 1), 15.0, 0.9),
    _category("chin_up", "Chin-up", "bodyweight", BODYWEIGHT_REPS,
              (0.30, 0.35, 0.10, 0.05, 0.10, 0.10), (3, 4, 1, 1, 1, 1), 15.0, 0.9),
    _category("dip", "Dip", "bodyweight", BODYWEIGHT_REPS,
              (0.30, 0.35, 0.10, 0.00, 0.15, 0.10), (3, 4, 1, 0, 2, 1), 20.0, 0.9),
    _category("pistol_squat", "Pistol Squat", "bodyweight", BODYWEIGHT_REPS,
              (0.10, 0.25, 0.35, 0.15, 0.05, 0.10), (1, 3, 4, 2, 1, 1), 12.0, 0.9),
    _category("muscle_up", "Muscle-up", "bodyweight", BODYWEIGHT_REPS,
              (0.15, 0.30, 0.30, 0.15, 0.05, 0.05), (2, 4, 3, 2, 1, 1), 6.0, 0.9),
    _category("handstand_push_up", "Handstand Push-up", "bodyweight", BODYWEIGHT_REPS,
              (0.15, 0.30, 0.35, 0.05, 0.05, 0.10), (2, 3, 4, 1, 1, 1), 8.0, 0.9),
    _category("bodyweight_squat", "Bodyweight Squat", "bodyweight", BODYWEIGHT_REPS,
              (0.10, 0.15, 0.05, 0.10, 0.40, 0.20), (1, 2, 1, 1, 4, 2), 60.0, 0.9),
    # Isometric holds.
    _category("plank", "Plank", "bodyweight", TIMED_HOLD,
              (0.05, 0.15, 0.15, 0.05, 0.35, 0.25), (0, 2, 2, 1, 4, 3), 3.0, 1.0),
    _category("side_plank", "Side Plank", "bodyweight", TIMED_HOLD,
              (0.05, 0.15, 0.25, 0.05, 0.30, 0.20), (0, 2, 3, 1, 3, 2), 2.0, 1.0),
    _category("hollow_hold", "Hollow Hold", "bodyweight", TIMED_HOLD,
              (0.05, 0.20, 0.25, 0.05, 0.25, 0.20), (0, 2, 3, 1, 3, 2), 1.5, 1.0),
    _category("wall_sit", "Wall Sit", "bodyweight", TIMED_HOLD,
              (0.10, 0.20, 0.05, 0.05, 0.40, 0.20), (1, 2, 0, 1, 4, 2), 3.0, 1.0),
    # Explosive loaded reps.
    _category("kettlebell_swing", "Kettlebell Swing", "explosive", EXPLOSIVE_REPS,
              (0.10, 0.25, 0.10, 0.30, 0.15, 0.10), (1, 3, 1, 4, 2, 1), 20.0, 0.9),
    _category("medicine_ball_slam", "Medicine Ball Slam", "explosive", EXPLOSIVE_REPS,
              (0.05, 0.25, 0.15, 0.35, 0.10, 0.10), (0, 3, 2, 4, 1, 1), 15.0, 0.9),
    _category("box_jump", "Box Jump", "explosive", EXPLOSIVE_REPS,
              (0.05, 0.15, 0.20, 0.45, 0.05, 0.10), (0, 2, 2, 5, 1, 1), 30.0, 0.9),
    _category("broad_jump", "Broad Jump", "explosive", EXPLOSIVE_REPS,
              (0.05, 0.20, 0.15, 0.45, 0.05, 0.10), (0, 2, 2, 5, 1, 1), 20.0, 0.9),
    _category("sprint", "Sprint", "explosive", SPRINT,
              (0.05, 0.15, 0.15, 0.45, 0.10, 0.10), (0, 2, 2, 5, 2, 1), 20.0, 1.2),
    # Paced cardio; placement scale is a reference speed in km/h.
    _category("running", "Running", "endurance", PACED_ENDURANCE,
              (0.00, 0.05, 0.05, 0.20, 0.50, 0.20), (0, 1, 1, 3, 6, 3), 12.0, 1.5),
    _category("cycling", "Cycling", "endurance", PACED_ENDURANCE,
              (0.05, 0.10, 0.05, 0.10, 0.50, 0.20), (1, 1, 1, 1, 6, 3), 30.0, 1.5),
    _category("rowing", "Rowing", "endurance", PACED_ENDURANCE,
              (0.10, 0.15, 0.05, 0.05, 0.45, 0.20), (1, 2, 1, 1, 5, 3), 12.0, 1.5),
    _category("swimming", "Swimming", "endurance", PACED_ENDURANCE,
              (0.05, 0.10, 0.15, 0.05, 0.45, 0.20), (1, 1, 2, 1, 5, 3), 3.5, 1.5),
    # Duration-dominant conditioning.
    _category("stair_climber", "Stair Climber", "endurance", DURATION_CONDITIONING,
              (0.05, 0.10, 0.05, 0.10, 0.50, 0.20), (1, 1, 0, 1, 6, 3), 30.0, 0.9),
    _category("battle_ropes", "Battle Ropes", "endurance", DURATION_CONDITIONING,
              (0.10, 0.15, 0.10, 0.15, 0.35, 0.15), (1, 2, 1, 2, 4, 2), 10.0, 0.9),
    _category("jump_rope", "Jump Rope", "endurance", DURATION_CONDITIONING,
              (0.00, 0.05, 0.25, 0.25, 0.30, 0.15), (0, 1, 3, 3, 4, 2), 20.0, 0.9),
    _category("sled_push", "Sled Push", "endurance", DURATION_CONDITIONING,
              (0.15, 0.30, 0.00, 0.10, 0.30, 0.15), (2, 4, 0, 1, 3, 2), 10.0, 0.9),
    # Mobility and prehab.
    _category("yoga", "Yoga", "mobility", MOBILITY,
              (0.00, 0.05, 0.35, 0.15, 0.10, 0.35), (0, 1, 4, 2, 1, 4), 45.0, 0.7),
    _category("stretching", "Stretching", "mobility", MOBILITY,
              (0.00, 0.00, 0.35, 0.20, 0.05, 0.40), (0, 0, 4, 2, 1, 5), 30.0, 0.7),
    _category("foam_rolling", "Foam Rolling", "mobility", MOBILITY,
              (0.00, 0.00, 0.25, 0.10, 0.05, 0.60), (0, 0, 3, 1, 1, 6), 20.0, 0.7),
    _category("mobility_flow", "Mobility Flow", "mobility", MOBILITY,
              (0.00, 0.05, 0.35, 0.25, 0.05, 0.30), (0, 1, 4, 3, 1, 3), 30.0, 0.7),
)

CATALOG: dict[str, ExerciseCategory] = {category.id: category for category in _CATEGORIES}


def normalise_category_id(value: str) -> str:
    return "_".join(str(value or "").strip().lower().replace("-", " ").split())


def get_category(category_id: str) -> ExerciseCategory:
    """Look up a category by id, accepting spaces/hyphens in place of underscores."""
    key = normalise_category_id(category_id)
    try:
        return CATALOG[key]
    except KeyError:
        raise ValidationError(f"Unknown exercise category {category_id!r}.") from None


def find_category(category_id: str) -> Optional[ExerciseCategory]:
    return CATALOG.get(normalise_category_id(category_id))


def categories_for_focus(focus: str) -> list[ExerciseCategory]:
    return [category for category in _CATEGORIES if category.focus == focus]


def iter_categories() -> Iterable[ExerciseCategory]:
    return iter(_CATEGORIES)

