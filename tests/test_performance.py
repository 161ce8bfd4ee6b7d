from __future__ import annotations

import math

import pytest

from liftquest.catalog import get_category, iter_categories
from liftquest.models import WorkoutInputs, clamp_workout_inputs
from liftquest.performance import compute_performance, estimate_one_rep_max, speed_kmh


def test_brzycki_estimate_for_five_reps() -> None:
    assert estimate_one_rep_max(80.0, 5) == pytest.approx(80.0 / (1.0278 - 0.0278 * 5))
    assert estimate_one_rep_max(80.0, 5) == pytest.approx(90.0, abs=0.05)


def test_single_rep_is_the_lift_itself() -> None:
    assert estimate_one_rep_max(120.0, 1) == 120.0


@pytest.mark.parametrize("reps", [0, 16, 50])
def test_reps_outside_calibrated_range_score_zero(reps: int) -> None:
    category = get_category("bench_press")
    inputs = WorkoutInputs(reps=reps, weight_kg=100.0)
    assert compute_performance(category, inputs) == 0.0


@pytest.mark.parametrize(
    "inputs",
    [
        WorkoutInputs(),
        WorkoutInputs(reps=10, weight_kg=40.0),
        WorkoutInputs(duration_min=30.0, distance_km=5.0),
        WorkoutInputs(reps=9999, weight_kg=9999.0, duration_min=1440.0, distance_km=9999.0),
        WorkoutInputs(reps=1, duration_min=0.5),
    ],
)
def test_every_category_scores_non_negative(inputs: WorkoutInputs) -> None:
    for category in iter_categories():
        value = compute_performance(category, inputs, bodyweight_kg=80.0)
        assert value >= 0.0
        assert math.isfinite(value)


def test_bodyweight_reps_scale_with_added_load() -> None:
    push_up = get_category("push_up")
    unloaded = compute_performance(push_up, WorkoutInputs(reps=10), bodyweight_kg=70.0)
    loaded = compute_performance(push_up, WorkoutInputs(reps=10, weight_kg=20.0), bodyweight_kg=70.0)
    assert unloaded == pytest.approx(10.0)
    assert loaded == pytest.approx(10.0 * (90.0 / 70.0) ** 0.65)


def test_paced_endurance_rewards_speed_and_distance() -> None:
    running = get_category("running")
    value = compute_performance(running, WorkoutInputs(distance_km=10.0, duration_min=50.0))
    assert speed_kmh(10.0, 50.0) == pytest.approx(12.0)
    assert value == pytest.approx(12.0 * math.sqrt(10.0))


def test_mobility_is_minutes() -> None:
    assert compute_performance(get_category("yoga"), WorkoutInputs(duration_min=30.0)) == 30.0


def test_missing_bodyweight_falls_back_to_default() -> None:
    plank = get_category("plank")
    inputs = WorkoutInputs(duration_min=2.0, weight_kg=10.0)
    assert compute_performance(plank, inputs, None) == compute_performance(plank, inputs, 70.0)


def test_clamp_workout_inputs_reports_each_adjustment() -> None:
    inputs, messages = clamp_workout_inputs(reps=20000, weight_kg=-5, duration_min=2000, distance_km="3.5")
    assert inputs.reps == 9999
    assert inputs.weight_kg == 0.0
    assert inputs.duration_min == 1440.0
    assert inputs.distance_km == 3.5
    assert len(messages) == 3
