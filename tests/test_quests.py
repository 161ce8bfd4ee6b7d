from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from liftquest.catalog import get_category
from liftquest.models import UserProfile, ValidationError, WorkoutInputs
from liftquest.quests import (
    DAILY,
    DAILY_REWARD_XP,
    VARIETY,
    WEEKLY,
    QuestTracker,
    advance_challenges,
    reset_challenge_progress,
    progress_amount,
    week_key,
    weekly_expiry,
)

WEDNESDAY = datetime(2024, 5, 1, 9, tzinfo=timezone.utc)


def _tracker() -> QuestTracker:
    return QuestTracker(np.random.default_rng(21))


def _find(profile: UserProfile, period: str, focus: str, kind: str = "amount"):
    for challenge in profile.challenges:
        if challenge.period == period and challenge.target_focus == focus and challenge.kind == kind:
            return challenge
    raise AssertionError(f"no {period} {kind} challenge for {focus}")


def test_week_helpers() -> None:
    assert week_key(WEDNESDAY) == "2024-W18"
    assert weekly_expiry(WEDNESDAY) == datetime(2024, 5, 6, tzinfo=timezone.utc)
    monday = datetime(2024, 5, 6, 0, 0, tzinfo=timezone.utc)
    assert weekly_expiry(monday) == datetime(2024, 5, 13, tzinfo=timezone.utc)


def test_progress_amount_by_unit() -> None:
    inputs = WorkoutInputs(reps=12, duration_min=20.5, distance_km=4.2)
    assert progress_amount("reps", inputs) == 12
    assert progress_amount("sets", inputs) == 1
    assert progress_amount("time", inputs) == 21
    assert progress_amount("distance", inputs) == 5
    assert progress_amount("frequency", inputs) == 1


def test_refresh_generates_slots_for_class_focus_groups() -> None:
    profile = UserProfile(active_class="warrior")
    created = _tracker().refresh(profile, WEDNESDAY)

    assert len(created) == 6
    assert {challenge.target_focus for challenge in created} == {"strength", "hypertrophy"}
    daily_hypertrophy = _find(profile, DAILY, "hypertrophy")
    assert daily_hypertrophy.unit == "reps"
    assert daily_hypertrophy.target_amount == 50
    assert daily_hypertrophy.exp_reward == DAILY_REWARD_XP
    assert _find(profile, WEEKLY, "strength").expires_at == datetime(2024, 5, 6, tzinfo=timezone.utc)


def test_refresh_runs_once_per_day_and_replaces_expired() -> None:
    profile = UserProfile()
    tracker = _tracker()
    tracker.refresh(profile, WEDNESDAY)
    assert tracker.refresh(profile, WEDNESDAY + timedelta(hours=3)) == []

    old_daily = _find(profile, DAILY, "strength").id
    old_weekly = _find(profile, WEEKLY, "strength").id
    created = tracker.refresh(profile, WEDNESDAY + timedelta(days=1))
    assert {challenge.period for challenge in created} == {DAILY}
    assert _find(profile, DAILY, "strength").id != old_daily
    assert _find(profile, WEEKLY, "strength").id == old_weekly


def test_amount_challenge_completes_once() -> None:
    profile = UserProfile()
    tracker = _tracker()
    tracker.refresh(profile, WEDNESDAY)
    bench = get_category("bench_press")
    inputs = WorkoutInputs(reps=5, weight_kg=80.0)

    completed = []
    for minute in range(6):
        completed.extend(advance_challenges(profile, bench, inputs, WEDNESDAY + timedelta(minutes=minute)))

    daily = _find(profile, DAILY, "strength")
    assert daily in completed
    assert daily.is_completed
    assert daily.progress == 5
    assert [challenge.id for challenge in completed].count(daily.id) == 1


def test_variety_challenge_counts_distinct_categories() -> None:
    profile = UserProfile()
    tracker = _tracker()
    tracker.refresh(profile, WEDNESDAY)
    inputs = WorkoutInputs(reps=5, weight_kg=100.0)

    first = advance_challenges(profile, get_category("bench_press"), inputs, WEDNESDAY)
    repeat = advance_challenges(profile, get_category("bench_press"), inputs, WEDNESDAY)
    second = advance_challenges(profile, get_category("deadlift"), inputs, WEDNESDAY)

    variety = _find(profile, DAILY, "strength", VARIETY)
    assert variety not in first and variety not in repeat
    assert variety in second
    assert variety.unique_exercises == {"bench_press", "deadlift"}


def test_other_focus_groups_do_not_progress() -> None:
    profile = UserProfile()
    tracker = _tracker()
    tracker.refresh(profile, WEDNESDAY)
    advance_challenges(profile, get_category("running"), WorkoutInputs(distance_km=5, duration_min=25), WEDNESDAY)
    assert all(challenge.progress == 0 for challenge in profile.challenges)


def test_workouts_after_expiry_do_not_count() -> None:
    profile = UserProfile()
    tracker = _tracker()
    tracker.refresh(profile, WEDNESDAY)
    advance_challenges(
        profile, get_category("bench_press"), WorkoutInputs(reps=5, weight_kg=60), WEDNESDAY + timedelta(days=1)
    )
    assert _find(profile, DAILY, "strength").progress == 0
    assert _find(profile, WEEKLY, "strength").progress == 1


def test_preference_applies_to_future_challenges_only() -> None:
    profile = UserProfile()
    tracker = _tracker()
    tracker.refresh(profile, WEDNESDAY)
    tracker.set_preference(profile, "Strength", "reps")

    assert _find(profile, DAILY, "strength").unit == "sets"
    tracker.refresh(profile, WEDNESDAY + timedelta(days=1))
    assert _find(profile, DAILY, "strength").unit == "reps"

    with pytest.raises(ValidationError):
        tracker.set_preference(profile, "strength", "parsecs")
    with pytest.raises(ValidationError):
        tracker.set_preference(profile, "chess", "reps")


def test_reset_clears_progress_on_live_challenges() -> None:
    profile = UserProfile()
    _tracker().refresh(profile, WEDNESDAY)
    inputs = WorkoutInputs(reps=5, weight_kg=100.0)
    advance_challenges(profile, get_category("bench_press"), inputs, WEDNESDAY)
    advance_challenges(profile, get_category("deadlift"), inputs, WEDNESDAY)
    assert _find(profile, DAILY, "strength", VARIETY).is_completed

    live = reset_challenge_progress(profile)

    assert live == {challenge.id for challenge in profile.challenges}
    assert all(challenge.progress == 0 for challenge in profile.challenges)
    assert all(not challenge.is_completed and not challenge.unique_exercises for challenge in profile.challenges)
