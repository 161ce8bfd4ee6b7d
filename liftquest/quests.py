"""Daily and weekly challenges for the active class's focus groups."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, time, timedelta
from typing import Optional

import numpy as np

from .catalog import ExerciseCategory
from .models import (
    Challenge,
    UserProfile,
    WorkoutInputs,
    ensure_utc,
    validate_challenge_unit,
    validate_focus_group,
)

logger = logging.getLogger(__name__)

DAILY = "daily"
WEEKLY = "weekly"
AMOUNT = "amount"
VARIETY = "variety"

DAILY_REWARD_XP = 25.0
WEEKLY_REWARD_XP = 100.0

DAILY_TARGETS: dict[str, float] = {"sets": 5, "reps": 50, "time": 20, "distance": 3, "frequency": 2}
WEEKLY_TARGETS: dict[str, float] = {"sets": 20, "reps": 250, "time": 90, "distance": 15, "frequency": 8}
DAILY_VARIETY_TARGET = 2.0

# (period, kind) slots generated per focus group
SLOTS: dict[str, tuple[str, ...]] = {
    DAILY: (AMOUNT, VARIETY),
    WEEKLY: (AMOUNT,),
}


def start_of_day(moment: datetime) -> datetime:
    moment = ensure_utc(moment)
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def daily_expiry(moment: datetime) -> datetime:
    return start_of_day(moment) + timedelta(days=1)


def weekly_expiry(moment: datetime) -> datetime:
    """Next Monday 00:00 UTC."""
    day_start = start_of_day(moment)
    return day_start + timedelta(days=7 - day_start.weekday())


def week_key(moment: datetime) -> str:
    iso_year, iso_week, _ = ensure_utc(moment).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def challenge_source(challenge_id: str) -> str:
    """XP-award source tag for a challenge completion."""
    return f"challenge:{challenge_id}"


def reset_challenge_progress(profile: UserProfile) -> set[str]:
    """Clear progress on the live challenges and return their ids."""
    for challenge in profile.challenges:
        challenge.progress = 0.0
        challenge.unique_exercises = set()
        challenge.completed_at = None
    return {challenge.id for challenge in profile.challenges}


def advance_challenges(
    profile: UserProfile,
    category: ExerciseCategory,
    inputs: WorkoutInputs,
    when: datetime,
) -> list[Challenge]:
    """
    Advance every open challenge for the workout's focus group.

    Returns the challenges completed by this workout; each completes once.
    """
    when = ensure_utc(when)
    completed: list[Challenge] = []
    for challenge in profile.challenges:
        if challenge.target_focus != category.focus or not challenge.accepts(when):
            continue
        if challenge.kind == VARIETY:
            if category.id in challenge.unique_exercises:
                continue
            challenge.unique_exercises.add(category.id)
            challenge.progress = float(len(challenge.unique_exercises))
        else:
            amount = progress_amount(challenge.unit, inputs)
            if amount <= 0:
                continue
            challenge.progress += amount
        if challenge.progress >= challenge.target_amount and challenge.completed_at is None:
            challenge.completed_at = when
            completed.append(challenge)
            logger.info("Completed %s %s challenge for %s", challenge.period, challenge.kind, challenge.target_focus)
    return completed


def progress_amount(unit: str, inputs: WorkoutInputs) -> float:
    """How much one workout contributes towards an amount challenge in `unit`."""
    if unit == "reps":
        return float(inputs.reps_value)
    if unit == "sets":
        return 1.0
    if unit == "time":
        return float(math.ceil(inputs.minutes_value))
    if unit == "distance":
        return float(math.ceil(inputs.distance_value))
    if unit == "frequency":
        return 1.0
    return 0.0


class QuestTracker:
    """
    Generates, advances and completes challenges on a profile.

    Regeneration runs at most once per calendar day (daily slots) and ISO week
    (weekly slots) and only fills slots whose previous challenge has expired.
    Completed challenges stay visible until their own expiry.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def _new_id(self) -> str:
        return uuid.UUID(bytes=self.rng.bytes(16), version=4).hex

    def _build(self, profile: UserProfile, period: str, kind: str, focus: str, now: datetime) -> Challenge:
        if kind == VARIETY:
            unit = "exercises"
            target = DAILY_VARIETY_TARGET
        else:
            unit = profile.challenge_preferences.get(focus, "sets")
            targets = DAILY_TARGETS if period == DAILY else WEEKLY_TARGETS
            target = float(targets[unit])
        return Challenge(
            id=self._new_id(),
            period=period,
            kind=kind,
            target_focus=focus,
            target_amount=target,
            unit=unit,
            exp_reward=DAILY_REWARD_XP if period == DAILY else WEEKLY_REWARD_XP,
            created_at=now,
            expires_at=daily_expiry(now) if period == DAILY else weekly_expiry(now),
        )

    def _fill_slots(self, profile: UserProfile, period: str, now: datetime) -> list[Challenge]:
        profile.challenges = [
            challenge
            for challenge in profile.challenges
            if challenge.period != period or not challenge.is_expired(now)
        ]
        created: list[Challenge] = []
        for focus in profile.focus_groups:
            for kind in SLOTS[period]:
                occupied = any(
                    challenge.period == period and challenge.kind == kind and challenge.target_focus == focus
                    for challenge in profile.challenges
                )
                if occupied:
                    continue
                challenge = self._build(profile, period, kind, focus, now)
                profile.challenges.append(challenge)
                created.append(challenge)
        return created

    def refresh(self, profile: UserProfile, now: datetime) -> list[Challenge]:
        """Regenerate expired daily/weekly slots, at most once per day/week."""
        now = ensure_utc(now)
        created: list[Challenge] = []
        today = now.date()
        if profile.last_daily_refresh != today:
            created.extend(self._fill_slots(profile, DAILY, now))
            profile.last_daily_refresh = today
        current_week = week_key(now)
        if profile.last_weekly_refresh != current_week:
            created.extend(self._fill_slots(profile, WEEKLY, now))
            profile.last_weekly_refresh = current_week
        if created:
            logger.info("Generated %s challenge(s)", len(created))
        return created

    def set_preference(self, profile: UserProfile, focus: str, unit: str) -> None:
        """Change the unit for future amount challenges of a focus group."""
        profile.challenge_preferences[validate_focus_group(focus)] = validate_challenge_unit(unit)
