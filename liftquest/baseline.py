"""Personal-baseline tracking and relative XP rewards.

Each category keeps an exponentially weighted moving average of the user's own
performance. A session is rewarded by how it compares with that baseline (after
weekly decay for time away), so a beginner and an elite lifter both earn XP for
beating themselves. Endurance and mobility work additionally earns a streak bonus
for showing up on consecutive days.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

import numpy as np

from .catalog import ExerciseCategory
from .models import StreakState, UserProfile, ensure_utc

logger = logging.getLogger(__name__)

FOCUS_XP_MULTIPLIERS: dict[str, float] = {
    "strength": 1.0,
    "hypertrophy": 1.0,
    "explosive": 1.15,
    "bodyweight": 1.25,
    "endurance": 1.30,
    "mobility": 1.15,
}
FAST_DECAY_FOCUS = frozenset({"endurance", "mobility"})
FAST_DECAY_RATE = 0.04
SLOW_DECAY_RATE = 0.02

SEED_XP_RANGE = (10.1, 12.9)
BASE_REWARD_XP = 12.0
GROWTH_EXPONENT = 1.25
SHORTFALL_EXPONENT = 0.50
FLOOR_RANGE = (8.0, 9.0)
MAX_REWARD_XP = 50.0
JITTER = 0.4
RATIO_EPSILON = 1e-6

BIG_IMPROVEMENT_RATIO = 1.10
BAD_DAY_RATIO = 0.95
SMOOTHING_FAST = 0.50
SMOOTHING_SLOW = 0.10
SMOOTHING_DEFAULT = 0.25


@dataclass(frozen=True)
class StreakRule:
    bonus_per_day: float
    max_bonus: float
    halve_on_gap: bool


STREAK_RULES: dict[str, StreakRule] = {
    "endurance": StreakRule(bonus_per_day=0.02, max_bonus=0.20, halve_on_gap=True),
    "mobility": StreakRule(bonus_per_day=0.03, max_bonus=0.30, halve_on_gap=False),
}


@dataclass(frozen=True)
class RewardOutcome:
    xp: float
    ratio: Optional[float]
    decayed_baseline: Optional[float]
    new_baseline: Optional[float]
    streak_multiplier: float = 1.0
    seeded: bool = False


def focus_multiplier(focus: str) -> float:
    return FOCUS_XP_MULTIPLIERS.get(focus, 1.0)


def decay_rate(focus: str) -> float:
    return FAST_DECAY_RATE if focus in FAST_DECAY_FOCUS else SLOW_DECAY_RATE


def decay_baseline(baseline: float, focus: str, days: float) -> float:
    """Weekly compounding decay: `baseline * (1 - rate) ** (days / 7)`."""
    if days <= 0:
        return baseline
    return baseline * (1.0 - decay_rate(focus)) ** (days / 7.0)


def smoothing_factor(ratio: float) -> float:
    if ratio >= BIG_IMPROVEMENT_RATIO:
        return SMOOTHING_FAST
    if ratio < BAD_DAY_RATIO:
        return SMOOTHING_SLOW
    return SMOOTHING_DEFAULT


def update_baseline(previous: float, performance: float, ratio: float) -> float:
    mu = smoothing_factor(ratio)
    return (1.0 - mu) * previous + mu * performance


def advance_streak(state: Optional[StreakState], rule: StreakRule, day: date) -> StreakState:
    """Count consecutive training days; a gap halves or trims the streak."""
    if state is None or state.last_day is None or state.count <= 0:
        return StreakState(count=1, last_day=day)
    gap = (day - state.last_day).days
    if gap <= 0:
        return StreakState(count=state.count, last_day=max(day, state.last_day))
    if gap == 1:
        return StreakState(count=state.count + 1, last_day=day)
    if rule.halve_on_gap:
        return StreakState(count=max(1, state.count // 2), last_day=day)
    return StreakState(count=max(1, state.count - 1), last_day=day)


def streak_multiplier(state: Optional[StreakState], rule: StreakRule) -> float:
    if state is None or state.count <= 1:
        return 1.0
    return 1.0 + min(rule.max_bonus, rule.bonus_per_day * (state.count - 1))


class BaselineTracker:
    """
    Computes relative XP rewards and keeps the per-category EMA baselines current.

    All randomness is drawn from the injected generator so a fixed seed gives
    exact, repeatable rewards.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def _uniform(self, low: float, high: float) -> float:
        return float(self.rng.uniform(low, high))

    def seed_reward(self, focus: str) -> float:
        """Onboarding reward for a first log or a session with no usable metric."""
        return round(self._uniform(*SEED_XP_RANGE) * focus_multiplier(focus), 1)

    def relative_reward(self, ratio: float, focus: str) -> float:
        floor = self._uniform(*FLOOR_RANGE)
        if ratio >= 1.0:
            xp = BASE_REWARD_XP * ratio ** GROWTH_EXPONENT
        else:
            xp = BASE_REWARD_XP * ratio ** SHORTFALL_EXPONENT
        xp = min(MAX_REWARD_XP, max(floor, xp))
        xp = xp * focus_multiplier(focus) + self._uniform(-JITTER, JITTER)
        xp = min(MAX_REWARD_XP, max(floor, xp))
        return round(xp, 1)

    def decayed_baseline(self, profile: UserProfile, category: ExerciseCategory, when: datetime) -> Optional[float]:
        baseline = profile.xp_baselines.get(category.id)
        if baseline is None:
            return None
        last = profile.baseline_updated_at.get(category.id)
        if last is None:
            return baseline
        days = (ensure_utc(when) - last).total_seconds() / 86400.0
        return decay_baseline(baseline, category.focus, days)

    def apply_streak(self, profile: UserProfile, focus: str, when: datetime) -> float:
        rule = STREAK_RULES.get(focus)
        if rule is None:
            return 1.0
        state = advance_streak(profile.streaks.get(focus), rule, ensure_utc(when).date())
        profile.streaks[focus] = state
        return streak_multiplier(state, rule)

    def reward(
        self,
        profile: UserProfile,
        category: ExerciseCategory,
        performance: float,
        when: datetime,
    ) -> RewardOutcome:
        """
        Score a session against the category baseline and fold it into the EMA.

        Mutates `profile` (baselines, baseline timestamps, streaks); callers pass a
        working copy so a failure never leaves a half-updated profile behind.
        """
        when = ensure_utc(when)
        focus = category.focus
        decayed = self.decayed_baseline(profile, category, when)

        ratio: Optional[float] = None
        if decayed is None or performance <= 0:
            xp = self.seed_reward(focus)
            seeded = True
        else:
            ratio = performance / max(RATIO_EPSILON, decayed)
            xp = self.relative_reward(ratio, focus)
            seeded = False

        new_baseline: Optional[float] = None
        if performance > 0:
            if decayed is None:
                new_baseline = performance
            else:
                new_baseline = update_baseline(decayed, performance, ratio if ratio is not None else 1.0)
            profile.xp_baselines[category.id] = new_baseline
            profile.baseline_updated_at[category.id] = when
        elif decayed is not None:
            # decay restarts from every same-category entry, scored or not
            new_baseline = decayed
            profile.xp_baselines[category.id] = decayed
            profile.baseline_updated_at[category.id] = when

        multiplier = self.apply_streak(profile, focus, when)
        if multiplier != 1.0:
            xp = round(xp * multiplier, 1)

        logger.debug(
            "Reward for %s: perf=%.3f baseline=%s ratio=%s xp=%.1f",
            category.id,
            performance,
            f"{decayed:.3f}" if decayed is not None else "none",
            f"{ratio:.3f}" if ratio is not None else "n/a",
            xp,
        )
        return RewardOutcome(
            xp=xp,
            ratio=ratio,
            decayed_baseline=decayed,
            new_baseline=new_baseline,
            streak_multiplier=multiplier,
            seeded=seeded,
        )
