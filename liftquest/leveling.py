"""XP thresholds, prestige cycling and level-up handling."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .models import BASE_LEVEL_XP, MAX_LEVEL, TreasureChest, UserProfile

logger = logging.getLogger(__name__)

_EPSILON = 1e-9

ChestIssuer = Callable[[int], Optional[TreasureChest]]


@dataclass(frozen=True)
class LevelConfig:
    """Configuration for the leveling curve."""

    base_xp: float = BASE_LEVEL_XP
    exponent: float = 1.2
    prestige_span: int = 10  # the curve shape restarts every N levels
    max_level: int = MAX_LEVEL


@dataclass
class LevelUpResult:
    prev_level: int
    new_level: int
    applied_xp: float
    chests: list[TreasureChest] = field(default_factory=list)

    @property
    def levels_gained(self) -> int:
        return self.new_level - self.prev_level


class LevelLadder:
    """
    XP-to-level thresholds with prestige cycling.

    The threshold for a level depends only on its display level (1-10), so every
    prestige band repeats the same curve. Levels above the cap never accrue XP;
    at the cap `xp` and `next_level_xp` are both pinned to 1 (a full bar).
    """

    def __init__(self, config: Optional[LevelConfig] = None):
        self.config = config or LevelConfig()

    def display_level(self, level: int) -> int:
        span = self.config.prestige_span
        if level <= span:
            return max(1, level)
        return ((level - 1) % span) + 1

    def prestige_stars(self, level: int) -> int:
        return max(0, (level - 1) // self.config.prestige_span)

    def xp_needed(self, level: int) -> float:
        """XP required to advance from `level` to `level + 1`."""
        return self.config.base_xp * self.display_level(level) ** self.config.exponent

    def cumulative_xp(self, level: int, xp: float = 0.0) -> float:
        """Total XP earned to stand at `level` with `xp` into it."""
        total = sum(self.xp_needed(prior) for prior in range(1, level))
        return total + xp

    def max_cumulative_xp(self) -> float:
        return self.cumulative_xp(self.config.max_level)

    def accrued_xp(self, profile: UserProfile, delta: float) -> float:
        """How much of `delta` would actually land before the level cap."""
        if delta <= 0 or profile.level >= self.config.max_level:
            return 0.0
        room = self.max_cumulative_xp() - self.cumulative_xp(profile.level, profile.xp)
        return max(0.0, min(float(delta), room))

    def progress_fraction(self, profile: UserProfile) -> float:
        if profile.next_level_xp <= 0:
            return 1.0
        return min(1.0, max(0.0, profile.xp / profile.next_level_xp))

    def normalise(self, profile: UserProfile) -> None:
        """Pin the profile to the cap display when it is already at max level."""
        if profile.level >= self.config.max_level:
            profile.level = self.config.max_level
            profile.xp = 1.0
            profile.next_level_xp = 1.0

    def add_xp(
        self,
        profile: UserProfile,
        delta: float,
        *,
        issue_chest: Optional[ChestIssuer] = None,
    ) -> LevelUpResult:
        """
        Add XP to the profile in place, rolling over as many levels as it covers.

        Args:
            profile: Profile to mutate (callers pass a working copy)
            delta: XP to add; non-positive deltas are ignored
            issue_chest: Called once per level reached; may return None to skip

        Returns:
            LevelUpResult with the XP that actually accrued and any chests issued
        """
        prev_level = profile.level
        applied = self.accrued_xp(profile, delta)
        result = LevelUpResult(prev_level=prev_level, new_level=prev_level, applied_xp=applied)
        if applied <= 0:
            self.normalise(profile)
            return result

        profile.xp += applied
        while profile.level < self.config.max_level and profile.xp >= profile.next_level_xp - _EPSILON:
            profile.xp = max(0.0, profile.xp - profile.next_level_xp)
            profile.level += 1
            profile.next_level_xp = self.xp_needed(profile.level)
            logger.debug("Level up: %s -> %s", profile.level - 1, profile.level)
            if issue_chest is not None:
                chest = issue_chest(profile.level)
                if chest is not None:
                    result.chests.append(chest)

        self.normalise(profile)
        result.new_level = profile.level
        if result.levels_gained:
            logger.info(
                "Reached level %s (display %s, prestige %s)",
                profile.level,
                self.display_level(profile.level),
                self.prestige_stars(profile.level),
            )
        return result


DEFAULT_LADDER = LevelLadder()


def xp_needed(level: int) -> float:
    return DEFAULT_LADDER.xp_needed(level)


def cumulative_xp(level: int, xp: float = 0.0) -> float:
    return DEFAULT_LADDER.cumulative_xp(level, xp)


def display_level(level: int) -> int:
    return DEFAULT_LADDER.display_level(level)
