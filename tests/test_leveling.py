from __future__ import annotations

from datetime import datetime, timezone

import numpy as np
import pytest

from liftquest.leveling import DEFAULT_LADDER, LevelConfig, LevelLadder, cumulative_xp, display_level, xp_needed
from liftquest.models import MAX_LEVEL, TreasureChest, UserProfile


def _profile_at(level: int, xp: float = 0.0) -> UserProfile:
    return UserProfile(level=level, xp=xp, next_level_xp=xp_needed(level))


def test_threshold_consistency() -> None:
    for level in range(2, MAX_LEVEL + 1):
        assert cumulative_xp(level, 0) == pytest.approx(cumulative_xp(level - 1, xp_needed(level - 1)))


def test_prestige_cycles_display_level() -> None:
    assert [display_level(level) for level in (1, 10, 11, 20, 21, 100)] == [1, 10, 1, 10, 1, 10]
    assert DEFAULT_LADDER.prestige_stars(10) == 0
    assert DEFAULT_LADDER.prestige_stars(11) == 1
    assert xp_needed(11) == pytest.approx(xp_needed(1))


def test_prestige_rollover_issues_one_chest() -> None:
    profile = _profile_at(10)
    profile.xp = profile.next_level_xp - 1
    issued: list[int] = []

    def issue(level: int) -> TreasureChest:
        issued.append(level)
        return TreasureChest(
            id=f"chest-{level}",
            tier="common",
            earned_at_level=level,
            date_earned=datetime(2024, 5, 1, tzinfo=timezone.utc),
        )

    result = DEFAULT_LADDER.add_xp(profile, 5, issue_chest=issue)

    assert profile.level == 11
    assert result.levels_gained == 1
    assert issued == [11]
    assert len(result.chests) == 1
    assert DEFAULT_LADDER.display_level(profile.level) == 1
    assert profile.xp == pytest.approx(4.0)
    assert profile.next_level_xp == pytest.approx(xp_needed(11))


def test_large_award_rolls_over_several_levels() -> None:
    profile = _profile_at(1)
    result = DEFAULT_LADDER.add_xp(profile, cumulative_xp(4) + 3)
    assert profile.level == 4
    assert profile.xp == pytest.approx(3.0)
    assert result.levels_gained == 3


def test_level_cap_pins_full_bar() -> None:
    profile = _profile_at(MAX_LEVEL - 1)
    DEFAULT_LADDER.add_xp(profile, 1e9)
    assert profile.level == MAX_LEVEL
    assert profile.xp == 1.0
    assert profile.next_level_xp == 1.0

    result = DEFAULT_LADDER.add_xp(profile, 500)
    assert result.applied_xp == 0
    assert profile.level == MAX_LEVEL


def test_non_positive_delta_is_ignored() -> None:
    profile = _profile_at(3, 10.0)
    DEFAULT_LADDER.add_xp(profile, 0)
    DEFAULT_LADDER.add_xp(profile, -20)
    assert (profile.level, profile.xp) == (3, 10.0)


def test_add_xp_never_leaves_a_full_bar_below_the_cap() -> None:
    rng = np.random.default_rng(2024)
    profile = _profile_at(1)
    for _ in range(2000):
        DEFAULT_LADDER.add_xp(profile, float(rng.uniform(0, 400)))
        if profile.level < MAX_LEVEL:
            assert profile.xp < profile.next_level_xp
        else:
            assert profile.xp == profile.next_level_xp == 1.0
    assert profile.level == MAX_LEVEL


def test_custom_ladder_config() -> None:
    ladder = LevelLadder(LevelConfig(base_xp=10.0, exponent=1.0, prestige_span=5, max_level=12))
    assert ladder.xp_needed(3) == pytest.approx(30.0)
    assert ladder.display_level(6) == 1
    assert ladder.max_cumulative_xp() == pytest.approx(ladder.cumulative_xp(12))
