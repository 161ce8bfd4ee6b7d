from __future__ import annotations

from datetime import datetime, timezone

import numpy as np
import pytest

from liftquest.loot import BONUS_XP, CHEST_TIERS, COIN_AMOUNTS, TIER_TABLE, LootEngine, pick_weighted
from liftquest.models import UserProfile

WHEN = datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_tier_distribution_matches_table() -> None:
    engine = LootEngine(np.random.default_rng(12345))
    rolls = 100_000
    counts = {tier: 0 for tier in CHEST_TIERS}
    for _ in range(rolls):
        counts[engine.roll_tier()] += 1
    for tier, probability in TIER_TABLE:
        assert counts[tier] / rolls == pytest.approx(probability, abs=0.01)


def test_pick_weighted_boundaries() -> None:
    assert pick_weighted(0.0, TIER_TABLE) == "common"
    assert pick_weighted(0.45, TIER_TABLE) == "uncommon"
    assert pick_weighted(0.9999, TIER_TABLE) == "mythic"


@pytest.mark.parametrize("tier", CHEST_TIERS)
def test_every_chest_has_bonus_xp_and_coins(tier: str) -> None:
    engine = LootEngine(np.random.default_rng(3))
    for _ in range(50):
        rewards = engine.generate_rewards(tier)
        assert len(rewards) >= 2
        assert rewards[0].type == "bonus_xp"
        assert rewards[0].amount == BONUS_XP[tier]
        assert rewards[1].type == "coins"
        assert rewards[1].amount in COIN_AMOUNTS[tier].values()
        assert all(reward.type in {"bonus_xp", "coins", "item"} for reward in rewards)


def test_unknown_tier_is_rejected() -> None:
    with pytest.raises(ValueError):
        LootEngine().generate_rewards("legendary")


def test_chests_are_reproducible_with_a_seed() -> None:
    first = LootEngine(np.random.default_rng(99)).create_chest(3, WHEN)
    second = LootEngine(np.random.default_rng(99)).create_chest(3, WHEN)
    assert first == second
    assert first.earned_at_level == 3
    assert not first.is_opened


def test_claim_banks_rewards_once() -> None:
    engine = LootEngine(np.random.default_rng(8))
    profile = UserProfile()
    chest = engine.create_chest(2, WHEN, tier="epic")
    profile.treasure_chests.append(chest)

    rewards = engine.claim(profile, chest)
    coins = sum(reward.amount for reward in rewards if reward.type == "coins")
    items = [reward for reward in rewards if reward.type == "item"]
    assert chest.is_opened
    assert profile.coins == coins
    assert len(profile.inventory) == len(items)

    assert engine.claim(profile, chest) == []
    assert profile.coins == coins
