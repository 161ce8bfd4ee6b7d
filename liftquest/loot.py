"""Tiered treasure chests with nested weighted reward tables."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional, Sequence

import numpy as np

from .models import TreasureChest, TreasureReward, UserProfile, ensure_utc

logger = logging.getLogger(__name__)

CHEST_TIERS: tuple[str, ...] = ("common", "uncommon", "rare", "epic", "mythic")
ITEM_RARITIES: tuple[str, ...] = ("uncommon", "rare", "epic", "mythic")

TIER_TABLE: tuple[tuple[str, float], ...] = (
    ("common", 0.45),
    ("uncommon", 0.30),
    ("rare", 0.15),
    ("epic", 0.07),
    ("mythic", 0.03),
)

BONUS_XP: dict[str, int] = {"common": 25, "uncommon": 50, "rare": 100, "epic": 200, "mythic": 400}

COIN_BANDS: tuple[tuple[str, float], ...] = (("normal", 0.60), ("large", 0.30), ("jackpot", 0.10))
COIN_AMOUNTS: dict[str, dict[str, int]] = {
    "common": {"normal": 45, "large": 90, "jackpot": 135},
    "uncommon": {"normal": 80, "large": 160, "jackpot": 240},
    "rare": {"normal": 150, "large": 300, "jackpot": 450},
    "epic": {"normal": 300, "large": 600, "jackpot": 900},
    "mythic": {"normal": 600, "large": 1200, "jackpot": 1800},
}

ITEM_CHANCE: dict[str, float] = {"common": 0.60, "uncommon": 0.70, "rare": 0.80, "epic": 0.90, "mythic": 0.95}

# chest tier -> item rarity odds
ITEM_RARITY_TABLES: dict[str, tuple[tuple[str, float], ...]] = {
    "common": (("uncommon", 0.80), ("rare", 0.17), ("epic", 0.025), ("mythic", 0.005)),
    "uncommon": (("uncommon", 0.65), ("rare", 0.27), ("epic", 0.07), ("mythic", 0.01)),
    "rare": (("uncommon", 0.45), ("rare", 0.38), ("epic", 0.14), ("mythic", 0.03)),
    "epic": (("uncommon", 0.25), ("rare", 0.40), ("epic", 0.27), ("mythic", 0.08)),
    "mythic": (("uncommon", 0.10), ("rare", 0.35), ("epic", 0.35), ("mythic", 0.20)),
}

ITEM_CATALOG: dict[str, tuple[tuple[str, str], ...]] = {
    "uncommon": (
        ("Chalk Pouch", "A dusty pouch that never runs dry."),
        ("Lifting Straps", "Worn cotton straps for a stubborn grip."),
        ("Shaker Bottle", "Smells faintly of vanilla protein."),
        ("Resistance Band", "A loop of elastic with opinions."),
    ),
    "rare": (
        ("Knurled Bar Sleeve", "Cold steel with a perfect knurl."),
        ("Runner's Compass", "Always points to the next mile marker."),
        ("Iron Wrist Wraps", "Stiff wraps that steady heavy presses."),
    ),
    "epic": (
        ("Titan's Belt", "A lever belt said to add a plate to any lift."),
        ("Windrunner Shoes", "Light enough to forget you are wearing them."),
        ("Sage's Yoga Mat", "Balance comes easier when standing on it."),
    ),
    "mythic": (
        ("Olympian Kettlebell", "Forged in a furnace that never cooled."),
        ("Crown of Endurance", "Worn by those who never skipped leg day."),
    ),
}


def pick_weighted(roll: float, table: Sequence[tuple[str, float]]) -> str:
    """Map a uniform roll in [0, 1) onto cumulative probability bands."""
    cumulative = 0.0
    for label, probability in table:
        cumulative += probability
        if roll < cumulative:
            return label
    return table[-1][0]


class LootEngine:
    """
    Generates chests and their rewards from an injected random source.

    Every chest carries one bonus-XP reward and one coins reward; a tier-gated
    roll may add one item whose rarity comes from a second, tier-specific table.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def _roll(self) -> float:
        return float(self.rng.random())

    def _new_id(self) -> str:
        return uuid.UUID(bytes=self.rng.bytes(16), version=4).hex

    def roll_tier(self) -> str:
        return pick_weighted(self._roll(), TIER_TABLE)

    def roll_coins(self, tier: str) -> TreasureReward:
        band = pick_weighted(self._roll(), COIN_BANDS)
        amount = COIN_AMOUNTS[tier][band]
        return TreasureReward(type="coins", amount=amount, description=f"{amount} coins ({band})")

    def roll_item(self, tier: str) -> Optional[TreasureReward]:
        if self._roll() >= ITEM_CHANCE[tier]:
            return None
        rarity = pick_weighted(self._roll(), ITEM_RARITY_TABLES[tier])
        choices = ITEM_CATALOG[rarity]
        name, flavour = choices[int(self.rng.integers(len(choices)))]
        return TreasureReward(
            type="item",
            amount=1,
            description=f"{name} ({rarity})",
            item_info={"name": name, "rarity": rarity, "description": flavour},
        )

    def generate_rewards(self, tier: str) -> list[TreasureReward]:
        if tier not in BONUS_XP:
            raise ValueError(f"Unknown chest tier {tier!r}.")
        rewards = [
            TreasureReward(type="bonus_xp", amount=BONUS_XP[tier], description=f"{BONUS_XP[tier]} bonus XP"),
            self.roll_coins(tier),
        ]
        item = self.roll_item(tier)
        if item is not None:
            rewards.append(item)
        return rewards

    def create_chest(self, level: int, when: datetime, tier: Optional[str] = None) -> TreasureChest:
        tier = tier or self.roll_tier()
        chest = TreasureChest(
            id=self._new_id(),
            tier=tier,
            earned_at_level=level,
            date_earned=ensure_utc(when),
            rewards=self.generate_rewards(tier),
        )
        logger.info("Issued %s chest for level %s", tier, level)
        return chest

    def claim(self, profile: UserProfile, chest: TreasureChest) -> list[TreasureReward]:
        """
        Mark a chest opened and bank its coins and items on the profile.

        Bonus XP is returned to the caller, which routes it through the level ladder.
        Already opened chests yield an empty list.
        """
        if chest.is_opened:
            return []
        chest.is_opened = True
        for reward in chest.rewards:
            if reward.type == "coins":
                profile.coins += reward.amount
            elif reward.type == "item" and reward.item_info is not None:
                profile.inventory.append(dict(reward.item_info, chest_id=chest.id))
        return list(chest.rewards)
