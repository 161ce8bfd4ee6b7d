"""Workout ledger: the orchestrator that turns logged sessions into progression.

The profile is a cache of the event log. Every transition runs on a copy of the
current profile and is committed only once it has fully succeeded, and the same
transition functions drive both live logging and full-history replay, so editing
or deleting a past workout can always be resolved by rebuilding from scratch.
"""

from __future__ import annotations

import logging
import uuid
import zlib
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

import numpy as np

from .baseline import BaselineTracker
from .catalog import get_category
from .leveling import DEFAULT_LADDER, LevelLadder, LevelUpResult
from .loot import LootEngine
from .models import (
    CHARACTER_CLASSES,
    CURRENT_SCHEMA_VERSION,
    DEFAULT_BODYWEIGHT_KG,
    Challenge,
    TreasureChest,
    TreasureReward,
    UserProfile,
    ValidationError,
    WorkoutEntry,
    XPAward,
    clamp_workout_inputs,
    ensure_utc,
    parse_timestamp,
    utc_now,
)
from .performance import compute_performance
from .placement import rank_tier, skill_level
from .quests import QuestTracker, advance_challenges, challenge_source, reset_challenge_progress
from .stats import StatDistributor

logger = logging.getLogger(__name__)

_WORKOUT = 0
_AWARD = 1


def entry_rng(reward_seed: int, entry_id: str) -> np.random.Generator:
    """Random stream dedicated to one entry, stable across replays."""
    return np.random.default_rng([int(reward_seed) & 0xFFFFFFFF, zlib.crc32(entry_id.encode("utf-8"))])


def _chest_issuer(
    profile: UserProfile,
    loot: LootEngine,
    when: datetime,
) -> Callable[[int], Optional[TreasureChest]]:
    def issue(level: int) -> Optional[TreasureChest]:
        # A level pays out once even if a replay climbs past it again.
        if any(chest.earned_at_level == level for chest in profile.treasure_chests):
            return None
        chest = loot.create_chest(level, when)
        profile.treasure_chests.append(chest)
        return chest

    return issue


@dataclass
class WorkoutOutcome:
    profile: UserProfile
    entry: WorkoutEntry
    level_up: LevelUpResult


def apply_workout(
    profile: UserProfile,
    entry: WorkoutEntry,
    *,
    loot: LootEngine,
    ladder: LevelLadder = DEFAULT_LADDER,
    distributor: Optional[StatDistributor] = None,
    default_bodyweight_kg: float = DEFAULT_BODYWEIGHT_KG,
) -> WorkoutOutcome:
    """
    Fold one workout into a copy of `profile`.

    Runs performance -> baseline reward -> stat gains -> level ladder -> skill
    placement and returns the new profile with the entry's derived fields filled in.
    The input profile is never mutated.
    """
    distributor = distributor or StatDistributor()
    working = profile.copy()
    category = get_category(entry.category)
    bodyweight = working.bodyweight_kg or default_bodyweight_kg
    inputs = entry.inputs

    performance = compute_performance(category, inputs, bodyweight)

    est_1rm: Optional[float] = None
    prev_best = working.best_1rm.get(category.id)
    if category.one_rm_eligible and performance > 0:
        est_1rm = performance
    pr_ratio = est_1rm / prev_best if est_1rm and prev_best else None

    tracker = BaselineTracker(entry_rng(working.reward_seed, entry.id))
    reward = tracker.reward(working, category, performance, entry.timestamp)

    if est_1rm is not None and (prev_best is None or est_1rm > prev_best):
        working.best_1rm[category.id] = est_1rm

    accrued = ladder.accrued_xp(working, reward.xp)
    gains = distributor.compute(
        working,
        category,
        inputs,
        accrued,
        pr_ratio=pr_ratio,
        baseline_ratio=reward.ratio,
        bodyweight_kg=bodyweight,
    )
    distributor.apply(working, category, gains)

    level_up = ladder.add_xp(working, reward.xp, issue_chest=_chest_issuer(working, loot, entry.timestamp))

    if performance > 0:
        placed = skill_level(category, performance, inputs, bodyweight_kg=bodyweight)
        if placed > working.skill_levels.get(category.id, 0):
            working.skill_levels[category.id] = placed
        tier = rank_tier(working.skill_levels[category.id]) if category.id in working.skill_levels else 1
        working.ranks[category.focus] = max(working.ranks.get(category.focus, 1), tier)

    stored = replace(
        entry,
        category=category.id,
        performance=performance,
        stat_gains=gains.gains,
        exp_gained=reward.xp,
        prev_level=level_up.prev_level,
        new_level=level_up.new_level,
        est_1rm=est_1rm,
        prev_best_1rm=prev_best if category.one_rm_eligible else None,
        total_progress_xp=ladder.cumulative_xp(working.level, working.xp),
        first_time_grant=gains.first_time,
    )
    return WorkoutOutcome(profile=working, entry=stored, level_up=level_up)


def apply_award(
    profile: UserProfile,
    award: XPAward,
    *,
    loot: LootEngine,
    ladder: LevelLadder = DEFAULT_LADDER,
) -> tuple[UserProfile, LevelUpResult]:
    """Fold one non-workout XP award into a copy of `profile`."""
    working = profile.copy()
    level_up = ladder.add_xp(working, award.amount, issue_chest=_chest_issuer(working, loot, award.timestamp))
    return working, level_up


def challenge_award(challenge: Challenge, when: datetime) -> XPAward:
    """XP for a completed challenge, keyed by the challenge id so a replay reproduces it."""
    return XPAward(
        id=challenge.id,
        timestamp=ensure_utc(when),
        source=challenge_source(challenge.id),
        amount=challenge.exp_reward,
    )


def apply_challenges(
    profile: UserProfile,
    entry: WorkoutEntry,
    *,
    loot: LootEngine,
    ladder: LevelLadder = DEFAULT_LADDER,
) -> tuple[UserProfile, list[Challenge], list[TreasureChest]]:
    """Advance challenges with a folded workout and bank the XP of the ones it completes."""
    working = profile.copy()
    when = ensure_utc(entry.timestamp)
    completed = advance_challenges(working, get_category(entry.category), entry.inputs, when)
    chests: list[TreasureChest] = []
    for challenge in completed:
        award = challenge_award(challenge, when)
        working.xp_awards.append(award)
        working, level_up = apply_award(working, award, loot=loot, ladder=ladder)
        chests.extend(level_up.chests)
    done = {challenge.id for challenge in completed}
    return working, [challenge for challenge in working.challenges if challenge.id in done], chests


def sort_history(history: Iterable[WorkoutEntry]) -> list[WorkoutEntry]:
    """Ascending by timestamp; ties keep their existing order."""
    return sorted(history, key=lambda entry: ensure_utc(entry.timestamp))


def replay_history(
    profile: UserProfile,
    history: Sequence[WorkoutEntry],
    *,
    loot: LootEngine,
    ladder: LevelLadder = DEFAULT_LADDER,
    distributor: Optional[StatDistributor] = None,
    default_bodyweight_kg: float = DEFAULT_BODYWEIGHT_KG,
) -> tuple[UserProfile, list[WorkoutEntry]]:
    """
    Rebuild every history-derived field from scratch.

    Workouts and XP awards are merged in timestamp order (workouts first on ties)
    and folded over `profile.reset_progress()`. Progress on the live challenges is
    rebuilt from the workouts along with their awards; awards for challenges that
    have already rotated out are replayed as recorded. Loot and settings carry over.
    """
    state = profile.reset_progress()
    live = {challenge_source(challenge_id) for challenge_id in reset_challenge_progress(state)}
    journal = [award for award in state.xp_awards if award.source not in live]
    state.xp_awards = []
    ordered = sort_history(history)
    events: list[tuple[datetime, int, int, Any]] = [
        (ensure_utc(entry.timestamp), _WORKOUT, index, entry) for index, entry in enumerate(ordered)
    ]
    events.extend(
        (ensure_utc(award.timestamp), _AWARD, index, award) for index, award in enumerate(journal)
    )
    events.sort(key=lambda item: item[:3])

    rebuilt: list[WorkoutEntry] = []
    for _, kind, _, event in events:
        if kind == _WORKOUT:
            outcome = apply_workout(
                state,
                event,
                loot=loot,
                ladder=ladder,
                distributor=distributor,
                default_bodyweight_kg=default_bodyweight_kg,
            )
            rebuilt.append(outcome.entry)
            state, _, _ = apply_challenges(outcome.profile, outcome.entry, loot=loot, ladder=ladder)
        else:
            state.xp_awards.append(event)
            state, _ = apply_award(state, event, loot=loot, ladder=ladder)
    return state, rebuilt


@dataclass(frozen=True)
class RecordResult:
    """Structured outcome of logging a workout."""

    entry: WorkoutEntry
    messages: tuple[str, ...] = ()
    chests: tuple[TreasureChest, ...] = ()
    completed_challenges: tuple[Challenge, ...] = ()
    replayed: bool = False

    @property
    def confirmation(self) -> str:
        entry = self.entry
        name = get_category(entry.category).name
        text = f"Logged {name} on {entry.timestamp.date().isoformat()}: +{entry.exp_gained:.1f} XP"
        if entry.new_level != entry.prev_level:
            text += f" (level {entry.prev_level} -> {entry.new_level})"
        return text + "."

    @property
    def verbose_tokens(self) -> list[str]:
        entry = self.entry
        tokens: list[str] = [f"id={entry.id}", f"performance={entry.performance:.2f}"]
        if entry.est_1rm is not None:
            tokens.append(f"est_1rm={entry.est_1rm:.1f} kg")
        if entry.first_time_grant:
            tokens.append("first-time grant applied")
        gains = ", ".join(f"{name}+{value:.2f}" for name, value in entry.stat_gains.to_dict().items() if value > 0)
        if gains:
            tokens.append(f"stats {gains}")
        for chest in self.chests:
            tokens.append(f"{chest.tier} chest for level {chest.earned_at_level}")
        for challenge in self.completed_challenges:
            tokens.append(f"completed {challenge.period} {challenge.target_focus} challenge (+{challenge.exp_reward:.0f} XP)")
        if self.replayed:
            tokens.append("history replayed")
        return tokens


class ProgressionLedger:
    """
    Owns the profile and workout history and applies every state transition.

    Args:
        profile: Existing profile (a fresh one is created when omitted)
        history: Existing workout entries
        rng: Random source for loot and ids; built from `seed` when omitted
        seed: Seed for the default random source
        clock: Callable returning "now" (UTC); injectable for tests
        default_bodyweight_kg: Used when the profile has no bodyweight set
    """

    def __init__(
        self,
        profile: Optional[UserProfile] = None,
        history: Iterable[WorkoutEntry] = (),
        *,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        default_bodyweight_kg: float = DEFAULT_BODYWEIGHT_KG,
    ):
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.loot = LootEngine(self.rng)
        self.quests = QuestTracker(self.rng)
        self.ladder = DEFAULT_LADDER
        self.distributor = StatDistributor()
        self.default_bodyweight_kg = default_bodyweight_kg
        self._clock = clock or utc_now
        if profile is None:
            profile = UserProfile(reward_seed=int(self.rng.integers(2**31)))
        self.profile = profile
        self.history: list[WorkoutEntry] = sort_history(history)

    # construction / persistence

    @classmethod
    def from_config(cls, config: Any, **kwargs: Any) -> "ProgressionLedger":
        kwargs.setdefault("seed", config.random_seed)
        kwargs.setdefault("default_bodyweight_kg", config.bodyweight_kg)
        ledger = cls(**kwargs)
        ledger.profile.active_class = config.active_class
        ledger.profile.challenge_preferences.update(dict(config.challenge_preferences))
        return ledger

    @classmethod
    def from_snapshot(cls, payload: Mapping[str, Any], **kwargs: Any) -> "ProgressionLedger":
        user = payload.get("user")
        if not isinstance(user, Mapping):
            raise ValidationError("Snapshot is missing the 'user' object.")
        history = [WorkoutEntry.from_dict(item) for item in payload.get("history") or []]
        state = payload.get("rng_state")
        if isinstance(state, Mapping) and kwargs.get("rng") is None:
            # resume the id and loot stream instead of restarting it from the seed
            rng = np.random.default_rng(kwargs.pop("seed", None))
            try:
                rng.bit_generator.state = dict(state)
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(f"Snapshot has an unusable rng_state: {exc}") from exc
            kwargs["rng"] = rng
        return cls(UserProfile.from_dict(user), history, **kwargs)

    def snapshot(self) -> dict[str, Any]:
        return {
            "schema_version": CURRENT_SCHEMA_VERSION,
            "user": self.profile.to_dict(),
            "history": [entry.to_dict() for entry in self.history],
            "rng_state": self.rng.bit_generator.state,
        }

    # helpers

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    def _new_id(self) -> str:
        return uuid.UUID(bytes=self.rng.bytes(16), version=4).hex

    def _new_entry_id(self) -> str:
        taken = {entry.id for entry in self.history}
        entry_id = self._new_id()
        while entry_id in taken:
            entry_id = self._new_id()
        return entry_id

    def get_entry(self, entry_id: str) -> WorkoutEntry:
        for entry in self.history:
            if entry.id == entry_id:
                return entry
        raise ValidationError(f"No workout with id {entry_id!r}.")

    def _can_append(self, profile: UserProfile, when: datetime) -> bool:
        if self.history and when < ensure_utc(self.history[-1].timestamp):
            return False
        return all(when > ensure_utc(award.timestamp) for award in profile.xp_awards)

    def _latest_event_time(self) -> Optional[datetime]:
        moments = [ensure_utc(entry.timestamp) for entry in self.history]
        moments.extend(ensure_utc(award.timestamp) for award in self.profile.xp_awards)
        return max(moments) if moments else None

    def _replay(self, profile: UserProfile, history: Sequence[WorkoutEntry]) -> tuple[UserProfile, list[WorkoutEntry]]:
        return replay_history(
            profile,
            history,
            loot=self.loot,
            ladder=self.ladder,
            distributor=self.distributor,
            default_bodyweight_kg=self.default_bodyweight_kg,
        )

    def _grant_award(
        self,
        profile: UserProfile,
        amount: float,
        source: str,
        when: datetime,
    ) -> tuple[UserProfile, LevelUpResult]:
        award = XPAward(id=self._new_id(), timestamp=when, source=source, amount=float(amount))
        profile.xp_awards.append(award)
        return apply_award(profile, award, loot=self.loot, ladder=self.ladder)

    # operations

    def record_workout(
        self,
        category: str,
        *,
        reps: Any = None,
        weight_kg: Any = None,
        duration_min: Any = None,
        distance_km: Any = None,
        timestamp: Any = None,
        entry_id: Optional[str] = None,
    ) -> RecordResult:
        """
        Log a workout and commit all of its effects at once.

        Out-of-range numbers are clamped and reported in `RecordResult.messages`.
        A back-dated workout triggers a full replay instead of an incremental fold.
        """
        resolved = get_category(category)
        inputs, messages = clamp_workout_inputs(
            reps=reps, weight_kg=weight_kg, duration_min=duration_min, distance_km=distance_km
        )
        when = parse_timestamp(timestamp) if timestamp is not None else self.now()
        entry_id = entry_id or self._new_entry_id()
        if any(existing.id == entry_id for existing in self.history):
            raise ValidationError(f"A workout with id {entry_id!r} already exists.")
        for message in messages:
            logger.info("Clamped input for %s: %s", resolved.id, message)

        draft = WorkoutEntry(id=entry_id, timestamp=when, category=resolved.id).with_inputs(inputs)

        working = self.profile.copy()
        self.quests.refresh(working, self.now())
        chests: list[TreasureChest] = []
        replayed = not self._can_append(working, when)

        if replayed:
            known = {chest.id for chest in working.treasure_chests}
            done = {challenge.id for challenge in working.challenges if challenge.is_completed}
            working, history = self._replay(working, [*self.history, draft])
            chests = [chest for chest in working.treasure_chests if chest.id not in known]
            completed = [
                challenge for challenge in working.challenges if challenge.is_completed and challenge.id not in done
            ]
            stored = next(entry for entry in history if entry.id == entry_id)
            logger.info("Back-dated workout %s; replayed %s entries", entry_id, len(history))
        else:
            outcome = apply_workout(
                working,
                draft,
                loot=self.loot,
                ladder=self.ladder,
                distributor=self.distributor,
                default_bodyweight_kg=self.default_bodyweight_kg,
            )
            stored = outcome.entry
            chests.extend(outcome.level_up.chests)
            working, completed, earned = apply_challenges(outcome.profile, stored, loot=self.loot, ladder=self.ladder)
            chests.extend(earned)
            history = [*self.history, stored]

        self.profile = working
        self.history = history
        return RecordResult(
            entry=stored,
            messages=tuple(messages),
            chests=tuple(chests),
            completed_challenges=tuple(completed),
            replayed=replayed,
        )

    def edit_workout(self, entry: WorkoutEntry) -> None:
        """Replace the raw inputs of an existing entry (matched by id) and replay."""
        self.get_entry(entry.id)
        category = get_category(entry.category)
        inputs, messages = clamp_workout_inputs(
            reps=entry.reps, weight_kg=entry.weight_kg, duration_min=entry.duration_min, distance_km=entry.distance_km
        )
        for message in messages:
            logger.info("Clamped input for %s: %s", category.id, message)
        updated = replace(entry, category=category.id, timestamp=ensure_utc(entry.timestamp)).with_inputs(inputs)
        history = [updated if existing.id == entry.id else existing for existing in self.history]
        self.profile, self.history = self._replay(self.profile, history)
        logger.info("Edited workout %s", entry.id)

    def delete_workout(self, entry_id: str) -> None:
        self.get_entry(entry_id)
        history = [existing for existing in self.history if existing.id != entry_id]
        self.profile, self.history = self._replay(self.profile, history)
        logger.info("Deleted workout %s", entry_id)

    def recalculate_stats_and_xp(self) -> None:
        """Reset derived state and fold the whole history again."""
        self.profile, self.history = self._replay(self.profile, self.history)
        logger.info("Replayed %s workouts; level %s", len(self.history), self.profile.level)

    def open_chest(self, chest_id: str) -> list[TreasureReward]:
        """
        Open a chest and bank its rewards.

        Opening an already opened chest changes nothing and returns an empty list.
        """
        chest = self.profile.find_chest(chest_id)
        if chest is None:
            raise ValidationError(f"No chest with id {chest_id!r}.")
        if chest.is_opened:
            return []

        working = self.profile.copy()
        rewards = self.loot.claim(working, working.find_chest(chest_id))
        bonus = sum(reward.amount for reward in rewards if reward.type == "bonus_xp")
        if bonus:
            latest = self._latest_event_time()
            when = self.now() if latest is None else max(self.now(), latest)
            working, _ = self._grant_award(working, bonus, f"chest:{chest_id}", when)
        self.profile = working
        logger.info("Opened %s chest %s", chest.tier, chest_id)
        return rewards

    def refresh_challenges(self, now: Optional[datetime] = None) -> list[Challenge]:
        working = self.profile.copy()
        created = self.quests.refresh(working, ensure_utc(now) if now is not None else self.now())
        self.profile = working
        return created

    def set_challenge_preference(self, focus: str, preference: str) -> None:
        """Only challenges generated after this call use the new unit."""
        working = self.profile.copy()
        self.quests.set_preference(working, focus, preference)
        self.profile = working

    def set_active_class(self, name: str) -> None:
        key = str(name or "").strip().lower()
        if key not in CHARACTER_CLASSES:
            raise ValidationError(f"Unknown class {name!r}; choose from {', '.join(CHARACTER_CLASSES)}.")
        self.profile.active_class = key

    def set_bodyweight(self, bodyweight_kg: Optional[float]) -> None:
        """Bodyweight feeds several formulas, so changing it replays the history."""
        if bodyweight_kg is not None and bodyweight_kg <= 0:
            raise ValidationError("bodyweight_kg must be positive.")
        working = self.profile.copy()
        working.bodyweight_kg = bodyweight_kg
        self.profile, self.history = self._replay(working, self.history)
