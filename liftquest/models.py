from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

CURRENT_SCHEMA_VERSION = 1
DEFAULT_BODYWEIGHT_KG = 70.0
MAX_LEVEL = 100
BASE_LEVEL_XP = 50.0

STAT_NAMES: tuple[str, ...] = ("size", "strength", "dexterity", "agility", "endurance", "vitality")
FOCUS_GROUPS: tuple[str, ...] = ("strength", "hypertrophy", "endurance", "explosive", "mobility", "bodyweight")
CHALLENGE_UNITS: tuple[str, ...] = ("sets", "reps", "time", "distance", "frequency")

# Each class trains two focus groups; quests are generated for those.
CHARACTER_CLASSES: dict[str, tuple[str, str]] = {
    "warrior": ("strength", "hypertrophy"),
    "ranger": ("endurance", "explosive"),
    "monk": ("mobility", "bodyweight"),
    "brawler": ("strength", "explosive"),
    "athlete": ("endurance", "bodyweight"),
    "titan": ("hypertrophy", "bodyweight"),
}
DEFAULT_CLASS = "warrior"

DEFAULT_CHALLENGE_PREFERENCES: dict[str, str] = {
    "strength": "sets",
    "hypertrophy": "reps",
    "endurance": "distance",
    "explosive": "frequency",
    "mobility": "time",
    "bodyweight": "reps",
}

# Inclusive bounds applied to raw workout inputs before any formula runs.
INPUT_BOUNDS: dict[str, tuple[float, float]] = {
    "reps": (0.0, 9999.0),
    "weight_kg": (0.0, 9999.0),
    "duration_min": (0.0, 1440.0),
    "distance_km": (0.0, 9999.0),
}

__all__ = [
    "ValidationError",
    "utc_now",
    "ensure_utc",
    "parse_timestamp",
    "parse_iso_day",
    "coerce_number",
    "clamp_number",
    "clamp_workout_inputs",
    "validate_focus_group",
    "validate_challenge_unit",
    "WorkoutInputs",
    "StatBlock",
    "WorkoutEntry",
    "TreasureReward",
    "TreasureChest",
    "Challenge",
    "XPAward",
    "StreakState",
    "UserProfile",
]


class ValidationError(ValueError):
    """Raised when user-supplied data cannot be normalised safely."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any, *, field: str = "timestamp") -> datetime:
    """
    Parse user-supplied ISO-8601 timestamps.

    Accepts `datetime.datetime`, `datetime.date` (midnight UTC) or strings. Raises
    `ValidationError` with a friendlier message if the payload cannot be parsed.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if not isinstance(value, str):
        raise ValidationError(f"{field} must be provided as ISO-8601 text; received {value!r}.")

    candidate = value.strip()
    if not candidate:
        raise ValidationError(f"{field} cannot be empty.")
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be a valid ISO timestamp (YYYY-MM-DD[THH:MM]); received {candidate!r}."
        ) from exc

    return ensure_utc(parsed)


def parse_iso_day(value: Any, *, field: str = "date") -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_timestamp(value, field=field).date()


def coerce_number(
    value: Any,
    *,
    field: str = "value",
    allow_empty: bool = False,
) -> Optional[float]:
    """
    Convert arbitrary input into a float.

    Returns None for empty input when `allow_empty` is set. Non-numeric payloads raise
    `ValidationError`; range checks are left to `clamp_number`.
    """
    if value is None:
        if allow_empty:
            return None
        raise ValidationError(f"{field} is required.")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            if allow_empty:
                return None
            raise ValidationError(f"{field} is required.")
        try:
            number = float(stripped)
        except ValueError as exc:
            raise ValidationError(f"{field} must be a number; received {value!r}.") from exc
    else:
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if number != number:
        if allow_empty:
            return None
        raise ValidationError(f"{field} must be a number; received NaN.")
    return number


def clamp_number(
    value: Any,
    *,
    field: str,
    lower: float,
    upper: float,
) -> tuple[Optional[float], Optional[str]]:
    """
    Clamp an optional number into `[lower, upper]`.

    Out-of-range values are pulled back to the nearest bound and a human readable
    message is returned alongside instead of raising.
    """
    number = coerce_number(value, field=field, allow_empty=True)
    if number is None:
        return None, None
    if number < lower:
        return lower, f"{field} {number:g} is below {lower:g}; clamped to {lower:g}."
    if number > upper:
        return upper, f"{field} {number:g} is above {upper:g}; clamped to {upper:g}."
    return number, None


def validate_focus_group(value: Any, *, field: str = "focus") -> str:
    text = str(value or "").strip().lower()
    if text not in FOCUS_GROUPS:
        raise ValidationError(f"{field} must be one of {', '.join(FOCUS_GROUPS)}; received {value!r}.")
    return text


def validate_challenge_unit(value: Any, *, field: str = "preference") -> str:
    text = str(value or "").strip().lower()
    if text not in CHALLENGE_UNITS:
        raise ValidationError(f"{field} must be one of {', '.join(CHALLENGE_UNITS)}; received {value!r}.")
    return text


@dataclass(frozen=True)
class WorkoutInputs:
    """Raw, already clamped workout inputs. Missing values stay None."""

    reps: Optional[int] = None
    weight_kg: Optional[float] = None
    duration_min: Optional[float] = None
    distance_km: Optional[float] = None

    @property
    def reps_value(self) -> int:
        return max(0, int(self.reps or 0))

    @property
    def weight_value(self) -> float:
        return max(0.0, float(self.weight_kg or 0.0))

    @property
    def minutes_value(self) -> float:
        return max(0.0, float(self.duration_min or 0.0))

    @property
    def distance_value(self) -> float:
        return max(0.0, float(self.distance_km or 0.0))


def clamp_workout_inputs(
    *,
    reps: Any = None,
    weight_kg: Any = None,
    duration_min: Any = None,
    distance_km: Any = None,
) -> tuple[WorkoutInputs, list[str]]:
    """Clamp raw inputs to their documented bounds, collecting non-fatal messages."""
    messages: list[str] = []
    values: dict[str, Optional[float]] = {}
    for name, raw in (
        ("reps", reps),
        ("weight_kg", weight_kg),
        ("duration_min", duration_min),
        ("distance_km", distance_km),
    ):
        lower, upper = INPUT_BOUNDS[name]
        clamped, message = clamp_number(raw, field=name, lower=lower, upper=upper)
        values[name] = clamped
        if message:
            messages.append(message)

    reps_value = values["reps"]
    inputs = WorkoutInputs(
        reps=int(round(reps_value)) if reps_value is not None else None,
        weight_kg=values["weight_kg"],
        duration_min=values["duration_min"],
        distance_km=values["distance_km"],
    )
    return inputs, messages


@dataclass(frozen=True)
class StatBlock:
    """Six non-negative attribute values."""

    size: float = 0.0
    strength: float = 0.0
    dexterity: float = 0.0
    agility: float = 0.0
    endurance: float = 0.0
    vitality: float = 0.0

    @classmethod
    def from_array(cls, values: Any) -> "StatBlock":
        array = np.asarray(values, dtype=float)
        if array.shape != (len(STAT_NAMES),):
            raise ValueError(f"StatBlock needs {len(STAT_NAMES)} values; received shape {array.shape}.")
        return cls(*(float(value) for value in array))

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in STAT_NAMES], dtype=float)

    def add(self, other: "StatBlock") -> "StatBlock":
        return StatBlock.from_array(self.as_array() + other.as_array())

    def scale(self, factor: float) -> "StatBlock":
        return StatBlock.from_array(self.as_array() * float(factor))

    @property
    def total(self) -> float:
        return float(self.as_array().sum())

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in STAT_NAMES}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "StatBlock":
        payload = payload or {}
        return cls(**{name: float(payload.get(name, 0.0) or 0.0) for name in STAT_NAMES})


@dataclass(frozen=True)
class WorkoutEntry:
    """One logged workout and the progression it produced."""

    id: str
    timestamp: datetime
    category: str
    reps: Optional[int] = None
    weight_kg: Optional[float] = None
    duration_min: Optional[float] = None
    distance_km: Optional[float] = None
    performance: float = 0.0
    stat_gains: StatBlock = field(default_factory=StatBlock)
    exp_gained: float = 0.0
    prev_level: int = 1
    new_level: int = 1
    est_1rm: Optional[float] = None
    prev_best_1rm: Optional[float] = None
    total_progress_xp: Optional[float] = None
    first_time_grant: bool = False

    @property
    def inputs(self) -> WorkoutInputs:
        return WorkoutInputs(
            reps=self.reps,
            weight_kg=self.weight_kg,
            duration_min=self.duration_min,
            distance_km=self.distance_km,
        )

    def with_inputs(self, inputs: WorkoutInputs) -> "WorkoutEntry":
        return replace(
            self,
            reps=inputs.reps,
            weight_kg=inputs.weight_kg,
            duration_min=inputs.duration_min,
            distance_km=inputs.distance_km,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Make the entry JSON serialisable."""
        payload: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "category": self.category,
            "performance": self.performance,
            "stat_gains": self.stat_gains.to_dict(),
            "exp_gained": self.exp_gained,
            "prev_level": self.prev_level,
            "new_level": self.new_level,
            "first_time_grant": self.first_time_grant,
        }
        for key in ("reps", "weight_kg", "duration_min", "distance_km", "est_1rm", "prev_best_1rm", "total_progress_xp"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "WorkoutEntry":
        reps = payload.get("reps")
        return cls(
            id=str(payload["id"]),
            timestamp=parse_timestamp(payload.get("timestamp")),
            category=str(payload["category"]),
            reps=int(reps) if reps is not None else None,
            weight_kg=_optional_float(payload.get("weight_kg")),
            duration_min=_optional_float(payload.get("duration_min")),
            distance_km=_optional_float(payload.get("distance_km")),
            performance=float(payload.get("performance", 0.0) or 0.0),
            stat_gains=StatBlock.from_dict(payload.get("stat_gains")),
            exp_gained=float(payload.get("exp_gained", 0.0) or 0.0),
            prev_level=int(payload.get("prev_level", 1)),
            new_level=int(payload.get("new_level", 1)),
            est_1rm=_optional_float(payload.get("est_1rm")),
            prev_best_1rm=_optional_float(payload.get("prev_best_1rm")),
            total_progress_xp=_optional_float(payload.get("total_progress_xp")),
            first_time_grant=bool(payload.get("first_time_grant", False)),
        )


@dataclass(frozen=True)
class TreasureReward:
    type: str
    amount: int
    description: str
    item_info: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type, "amount": self.amount, "description": self.description}
        if self.item_info is not None:
            payload["item_info"] = dict(self.item_info)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TreasureReward":
        info = payload.get("item_info")
        return cls(
            type=str(payload["type"]),
            amount=int(payload.get("amount", 0)),
            description=str(payload.get("description", "")),
            item_info=dict(info) if isinstance(info, Mapping) else None,
        )


@dataclass
class TreasureChest:
    id: str
    tier: str
    earned_at_level: int
    date_earned: datetime
    is_opened: bool = False
    rewards: List[TreasureReward] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tier": self.tier,
            "earned_at_level": self.earned_at_level,
            "date_earned": self.date_earned.isoformat(),
            "is_opened": self.is_opened,
            "rewards": [reward.to_dict() for reward in self.rewards],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TreasureChest":
        return cls(
            id=str(payload["id"]),
            tier=str(payload["tier"]),
            earned_at_level=int(payload.get("earned_at_level", 1)),
            date_earned=parse_timestamp(payload.get("date_earned"), field="date_earned"),
            is_opened=bool(payload.get("is_opened", False)),
            rewards=[TreasureReward.from_dict(item) for item in payload.get("rewards", [])],
        )


@dataclass
class Challenge:
    """A daily or weekly quest bound to one focus group."""

    id: str
    period: str
    kind: str
    target_focus: str
    target_amount: float
    unit: str
    exp_reward: float
    created_at: datetime
    expires_at: datetime
    completed_at: Optional[datetime] = None
    progress: float = 0.0
    unique_exercises: set[str] = field(default_factory=set)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def is_expired(self, now: datetime) -> bool:
        return ensure_utc(now) >= self.expires_at

    def accepts(self, moment: datetime) -> bool:
        """True when a workout at `moment` can still count towards this challenge."""
        moment = ensure_utc(moment)
        return (
            self.completed_at is None
            and self.created_at.date() <= moment.date()
            and moment < self.expires_at
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "period": self.period,
            "kind": self.kind,
            "target_focus": self.target_focus,
            "target_amount": self.target_amount,
            "unit": self.unit,
            "exp_reward": self.exp_reward,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "progress": self.progress,
            "unique_exercises": sorted(self.unique_exercises),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Challenge":
        completed = payload.get("completed_at")
        return cls(
            id=str(payload["id"]),
            period=str(payload["period"]),
            kind=str(payload.get("kind", "amount")),
            target_focus=str(payload["target_focus"]),
            target_amount=float(payload["target_amount"]),
            unit=str(payload["unit"]),
            exp_reward=float(payload.get("exp_reward", 0.0)),
            created_at=parse_timestamp(payload.get("created_at"), field="created_at"),
            expires_at=parse_timestamp(payload.get("expires_at"), field="expires_at"),
            completed_at=parse_timestamp(completed, field="completed_at") if completed else None,
            progress=float(payload.get("progress", 0.0) or 0.0),
            unique_exercises=set(payload.get("unique_exercises", [])),
        )


@dataclass(frozen=True)
class XPAward:
    """Experience granted outside a workout (challenge bonus, chest bonus XP)."""

    id: str
    timestamp: datetime
    source: str
    amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "XPAward":
        return cls(
            id=str(payload["id"]),
            timestamp=parse_timestamp(payload.get("timestamp")),
            source=str(payload.get("source", "")),
            amount=float(payload.get("amount", 0.0)),
        )


@dataclass
class StreakState:
    count: int = 0
    last_day: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "last_day": self.last_day.isoformat() if self.last_day else None}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StreakState":
        return cls(count=int(payload.get("count", 0)), last_day=parse_iso_day(payload.get("last_day")))


def default_ranks() -> Dict[str, int]:
    return {focus: 1 for focus in FOCUS_GROUPS}


@dataclass
class UserProfile:
    """
    Aggregate progression state for the single local user.

    Everything under "derived" is a cache of the workout history and is rebuilt by a
    replay; loot, quests, settings and the XP award journal survive a rebuild.
    """

    # derived
    level: int = 1
    xp: float = 0.0
    next_level_xp: float = BASE_LEVEL_XP
    stats: StatBlock = field(default_factory=StatBlock)
    best_1rm: Dict[str, float] = field(default_factory=dict)
    xp_baselines: Dict[str, float] = field(default_factory=dict)
    baseline_updated_at: Dict[str, datetime] = field(default_factory=dict)
    skill_levels: Dict[str, int] = field(default_factory=dict)
    ranks: Dict[str, int] = field(default_factory=default_ranks)
    first_stat_grant_applied: set[str] = field(default_factory=set)
    streaks: Dict[str, StreakState] = field(default_factory=dict)
    # durable
    coins: int = 0
    treasure_chests: List[TreasureChest] = field(default_factory=list)
    inventory: List[Dict[str, Any]] = field(default_factory=list)
    challenges: List[Challenge] = field(default_factory=list)
    challenge_preferences: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CHALLENGE_PREFERENCES))
    active_class: str = DEFAULT_CLASS
    bodyweight_kg: Optional[float] = None
    xp_awards: List[XPAward] = field(default_factory=list)
    last_daily_refresh: Optional[date] = None
    last_weekly_refresh: Optional[str] = None
    reward_seed: int = 0
    schema_version: int = CURRENT_SCHEMA_VERSION

    def copy(self) -> "UserProfile":
        return copy.deepcopy(self)

    def reset_progress(self) -> "UserProfile":
        """Return a copy with every history-derived field back at its initial value."""
        fresh = self.copy()
        fresh.level = 1
        fresh.xp = 0.0
        fresh.next_level_xp = BASE_LEVEL_XP
        fresh.stats = StatBlock()
        fresh.best_1rm = {}
        fresh.xp_baselines = {}
        fresh.baseline_updated_at = {}
        fresh.skill_levels = {}
        fresh.ranks = default_ranks()
        fresh.first_stat_grant_applied = set()
        fresh.streaks = {}
        return fresh

    @property
    def focus_groups(self) -> tuple[str, str]:
        return CHARACTER_CLASSES.get(self.active_class, CHARACTER_CLASSES[DEFAULT_CLASS])

    def find_chest(self, chest_id: str) -> Optional[TreasureChest]:
        for chest in self.treasure_chests:
            if chest.id == chest_id:
                return chest
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "xp": self.xp,
            "next_level_xp": self.next_level_xp,
            "stats": self.stats.to_dict(),
            "best_1rm": dict(self.best_1rm),
            "xp_baselines": dict(self.xp_baselines),
            "baseline_updated_at": {key: value.isoformat() for key, value in self.baseline_updated_at.items()},
            "skill_levels": dict(self.skill_levels),
            "ranks": dict(self.ranks),
            "first_stat_grant_applied": sorted(self.first_stat_grant_applied),
            "streaks": {key: value.to_dict() for key, value in self.streaks.items()},
            "coins": self.coins,
            "treasure_chests": [chest.to_dict() for chest in self.treasure_chests],
            "inventory": [dict(item) for item in self.inventory],
            "challenges": [challenge.to_dict() for challenge in self.challenges],
            "challenge_preferences": dict(self.challenge_preferences),
            "active_class": self.active_class,
            "bodyweight_kg": self.bodyweight_kg,
            "xp_awards": [award.to_dict() for award in self.xp_awards],
            "last_daily_refresh": self.last_daily_refresh.isoformat() if self.last_daily_refresh else None,
            "last_weekly_refresh": self.last_weekly_refresh,
            "reward_seed": self.reward_seed,
            "schema_version": self.schema_version,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UserProfile":
        preferences = dict(DEFAULT_CHALLENGE_PREFERENCES)
        preferences.update({str(key): str(value) for key, value in (payload.get("challenge_preferences") or {}).items()})
        ranks = default_ranks()
        ranks.update({str(key): int(value) for key, value in (payload.get("ranks") or {}).items()})
        return cls(
            level=int(payload.get("level", 1)),
            xp=float(payload.get("xp", 0.0)),
            next_level_xp=float(payload.get("next_level_xp", BASE_LEVEL_XP)),
            stats=StatBlock.from_dict(payload.get("stats")),
            best_1rm={str(key): float(value) for key, value in (payload.get("best_1rm") or {}).items()},
            xp_baselines={str(key): float(value) for key, value in (payload.get("xp_baselines") or {}).items()},
            baseline_updated_at={
                str(key): parse_timestamp(value, field="baseline_updated_at")
                for key, value in (payload.get("baseline_updated_at") or {}).items()
            },
            skill_levels={str(key): int(value) for key, value in (payload.get("skill_levels") or {}).items()},
            ranks=ranks,
            first_stat_grant_applied=set(payload.get("first_stat_grant_applied") or []),
            streaks={str(key): StreakState.from_dict(value) for key, value in (payload.get("streaks") or {}).items()},
            coins=int(payload.get("coins", 0)),
            treasure_chests=[TreasureChest.from_dict(item) for item in payload.get("treasure_chests") or []],
            inventory=[dict(item) for item in payload.get("inventory") or []],
            challenges=[Challenge.from_dict(item) for item in payload.get("challenges") or []],
            challenge_preferences=preferences,
            active_class=str(payload.get("active_class") or DEFAULT_CLASS),
            bodyweight_kg=_optional_float(payload.get("bodyweight_kg")),
            xp_awards=[XPAward.from_dict(item) for item in payload.get("xp_awards") or []],
            last_daily_refresh=parse_iso_day(payload.get("last_daily_refresh"), field="last_daily_refresh"),
            last_weekly_refresh=payload.get("last_weekly_refresh"),
            reward_seed=int(payload.get("reward_seed", 0)),
            schema_version=int(payload.get("schema_version", CURRENT_SCHEMA_VERSION)),
        )


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)
