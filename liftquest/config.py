from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

from .env import get_env, get_env_path
from .models import (
    CHALLENGE_UNITS,
    CHARACTER_CLASSES,
    DEFAULT_BODYWEIGHT_KG,
    DEFAULT_CHALLENGE_PREFERENCES,
    DEFAULT_CLASS,
    FOCUS_GROUPS,
)

try:  # pragma: no cover - Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib  # type: ignore


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    bodyweight_kg: float = DEFAULT_BODYWEIGHT_KG
    active_class: str = DEFAULT_CLASS
    random_seed: Optional[int] = None
    challenge_preferences: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_CHALLENGE_PREFERENCES)
    )


def _config_path() -> Path | None:
    """Resolve the TOML configuration file, if present."""
    override = get_env_path("CONFIG")
    if override:
        return override if override.exists() else None

    default_path = Path("config/liftquest.toml")
    if default_path.exists():
        return default_path
    return None


def _load_toml(path: Path) -> Mapping[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_bodyweight(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_BODYWEIGHT_KG
    return value if value > 0 else DEFAULT_BODYWEIGHT_KG


def _coerce_class(raw: Any) -> str:
    text = str(raw or "").strip().lower()
    return text if text in CHARACTER_CLASSES else DEFAULT_CLASS


def _coerce_seed(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _coerce_preferences(raw: Mapping[str, Any] | None) -> dict[str, str]:
    preferences = dict(DEFAULT_CHALLENGE_PREFERENCES)
    if not raw:
        return preferences
    for focus, unit in raw.items():
        focus_key = str(focus).strip().lower()
        unit_value = str(unit).strip().lower()
        if focus_key in FOCUS_GROUPS and unit_value in CHALLENGE_UNITS:
            preferences[focus_key] = unit_value
    return preferences


def _build_config(raw: Mapping[str, Any]) -> AppConfig:
    preferences_section = raw.get("challenge_preferences")
    seed_override = get_env("SEED")
    return AppConfig(
        bodyweight_kg=_coerce_bodyweight(raw.get("bodyweight_kg", DEFAULT_BODYWEIGHT_KG)),
        active_class=_coerce_class(raw.get("active_class")),
        random_seed=_coerce_seed(seed_override if seed_override is not None else raw.get("random_seed")),
        challenge_preferences=_coerce_preferences(
            preferences_section if isinstance(preferences_section, Mapping) else None
        ),
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load configuration once, falling back to built-in defaults."""
    path = _config_path()
    if not path:
        return _build_config({})
    try:
        data = _load_toml(path)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        LOGGER.warning("Ignoring unreadable config %s: %s", path, exc)
        return _build_config({})
    return _build_config(data)


def as_dict() -> dict[str, Any]:
    """Return the effective configuration for debug/CLI display."""
    config = get_config()
    return {
        "bodyweight_kg": config.bodyweight_kg,
        "active_class": config.active_class,
        "focus_groups": list(CHARACTER_CLASSES[config.active_class]),
        "random_seed": config.random_seed,
        "challenge_preferences": dict(config.challenge_preferences),
        "source": str(_config_path() or "defaults"),
    }
