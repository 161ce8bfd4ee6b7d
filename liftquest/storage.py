from __future__ import annotations

import json
import logging
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Mapping, Tuple

from .catalog import normalise_category_id
from .env import get_env_path
from .models import CURRENT_SCHEMA_VERSION, DEFAULT_CHALLENGE_PREFERENCES

DEFAULT_DATA_DIR = Path.home() / ".liftquest"
SNAPSHOT_FILENAME = "snapshot.json"
LOGGER = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the snapshot cannot be read or written."""


def _data_dir() -> Path:
    base = get_env_path("DATA_DIR") or DEFAULT_DATA_DIR
    base.mkdir(parents=True, exist_ok=True)
    return base


def snapshot_file() -> Path:
    target = get_env_path("SNAPSHOT_FILE")
    if target:
        target.parent.mkdir(parents=True, exist_ok=True)
        return target
    return _data_dir() / SNAPSHOT_FILENAME


def _save_snapshot_to_file(path: Path, payload: Mapping[str, Any]) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(payload, indent=2, sort_keys=True) + "\n"
        with NamedTemporaryFile("w", dir=path.parent, delete=False, encoding="utf-8") as tmp:
            tmp.write(text)
            temp_path = Path(tmp.name)
        temp_path.replace(path)
    except (OSError, TypeError, ValueError) as exc:
        raise StorageError(f"Could not write {path}: {exc}") from exc


def _load_snapshot_from_file(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None

    try:
        raw = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise StorageError(f"Could not read {path}: {exc}") from exc
    if not raw:
        return None

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageError(f"Could not parse {path}: {exc}") from exc

    upgraded, changed = _migrate_snapshot(payload)
    if changed:
        LOGGER.info("Upgraded snapshot %s to schema %s", path, CURRENT_SCHEMA_VERSION)
        _save_snapshot_to_file(path, upgraded)
    return upgraded


def load_snapshot(path: Path | str | None = None) -> dict[str, Any] | None:
    """Return the stored `{user, history}` snapshot, or None when nothing is saved yet."""
    return _load_snapshot_from_file(Path(path) if path else snapshot_file())


def save_snapshot(payload: Mapping[str, Any], path: Path | str | None = None) -> Path:
    target = Path(path) if path else snapshot_file()
    _save_snapshot_to_file(target, payload)
    return target


def try_save_snapshot(payload: Mapping[str, Any], path: Path | str | None = None) -> bool:
    """
    Persist the snapshot, logging instead of raising on failure.

    The in-memory state stays authoritative; the next successful save catches up.
    """
    try:
        save_snapshot(payload, path)
    except StorageError as exc:
        LOGGER.warning("Snapshot not saved: %s", exc)
        return False
    return True


def _migrate_snapshot(payload: Any) -> Tuple[dict[str, Any], bool]:
    """Upgrade legacy snapshots to the current layout."""
    mutated = False
    if isinstance(payload, list):
        # schema 0 stored the bare history list
        payload = {"history": payload}
        mutated = True
    if not isinstance(payload, dict):
        raise StorageError("Snapshot must contain a JSON object")

    upgraded = dict(payload)

    if "user" not in upgraded and isinstance(upgraded.get("profile"), dict):
        upgraded["user"] = upgraded.pop("profile")
        mutated = True
    if not isinstance(upgraded.get("user"), dict):
        upgraded["user"] = {}
        mutated = True
    if not isinstance(upgraded.get("history"), list):
        upgraded["history"] = []
        mutated = True

    user, user_changed = _migrate_user(upgraded["user"])
    if user_changed:
        upgraded["user"] = user
        mutated = True

    history: list[Any] = []
    for record in upgraded["history"]:
        if isinstance(record, dict):
            migrated, changed = _migrate_entry(record)
            history.append(migrated)
            mutated = mutated or changed
        else:
            mutated = True
    upgraded["history"] = history

    schema_raw = upgraded.get("schema_version")
    if isinstance(schema_raw, int) and schema_raw > CURRENT_SCHEMA_VERSION:
        schema_value = schema_raw
    else:
        schema_value = CURRENT_SCHEMA_VERSION
    if schema_raw != schema_value:
        upgraded["schema_version"] = schema_value
        mutated = True

    return upgraded, mutated


def _migrate_user(user: dict[str, Any]) -> Tuple[dict[str, Any], bool]:
    mutated = False
    upgraded = dict(user)

    for key, default in (("xp_awards", []), ("treasure_chests", []), ("challenges", []), ("inventory", [])):
        if not isinstance(upgraded.get(key), list):
            upgraded[key] = list(default)
            mutated = True

    preferences = upgraded.get("challenge_preferences")
    if not isinstance(preferences, dict):
        upgraded["challenge_preferences"] = dict(DEFAULT_CHALLENGE_PREFERENCES)
        mutated = True

    if "exp" in upgraded and "xp" not in upgraded:
        upgraded["xp"] = upgraded.pop("exp")
        mutated = True

    return upgraded, mutated


def _migrate_entry(record: dict[str, Any]) -> Tuple[dict[str, Any], bool]:
    mutated = False
    upgraded = dict(record)

    raw_category = upgraded.get("category")
    if isinstance(raw_category, str):
        category = normalise_category_id(raw_category)
        if category != raw_category:
            upgraded["category"] = category
            mutated = True

    if "date" in upgraded and "timestamp" not in upgraded:
        upgraded["timestamp"] = upgraded.pop("date")
        mutated = True

    for legacy, current in (("sets_reps", "reps"), ("duration", "duration_min"), ("distance", "distance_km")):
        if legacy in upgraded and current not in upgraded:
            upgraded[current] = upgraded.pop(legacy)
            mutated = True

    return upgraded, mutated
