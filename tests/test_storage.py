from __future__ import annotations

import json
import logging

import pytest

from liftquest.ledger import ProgressionLedger
from liftquest.models import CURRENT_SCHEMA_VERSION
from liftquest.storage import StorageError, load_snapshot, save_snapshot, snapshot_file, try_save_snapshot


@pytest.fixture
def snapshot_path(monkeypatch, tmp_path):
    target = tmp_path / "state" / "snapshot.json"
    monkeypatch.setenv("LIFTQUEST_SNAPSHOT_FILE", str(target))
    return target


def test_missing_snapshot_loads_as_none(snapshot_path) -> None:
    assert load_snapshot() is None
    assert snapshot_file() == snapshot_path


def test_data_dir_override(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("LIFTQUEST_SNAPSHOT_FILE", raising=False)
    monkeypatch.setenv("LIFTQUEST_DATA_DIR", str(tmp_path / "data"))
    assert snapshot_file() == tmp_path / "data" / "snapshot.json"


def test_snapshot_round_trip(snapshot_path) -> None:
    ledger = ProgressionLedger(seed=3)
    ledger.record_workout("deadlift", weight_kg=140, reps=3, timestamp="2024-05-01T07:00:00Z")
    payload = ledger.snapshot()

    save_snapshot(payload)
    loaded = load_snapshot()

    assert loaded == json.loads(json.dumps(payload))
    restored = ProgressionLedger.from_snapshot(loaded)
    assert restored.history[0].est_1rm == pytest.approx(ledger.history[0].est_1rm)
    assert not list(snapshot_path.parent.glob("tmp*"))


def test_load_migrates_legacy_history_list(snapshot_path) -> None:
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    legacy = [
        {
            "id": "w1",
            "date": "2024-05-01T07:00:00+00:00",
            "category": "Bench Press",
            "weight_kg": 80,
            "sets_reps": 5,
        }
    ]
    snapshot_path.write_text(json.dumps(legacy), encoding="utf-8")

    loaded = load_snapshot()

    assert loaded["schema_version"] == CURRENT_SCHEMA_VERSION
    entry = loaded["history"][0]
    assert entry["category"] == "bench_press"
    assert entry["timestamp"] == "2024-05-01T07:00:00+00:00"
    assert entry["reps"] == 5
    on_disk = json.loads(snapshot_path.read_text(encoding="utf-8"))
    assert on_disk == loaded

    ledger = ProgressionLedger.from_snapshot(loaded, seed=1)
    ledger.recalculate_stats_and_xp()
    assert ledger.profile.best_1rm["bench_press"] == pytest.approx(90.0, abs=0.05)


def test_load_renames_legacy_profile_key(snapshot_path) -> None:
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    snapshot_path.write_text(json.dumps({"profile": {"level": 3, "exp": 12.0}, "history": []}), encoding="utf-8")

    loaded = load_snapshot()

    assert loaded["user"]["level"] == 3
    assert loaded["user"]["xp"] == 12.0
    assert loaded["user"]["xp_awards"] == []
    assert "profile" not in loaded


def test_corrupt_snapshot_raises_storage_error(snapshot_path) -> None:
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    snapshot_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        load_snapshot()


def test_failed_save_logs_warning(tmp_path, caplog) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("occupied", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="liftquest.storage"):
        saved = try_save_snapshot({"user": {}, "history": []}, blocker / "snapshot.json")

    assert saved is False
    assert "Snapshot not saved" in caplog.text
    with pytest.raises(StorageError):
        save_snapshot({"user": {}, "history": []}, blocker / "snapshot.json")
