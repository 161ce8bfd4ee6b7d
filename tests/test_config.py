from __future__ import annotations

import logging

import pytest

from liftquest.config import as_dict, get_config
from liftquest.ledger import ProgressionLedger
from liftquest.models import DEFAULT_BODYWEIGHT_KG, DEFAULT_CHALLENGE_PREFERENCES, DEFAULT_CLASS


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    monkeypatch.delenv("LIFTQUEST_SEED", raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def _write_config(tmp_path, monkeypatch, text: str):
    path = tmp_path / "liftquest.toml"
    path.write_text(text, encoding="utf-8")
    monkeypatch.setenv("LIFTQUEST_CONFIG", str(path))
    return path


def test_defaults_without_config_file(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("LIFTQUEST_CONFIG", str(tmp_path / "missing.toml"))
    config = get_config()
    assert config.bodyweight_kg == DEFAULT_BODYWEIGHT_KG
    assert config.active_class == DEFAULT_CLASS
    assert config.random_seed is None
    assert dict(config.challenge_preferences) == DEFAULT_CHALLENGE_PREFERENCES
    assert as_dict()["source"] == "defaults"


def test_values_from_toml(monkeypatch, tmp_path) -> None:
    path = _write_config(
        tmp_path,
        monkeypatch,
        'bodyweight_kg = 82.5\nactive_class = "Ranger"\nrandom_seed = 17\n\n'
        '[challenge_preferences]\nendurance = "time"\nexplosive = "reps"\n',
    )
    config = get_config()
    assert config.bodyweight_kg == 82.5
    assert config.active_class == "ranger"
    assert config.random_seed == 17
    assert config.challenge_preferences["endurance"] == "time"
    assert config.challenge_preferences["explosive"] == "reps"
    rendered = as_dict()
    assert rendered["focus_groups"] == ["endurance", "explosive"]
    assert rendered["source"] == str(path)


def test_bad_values_fall_back_to_defaults(monkeypatch, tmp_path) -> None:
    _write_config(
        tmp_path,
        monkeypatch,
        'bodyweight_kg = -3\nactive_class = "necromancer"\nrandom_seed = "abc"\n\n'
        '[challenge_preferences]\nstrength = "parsecs"\n',
    )
    config = get_config()
    assert config.bodyweight_kg == DEFAULT_BODYWEIGHT_KG
    assert config.active_class == DEFAULT_CLASS
    assert config.random_seed is None
    assert config.challenge_preferences["strength"] == DEFAULT_CHALLENGE_PREFERENCES["strength"]


def test_seed_env_overrides_file(monkeypatch, tmp_path) -> None:
    _write_config(tmp_path, monkeypatch, "random_seed = 1\n")
    monkeypatch.setenv("LIFTQUEST_SEED", "99")
    assert get_config().random_seed == 99


def test_ledger_from_config_applies_settings(monkeypatch, tmp_path) -> None:
    _write_config(tmp_path, monkeypatch, 'active_class = "monk"\nrandom_seed = 4\n\n[challenge_preferences]\nmobility = "frequency"\n')
    first = ProgressionLedger.from_config(get_config())
    second = ProgressionLedger.from_config(get_config())

    assert first.profile.active_class == "monk"
    assert first.profile.focus_groups == ("mobility", "bodyweight")
    assert first.profile.challenge_preferences["mobility"] == "frequency"
    assert first.profile.reward_seed == second.profile.reward_seed


def test_unreadable_toml_falls_back(monkeypatch, tmp_path, caplog) -> None:
    _write_config(tmp_path, monkeypatch, "bodyweight_kg = [unterminated\n")
    with caplog.at_level(logging.WARNING, logger="liftquest.config"):
        config = get_config()
    assert config.bodyweight_kg == DEFAULT_BODYWEIGHT_KG
    assert "Ignoring unreadable config" in caplog.text


def test_blank_env_values_are_ignored(monkeypatch, tmp_path) -> None:
    _write_config(tmp_path, monkeypatch, "random_seed = 3\n")
    monkeypatch.setenv("LIFTQUEST_SEED", "   ")
    assert get_config().random_seed == 3
