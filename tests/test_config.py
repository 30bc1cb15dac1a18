"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import yaml

from auragraph.config import DEFAULT_INTERACTION_WEIGHTS, Config


def test_defaults(tmp_path: Path):
    config = Config(home_path=tmp_path)
    assert config.db_path == tmp_path / "graph.db"
    assert config.initial_follow_weight == 0.1
    assert config.interaction_weights == DEFAULT_INTERACTION_WEIGHTS
    assert config.suggestion_fanout_cap == 50


def test_interaction_weights_not_shared():
    a = Config()
    a.interaction_weights["like"] = 9.0
    assert Config().interaction_weights["like"] == 0.02


def test_load_from_yaml(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("AURAGRAPH_HOME", raising=False)
    monkeypatch.delenv("AURAGRAPH_LOG_LEVEL", raising=False)
    (tmp_path / "config.yaml").write_text(
        yaml.dump(
            {
                "pagination_max": "25",
                "suggestion_fallback_popular": "false",
                "interaction_weights": {"like": 0.5, "poke": 1},
                "unknown_key": 1,
            }
        )
    )
    config = Config.load(tmp_path)
    assert config.pagination_max == 25
    assert config.suggestion_fallback_popular is False
    assert config.interaction_weights == {"like": 0.5, "poke": 1.0}


def test_env_overrides(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("AURAGRAPH_HOME", str(tmp_path / "env-home"))
    monkeypatch.setenv("AURAGRAPH_LOG_LEVEL", "DEBUG")
    config = Config.load(tmp_path)
    assert config.home_path == tmp_path / "env-home"
    assert config.log_level == "DEBUG"


def test_save_roundtrip(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("AURAGRAPH_HOME", raising=False)
    config = Config(home_path=tmp_path, suggestion_fanout_cap=7, retry_attempts=5)
    config.save()
    loaded = Config.load(tmp_path)
    assert loaded.suggestion_fanout_cap == 7
    assert loaded.retry_attempts == 5
    assert loaded.interaction_weights == DEFAULT_INTERACTION_WEIGHTS


def test_clamp_limit():
    config = Config()
    assert config.clamp_limit(None) == 50
    assert config.clamp_limit(0) == 1
    assert config.clamp_limit(500) == 100
    assert config.clamp_limit(20) == 20
    assert config.clamp_limit(None, config.suggestion_limit_default) == 20
    assert config.clamp_limit(500, config.suggestion_limit_default) == 100


def test_weight_for():
    config = Config()
    assert config.weight_for("comment") == 0.05
    assert config.weight_for("poke") is None
