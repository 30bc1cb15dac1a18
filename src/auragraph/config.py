"""auragraph configuration management."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_INTERACTION_WEIGHTS: dict[str, float] = {
    "like": 0.02,
    "comment": 0.05,
    "message": 0.08,
    "share": 0.03,
    "mention": 0.04,
}

_SAVED_FIELDS = (
    "log_level",
    "pagination_default",
    "pagination_max",
    "wal_mode",
    "initial_follow_weight",
    "interaction_weights",
    "suggestion_limit_default",
    "suggestion_first_degree_cap",
    "suggestion_fanout_cap",
    "suggestion_fallback_popular",
    "retry_attempts",
    "retry_base_delay",
    "decay_factor",
    "decay_floor",
)


@dataclass
class Config:
    """auragraph configuration."""

    home_path: Path = field(default_factory=lambda: Path.home() / ".auragraph")
    log_level: str = "INFO"
    pagination_default: int = 50
    pagination_max: int = 100
    wal_mode: bool = True

    # Edge weights
    initial_follow_weight: float = 0.1
    interaction_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_INTERACTION_WEIGHTS)
    )

    # Suggestions
    suggestion_limit_default: int = 20
    suggestion_first_degree_cap: int = 100
    suggestion_fanout_cap: int = 50
    suggestion_fallback_popular: bool = True

    # Caller-side retry for transient storage errors
    retry_attempts: int = 3
    retry_base_delay: float = 0.5

    # Administrative weight decay
    decay_factor: float = 0.99
    decay_floor: float = 0.05

    @classmethod
    def load(cls, home_path: Path | None = None) -> Config:
        """Load config from defaults, then env vars, then YAML file."""
        config = cls()

        if home_path:
            config.home_path = home_path

        env_path = os.environ.get("AURAGRAPH_HOME")
        if env_path:
            config.home_path = Path(env_path)

        env_log = os.environ.get("AURAGRAPH_LOG_LEVEL")
        if env_log:
            config.log_level = env_log

        config_file = config.home_path / "config.yaml"
        if config_file.exists():
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
            for key, value in data.items():
                if not hasattr(config, key):
                    continue
                if key == "interaction_weights":
                    config.interaction_weights = {
                        str(k): float(v) for k, v in (value or {}).items()
                    }
                    continue
                expected_type = type(getattr(config, key))
                if expected_type is bool and isinstance(value, str):
                    setattr(config, key, value.lower() in ("1", "true", "yes", "on"))
                elif isinstance(getattr(config, key), Path):
                    setattr(config, key, Path(value))
                else:
                    setattr(config, key, expected_type(value))

        return config

    @property
    def db_path(self) -> Path:
        return self.home_path / "graph.db"

    def clamp_limit(self, limit: int | None, default: int | None = None) -> int:
        """Clamp a page size into 1..pagination_max."""
        if limit is None:
            limit = self.pagination_default if default is None else default
        return max(1, min(limit, self.pagination_max))

    def weight_for(self, interaction_type: str) -> float | None:
        return self.interaction_weights.get(interaction_type)

    def save(self) -> None:
        """Save current config to YAML."""
        self.home_path.mkdir(parents=True, exist_ok=True)
        config_file = self.home_path / "config.yaml"
        data = {key: getattr(self, key) for key in _SAVED_FIELDS}
        with open(config_file, "w") as f:
            yaml.dump(data, f, default_flow_style=False)
