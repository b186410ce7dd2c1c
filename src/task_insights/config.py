"""Configuration management for Task Insights."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from .domain.period import PeriodMode
from .domain.task import Priority

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TASK_INSIGHTS_CONFIG"


@dataclass
class ConfigModel:
    """Global configuration model for Task Insights."""

    # File paths
    data_dir: str = "~/.task_insights"
    trend_db: Optional[str] = None  # defaults to <data_dir>/trends.db
    snapshot_path: Optional[str] = None  # default task snapshot for the CLI

    # Status and priority taxonomy
    final_statuses: List[str] = field(default_factory=list)  # extra "done" statuses
    urgent_priority: str = Priority.URGENT

    # Period preferences
    week_starts_on: int = 0  # 0=Monday, 6=Sunday
    default_period: str = PeriodMode.CURRENT_WEEK.value

    # Output
    output_format: str = "text"  # text, json, plain

    def __post_init__(self):
        """Expand user paths."""
        self.data_dir = os.path.expanduser(self.data_dir)
        if self.trend_db:
            self.trend_db = os.path.expanduser(self.trend_db)
        if self.snapshot_path:
            self.snapshot_path = os.path.expanduser(self.snapshot_path)

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {
            "data_dir": self.data_dir,
            "trend_db": self.trend_db,
            "snapshot_path": self.snapshot_path,
            "final_statuses": self.final_statuses,
            "urgent_priority": self.urgent_priority,
            "week_starts_on": self.week_starts_on,
            "default_period": self.default_period,
            "output_format": self.output_format,
        }
        return yaml.dump(data, default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML, ignoring unknown keys."""
        data = yaml.safe_load(yaml_str) or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a mapping")

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))

        if data.get("default_period") not in (None, *[m.value for m in PeriodMode]):
            logger.warning("Unknown default_period %r, using current_week", data["default_period"])
            data["default_period"] = PeriodMode.CURRENT_WEEK.value

        return cls(**{k: v for k, v in data.items() if k in known})

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"

    def get_trend_db_path(self) -> Path:
        """Get the SQLite trend store path."""
        if self.trend_db:
            return Path(self.trend_db)
        return Path(self.data_dir) / "trends.db"


class Config:
    """Configuration manager for Task Insights."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file, falling back to defaults."""
        if cls._instance is not None and config_path is None:
            return cls._instance

        config = ConfigModel()

        if config_path is None:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            config_path = Path(env_path) if env_path else config.get_config_path()

        if config_path.exists():
            try:
                config = ConfigModel.from_yaml(config_path.read_text())
                logger.debug("Loaded configuration from %s", config_path)
            except (yaml.YAMLError, ValueError, TypeError) as e:
                logger.warning("Failed to load config from %s: %s; using defaults", config_path, e)
        else:
            logger.debug("No configuration at %s; using defaults", config_path)

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> Path:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(config.to_yaml())
        logger.info("Configuration saved to %s", config_path)
        return config_path

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reload(cls) -> ConfigModel:
        """Reload configuration from file."""
        cls._instance = None
        return cls.load()


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> Path:
    """Save configuration to file."""
    return Config.save(config, config_path)
