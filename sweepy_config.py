"""Sweepy configuration: defaults, config.yaml, and the working-directory layout."""

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

# Default config
DEFAULT_CONFIG = {
    "roots": [
        "~/Projects",
        "~/projects",
        "~/Documents",
        "~/Desktop",
        "~/source",
        "~/repos",
        "~/dev",
        "~/code",
        "~/workspace",
    ],
    "target_name": "node_modules",
    # Checked in this order; the first one present wins
    "lock_files": [
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "bun.lockb",
        "bun.lock",
        "npm-shrinkwrap.json",
    ],
    "days": 30,
    "exclude": [],
    "retention": {
        "reports": 5,
        "logs": 10,
    },
    "report_freshness_days": 7,
    "size_workers": 4,
}

HOME_ENV_VAR = "SWEEPY_HOME"


class SweepyError(Exception):
    """Base class for errors that stop a sweepy command."""


class ConfigError(SweepyError):
    pass


@dataclass
class SweepyConfig:
    """Resolved settings for one invocation, passed to every component."""

    home: Path
    roots: list[Path]
    target_name: str = "node_modules"
    lock_files: list[str] = field(default_factory=lambda: list(DEFAULT_CONFIG["lock_files"]))
    days: int = 30
    exclude: list[str] = field(default_factory=list)
    report_keep: int = 5
    log_keep: int = 10
    report_freshness_days: int = 7
    size_workers: int = 4

    @property
    def reports_dir(self) -> Path:
        return self.home / "reports"

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"

    @property
    def config_path(self) -> Path:
        return self.home / "config.yaml"

    def ensure_dirs(self) -> None:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)


def resolve_home(home: Optional[Path] = None) -> Path:
    """Pick the working directory: explicit, then $SWEEPY_HOME, then ~/.sweepy."""
    if home:
        return Path(home).expanduser()
    env_home = os.environ.get(HOME_ENV_VAR, "")
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".sweepy"


def load_raw_config(config_path: Path) -> dict:
    """Load config from file merged over defaults."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not config_path.exists():
        return config

    try:
        with open(config_path, encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    if not isinstance(user_config, dict):
        raise ConfigError(f"{config_path} must contain a mapping, got {type(user_config).__name__}")

    # Merge with defaults
    for key, value in user_config.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key] = {**config[key], **value}
        else:
            config[key] = value
    return config


def _as_int(key: str, value) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}") from None
    if number < 0:
        raise ConfigError(f"'{key}' must not be negative, got {number}")
    return number


def _as_list(key: str, value) -> list:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list, got {value!r}")
    return value


def load_config(home: Optional[Path] = None, config_path: Optional[Path] = None) -> SweepyConfig:
    """Build a SweepyConfig from the working directory and its config.yaml."""
    home_dir = resolve_home(home)
    raw = load_raw_config(config_path or home_dir / "config.yaml")
    retention = raw.get("retention") or {}

    lock_files = [str(name) for name in _as_list("lock_files", raw["lock_files"])]
    if not lock_files:
        raise ConfigError("'lock_files' must name at least one lock file")

    return SweepyConfig(
        home=home_dir,
        roots=[Path(str(r)).expanduser() for r in _as_list("roots", raw["roots"])],
        target_name=str(raw["target_name"]),
        lock_files=lock_files,
        days=_as_int("days", raw["days"]),
        exclude=[str(p) for p in _as_list("exclude", raw["exclude"])],
        report_keep=_as_int("retention.reports", retention.get("reports", 5)),
        log_keep=_as_int("retention.logs", retention.get("logs", 10)),
        report_freshness_days=_as_int("report_freshness_days", raw["report_freshness_days"]),
        size_workers=max(1, _as_int("size_workers", raw["size_workers"])),
    )
