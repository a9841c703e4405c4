"""Configuration loading from an optional YAML file and environment variables."""

import logging
import os
import re
import sys
from dataclasses import dataclass
from datetime import timedelta

import yaml

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhdw]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value) -> timedelta:
    """Parse ``"30s"``, ``"5m"``, ``"12h"``, ``"7d"``, ``"2w"`` or bare seconds."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=float(amount) * _UNIT_SECONDS[unit.lower()])


def parse_optional_duration(value) -> timedelta | None:
    """Like parse_duration, but ``None``, ``""`` and ``"none"`` mean unset."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in ("", "none", "never", "forever"):
        return None
    return parse_duration(value)


def default_log_path(executable: str | None = None) -> str:
    """``<dir of executable>/../log/<executable name up to first dot>.log``."""
    if executable is None:
        executable = sys.argv[0] if sys.argv and sys.argv[0] else None
    if executable:
        executable = os.path.abspath(executable)
        base_dir = os.path.dirname(executable)
        name = os.path.basename(executable)
    else:
        base_dir = "./bin/"
        name = "unknown"
    stem = name.split(".")[0] or name
    return os.path.normpath(os.path.join(base_dir, "..", "log", f"{stem}.log"))


@dataclass(frozen=True)
class Config:
    log_path: str | None = None
    rotate_at: timedelta = timedelta(days=1)
    compress_at: timedelta = timedelta(days=7)
    retention: timedelta | None = None
    log_format: str = "short"

    def __post_init__(self):
        if self.rotate_at <= timedelta(0):
            raise ValueError(f"rotate_at must be positive, got {self.rotate_at}")
        if self.log_format.strip().lower() not in ("short", "json"):
            raise ValueError(f"Unsupported log format: {self.log_format!r}")

    @property
    def resolved_log_path(self) -> str:
        return self.log_path or default_log_path()


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def load_config(yaml_data: dict | None = None) -> Config:
    """Build Config from defaults, then YAML data, then environment variables."""
    data = dict(yaml_data or {})

    log_path = os.environ.get("LOG_PATH", data.get("log_path", Config.log_path))
    rotate_at = os.environ.get("ROTATE_AT", data.get("rotate_at", Config.rotate_at))
    compress_at = os.environ.get("COMPRESS_AT", data.get("compress_at", Config.compress_at))
    retention = os.environ.get("RETENTION", data.get("retention", Config.retention))
    log_format = os.environ.get("LOG_FORMAT", data.get("log_format", Config.log_format))

    return Config(
        log_path=log_path or None,
        rotate_at=parse_duration(rotate_at),
        compress_at=parse_duration(compress_at),
        retention=parse_optional_duration(retention),
        log_format=log_format,
    )
