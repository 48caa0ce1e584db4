"""
Configuration for unitwatch.

Settings are layered: defaults, then an optional YAML file, then
``UNITWATCH_*`` environment variables, then explicit overrides (usually the
command line).
"""

import math
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from unitwatch.errors import ConfigError

ENV_PREFIX = "UNITWATCH_"

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|us|h|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 1e-3, "us": 1e-6}


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts numbers (seconds) and strings such as ``"10s"``, ``"500ms"``,
    ``"2m"`` or ``"1h30m"``. A bare numeric string is read as seconds.

    Raises:
        ConfigError: If the value cannot be parsed or is not finite.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        seconds = _parse_duration_text(value)
    else:
        raise ConfigError(f"Invalid duration: {value!r}")

    if not math.isfinite(seconds):
        raise ConfigError(f"Invalid duration: {value!r}")
    return seconds


def _parse_duration_text(value: str) -> float:
    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ConfigError(f"Invalid duration: {value!r}")
    return seconds


def is_positive_duration(value: Any) -> bool:
    """Return True for a finite number of seconds greater than zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


@dataclass(slots=True)
class WatcherConfig:
    """Runtime settings of the watcher."""

    tick_interval: float = 10.0  # Seconds between tick starts
    sample_window: float = 1.0
    max_rows: int = 500
    max_age: float = 60.0
    flush_on_shutdown: bool = False
    verbose: bool = False
    # Process name globs; empty means systemd services are enumerated
    unit_patterns: list[str] = field(default_factory=list)
    sinks: list[dict[str, Any]] = field(default_factory=list)

    def validate(self) -> "WatcherConfig":
        """Reject non-positive or non-finite durations and non-integer counts."""
        for name in ("tick_interval", "sample_window", "max_age"):
            value = getattr(self, name)
            if not is_positive_duration(value):
                raise ConfigError(f"{name} must be a positive finite duration, got {value!r}")
        if isinstance(self.max_rows, bool) or not isinstance(self.max_rows, int):
            raise ConfigError(f"max_rows must be an integer, got {self.max_rows!r}")
        if self.max_rows < 1:
            raise ConfigError(f"max_rows must be at least 1, got {self.max_rows}")
        for spec in self.sinks:
            if not isinstance(spec, Mapping) or "type" not in spec:
                raise ConfigError(f"Sink entry needs a 'type': {spec!r}")
        return self


_DURATION_FIELDS = {"tick_interval", "sample_window", "max_age"}
_ENV_FIELDS = ("tick_interval", "sample_window", "max_rows", "max_age", "flush_on_shutdown")


def _coerce(name: str, value: Any) -> Any:
    if name in _DURATION_FIELDS:
        return parse_duration(value)
    if name == "max_rows":
        if isinstance(value, bool):
            raise ConfigError(f"Invalid max_rows: {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError as exc:
                raise ConfigError(f"Invalid max_rows: {value!r}") from exc
        raise ConfigError(f"Invalid max_rows: {value!r}")
    if name in ("flush_on_shutdown", "verbose"):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if name == "unit_patterns":
        if isinstance(value, str):
            return [value]
        return list(value)
    if name == "sinks":
        if not isinstance(value, list):
            raise ConfigError("'sinks' must be a list")
        return [dict(spec) if isinstance(spec, Mapping) else spec for spec in value]
    return value


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> WatcherConfig:
    """
    Build and validate a WatcherConfig.

    Args:
        path: Optional YAML file.
        env: Environment to read ``UNITWATCH_*`` variables from.
            Defaults to ``os.environ``.
        overrides: Values taking precedence over file and environment.
            ``None`` values are ignored.

    Raises:
        ConfigError: On unreadable files, unknown keys or invalid values.
    """
    env = os.environ if env is None else env
    known = {f.name for f in fields(WatcherConfig)}
    values: dict[str, Any] = {}

    if path is not None:
        data = _read_yaml(Path(path))
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        values.update(data)

    for name in _ENV_FIELDS:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw:
            values[name] = raw

    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    config = WatcherConfig(**{name: _coerce(name, value) for name, value in values.items()})
    return config.validate()
