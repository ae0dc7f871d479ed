"""
Runtime configuration.

Values are layered: dataclass defaults, then the ``[chronus]`` table of an
optional TOML file, then environment variables.

```toml
[chronus]
db_path = "~/.chronus/chronus.db"
tick_interval = 1.0
default_tz = "Africa/Cairo"
default_frame = "daily"
log_level = "INFO"
```
"""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .kernel.channels import DEFAULT_INBOX, DEFAULT_REPLY_TO
from .kernel.errors import ConfigError, InvalidFrame
from .kernel.schema import Frame
from .kernel.sequences import DEFAULT_STORAGE_KEY

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

ENV_VARS = {
    "db_path": "CHRONUS_DB",
    "storage_key": "CHRONUS_STORAGE_KEY",
    "tick_interval": "CHRONUS_TICK_INTERVAL",
    "default_tz": "CHRONUS_TZ",
    "default_frame": "CHRONUS_FRAME",
    "log_level": "CHRONUS_LOG_LEVEL",
}


def get_config_path() -> Path:
    """Default config location, overridable with CHRONUS_CONFIG."""
    return Path(os.environ.get("CHRONUS_CONFIG", str(Path.home() / ".chronus" / "config.toml")))


@dataclass(frozen=True)
class ChronusConfig:
    db_path: Optional[str] = None  # None keeps sequences in memory
    storage_key: str = DEFAULT_STORAGE_KEY
    tick_interval: float = 1.0
    default_context_id: str = "local"
    default_tz: str = "UTC"
    default_frame: Frame = Frame.DAILY
    log_level: str = "WARNING"
    inbox_channel: str = DEFAULT_INBOX
    reply_channel: str = DEFAULT_REPLY_TO

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "default_frame", Frame.coerce(self.default_frame))
        except InvalidFrame as e:
            raise ConfigError(str(e)) from e

        try:
            interval = float(self.tick_interval)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"tick_interval must be a number, got {self.tick_interval!r}") from e
        if interval <= 0:
            raise ConfigError("tick_interval must be positive")
        object.__setattr__(self, "tick_interval", interval)

        level = str(self.log_level).upper()
        if level not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level {self.log_level!r}")
        object.__setattr__(self, "log_level", level)

        if self.db_path:
            object.__setattr__(self, "db_path", str(Path(self.db_path).expanduser()))

    def with_overrides(self, **overrides: Any) -> "ChronusConfig":
        return replace(self, **overrides)


def _known(values: Mapping[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(ChronusConfig)}
    unknown = set(values) - names
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    return dict(values)


def load_config(
    path: Optional[Path | str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ChronusConfig:
    """
    Build a config from the TOML file at ``path`` (default: get_config_path())
    and the environment. A missing file is not an error.
    """
    env = os.environ if environ is None else environ
    config_path = Path(path) if path is not None else get_config_path()

    values: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot read {config_path}: {e}") from e
        values.update(_known(data.get("chronus", {})))

    for name, var in ENV_VARS.items():
        if env.get(var):
            values[name] = env[var]

    return ChronusConfig(**values)
