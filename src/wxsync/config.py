"""Run settings: defaults, optional YAML config file, command-line overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

import yaml

from wxsync.errors import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_DIR = "."
DEFAULT_DESTINATION_ID = "INSTALLDIR"
DEFAULT_INDENT = "  "

# Config file key -> Settings field.
_CONFIG_KEYS = {
    "source": "source_dir",
    "destination": "destination_id",
    "indent": "indent",
}


@dataclass(frozen=True)
class Settings:
    """Everything a reconciliation run needs besides the descriptor itself."""

    source_dir: str = DEFAULT_SOURCE_DIR
    destination_id: str = DEFAULT_DESTINATION_ID
    indent: str = DEFAULT_INDENT

    def validate(self) -> None:
        """Raise :class:`ConfigError` unless the settings can drive a run."""
        if not self.destination_id:
            raise ConfigError("Destination directory id must not be empty")
        if not os.path.isdir(self.source_dir):
            raise ConfigError(f"Source directory {self.source_dir} does not exist")

    def with_overrides(self, **overrides: str | None) -> Settings:
        """Return a copy with every non-``None`` override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def load_config(path: Path) -> Settings:
    """Read settings from a YAML file.

    Recognised keys are ``source``, ``destination`` and ``indent``; absent
    keys keep their defaults.  An empty file yields the defaults.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    unknown = sorted(str(k) for k in data if k not in _CONFIG_KEYS)
    if unknown:
        raise ConfigError(f"Unknown config key(s) in {path}: {', '.join(unknown)}")

    values: dict[str, str] = {}
    for key, attr in _CONFIG_KEYS.items():
        if key not in data:
            continue
        value = data[key]
        if not isinstance(value, str):
            raise ConfigError(f"Config key '{key}' in {path} must be a string")
        values[attr] = value

    logger.debug("Loaded config %s: %s", path, values)
    return Settings(**values)
