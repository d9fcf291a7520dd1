"""Layered configuration for model hyperparameters.

Values are merged from sources in priority order, later sources overriding
earlier ones:

1. AMRulesConfig defaults
2. A configuration file (YAML, JSON or TOML)
3. Environment variables prefixed with ``STREAMINGML_``
4. Explicit overrides

Example:
    STREAMINGML_GRACE_PERIOD=50
    STREAMINGML_CHANGE_DETECTOR=1

    config = load_config("streamingml.toml")
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml

from streamingml.base import AMRulesConfig


logger = logging.getLogger(__name__)

SECTION = "amrules"


class ConfigError(Exception):
    """Base configuration error."""

    pass


class ConfigSourceError(ConfigError):
    """Configuration source could not be read."""

    pass


# =============================================================================
# Configuration Sources
# =============================================================================


class ConfigSource(ABC):
    """Abstract base class for configuration sources.

    Sources are applied in ascending priority; a higher priority overrides.
    """

    def __init__(self, priority: int = 0) -> None:
        self._priority = priority

    @property
    def priority(self) -> int:
        return self._priority

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """Load a flat mapping of hyperparameter names to values."""
        pass


class DictConfigSource(ConfigSource):
    """Configuration given directly as a mapping."""

    def __init__(self, values: dict[str, Any], priority: int = 200) -> None:
        super().__init__(priority)
        self._values = dict(values)

    def load(self) -> dict[str, Any]:
        return dict(self._values)


class EnvConfigSource(ConfigSource):
    """Environment variable configuration source.

    Example:
        STREAMINGML_SPLIT_CONFIDENCE=1e-5
        STREAMINGML_ANOMALY_DETECTOR=0

        Will produce:
        {"split_confidence": 1e-05, "anomaly_detector": 0}
    """

    def __init__(
        self,
        prefix: str = "STREAMINGML",
        priority: int = 100,
        environ: dict[str, str] | None = None,
    ) -> None:
        super().__init__(priority)
        self._prefix = f"{prefix}_"
        self._environ = environ

    def load(self) -> dict[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        result: dict[str, Any] = {}
        for key, value in environ.items():
            if key.startswith(self._prefix):
                result[key[len(self._prefix) :].lower()] = self._parse_value(value)
        return result

    def _parse_value(self, value: str) -> Any:
        """Parse a string value; numbers take precedence over booleans."""
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass

        lowered = value.lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False
        if lowered in ("null", "none", ""):
            return None

        if value.startswith(("[", "{")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass
        return value


class FileConfigSource(ConfigSource):
    """File-based configuration source.

    Supports YAML, JSON and TOML, detected from the file extension. The
    values may sit at the top level or under an ``amrules`` section.
    """

    def __init__(self, path: str | Path, *, required: bool = False, priority: int = 50) -> None:
        super().__init__(priority)
        self._path = Path(path)
        self._required = required

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        if not self._path.exists():
            if self._required:
                raise ConfigSourceError(f"Configuration file not found: {self._path}")
            return {}

        content = self._path.read_text(encoding="utf-8")
        suffix = self._path.suffix.lower()
        try:
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content) or {}
            elif suffix == ".json":
                data = json.loads(content)
            elif suffix == ".toml":
                data = tomllib.loads(content)
            else:
                raise ConfigSourceError(f"Unsupported file format: {suffix}")
        except (yaml.YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
            raise ConfigSourceError(f"Failed to load config {self._path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigSourceError(f"Configuration in {self._path} must be a mapping")
        section = data.get(SECTION)
        if isinstance(section, dict):
            return dict(section)
        return data


# =============================================================================
# Loading
# =============================================================================


def merge_sources(sources: list[ConfigSource]) -> dict[str, Any]:
    """Merge sources in ascending priority into one flat mapping."""
    merged: dict[str, Any] = {}
    for source in sorted(sources, key=lambda s: s.priority):
        values = source.load()
        if values:
            logger.debug(
                "Loaded %d values from %s", len(values), source.__class__.__name__
            )
        merged.update(values)
    return merged


def load_config(
    path: str | Path | None = None,
    *,
    env: bool = True,
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> AMRulesConfig:
    """Load and validate hyperparameters.

    Args:
        path: Optional configuration file; it must exist when given
        env: Whether to read ``STREAMINGML_*`` environment variables
        overrides: Values applied last
        environ: Environment mapping to read instead of ``os.environ``

    Raises:
        ConfigError: If the file is missing or unreadable
        InvalidHyperparameterError: If a merged value is out of range
    """
    sources: list[ConfigSource] = []
    if path is not None:
        sources.append(FileConfigSource(path, required=True))
    if env:
        sources.append(EnvConfigSource(environ=environ))
    if overrides:
        sources.append(DictConfigSource(overrides))

    values = merge_sources(sources)
    unknown = sorted(set(values) - set(AMRulesConfig.__dataclass_fields__))
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
    return AMRulesConfig.from_dict(values)
