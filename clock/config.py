"""
Clock configuration for simulator parameters.

| Field              | Unit | Description                              | Default |
|--------------------|------|------------------------------------------|---------|
| drift_rate         | μs/s | Drift per real second; (+) fast (-) slow | 50      |
| uncertainty_bound  | μs   | ±ε sync uncertainty; time in [t-ε, t+ε]  | 100     |
| sync_freq          | Hz   | Resyncs per second; interval = 1/freq    | 100     |
"""

import os
import logging
import tomllib
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

from clock.simulator import ClockSimulator
from common.exceptions import ConfigurationError
from configuration import (
    CONFIG_FILE_ENV,
    CLOCK_ENV_PREFIX,
    DEFAULT_CLOCK_DRIFT_RATE,
    DEFAULT_CLOCK_UNCERTAINTY_BOUND,
    DEFAULT_CLOCK_SYNC_FREQ,
)

logger = logging.getLogger(__name__)

CLOCK_FIELDS = ("drift_rate", "uncertainty_bound", "sync_freq")


@dataclass
class ClockConfig:
    drift_rate: float = DEFAULT_CLOCK_DRIFT_RATE
    uncertainty_bound: float = DEFAULT_CLOCK_UNCERTAINTY_BOUND
    sync_freq: float = DEFAULT_CLOCK_SYNC_FREQ

    @classmethod
    def from_env(cls) -> "ClockConfig":
        """Load clock config from the file named by the CONFIG_FILE env var."""
        path = os.getenv(CONFIG_FILE_ENV)
        if not path:
            raise ConfigurationError(f"{CONFIG_FILE_ENV} environment variable not set")
        return cls.from_file(path)

    @classmethod
    def from_file(cls, config_file: str) -> "ClockConfig":
        """Load clock config from a TOML file.

        Values are read from a ``[clock]`` table when present, otherwise from
        the root of the file. ``KVBENCH_CLOCK_*`` environment variables
        override file values.
        """
        data = load_toml(config_file)
        section = data.get("clock", data)
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"[clock] in {config_file} must be a table")
        return cls.from_mapping(section)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any],
                     environ: Optional[Mapping[str, str]] = None) -> "ClockConfig":
        """Build a config from a mapping, applying environment overrides."""
        environ = os.environ if environ is None else environ
        kwargs: Dict[str, float] = {}
        for name in CLOCK_FIELDS:
            env_name = f"{CLOCK_ENV_PREFIX}{name.upper()}"
            if env_name in environ:
                kwargs[name] = _parse_float(env_name, environ[env_name])
            elif name in values:
                kwargs[name] = _parse_float(name, values[name])
        config = cls(**kwargs)
        config.validate()
        return config

    def validate(self) -> None:
        if not self.sync_freq > 0.0:
            raise ConfigurationError(f"sync_freq must be > 0.0, got {self.sync_freq}")
        if self.uncertainty_bound < 0:
            raise ConfigurationError(
                f"uncertainty_bound must be >= 0, got {self.uncertainty_bound}"
            )

    def build_clock(self) -> ClockSimulator:
        return ClockSimulator(self.drift_rate, self.uncertainty_bound, self.sync_freq)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def load_toml(path: str) -> Dict[str, Any]:
    """Read a TOML file, mapping I/O and syntax errors to ConfigurationError."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def _parse_float(name: str, raw: Any) -> float:
    if isinstance(raw, bool):
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
