"""
Client configuration: server identity, workload phases and output paths.

Example TOML file::

    server_id = 1
    server_address = "127.0.0.1:8000"
    output_filepath = "results/client-1.csv"
    summary_filepath = "results/summary-1.json"
    correctness_check = true

    [[requests]]
    duration_sec = 10
    requests_per_sec = 100
    read_ratio = 0.5

    [clock]
    drift_rate = 50.0
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from clock.config import ClockConfig, load_toml
from common.exceptions import ConfigurationError
from configuration import CONFIG_FILE_ENV, DEFAULT_OUTPUT_DIR, DEFAULT_HISTORY_DIR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Phase:
    """One workload phase; durations and delays are in seconds."""
    duration: float
    read_ratio: float
    request_delay: float

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Phase":
        try:
            duration = float(values["duration_sec"])
            requests_per_sec = float(values["requests_per_sec"])
            read_ratio = float(values["read_ratio"])
        except KeyError as e:
            raise ConfigurationError(f"Phase is missing {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid phase {dict(values)}: {e}") from e

        if duration < 0:
            raise ConfigurationError(f"duration_sec must be >= 0, got {duration}")
        if requests_per_sec <= 0:
            raise ConfigurationError(f"requests_per_sec must be > 0, got {requests_per_sec}")
        if not 0.0 <= read_ratio <= 1.0:
            raise ConfigurationError(f"read_ratio must be in [0, 1], got {read_ratio}")

        return cls(duration=duration, read_ratio=read_ratio, request_delay=1.0 / requests_per_sec)

    @property
    def requests_per_sec(self) -> float:
        return 1.0 / self.request_delay

    def to_dict(self) -> Dict[str, float]:
        return {
            "duration_sec": self.duration,
            "requests_per_sec": self.requests_per_sec,
            "read_ratio": self.read_ratio,
        }


@dataclass
class ClientConfig:
    server_id: int
    server_address: str
    requests: Tuple[Phase, ...] = ()
    output_filepath: str = ""
    summary_filepath: str = ""
    history_output_path: Optional[str] = None
    correctness_check: bool = False
    metrics_port: Optional[int] = None
    drain_timeout_sec: Optional[float] = None
    clock: ClockConfig = field(default_factory=ClockConfig)
    # Filled in at run time: ms between start-signal receipt and scheduled start
    sync_time: Optional[int] = None

    def __post_init__(self):
        self.requests = tuple(self.requests)
        if not self.output_filepath:
            self.output_filepath = os.path.join(DEFAULT_OUTPUT_DIR, f"client-{self.server_id}.csv")
        if not self.summary_filepath:
            self.summary_filepath = os.path.join(DEFAULT_OUTPUT_DIR, f"summary-{self.server_id}.json")

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load client config from the file named by the CONFIG_FILE env var."""
        path = os.getenv(CONFIG_FILE_ENV)
        if not path:
            raise ConfigurationError(f"{CONFIG_FILE_ENV} environment variable not set")
        return cls.from_file(path)

    @classmethod
    def from_file(cls, config_file: str) -> "ClientConfig":
        config = cls.from_mapping(load_toml(config_file))
        logger.info(f"Loaded client config from {config_file}: {len(config.requests)} phases")
        return config

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ClientConfig":
        try:
            server_id = int(values["server_id"])
            server_address = str(values["server_address"])
        except KeyError as e:
            raise ConfigurationError(f"Client config is missing {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid server_id: {e}") from e

        phases: List[Phase] = [Phase.from_mapping(p) for p in values.get("requests", [])]

        clock_values = values.get("clock", {})
        if not isinstance(clock_values, Mapping):
            raise ConfigurationError("[clock] must be a table")

        metrics_port = values.get("metrics_port")
        drain_timeout = values.get("drain_timeout_sec")

        return cls(
            server_id=server_id,
            server_address=server_address,
            requests=tuple(phases),
            output_filepath=str(values.get("output_filepath", "")),
            summary_filepath=str(values.get("summary_filepath", "")),
            history_output_path=values.get("history_output_path"),
            correctness_check=bool(values.get("correctness_check", False)),
            metrics_port=int(metrics_port) if metrics_port is not None else None,
            drain_timeout_sec=float(drain_timeout) if drain_timeout is not None else None,
            clock=ClockConfig.from_mapping(clock_values),
        )

    @property
    def history_filepath(self) -> str:
        """Where the correctness history goes (default: per-client file in the history dir)."""
        if self.history_output_path:
            return self.history_output_path
        return os.path.join(DEFAULT_HISTORY_DIR, f"history-{self.server_id}.json")

    def server_host_port(self) -> Tuple[str, int]:
        host, sep, port = self.server_address.rpartition(":")
        if not sep or not host:
            raise ConfigurationError(f"server_address must be host:port, got {self.server_address!r}")
        try:
            return host, int(port)
        except ValueError as e:
            raise ConfigurationError(f"Invalid port in server_address {self.server_address!r}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server_id": self.server_id,
            "server_address": self.server_address,
            "requests": [phase.to_dict() for phase in self.requests],
            "output_filepath": self.output_filepath,
            "summary_filepath": self.summary_filepath,
            "history_output_path": self.history_output_path,
            "correctness_check": self.correctness_check,
            "metrics_port": self.metrics_port,
            "drain_timeout_sec": self.drain_timeout_sec,
            "clock": self.clock.to_dict(),
            "sync_time": self.sync_time,
        }
