"""
Clock simulator for synchronized clocks with configurable drift and uncertainty.

Units:
    drift rate    μs per real second; the clock gains (+) or loses (-) this much
    uncertainty   ±ε μs after sync; true time lies in [t - ε, t + ε]
    sync freq     resyncs per second (interval = 1 / freq seconds)
    get_time()    logical timestamp in μs

Synchronization is idealized: it snaps the offset back to real elapsed time
but leaves the uncertainty untouched. A real implementation would exchange
round-trip probes and grow the uncertainty with the time since the last sync.
"""

import time
import logging
from typing import Callable

from common.exceptions import ConfigurationError
from configuration import MICROS_PER_SECOND

logger = logging.getLogger(__name__)


class ClockSimulator:
    """Simulated clock with configurable drift and sync uncertainty.

    Not thread-safe; callers sharing an instance across threads must
    serialize access themselves.
    """

    def __init__(self, drift_rate: float, uncertainty_bound: float, sync_freq: float,
                 time_source: Callable[[], float] = time.monotonic):
        """Create a clock simulator.

        Args:
            drift_rate: Drift rate in μs per real second
            uncertainty_bound: Synchronization uncertainty ±ε in μs
            sync_freq: Sync frequency in Hz (must be > 0)
            time_source: Monotonic seconds source (default: time.monotonic)

        Raises:
            ConfigurationError: If sync_freq is not positive
        """
        if not sync_freq > 0.0:
            raise ConfigurationError("sync_freq must be > 0.0")

        self.drift_rate: float = drift_rate
        self.uncertainty_bound: float = uncertainty_bound
        self.sync_interval: float = 1.0 / sync_freq
        self.time_source = time_source

        now = self.time_source()
        self.start_instant: float = now
        self.last_sync_instant: float = now
        self.base_offset: int = 0

        logger.debug(
            f"Initialized ClockSimulator: drift={drift_rate} us/s, "
            f"uncertainty=±{uncertainty_bound} us, sync_interval={self.sync_interval:.6f}s"
        )

    def get_time(self) -> int:
        """Return the current logical time in μs.

        Resyncs first when a full sync interval has passed since the last one.
        Each real second since the last sync adds 1_000_000 + drift_rate μs;
        the rate is clamped at zero so a drift below -1_000_000 μs/s freezes
        the clock instead of running it backwards.
        """
        now = self.time_source()
        if now - self.last_sync_instant >= self.sync_interval:
            self._synchronize(now)

        elapsed_us = (now - self.last_sync_instant) * MICROS_PER_SECOND
        drift_us = (elapsed_us / MICROS_PER_SECOND) * self.drift_rate
        advance_us = max(0.0, elapsed_us + drift_us)
        return int(self.base_offset + advance_us)

    def synchronize(self) -> None:
        """Force a resync to real elapsed time since start."""
        self._synchronize(self.time_source())

    def _synchronize(self, now: float) -> None:
        self.base_offset = int((now - self.start_instant) * MICROS_PER_SECOND)
        self.last_sync_instant = now

    def get_uncertainty(self) -> float:
        """Return the synchronization uncertainty ±ε in μs."""
        return self.uncertainty_bound

    def __repr__(self) -> str:
        return (
            f"ClockSimulator(drift_rate={self.drift_rate}, "
            f"uncertainty_bound={self.uncertainty_bound}, sync_interval={self.sync_interval})"
        )
