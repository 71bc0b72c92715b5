"""
Phase manager for stepping through the configured workload phases.
"""

import time
import logging
from typing import TYPE_CHECKING, Optional, Dict, Any, Sequence

if TYPE_CHECKING:
    from client.config import Phase

logger = logging.getLogger(__name__)


class PhaseManager:
    """Consumes an immutable phase sequence front-to-back, exactly once."""

    def __init__(self, phases: Sequence["Phase"]):
        """Initialize the phase manager.

        Args:
            phases: Ordered workload phases
        """
        self.phases = tuple(phases)
        self.phase_index: int = -1
        self.current: Optional["Phase"] = None
        self.phase_start_ts: Optional[float] = None
        self.finished: bool = False

        logger.debug(f"Initialized PhaseManager with {len(self.phases)} phases")

    def advance(self) -> Optional["Phase"]:
        """Move to the next phase.

        Returns:
            The new current phase, or None once every phase has been consumed
        """
        if self.finished:
            return None

        self.phase_index += 1
        if self.phase_index >= len(self.phases):
            self.current = None
            self.phase_start_ts = None
            self.finished = True
            logger.info("All phases completed")
            return None

        self.current = self.phases[self.phase_index]
        self.phase_start_ts = time.time()
        logger.info(
            f"Began phase {self.phase_index + 1}/{len(self.phases)}: "
            f"{self.current.duration}s at {self.current.requests_per_sec:.1f} req/s, "
            f"read ratio {self.current.read_ratio}"
        )
        return self.current

    def remaining(self) -> int:
        """Number of phases not yet started."""
        return max(0, len(self.phases) - self.phase_index - 1)

    def get_phase_info(self) -> Dict[str, Any]:
        """Get current phase information.

        Returns:
            Dictionary with current phase information
        """
        return {
            'phase_index': self.phase_index,
            'phase_count': len(self.phases),
            'read_ratio': self.current.read_ratio if self.current else None,
            'request_delay': self.current.request_delay if self.current else None,
            'phase_start_ts': self.phase_start_ts,
            'phase_duration': time.time() - self.phase_start_ts if self.phase_start_ts else None,
            'finished': self.finished,
        }

    def __repr__(self) -> str:
        """String representation of the phase manager."""
        return (f"PhaseManager(phase={self.phase_index + 1}/{len(self.phases)}, "
                f"finished={self.finished})")
