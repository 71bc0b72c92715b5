"""
Sample a simulated clock against real elapsed time.
"""

import time
import logging
from typing import Any, Dict

from clock.simulator import ClockSimulator
from configuration import MICROS_PER_SECOND

logger = logging.getLogger(__name__)


def probe_clock(clock: ClockSimulator, duration_seconds: float, interval_seconds: float) -> Dict[str, Any]:
    """Read the clock repeatedly and measure how far it strays from its own time source.

    Args:
        clock: Clock to sample
        duration_seconds: How long to sample for
        interval_seconds: Sleep between samples

    Returns:
        Sample count, largest absolute deviation (μs), how many samples fell
        outside the uncertainty bound and how many went backwards
    """
    samples = 0
    max_deviation_us = 0.0
    outside_bound = 0
    backwards = 0
    previous = None
    bound = clock.get_uncertainty()

    end = time.monotonic() + duration_seconds
    while time.monotonic() < end:
        logical = clock.get_time()
        real_us = (clock.time_source() - clock.start_instant) * MICROS_PER_SECOND
        deviation = abs(logical - real_us)

        samples += 1
        max_deviation_us = max(max_deviation_us, deviation)
        if deviation > bound:
            outside_bound += 1
        if previous is not None and logical < previous:
            backwards += 1
        previous = logical

        time.sleep(interval_seconds)

    logger.debug(f"Probed {clock!r}: {samples} samples")
    return {
        'samples': samples,
        'max_deviation_us': max_deviation_us,
        'uncertainty_us': bound,
        'outside_bound': outside_bound,
        'backwards': backwards,
    }
