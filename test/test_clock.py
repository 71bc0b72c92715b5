"""
Tests for the clock simulator and its configuration.
"""

import os
import sys
import time
import tempfile
import unittest
from unittest import mock

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clock.simulator import ClockSimulator
from clock.config import ClockConfig
from clock.probe import probe_clock
from common.exceptions import ConfigurationError
from configuration import (
    CLOCK_ENV_PREFIX,
    DEFAULT_CLOCK_DRIFT_RATE,
    DEFAULT_CLOCK_UNCERTAINTY_BOUND,
    DEFAULT_CLOCK_SYNC_FREQ,
)


class FakeTime:
    """Manually advanced monotonic source, in seconds."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestClockSimulator(unittest.TestCase):
    """Clock timing model."""

    def test_clock_is_monotonic(self):
        clock = ClockSimulator(0.0, 0.0, 10_000.0)
        t1 = clock.get_time()
        time.sleep(0.002)
        t2 = clock.get_time()
        self.assertGreaterEqual(t2, t1)

    def test_synchronization_reduces_large_drift_error(self):
        # 100 ms/s drift, sync every 500 ms
        clock = ClockSimulator(100_000.0, 0.0, 2.0)

        time.sleep(0.3)
        before_sync = clock.get_time()

        time.sleep(0.35)
        after_sync = clock.get_time()

        # Sync corrects back to real time, so the delta stays near 350 ms
        self.assertLess(after_sync - before_sync, 500_000)

    def test_zero_sync_frequency_fails(self):
        with self.assertRaises(ConfigurationError) as ctx:
            ClockSimulator(50.0, 100.0, 0.0)
        self.assertIn("sync_freq must be > 0.0", str(ctx.exception))

    def test_negative_sync_frequency_is_a_value_error(self):
        with self.assertRaises(ValueError):
            ClockSimulator(50.0, 100.0, -1.0)

    def test_drift_accrues_between_syncs(self):
        fake = FakeTime()
        clock = ClockSimulator(100_000.0, 0.0, 1.0, time_source=fake)

        fake.now = 0.25
        # 250 ms real plus 0.25 s * 100_000 us/s drift
        self.assertEqual(clock.get_time(), 275_000)

        fake.now = 0.5
        self.assertEqual(clock.get_time(), 550_000)

    def test_lazy_resync_snaps_to_real_time(self):
        fake = FakeTime()
        clock = ClockSimulator(100_000.0, 0.0, 2.0, time_source=fake)

        fake.now = 0.25
        before = clock.get_time()
        fake.now = 0.625
        after = clock.get_time()

        self.assertEqual(before, 275_000)
        # Resync at 0.625 s: base offset equals real elapsed time
        self.assertEqual(after, 625_000)
        self.assertEqual(clock.base_offset, 625_000)
        self.assertEqual(clock.last_sync_instant, 0.625)

    def test_no_drift_resync_is_continuous(self):
        fake = FakeTime()
        clock = ClockSimulator(0.0, 0.0, 4.0, time_source=fake)

        fake.now = 0.125
        first = clock.get_time()
        fake.now = 0.25
        at_resync = clock.get_time()
        fake.now = 0.375
        after = clock.get_time()

        self.assertEqual(first, 125_000)
        self.assertEqual(at_resync, 250_000)
        self.assertEqual(after, 375_000)

    def test_explicit_synchronize(self):
        fake = FakeTime()
        clock = ClockSimulator(100_000.0, 0.0, 1.0, time_source=fake)

        fake.now = 0.25
        self.assertEqual(clock.get_time(), 275_000)
        clock.synchronize()
        self.assertEqual(clock.get_time(), 250_000)

    def test_large_negative_drift_never_runs_backwards(self):
        fake = FakeTime()
        clock = ClockSimulator(-2_000_000.0, 0.0, 1.0, time_source=fake)

        readings = []
        for step in range(1, 8):
            fake.now = step * 0.125
            readings.append(clock.get_time())

        self.assertEqual(readings, sorted(readings))
        self.assertEqual(readings[0], 0)

    def test_moderate_negative_drift_slows_clock(self):
        fake = FakeTime()
        clock = ClockSimulator(-500_000.0, 0.0, 1.0, time_source=fake)

        fake.now = 0.5
        self.assertEqual(clock.get_time(), 250_000)

    def test_get_uncertainty(self):
        clock = ClockSimulator(50.0, 100.0, 100.0)
        self.assertEqual(clock.get_uncertainty(), 100.0)
        # Reading the bound does not consume the clock
        clock.get_time()
        self.assertEqual(clock.get_uncertainty(), 100.0)

    def test_sync_interval_from_frequency(self):
        clock = ClockSimulator(0.0, 0.0, 4.0)
        self.assertEqual(clock.sync_interval, 0.25)


class TestClockProbe(unittest.TestCase):

    def test_probe_without_drift_stays_forward(self):
        clock = ClockSimulator(0.0, 1_000_000.0, 1_000.0)
        stats = probe_clock(clock, duration_seconds=0.05, interval_seconds=0.001)

        self.assertGreater(stats['samples'], 0)
        self.assertEqual(stats['backwards'], 0)
        self.assertEqual(stats['outside_bound'], 0)
        self.assertEqual(stats['uncertainty_us'], 1_000_000.0)

    def test_probe_measures_against_the_clock_time_source(self):
        fake = FakeTime(start=100.0)
        clock = ClockSimulator(50.0, 0.0, 10.0, time_source=fake)
        stats = probe_clock(clock, duration_seconds=0.02, interval_seconds=0.001)

        self.assertGreater(stats['samples'], 0)
        self.assertEqual(stats['max_deviation_us'], 0.0)
        self.assertEqual(stats['outside_bound'], 0)


class TestClockConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        env = {k: v for k, v in os.environ.items()
               if not k.startswith(CLOCK_ENV_PREFIX) and k != 'CONFIG_FILE'}
        patcher = mock.patch.dict(os.environ, env, clear=True)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self.tmp.cleanup)

    def _write(self, name, content):
        path = os.path.join(self.tmp.name, name)
        with open(path, 'w') as f:
            f.write(content)
        return path

    def test_defaults(self):
        config = ClockConfig()
        self.assertEqual(config.drift_rate, DEFAULT_CLOCK_DRIFT_RATE)
        self.assertEqual(config.uncertainty_bound, DEFAULT_CLOCK_UNCERTAINTY_BOUND)
        self.assertEqual(config.sync_freq, DEFAULT_CLOCK_SYNC_FREQ)
        self.assertEqual((config.drift_rate, config.uncertainty_bound, config.sync_freq),
                         (50.0, 100.0, 100.0))

    def test_from_file_with_clock_section(self):
        path = self._write('client.toml', (
            'server_id = 1\n'
            '[clock]\n'
            'drift_rate = 25.0\n'
            'uncertainty_bound = 50.0\n'
            'sync_freq = 200.0\n'
        ))
        config = ClockConfig.from_file(path)
        self.assertEqual(config.drift_rate, 25.0)
        self.assertEqual(config.uncertainty_bound, 50.0)
        self.assertEqual(config.sync_freq, 200.0)

        clock = config.build_clock()
        t1 = clock.get_time()
        time.sleep(0.002)
        t2 = clock.get_time()
        self.assertGreaterEqual(t2, t1)
        self.assertEqual(clock.get_uncertainty(), 50.0)

    def test_from_flat_file_fills_defaults(self):
        path = self._write('clock.toml', 'drift_rate = -10\n')
        config = ClockConfig.from_file(path)
        self.assertEqual(config.drift_rate, -10.0)
        self.assertEqual(config.sync_freq, DEFAULT_CLOCK_SYNC_FREQ)

    def test_env_overrides_file(self):
        path = self._write('clock.toml', '[clock]\ndrift_rate = 25.0\nsync_freq = 200.0\n')
        os.environ[f'{CLOCK_ENV_PREFIX}DRIFT_RATE'] = '75'
        config = ClockConfig.from_file(path)
        self.assertEqual(config.drift_rate, 75.0)
        self.assertEqual(config.sync_freq, 200.0)

    def test_invalid_env_value(self):
        with self.assertRaises(ConfigurationError):
            ClockConfig.from_mapping({}, environ={f'{CLOCK_ENV_PREFIX}SYNC_FREQ': 'often'})

    def test_non_positive_frequency_rejected(self):
        with self.assertRaises(ConfigurationError):
            ClockConfig.from_mapping({'sync_freq': 0}, environ={})

    def test_from_env_requires_config_file(self):
        with self.assertRaises(ConfigurationError):
            ClockConfig.from_env()

    def test_from_env_reads_named_file(self):
        path = self._write('clock.toml', 'uncertainty_bound = 10\n')
        os.environ['CONFIG_FILE'] = path
        self.assertEqual(ClockConfig.from_env().uncertainty_bound, 10.0)

    def test_unreadable_file(self):
        with self.assertRaises(ConfigurationError):
            ClockConfig.from_file(os.path.join(self.tmp.name, 'missing.toml'))

    def test_invalid_toml(self):
        path = self._write('broken.toml', 'drift_rate = = 1\n')
        with self.assertRaises(ConfigurationError):
            ClockConfig.from_file(path)


if __name__ == '__main__':
    unittest.main()
