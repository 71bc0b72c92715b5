"""
Configuration constants for the KV benchmark client.

This module contains all configuration parameters including:
- Clock simulation defaults and their environment overrides
- Output locations for results and correctness histories
- Network connection parameters
- Time conversion factors
"""

import os

# =============================================================================
# CONFIGURATION FILE
# =============================================================================

# Path to the TOML file holding the client (and clock) configuration
CONFIG_FILE_ENV: str = "CONFIG_FILE"

# =============================================================================
# CLOCK SIMULATION
# =============================================================================

# Drift rate in μs per real second; (+) runs fast, (-) runs slow
DEFAULT_CLOCK_DRIFT_RATE: float = 50.0

# Sync uncertainty ±ε in μs; true time lies in [t - ε, t + ε]
DEFAULT_CLOCK_UNCERTAINTY_BOUND: float = 100.0

# Resyncs per second (100 Hz = 10 ms sync interval)
DEFAULT_CLOCK_SYNC_FREQ: float = 100.0

# Environment variables with this prefix override clock file values,
# e.g. KVBENCH_CLOCK_DRIFT_RATE=25
CLOCK_ENV_PREFIX: str = "KVBENCH_CLOCK_"

# =============================================================================
# OUTPUT FILES
# =============================================================================

DEFAULT_OUTPUT_DIR: str = os.getenv("OUTPUT_DIR", "results")
DEFAULT_HISTORY_DIR: str = os.getenv("HISTORY_DIR", "logs")
MERGED_HISTORY_FILENAME: str = "merged-history.json"

# =============================================================================
# NETWORK
# =============================================================================

NETWORK_CONNECT_RETRIES: int = int(os.getenv("NETWORK_CONNECT_RETRIES", "10"))
NETWORK_CONNECT_RETRY_DELAY: float = float(os.getenv("NETWORK_CONNECT_RETRY_DELAY", "0.5"))
NETWORK_QUEUE_SIZE: int = 0  # 0 = unbounded inbound queue

# =============================================================================
# PROGRESS REPORTING
# =============================================================================

PROGRESS_INTERVAL: int = 1000  # Log progress every N requests

# =============================================================================
# CLOCK PROBE DEFAULTS
# =============================================================================

DEFAULT_PROBE_SECONDS: float = 5.0
DEFAULT_PROBE_INTERVAL_MS: float = 1.0

# =============================================================================
# TIME CONVERSION CONSTANTS
# =============================================================================

MICROS_PER_SECOND: int = 1_000_000
MILLIS_PER_SECOND: int = 1_000
NANOS_PER_MILLI: int = 1_000_000
