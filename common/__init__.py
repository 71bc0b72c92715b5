"""
Common utilities for the KV benchmark client.
"""

from .exceptions import BenchmarkError, ConfigurationError, ProtocolError
from .phase_manager import PhaseManager

__all__ = ['BenchmarkError', 'ConfigurationError', 'ProtocolError', 'PhaseManager']
