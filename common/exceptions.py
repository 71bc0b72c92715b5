"""
Exception types raised by the KV benchmark client.
"""


class BenchmarkError(Exception):
    """Base class for benchmark client errors."""


class ConfigurationError(BenchmarkError, ValueError):
    """Invalid or unreadable configuration. Fatal at startup."""


class ProtocolError(BenchmarkError, RuntimeError):
    """The service sent something the client did not expect.

    A run's validity depends on correct start synchronization, so this is
    never retried.
    """
