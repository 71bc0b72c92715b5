"""
Benchmark client: workload scheduling and request bookkeeping.
"""

from .config import ClientConfig, Phase
from .data_collection import ClientData
from .client import Client, ClientState

__all__ = ['Client', 'ClientState', 'ClientConfig', 'ClientData', 'Phase']
