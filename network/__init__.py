"""
Transport to the replicated KV service.
"""

from .network import Network

__all__ = ['Network']
