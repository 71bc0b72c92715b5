"""
Simulated clocks with drift and periodic resynchronization.
"""

from .simulator import ClockSimulator
from .config import ClockConfig

__all__ = ['ClockSimulator', 'ClockConfig']
