"""
Per-request ledger entries for the KV benchmark.
"""

from typing import Any, Dict, Optional


class RequestRecord:
    """Send/receive timestamps (ms since epoch) of one issued command."""

    __slots__ = ('send_time', 'is_write', 'receive_time')

    def __init__(self, send_time: int, is_write: bool, receive_time: Optional[int] = None):
        self.send_time = send_time
        self.is_write = is_write
        self.receive_time = receive_time

    @property
    def answered(self) -> bool:
        return self.receive_time is not None

    @property
    def latency_ms(self) -> Optional[int]:
        if self.receive_time is None:
            return None
        return self.receive_time - self.send_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            'send_time': self.send_time,
            'is_write': self.is_write,
            'receive_time': self.receive_time,
        }

    def __repr__(self) -> str:
        return (f"RequestRecord(send_time={self.send_time}, is_write={self.is_write}, "
                f"receive_time={self.receive_time})")
