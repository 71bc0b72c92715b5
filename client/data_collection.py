"""
Per-request latency ledger for a benchmark client.
"""

import json
import time
import logging
from typing import Any, Dict, List, Optional

from common.metrics_utils import (
    records_to_dataframe,
    calculate_latency_stats,
    calculate_requests_per_second,
    calculate_run_duration_seconds,
)
from common.messages import CommandId
from persistence.record import RequestRecord

logger = logging.getLogger(__name__)


def now_millis() -> int:
    return time.time_ns() // 1_000_000


class ClientData:
    """Append-only request/response ledger.

    The position of a record is the id of its command: ids are dense, start
    at 0 and are never reused. Not thread-safe; owned by a single run loop.
    """

    def __init__(self):
        self.request_data: List[RequestRecord] = []
        self._response_count = 0

    def new_request(self, is_write: bool) -> CommandId:
        """Log a request sent now and return its command id."""
        command_id = len(self.request_data)
        self.request_data.append(RequestRecord(send_time=now_millis(), is_write=is_write))
        return command_id

    def new_response(self, command_id: CommandId) -> Optional[RequestRecord]:
        """Log the response to a command.

        A repeated response for the same command keeps the first receive time,
        is not counted and returns None.

        Raises:
            IndexError: If the command id was never issued
        """
        if not 0 <= command_id < len(self.request_data):
            raise IndexError(f"Response for unknown command id {command_id}")
        record = self.request_data[command_id]
        if record.receive_time is not None:
            logger.warning(f"Duplicate response for command {command_id}")
            return None
        record.receive_time = max(now_millis(), record.send_time)
        self._response_count += 1
        return record

    def request_count(self) -> int:
        return len(self.request_data)

    def response_count(self) -> int:
        return self._response_count

    def get_summary(self) -> Dict[str, Any]:
        """Get basic summary statistics of the run so far."""
        df = records_to_dataframe(self.request_data)
        writes = int(df['is_write'].sum()) if len(df) else 0
        duration = calculate_run_duration_seconds(df)
        latency = calculate_latency_stats(df)
        return {
            'total_requests': self.request_count(),
            'total_responses': self.response_count(),
            'writes': writes,
            'reads': self.request_count() - writes,
            'unanswered': int(df['receive_time'].isna().sum()) if len(df) else 0,
            'duration_seconds': duration,
            'requests_per_second': calculate_requests_per_second(self.request_count(), duration),
            'avg_latency_ms': latency['avg'],
            'p50_latency_ms': latency['p50'],
            'p95_latency_ms': latency['p95'],
            'p99_latency_ms': latency['p99'],
        }

    def save_summary(self, config_data: Dict[str, Any], file_path: str) -> None:
        """Write the run configuration as pretty JSON.

        Raises:
            OSError: If the file cannot be written
        """
        with open(file_path, 'w') as f:
            json.dump(config_data, f, indent=2)

    def to_csv(self, file_path: str) -> None:
        """Write one row per request, in issuance order.

        Raises:
            OSError: If the file cannot be written
        """
        df = records_to_dataframe(self.request_data)
        df.to_csv(file_path, index=False)
