"""
Call/return history of KV operations for external linearizability checking.

Timestamps are absolute nanoseconds since the Unix epoch, computed as the
run-wide sync origin plus monotonic time elapsed since the local reference
point. Every participating client anchors to the same scheduled start
instant, so their histories share an origin up to real clock skew.
"""

import os
import json
import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from common.messages import KVCommand, command_from_dict
from configuration import MERGED_HISTORY_FILENAME, NANOS_PER_MILLI

logger = logging.getLogger(__name__)

PENDING_STATUS = "pending"


@dataclass
class Output:
    status: str
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status}
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass
class Operation:
    client_id: int
    input: KVCommand
    call: int
    output: Output
    return_time: int = 0

    @property
    def is_complete(self) -> bool:
        return self.return_time > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "client_id": self.client_id,
            "input": self.input.to_dict(),
            "call": self.call,
            "output": self.output.to_dict(),
            "return_time": self.return_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        output = data.get("output", {})
        return cls(
            client_id=int(data["client_id"]),
            input=command_from_dict(data["input"]),
            call=int(data["call"]),
            output=Output(status=output.get("status", ""), value=output.get("value")),
            return_time=int(data["return_time"]),
        )


class OperationHistory:
    """Append-only operation log addressed by position.

    Operations are recorded as pending at call time and completed in place by
    index. Only completed operations are exported.
    """

    def __init__(self, client_id: int,
                 monotonic_ns: Callable[[], int] = time.monotonic_ns,
                 wall_clock_ns: Callable[[], int] = time.time_ns):
        """Initialize the history.

        Args:
            client_id: Identifier written into every operation
            monotonic_ns: Source of elapsed time (default: time.monotonic_ns)
            wall_clock_ns: Source of the provisional origin (default: time.time_ns)
        """
        self.client_id = client_id
        self.operations: List[Operation] = []
        self._monotonic_ns = monotonic_ns
        # Provisional origin until set_sync_time() is called
        self.sync_time_ns: int = wall_clock_ns()
        self._reference_ns: int = self._monotonic_ns()

    def set_sync_time(self, sync_time_ms: int) -> None:
        """Anchor the history to the run-wide start instant.

        Call once, after waiting until the scheduled start, so elapsed time is
        measured from the sync point.

        Args:
            sync_time_ms: Scheduled start in milliseconds since the Unix epoch
        """
        self.sync_time_ns = sync_time_ms * NANOS_PER_MILLI
        self._reference_ns = self._monotonic_ns()
        logger.debug(f"History for client {self.client_id} anchored at {self.sync_time_ns} ns")

    def _now_ns(self) -> int:
        return self.sync_time_ns + (self._monotonic_ns() - self._reference_ns)

    def record_operation(self, command: KVCommand) -> int:
        """Record the call of an operation and return its index."""
        op_index = len(self.operations)
        self.operations.append(Operation(
            client_id=self.client_id,
            input=command,
            call=self._now_ns(),
            output=Output(status=PENDING_STATUS),
        ))
        return op_index

    def complete_operation(self, op_index: int, output: Output) -> None:
        """Record the return of an operation.

        Unknown indices are ignored. Completing an operation twice overwrites
        the earlier output and return time.
        """
        if not 0 <= op_index < len(self.operations):
            logger.debug(f"Ignoring completion for unknown operation index {op_index}")
            return
        op = self.operations[op_index]
        op.output = output
        op.return_time = self._now_ns()

    def completed_operations(self) -> List[Operation]:
        return [op for op in self.operations if op.is_complete]

    def operation_count(self) -> int:
        return len(self.operations)

    def completed_count(self) -> int:
        return sum(1 for op in self.operations if op.is_complete)

    def export_json(self, file_path: str) -> None:
        """Write completed operations, in recorded order, as a JSON array.

        Raises:
            OSError: If the file cannot be written
        """
        completed = [op.to_dict() for op in self.completed_operations()]
        with open(file_path, "w") as f:
            json.dump(completed, f, indent=2)
        logger.debug(f"Wrote {len(completed)} of {len(self.operations)} operations to {file_path}")


def load_history(history_path: str) -> List[Operation]:
    """Load operations from an exported history file."""
    with open(history_path) as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{history_path} does not contain a JSON array")
    return [Operation.from_dict(item) for item in data]


def merge_histories(history_paths: Sequence[str], output_path: Optional[str] = None) -> str:
    """Combine per-client histories into one file ordered by call time.

    Args:
        history_paths: Exported history files to merge
        output_path: Destination (default: merged-history.json next to the first input)

    Returns:
        Path to the merged history file
    """
    if not history_paths:
        raise ValueError("At least one history file is required")

    operations: List[Operation] = []
    for path in history_paths:
        operations.extend(load_history(path))
    operations.sort(key=lambda op: op.call)

    if output_path is None:
        output_path = os.path.join(os.path.dirname(history_paths[0]), MERGED_HISTORY_FILENAME)

    with open(output_path, "w") as f:
        json.dump([op.to_dict() for op in operations], f, indent=2)

    logger.info(f"Merged {len(operations)} operations from {len(history_paths)} histories into {output_path}")
    return output_path
