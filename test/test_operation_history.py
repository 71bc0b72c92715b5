"""
Tests for the correctness operation history.
"""

import os
import sys
import json
import tempfile
import unittest

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.messages import Delete, Get, Put
from correctness.operation_history import (
    OperationHistory,
    Output,
    load_history,
    merge_histories,
)


class FakeNanos:
    """Monotonic nanosecond source that advances by a fixed step per read."""

    def __init__(self, start: int = 0, step: int = 10):
        self.value = start
        self.step = step

    def __call__(self) -> int:
        self.value += self.step
        return self.value


def make_history(client_id=1, sync_ms=1_000):
    history = OperationHistory(client_id, monotonic_ns=FakeNanos(), wall_clock_ns=lambda: 5)
    if sync_ms is not None:
        history.set_sync_time(sync_ms)
    return history


class TestOperationHistory(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def test_indices_are_positions(self):
        history = make_history()
        indices = [history.record_operation(Put(str(i), str(i))) for i in range(5)]
        self.assertEqual(indices, [0, 1, 2, 3, 4])
        self.assertEqual(history.operation_count(), 5)
        self.assertEqual(history.completed_count(), 0)

    def test_call_time_is_anchored_to_sync_time(self):
        history = make_history(sync_ms=1_000)
        history.record_operation(Get("a"))
        op = history.operations[0]
        # set_sync_time read 10 ns, record read 20 ns: 10 ns elapsed
        self.assertEqual(op.call, 1_000 * 1_000_000 + 10)
        self.assertEqual(op.return_time, 0)
        self.assertEqual(op.output.status, "pending")

    def test_complete_sets_output_and_return_time(self):
        history = make_history()
        idx = history.record_operation(Get("a"))
        history.complete_operation(idx, Output(status="ok", value="1"))

        op = history.operations[idx]
        self.assertEqual(op.output, Output(status="ok", value="1"))
        self.assertGreater(op.return_time, op.call)
        self.assertTrue(op.is_complete)

    def test_last_completion_wins(self):
        history = make_history()
        idx = history.record_operation(Get("a"))
        history.complete_operation(idx, Output(status="ok", value="first"))
        first_return = history.operations[idx].return_time
        history.complete_operation(idx, Output(status="ok", value="second"))

        op = history.operations[idx]
        self.assertEqual(op.output.value, "second")
        self.assertGreater(op.return_time, first_return)

    def test_unknown_index_is_ignored(self):
        history = make_history()
        history.record_operation(Get("a"))
        history.complete_operation(7, Output(status="ok"))
        history.complete_operation(-1, Output(status="ok"))
        self.assertEqual(history.completed_count(), 0)
        self.assertEqual(history.operations[0].output.status, "pending")

    def test_export_only_completed_operations(self):
        history = make_history()
        for i in range(5):
            history.record_operation(Put(str(i), str(i)))
        for idx in (0, 2, 4):
            history.complete_operation(idx, Output(status="ok"))

        path = os.path.join(self.tmp.name, "history.json")
        history.export_json(path)

        with open(path) as f:
            exported = json.load(f)
        self.assertEqual(len(exported), 3)
        self.assertTrue(all(op["return_time"] > 0 for op in exported))
        self.assertEqual([op["input"]["key"] for op in exported], ["0", "2", "4"])

    def test_export_format(self):
        history = make_history(client_id=3)
        put = history.record_operation(Put("k", "v"))
        get = history.record_operation(Get("k"))
        delete = history.record_operation(Delete("k"))
        history.complete_operation(put, Output(status="ok"))
        history.complete_operation(get, Output(status="ok", value="v"))
        history.complete_operation(delete, Output(status="ok"))

        path = os.path.join(self.tmp.name, "history.json")
        history.export_json(path)
        with open(path) as f:
            exported = json.load(f)

        self.assertEqual(set(exported[0]), {"client_id", "input", "call", "output", "return_time"})
        self.assertEqual(exported[0]["client_id"], 3)
        self.assertEqual(exported[0]["input"], {"type": "Put", "key": "k", "value": "v"})
        self.assertEqual(exported[0]["output"], {"status": "ok"})
        self.assertEqual(exported[1]["input"], {"type": "Get", "key": "k"})
        self.assertEqual(exported[1]["output"], {"status": "ok", "value": "v"})
        self.assertEqual(exported[2]["input"], {"type": "Delete", "key": "k"})

    def test_export_empty_history(self):
        history = make_history()
        history.record_operation(Get("a"))
        path = os.path.join(self.tmp.name, "history.json")
        history.export_json(path)
        with open(path) as f:
            self.assertEqual(json.load(f), [])

    def test_export_to_unwritable_path_raises(self):
        history = make_history()
        with self.assertRaises(OSError):
            history.export_json(os.path.join(self.tmp.name, "missing", "history.json"))

    def test_provisional_origin_before_sync(self):
        history = make_history(sync_ms=None)
        history.record_operation(Get("a"))
        # wall clock origin 5 ns plus 10 ns elapsed
        self.assertEqual(history.operations[0].call, 15)


class TestHistoryFiles(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def _export(self, name, client_id, sync_ms, count):
        history = make_history(client_id=client_id, sync_ms=sync_ms)
        for i in range(count):
            idx = history.record_operation(Put(f"{client_id}-{i}", "v"))
            history.complete_operation(idx, Output(status="ok"))
        path = os.path.join(self.tmp.name, name)
        history.export_json(path)
        return path

    def test_load_history(self):
        path = self._export("h1.json", 1, 1_000, 3)
        ops = load_history(path)
        self.assertEqual(len(ops), 3)
        self.assertEqual(ops[0].input, Put("1-0", "v"))
        self.assertTrue(all(op.is_complete for op in ops))

    def test_merge_sorts_by_call_time(self):
        late = self._export("h1.json", 1, 2_000, 2)
        early = self._export("h2.json", 2, 1_000, 2)

        merged_path = merge_histories([late, early])

        self.assertEqual(merged_path, os.path.join(self.tmp.name, "merged-history.json"))
        merged = load_history(merged_path)
        self.assertEqual(len(merged), 4)
        self.assertEqual([op.client_id for op in merged], [2, 2, 1, 1])
        calls = [op.call for op in merged]
        self.assertEqual(calls, sorted(calls))

    def test_merge_explicit_output(self):
        path = self._export("h1.json", 1, 1_000, 1)
        output = os.path.join(self.tmp.name, "out.json")
        self.assertEqual(merge_histories([path], output), output)
        self.assertTrue(os.path.exists(output))

    def test_merge_requires_input(self):
        with self.assertRaises(ValueError):
            merge_histories([])


if __name__ == '__main__':
    unittest.main()
