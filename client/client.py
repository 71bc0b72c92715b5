"""
Benchmark client run loop: start synchronization, phased load and draining.
"""

import os
import enum
import random
import asyncio
import logging
from typing import Any, Dict, Optional

from client.config import ClientConfig, Phase
from client.data_collection import ClientData, now_millis
from common.exceptions import ProtocolError
from common.messages import Append, CommandId, Get, Put, Read, ServerMessage, StartSignal
from common.phase_manager import PhaseManager
from configuration import MILLIS_PER_SECOND, PROGRESS_INTERVAL
from correctness.operation_history import OperationHistory, Output
from network.network import Network
from persistence.prom import ClientMetricsExporter

logger = logging.getLogger(__name__)


class ClientState(enum.Enum):
    AWAITING_START = "awaiting_start"
    ACTIVE = "active"
    DRAINING = "draining"
    FINISHED = "finished"


class Client:
    """Drives one benchmark run against a single server.

    All bookkeeping happens on one asyncio task: per iteration exactly one of
    {inbound message, request tick, phase tick} is handled, in that priority
    order, so the ledger and history need no locking.
    """

    def __init__(
        self,
        config: ClientConfig,
        network,
        history: Optional[OperationHistory] = None,
        metrics: Optional[ClientMetricsExporter] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the client.

        Args:
            config: Client configuration
            network: Transport exposing server_messages, send() and shutdown()
            history: Correctness history recorder (None disables tracking)
            metrics: Live metrics exporter (optional)
            rng: Random source for the read/write mix (default: new Random)
        """
        self.id = config.server_id
        self.config = config
        self.network = network
        self.active_server = config.server_id
        self.client_data = ClientData()
        self.history = history
        self.metrics = metrics
        self.rng = rng or random.Random()
        self.state = ClientState.AWAITING_START
        self.final_request_count: Optional[int] = None
        self.next_request_id: CommandId = 0
        self.operation_indices: Dict[CommandId, int] = {}

    @classmethod
    async def create(cls, config: ClientConfig) -> "Client":
        """Connect to the configured server and build the optional components."""
        network = await Network.connect({config.server_id: config.server_host_port()})
        history = OperationHistory(config.server_id) if config.correctness_check else None
        metrics = None
        if config.metrics_port:
            metrics = ClientMetricsExporter(config.metrics_port, config.server_id)
            metrics.start_server()
        return cls(config, network, history=history, metrics=metrics)

    async def run(self) -> Dict[str, Any]:
        """Execute the complete run and persist its artifacts.

        Returns:
            Summary of the run

        Raises:
            ProtocolError: If anything but a start signal arrives first
            OSError: If the summary or CSV cannot be written
        """
        logger.info(f"{self.id}: Waiting for start signal from server")
        msg = await self.network.server_messages.get()
        if not isinstance(msg, StartSignal):
            raise ProtocolError(f"Error waiting for start signal: got {msg!r}")

        await self._wait_until_sync_time(msg.start_time_ms)
        if self.history is not None:
            # All clients anchor to the scheduled start instant
            self.history.set_sync_time(msg.start_time_ms)

        phases = PhaseManager(self.config.requests)
        first_phase = phases.advance()
        if first_phase is None:
            logger.info(f"{self.id}: No request phases configured")
            self.final_request_count = 0
            return await self._finish()

        self.state = ClientState.ACTIVE
        logger.info(f"{self.id}: Starting requests")
        await self._event_loop(phases, first_phase)
        return await self._finish()

    async def _event_loop(self, phases: PhaseManager, phase: Phase) -> None:
        loop = asyncio.get_running_loop()
        queue = self.network.server_messages

        now = loop.time()
        read_ratio = phase.read_ratio
        request_delay = phase.request_delay
        next_request_at = now
        phase_deadline = now + phase.duration
        drain_deadline: Optional[float] = None
        self._update_phase_metric(phases)

        while True:
            if not queue.empty():
                if not self._handle_server_message(queue.get_nowait()):
                    return
                if self._run_finished():
                    return
                continue

            now = loop.time()
            active = self.final_request_count is None

            # A tick scheduled at or past the phase deadline belongs to no phase
            if active and next_request_at <= now and next_request_at < phase_deadline:
                is_write = self.rng.random() > read_ratio
                await self._send_request(is_write)
                # Missed ticks are skipped, not replayed in a burst
                next_request_at = max(next_request_at + request_delay, now)
                # Let reader tasks run even when send() did not suspend
                await asyncio.sleep(0)
                continue

            if active and now >= phase_deadline:
                phase = phases.advance()
                if phase is None:
                    self._begin_drain()
                    if self.config.drain_timeout_sec is not None:
                        drain_deadline = now + self.config.drain_timeout_sec
                    if self._run_finished():
                        return
                else:
                    read_ratio = phase.read_ratio
                    request_delay = phase.request_delay
                    next_request_at = now
                    phase_deadline = now + phase.duration
                    self._update_phase_metric(phases)
                continue

            if drain_deadline is not None and now >= drain_deadline:
                missing = self.final_request_count - self.client_data.response_count()
                logger.warning(
                    f"{self.id}: Drain timeout after {self.config.drain_timeout_sec}s, "
                    f"{missing} responses missing"
                )
                return

            if active:
                deadline = min(next_request_at, phase_deadline)
            else:
                deadline = drain_deadline
            timeout = None if deadline is None else max(0.0, deadline - now)

            try:
                msg = await asyncio.wait_for(queue.get(), timeout)
            except asyncio.TimeoutError:
                continue
            if not self._handle_server_message(msg):
                return
            if self._run_finished():
                return

    def _begin_drain(self) -> None:
        self.final_request_count = self.client_data.request_count()
        self.state = ClientState.DRAINING
        logger.info(
            f"{self.id}: Phases finished after {self.final_request_count} requests, "
            f"waiting for {self.final_request_count - self.client_data.response_count()} responses"
        )

    def _handle_server_message(self, msg: Optional[ServerMessage]) -> bool:
        """Apply one inbound message. Returns False when the connection is gone."""
        if msg is None:
            logger.error(f"{self.id}: Connection to server closed before the run finished")
            return False

        logger.debug(f"Received {msg}")
        if isinstance(msg, StartSignal):
            return True

        command_id = msg.command_id
        record = self.client_data.new_response(command_id)
        if record is not None and self.metrics is not None:
            self.metrics.record_response(record.latency_ms)

        if self.history is not None:
            op_index = self.operation_indices.pop(command_id, None)
            if op_index is not None:
                value = msg.value if isinstance(msg, Read) else None
                self.history.complete_operation(op_index, Output(status="ok", value=value))
        return True

    async def _send_request(self, is_write: bool) -> None:
        command_id = self.next_request_id
        key = str(command_id)
        command = Put(key, key) if is_write else Get(key)

        if self.history is not None:
            self.operation_indices[command_id] = self.history.record_operation(command)

        issued_id = self.client_data.new_request(is_write)
        assert issued_id == command_id, f"ledger id {issued_id} != command id {command_id}"

        request = Append(command_id, command)
        logger.debug(f"Sending {request}")
        await self.network.send(self.active_server, request)
        self.next_request_id += 1

        if self.metrics is not None:
            self.metrics.record_request(is_write)
        if self.next_request_id % PROGRESS_INTERVAL == 0:
            logger.info(
                f"{self.id}: Progress: {self.next_request_id} requests sent, "
                f"{self.client_data.response_count()} responses"
            )

    def _run_finished(self) -> bool:
        if self.final_request_count is None:
            return False
        return self.client_data.response_count() >= self.final_request_count

    def _update_phase_metric(self, phases: PhaseManager) -> None:
        if self.metrics is not None:
            self.metrics.update_phase(phases.phase_index)

    async def _wait_until_sync_time(self, scheduled_start_ms: int) -> None:
        """Sleep until the scheduled start; start at once if it has passed."""
        millis_until_sync = scheduled_start_ms - now_millis()
        self.config.sync_time = millis_until_sync
        if millis_until_sync > 0:
            await asyncio.sleep(millis_until_sync / MILLIS_PER_SECOND)
        else:
            logger.warning("Started after synchronization point!")

    async def _finish(self) -> Dict[str, Any]:
        logger.info(
            f"{self.id}: Client finished: collected {self.client_data.response_count()} responses"
        )
        # No late response may touch the ledger once export begins
        await self.network.shutdown()
        self.save_results()
        self.state = ClientState.FINISHED

        summary = self.client_data.get_summary()
        logger.info(
            f"{self.id}: {summary['total_requests']} requests "
            f"({summary['reads']} reads, {summary['writes']} writes), "
            f"{summary['unanswered']} unanswered"
        )
        logger.info(
            f"{self.id}: Latency avg {summary['avg_latency_ms']:.1f} ms, "
            f"p50 {summary['p50_latency_ms']:.1f} ms, p95 {summary['p95_latency_ms']:.1f} ms, "
            f"p99 {summary['p99_latency_ms']:.1f} ms"
        )
        return {'client_id': self.id, **summary}

    def save_results(self) -> None:
        """Write summary and CSV, then the optional history.

        Raises:
            OSError: If the summary or CSV cannot be written
        """
        _ensure_parent_dir(self.config.summary_filepath)
        self.client_data.save_summary(self.config.to_dict(), self.config.summary_filepath)
        _ensure_parent_dir(self.config.output_filepath)
        self.client_data.to_csv(self.config.output_filepath)
        logger.info(f"Results saved to {self.config.output_filepath} and {self.config.summary_filepath}")

        if self.history is not None:
            self._export_history_json()

    def _export_history_json(self) -> None:
        history_path = self.config.history_filepath
        try:
            _ensure_parent_dir(history_path)
            self.history.export_json(history_path)
        except OSError as e:
            logger.warning(f"Failed to export history JSON: {e}")
        else:
            logger.info(f"Exported operation history to {history_path}")


def _ensure_parent_dir(path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
