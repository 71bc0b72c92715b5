"""
Async TCP transport between the benchmark client and KV servers.

Frames are newline-delimited JSON objects (see common.messages).
"""

import json
import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from common.messages import ClientMessage, NodeId, ServerMessage, server_message_from_dict
from configuration import (
    NETWORK_CONNECT_RETRIES,
    NETWORK_CONNECT_RETRY_DELAY,
    NETWORK_QUEUE_SIZE,
)

logger = logging.getLogger(__name__)


def encode_frame(message) -> bytes:
    return (json.dumps(message.to_dict(), separators=(",", ":")) + "\n").encode()


def decode_server_frame(line: bytes) -> ServerMessage:
    return server_message_from_dict(json.loads(line))


class Network:
    """Connections to one or more servers plus a single inbound message queue.

    ``server_messages`` yields decoded ServerMessages; ``None`` marks that a
    connection was closed by the peer or sent an undecodable frame.
    """

    def __init__(self, queue_size: int = NETWORK_QUEUE_SIZE):
        self.server_messages: "asyncio.Queue[Optional[ServerMessage]]" = asyncio.Queue(maxsize=queue_size)
        self._writers: Dict[NodeId, asyncio.StreamWriter] = {}
        self._reader_tasks: List[asyncio.Task] = []
        self._closed = False

    @classmethod
    async def connect(
        cls,
        servers: Dict[NodeId, Tuple[str, int]],
        retries: int = NETWORK_CONNECT_RETRIES,
        retry_delay: float = NETWORK_CONNECT_RETRY_DELAY,
    ) -> "Network":
        """Open a connection to every server.

        Args:
            servers: Server id -> (host, port)
            retries: Connection attempts per server
            retry_delay: Seconds between attempts

        Raises:
            OSError: If a server stays unreachable after all attempts
        """
        network = cls()
        try:
            for node_id, (host, port) in servers.items():
                await network._open(node_id, host, port, retries, retry_delay)
        except BaseException:
            await network.shutdown()
            raise
        return network

    async def _open(self, node_id: NodeId, host: str, port: int, retries: int, retry_delay: float):
        attempts = max(1, retries)
        for attempt in range(1, attempts + 1):
            try:
                reader, writer = await asyncio.open_connection(host, port)
            except OSError as e:
                if attempt == attempts:
                    logger.error(f"Could not connect to server {node_id} at {host}:{port}: {e}")
                    raise
                logger.warning(
                    f"Connection to server {node_id} at {host}:{port} failed "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                await asyncio.sleep(retry_delay)
                continue

            self._writers[node_id] = writer
            self._reader_tasks.append(asyncio.create_task(self._read_loop(node_id, reader)))
            logger.info(f"Connected to server {node_id} at {host}:{port}")
            return

    async def _read_loop(self, node_id: NodeId, reader: asyncio.StreamReader):
        while True:
            try:
                line = await reader.readline()
            except (ConnectionError, asyncio.IncompleteReadError) as e:
                logger.warning(f"Connection to server {node_id} lost: {e}")
                break
            if not line:
                logger.info(f"Server {node_id} closed the connection")
                break
            line = line.strip()
            if not line:
                continue
            try:
                message = decode_server_frame(line)
            except (ValueError, KeyError, TypeError) as e:
                logger.error(f"Undecodable frame from server {node_id}: {e}")
                break
            await self.server_messages.put(message)
        await self.server_messages.put(None)

    async def send(self, to: NodeId, message: ClientMessage) -> None:
        """Send a message without waiting for any reply."""
        writer = self._writers.get(to)
        if writer is None or self._closed:
            logger.warning(f"Dropping message to unknown or closed server {to}: {message}")
            return
        try:
            writer.write(encode_frame(message))
            await writer.drain()
        except ConnectionError as e:
            logger.warning(f"Failed to send to server {to}: {e}")

    async def shutdown(self) -> None:
        """Stop reading and close every connection. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        for task in self._reader_tasks:
            task.cancel()
        await asyncio.gather(*self._reader_tasks, return_exceptions=True)
        self._reader_tasks.clear()

        for node_id, writer in self._writers.items():
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"Error closing connection to server {node_id}: {e}")
        logger.info("Network shut down")
