"""ZeroMQ publish transport for the fan-out relay."""

from __future__ import annotations

import atexit
import logging

import zmq
import zmq.asyncio

from ..base import TransportConnectionError


logger = logging.getLogger(__name__)

zmq_context = zmq.asyncio.Context()


class Publisher:
    """PUB client. Messages are sent and forgotten; there is no reply path."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint

        self.socket = zmq_context.socket(zmq.PUB)
        self.socket.setsockopt(zmq.LINGER, 0)

        try:
            self.socket.connect(endpoint)
        except zmq.ZMQError as exc:
            self.socket.close(linger=0)
            self.socket = None
            raise TransportConnectionError(f"{endpoint}: cannot connect publisher: {exc}") from exc

        logger.debug("publisher connected to %s", endpoint)

    async def send(self, payload: bytes) -> None:
        if self.socket is None:
            raise TransportConnectionError(f"{self.endpoint}: publisher is closed")

        # PUB sockets drop rather than block at the high-water mark.
        try:
            await self.socket.send(payload)
        except zmq.ZMQError as exc:
            raise TransportConnectionError(f"{self.endpoint}: publish failed: {exc}") from exc

    def close(self) -> None:
        if self.socket is not None:
            self.socket.close(linger=0)
            self.socket = None


def _cleanup() -> None:
    try:
        zmq_context.destroy(linger=0)
    except zmq.ZMQError:
        pass


atexit.register(_cleanup)
