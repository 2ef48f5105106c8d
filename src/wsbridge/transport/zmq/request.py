"""ZeroMQ request/reply transport.

A :class:`Connection` wraps one DEALER socket connected to a static backend
endpoint, typically a ROUTER. DEALER sockets are asynchronous and have no
notion of a paired exchange; the empty delimiter frame plus the explicit
:class:`PendingState` emulate one. A connection carries at most one
outstanding request at a time and belongs to exactly one task.
"""

from __future__ import annotations

import asyncio
import atexit
import itertools
import logging
import os
import uuid
from typing import Optional

import zmq
import zmq.asyncio

from ..base import (
    PendingState,
    RequestPending,
    Transport,
    TransportConnectionError,
)
from .framing import from_request_frames, to_request_frames


logger = logging.getLogger(__name__)

zmq_context = zmq.asyncio.Context()
_sequence = itertools.count()


class Connection(Transport):
    """Issue requests via a ZeroMQ DEALER socket and receive responses."""

    send_timeout = 1.0

    def __init__(self, endpoint: str, send_timeout: Optional[float] = None):
        self.endpoint = endpoint
        if send_timeout is not None:
            self.send_timeout = float(send_timeout)

        # The random part keeps identities unique across hosts and containers
        # where gateway processes can share a PID.
        self.identity = f"wsbridge.Connection.{os.getpid()}.{next(_sequence)}.{uuid.uuid4().hex[:12]}".encode()
        self.state = PendingState.IDLE
        self.socket: Optional[zmq.asyncio.Socket] = None
        self._poller: Optional[zmq.asyncio.Poller] = None
        self._closed = False

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"<Connection {self.identity.decode()} {self.endpoint} {status} {self.state.value}>"

    @property
    def is_open(self) -> bool:
        return self.socket is not None

    def open(self) -> None:
        if self.socket is not None:
            return
        if self._closed:
            raise TransportConnectionError(f"{self.endpoint}: connection already closed")

        try:
            socket = zmq_context.socket(zmq.DEALER)
        except zmq.ZMQError as exc:
            raise TransportConnectionError(f"{self.endpoint}: cannot create socket: {exc}") from exc

        # IMMEDIATE keeps outbound messages off pipes to peers that are not
        # connected yet, so an unreachable endpoint surfaces as a send timeout.
        socket.setsockopt(zmq.LINGER, 0)
        socket.setsockopt(zmq.IMMEDIATE, 1)
        socket.identity = self.identity

        try:
            socket.connect(self.endpoint)
        except zmq.ZMQError as exc:
            socket.close(linger=0)
            raise TransportConnectionError(f"{self.endpoint}: cannot connect: {exc}") from exc

        poller = zmq.asyncio.Poller()
        poller.register(socket, zmq.POLLIN)

        self.socket = socket
        self._poller = poller
        logger.debug("%s: opened", self.identity.decode())

    def close(self) -> None:
        socket = self.socket
        if socket is None:
            self._closed = True
            return

        if self.state is PendingState.AWAITING_REPLY:
            logger.debug("%s: abandoning pending request", self.identity.decode())

        self.socket = None
        self._poller = None
        self._closed = True
        self.state = PendingState.IDLE
        socket.close(linger=0)
        logger.debug("%s: closed", self.identity.decode())

    def _require_open(self) -> zmq.asyncio.Socket:
        if self.socket is None:
            raise TransportConnectionError(f"{self.endpoint}: connection is not open")
        return self.socket

    async def send(self, payload: bytes) -> None:
        socket = self._require_open()

        if self.state is PendingState.AWAITING_REPLY:
            raise RequestPending(f"{self.endpoint}: previous request has no reply yet")

        frames = to_request_frames(payload)

        try:
            await asyncio.wait_for(socket.send_multipart(frames), self.send_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportConnectionError(
                f"{self.endpoint}: request not accepted in {self.send_timeout:.2f} sec"
            ) from exc
        except zmq.ZMQError as exc:
            raise TransportConnectionError(f"{self.endpoint}: send failed: {exc}") from exc

        self.state = PendingState.AWAITING_REPLY

    async def try_receive(self) -> Optional[bytes]:
        socket = self._require_open()

        try:
            parts = await socket.recv_multipart(flags=zmq.NOBLOCK)
        except zmq.Again:
            return None
        except zmq.ZMQError as exc:
            raise TransportConnectionError(f"{self.endpoint}: receive failed: {exc}") from exc

        # Whatever arrived has been consumed; the exchange is over either way.
        self.state = PendingState.IDLE
        return from_request_frames(parts)

    async def poll_ready(self, timeout: float) -> bool:
        self._require_open()

        milliseconds = max(0, int(round(timeout * 1000)))

        try:
            events = await self._poller.poll(milliseconds)
        except zmq.ZMQError as exc:
            raise TransportConnectionError(f"{self.endpoint}: poll failed: {exc}") from exc

        return len(events) > 0


def _cleanup() -> None:
    try:
        zmq_context.destroy(linger=0)
    except zmq.ZMQError:
        pass


atexit.register(_cleanup)
