"""Transport interface.

This is the (small) contract that backend connections follow. The reply-wait
policy and the bridges only talk to this interface, never to ZeroMQ directly.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Optional


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportConnectionError(TransportError):
    """The backend socket could not be created, connected, or used."""


class ProtocolViolation(TransportConnectionError):
    """The backend sent an envelope that is not delimiter + payload."""


class EncodingError(TransportError):
    """Reply bytes are not valid text where text is required."""


class RequestPending(TransportError):
    """A send was attempted while a previous reply is still outstanding."""


class PendingState(enum.Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"


class Transport(ABC):
    """Minimal contract for a single-outstanding-request backend connection."""

    state = PendingState.IDLE

    @abstractmethod
    def open(self) -> None:
        """Establish the underlying connection/socket."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection/socket."""

    @abstractmethod
    async def send(self, payload: bytes) -> None:
        """Send one envelope carrying *payload*."""

    @abstractmethod
    async def try_receive(self) -> Optional[bytes]:
        """Return the next payload, or None if nothing is ready."""

    @abstractmethod
    async def poll_ready(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds for a readable envelope."""

    def discard_pending(self) -> None:
        """Give up on the outstanding request, if any."""
        self.state = PendingState.IDLE

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False

    async def __aenter__(self):
        self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()
