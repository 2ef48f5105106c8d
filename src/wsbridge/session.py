"""Transport-agnostic reply-wait policy.

Nothing on a DEALER socket says whether a reply is late or will never come.
:class:`ReplyPolicy` bounds the wait: a fixed number of attempts, each a
bounded :meth:`Transport.poll_ready`, returning as soon as a reply is in hand.
Running out of attempts is a normal outcome and yields None; only transport
failures raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .transport.base import Transport


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplyPolicy:
    """How many times, and how long each time, to wait for a reply."""

    attempts: int = 10
    timeout: float = 1.0

    def __post_init__(self) -> None:
        if int(self.attempts) < 1:
            raise ValueError(f"attempts must be at least 1, not {self.attempts!r}")
        if float(self.timeout) < 0:
            raise ValueError(f"timeout must not be negative, not {self.timeout!r}")

    @property
    def budget(self) -> float:
        """Worst-case wait in seconds."""
        return self.attempts * self.timeout

    async def await_reply(self, connection: Transport) -> Optional[bytes]:
        return await await_reply(connection, self.attempts, self.timeout)


# Stateless calls poll in short slices; a session poll is one long wait
# because the front end already controls the polling cadence.

STATELESS_POLICY = ReplyPolicy(attempts=10, timeout=1.0)
SESSION_POLICY = ReplyPolicy(attempts=1, timeout=10.0)


async def await_reply(connection: Transport, max_attempts: int, attempt_timeout: float) -> Optional[bytes]:
    """Wait for one reply on *connection*.

    Returns the reply payload, or None when *max_attempts* polls of
    *attempt_timeout* seconds each pass without one. Raises
    :class:`TransportConnectionError` (or :class:`ProtocolViolation`) if the
    connection fails while waiting.
    """

    for attempt in range(1, max_attempts + 1):
        ready = await connection.poll_ready(attempt_timeout)
        if not ready:
            continue

        payload = await connection.try_receive()
        if payload is not None:
            logger.debug("reply after %d/%d attempts (%d bytes)", attempt, max_attempts, len(payload))
            return payload

    logger.debug("no reply after %d attempts of %.2f sec", max_attempts, attempt_timeout)
    connection.discard_pending()
    return None
