"""Session-bound request/reply bridge.

The WebSocket session owns one backend :class:`Connection` from accept to
disconnect. Text frames are submitted to the backend as-is, except the
literal ``poll``, which performs one bounded wait for the outstanding reply
and forwards it as text. The socket is still read during that wait, so a
disconnect abandons the backend connection at once. Callers must poll for a
reply before submitting again; the connection rejects a second submit while
a reply is outstanding.

A submit waits at most ``send_timeout`` for the backend to accept it; that
is the longest a submit holds up the read loop when the backend is down.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import WebSocket

from ..session import SESSION_POLICY, ReplyPolicy
from ..transport.base import EncodingError, TransportError
from ..transport.zmq.request import Connection
from .base import WebSocketBridge, decode_text


logger = logging.getLogger(__name__)

POLL = "poll"
NACK = "nack"


class SessionBridge(WebSocketBridge):

    def __init__(
        self,
        websocket: WebSocket,
        endpoint: str,
        policy: ReplyPolicy = SESSION_POLICY,
        send_timeout: Optional[float] = None,
        nack: bool = False,
    ):
        super().__init__(websocket)
        self.policy = policy
        self.nack = nack
        self.connection = Connection(endpoint, send_timeout)

    async def on_open(self) -> None:
        try:
            self.connection.open()
        except TransportError as exc:
            # Submits will fail and be dropped; the session itself stays up.
            logger.warning("backend connection unavailable: %s", exc)

    async def on_close(self) -> None:
        self.connection.close()

    async def on_text(self, text: str) -> None:
        if text == POLL:
            await self.poll()
        else:
            await self.submit(text)

    async def submit(self, text: str) -> bool:
        try:
            await self.connection.send(text.encode("utf-8"))
        except TransportError as exc:
            logger.warning("submit dropped: %s", exc)
            if self.nack:
                await self.deliver(text=NACK)
            return False

        return True

    async def poll(self) -> Optional[str]:
        try:
            payload = await self.interruptible(self.policy.await_reply(self.connection))
        except TransportError as exc:
            logger.warning("poll failed: %s", exc)
            return None

        if not payload:
            logger.debug("poll: no reply")
            return None

        try:
            text = decode_text(payload)
        except EncodingError as exc:
            logger.warning("poll: reply discarded: %s", exc)
            return None

        await self.deliver(text=text)
        return text
