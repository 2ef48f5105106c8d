"""Fan-out relay: publish every text frame, echo it back, expect no reply."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import WebSocket

from ..transport.base import TransportError
from ..transport.zmq.publish import Publisher
from .base import WebSocketBridge


logger = logging.getLogger(__name__)


class FanoutBridge(WebSocketBridge):

    def __init__(self, websocket: WebSocket, endpoint: str):
        super().__init__(websocket)
        self.endpoint = endpoint
        self.publisher: Optional[Publisher] = None

    async def on_open(self) -> None:
        try:
            self.publisher = Publisher(self.endpoint)
        except TransportError as exc:
            logger.warning("publisher unavailable, echo only: %s", exc)

    async def on_close(self) -> None:
        if self.publisher is not None:
            self.publisher.close()
            self.publisher = None

    async def publish(self, payload: bytes) -> bool:
        if self.publisher is None:
            return False

        try:
            await self.publisher.send(payload)
        except TransportError as exc:
            logger.warning("publish failed, continuing: %s", exc)
            return False

        return True

    async def on_text(self, text: str) -> None:
        logger.debug("text: %r", text)
        await self.publish(text.encode("utf-8"))
        await self.deliver(text=text)
