"""Shared WebSocket plumbing for the stream-oriented bridges."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Awaitable, Deque, Optional, TypeVar

from fastapi import WebSocket, WebSocketDisconnect

from ..transport.base import EncodingError


logger = logging.getLogger(__name__)

T = TypeVar("T")


def decode_text(payload: bytes) -> str:
    """Decode a backend reply for a text frame, or raise :class:`EncodingError`."""

    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncodingError(f"reply is not valid UTF-8 ({len(payload)} bytes)") from exc


class WebSocketBridge(ABC):
    """One front-end WebSocket session.

    Subclasses implement :meth:`on_text`; binary frames are echoed verbatim.
    Ping/pong is answered by the ASGI server before messages reach here.

    A long wait inside a handler goes through :meth:`interruptible`, which
    keeps reading the socket meanwhile: a disconnect cancels the wait, and
    any other frame is held until the handler returns.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._held: Deque[dict] = deque()
        self._receiver: Optional[asyncio.Future] = None

    async def on_open(self) -> None:
        pass

    async def on_close(self) -> None:
        pass

    @abstractmethod
    async def on_text(self, text: str) -> None:
        """Handle one inbound text frame."""

    async def on_bytes(self, data: bytes) -> None:
        await self.deliver(data=data)

    async def deliver(self, text: Optional[str] = None, data: Optional[bytes] = None) -> None:
        """Send one frame to the caller.

        A socket the caller already closed raises :class:`WebSocketDisconnect`,
        which ends the session like any other disconnect.
        """

        try:
            if text is not None:
                await self.websocket.send_text(text)
            else:
                await self.websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise
        except (RuntimeError, OSError) as exc:
            raise WebSocketDisconnect(code=1006, reason=str(exc)) from exc

    def _pending_receive(self) -> asyncio.Future:
        if self._receiver is None:
            self._receiver = asyncio.ensure_future(self.websocket.receive())
        return self._receiver

    async def _next_message(self) -> dict:
        if self._held:
            return self._held.popleft()

        receiver = self._pending_receive()
        try:
            return await receiver
        finally:
            self._receiver = None

    async def interruptible(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* while still watching the socket for a disconnect."""

        work = asyncio.ensure_future(awaitable)

        try:
            while True:
                receiver = self._pending_receive()
                done, _pending = await asyncio.wait({work, receiver}, return_when=asyncio.FIRST_COMPLETED)

                if work in done:
                    # An unfinished receive stays pending for the read loop.
                    return work.result()

                self._receiver = None
                message = receiver.result()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(code=message.get("code", 1000))

                self._held.append(message)
        finally:
            if not work.done():
                work.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await work

    async def run(self) -> None:
        await self.websocket.accept()
        client = self.websocket.client
        logger.info("%s: session open (%s)", type(self).__name__, client)

        try:
            await self.on_open()

            while True:
                message = await self._next_message()
                if message["type"] == "websocket.disconnect":
                    break

                text = message.get("text")
                if text is not None:
                    await self.on_text(text)
                    continue

                data = message.get("bytes")
                if data is not None:
                    await self.on_bytes(data)

        except WebSocketDisconnect as exc:
            logger.debug("%s: disconnected (%s, code %s)", type(self).__name__, client, exc.code)
        except Exception:
            # Only this session ends; the gateway keeps serving others.
            logger.exception("%s: session failed (%s)", type(self).__name__, client)
            with contextlib.suppress(Exception):
                await self.websocket.close(code=1011)
        finally:
            if self._receiver is not None:
                self._receiver.cancel()
                self._receiver = None
            await self.on_close()
            logger.info("%s: session closed (%s)", type(self).__name__, client)
