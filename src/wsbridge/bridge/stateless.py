"""Stateless request/reply bridge.

Every call gets a fresh backend connection: send the body, wait for a reply
under the policy, close the connection no matter what. Nothing survives the
call. Backend failures become a 503 with a fixed body; they never propagate
out of :meth:`StatelessBridge.call`.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Response

from ..session import STATELESS_POLICY, ReplyPolicy
from ..transport.base import TransportError
from ..transport.zmq.request import Connection


logger = logging.getLogger(__name__)

UNAVAILABLE = b"backend unavailable"
NO_REPLY = b"backend did not reply"


class StatelessBridge:

    def __init__(
        self,
        endpoint: str,
        policy: ReplyPolicy = STATELESS_POLICY,
        send_timeout: Optional[float] = None,
        timeout_status: int = 200,
    ):
        self.endpoint = endpoint
        self.policy = policy
        self.send_timeout = send_timeout
        self.timeout_status = timeout_status

    async def exchange(self, body: bytes) -> Optional[bytes]:
        """Run one send/await cycle on a fresh connection."""

        async with Connection(self.endpoint, self.send_timeout) as connection:
            await connection.send(body)
            return await self.policy.await_reply(connection)

    async def call(self, body: bytes) -> Response:
        try:
            reply = await self.exchange(body)
        except TransportError as exc:
            logger.warning("call failed: %s", exc)
            return Response(content=UNAVAILABLE, status_code=503, media_type="text/plain")

        if reply is None:
            # An exhausted wait is an empty success unless configured otherwise.
            if self.timeout_status == 200:
                return Response(content=b"", status_code=200)
            return Response(content=NO_REPLY, status_code=self.timeout_status, media_type="text/plain")

        return Response(content=reply, status_code=200, media_type="application/octet-stream")
