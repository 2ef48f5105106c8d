"""ZMQ multipart framing for the request/reply envelope.

DEALER side, as seen by the gateway
    empty_delimiter, payload

ROUTER side, as seen by the backend
    identity, empty_delimiter, payload

The identity frame is added and removed by ZeroMQ itself; the gateway never
sees it.
"""

from __future__ import annotations

from typing import Sequence, Tuple

from ..base import ProtocolViolation


DELIMITER = b""


def to_request_frames(payload: bytes) -> Tuple[bytes, bytes]:
    """Encode *payload* as delimiter + payload frames."""

    if not isinstance(payload, (bytes, bytearray, memoryview)):
        raise TypeError(f"payload must be bytes, not {type(payload).__name__}")

    return (DELIMITER, bytes(payload))


def from_request_frames(parts: Sequence[bytes]) -> bytes:
    """Decode DEALER parts into the payload bytes."""

    if len(parts) != 2:
        raise ProtocolViolation(f"expected 2 frames, received {len(parts)}")

    delimiter, payload = parts
    if delimiter != DELIMITER:
        raise ProtocolViolation(f"expected empty delimiter frame, received {delimiter[:16]!r}")

    return bytes(payload)
