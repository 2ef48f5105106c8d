"""Backend transport: the envelope primitive and its exceptions."""

from .base import (
    EncodingError,
    PendingState,
    ProtocolViolation,
    RequestPending,
    Transport,
    TransportConnectionError,
    TransportError,
)

from .zmq import publish
from .zmq import request
from .zmq import subscribe

Connection = request.Connection
Publisher = publish.Publisher
Monitor = subscribe.Monitor
