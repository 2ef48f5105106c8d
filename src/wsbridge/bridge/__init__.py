"""Bridge modes: each maps a front-end transport onto the backend."""

from .base import WebSocketBridge, decode_text
from .fanout import FanoutBridge
from .session import SessionBridge
from .stateless import StatelessBridge
