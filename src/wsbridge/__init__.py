""" Protocol-translation gateway between WebSocket/HTTP front ends and a
    ZeroMQ backend. The request/reply emulation lives in :mod:`transport`
    (the envelope primitive) and :mod:`session` (the reply-wait policy);
    :mod:`bridge` holds the three gateway modes, and :mod:`server` wires
    them to FastAPI.
"""

# Backend primitives.

from . import transport
from . import session

# Gateway modes and their configuration.

from . import config
from . import bridge

Settings = config.Settings
ReplyPolicy = session.ReplyPolicy
await_reply = session.await_reply

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
