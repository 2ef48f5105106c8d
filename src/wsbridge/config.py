"""
Gateway configuration.

Responsibilities:
- Read WSBRIDGE_* environment variables
- Provide a typed, immutable settings object
- Build the reply-wait policies for each bridge mode

Settings are constructed once at startup and passed down to the app factory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from .session import SESSION_POLICY, STATELESS_POLICY, ReplyPolicy


FANOUT = "fanout"
SESSION = "session"
STATELESS = "stateless"

MODES = (FANOUT, SESSION, STATELESS)

ENV_PREFIX = "WSBRIDGE_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _env_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name}: expected a boolean, not {raw!r}")


def _env_number(name: str, raw: str, kind):
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name}: expected {kind.__name__}, not {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """
    Immutable gateway configuration.

    Every field has a default matching a local development setup; see
    :meth:`from_env` for the environment variable names.
    """

    # ------------------------------------------------------------------
    # Front end
    # ------------------------------------------------------------------

    mode: str = SESSION
    host: str = "127.0.0.1"
    port: int = 8088
    cors_origin: str = "http://localhost:8080"

    # ------------------------------------------------------------------
    # Backend endpoints
    # ------------------------------------------------------------------

    backend: str = "tcp://127.0.0.1:5555"
    publish: str = "tcp://127.0.0.1:5555"
    subscribe: Optional[str] = None

    # ------------------------------------------------------------------
    # Request/reply behavior
    # ------------------------------------------------------------------

    # Also the longest a session submit holds up the read loop when the
    # backend is unreachable.
    send_timeout: float = 1.0
    session_policy: ReplyPolicy = field(default=SESSION_POLICY)
    stateless_policy: ReplyPolicy = field(default=STATELESS_POLICY)
    session_nack: bool = False
    timeout_status: int = 200

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"unknown mode {self.mode!r}, expected one of {', '.join(MODES)}")
        if self.send_timeout <= 0:
            raise ValueError(f"send_timeout must be positive, not {self.send_timeout!r}")
        if not 100 <= self.timeout_status <= 599:
            raise ValueError(f"timeout_status must be an HTTP status code, not {self.timeout_status!r}")

    def with_overrides(self, **overrides) -> Settings:
        """Return a copy with every non-None override applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> Settings:
        """
        Load settings from environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError if a variable is set to something unusable.
        """

        if environ is None:
            environ = os.environ

        def get(name: str) -> Optional[str]:
            return environ.get(ENV_PREFIX + name)

        defaults = Settings()
        values = {}

        for name in ("mode", "host", "cors_origin", "backend", "publish", "subscribe"):
            raw = get(name.upper())
            if raw is not None and raw.strip() != "":
                values[name] = raw.strip()

        raw = get("LOG_LEVEL")
        if raw:
            values["log_level"] = raw.strip().upper()

        for name, kind in (("port", int), ("send_timeout", float), ("timeout_status", int)):
            raw = get(name.upper())
            if raw is not None:
                values[name] = _env_number(ENV_PREFIX + name.upper(), raw, kind)

        raw = get("SESSION_NACK")
        if raw is not None:
            values["session_nack"] = _env_bool(ENV_PREFIX + "SESSION_NACK", raw)

        for prefix, default in (("session", defaults.session_policy), ("stateless", defaults.stateless_policy)):
            attempts = get(prefix.upper() + "_ATTEMPTS")
            timeout = get(prefix.upper() + "_TIMEOUT")
            if attempts is None and timeout is None:
                continue

            if attempts is not None:
                attempts = _env_number(ENV_PREFIX + prefix.upper() + "_ATTEMPTS", attempts, int)
            else:
                attempts = default.attempts

            if timeout is not None:
                timeout = _env_number(ENV_PREFIX + prefix.upper() + "_TIMEOUT", timeout, float)
            else:
                timeout = default.timeout

            values[prefix + "_policy"] = ReplyPolicy(attempts=attempts, timeout=timeout)

        return Settings(**values)
