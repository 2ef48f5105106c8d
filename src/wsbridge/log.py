"""Logging initialization."""

from __future__ import annotations

import logging


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure(level: str = "INFO") -> None:
    logging.basicConfig(level=level.strip().upper(), format=LOG_FORMAT)


__all__ = ["configure"]
