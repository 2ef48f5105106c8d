"""
FastAPI app factory.

Responsibilities:
- Create and configure the FastAPI app for one gateway mode
- Set up CORS
- Start/stop the optional broadcast monitor
- Register the front-end routes

Run with ``uvicorn --factory wsbridge.server:create_app`` or ``python -m wsbridge``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .bridge import FanoutBridge, SessionBridge, StatelessBridge
from .config import FANOUT, SESSION, STATELESS, Settings
from .transport.base import TransportError
from .transport.zmq.subscribe import Monitor


logger = logging.getLogger(__name__)

WS_PATH = "/ws/"
CALL_PATH = "/"

CORS_METHODS = ["GET", "POST"]
CORS_HEADERS = ["Authorization", "Accept", "Content-Type"]
CORS_MAX_AGE = 3600


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        settings = Settings.from_env()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        monitor = None
        if settings.subscribe:
            try:
                monitor = Monitor(settings.subscribe)
            except TransportError as exc:
                logger.warning("monitor disabled: %s", exc)

        app.state.monitor = monitor
        logger.info("gateway: %s mode ready", settings.mode)
        try:
            yield
        finally:
            if monitor is not None:
                await asyncio.to_thread(monitor.stop)

    app = FastAPI(title="wsbridge", lifespan=_lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*", settings.cors_origin],
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
        max_age=CORS_MAX_AGE,
    )

    register_routes(app, settings)
    return app


def register_routes(app: FastAPI, settings: Settings) -> None:

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "mode": settings.mode}

    if settings.mode == FANOUT:

        @app.websocket(WS_PATH)
        async def fanout(websocket: WebSocket) -> None:
            await FanoutBridge(websocket, settings.publish).run()

    elif settings.mode == SESSION:

        @app.websocket(WS_PATH)
        async def session(websocket: WebSocket) -> None:
            bridge = SessionBridge(
                websocket,
                settings.backend,
                policy=settings.session_policy,
                send_timeout=settings.send_timeout,
                nack=settings.session_nack,
            )
            await bridge.run()

    elif settings.mode == STATELESS:
        bridge = StatelessBridge(
            settings.backend,
            policy=settings.stateless_policy,
            send_timeout=settings.send_timeout,
            timeout_status=settings.timeout_status,
        )

        @app.post(CALL_PATH)
        async def call(request: Request) -> Response:
            body = await request.body()
            return await bridge.call(body)
