"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared registries (pairing sessions, relay router)
- Run the idle-session pruning task for the app's lifetime
- Register routes
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability import logger
from observability.logger import log_event
from pairing.registry import SessionRegistry
from relay.router import RelayRouter
from server.routes import register_routes
from spec import SESSION_PRUNE_INTERVAL_S


async def _prune_sessions_forever(registry: SessionRegistry, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        registry.prune_idle()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the pruning task on startup; cancel it on shutdown."""
    config: AppConfig = app.state.config
    task: Optional[asyncio.Task[None]] = None
    if config.session_idle_ttl_s > 0:
        task = asyncio.create_task(
            _prune_sessions_forever(app.state.sessions, SESSION_PRUNE_INTERVAL_S)
        )

    log_event({
        "event_type": "SERVER_STARTED",
        "env": config.env,
        "port": config.port,
        "producer_conflict_policy": config.producer_conflict_policy,
    })

    yield

    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    log_event({"event_type": "SERVER_STOPPED"})


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations
    - Environment-specific setup
    - ASGI server compatibility
    """
    if config is None:
        config = AppConfig.load_from_env()

    logger.configure(enable_json_logs=config.enable_json_logs)

    app = FastAPI(title="Screen Relay API", lifespan=lifespan)

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Shared state, one per process
    app.state.sessions = SessionRegistry(idle_ttl_s=config.session_idle_ttl_s)
    app.state.router = RelayRouter(conflict_policy=config.producer_conflict_policy)

    # Routes
    register_routes(app)

    return app
