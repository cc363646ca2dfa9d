"""
Route registration for the screen relay API.

Responsibilities:
- Define HTTP (pairing control plane) and WebSocket (relay) endpoints
- Wire a RelayGateway to each WebSocket lifecycle
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, StreamingResponse

from config import AppConfig
from observability.logger import log_event
from pairing.registry import SessionNotFound, SessionRegistry
from relay.gateway import RelayGateway
from relay.outbox import Outbox
from relay.router import RelayRouter
from server.network import build_pairing_url, local_ip, resolve_backend_url
from spec import SSE_RETRY_MS


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Pairing
    # ------------------------------------------------------------------

    @app.get("/api/session")
    async def create_session(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        config: AppConfig = app.state.config
        sessions: SessionRegistry = app.state.sessions

        session = sessions.create_session()
        backend_url = resolve_backend_url(
            config,
            forwarded_proto=request.headers.get("x-forwarded-proto"),
            request_scheme=request.url.scheme,
        )
        url = build_pairing_url(config.pairing_scheme, session.session_id, backend_url)

        log_event({
            "event_type": "PAIRING_URL_ISSUED",
            "session_id": session.session_id,
            "backend_url": backend_url,
        })
        return {
            "sessionId": session.session_id,
            "url": url,
            "localUrl": None,
            "serverInfo": {"ip": local_ip(), "port": config.port},
        }

    @app.post("/api/pair", response_model=None)
    async def pair(request: Request) -> JSONResponse | dict[str, bool]: # pyright: ignore[reportUnusedFunction]
        sessions: SessionRegistry = app.state.sessions
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        session_id = body.get("sessionId")
        local_url = body.get("localUrl")
        if not isinstance(session_id, str) or not session_id \
                or not isinstance(local_url, str) or not local_url:
            return _error_response(400, "sessionId and localUrl required")

        try:
            sessions.bind_endpoint(session_id, local_url)
        except SessionNotFound:
            log_event({"event_type": "PAIRING_SESSION_NOT_FOUND", "session_id": session_id})
            return _error_response(404, "session not found")
        return {"ok": True}

    @app.get("/api/session/{session_id}", response_model=None)
    async def session_status(session_id: str) -> JSONResponse | dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        sessions: SessionRegistry = app.state.sessions
        try:
            local_url = sessions.status(session_id)
        except SessionNotFound:
            return _error_response(404, "session not found")
        return {"sessionId": session_id, "localUrl": local_url}

    @app.get("/api/session/{session_id}/stream", response_model=None)
    async def session_stream(session_id: str) -> JSONResponse | StreamingResponse: # pyright: ignore[reportUnusedFunction]
        sessions: SessionRegistry = app.state.sessions
        if session_id not in sessions:
            return _error_response(404, "session not found")

        return StreamingResponse(
            _ready_events(sessions, session_id),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    # ------------------------------------------------------------------
    # Relay
    # ------------------------------------------------------------------

    @app.get("/api/streams")
    async def list_streams() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        router: RelayRouter = app.state.router
        return {"streams": router.describe_streams()}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        config: AppConfig = app.state.config
        gateway = RelayGateway(
            router=app.state.router,
            outbox_max_media=config.viewer_outbox_max_media,
        )
        gateway.on_ws_connect()
        sender = asyncio.create_task(_pump_outbox(ws, gateway.outbox, gateway.connection_id))

        try:
            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(msg.get("code", 1000))

                if msg.get("text") is not None:
                    gateway.on_json_message(msg["text"])

                elif msg.get("bytes") is not None:
                    gateway.on_binary_message(msg["bytes"])

        except WebSocketDisconnect:
            gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "connection_id": gateway.connection_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            gateway.on_ws_disconnect(reason="server_error")

        finally:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _ready_events(sessions: SessionRegistry, session_id: str) -> AsyncIterator[str]:
    """
    One pairing SSE stream: retry hint, then a single `ready` event.

    The subscription only exists while the body is being iterated, so a
    client gone before the first chunk leaves nothing pending. Client
    disconnects cancel the generator; the finally block removes the
    subscription either way.
    """
    yield f"retry: {SSE_RETRY_MS}\n\n"
    try:
        sub = sessions.subscribe(session_id)
    except SessionNotFound:
        # Pruned between the 404 check and the first chunk
        return
    try:
        url = await sub.wait()
        if url is not None:
            yield _sse("ready", {"localUrl": url})
    finally:
        sessions.unsubscribe(sub)


async def _pump_outbox(ws: WebSocket, outbox: Outbox, connection_id: str) -> None:
    """
    Sole sender for one websocket. FIFO: control and media leave in the
    order they were queued.
    """
    while True:
        item = await outbox.get()
        if item is None:
            return
        try:
            if isinstance(item, bytes):
                await ws.send_bytes(item)
            else:
                await ws.send_text(json.dumps(item))
        except (WebSocketDisconnect, RuntimeError) as exc:
            log_event({
                "event_type": "WS_SEND_FAILED",
                "connection_id": connection_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return
