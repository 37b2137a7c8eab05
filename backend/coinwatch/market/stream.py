"""SSE streaming endpoint for list state updates."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from .controller import ListController

logger = logging.getLogger(__name__)


def create_stream_router(controller: ListController) -> APIRouter:
    """Create the SSE streaming router with a reference to the list controller.

    This factory pattern lets us inject the controller without globals.
    """
    router = APIRouter(prefix="/api/stream", tags=["streaming"])

    @router.get("/coins")
    async def stream_coins(request: Request) -> StreamingResponse:
        """SSE endpoint for list state.

        Emits the full controller snapshot whenever its version changes:

            data: {"version": 12, "cryptocurrencies": [...], "favorites": [...], ...}

        Includes a retry directive so the browser auto-reconnects on
        disconnection (EventSource built-in behavior).
        """
        return StreamingResponse(
            _generate_events(controller, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


async def _generate_events(
    controller: ListController,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted state events.

    Checks the controller version every `interval` seconds and sends a
    snapshot when it moved. Stops when the client disconnects.
    """
    yield "retry: 1000\n\n"

    last_version = -1
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current_version = controller.version
            if current_version != last_version:
                last_version = current_version
                payload = json.dumps(controller.snapshot())
                yield f"data: {payload}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
