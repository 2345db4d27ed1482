"""Shared plumbing for the push-style websocket endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable

from fastapi import WebSocket, WebSocketDisconnect

from src.domain.exceptions.backend import BackendUnavailable

logger = logging.getLogger(__name__)


async def client_frames(websocket: WebSocket) -> AsyncIterator[str | bytes]:
    """Yield text or binary frames until the client disconnects."""

    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000))
        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes")
        if raw is not None:
            yield raw


async def drain_client(websocket: WebSocket) -> None:
    async for _ in client_frames(websocket):
        pass


async def serve_until_done(
    websocket: WebSocket,
    *,
    watcher: Awaitable[None],
    reader: Awaitable[None],
    label: str,
) -> None:
    """Run a change-feed watcher next to a client reader.

    Whichever finishes first stops the other. A client disconnect ends the
    endpoint quietly; the feed ending closes the socket, with 1011 when the
    backend dropped it.
    """

    watch_task = asyncio.ensure_future(watcher)
    read_task = asyncio.ensure_future(reader)
    try:
        done, _ = await asyncio.wait(
            {watch_task, read_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        watch_task.cancel()
        read_task.cancel()
        await asyncio.gather(watch_task, read_task, return_exceptions=True)

    if read_task in done:
        exc = read_task.exception()
        if exc is not None and not isinstance(exc, WebSocketDisconnect):
            raise exc
        return

    exc = watch_task.exception()
    if isinstance(exc, WebSocketDisconnect):
        return
    if exc is not None and not isinstance(exc, BackendUnavailable):
        raise exc
    if exc is not None:
        logger.warning("%s change stream closed: %s", label, exc)
    await websocket.close(code=1011 if exc else 1000)
