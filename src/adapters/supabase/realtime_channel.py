from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from dataclasses import dataclass
from typing import Any, AsyncGenerator, AsyncIterator, Callable, Iterator, Mapping

import orjson
import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    InvalidHandshake,
)

from src.domain.exceptions.backend import BackendUnavailable, MalformedEvent

logger = logging.getLogger(__name__)


def _frame(topic: str, event: str, payload: dict[str, Any], ref: int) -> bytes:
    return orjson.dumps(
        {"topic": topic, "event": event, "payload": payload, "ref": str(ref)}
    )


@dataclass(slots=True)
class RealtimeChannel:
    """Subscribes to `postgres_changes` on one table over Supabase Realtime.

    Speaks the Phoenix channel protocol: join the topic, heartbeat while the
    subscription is open, leave on exit. Subclasses name the table and turn
    each change's `data` object into a domain value; undecodable messages
    are dropped.
    """

    url: str
    access_token: str | None = None
    schema: str = "public"
    table: str = ""
    row_filter: str | None = None
    heartbeat_s: float = 25.0
    connect: Callable[..., Any] = websockets.connect

    @property
    def topic(self) -> str:
        topic = f"realtime:{self.schema}:{self.table}"
        if self.row_filter:
            topic = f"{topic}:{self.row_filter}"
        return topic

    def _decode_data(self, data: Mapping[str, Any]) -> Any | None:
        raise NotImplementedError

    def _join_payload(self) -> dict[str, Any]:
        change: dict[str, Any] = {
            "event": "*",
            "schema": self.schema,
            "table": self.table,
        }
        if self.row_filter:
            change["filter"] = self.row_filter
        payload: dict[str, Any] = {
            "config": {
                "broadcast": {"self": False},
                "presence": {"key": ""},
                "postgres_changes": [change],
            }
        }
        if self.access_token:
            payload["access_token"] = self.access_token
        return payload

    async def _heartbeat(self, ws: Any, refs: Iterator[int]) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_s)
            await ws.send(_frame("phoenix", "heartbeat", {}, next(refs)))

    async def _changes(self, ws: Any) -> AsyncGenerator[Any, None]:
        try:
            async for raw in ws:
                change = self._decode(raw)
                if change is not None:
                    yield change
        except ConnectionClosedError as e:
            raise BackendUnavailable(f"Realtime connection lost: {e}") from e

    def _decode(self, raw: str | bytes) -> Any | None:
        try:
            msg = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.debug("Dropping non-JSON realtime frame")
            return None
        if not isinstance(msg, dict) or msg.get("topic") != self.topic:
            return None

        event = msg.get("event")
        payload = msg.get("payload") or {}
        if event == "phx_reply" and payload.get("status") == "error":
            raise BackendUnavailable(
                f"Realtime join refused: {payload.get('response')}"
            )
        if event == "phx_error":
            raise BackendUnavailable("Realtime channel errored")
        if event != "postgres_changes":
            return None

        data = payload.get("data")
        if not isinstance(data, dict):
            logger.debug("Dropping postgres_changes frame without data")
            return None
        try:
            return self._decode_data(data)
        except MalformedEvent as e:
            logger.debug("Dropping malformed %s change: %s", self.table, e)
            return None

    @contextlib.asynccontextmanager
    async def subscribe(self) -> AsyncIterator[AsyncIterator[Any]]:
        refs = itertools.count(1)
        async with contextlib.AsyncExitStack() as stack:
            try:
                ws = await stack.enter_async_context(self.connect(self.url))
            except (OSError, InvalidHandshake) as e:
                raise BackendUnavailable(f"Realtime connect failed: {e}") from e

            await ws.send(
                _frame(self.topic, "phx_join", self._join_payload(), next(refs))
            )
            heartbeat = asyncio.create_task(self._heartbeat(ws, refs))
            changes = self._changes(ws)
            logger.info("Subscribed to %s", self.topic)
            try:
                yield changes
            finally:
                heartbeat.cancel()
                with contextlib.suppress(asyncio.CancelledError, ConnectionClosed):
                    await heartbeat
                await changes.aclose()
                with contextlib.suppress(ConnectionClosed):
                    await ws.send(_frame(self.topic, "phx_leave", {}, next(refs)))
                logger.info("Unsubscribed from %s", self.topic)
