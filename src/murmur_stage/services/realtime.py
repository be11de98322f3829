"""Outbound realtime events pushed to connected WebSocket clients.

Request handlers only ever call :meth:`EventBus.publish`, which enqueues and
returns immediately. Handlers run in the threadpool, so the bus hands events
over to its owning event loop with ``call_soon_threadsafe``. A background
:class:`RealtimeBroadcaster`, started with the application lifespan, drains
the queue and fans each event out through the :class:`ConnectionManager`.
Delivery is best-effort; clients reconcile through the regular GET endpoints.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, Protocol

from fastapi import Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from murmur_stage.core.settings import settings

logger = logging.getLogger(__name__)

NEW_FEED = "new_feed"
LIKE_UPDATED = "likeUpdated"
RETWEET_UPDATED = "retweetUpdated"
COMMENT_ADDED = "commentAdded"
POLL_UPDATED = "pollUpdated"
POST_DELETED = "postDeleted"


class EventPublisher(Protocol):
    """Anything services can hand realtime events to."""

    def publish(self, event: str, payload: dict[str, Any]) -> bool:
        ...


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class EventBus:
    """Bounded in-process queue of outbound events."""

    def __init__(
        self,
        maxsize: int | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(
            maxsize=settings.realtime_queue_size if maxsize is None else maxsize
        )
        self._loop = loop

    def publish(self, event: str, payload: dict[str, Any]) -> bool:
        """Enqueue ``event`` without blocking.

        Callable from worker threads once the bus knows its event loop.

        Returns:
            False when the queue is full, the loop has closed or the payload
            cannot be encoded; the event is dropped in that case.
        """
        try:
            message = {"event": event, "data": jsonable_encoder(payload)}
        except (TypeError, ValueError) as exc:
            logger.warning("Could not encode %s event: %s", event, exc)
            return False

        if self._loop is None or _running_loop() is self._loop:
            return self._enqueue(message)
        try:
            self._loop.call_soon_threadsafe(self._enqueue, message)
        except RuntimeError:
            logger.warning("Event loop closed; dropping %s event", event)
            return False
        return True

    def _enqueue(self, message: dict[str, Any]) -> bool:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Realtime queue full; dropping %s event", message["event"])
            return False
        return True

    async def get(self) -> dict[str, Any]:
        """Wait for the next queued event."""
        return await self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()


class ConnectionManager:
    """Tracks open WebSocket connections and broadcasts to them."""

    def __init__(self) -> None:
        self.active_connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.active_connections.discard(websocket)

    async def broadcast(self, message: str) -> None:
        """Send ``message`` to every connection, dropping broken ones."""
        for connection in self.active_connections.copy():
            try:
                await connection.send_text(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.debug("Dropping broken websocket: %r", exc)
                self.active_connections.discard(connection)


class RealtimeBroadcaster:
    """Background task moving events from the bus to connected clients."""

    def __init__(self, bus: EventBus, manager: ConnectionManager) -> None:
        self.bus = bus
        self.manager = manager
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background broadcast loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background broadcast loop."""
        if self._task is None:
            return

        self._stopping.set()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            message = await self.bus.get()
            try:
                await self.manager.broadcast(json.dumps(message))
            except Exception:
                # One bad event must not end the loop.
                logger.exception("Could not broadcast %s event", message.get("event"))


connection_manager = ConnectionManager()


def get_event_bus(request: Request) -> EventPublisher:
    """FastAPI dependency returning the application's event bus.

    The bus is created by the lifespan handler; without a running broadcaster
    events queue up and are dropped once the queue is full.
    """
    bus = getattr(request.app.state, "event_bus", None)
    if bus is None:
        bus = request.app.state.event_bus = EventBus()
    return bus
