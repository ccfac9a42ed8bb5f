"""
Fan-out of authoritative game state to realtime (websocket) subscribers.

Subscriptions are kept in an explicit map from session ID to connections. Sessions hold no reference to their sockets
and sockets only know the session ID, so neither keeps the other alive.

Every subscriber owns a bounded outbox drained by its own writer task. Broadcasting only enqueues, so an HTTP handler
never waits on a peer, and each outbox is FIFO, so a subscriber sees messages in the order the moves were accepted.
"""

import asyncio
import contextlib
import logging
from typing import Any, Iterable, Optional, Protocol

from starlette.websockets import WebSocket

from chessrelay.services.registry import SessionRegistry

logger = logging.getLogger(__name__)

POLICY_VIOLATION = 1008
SEND_TIMEOUT_SECONDS = 2.0
MAX_PENDING_MESSAGES = 64


class Connection(Protocol):
    """The part of a websocket the channel manager needs."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None: ...


class Subscriber:
    """One connection plus the queue of messages still to be written to it."""

    def __init__(self, connection: Connection, max_pending: int) -> None:
        self.connection = connection
        self.outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_pending)
        self.writer: Optional[asyncio.Task] = None

    def discard_pending(self) -> None:
        while not self.outbox.empty():
            self.outbox.get_nowait()
            self.outbox.task_done()


class ChannelManager:
    def __init__(
        self,
        registry: SessionRegistry,
        allowed_origins: Iterable[str],
        send_timeout: float = SEND_TIMEOUT_SECONDS,
        max_pending: int = MAX_PENDING_MESSAGES,
    ) -> None:
        self.registry = registry
        self.allowed_origins = frozenset(allowed_origins)
        self.send_timeout = send_timeout
        self.max_pending = max_pending
        self._subscribers: dict[str, dict[Connection, Subscriber]] = {}

    def is_origin_allowed(self, origin: Optional[str]) -> bool:
        """Connections without an Origin header are refused as well."""
        return origin is not None and origin in self.allowed_origins

    async def subscribe(
        self,
        session_id: str,
        websocket: WebSocket,
        initial_message: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Accept the websocket and register it for updates of `session_id`.
        ----
        Connections from origins outside the allow-list are closed before they are accepted.
        The connection is registered before the first await, so no broadcast can slip between `initial_message`
        and the updates that follow it.
        """
        origin = websocket.headers.get("origin")
        if not self.is_origin_allowed(origin):
            logger.warning(
                "Rejected websocket for session %s from origin %r", session_id, origin
            )
            await websocket.close(code=POLICY_VIOLATION)
            return False

        subscriber = Subscriber(websocket, self.max_pending)
        if initial_message is not None:
            subscriber.outbox.put_nowait(initial_message)
        self._subscribers.setdefault(session_id, {})[websocket] = subscriber

        try:
            await websocket.accept()
        except Exception:
            self.unsubscribe(session_id, websocket)
            raise
        subscriber.writer = asyncio.create_task(self._write(session_id, subscriber))
        logger.info(
            "Subscriber joined session %s | subscribers: %d",
            session_id,
            self.subscriber_count(session_id),
        )
        return True

    def unsubscribe(self, session_id: str, connection: Connection) -> None:
        """Forget the connection. When the last one leaves, the session itself is removed."""
        subscribers = self._subscribers.get(session_id)
        if subscribers is None or connection not in subscribers:
            return

        subscriber = subscribers.pop(connection)
        if subscriber.writer is not None and subscriber.writer is not asyncio.current_task():
            subscriber.writer.cancel()
        subscriber.discard_pending()
        logger.info(
            "Subscriber left session %s | subscribers: %d", session_id, len(subscribers)
        )
        if not subscribers:
            del self._subscribers[session_id]
            self.registry.delete_session(session_id)

    def broadcast(self, session_id: str, message: dict[str, Any]) -> int:
        """
        Queue `message` for every subscriber of the session. Returns the number of subscribers it was queued for.
        ----
        Never blocks and never raises into the caller. A subscriber whose outbox is full misses this message and
        stays subscribed.
        """
        subscribers = self._subscribers.get(session_id)
        if not subscribers:
            return 0

        queued = 0
        for subscriber in subscribers.values():
            try:
                subscriber.outbox.put_nowait(message)
                queued += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Subscriber of session %s is %d messages behind, skipping %s",
                    session_id,
                    self.max_pending,
                    message.get("type"),
                )
        logger.debug(
            "Broadcast %s to session %s: queued for %d/%d",
            message.get("type"),
            session_id,
            queued,
            len(subscribers),
        )
        return queued

    async def drain(self, session_id: str) -> None:
        """Wait until every message queued so far for the session was written (or skipped)."""
        subscribers = list(self._subscribers.get(session_id, {}).values())
        await asyncio.gather(*(subscriber.outbox.join() for subscriber in subscribers))

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

    def has_subscribers(self, session_id: str) -> bool:
        return self.subscriber_count(session_id) > 0

    def connection_count(self) -> int:
        return sum(len(subscribers) for subscribers in self._subscribers.values())

    async def _write(self, session_id: str, subscriber: Subscriber) -> None:
        """
        Writer loop of one subscriber.
        ----
        A send that does not finish within `send_timeout` costs the subscriber that one message only.
        A send that fails means the transport is gone: the subscriber is dropped and its socket closed.
        """
        while True:
            message = await subscriber.outbox.get()
            try:
                await asyncio.wait_for(
                    subscriber.connection.send_json(message), timeout=self.send_timeout
                )
            except TimeoutError:
                logger.warning(
                    "Slow subscriber of session %s, skipped %s", session_id, message.get("type")
                )
            except Exception as exc:
                logger.warning(
                    "Dropping subscriber of session %s after failed send: %r",
                    session_id,
                    exc,
                )
                self.unsubscribe(session_id, subscriber.connection)
                with contextlib.suppress(Exception):
                    await subscriber.connection.close()
                return
            finally:
                subscriber.outbox.task_done()
