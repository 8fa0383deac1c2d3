"""In-process publish/subscribe for live notification delivery.

Channels are keyed by recipient user id. A channel exists only while it has
listeners; the last unsubscribe removes it. Delivery is best-effort and
process-local: with several workers, a user only receives live events from the
worker holding their stream. Persisted notifications remain the source of truth.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, Set

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class UserChannel:
    """Listeners for a single user."""

    def __init__(self):
        self._listeners: Set[Listener] = set()

    def add(self, listener: Listener) -> None:
        self._listeners.add(listener)

    def remove(self, listener: Listener) -> None:
        self._listeners.discard(listener)

    def emit(self, payload: Any) -> int:
        delivered = 0
        # Copy: a listener may unsubscribe while we iterate
        for listener in list(self._listeners):
            try:
                listener(payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Notification listener failed: {e}", exc_info=True)
        return delivered

    def __len__(self) -> int:
        return len(self._listeners)


class NotificationBus:
    """Map of user id -> channel."""

    def __init__(self):
        self._channels: Dict[str, UserChannel] = {}

    def subscribe(self, user_id, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns the unsubscribe callable."""
        key = str(user_id)
        channel = self._channels.setdefault(key, UserChannel())
        channel.add(listener)

        def unsubscribe() -> None:
            channel.remove(listener)
            if len(channel) == 0 and self._channels.get(key) is channel:
                del self._channels[key]

        return unsubscribe

    def publish(self, user_id, payload: Any) -> int:
        """Deliver payload to every listener of the user. Returns listener count reached."""
        channel = self._channels.get(str(user_id))
        if channel is None:
            return 0
        return channel.emit(payload)

    def listener_count(self, user_id) -> int:
        channel = self._channels.get(str(user_id))
        return len(channel) if channel else 0

    def __contains__(self, user_id) -> bool:
        return str(user_id) in self._channels

    async def stream(self, user_id, heartbeat: float = 25.0) -> AsyncIterator[Any]:
        """Yield payloads for user_id until the consumer stops iterating.

        Yields ``None`` every ``heartbeat`` seconds of silence so SSE
        connections can send keep-alive comments.
        """
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = self.subscribe(user_id, queue.put_nowait)
        try:
            while True:
                try:
                    yield await asyncio.wait_for(queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    yield None
        finally:
            unsubscribe()


# Singleton shared by every router and service in the process
notification_bus = NotificationBus()
