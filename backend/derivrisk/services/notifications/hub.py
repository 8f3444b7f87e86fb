"""
Notification hub for real-time risk events.

Delivers Greeks updates and risk alerts to per-user queues that an
outer transport (WebSocket / SSE endpoint) drains.

Features:
- Bounded per-user queues
- Drop-oldest when a consumer falls behind
- Dropped-message accounting
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


class NotificationChannel(Protocol):
    """Anything that can push an event to a user."""

    async def send_to_user(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class NotificationHub:
    """
    Per-user async queues.

    Usage:
        hub = NotificationHub()
        queue = hub.connect("user-1")
        await hub.send_to_user("user-1", "greeks_update", {...})
        message = await queue.get()
        hub.disconnect("user-1")
    """

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE):
        self._max_queue_size = max_queue_size
        self._queues: Dict[str, asyncio.Queue] = {}
        self._sent = 0
        self._dropped = 0

    # ============ Queue Management ============

    def connect(self, user_id: str) -> asyncio.Queue:
        """Create (or return) the queue for a user."""
        queue = self._queues.get(user_id)
        if queue is None:
            queue = asyncio.Queue(maxsize=self._max_queue_size)
            self._queues[user_id] = queue
            logger.info(f"Notification queue opened for {user_id}")
        return queue

    def disconnect(self, user_id: str) -> None:
        if self._queues.pop(user_id, None) is not None:
            logger.info(f"Notification queue closed for {user_id}")

    def is_connected(self, user_id: str) -> bool:
        return user_id in self._queues

    # ============ Delivery ============

    async def send_to_user(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        """Queue an event for a user. Unconnected users count as dropped."""
        queue = self._queues.get(user_id)
        if queue is None:
            self._dropped += 1
            logger.debug(f"No queue for {user_id}, dropped {event}")
            return

        message = {
            "event": event,
            "data": payload,
            "sent_at": datetime.now().isoformat(),
        }
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            # Drop the oldest message to make room
            queue.get_nowait()
            queue.put_nowait(message)
            self._dropped += 1
        self._sent += 1

    def get_stats(self) -> Dict[str, Any]:
        return {
            "connected_users": len(self._queues),
            "sent": self._sent,
            "dropped": self._dropped,
            "pending": {user: q.qsize() for user, q in self._queues.items()},
        }

    def close(self, user_id: Optional[str] = None) -> None:
        """Drop one user's queue, or all queues."""
        if user_id is not None:
            self.disconnect(user_id)
            return
        self._queues.clear()
