# event_bus.py - Pub/sub bus for sync and notification events
import threading
import queue
import time
import logging
from typing import Generator, Optional, Dict, Any
from collections import deque

logger = logging.getLogger(__name__)


class EventBus:
    """Thread-safe pub/sub event bus with replay buffer for late subscribers."""

    def __init__(self, replay_size: int = 50, queue_size: int = 100):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, queue.Queue] = {}
        self._replay_buffer: deque = deque(maxlen=replay_size)
        self._subscriber_counter = 0
        self._queue_size = queue_size
        logger.info(f"EventBus initialized (replay_size={replay_size})")

    def publish(self, event_type: str, data: Optional[Dict[str, Any]] = None):
        """Publish an event to all subscribers. A full subscriber queue drops the event for that subscriber only."""
        event = {
            "type": event_type,
            "data": data or {},
            "timestamp": time.time()
        }

        with self._lock:
            self._replay_buffer.append(event)
            for sub_id, q in self._subscribers.items():
                try:
                    q.put_nowait(event)
                except queue.Full:
                    logger.warning(f"Subscriber {sub_id} queue full, dropping {event_type}")

        logger.debug(f"Published: {event_type}")

    def subscribe(self, replay: bool = True, keepalive: float = 30) -> Generator[Dict[str, Any], None, None]:
        """Subscribe to events. Yields events as they arrive.

        Args:
            replay: If True, replay recent events before live stream
            keepalive: Seconds of silence before a keepalive event is yielded
        """
        q = queue.Queue(maxsize=self._queue_size)

        with self._lock:
            self._subscriber_counter += 1
            sub_id = f"sub_{self._subscriber_counter}"
            self._subscribers[sub_id] = q

            if replay:
                for event in self._replay_buffer:
                    try:
                        q.put_nowait(event)
                    except queue.Full:
                        break

        logger.info(f"New subscriber: {sub_id} (replay={replay})")

        try:
            while True:
                try:
                    yield q.get(timeout=keepalive)
                except queue.Empty:
                    yield {"type": "keepalive", "timestamp": time.time()}
        finally:
            with self._lock:
                self._subscribers.pop(sub_id, None)
            logger.info(f"Subscriber disconnected: {sub_id}")

    def recent(self, event_type: Optional[str] = None) -> list:
        """Events still in the replay buffer, optionally filtered by type."""
        with self._lock:
            return [e for e in self._replay_buffer if event_type is None or e["type"] == event_type]


# Singleton instance
_bus: Optional[EventBus] = None
_bus_lock = threading.Lock()


def get_event_bus() -> EventBus:
    """Get or create the singleton event bus."""
    global _bus
    with _bus_lock:
        if _bus is None:
            _bus = EventBus()
        return _bus


# Event type constants
class Events:
    # Mirror events
    CATEGORIES_SYNCED = "categories_synced"
    PROMPTS_SYNCED = "prompts_synced"
    SYNC_ERROR = "sync_error"
    SEED_COMPLETE = "seed_complete"

    # Write events
    PROMPT_SAVED = "prompt_saved"
    PROMPT_DELETED = "prompt_deleted"
    PROMPT_COPIED = "prompt_copied"
    CATEGORY_CHANGED = "category_changed"
    IMPORT_COMPLETE = "import_complete"

    # User-facing toast: {"level": "success"|"error"|"warning", "message": str}
    NOTIFICATION = "notification"
