# store/base.py
"""
Base interface for remote document stores.

Every backend exposes per-collection CRUD, an all-or-nothing batch commit,
a server-side atomic increment and ordered live snapshots, so the library
never needs to know which product sits behind it.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CREATE = 'create'
UPDATE = 'update'
DELETE = 'delete'
BATCH_KINDS = (CREATE, UPDATE, DELETE)

ASCENDING = 'asc'
DESCENDING = 'desc'


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = ASCENDING

    def __post_init__(self):
        if self.direction not in (ASCENDING, DESCENDING):
            raise ValueError(f"Invalid order direction: {self.direction}")


@dataclass
class DocumentSnapshot:
    """One document as delivered by a snapshot: store id plus raw field map."""
    id: str
    fields: Dict[str, Any]


@dataclass
class BatchOperation:
    kind: str
    collection: str
    id: Optional[str] = None
    fields: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.kind not in BATCH_KINDS:
            raise ValueError(f"Unknown batch operation: {self.kind}")
        if self.kind in (UPDATE, DELETE) and not self.id:
            raise ValueError(f"Batch {self.kind} requires a document id")
        if self.kind in (CREATE, UPDATE) and self.fields is None:
            raise ValueError(f"Batch {self.kind} requires fields")

    @classmethod
    def create(cls, collection: str, fields: Dict[str, Any], doc_id: str = None) -> 'BatchOperation':
        return cls(CREATE, collection, doc_id, fields)

    @classmethod
    def update(cls, collection: str, doc_id: str, fields: Dict[str, Any]) -> 'BatchOperation':
        return cls(UPDATE, collection, doc_id, fields)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> 'BatchOperation':
        return cls(DELETE, collection, doc_id)


SnapshotCallback = Callable[[List[DocumentSnapshot]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """Handle for one live listener. unsubscribe() is idempotent."""

    def __init__(self, collection: str, cancel: Callable[[], None]):
        self.collection = collection
        self._cancel = cancel
        self._active = True
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self):
        with self._lock:
            if not self._active:
                return
            self._active = False
        try:
            self._cancel()
        finally:
            logger.debug(f"Unsubscribed from {self.collection}")


class RemoteCollectionClient(ABC):
    """
    Abstract base class for document store backends.

    Implementations must deliver snapshots for a single collection in the
    order the store applied them, and must apply commit_batch() atomically.
    Write failures raise WriteError (NotFoundError for missing targets).
    """

    name = 'unknown'

    def __init__(self, store_config: Optional[Dict[str, Any]] = None):
        self.config = store_config or {}
        self._subscriptions: List[Subscription] = []
        self._subscriptions_lock = threading.Lock()

    @property
    def backend_name(self) -> str:
        return self.config.get('backend') or self.name

    def subscribe(
        self,
        collection: str,
        order_by: OrderBy,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Subscription:
        """
        Start listening to a collection.

        The first snapshot (the current contents) is delivered as soon as the
        listener is attached; each later change delivers the full ordered
        contents again.

        Returns:
            Subscription handle, also tracked for unsubscribe_all()
        """
        subscription = self._listen(collection, order_by, on_snapshot, on_error)
        with self._subscriptions_lock:
            self._subscriptions.append(subscription)
        logger.info(f"Subscribed to '{collection}' ordered by {order_by.field} {order_by.direction}")
        return subscription

    def unsubscribe_all(self):
        """Tear down every listener opened through this client."""
        with self._subscriptions_lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            try:
                subscription.unsubscribe()
            except Exception as e:
                logger.error(f"Failed to unsubscribe from {subscription.collection}: {e}")
        if subscriptions:
            logger.info(f"Closed {len(subscriptions)} subscription(s)")

    def close(self):
        self.unsubscribe_all()

    @abstractmethod
    def _listen(
        self,
        collection: str,
        order_by: OrderBy,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback]
    ) -> Subscription:
        """Attach a backend listener and return its handle."""
        pass

    @abstractmethod
    def create(self, collection: str, fields: Dict[str, Any]) -> str:
        """Add a document with a store-assigned id and return the id."""
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into an existing document."""
        pass

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        pass

    @abstractmethod
    def atomic_increment(self, collection: str, doc_id: str, field_name: str, delta: int = 1) -> None:
        """Increment a numeric field server-side. Never read-modify-write."""
        pass

    @abstractmethod
    def commit_batch(self, operations: List[BatchOperation]) -> None:
        """Apply all operations or none of them."""
        pass
