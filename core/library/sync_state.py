# library/sync_state.py
"""
In-memory mirror of the categories and prompts collections.

Only the subscription callbacks write to it. Local writes show up here once
the store echoes them back, so a reader never sees data the store has not
acknowledged.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from core.errors import SubscriptionError
from core.event_bus import Events, EventBus
from core.models import CATEGORIES, PROMPTS, Category, Prompt
from core.store import DocumentSnapshot

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class SyncState:
    """Authoritative local snapshot of both collections. Holds no filter state."""

    def __init__(self, event_bus: Optional[EventBus] = None):
        self._lock = threading.RLock()
        self._categories: Tuple[Category, ...] = ()
        self._prompts: Tuple[Prompt, ...] = ()
        self._loaded = set()
        self._listeners: List[Callable[[str], None]] = []
        self._bus = event_bus
        self._errors: Dict[str, SubscriptionError] = {}

    def add_listener(self, callback: Callable[[str], None]):
        """Call callback(collection) after every snapshot is applied."""
        self._listeners.append(callback)

    def _changed(self, collection: str, event_type: str, count: int):
        if self._bus:
            self._bus.publish(event_type, {"count": count})
        for callback in list(self._listeners):
            try:
                callback(collection)
            except Exception as e:
                logger.error(f"Mirror listener failed after {collection} snapshot: {e}", exc_info=True)

    def apply_category_snapshot(self, docs: Iterable[DocumentSnapshot]):
        """Replace the categories mirror, ordered by name ascending."""
        parsed = [Category.from_document(d.id, d.fields) for d in docs]
        categories = tuple(sorted((c for c in parsed if c), key=lambda c: c.name))
        with self._lock:
            self._categories = categories
            self._loaded.add(CATEGORIES)
            self._errors.pop(CATEGORIES, None)
        logger.info(f"Categories synced: {len(categories)}")
        self._changed(CATEGORIES, Events.CATEGORIES_SYNCED, len(categories))

    def apply_prompt_snapshot(self, docs: Iterable[DocumentSnapshot]):
        """Replace the prompts mirror, newest createdDate first."""
        parsed = [Prompt.from_document(d.id, d.fields) for d in docs]
        prompts = tuple(sorted(
            (p for p in parsed if p),
            key=lambda p: p.created_date or _OLDEST,
            reverse=True
        ))
        with self._lock:
            self._prompts = prompts
            self._loaded.add(PROMPTS)
            self._errors.pop(PROMPTS, None)
        logger.info(f"Prompts synced: {len(prompts)}")
        self._changed(PROMPTS, Events.PROMPTS_SYNCED, len(prompts))

    def report_error(self, collection: str, error: Exception) -> SubscriptionError:
        """Record a stream failure. The mirror keeps its last known-good contents."""
        wrapped = error if isinstance(error, SubscriptionError) else SubscriptionError(collection, error)
        with self._lock:
            self._errors.pop(collection, None)
            self._errors[collection] = wrapped
        logger.error(f"{collection} sync failed, keeping last known data: {error}")
        if self._bus:
            self._bus.publish(Events.SYNC_ERROR, {"collection": collection, "error": wrapped.message})
        return wrapped

    @property
    def last_error(self) -> Optional[SubscriptionError]:
        """Most recent failure among streams that have not recovered since."""
        with self._lock:
            return next(reversed(list(self._errors.values())), None)

    def errors(self) -> Dict[str, SubscriptionError]:
        """Open stream failures by collection. A fresh snapshot clears only its own entry."""
        with self._lock:
            return dict(self._errors)

    # --- Reads -----------------------------------------------------------

    @property
    def categories(self) -> Tuple[Category, ...]:
        with self._lock:
            return self._categories

    @property
    def prompts(self) -> Tuple[Prompt, ...]:
        with self._lock:
            return self._prompts

    def is_empty(self) -> bool:
        with self._lock:
            return not self._categories and not self._prompts

    def has_loaded(self, collection: str) -> bool:
        with self._lock:
            return collection in self._loaded

    def is_loaded(self) -> bool:
        return self.has_loaded(CATEGORIES) and self.has_loaded(PROMPTS)

    def find_prompt(self, prompt_id: str) -> Optional[Prompt]:
        return next((p for p in self.prompts if p.id == prompt_id), None)

    def find_category(self, category_id: str) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)

    def find_category_by_name(self, name: str) -> Optional[Category]:
        return next((c for c in self.categories if c.name == name), None)

    def category_names(self) -> List[str]:
        return [c.name for c in self.categories]

    def prompts_in_category(self, name: str) -> List[Prompt]:
        return [p for p in self.prompts if p.category == name]

    def is_category_in_use(self, name: str) -> bool:
        return any(p.category == name for p in self.prompts)
