# library/seed.py
"""
One-shot population of an empty library from a static seed file.

The bootstrapper re-evaluates on every snapshot of either collection (the two
streams arrive in no particular order) but only acts while its state is
UNKNOWN and both collections have reported at least once. Two clients
starting against the same empty store at the same moment can still both
seed; closing that race would need a store-side transaction or marker
document.
"""

import json
import logging
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from core.errors import WriteError, classify_error
from core.event_bus import Events, EventBus
from core.models import CATEGORIES, PROMPTS, utc_now
from core.store import BatchOperation, RemoteCollectionClient
from .sync_state import SyncState

logger = logging.getLogger(__name__)

SEED_AUTHOR = 'System'
SEED_FIELDS = ('category', 'task', 'prompt')


class BootstrapState(Enum):
    UNKNOWN = 'unknown'
    SEEDING = 'seeding'
    SEEDED = 'seeded'


def load_seed_source(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read the seed file: a JSON list of {category, task, prompt} objects."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Seed file not found at {path} - nothing to seed")
        return []
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load seed file {path}: {e}")
        return []
    if isinstance(data, dict):
        data = data.get('prompts', [])
    if not isinstance(data, list):
        logger.error(f"Seed file {path} must contain a list of prompts")
        return []
    return data


def build_seed_operations(entries: List[Dict[str, Any]], now: datetime) -> List[BatchOperation]:
    """Category creates (deduplicated, sorted) followed by prompt creates."""
    categories = set()
    prompts = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        values = {k: entry.get(k).strip() if isinstance(entry.get(k), str) else '' for k in SEED_FIELDS}
        if not all(values.values()):
            logger.debug(f"Skipping incomplete seed entry: {entry}")
            continue
        categories.add(values['category'])
        prompts.append({
            'task': values['task'],
            'category': values['category'],
            'prompt': values['prompt'],
            'author': SEED_AUTHOR,
            'createdDate': now,
            'lastModified': now,
            'copyCount': 0,
            'history': [],
        })

    ops = [BatchOperation.create(CATEGORIES, {'name': name}) for name in sorted(categories)]
    ops.extend(BatchOperation.create(PROMPTS, fields) for fields in prompts)
    return ops


class SeedBootstrapper:
    def __init__(
        self,
        client: RemoteCollectionClient,
        sync_state: SyncState,
        source: Union[str, Path, List[Dict[str, Any]], None] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = None,
        enabled: bool = True
    ):
        self._client = client
        self._state_mirror = sync_state
        self._source = source
        self._bus = event_bus
        self._clock = clock or utc_now
        self.enabled = enabled
        self.state = BootstrapState.UNKNOWN
        self.last_error: Optional[WriteError] = None
        self._claim_lock = threading.Lock()

    def _entries(self) -> List[Dict[str, Any]]:
        if self._source is None:
            return []
        if isinstance(self._source, list):
            return self._source
        return load_seed_source(self._source)

    def evaluate(self) -> bool:
        """
        Seed if this is the first time both collections were seen empty.

        Returns:
            True if a seed batch was committed by this call
        """
        # Snapshots of the two collections can arrive on different threads
        with self._claim_lock:
            if self.state is not BootstrapState.UNKNOWN or self.last_error is not None:
                return False
            if not self._state_mirror.is_loaded():
                return False
            if not self._state_mirror.is_empty() or not self.enabled:
                self.state = BootstrapState.SEEDED
                return False
            self.state = BootstrapState.SEEDING

        ops = build_seed_operations(self._entries(), self._clock())
        if not ops:
            logger.warning("No seed data available")
            self.state = BootstrapState.SEEDED
            return False

        logger.info(f"Seeding empty library with {len(ops)} document(s)...")
        try:
            self._client.commit_batch(ops)
        except WriteError as e:
            self.state = BootstrapState.UNKNOWN
            self.last_error = e
            logger.error(f"Seeding initial data failed: {e}")
            if self._bus:
                self._bus.publish(Events.NOTIFICATION, {
                    "level": "error",
                    "message": f"Initial data seeding failed: {classify_error(e)}"
                })
            return False

        self.state = BootstrapState.SEEDED
        if self._bus:
            self._bus.publish(Events.SEED_COMPLETE, {"documents": len(ops)})
            self._bus.publish(Events.NOTIFICATION, {
                "level": "success",
                "message": "Default prompt library uploaded to the cloud"
            })
        return True

    def retry(self) -> bool:
        """Clear a failed seed attempt and evaluate again. Failures never retry on their own."""
        self.last_error = None
        return self.evaluate()
