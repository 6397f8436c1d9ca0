# store/local_store.py
"""
In-process document store.

Holds collections as {id: fields} maps behind a lock, pushes the full ordered
contents of a collection to its listeners after every change, and optionally
persists everything to a single JSON file so a local server keeps its data
across restarts. Also serves as the store double in tests.
"""

import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.errors import InitializationError, NotFoundError, WriteError
from .base import (
    CREATE, UPDATE, DELETE, DESCENDING,
    BatchOperation, DocumentSnapshot, OrderBy, RemoteCollectionClient, Subscription,
)

logger = logging.getLogger(__name__)

_TIMESTAMP_KEY = '__timestamp__'


def _encode(value):
    if isinstance(value, datetime):
        return {_TIMESTAMP_KEY: value.isoformat()}
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _decode(obj):
    if len(obj) == 1 and _TIMESTAMP_KEY in obj:
        return datetime.fromisoformat(obj[_TIMESTAMP_KEY])
    return obj


def _sort_key(value):
    """Rank values by type so mixed field types never raise on comparison."""
    if isinstance(value, datetime):
        return (1, value.timestamp())
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (1, float(value))
    if isinstance(value, str):
        return (2, value)
    return (3, repr(value))


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


class _Listener:
    def __init__(self, order_by: OrderBy, on_snapshot, on_error):
        self.order_by = order_by
        self.on_snapshot = on_snapshot
        self.on_error = on_error


class LocalDocumentStore(RemoteCollectionClient):
    """Thread-safe in-memory store with ordered listeners and atomic batches."""

    name = 'local'

    def __init__(self, store_config: Optional[Dict[str, Any]] = None):
        super().__init__(store_config)
        self._lock = threading.RLock()
        # Reentrant: a listener may write (seeding does) and trigger nested delivery
        self._delivery_lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[str, List[_Listener]] = {}

        path = self.config.get('path')
        self.path = Path(path) if path else None
        if self.path:
            self._load()

    def _load(self):
        if not self.path.exists():
            logger.info(f"No store file at {self.path}, starting empty")
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f, object_hook=_decode)
        except (OSError, ValueError) as e:
            raise InitializationError(f"Could not read store file {self.path}: {e}")
        if not isinstance(data, dict):
            raise InitializationError(f"Store file {self.path} is not a JSON object")
        self._collections = {
            name: docs for name, docs in data.items() if isinstance(docs, dict)
        }
        counts = ', '.join(f"{name}={len(docs)}" for name, docs in self._collections.items())
        logger.info(f"Loaded store from {self.path} ({counts or 'empty'})")

    def _persist(self, collections):
        """Write the candidate state to disk before it becomes current."""
        if not self.path:
            return
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(collections, f, default=_encode, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError) as e:
            raise WriteError(f"Failed to persist store: {e}")

    # --- Listeners -------------------------------------------------------

    def _listen(self, collection, order_by, on_snapshot, on_error):
        listener = _Listener(order_by, on_snapshot, on_error)
        with self._lock:
            self._listeners.setdefault(collection, []).append(listener)

        def cancel():
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if listener in listeners:
                    listeners.remove(listener)

        subscription = Subscription(collection, cancel)
        self._deliver(collection, [listener])
        return subscription

    def _ordered(self, collection: str, order_by: OrderBy) -> List[DocumentSnapshot]:
        with self._lock:
            docs = self._collections.get(collection, {})
            snapshot = [DocumentSnapshot(doc_id, copy.deepcopy(fields)) for doc_id, fields in docs.items()]

        present = [d for d in snapshot if d.fields.get(order_by.field) is not None]
        missing = [d for d in snapshot if d.fields.get(order_by.field) is None]
        present.sort(
            key=lambda d: _sort_key(d.fields[order_by.field]),
            reverse=order_by.direction == DESCENDING
        )
        return present + missing

    def _deliver(self, collection: str, listeners: List[_Listener] = None):
        with self._delivery_lock:
            if listeners is None:
                with self._lock:
                    listeners = list(self._listeners.get(collection, []))
            for listener in listeners:
                docs = self._ordered(collection, listener.order_by)
                try:
                    listener.on_snapshot(docs)
                except Exception as e:
                    logger.error(f"Snapshot listener for '{collection}' failed: {e}", exc_info=True)
                    if listener.on_error:
                        listener.on_error(e)

    # --- Writes ----------------------------------------------------------

    def create(self, collection, fields):
        doc_id = _new_id()
        self.commit_batch([BatchOperation.create(collection, fields, doc_id)])
        return doc_id

    def update(self, collection, doc_id, fields):
        self.commit_batch([BatchOperation.update(collection, doc_id, fields)])

    def delete(self, collection, doc_id):
        self.commit_batch([BatchOperation.delete(collection, doc_id)])

    def atomic_increment(self, collection, doc_id, field_name, delta=1):
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            if doc is None:
                raise NotFoundError(collection, doc_id)
            current = doc.get(field_name, 0)
            if isinstance(current, bool) or not isinstance(current, (int, float)):
                current = 0
            candidate = copy.deepcopy(self._collections)
            candidate[collection][doc_id][field_name] = current + delta
            self._persist(candidate)
            self._collections = candidate
        self._deliver(collection)

    def commit_batch(self, operations):
        if not operations:
            return
        with self._lock:
            candidate = copy.deepcopy(self._collections)
            for op in operations:
                docs = candidate.setdefault(op.collection, {})
                if op.kind == CREATE:
                    docs[op.id or _new_id()] = copy.deepcopy(op.fields)
                elif op.kind == UPDATE:
                    if op.id not in docs:
                        raise NotFoundError(op.collection, op.id)
                    docs[op.id].update(copy.deepcopy(op.fields))
                elif op.kind == DELETE:
                    docs.pop(op.id, None)
            self._persist(candidate)
            self._collections = candidate

        affected = []
        for op in operations:
            if op.collection not in affected:
                affected.append(op.collection)
        logger.debug(f"Committed {len(operations)} operation(s) to {', '.join(affected)}")
        for collection in affected:
            self._deliver(collection)

    def document_count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))
