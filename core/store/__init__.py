# store/__init__.py
"""
Document store abstraction layer.

Supports:
- local: in-process store, optionally persisted to a JSON file
- firestore: Google Cloud Firestore (needs the 'firestore' extra)

Usage:
    from core.store import get_store

    client = get_store(config.STORE)
    client.subscribe('prompts', OrderBy('createdDate', 'desc'), on_snapshot)
"""

import logging
from typing import Any, Dict

from core.errors import InitializationError
from .base import (
    RemoteCollectionClient, BatchOperation, DocumentSnapshot, OrderBy, Subscription,
    ASCENDING, DESCENDING, CREATE, UPDATE, DELETE,
)
from .local_store import LocalDocumentStore

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = 'local'


def _firestore_store():
    # google-cloud-firestore is an optional extra, only import it when selected
    try:
        from .firestore_store import FirestoreStore
    except ImportError as e:
        raise InitializationError(
            f"Firestore backend selected but google-cloud-firestore is not installed: {e}"
        )
    return FirestoreStore


BACKENDS = {
    'local': lambda: LocalDocumentStore,
    'firestore': _firestore_store,
}


def get_store(store_config: Dict[str, Any]) -> RemoteCollectionClient:
    """
    Factory function to create the configured store client.

    Args:
        store_config: Dict with keys: backend, path, project_id, credentials_file

    Returns:
        Connected store client

    Raises:
        InitializationError: unknown backend or the backend failed to connect
    """
    store_config = store_config or {}
    backend = str(store_config.get('backend', DEFAULT_BACKEND)).lower()

    if backend not in BACKENDS:
        raise InitializationError(f"Unknown store backend: {backend}. Available: {list(BACKENDS.keys())}")

    store_class = BACKENDS[backend]()
    client = store_class(store_config)
    logger.info(f"Created {backend} store")
    return client


__all__ = [
    'get_store',
    'BACKENDS',
    'RemoteCollectionClient',
    'LocalDocumentStore',
    'BatchOperation',
    'DocumentSnapshot',
    'OrderBy',
    'Subscription',
    'ASCENDING',
    'DESCENDING',
    'CREATE',
    'UPDATE',
    'DELETE',
]
