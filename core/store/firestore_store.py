# store/firestore_store.py
"""
Cloud Firestore backend.

Thin adapter over google-cloud-firestore: translates the library's
collection operations to Firestore calls and Google API errors to the
library's error types. Install with the 'firestore' extra.
"""

import logging
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.oauth2 import service_account

from core.errors import InitializationError, NotFoundError, WriteError
from .base import (
    CREATE, UPDATE, DELETE, DESCENDING,
    BatchOperation, DocumentSnapshot, RemoteCollectionClient, Subscription,
)

logger = logging.getLogger(__name__)

# RetryError and credential refresh failures sit outside GoogleAPICallError
STORE_ERRORS = (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError)


class FirestoreStore(RemoteCollectionClient):
    """Document store backed by Cloud Firestore."""

    name = 'firestore'

    def __init__(self, store_config: Optional[Dict[str, Any]] = None):
        super().__init__(store_config)
        project_id = self.config.get('project_id') or None
        credentials_file = self.config.get('credentials_file') or None

        try:
            credentials = None
            if credentials_file:
                credentials = service_account.Credentials.from_service_account_file(credentials_file)
            self._db = firestore.Client(project=project_id, credentials=credentials)
        except (auth_exceptions.GoogleAuthError, OSError, ValueError) as e:
            raise InitializationError(f"Firestore client setup failed: {e}")

        logger.info(f"Connected to Firestore project: {self._db.project}")

    def _listen(self, collection, order_by, on_snapshot, on_error):
        direction = (firestore.Query.DESCENDING if order_by.direction == DESCENDING
                     else firestore.Query.ASCENDING)
        query = self._db.collection(collection).order_by(order_by.field, direction=direction)

        def callback(docs, changes, read_time):
            try:
                on_snapshot([DocumentSnapshot(doc.id, doc.to_dict() or {}) for doc in docs])
            except Exception as e:
                logger.error(f"{collection} sync error: {e}", exc_info=True)
                if on_error:
                    on_error(e)

        try:
            watch = query.on_snapshot(callback)
        except STORE_ERRORS as e:
            raise InitializationError(f"Could not listen to '{collection}': {e}")

        return Subscription(collection, watch.unsubscribe)

    def create(self, collection, fields):
        try:
            _, doc_ref = self._db.collection(collection).add(fields)
        except STORE_ERRORS as e:
            logger.error(f"Create in {collection} failed: {e}")
            raise WriteError(f"Failed to add data: {e}")
        return doc_ref.id

    def update(self, collection, doc_id, fields):
        try:
            self._db.collection(collection).document(doc_id).update(fields)
        except google_exceptions.NotFound:
            raise NotFoundError(collection, doc_id)
        except STORE_ERRORS as e:
            logger.error(f"Update of {collection}/{doc_id} failed: {e}")
            raise WriteError(f"Failed to update data: {e}")

    def delete(self, collection, doc_id):
        try:
            self._db.collection(collection).document(doc_id).delete()
        except STORE_ERRORS as e:
            logger.error(f"Delete of {collection}/{doc_id} failed: {e}")
            raise WriteError(f"Failed to delete data: {e}")

    def atomic_increment(self, collection, doc_id, field_name, delta=1):
        self.update(collection, doc_id, {field_name: firestore.Increment(delta)})

    def commit_batch(self, operations: List[BatchOperation]):
        if not operations:
            return
        batch = self._db.batch()
        for op in operations:
            col = self._db.collection(op.collection)
            ref = col.document(op.id) if op.id else col.document()
            if op.kind == CREATE:
                batch.set(ref, op.fields)
            elif op.kind == UPDATE:
                batch.update(ref, op.fields)
            elif op.kind == DELETE:
                batch.delete(ref)
        try:
            batch.commit()
        except google_exceptions.NotFound as e:
            # Firestore does not say which write in the batch missed
            targets = sorted({op.collection for op in operations if op.kind != CREATE})
            logger.error(f"Batch commit failed, missing document: {e}")
            raise NotFoundError(', '.join(targets) or 'batch')
        except STORE_ERRORS as e:
            logger.error(f"Batch commit failed: {e}")
            raise WriteError(f"Batch write failed: {e}")
