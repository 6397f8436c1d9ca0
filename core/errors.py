# core/errors.py - Prompt library error taxonomy
"""
Unified error handling for the prompt library.

Every error carries an HTTP status code so the API layer can map it without
a lookup table, and classify_error() turns any exception into the message
shown to the user.
"""

import logging

logger = logging.getLogger(__name__)


class LibraryError(Exception):
    """Base exception for all prompt library errors."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class InitializationError(LibraryError):
    """Backing store unreachable or misconfigured at startup. Fatal to the session."""
    status_code = 503


class SubscriptionError(LibraryError):
    """A live snapshot stream reported an error. The mirror keeps its last good data."""
    status_code = 503

    def __init__(self, collection: str, cause: Exception = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Sync of '{collection}' failed{detail}")
        self.collection = collection
        self.cause = cause


class WriteError(LibraryError):
    """Add, update, delete or batch commit rejected by the store."""
    status_code = 502


class NotFoundError(WriteError):
    """Write targeted a document that does not exist in the store."""
    status_code = 404

    def __init__(self, collection: str, doc_id: str = None):
        if doc_id:
            super().__init__(f"Document '{doc_id}' not found in '{collection}'")
        else:
            super().__init__(f"A document in '{collection}' was not found")
        self.collection = collection
        self.doc_id = doc_id


class StaleReferenceError(LibraryError):
    """The record being acted on no longer exists locally (likely deleted by another client)."""
    status_code = 409

    def __init__(self, kind: str, doc_id: str = None):
        target = f" '{doc_id}'" if doc_id else ""
        super().__init__(f"{kind.capitalize()}{target} no longer exists - refresh and try again")
        self.kind = kind
        self.doc_id = doc_id


class MalformedImportError(LibraryError):
    """Import payload failed structural validation. Nothing was written."""
    status_code = 400


class IndexOutOfRangeError(LibraryError, IndexError):
    """Requested history version does not exist."""
    status_code = 404

    def __init__(self, index, size: int):
        super().__init__(f"History index {index} out of range (0..{size - 1})" if size
                         else f"History index {index} out of range (no history)")
        self.index = index
        self.size = size


class ValidationError(LibraryError):
    """User-supplied fields are missing or invalid."""
    status_code = 400


class DuplicateCategoryError(ValidationError):
    """Category name already exists (case-sensitive)."""
    status_code = 409

    def __init__(self, name: str):
        super().__init__(f"Category '{name}' already exists")
        self.name = name


class CategoryInUseError(LibraryError):
    """Category cannot be deleted while prompts still reference it."""
    status_code = 409

    def __init__(self, name: str, count: int):
        super().__init__(f"Category '{name}' is used by {count} prompt(s) and cannot be deleted")
        self.name = name
        self.count = count


def classify_error(e: Exception) -> str:
    """
    Return the user-facing message for an exception.

    Library errors already carry a readable message. Anything else is an
    unexpected failure and gets a generic message with the exception type.

    Args:
        e: The exception to classify

    Returns:
        Human-readable error message
    """
    if isinstance(e, MalformedImportError):
        return f"Import file format error: {e.message}"
    if isinstance(e, SubscriptionError):
        return f"{e.message}. Refresh to resync."
    if isinstance(e, InitializationError):
        return f"Cloud database initialization failed: {e.message}"
    if isinstance(e, LibraryError):
        return e.message

    return f"Unexpected error: {type(e).__name__}: {e}"
