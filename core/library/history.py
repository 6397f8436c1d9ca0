# library/history.py
"""
Edit history for prompts.

Pure transforms: given the prompt as currently mirrored and the new field
values, build the document payload to write. Nothing here touches the store.
History is most-recent-first and never re-sorted; the oldest entry falls off
once the bound is exceeded.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from core.errors import IndexOutOfRangeError, StaleReferenceError, ValidationError
from core.models import HistoryEntry, Prompt, utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_VERSIONS = 10
EDITABLE_FIELDS = ('task', 'category', 'prompt', 'author')


def normalize_fields(fields: Dict[str, Any]) -> Dict[str, str]:
    """
    Strip the editable text fields and require all of them.

    Raises:
        ValidationError: a field is missing, not text, or blank
    """
    if not isinstance(fields, dict):
        raise ValidationError("Prompt fields must be an object")

    normalized = {}
    missing = []
    for name in EDITABLE_FIELDS:
        value = fields.get(name)
        value = value.strip() if isinstance(value, str) else ''
        if not value:
            missing.append(name)
        normalized[name] = value

    if missing:
        raise ValidationError(f"Required field(s) missing: {', '.join(missing)}")
    return normalized


class HistoryManager:
    """Builds create/edit payloads and keeps each prompt's history bounded."""

    def __init__(self, max_versions: int = DEFAULT_MAX_VERSIONS, clock: Callable[[], datetime] = None):
        if max_versions < 1:
            raise ValueError("max_versions must be at least 1")
        self.max_versions = max_versions
        self._clock = clock or utc_now

    def record_edit(self, existing: Optional[Prompt], new_fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Payload for saving an edit over an existing prompt.

        The prompt's current body, lastModified and author become the newest
        history entry. createdDate and copyCount are left out so the update
        never touches them.

        Raises:
            StaleReferenceError: existing is None (deleted by another client)
            ValidationError: a required field is blank
        """
        if existing is None:
            raise StaleReferenceError('prompt')

        payload = normalize_fields(new_fields)
        previous = HistoryEntry(
            prompt=existing.prompt,
            modified_date=existing.last_modified,
            author=existing.author,
        )
        history = [previous, *existing.history][:self.max_versions]

        payload['lastModified'] = self._clock()
        payload['history'] = [entry.to_fields() for entry in history]
        logger.debug(f"Edit of {existing.id}: history now {len(history)} version(s)")
        return payload

    def record_create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Payload for a brand new prompt. Counters and history always start empty."""
        payload = normalize_fields(fields)
        now = self._clock()
        payload['createdDate'] = now
        payload['lastModified'] = now
        payload['copyCount'] = 0
        payload['history'] = []
        return payload

    def select_historical_body(self, prompt: Prompt, index: int) -> str:
        """
        Body text of one history version, for restoring into the editor.

        Only stages text for the next save; nothing is written.

        Raises:
            IndexOutOfRangeError: index outside [0, len(history))
        """
        size = len(prompt.history)
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < size:
            raise IndexOutOfRangeError(index, size)
        return prompt.history[index].prompt
