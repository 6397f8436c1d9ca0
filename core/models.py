# core/models.py
"""
Record types for the two mirrored collections.

Documents come back from the store as untyped field maps. They are parsed
here into explicit records, with defaults for missing text fields, so nothing
downstream has to cope with holes. Field names on the wire (store documents
and the export file) are camelCase.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CATEGORIES = 'categories'
PROMPTS = 'prompts'

DEFAULT_TASK = 'untitled'
DEFAULT_CATEGORY = 'uncategorized'
DEFAULT_AUTHOR = 'Unknown'


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce a stored timestamp to an aware UTC datetime.

    Accepts datetime objects (including store-native subclasses), ISO-8601
    strings and epoch seconds. Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return parse_timestamp(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for export, never a store-native type."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(int(value), 0)


@dataclass(frozen=True)
class HistoryEntry:
    """One prior version of a prompt body."""
    prompt: str
    modified_date: Optional[datetime] = None
    author: str = ''

    @classmethod
    def from_fields(cls, fields: Any) -> Optional['HistoryEntry']:
        """Parse a stored history entry; None if it is not a usable entry."""
        if not isinstance(fields, dict) or not isinstance(fields.get('prompt'), str):
            return None
        author = fields.get('author')
        return cls(
            prompt=fields['prompt'],
            modified_date=parse_timestamp(fields.get('modifiedDate')),
            author=author if isinstance(author, str) else '',
        )

    def to_fields(self) -> Dict[str, Any]:
        return {
            'prompt': self.prompt,
            'modifiedDate': self.modified_date,
            'author': self.author,
        }

    def to_export(self) -> Dict[str, Any]:
        return {
            'prompt': self.prompt,
            'modifiedDate': format_timestamp(self.modified_date),
            'author': self.author,
        }


@dataclass(frozen=True)
class Category:
    id: str
    name: str

    @classmethod
    def from_document(cls, doc_id: str, fields: Any) -> Optional['Category']:
        """Parse a category document. Documents without a usable name are rejected."""
        if not isinstance(fields, dict):
            logger.warning(f"Skipping category {doc_id}: fields are not a map")
            return None
        name = fields.get('name')
        if not isinstance(name, str) or not name.strip():
            logger.warning(f"Skipping category {doc_id}: missing name")
            return None
        return cls(id=doc_id, name=name)

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name}


@dataclass(frozen=True)
class Prompt:
    id: str
    task: str
    category: str
    prompt: str
    author: str
    created_date: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    copy_count: int = 0
    history: tuple = field(default_factory=tuple)

    @classmethod
    def from_document(cls, doc_id: str, fields: Any) -> Optional['Prompt']:
        """Parse a prompt document, defaulting malformed fields."""
        if not isinstance(fields, dict):
            logger.warning(f"Skipping prompt {doc_id}: fields are not a map")
            return None

        raw_history = fields.get('history')
        history = []
        if isinstance(raw_history, list):
            for raw in raw_history:
                entry = HistoryEntry.from_fields(raw)
                if entry is None:
                    logger.warning(f"Dropping malformed history entry on prompt {doc_id}")
                    continue
                history.append(entry)

        body = fields.get('prompt')
        return cls(
            id=doc_id,
            task=_text(fields.get('task'), DEFAULT_TASK),
            category=_text(fields.get('category'), DEFAULT_CATEGORY),
            prompt=body if isinstance(body, str) else '',
            author=_text(fields.get('author'), DEFAULT_AUTHOR),
            created_date=parse_timestamp(fields.get('createdDate')),
            last_modified=parse_timestamp(fields.get('lastModified')),
            copy_count=_count(fields.get('copyCount')),
            history=tuple(history),
        )

    def history_fields(self) -> List[Dict[str, Any]]:
        return [entry.to_fields() for entry in self.history]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation for the API (includes id)."""
        data = self.to_export()
        data['id'] = self.id
        return data

    def to_export(self) -> Dict[str, Any]:
        """Export representation: no id, every timestamp as an ISO string."""
        return {
            'task': self.task,
            'category': self.category,
            'prompt': self.prompt,
            'author': self.author,
            'createdDate': format_timestamp(self.created_date),
            'lastModified': format_timestamp(self.last_modified),
            'copyCount': self.copy_count,
            'history': [entry.to_export() for entry in self.history],
        }
