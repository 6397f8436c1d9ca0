# library/import_merge.py
"""
Additive import of an exported library (file or pasted JSON).

The merger never deletes or overwrites: it adds the category names that do
not exist yet and inserts every imported prompt as a new document, even when
an identical prompt is already present. Only category names are
deduplicated. The whole plan goes to the store as one batch.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.errors import MalformedImportError
from core.models import CATEGORIES, PROMPTS, Category, Prompt, parse_timestamp, utc_now
from core.store import BatchOperation
from .history import DEFAULT_MAX_VERSIONS

logger = logging.getLogger(__name__)

IMPORT_DEFAULTS = {
    'task': 'untitled',
    'category': 'uncategorized',
    'prompt': '',
    'author': 'Imported',
}


def parse_import_text(text: str) -> Dict[str, Any]:
    """
    Decode pasted or uploaded JSON into an import payload.

    Raises:
        MalformedImportError: empty text, invalid JSON, or not a JSON object
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedImportError("Import content is empty")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedImportError(f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})")
    validate_import(data)
    return data


def validate_import(data: Any):
    """
    Structural check run before anything is written.

    Raises:
        MalformedImportError: prompts/categories missing or not arrays,
            or a prompt entry that is not an object
    """
    if not isinstance(data, dict):
        raise MalformedImportError("Import must be a JSON object")
    if not isinstance(data.get('prompts'), list):
        raise MalformedImportError("Missing prompts array")
    if not isinstance(data.get('categories'), list):
        raise MalformedImportError("Missing categories array")
    for index, entry in enumerate(data['prompts']):
        if not isinstance(entry, dict):
            raise MalformedImportError(f"Prompt #{index + 1} is not an object")


@dataclass
class ImportPlan:
    """Creates computed from one import. Applying it never alters existing documents."""
    new_categories: List[str] = field(default_factory=list)
    new_prompts: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.new_categories and not self.new_prompts

    def operations(self) -> List[BatchOperation]:
        ops = [BatchOperation.create(CATEGORIES, {'name': name}) for name in self.new_categories]
        ops.extend(BatchOperation.create(PROMPTS, fields) for fields in self.new_prompts)
        return ops

    def summary(self) -> Dict[str, int]:
        return {'prompts_added': len(self.new_prompts), 'categories_added': len(self.new_categories)}


class ImportMerger:
    def __init__(self, max_history: int = DEFAULT_MAX_VERSIONS, clock: Callable[[], datetime] = None):
        self.max_history = max_history
        self._clock = clock or utc_now

    def plan(
        self,
        data: Dict[str, Any],
        current_categories: Iterable[Category],
        current_prompts: Iterable[Prompt] = ()
    ) -> ImportPlan:
        """
        Compute the additive write plan for an import payload.

        current_prompts is accepted for symmetry with the mirror but only
        category names take part in deduplication.
        """
        validate_import(data)
        existing = {c.name for c in current_categories}

        new_categories = []
        for name in data['categories']:
            if not isinstance(name, str) or not name.strip():
                logger.warning(f"Ignoring invalid category name in import: {name!r}")
                continue
            name = name.strip()
            if name in existing or name in new_categories:
                continue
            new_categories.append(name)

        now = self._clock()
        new_prompts = [self._prompt_fields(entry, now) for entry in data['prompts']]

        logger.info(f"Import plan: {len(new_prompts)} prompt(s), {len(new_categories)} new categor(ies)")
        return ImportPlan(new_categories=new_categories, new_prompts=new_prompts)

    def _prompt_fields(self, entry: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        fields = {}
        for name, default in IMPORT_DEFAULTS.items():
            value = entry.get(name)
            fields[name] = value if isinstance(value, str) and value.strip() else default

        copy_count = entry.get('copyCount')
        if isinstance(copy_count, bool) or not isinstance(copy_count, int) or copy_count < 0:
            copy_count = 0

        fields['createdDate'] = now
        fields['lastModified'] = now
        fields['copyCount'] = copy_count
        fields['history'] = self._history(entry.get('history'))
        return fields

    def _history(self, raw: Any) -> List[Dict[str, Any]]:
        """Imported history is kept only if every entry is well-formed."""
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Discarding imported history: not a list")
            return []

        entries = []
        for item in raw:
            entry = _history_entry(item)
            if entry is None:
                logger.warning("Discarding imported history: malformed entry")
                return []
            entries.append(entry)
        return entries[:self.max_history]


def _history_entry(item: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(item, dict) or not isinstance(item.get('prompt'), str):
        return None
    author = item.get('author', '')
    if author is not None and not isinstance(author, str):
        return None
    raw_date = item.get('modifiedDate')
    modified = parse_timestamp(raw_date)
    if raw_date is not None and modified is None:
        return None
    return {'prompt': item['prompt'], 'modifiedDate': modified, 'author': author or ''}
