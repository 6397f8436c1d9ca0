# library/export.py
"""
Full-library export in the prompt-library-v3.0 format.

The document is what import_merge reads back: prompts without ids, dates as
ISO strings with a Z suffix, and category names as a plain list.
"""

import json
from datetime import datetime
from typing import Any, Dict, Iterable

from core.models import Category, Prompt, format_timestamp

EXPORT_VERSION = 'prompt-library-v3.0'


def build_export(categories: Iterable[Category], prompts: Iterable[Prompt], now: datetime) -> Dict[str, Any]:
    """Full-library backup document. Timestamps are ISO strings, ids are dropped."""
    return {
        'version': EXPORT_VERSION,
        'exportedDate': format_timestamp(now),
        'prompts': [p.to_export() for p in prompts],
        'categories': [c.name for c in categories],
    }


def dumps_export(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_filename(now: datetime) -> str:
    return f"prompt_library_backup_{now.date().isoformat()}.json"
