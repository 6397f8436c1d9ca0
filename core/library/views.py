# library/views.py
"""Read-only views derived from the mirror: filtering, search, placeholders."""

import re
from typing import Iterable, List, Sequence

from core.models import Prompt

ALL_CATEGORIES = 'all'

# {{ name }} markers inside a prompt body
PLACEHOLDER_PATTERN = re.compile(r'{{\s*([^}]+?)\s*}}')


def filter_prompts(prompts: Iterable[Prompt], search_term: str = '', active_categories: Sequence[str] = ()) -> List[Prompt]:
    """
    Prompts matching the active categories (none active = all) and the search term.

    Search is a case-insensitive substring match over task, prompt, author
    and category. Mirror order is preserved.
    """
    term = (search_term or '').strip().lower()
    active = set(active_categories or ())

    result = []
    for p in prompts:
        if active and p.category not in active:
            continue
        if term:
            haystack = ' '.join((p.task, p.prompt, p.author, p.category)).lower()
            if term not in haystack:
                continue
        result.append(p)
    return result


def toggle_category(active: Sequence[str], category: str) -> List[str]:
    """Category chip click: 'all' clears the filter, anything else toggles."""
    if category == ALL_CATEGORIES:
        return []
    active = list(active)
    if category in active:
        active.remove(category)
    else:
        active.append(category)
    return active


def find_placeholders(text: str) -> List[str]:
    """Distinct placeholder names in order of first appearance."""
    seen = []
    for name in PLACEHOLDER_PATTERN.findall(text or ''):
        if name not in seen:
            seen.append(name)
    return seen


def orphaned_prompts(prompts: Iterable[Prompt], category_names: Iterable[str]) -> List[Prompt]:
    """Prompts whose category was deleted or renamed out from under them."""
    known = set(category_names)
    return [p for p in prompts if p.category not in known]
