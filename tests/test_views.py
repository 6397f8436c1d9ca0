"""Filtering, category chips and placeholder extraction."""
import pytest

from core.library.views import (
    ALL_CATEGORIES, filter_prompts, find_placeholders, orphaned_prompts, toggle_category,
)
from core.models import Prompt


@pytest.fixture
def prompts():
    return (
        Prompt("1", "Email draft", "Writing", "Write to {{recipient}}", "alice"),
        Prompt("2", "Debug", "Coding", "Find the bug in {{code}}", "bob"),
        Prompt("3", "Haiku", "Fun", "A haiku about {{topic}}", "Alice"),
    )


class TestFilterPrompts:

    def test_no_filters_returns_all_in_order(self, prompts):
        assert [p.id for p in filter_prompts(prompts)] == ["1", "2", "3"]

    def test_search_is_case_insensitive_across_fields(self, prompts):
        assert [p.id for p in filter_prompts(prompts, "ALICE")] == ["1", "3"]
        assert [p.id for p in filter_prompts(prompts, "bug")] == ["2"]
        assert [p.id for p in filter_prompts(prompts, "coding")] == ["2"]

    def test_category_filter(self, prompts):
        assert [p.id for p in filter_prompts(prompts, "", ["Writing", "Fun"])] == ["1", "3"]

    def test_search_and_category_combine(self, prompts):
        assert [p.id for p in filter_prompts(prompts, "alice", ["Fun"])] == ["3"]

    def test_blank_search_ignored(self, prompts):
        assert len(filter_prompts(prompts, "   ")) == 3


class TestToggleCategory:

    def test_toggle_on_and_off(self):
        active = toggle_category([], "Writing")
        assert active == ["Writing"]
        assert toggle_category(active, "Writing") == []

    def test_all_clears(self):
        assert toggle_category(["Writing", "Coding"], ALL_CATEGORIES) == []

    def test_input_not_mutated(self):
        active = ["Writing"]
        toggle_category(active, "Coding")
        assert active == ["Writing"]


class TestPlaceholders:

    def test_distinct_in_order(self):
        text = "Hi {{ name }}, about {{topic}} and {{name}} again"
        assert find_placeholders(text) == ["name", "topic"]

    def test_none_and_empty(self):
        assert find_placeholders("") == []
        assert find_placeholders(None) == []
        assert find_placeholders("{single} braces") == []


def test_orphaned_prompts(prompts):
    orphans = orphaned_prompts(prompts, ["Writing", "Coding"])
    assert [p.id for p in orphans] == ["3"]
