"""
SyncState tests - the in-memory mirror fed by snapshot streams.

Run with: pytest tests/test_sync_state.py -v
"""
import pytest
from datetime import datetime, timezone

from core.errors import SubscriptionError
from core.event_bus import Events
from core.library.sync_state import SyncState
from core.models import CATEGORIES, PROMPTS
from core.store import DocumentSnapshot


def _prompt_doc(doc_id, created, **fields):
    base = {"task": f"task {doc_id}", "category": "Writing", "prompt": "body", "author": "a",
            "createdDate": created, "lastModified": created, "copyCount": 0, "history": []}
    base.update(fields)
    return DocumentSnapshot(doc_id, base)


def _day(n):
    return datetime(2025, 1, n, tzinfo=timezone.utc)


class TestSnapshots:

    def test_categories_ordered_by_name(self):
        state = SyncState()
        state.apply_category_snapshot([
            DocumentSnapshot("2", {"name": "beta"}),
            DocumentSnapshot("1", {"name": "Alpha"}),
            DocumentSnapshot("3", {"name": "alpha"}),
        ])
        assert [c.name for c in state.categories] == ["Alpha", "alpha", "beta"]

    def test_prompts_newest_first_missing_dates_last(self):
        state = SyncState()
        state.apply_prompt_snapshot([
            _prompt_doc("old", _day(1)),
            _prompt_doc("undated", None),
            _prompt_doc("new", _day(3)),
            _prompt_doc("mid", _day(2)),
        ])
        assert [p.id for p in state.prompts] == ["new", "mid", "old", "undated"]

    def test_snapshot_replaces_mirror_wholesale(self):
        state = SyncState()
        state.apply_prompt_snapshot([_prompt_doc("a", _day(1)), _prompt_doc("b", _day(2))])
        state.apply_prompt_snapshot([_prompt_doc("c", _day(3))])
        assert [p.id for p in state.prompts] == ["c"]

    def test_invalid_category_documents_skipped(self):
        state = SyncState()
        state.apply_category_snapshot([
            DocumentSnapshot("1", {"name": ""}),
            DocumentSnapshot("2", {}),
            DocumentSnapshot("3", {"name": "Valid"}),
        ])
        assert [c.id for c in state.categories] == ["3"]

    def test_prompt_defaults_applied_at_boundary(self):
        state = SyncState()
        state.apply_prompt_snapshot([DocumentSnapshot("p", {"copyCount": -4})])
        prompt = state.find_prompt("p")
        assert prompt.task == "untitled"
        assert prompt.category == "uncategorized"
        assert prompt.author == "Unknown"
        assert prompt.copy_count == 0
        assert prompt.history == ()


class TestLoadedAndEmpty:

    def test_empty_before_and_after_empty_snapshots(self):
        state = SyncState()
        assert state.is_empty()
        assert not state.is_loaded()

        state.apply_category_snapshot([])
        assert state.has_loaded(CATEGORIES)
        assert not state.has_loaded(PROMPTS)
        assert not state.is_loaded()

        state.apply_prompt_snapshot([])
        assert state.is_loaded()
        assert state.is_empty()

    def test_one_collection_populated_is_not_empty(self):
        state = SyncState()
        state.apply_category_snapshot([DocumentSnapshot("1", {"name": "X"})])
        state.apply_prompt_snapshot([])
        assert not state.is_empty()


class TestErrors:

    def test_error_keeps_last_known_good_mirror(self, bus):
        state = SyncState(event_bus=bus)
        state.apply_prompt_snapshot([_prompt_doc("a", _day(1))])

        wrapped = state.report_error(PROMPTS, RuntimeError("stream dropped"))

        assert isinstance(wrapped, SubscriptionError)
        assert wrapped.collection == PROMPTS
        assert state.last_error is wrapped
        assert [p.id for p in state.prompts] == ["a"]
        assert bus.recent(Events.SYNC_ERROR)[-1]["data"]["collection"] == PROMPTS

    def test_next_snapshot_clears_error(self):
        state = SyncState()
        state.report_error(CATEGORIES, RuntimeError("boom"))
        state.apply_category_snapshot([])
        assert state.last_error is None

    def test_snapshot_clears_only_its_own_collection(self):
        state = SyncState()
        state.apply_prompt_snapshot([])
        failure = state.report_error(PROMPTS, RuntimeError("stream dropped"))

        state.apply_category_snapshot([DocumentSnapshot("1", {"name": "A"})])

        assert state.last_error is failure
        assert set(state.errors()) == {PROMPTS}

        state.apply_prompt_snapshot([])
        assert state.last_error is None
        assert state.errors() == {}

    def test_last_error_is_most_recent_open_failure(self):
        state = SyncState()
        state.report_error(PROMPTS, RuntimeError("first"))
        second = state.report_error(CATEGORIES, RuntimeError("second"))
        assert state.last_error is second

        state.apply_category_snapshot([])
        assert state.last_error.collection == PROMPTS

    def test_subscription_error_not_double_wrapped(self):
        state = SyncState()
        original = SubscriptionError(PROMPTS)
        assert state.report_error(PROMPTS, original) is original


class TestNotifications:

    def test_sync_events_carry_counts(self, bus):
        state = SyncState(event_bus=bus)
        state.apply_category_snapshot([DocumentSnapshot("1", {"name": "X"})])
        state.apply_prompt_snapshot([_prompt_doc("a", _day(1)), _prompt_doc("b", _day(2))])

        assert bus.recent(Events.CATEGORIES_SYNCED)[-1]["data"] == {"count": 1}
        assert bus.recent(Events.PROMPTS_SYNCED)[-1]["data"] == {"count": 2}

    def test_listeners_called_with_collection(self):
        state = SyncState()
        seen = []
        state.add_listener(seen.append)
        state.apply_category_snapshot([])
        state.apply_prompt_snapshot([])
        assert seen == [CATEGORIES, PROMPTS]

    def test_failing_listener_does_not_break_snapshot(self):
        state = SyncState()
        seen = []

        def broken(collection):
            raise RuntimeError("listener bug")

        state.add_listener(broken)
        state.add_listener(seen.append)
        state.apply_category_snapshot([DocumentSnapshot("1", {"name": "X"})])

        assert state.category_names() == ["X"]
        assert seen == [CATEGORIES]


class TestReadHelpers:

    @pytest.fixture
    def state(self):
        state = SyncState()
        state.apply_category_snapshot([DocumentSnapshot("c1", {"name": "Writing"}),
                                       DocumentSnapshot("c2", {"name": "Coding"})])
        state.apply_prompt_snapshot([_prompt_doc("p1", _day(1)),
                                     _prompt_doc("p2", _day(2), category="Other")])
        return state

    def test_lookups(self, state):
        assert state.find_prompt("p2").category == "Other"
        assert state.find_prompt("missing") is None
        assert state.find_category("c2").name == "Coding"
        assert state.find_category_by_name("Writing").id == "c1"
        assert state.find_category_by_name("writing") is None

    def test_category_usage(self, state):
        assert state.is_category_in_use("Writing")
        assert not state.is_category_in_use("Coding")
        assert [p.id for p in state.prompts_in_category("Writing")] == ["p1"]
