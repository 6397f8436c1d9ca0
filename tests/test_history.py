"""
History Manager Tests - bounded edit history and create/edit payloads.

Run with: pytest tests/test_history.py -v
"""
import pytest
from datetime import datetime, timezone

from core.errors import IndexOutOfRangeError, StaleReferenceError, ValidationError
from core.library.history import HistoryManager, normalize_fields
from core.models import HistoryEntry, Prompt


def _fields(body, author="alice"):
    return {"task": "Task", "category": "Writing", "prompt": body, "author": author}


def _apply(prompt_id, stored, payload):
    """Merge a payload into stored fields the way a store update does."""
    merged = {**stored, **payload}
    return merged, Prompt.from_document(prompt_id, merged)


class TestRecordCreate:
    """New prompt payloads."""

    def test_create_sets_timestamps_and_resets_counters(self, clock):
        manager = HistoryManager(clock=clock)
        payload = manager.record_create(_fields("A"))

        assert payload["createdDate"] == payload["lastModified"]
        assert payload["copyCount"] == 0
        assert payload["history"] == []

    def test_create_ignores_supplied_counters_and_history(self, clock):
        """copyCount and history from the caller are never trusted."""
        manager = HistoryManager(clock=clock)
        fields = _fields("A")
        fields["copyCount"] = 42
        fields["history"] = [{"prompt": "old", "modifiedDate": None, "author": "x"}]

        payload = manager.record_create(fields)

        assert payload["copyCount"] == 0
        assert payload["history"] == []

    def test_create_strips_text_fields(self, clock):
        manager = HistoryManager(clock=clock)
        payload = manager.record_create({
            "task": "  Task  ", "category": " Writing", "prompt": "Body\n", "author": "bob "
        })
        assert payload["task"] == "Task"
        assert payload["category"] == "Writing"
        assert payload["prompt"] == "Body"
        assert payload["author"] == "bob"

    def test_create_rejects_blank_field(self, clock):
        manager = HistoryManager(clock=clock)
        with pytest.raises(ValidationError) as exc:
            manager.record_create({"task": "T", "category": "C", "prompt": "   ", "author": "a"})
        assert "prompt" in str(exc.value)


class TestRecordEdit:
    """Edit payloads and history bound."""

    def test_history_order_most_recent_first(self, clock):
        """Bodies A -> B -> C leave history [B, A]."""
        manager = HistoryManager(clock=clock)
        stored = manager.record_create(_fields("A"))
        stored, prompt = _apply("p1", stored, {})

        stored, prompt = _apply("p1", stored, manager.record_edit(prompt, _fields("B")))
        stored, prompt = _apply("p1", stored, manager.record_edit(prompt, _fields("C")))

        assert prompt.prompt == "C"
        assert [h.prompt for h in prompt.history] == ["B", "A"]

    def test_history_bounded_after_many_edits(self, clock):
        """15 edits keep exactly 10 versions, newest being the body before the last save."""
        manager = HistoryManager(max_versions=10, clock=clock)
        stored, prompt = _apply("p1", manager.record_create(_fields("v0")), {})

        for i in range(1, 16):
            stored, prompt = _apply("p1", stored, manager.record_edit(prompt, _fields(f"v{i}")))
            assert len(prompt.history) == min(i, 10)

        assert prompt.prompt == "v15"
        assert prompt.history[0].prompt == "v14"
        assert prompt.history[-1].prompt == "v5"

    def test_entry_captures_previous_author_and_date(self, clock):
        manager = HistoryManager(clock=clock)
        stored, prompt = _apply("p1", manager.record_create(_fields("A", author="alice")), {})
        created = prompt.last_modified

        payload = manager.record_edit(prompt, _fields("B", author="bob"))
        _, edited = _apply("p1", stored, payload)

        entry = edited.history[0]
        assert entry.author == "alice"
        assert entry.modified_date == created
        assert edited.author == "bob"
        assert edited.last_modified > created

    def test_edit_payload_leaves_created_date_and_copy_count_alone(self, clock):
        manager = HistoryManager(clock=clock)
        prompt = Prompt("p1", "T", "C", "A", "alice", copy_count=7,
                        created_date=datetime(2024, 5, 1, tzinfo=timezone.utc))

        payload = manager.record_edit(prompt, _fields("B"))

        assert "createdDate" not in payload
        assert "copyCount" not in payload

    def test_edit_of_missing_prompt_is_stale(self, clock):
        """A prompt deleted by another client must not be silently recreated."""
        manager = HistoryManager(clock=clock)
        with pytest.raises(StaleReferenceError):
            manager.record_edit(None, _fields("B"))

    def test_max_versions_must_be_positive(self):
        with pytest.raises(ValueError):
            HistoryManager(max_versions=0)


class TestSelectHistoricalBody:
    """Restore-to-editor reads."""

    @pytest.fixture
    def prompt(self):
        return Prompt("p1", "T", "C", "current", "a", history=(
            HistoryEntry("newest"), HistoryEntry("middle"), HistoryEntry("oldest"),
        ))

    def test_returns_body_at_index(self, prompt):
        manager = HistoryManager()
        assert manager.select_historical_body(prompt, 0) == "newest"
        assert manager.select_historical_body(prompt, 2) == "oldest"

    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_out_of_range_index(self, prompt, index):
        manager = HistoryManager()
        with pytest.raises(IndexOutOfRangeError):
            manager.select_historical_body(prompt, index)

    @pytest.mark.parametrize("index", ["0", 1.0, True, None])
    def test_non_integer_index(self, prompt, index):
        manager = HistoryManager()
        with pytest.raises(IndexOutOfRangeError):
            manager.select_historical_body(prompt, index)

    def test_empty_history(self):
        manager = HistoryManager()
        prompt = Prompt("p1", "T", "C", "body", "a")
        with pytest.raises(IndexError):
            manager.select_historical_body(prompt, 0)


class TestNormalizeFields:

    def test_lists_every_missing_field(self):
        with pytest.raises(ValidationError) as exc:
            normalize_fields({"task": "T"})
        message = str(exc.value)
        assert "category" in message
        assert "prompt" in message
        assert "author" in message

    def test_rejects_non_dict(self):
        with pytest.raises(ValidationError):
            normalize_fields(["task"])

    def test_ignores_extra_fields(self):
        result = normalize_fields({**_fields("A"), "id": "x", "copyCount": 3})
        assert set(result) == {"task", "category", "prompt", "author"}
