"""Shared pytest fixtures for prompt library tests."""
import sys
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path BEFORE any other imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import pytest


class FakeClock:
    """Deterministic clock: every call returns a time one second later."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bus():
    """Private event bus so tests never see each other's events."""
    from core.event_bus import EventBus
    return EventBus(replay_size=500)


@pytest.fixture
def store():
    """In-memory store, no file persistence."""
    from core.store import LocalDocumentStore
    return LocalDocumentStore({'backend': 'local'})


@pytest.fixture
def failing_store():
    """Store whose writes can be switched to fail on demand."""
    from core.errors import WriteError
    from core.store import LocalDocumentStore

    class FailingStore(LocalDocumentStore):
        fail_writes = False

        def commit_batch(self, operations):
            if self.fail_writes:
                raise WriteError("Simulated store outage")
            return super().commit_batch(operations)

        def atomic_increment(self, collection, doc_id, field_name, delta=1):
            if self.fail_writes:
                raise WriteError("Simulated store outage")
            return super().atomic_increment(collection, doc_id, field_name, delta)

    return FailingStore({'backend': 'local'})


@pytest.fixture
def library(store, bus, clock):
    """Started library over an empty store, seeding disabled."""
    from core.library import PromptLibrary

    lib = PromptLibrary(store, max_history=10, seed_on_empty=False, event_bus=bus, clock=clock)
    lib.start()
    yield lib
    lib.stop()


@pytest.fixture
def prompt_fields():
    return {
        "task": "Summarize",
        "category": "Writing",
        "prompt": "Summarize {{text}} in three bullet points.",
        "author": "alice"
    }


@pytest.fixture
def seed_entries():
    return [
        {"category": "Writing", "task": "Rewrite", "prompt": "Rewrite {{text}}"},
        {"category": "Coding", "task": "Explain", "prompt": "Explain {{code}}"},
        {"category": "Writing", "task": "Email", "prompt": "Email {{recipient}}"},
    ]


@pytest.fixture
def notifications(bus):
    """notifications(level=None) -> notification payloads published on the test bus."""
    from core.event_bus import Events

    def _get(level=None):
        return [
            e["data"] for e in bus.recent(Events.NOTIFICATION)
            if level is None or e["data"].get("level") == level
        ]
    return _get


@pytest.fixture
def settings_defaults():
    """Minimal settings defaults for testing."""
    return {
        "library": {
            "MAX_HISTORY_VERSIONS": 10,
            "SEED_ON_EMPTY": True,
            "SEED_FILE": "core/library/seed_prompts.json"
        },
        "store": {
            "STORE": {
                "backend": "local",
                "path": "user/library_store.json",
                "project_id": "",
                "credentials_file": ""
            }
        },
        "web": {
            "WEB_HOST": "0.0.0.0",
            "WEB_PORT": 9000
        }
    }


@pytest.fixture
def settings_defaults_file(tmp_path, settings_defaults):
    """Create a temporary settings_defaults.json file."""
    core_dir = tmp_path / "core"
    core_dir.mkdir()
    defaults_file = core_dir / "settings_defaults.json"
    defaults_file.write_text(json.dumps(settings_defaults), encoding='utf-8')
    return defaults_file


@pytest.fixture
def user_settings_file(tmp_path):
    """Create a temporary user settings.json file."""
    user_dir = tmp_path / "user"
    user_dir.mkdir()
    settings_file = user_dir / "settings.json"
    settings_file.write_text('{}', encoding='utf-8')
    return settings_file


@pytest.fixture
def unicode_content():
    """Sample unicode content for encoding tests."""
    return {
        "japanese": "日本語テスト",
        "chinese": "中文测试",
        "korean": "한국어 테스트",
        "emoji": "Hello 👋 World 🌍",
        "mixed": "Test テスト 测试 🎉"
    }
