# library/library.py
"""
PromptLibrary - application context for one session.

Owns the store client, the mirror, the history manager, the import merger
and the seeder, and is the boundary for every user action. Actions never
touch the mirror: they build a payload, hand it to the store, and the change
arrives back through the subscription. Failures are logged, published as a
user notification and re-raised to the caller.
"""

import logging
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from core.errors import (
    CategoryInUseError, DuplicateCategoryError, InitializationError, LibraryError,
    MalformedImportError, NotFoundError, StaleReferenceError, ValidationError, classify_error,
)
from core.event_bus import Events, EventBus, get_event_bus
from core.models import CATEGORIES, PROMPTS, Prompt, utc_now
from core.store import ASCENDING, DESCENDING, BatchOperation, OrderBy, RemoteCollectionClient
from .export import build_export, dumps_export, export_filename
from .history import DEFAULT_MAX_VERSIONS, HistoryManager
from .import_merge import ImportMerger, parse_import_text
from .seed import SeedBootstrapper
from .sync_state import SyncState
from .views import filter_prompts

logger = logging.getLogger(__name__)

CATEGORY_ORDER = OrderBy('name', ASCENDING)
PROMPT_ORDER = OrderBy('createdDate', DESCENDING)


def action(failure: str):
    """Surface LibraryError from an action as an error notification, then re-raise."""
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except LibraryError as e:
                message = f"{failure}: {classify_error(e)}"
                logger.error(message)
                self._notify('error', message)
                raise
        return wrapper
    return decorator


class PromptLibrary:
    def __init__(
        self,
        client: RemoteCollectionClient,
        max_history: int = DEFAULT_MAX_VERSIONS,
        seed_source: Union[str, Path, List[Dict[str, Any]], None] = None,
        seed_on_empty: bool = True,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = None
    ):
        self.client = client
        self.bus = event_bus or get_event_bus()
        self._clock = clock or utc_now
        self.sync_state = SyncState(event_bus=self.bus)
        self.history = HistoryManager(max_versions=max_history, clock=self._clock)
        self.merger = ImportMerger(max_history=max_history, clock=self._clock)
        self.seeder = SeedBootstrapper(
            client, self.sync_state,
            source=seed_source,
            event_bus=self.bus,
            clock=self._clock,
            enabled=seed_on_empty
        )
        self.sync_state.add_listener(lambda collection: self.seeder.evaluate())
        self._started = False

    def _notify(self, level: str, message: str):
        self.bus.publish(Events.NOTIFICATION, {"level": level, "message": message})

    # --- Lifecycle -------------------------------------------------------

    def start(self):
        """
        Subscribe to both collections.

        Raises:
            InitializationError: the store could not be reached
        """
        if self._started:
            logger.warning("Prompt library already started")
            return
        try:
            self.client.subscribe(
                CATEGORIES, CATEGORY_ORDER,
                self.sync_state.apply_category_snapshot,
                lambda e: self._on_stream_error(CATEGORIES, e)
            )
            self.client.subscribe(
                PROMPTS, PROMPT_ORDER,
                self.sync_state.apply_prompt_snapshot,
                lambda e: self._on_stream_error(PROMPTS, e)
            )
        except Exception as e:
            self.client.unsubscribe_all()
            error = e if isinstance(e, InitializationError) else InitializationError(str(e))
            logger.critical(f"Prompt library failed to start: {error}")
            self._notify('error', classify_error(error))
            raise error
        self._started = True
        logger.info(f"Prompt library started on {self.client.backend_name} store")

    def stop(self):
        """Unsubscribe every listener at once."""
        self.client.unsubscribe_all()
        self._started = False
        logger.info("Prompt library stopped")

    def _on_stream_error(self, collection: str, error: Exception):
        wrapped = self.sync_state.report_error(collection, error)
        self._notify('warning', classify_error(wrapped))

    # --- Prompts ---------------------------------------------------------

    @action("Save failed")
    def create_prompt(self, fields: Dict[str, Any]) -> str:
        payload = self.history.record_create(fields)
        prompt_id = self.client.create(PROMPTS, payload)
        logger.info(f"Created prompt {prompt_id}: {payload['task']}")
        self.bus.publish(Events.PROMPT_SAVED, {"id": prompt_id, "action": "created"})
        self._notify('success', "Prompt added")
        return prompt_id

    @action("Save failed")
    def edit_prompt(self, prompt_id: str, fields: Dict[str, Any]):
        existing = self.sync_state.find_prompt(prompt_id)
        if existing is None:
            raise StaleReferenceError('prompt', prompt_id)
        payload = self.history.record_edit(existing, fields)
        try:
            self.client.update(PROMPTS, prompt_id, payload)
        except NotFoundError as e:
            raise StaleReferenceError('prompt', prompt_id) from e
        logger.info(f"Updated prompt {prompt_id} ({len(payload['history'])} history version(s))")
        self.bus.publish(Events.PROMPT_SAVED, {"id": prompt_id, "action": "updated"})
        self._notify('success', "Prompt updated")

    @action("Delete failed")
    def delete_prompt(self, prompt_id: str) -> str:
        prompt = self.sync_state.find_prompt(prompt_id)
        if prompt is None:
            raise StaleReferenceError('prompt', prompt_id)
        self.client.delete(PROMPTS, prompt_id)
        logger.info(f"Deleted prompt {prompt_id}: {prompt.task}")
        self.bus.publish(Events.PROMPT_DELETED, {"id": prompt_id})
        self._notify('success', f"Prompt '{prompt.task}' deleted")
        return prompt.task

    @action("Copy failed")
    def copy_prompt(self, prompt_id: str) -> str:
        """Return the body to copy and bump copyCount by exactly one on the server."""
        prompt = self.sync_state.find_prompt(prompt_id)
        if prompt is None:
            raise StaleReferenceError('prompt', prompt_id)
        try:
            self.client.atomic_increment(PROMPTS, prompt_id, 'copyCount', 1)
        except NotFoundError as e:
            raise StaleReferenceError('prompt', prompt_id) from e
        self.bus.publish(Events.PROMPT_COPIED, {"id": prompt_id})
        self._notify('success', "Copied to clipboard")
        return prompt.prompt

    @action("Restore failed")
    def restore_history(self, prompt_id: str, index: int) -> str:
        """Historical body staged for the editor. Nothing is written."""
        prompt = self.sync_state.find_prompt(prompt_id)
        if prompt is None:
            raise StaleReferenceError('prompt', prompt_id)
        return self.history.select_historical_body(prompt, index)

    def get_prompt(self, prompt_id: str) -> Optional[Prompt]:
        return self.sync_state.find_prompt(prompt_id)

    def prompts_view(self, search: str = '', categories: Sequence[str] = ()) -> List[Prompt]:
        return filter_prompts(self.sync_state.prompts, search, categories)

    # --- Categories ------------------------------------------------------

    def _clean_category_name(self, name: Any) -> str:
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            raise ValidationError("Category name cannot be empty")
        if self.sync_state.find_category_by_name(name):
            raise DuplicateCategoryError(name)
        return name

    @action("Add category failed")
    def add_category(self, name: str) -> str:
        name = self._clean_category_name(name)
        category_id = self.client.create(CATEGORIES, {'name': name})
        logger.info(f"Added category '{name}'")
        self.bus.publish(Events.CATEGORY_CHANGED, {"id": category_id, "action": "added"})
        self._notify('success', "Category added")
        return category_id

    @action("Delete category failed")
    def delete_category(self, category_id: str):
        category = self.sync_state.find_category(category_id)
        if category is None:
            raise StaleReferenceError('category', category_id)
        in_use = self.sync_state.prompts_in_category(category.name)
        if in_use:
            raise CategoryInUseError(category.name, len(in_use))
        self.client.delete(CATEGORIES, category_id)
        logger.info(f"Deleted category '{category.name}'")
        self.bus.publish(Events.CATEGORY_CHANGED, {"id": category_id, "action": "deleted"})
        self._notify('success', f"Category '{category.name}' deleted")

    @action("Rename category failed")
    def rename_category(self, category_id: str, new_name: str) -> int:
        """
        Rename a category and every prompt that references it in one batch.

        Returns:
            Number of prompts updated
        """
        category = self.sync_state.find_category(category_id)
        if category is None:
            raise StaleReferenceError('category', category_id)
        if isinstance(new_name, str) and new_name.strip() == category.name:
            return 0
        new_name = self._clean_category_name(new_name)

        referencing = self.sync_state.prompts_in_category(category.name)
        ops = [BatchOperation.update(CATEGORIES, category_id, {'name': new_name})]
        ops.extend(BatchOperation.update(PROMPTS, p.id, {'category': new_name}) for p in referencing)
        try:
            self.client.commit_batch(ops)
        except NotFoundError as e:
            raise StaleReferenceError('category', category_id) from e

        logger.info(f"Renamed category '{category.name}' -> '{new_name}' ({len(referencing)} prompt(s))")
        self.bus.publish(Events.CATEGORY_CHANGED, {"id": category_id, "action": "renamed", "name": new_name})
        self._notify('success', f"Category renamed to '{new_name}'")
        return len(referencing)

    # --- Export / import -------------------------------------------------

    def export_all(self) -> Dict[str, Any]:
        return build_export(self.sync_state.categories, self.sync_state.prompts, self._clock())

    def export_text(self) -> Tuple[str, str]:
        """(filename, JSON text) ready to hand to a download."""
        now = self._clock()
        document = build_export(self.sync_state.categories, self.sync_state.prompts, now)
        return export_filename(now), dumps_export(document)

    def _import(self, data: Dict[str, Any]) -> Dict[str, int]:
        plan = self.merger.plan(data, self.sync_state.categories, self.sync_state.prompts)
        summary = plan.summary()
        if not plan.is_empty:
            self.client.commit_batch(plan.operations())
        logger.info(f"Imported {summary['prompts_added']} prompt(s), {summary['categories_added']} new categor(ies)")
        self.bus.publish(Events.IMPORT_COMPLETE, summary)
        self._notify('success', f"Imported {summary['prompts_added']} prompt(s) and "
                                f"{summary['categories_added']} new categor(ies)")
        return summary

    @action("Import failed")
    def import_data(self, data: Dict[str, Any]) -> Dict[str, int]:
        """Merge an already-decoded payload. All creates land in one batch or none do."""
        return self._import(data)

    @action("Import failed")
    def import_text(self, text: str) -> Dict[str, int]:
        return self._import(parse_import_text(text))

    @action("Import failed")
    def import_file(self, path: Union[str, Path]) -> Dict[str, int]:
        try:
            text = Path(path).read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedImportError(f"Could not read file: {e}")
        return self._import(parse_import_text(text))

    # --- Status ----------------------------------------------------------

    def retry_seed(self) -> bool:
        """Manual retry after a failed initial seed. True if a seed batch was written."""
        return self.seeder.retry()

    def status(self) -> Dict[str, Any]:
        error = self.sync_state.last_error
        return {
            "backend": self.client.backend_name,
            "started": self._started,
            "loaded": self.sync_state.is_loaded(),
            "categories": len(self.sync_state.categories),
            "prompts": len(self.sync_state.prompts),
            "bootstrap": self.seeder.state.value,
            "sync_error": error.message if error else None,
            "sync_errors": {name: e.message for name, e in self.sync_state.errors().items()},
        }
