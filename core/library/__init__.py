# library/__init__.py
"""
Prompt library core: mirror, edit history, import merge, seeding.

Usage:
    from core.library import PromptLibrary

    library = PromptLibrary(get_store(config.STORE), max_history=config.MAX_HISTORY_VERSIONS)
    library.start()
"""

from .history import HistoryManager, normalize_fields
from .import_merge import ImportMerger, ImportPlan, parse_import_text, validate_import
from .library import PromptLibrary
from .seed import BootstrapState, SeedBootstrapper, load_seed_source
from .sync_state import SyncState

__all__ = [
    'PromptLibrary',
    'SyncState',
    'HistoryManager',
    'normalize_fields',
    'ImportMerger',
    'ImportPlan',
    'parse_import_text',
    'validate_import',
    'SeedBootstrapper',
    'BootstrapState',
    'load_seed_source',
]
