"""
Settings Manager - Centralized configuration handling
Loads defaults, applies path/URL construction, merges user overrides
"""
import json
import logging
import threading
import time
from pathlib import Path

logger = logging.getLogger(__name__)

# Settings holding whole config objects rather than categories of keys
CONFIG_OBJECTS = {'STORE'}

# Settings holding paths relative to BASE_DIR
PATH_KEYS = {'SEED_FILE'}


class SettingsManager:
    """Manages application settings with hot-reload from user/settings.json."""

    def __init__(self, base_dir=None):
        self.BASE_DIR = Path(base_dir) if base_dir else Path(__file__).parent.parent
        self._defaults = {}
        self._user = {}
        self._config = {}
        self._reload_callbacks = {}
        self._lock = threading.RLock()

        # File watcher state
        self._watcher_thread = None
        self._watcher_running = False
        self._last_mtime = None

        self._load_defaults()
        self._apply_construction()
        self._load_user_settings()
        self._merge_settings()
        self._ensure_example_file()
        self._update_mtime()

    @property
    def defaults_path(self):
        return self.BASE_DIR / 'core' / 'settings_defaults.json'

    @property
    def user_path(self):
        return self.BASE_DIR / 'user' / 'settings.json'

    def _flatten_dict(self, nested_dict):
        """Flatten nested categories to a single level of keys"""
        items = {}
        for k, v in nested_dict.items():
            if k.startswith('_'):  # Skip metadata keys like _comment
                continue
            if isinstance(v, dict) and not self._is_config_object(k):
                items.update(self._flatten_dict(v))
            else:
                items[k] = v
        return items

    def _is_config_object(self, key):
        """Check if a key represents a config object (not a category)"""
        return key in CONFIG_OBJECTS

    def _load_defaults(self):
        """Load core/settings_defaults.json"""
        try:
            with open(self.defaults_path, 'r', encoding='utf-8') as f:
                nested = json.load(f)
            self._defaults = self._flatten_dict(nested)
            logger.info(f"Loaded default settings from {self.defaults_path}")
        except Exception as e:
            logger.error(f"Failed to load defaults: {e}")
            self._defaults = {}

    def _apply_construction(self):
        """Apply programmatic path/URL construction"""
        self._defaults['BASE_DIR'] = str(self.BASE_DIR)

        # Internal URL of the web API (0.0.0.0 binds everywhere, call it on localhost)
        host = self._defaults.get('WEB_HOST', '127.0.0.1')
        if host == '0.0.0.0':
            host = '127.0.0.1'
        port = self._defaults.get('WEB_PORT', 8075)
        self._defaults['API_URL'] = f"http://{host}:{port}"

    def _load_user_settings(self):
        """Load user/settings.json if exists"""
        if self.user_path.exists():
            try:
                with open(self.user_path, 'r', encoding='utf-8') as f:
                    nested = json.load(f)
                self._user = self._flatten_dict(nested)
                logger.info(f"Loaded user settings from {self.user_path}")
            except Exception as e:
                logger.error(f"Failed to load user settings: {e}")
                self._user = {}
        else:
            logger.info("No user settings found, using defaults")
            self._user = {}

    def _resolve_path(self, value):
        if not value:
            return value
        path = Path(value)
        if not path.is_absolute():
            path = self.BASE_DIR / path
        return str(path)

    def _merge_settings(self):
        """Merge defaults with user overrides, deep-merging config objects"""
        self._config = {**self._defaults, **self._user}

        for key in CONFIG_OBJECTS:
            default_obj = self._defaults.get(key)
            user_obj = self._user.get(key)
            if isinstance(default_obj, dict) and isinstance(user_obj, dict):
                self._config[key] = {**default_obj, **user_obj}

        for key in PATH_KEYS:
            if key in self._config:
                self._config[key] = self._resolve_path(self._config[key])

        store = self._config.get('STORE')
        if isinstance(store, dict):
            store = dict(store)
            for key in ('path', 'credentials_file'):
                store[key] = self._resolve_path(store.get(key))
            self._config['STORE'] = store

    def _ensure_example_file(self):
        """Create user/settings.example.json if it doesn't exist"""
        example_path = self.BASE_DIR / 'user' / 'settings.example.json'
        if example_path.exists():
            return
        try:
            with open(self.defaults_path, 'r', encoding='utf-8') as f:
                nested = json.load(f)
            nested['_comment'] = 'Example settings - copy to settings.json and customize'

            example_path.parent.mkdir(parents=True, exist_ok=True)
            with open(example_path, 'w', encoding='utf-8') as f:
                json.dump(nested, f, indent=2)
            logger.info(f"Created {example_path}")
        except Exception as e:
            logger.error(f"Failed to create example file: {e}")

    def get(self, key, default=None):
        """Get a setting value"""
        with self._lock:
            return self._config.get(key, default)

    def reload(self):
        """Reload settings from disk"""
        with self._lock:
            self._load_user_settings()
            self._merge_settings()
            self._update_mtime()
            logger.info("Settings reloaded from disk")

    def register_reload_callback(self, key, callback):
        """
        Register a callback to be called when a setting changes.

        Args:
            key: Setting key to watch
            callback: Function to call with new value
        """
        self._reload_callbacks[key] = callback

    def _update_mtime(self):
        """Update last known mtime of user settings file"""
        try:
            self._last_mtime = self.user_path.stat().st_mtime if self.user_path.exists() else None
        except OSError as e:
            logger.error(f"Failed to update mtime: {e}")

    def check_for_changes(self):
        """Reload and fire callbacks if user/settings.json changed on disk. Returns True if reloaded."""
        if not self.user_path.exists():
            return False
        current_mtime = self.user_path.stat().st_mtime
        if self._last_mtime is None or current_mtime == self._last_mtime:
            self._last_mtime = current_mtime
            return False

        logger.info("Detected settings file change, reloading...")
        self.reload()
        with self._lock:
            pending = [(cb, self._config[key]) for key, cb in self._reload_callbacks.items() if key in self._config]
        for callback, value in pending:
            try:
                callback(value)
            except Exception as e:
                logger.error(f"Reload callback failed: {e}")
        return True

    def _file_watcher_loop(self):
        """Background thread that polls for file changes"""
        logger.info("File watcher started")
        while self._watcher_running:
            try:
                time.sleep(2)
                self.check_for_changes()
            except Exception as e:
                logger.error(f"File watcher error: {e}")
                time.sleep(5)  # Back off on errors
        logger.info("File watcher stopped")

    def start_file_watcher(self):
        """Start the background file watcher thread"""
        if self._watcher_thread is not None and self._watcher_thread.is_alive():
            logger.warning("File watcher already running")
            return

        self._watcher_running = True
        self._watcher_thread = threading.Thread(
            target=self._file_watcher_loop,
            daemon=True,
            name="SettingsFileWatcher"
        )
        self._watcher_thread.start()

    def stop_file_watcher(self):
        """Stop the background file watcher thread"""
        if self._watcher_thread is None:
            return

        self._watcher_running = False
        if self._watcher_thread.is_alive():
            self._watcher_thread.join(timeout=5)

    # Make this act like a module for attribute access
    def __getattr__(self, key):
        """Allow settings.KEY_NAME access"""
        if key.startswith('_'):
            return object.__getattribute__(self, key)
        with self._lock:
            if key in self._config:
                return self._config[key]
        raise AttributeError(f"Setting '{key}' not found")

    def __contains__(self, key):
        """Allow 'key in settings' checks"""
        with self._lock:
            return key in self._config

    def __repr__(self):
        return f"<SettingsManager: {len(self._config)} settings>"


# Create singleton instance
settings = SettingsManager()
