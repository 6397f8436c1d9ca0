"""
Configuration proxy

config.SOMETHING reads from the settings manager: defaults from
core/settings_defaults.json, overridden by user/settings.json.
"""

from core.settings_manager import settings as _settings


def __getattr__(name):
    """Forward all config.SOMETHING to settings_manager"""
    return getattr(_settings, name)
