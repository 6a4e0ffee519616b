"""
Settings Manager for the find and replace engine.
Handles loading/saving search settings, remembered options and history.
"""

import os
import json
import logging

from constants import DEFAULT_MAX_HISTORY_SIZE, DEFAULT_MAX_RESULTS, SEARCH_BATCH_SIZE
from models.search_models import MatchOptions
from utils.file_filter import FileFilter

logger = logging.getLogger(__name__)


DEFAULT_SETTINGS = {
    'max_results': DEFAULT_MAX_RESULTS,
    'search_batch_size': SEARCH_BATCH_SIZE,
    'log_level': 'WARNING',
    'enable_history': True,
    'max_history_size': DEFAULT_MAX_HISTORY_SIZE,
    'search_history': [],
    'replace_history': [],
    'remember_search_options': True,
    'last_search_options': MatchOptions().to_dict(),
    'include_patterns': [],
    'exclude_patterns': [],
    'file_extensions': [],
}


class SettingsManager:
    """Manages find and replace settings persistence."""

    def __init__(self, settings_file):
        self.settings_file = settings_file
        self._settings = {}

    def load(self):
        """Load settings from file.

        Returns:
            dict: Settings dictionary, or empty dict if file doesn't exist
        """
        if not self.settings_file or not os.path.exists(self.settings_file):
            self._settings = {}
            return {}

        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ValueError("settings file does not contain an object")
            self._settings = self.validate_settings(loaded)
            return self._settings
        except (OSError, ValueError) as e:
            logger.warning("Failed to load settings from %s: %s", self.settings_file, e)
            self._settings = {}
            return {}

    def save(self, settings=None):
        """Save settings to file.

        Args:
            settings: dict of settings to save, defaults to the current settings
        """
        if settings is None:
            settings = self._settings
        self._settings = settings
        if not self.settings_file:
            return
        try:
            with open(self.settings_file, 'w', encoding='utf-8') as f:
                json.dump(settings, f, indent=2)
        except (OSError, TypeError) as e:
            logger.warning("Failed to save settings to %s: %s", self.settings_file, e)

    def get(self, key, default=None):
        """Get a setting value.

        Args:
            key: Setting key
            default: Default value if key not found; falls back to DEFAULT_SETTINGS

        Returns:
            The setting value or default
        """
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        value = DEFAULT_SETTINGS.get(key)
        # Copy mutable defaults so callers cannot change them
        return list(value) if isinstance(value, list) else \
            dict(value) if isinstance(value, dict) else value

    def set(self, key, value, save=True):
        """Set a setting value and optionally persist it."""
        self._settings[key] = value
        if save:
            self.save()

    def validate_settings(self, settings):
        """Drop values of the wrong type and clamp numeric settings.

        Args:
            settings: dict loaded from disk

        Returns:
            dict with only usable values
        """
        valid = {}
        for key, value in settings.items():
            default = DEFAULT_SETTINGS.get(key)
            if default is not None and not isinstance(value, type(default)):
                logger.warning("Ignoring setting %s with unexpected value %r", key, value)
                continue
            valid[key] = value

        # Batch size of at least 1, result cap of 0 (unlimited) or more
        if 'search_batch_size' in valid:
            valid['search_batch_size'] = max(1, valid['search_batch_size'])
        if 'max_results' in valid:
            valid['max_results'] = max(0, valid['max_results'])
        if 'max_history_size' in valid:
            valid['max_history_size'] = max(1, valid['max_history_size'])
        return valid

    def get_match_options(self):
        """Options to start with: the remembered ones, or all switches off."""
        if not self.get('remember_search_options'):
            return MatchOptions()
        return MatchOptions.from_dict(self.get('last_search_options'))

    def remember_options(self, options):
        """Persist the options of the latest search if remembering is enabled."""
        if self.get('remember_search_options'):
            self.set('last_search_options', options.to_dict())

    def build_file_filter(self):
        """Create a FileFilter from the include/exclude/extension settings.

        Returns:
            FileFilter, or None when no filtering is configured
        """
        file_filter = FileFilter(
            self.get('include_patterns'),
            self.get('exclude_patterns'),
            self.get('file_extensions'),
        )
        return None if file_filter.is_empty else file_filter
