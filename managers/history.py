"""
Search and replace history.
Newest entry first; re-using an older entry moves it to the front.
"""

import logging

from constants import DEFAULT_MAX_HISTORY_SIZE

logger = logging.getLogger(__name__)

SEARCH_KEY = 'search_history'
REPLACE_KEY = 'replace_history'


class HistoryManager:
    """Keeps search and replace history in the settings file"""

    def __init__(self, settings_manager):
        self.settings = settings_manager

    @property
    def enabled(self):
        return self.settings.get('enable_history') is not False

    @property
    def max_size(self):
        return self.settings.get('max_history_size') or DEFAULT_MAX_HISTORY_SIZE

    def _add(self, key, entry):
        history = list(self.settings.get(key))
        if history and history[0] == entry:
            return False

        if entry in history:
            history.remove(entry)
        history.insert(0, entry)
        del history[self.max_size:]

        self.settings.set(key, history)
        logger.debug("Added %r to %s (%d entries)", entry, key, len(history))
        return True

    def add_search(self, pattern):
        """Record a search pattern.

        Empty or blank patterns are ignored and the pattern is stored trimmed.

        Returns:
            bool: True if the history changed
        """
        if not self.enabled or pattern is None or not pattern.strip():
            return False
        return self._add(SEARCH_KEY, pattern.strip())

    def add_replace(self, template):
        """Record a replacement template.

        An empty template is a valid entry (it deletes the matches) and is kept
        exactly as typed.

        Returns:
            bool: True if the history changed
        """
        if not self.enabled or template is None:
            return False
        return self._add(REPLACE_KEY, template)

    def get_search_history(self):
        return list(self.settings.get(SEARCH_KEY))

    def get_replace_history(self):
        return list(self.settings.get(REPLACE_KEY))

    def clear_search_history(self):
        self.settings.set(SEARCH_KEY, [])
        logger.info("Cleared search history")

    def clear_replace_history(self):
        self.settings.set(REPLACE_KEY, [])
        logger.info("Cleared replace history")

    def clear_all(self):
        self.clear_search_history()
        self.clear_replace_history()

    def _remove(self, key, entry):
        history = list(self.settings.get(key))
        if entry not in history:
            return False
        history.remove(entry)
        self.settings.set(key, history)
        return True

    def remove_search_entry(self, pattern):
        return self._remove(SEARCH_KEY, pattern)

    def remove_replace_entry(self, template):
        return self._remove(REPLACE_KEY, template)

    def update_max_size(self, max_size=None):
        """Trim both histories to the configured (or given) maximum size."""
        if max_size is not None:
            self.settings.set('max_history_size', max(1, int(max_size)), save=False)
        limit = self.max_size
        for key in (SEARCH_KEY, REPLACE_KEY):
            history = list(self.settings.get(key))
            if len(history) > limit:
                logger.info("Trimmed %s to %d entries (removed %d)", key, limit, len(history) - limit)
                self.settings.set(key, history[:limit], save=False)
        self.settings.save()
