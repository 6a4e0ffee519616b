"""
Search controller: the object a find/replace panel talks to.
Owns the current result list and selection and is the only place they change;
searches, replacements and reconciliation are reported through Qt signals.
"""

import asyncio
import dataclasses
import logging

from PyQt6.QtCore import QObject, pyqtSignal

from constants import DEFAULT_MAX_RESULTS, SEARCH_BATCH_SIZE
from managers.history import HistoryManager
from managers.reconciler import ResultReconciler
from managers.replacement import ReplacementEngine
from managers.search_session import SearchSession
from models.errors import InvalidPattern, SearchCancelled
from models.search_models import MatchOptions

logger = logging.getLogger(__name__)


class SearchController(QObject):
    """Runs searches and replacements for one document host"""

    results_changed = pyqtSignal(object)     # SearchOutcome
    search_failed = pyqtSignal(str)          # error message
    replace_finished = pyqtSignal(object)    # ReplacementDiff
    selection_changed = pyqtSignal(object)   # set of selected indices

    def __init__(self, host, settings_manager=None, parent=None):
        super().__init__(parent)
        self.host = host
        self.settings = settings_manager
        self.history = HistoryManager(settings_manager) if settings_manager else None

        if settings_manager:
            self.options = settings_manager.get_match_options()
            self.session = SearchSession(
                host,
                max_results=settings_manager.get('max_results'),
                file_filter=settings_manager.build_file_filter(),
                batch_size=settings_manager.get('search_batch_size'),
            )
        else:
            self.options = MatchOptions()
            self.session = SearchSession(host, max_results=DEFAULT_MAX_RESULTS,
                                         batch_size=SEARCH_BATCH_SIZE)
        self.engine = ReplacementEngine(host)
        self.reconciler = ResultReconciler()

        self.query = ""
        self.results = []
        self.selection = set()
        self.last_outcome = None
        self._generation = 0
        self._restart_task = None

    @property
    def results_options(self):
        """Frozen options of the search that produced the current results."""
        return self.last_outcome.options if self.last_outcome else None

    # Searching

    async def search(self, query=None):
        """Search with the current options.

        Args:
            query: New query, or None to repeat the last one

        Returns:
            SearchOutcome, or None if the search failed or was superseded
        """
        if query is not None:
            self.query = query
        query = self.query
        self._generation += 1
        generation = self._generation

        try:
            outcome = await self.session.search(query, self.options)
        except SearchCancelled:
            return None
        except InvalidPattern as e:
            if generation == self._generation:
                self.search_failed.emit(str(e))
            return None

        if generation != self._generation:
            # A newer search took over after a forced reset
            return None

        self._set_results(outcome)
        if self.history:
            self.history.add_search(query)
        if self.settings:
            self.settings.remember_options(outcome.options)
        return outcome

    def set_option(self, name, value):
        """Change one match option.

        A search in flight is cancelled and restarted with the new options.

        Returns:
            The restarted search task, or None
        """
        self.options = self.options.with_option(name, value)
        if not (self.session.is_busy and self.query):
            return None
        logger.debug("Option %s changed during a search, restarting", name)
        self.session.cancel("options changed")
        self._restart_task = asyncio.ensure_future(self.search())
        return self._restart_task

    def cancel(self):
        self.session.cancel("cancelled by user")

    def _set_results(self, outcome):
        self.last_outcome = outcome
        self.results = outcome.results
        self.selection = set()
        self.results_changed.emit(outcome)
        self.selection_changed.emit(set(self.selection))

    # Selection

    def _check_index(self, index):
        if not 0 <= index < len(self.results):
            raise IndexError(f"result index {index} out of range")

    def select(self, index):
        self._check_index(index)
        if index not in self.selection:
            self.selection.add(index)
            self.selection_changed.emit(set(self.selection))

    def deselect(self, index):
        if index in self.selection:
            self.selection.discard(index)
            self.selection_changed.emit(set(self.selection))

    def toggle(self, index):
        """Flip the selection state of one result."""
        if index in self.selection:
            self.deselect(index)
        else:
            self.select(index)

    def select_all(self):
        self.selection = set(range(len(self.results)))
        self.selection_changed.emit(set(self.selection))

    def clear_selection(self):
        if self.selection:
            self.selection = set()
            self.selection_changed.emit(set(self.selection))

    def selected_records(self):
        return [self.results[i] for i in sorted(self.selection)]

    # Replacing

    async def replace(self, scope, template):
        """Replace within the current results and bring them up to date.

        Args:
            scope: ReplaceOne, ReplaceSelected, ReplaceDocument or ReplaceCorpus
            template: Replacement template

        Returns:
            ReplacementDiff, or None when there are no results to replace in
        """
        if self.last_outcome is None:
            return None

        results = self.results
        diff = await self.engine.replace(results, scope, template, self.results_options)
        if self.history:
            self.history.add_replace(template)
        self.replace_finished.emit(diff)

        if results is not self.results:
            # A newer search already replaced the list
            return diff

        reconciled = self.reconciler.reconcile(results, self.selection, diff)
        if reconciled.needs_full_rescan:
            await self.search()
            return diff

        self.results = reconciled.results
        self.selection = reconciled.selection
        self.last_outcome = dataclasses.replace(
            self.last_outcome,
            results=reconciled.results,
            total_count=max(0, self.last_outcome.total_count - reconciled.removed_count),
        )
        self.results_changed.emit(self.last_outcome)
        self.selection_changed.emit(set(self.selection))
        return diff
