"""
Search session: runs one scan at a time with frozen options.
A new request cancels the scan in flight, waits for it to finish and only then
starts scanning; the caller only ever sees the newest search's results.
"""

import asyncio
import logging
import time
import warnings

from constants import DEFAULT_MAX_RESULTS, SEARCH_BATCH_SIZE, STALE_SESSION_TIMEOUT
from managers.match_scanner import MatchScanner
from models.errors import InvalidPattern, SearchCancelled, StaleSessionWarning
from models.search_models import SearchOutcome, SessionState
from utils.cancellation import CancellationToken
from utils.pattern_compiler import compile_pattern

logger = logging.getLogger(__name__)


class SearchSession:
    """Owns the state machine and cancellation token of the active search"""

    def __init__(self, host, max_results=DEFAULT_MAX_RESULTS, file_filter=None,
                 batch_size=SEARCH_BATCH_SIZE, stale_timeout=STALE_SESSION_TIMEOUT):
        self.host = host
        self.max_results = max_results
        self.file_filter = file_filter
        self.batch_size = batch_size
        self.stale_timeout = stale_timeout
        self.state = SessionState.IDLE
        self.last_state = None
        self.frozen_options = None
        self._token = None
        self._finished = asyncio.Event()
        self._finished.set()
        self._generation = 0

    @property
    def is_scanning(self):
        return self.state == SessionState.SCANNING

    @property
    def is_busy(self):
        return self.state != SessionState.IDLE

    def cancel(self, reason="cancelled"):
        """Signal the active scan to stop at its next checkpoint."""
        if self._token is not None:
            self._token.cancel(reason)

    def _finish(self, generation, state):
        """Record a terminal state and return to idle, unless a newer search took over."""
        if generation != self._generation:
            return
        self.last_state = state
        self.state = SessionState.IDLE
        self._token = None
        self._finished.set()

    async def _wait_for_previous(self):
        if self._finished.is_set():
            return
        try:
            await asyncio.wait_for(self._finished.wait(), timeout=self.stale_timeout)
        except asyncio.TimeoutError:
            message = (f"Previous search did not finish within {self.stale_timeout}s "
                       f"(state {self.state.value}); forcing reset")
            logger.warning(message)
            warnings.warn(message, StaleSessionWarning, stacklevel=3)
            self.state = SessionState.IDLE
            self._token = None
            self._finished.set()

    def _cap(self, records):
        if self.max_results and len(records) > self.max_results:
            return records[:self.max_results]
        return records

    async def search(self, query, options, token=None):
        """Run one search.

        Args:
            query: Raw query string
            options: MatchOptions, snapshotted once at start
            token: Optional CancellationToken; one is created when omitted

        Returns:
            SearchOutcome with the (capped) sorted results and the true total

        Raises:
            InvalidPattern: Pattern mode query that does not compile
            SearchCancelled: This search was superseded before it completed
        """
        # Another waiter may take over while we wait, so re-check after every wake-up
        while self.is_busy:
            self.cancel("superseded")
            await self._wait_for_previous()

        self._generation += 1
        generation = self._generation
        self._finished.clear()
        self.state = SessionState.STARTING
        self._token = token if token is not None else CancellationToken()
        token = self._token
        self.frozen_options = options.snapshot()
        frozen = self.frozen_options

        if not query or not query.strip():
            self._finish(generation, SessionState.COMPLETED)
            return SearchOutcome(query=query or '', options=frozen)
        if not frozen.use_pattern:
            # Surrounding whitespace is ignored in plain text mode
            query = query.strip()

        started = time.perf_counter()
        try:
            matcher = compile_pattern(query, frozen)
            token.raise_if_cancelled()
            self.state = SessionState.SCANNING
            scanner = MatchScanner(self.host, batch_size=self.batch_size)
            records = await scanner.scan(matcher, token, self.file_filter)
        except SearchCancelled:
            logger.debug("Search for %r cancelled", query)
            self._finish(generation, SessionState.CANCELLED)
            raise
        except InvalidPattern:
            self._finish(generation, SessionState.FAILED)
            raise
        except Exception:
            logger.exception("Search for %r failed", query)
            self._finish(generation, SessionState.FAILED)
            raise

        outcome = SearchOutcome(
            query=query,
            options=frozen,
            results=self._cap(records),
            total_count=len(records),
            state=SessionState.COMPLETED,
            documents_scanned=scanner.documents_scanned,
            documents_with_results=scanner.documents_with_results,
            duration=time.perf_counter() - started,
        )
        self._finish(generation, SessionState.COMPLETED)
        logger.info("Search for %r: %s in %d documents (%.3fs)",
                    query, outcome.summary(), outcome.documents_scanned, outcome.duration)
        return outcome
