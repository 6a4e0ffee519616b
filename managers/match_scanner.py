"""
Scans every document of a host for matches, in batches.
Documents in a batch are read concurrently; the cancellation token is checked
between batches and results are sorted once at the end.
"""

import asyncio
import bisect
import logging

from constants import SEARCH_BATCH_SIZE, SEARCH_YIELD_DELAY
from models.errors import DocumentUnavailable
from models.search_models import MatchRecord, sort_records

logger = logging.getLogger(__name__)


def split_lines(text):
    """Split document text into lines, dropping a trailing carriage return from each."""
    return [line[:-1] if line.endswith('\r') else line for line in text.split('\n')]


def line_starts(text):
    """Offsets at which each line of text begins."""
    starts = [0]
    pos = text.find('\n')
    while pos != -1:
        starts.append(pos + 1)
        pos = text.find('\n', pos + 1)
    return starts


def find_in_line(line, matcher):
    """Find every occurrence of a matcher in one line.

    Returns:
        list of (column, matched_text) tuples, left to right
    """
    hits = []
    if matcher.uses_regex_scan:
        for m in matcher.finditer(line):
            if m.end() > m.start():  # zero-width matches are not results
                hits.append((m.start(), m.group()))
        return hits

    needle = matcher.query if matcher.options.case_sensitive else matcher.query.lower()
    if not needle:
        return hits
    haystack = line if matcher.options.case_sensitive else line.lower()
    if len(haystack) != len(line):
        # Lower-casing changed the length; columns would drift, use the regex
        return [(m.start(), m.group()) for m in matcher.finditer(line) if m.end() > m.start()]

    start = 0
    while True:
        idx = haystack.find(needle, start)
        if idx == -1:
            break
        hits.append((idx, line[idx:idx + len(needle)]))
        start = idx + max(len(needle), 1)
    return hits


class MatchScanner:
    """Produces the sorted MatchRecords of one query across a host's documents"""

    def __init__(self, host, batch_size=SEARCH_BATCH_SIZE, yield_delay=SEARCH_YIELD_DELAY):
        self.host = host
        self.batch_size = max(1, int(batch_size))
        self.yield_delay = yield_delay
        self.documents_scanned = 0
        self.documents_with_results = 0
        self.failed_documents = {}

    def _reset_stats(self):
        self.documents_scanned = 0
        self.documents_with_results = 0
        self.failed_documents = {}

    async def _read(self, document_id):
        """Read one document, returning None when it cannot be read."""
        try:
            return await self.host.read_document(document_id)
        except (DocumentUnavailable, OSError, UnicodeError) as e:
            logger.warning("Skipping unreadable document %s: %s", document_id, e)
            self.failed_documents[document_id] = str(e)
            return None

    def scan_text(self, document_id, text, matcher):
        """Find all matches of a matcher in one document's text."""
        if matcher.spans_lines:
            return self._scan_whole_text(document_id, text, matcher)

        records = []
        for line_index, line in enumerate(split_lines(text)):
            if not line.strip():
                continue
            if matcher.is_match_anything:
                records.append(MatchRecord(document_id, line_index, 0, line, line, matcher.query))
                continue
            for column, matched in find_in_line(line, matcher):
                records.append(MatchRecord(document_id, line_index, column, matched, line, matcher.query))
        return records

    def _scan_whole_text(self, document_id, text, matcher):
        """Multi-line pattern scan: match the whole document, then map offsets to lines."""
        lines = split_lines(text)
        starts = line_starts(text)
        records = []
        if matcher.is_match_anything:
            for line_index, line in enumerate(lines):
                if line.strip():
                    records.append(MatchRecord(document_id, line_index, 0, line, line, matcher.query))
            return records

        for m in matcher.finditer(text):
            if m.end() == m.start():
                continue
            line_index = bisect.bisect_right(starts, m.start()) - 1
            line = lines[line_index]
            if not line.strip():
                continue
            column = m.start() - starts[line_index]
            records.append(MatchRecord(document_id, line_index, column, m.group(), line, matcher.query))
        return records

    async def _scan_document(self, document_id, matcher):
        text = await self._read(document_id)
        if text is None:
            return []
        self.documents_scanned += 1
        records = self.scan_text(document_id, text, matcher)
        if records:
            self.documents_with_results += 1
        return records

    async def scan(self, matcher, token, file_filter=None):
        """Scan all documents for a matcher.

        Args:
            matcher: Compiled Matcher
            token: CancellationToken checked between batches
            file_filter: Optional FileFilter applied to the document ids

        Returns:
            list[MatchRecord] sorted by (document, line, column)

        Raises:
            SearchCancelled: If the token was cancelled; no partial output is kept
        """
        self._reset_stats()
        token.raise_if_cancelled()

        document_ids = list(await self.host.enumerate_documents())
        if file_filter is not None:
            document_ids = file_filter.apply(document_ids)

        results = []
        total_batches = (len(document_ids) + self.batch_size - 1) // self.batch_size
        for batch_number, start in enumerate(range(0, len(document_ids), self.batch_size), 1):
            batch = document_ids[start:start + self.batch_size]
            found = await asyncio.gather(*(self._scan_document(d, matcher) for d in batch))
            for records in found:
                results.extend(records)

            token.raise_if_cancelled()
            logger.debug("Batch %d/%d scanned, %d matches so far", batch_number, total_batches, len(results))
            # Let the host's event loop breathe between batches
            await asyncio.sleep(self.yield_delay)
            token.raise_if_cancelled()

        return sort_records(results)
