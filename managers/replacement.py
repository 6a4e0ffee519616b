"""
Replacement engine: applies a template to one match, a selection, a document
or the whole corpus, writes each modified document once and reports a diff.
"""

import asyncio
import bisect
import logging
import re
from collections import defaultdict

from managers.match_scanner import line_starts
from models.errors import DocumentUnavailable, DocumentWriteError
from models.search_models import ReplacementDiff
from utils.pattern_compiler import compile_pattern
from utils.template import expand_template

logger = logging.getLogger(__name__)

_WHOLE_LINE_RE = re.compile(r'.*', re.DOTALL)


def _split_cr(raw_line):
    """Split a raw line into its body and an optional trailing carriage return."""
    if raw_line.endswith('\r'):
        return raw_line[:-1], '\r'
    return raw_line, ''


class _DocumentReplacement:
    """Outcome of replacing inside one document"""

    def __init__(self, document_id):
        self.document_id = document_id
        self.count = 0
        self.consumed = []
        self.touched = set()
        self.line_texts = {}
        self.line_edits = {}
        self.requires_full_rescan = False
        self.error = None


class ReplacementEngine:
    """Applies replacement templates to search results through a document host"""

    def __init__(self, host):
        self.host = host
        self._locks = defaultdict(asyncio.Lock)

    def resolve_scope(self, results, scope):
        """Group the records a scope targets by document.

        Args:
            results: Current result list
            scope: ReplaceOne, ReplaceSelected, ReplaceDocument or ReplaceCorpus

        Returns:
            dict: document_id -> list of (index, record); index is None for a
            ReplaceOne record that is not in the result list
        """
        grouped = defaultdict(list)
        if scope.mode == "one":
            index = next((i for i, r in enumerate(results) if r == scope.record), None)
            if index is None:
                logger.warning("Record for %s line %d is not in the result list",
                               scope.record.document_id, scope.record.line_index)
            grouped[scope.record.document_id].append((index, scope.record))
        elif scope.mode == "selected":
            for index in sorted(scope.indices):
                if 0 <= index < len(results):
                    grouped[results[index].document_id].append((index, results[index]))
                else:
                    logger.warning("Ignoring selected index %d outside %d results", index, len(results))
        elif scope.mode == "document":
            for index, record in enumerate(results):
                if record.document_id == scope.document_id:
                    grouped[record.document_id].append((index, record))
        elif scope.mode == "corpus":
            for index, record in enumerate(results):
                grouped[record.document_id].append((index, record))
        else:
            raise ValueError(f"Unknown replacement scope: {scope!r}")
        return dict(grouped)

    async def replace(self, results, scope, template, options):
        """Apply a replacement and describe what changed.

        Args:
            results: The result list the scope refers to
            scope: Replacement scope
            template: Replacement template
            options: Frozen MatchOptions of the search that produced results

        Returns:
            ReplacementDiff; per-document failures are listed in failed_documents
        """
        diff = ReplacementDiff(mode=scope.mode, result_count=len(results))
        grouped = self.resolve_scope(results, scope)
        if not grouped:
            return diff

        replace_all = scope.mode in ("document", "corpus")
        outcomes = await asyncio.gather(*(
            self._replace_in_document(document_id, entries, template, options, replace_all)
            for document_id, entries in grouped.items()
        ))

        consumed = []
        for outcome in outcomes:
            if outcome.error is not None:
                diff.failed_documents[outcome.document_id] = outcome.error
                continue
            if outcome.requires_full_rescan:
                diff.requires_full_rescan = True
            if outcome.count == 0:
                continue
            diff.total_replacements += outcome.count
            diff.documents_modified.add(outcome.document_id)
            diff.touched_lines[outcome.document_id] = outcome.touched
            diff.line_texts[outcome.document_id] = outcome.line_texts
            diff.line_edits[outcome.document_id] = outcome.line_edits
            consumed.extend(outcome.consumed)

        if any(index is None for entries in grouped.values() for index, _ in entries):
            diff.requires_full_rescan = True
        diff.consumed_indices = tuple(sorted({i for i in consumed if i is not None}, reverse=True))

        logger.info("Replaced %d match(es) in %d document(s) [%s]%s",
                    diff.total_replacements, len(diff.documents_modified), scope.mode,
                    f", {len(diff.failed_documents)} failed" if diff.failed_documents else "")
        return diff

    async def _replace_in_document(self, document_id, entries, template, options, replace_all):
        outcome = _DocumentReplacement(document_id)
        async with self._locks[document_id]:
            try:
                text = await self.host.read_document(document_id)
            except (DocumentUnavailable, OSError, UnicodeError) as e:
                logger.warning("Cannot read %s for replacement: %s", document_id, e)
                outcome.error = str(e)
                return outcome

            matcher = compile_pattern(entries[0][1].source_query, options)
            if matcher.spans_lines and not matcher.is_match_anything:
                new_text = self._replace_across_lines(text, entries, template, matcher, replace_all, outcome)
            else:
                new_text = self._replace_in_lines(text, entries, template, matcher, replace_all, outcome)

            if outcome.count == 0:
                return outcome
            try:
                await self.host.write_document(document_id, new_text)
            except (DocumentWriteError, OSError, UnicodeError) as e:
                logger.warning("Failed to write %s: %s", document_id, e)
                outcome.error = str(e)
                outcome.count = 0
                outcome.consumed = []
                outcome.touched = set()
                outcome.line_texts = {}
                outcome.line_edits = {}
        return outcome

    def _line_matches(self, body, matcher):
        """Non-empty matches of a line, keyed by start column."""
        if matcher.is_match_anything:
            return {0: _WHOLE_LINE_RE.fullmatch(body)} if body.strip() else {}
        return {m.start(): m for m in matcher.finditer(body) if m.end() > m.start()}

    def _replace_in_lines(self, text, entries, template, matcher, replace_all, outcome):
        use_pattern = matcher.options.use_pattern
        lines = text.split('\n')
        by_line = defaultdict(list)
        for index, record in entries:
            by_line[record.line_index].append((index, record))

        # Bottom-up so earlier lines and columns stay valid
        for line_index in sorted(by_line, reverse=True):
            line_entries = by_line[line_index]
            if line_index >= len(lines):
                outcome.requires_full_rescan = True
                continue
            body, cr = _split_cr(lines[line_index])
            matches = self._line_matches(body, matcher)

            if replace_all:
                # One pass over the line, never once per record
                pieces = []
                edits = []
                last = 0
                for start in sorted(matches):
                    m = matches[start]
                    replacement = expand_template(template, m, body, use_pattern)
                    pieces.append(body[last:m.start()])
                    pieces.append(replacement)
                    edits.append((m.start(), m.end(), len(replacement)))
                    last = m.end()
                if not matches:
                    outcome.requires_full_rescan = True
                    continue
                pieces.append(body[last:])
                new_body = ''.join(pieces)
                outcome.count += len(matches)
                outcome.consumed.extend(index for index, _ in line_entries)
            else:
                new_body = body
                edits = []
                for index, record in sorted(line_entries, key=lambda e: e[1].column or 0, reverse=True):
                    m = matches.get(record.column or 0)
                    if m is None or m.group() != record.matched_text:
                        logger.debug("Stale match in %s line %d col %s", record.document_id,
                                     line_index, record.column)
                        outcome.requires_full_rescan = True
                        continue
                    replacement = expand_template(template, m, body, use_pattern)
                    new_body = new_body[:m.start()] + replacement + new_body[m.end():]
                    edits.append((m.start(), m.end(), len(replacement)))
                    outcome.consumed.append(index)
                if not edits:
                    continue
                outcome.count += len(edits)

            if '\n' in new_body:
                outcome.requires_full_rescan = True
            lines[line_index] = new_body + cr
            outcome.touched.add(line_index)
            outcome.line_texts[line_index] = new_body
            outcome.line_edits[line_index] = sorted(edits)
        return '\n'.join(lines)

    def _replace_across_lines(self, text, entries, template, matcher, replace_all, outcome):
        """Multi-line pattern mode: matches may span lines, so work on the whole text."""
        use_pattern = matcher.options.use_pattern
        outcome.requires_full_rescan = True
        matches = {m.start(): m for m in matcher.finditer(text) if m.end() > m.start()}
        starts = line_starts(text)

        if replace_all:
            targets = [(None, m) for _, m in sorted(matches.items())]
            outcome.consumed.extend(index for index, _ in entries)
        else:
            targets = []
            for index, record in entries:
                if record.line_index >= len(starts):
                    continue
                m = matches.get(starts[record.line_index] + (record.column or 0))
                if m is None or m.group() != record.matched_text:
                    continue
                targets.append((index, m))
                outcome.consumed.append(index)

        new_text = text
        for _, m in sorted(targets, key=lambda t: t[1].start(), reverse=True):
            replacement = expand_template(template, m, text, use_pattern)
            new_text = new_text[:m.start()] + replacement + new_text[m.end():]
            outcome.count += 1
            # Line numbers of the original text; the diff forces a rescan anyway
            first = bisect.bisect_right(starts, m.start()) - 1
            outcome.touched.update(range(first, first + m.group().count('\n') + 1))
        return new_text
