"""
Result reconciliation after a replacement.
Removes consumed records, revalidates the records left on touched lines and
keeps the caller's selection pointing at the same records. Never mutates its
inputs; gives up with needs_full_rescan when the diff cannot be trusted.
"""

import bisect
import logging
from collections import defaultdict
from dataclasses import replace

from constants import REVALIDATION_REMOVAL_MULTIPLIER
from models.search_models import ReconcileResult

logger = logging.getLogger(__name__)


def remap_selection(selection, removed_indices):
    """Shift selected indices past a set of removed indices.

    Args:
        selection: Iterable of selected result-list indices
        removed_indices: Indices removed from the result list

    Returns:
        set: New indices; a removed index drops out of the selection
    """
    removed = sorted(set(removed_indices))
    removed_set = set(removed)
    remapped = set()
    for index in selection:
        if index in removed_set:
            continue
        remapped.add(index - bisect.bisect_left(removed, index))
    return remapped


def shift_column(column, edits):
    """Map a column on a line to the same position after the given edits.

    Args:
        column: Column in the original line, or None
        edits: Ascending (old_start, old_end, new_length) spans rewritten on the line

    Returns:
        int: Column in the new line text; 0 when column is None
    """
    if column is None:
        return 0
    shifted = column
    for old_start, old_end, new_length in edits:
        if old_end > column:
            break
        shifted += new_length - (old_end - old_start)
    return shifted


def remove_indices(results, indices):
    """Return a copy of results without the given indices."""
    kept = list(results)
    # Descending, so earlier positions are unaffected by each deletion
    for index in sorted(set(indices), reverse=True):
        del kept[index]
    return kept


class ResultReconciler:
    """Applies a ReplacementDiff to a result list and selection"""

    def __init__(self, removal_multiplier=REVALIDATION_REMOVAL_MULTIPLIER):
        self.removal_multiplier = removal_multiplier

    def reconcile(self, results, selection, diff):
        """Update results and selection after a replacement.

        Args:
            results: The result list the replacement was computed against
            selection: Set of selected indices into results
            diff: ReplacementDiff from ReplacementEngine.replace

        Returns:
            ReconcileResult; needs_full_rescan is set when the caller must search again
        """
        if diff.requires_full_rescan:
            return self._give_up("replacement requested a full rescan", logging.INFO)
        if diff.result_count != len(results):
            return self._give_up(f"diff was computed for {diff.result_count} results, "
                                 f"list has {len(results)}")
        consumed = set(diff.consumed_indices)
        if any(not 0 <= index < len(results) for index in consumed):
            return self._give_up("consumed index outside the result list")

        selection = {i for i in selection if 0 <= i < len(results)}
        remaining = remove_indices(results, consumed)
        selection = remap_selection(selection, consumed)

        revalidated, invalid = self._revalidate(remaining, diff)
        if invalid is None:
            return self._give_up("touched line has no replacement text")
        limit = self.removal_multiplier * max(1, len(consumed))
        if len(invalid) > limit:
            return self._give_up(f"revalidation removed {len(invalid)} records, "
                                 f"expected at most {limit}")

        remaining = remove_indices(revalidated, invalid)
        selection = remap_selection(selection, invalid)
        logger.debug("Reconciled: %d consumed, %d invalidated, %d remain",
                     len(consumed), len(invalid), len(remaining))
        return ReconcileResult(
            results=remaining,
            selection=selection,
            removed_count=len(consumed) + len(invalid),
        )

    def _revalidate(self, records, diff):
        """Check the records on touched lines against the new line text.

        Records on one line are walked left to right. A survivor's old column is
        shifted by the length changes of the edits before it on that line, and
        its matched text must be found from there, at or after the end of the
        previous survivor.

        Returns:
            (updated records, invalid indices), or (records, None) if a touched
            line has no recorded text
        """
        by_line = defaultdict(list)
        for index, record in enumerate(records):
            if record.line_index in diff.touched_lines.get(record.document_id, ()):
                by_line[(record.document_id, record.line_index)].append(index)

        updated = list(records)
        invalid = []
        for (document_id, line_index), indices in by_line.items():
            text = diff.line_texts.get(document_id, {}).get(line_index)
            if text is None:
                return records, None
            edits = diff.line_edits.get(document_id, {}).get(line_index, ())
            cursor = 0
            for index in indices:
                record = records[index]
                start = max(cursor, shift_column(record.column, edits))
                column = text.find(record.matched_text, start) if record.matched_text else -1
                if column == -1:
                    invalid.append(index)
                    continue
                updated[index] = replace(record, column=column, line_text=text)
                cursor = column + len(record.matched_text)
        return updated, invalid

    def _give_up(self, reason, level=logging.WARNING):
        logger.log(level, "Falling back to a full rescan: %s", reason)
        return ReconcileResult.rescan(reason)
