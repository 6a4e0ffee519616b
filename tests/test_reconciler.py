"""
Tests for result reconciliation in managers/reconciler.py
"""

import pytest

from managers.reconciler import ResultReconciler, remap_selection, remove_indices, shift_column
from models.search_models import MatchRecord, ReplacementDiff


def record(document_id, line_index, column, matched_text, line_text):
    return MatchRecord(document_id, line_index, column, matched_text, line_text, matched_text)


@pytest.fixture
def reconciler():
    return ResultReconciler()


class TestRemapSelection:
    """Tests for remap_selection"""

    def test_remap_after_removals(self):
        """Test that {0,2,4} minus {1,3} becomes {0,1,2}"""
        assert remap_selection({0, 2, 4}, {1, 3}) == {0, 1, 2}

    def test_removed_indices_drop_out(self):
        """Test that a consumed index is no longer selected"""
        assert remap_selection({1, 2, 5}, {2}) == {1, 4}

    def test_nothing_removed(self):
        """Test that the selection is unchanged when nothing is removed"""
        assert remap_selection({0, 3}, []) == {0, 3}

    def test_remove_indices(self):
        """Test removing several indices at once"""
        assert remove_indices(['a', 'b', 'c', 'd', 'e'], [3, 1]) == ['a', 'c', 'e']


class TestReconcile:
    """Tests for ResultReconciler.reconcile"""

    def test_consumed_records_removed(self, reconciler):
        """Test removing consumed records and remapping the selection"""
        results = [record('A', i, 0, 'x', 'x') for i in range(5)]
        diff = ReplacementDiff(mode='selected', result_count=5, consumed_indices=(3, 1))
        outcome = reconciler.reconcile(results, {0, 2, 4}, diff)

        assert not outcome.needs_full_rescan
        assert [r.line_index for r in outcome.results] == [0, 2, 4]
        assert outcome.selection == {0, 1, 2}
        assert outcome.removed_count == 2

    def test_inputs_not_mutated(self, reconciler):
        """Test that reconciliation returns new objects"""
        results = [record('A', i, 0, 'x', 'x') for i in range(3)]
        selection = {0, 1}
        diff = ReplacementDiff(mode='one', result_count=3, consumed_indices=(1,))
        reconciler.reconcile(results, selection, diff)
        assert len(results) == 3
        assert selection == {0, 1}

    def test_survivor_on_touched_line_updated(self, reconciler):
        """Test that a remaining match on a touched line gets the new text and column"""
        results = [
            record('A', 0, 0, 'cat', 'cat cat'),
            record('A', 0, 4, 'cat', 'cat cat'),
        ]
        diff = ReplacementDiff(
            mode='one', result_count=2, total_replacements=1, documents_modified={'A'},
            consumed_indices=(0,), touched_lines={'A': {0}}, line_texts={'A': {0: 'tiger cat'}},
        )
        outcome = reconciler.reconcile(results, {1}, diff)

        assert len(outcome.results) == 1
        assert outcome.results[0].column == 6
        assert outcome.results[0].line_text == 'tiger cat'
        assert outcome.selection == {0}

    def test_survivor_that_no_longer_matches_removed(self, reconciler):
        """Test that a record whose text vanished from its line is dropped"""
        results = [
            record('A', 0, 0, 'ab', 'ab ab'),
            record('A', 0, 3, 'ab', 'ab ab'),
        ]
        # Replacing the first 'ab' with '' and a separate edit removed the second
        diff = ReplacementDiff(
            mode='one', result_count=2, total_replacements=1, documents_modified={'A'},
            consumed_indices=(0,), touched_lines={'A': {0}}, line_texts={'A': {0: ' xy'}},
        )
        outcome = reconciler.reconcile(results, {1}, diff)
        assert outcome.results == []
        assert outcome.selection == set()
        assert outcome.removed_count == 2

    def test_records_walked_in_order(self, reconciler):
        """Test that two survivors cannot validate against the same occurrence"""
        results = [
            record('A', 0, 0, 'x', 'x x x'),
            record('A', 0, 2, 'x', 'x x x'),
            record('A', 0, 4, 'x', 'x x x'),
        ]
        diff = ReplacementDiff(
            mode='one', result_count=3, consumed_indices=(0,),
            touched_lines={'A': {0}}, line_texts={'A': {0: 'y x'}},
        )
        outcome = reconciler.reconcile(results, set(), diff)
        assert [r.column for r in outcome.results] == [2]

    def test_untouched_lines_kept_as_is(self, reconciler):
        """Test that records on other lines and documents are not revalidated"""
        results = [
            record('A', 0, 0, 'cat', 'cat'),
            record('A', 1, 0, 'cat', 'cat'),
            record('B', 0, 0, 'cat', 'cat'),
        ]
        diff = ReplacementDiff(
            mode='one', result_count=3, consumed_indices=(0,),
            touched_lines={'A': {0}}, line_texts={'A': {0: 'dog'}},
        )
        outcome = reconciler.reconcile(results, {2}, diff)
        assert outcome.results == results[1:]
        assert outcome.selection == {1}

    def test_requires_full_rescan(self, reconciler):
        """Test that the engine's rescan request is honoured"""
        results = [record('A', 0, 0, 'x', 'x')]
        diff = ReplacementDiff(mode='corpus', result_count=1, consumed_indices=(0,), requires_full_rescan=True)
        outcome = reconciler.reconcile(results, {0}, diff)
        assert outcome.needs_full_rescan
        assert outcome.results == []

    def test_result_list_changed_since_replace(self, reconciler):
        """Test that a diff for a different list is not applied"""
        results = [record('A', 0, 0, 'x', 'x')]
        diff = ReplacementDiff(mode='one', result_count=4, consumed_indices=(0,))
        assert reconciler.reconcile(results, set(), diff).needs_full_rescan

    def test_consumed_index_out_of_range(self, reconciler):
        """Test that an impossible consumed index falls back to a rescan"""
        results = [record('A', 0, 0, 'x', 'x')]
        diff = ReplacementDiff(mode='one', result_count=1, consumed_indices=(5,))
        assert reconciler.reconcile(results, set(), diff).needs_full_rescan

    def test_too_many_removals_fall_back(self, reconciler):
        """Test that revalidation removing far more than expected gives up"""
        results = [record('A', 0, i * 2, 'x', 'x x x x x x') for i in range(6)]
        diff = ReplacementDiff(
            mode='one', result_count=6, consumed_indices=(0,),
            touched_lines={'A': {0}}, line_texts={'A': {0: 'nothing left'}},
        )
        outcome = reconciler.reconcile(results, {3}, diff)
        assert outcome.needs_full_rescan
        assert outcome.reason

    def test_multiplier_is_configurable(self):
        """Test that a larger multiplier tolerates the same removals"""
        results = [record('A', 0, i * 2, 'x', 'x x x x x x') for i in range(6)]
        diff = ReplacementDiff(
            mode='one', result_count=6, consumed_indices=(0,),
            touched_lines={'A': {0}}, line_texts={'A': {0: 'nothing left'}},
        )
        outcome = ResultReconciler(removal_multiplier=5).reconcile(results, set(), diff)
        assert not outcome.needs_full_rescan
        assert outcome.results == []


class TestShiftColumn:
    """Tests for shift_column"""

    def test_edits_before_column(self):
        """Test that only edits ending at or before the column move it"""
        edits = [(0, 3, 4), (8, 11, 0)]
        assert shift_column(4, edits) == 5
        assert shift_column(12, edits) == 10

    def test_no_edits(self):
        """Test that a column without edits is unchanged"""
        assert shift_column(7, []) == 7

    def test_unknown_column(self):
        """Test that an unknown column starts at the beginning of the line"""
        assert shift_column(None, [(0, 3, 9)]) == 0


class TestReplacementContainingMatch:
    """Tests for survivors on a line whose replacement contains the matched text"""

    def test_survivor_not_moved_onto_inserted_text(self, reconciler):
        """Test that 'cat cat' -> 'cats cat' keeps the survivor on the second cat"""
        results = [
            record('A', 0, 0, 'cat', 'cat cat'),
            record('A', 0, 4, 'cat', 'cat cat'),
        ]
        diff = ReplacementDiff(
            mode='one', result_count=2, total_replacements=1, documents_modified={'A'},
            consumed_indices=(0,), touched_lines={'A': {0}}, line_texts={'A': {0: 'cats cat'}},
            line_edits={'A': {0: [(0, 3, 4)]}},
        )
        outcome = reconciler.reconcile(results, {1}, diff)

        assert [r.column for r in outcome.results] == [5]
        assert outcome.results[0].line_text == 'cats cat'
        assert outcome.selection == {0}

    def test_survivor_before_the_edit_keeps_its_column(self, reconciler):
        """Test that an edit after a survivor does not shift it"""
        results = [
            record('A', 0, 0, 'cat', 'cat cat'),
            record('A', 0, 4, 'cat', 'cat cat'),
        ]
        diff = ReplacementDiff(
            mode='one', result_count=2, consumed_indices=(1,),
            touched_lines={'A': {0}}, line_texts={'A': {0: 'cat cat!'}},
            line_edits={'A': {0: [(4, 7, 4)]}},
        )
        outcome = reconciler.reconcile(results, set(), diff)
        assert [r.column for r in outcome.results] == [0]
