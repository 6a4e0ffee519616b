"""
Data model for searches, replacements and reconciliation.
All records are immutable; result lists are plain lists owned by the caller.
"""

import enum
from dataclasses import dataclass, field, fields, replace


class SessionState(enum.Enum):
    """Lifecycle of a single search session"""
    IDLE = "idle"
    STARTING = "starting"
    SCANNING = "scanning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self):
        return self in (SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED)


@dataclass(frozen=True)
class MatchOptions:
    """Matching switches, frozen for the duration of a search"""
    case_sensitive: bool = False
    whole_word: bool = False
    use_pattern: bool = False
    multiline: bool = False

    def snapshot(self):
        """Return a detached copy of these options."""
        return replace(self)

    def with_option(self, name, value):
        """Return new options with one switch changed.

        Args:
            name: Field name, e.g. 'whole_word'
            value: New boolean value

        Raises:
            KeyError: If name is not an option
        """
        if name not in {f.name for f in fields(self)}:
            raise KeyError(name)
        return replace(self, **{name: bool(value)})

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data):
        """Build options from a settings dict, ignoring unknown keys."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: bool(v) for k, v in data.items() if k in known})


@dataclass(frozen=True)
class MatchRecord:
    """One located occurrence of a query in one line of one document"""
    document_id: str
    line_index: int  # 0-based
    column: int | None  # 0-based, None when unknown
    matched_text: str
    line_text: str
    source_query: str

    @property
    def sort_key(self):
        return (self.document_id, self.line_index, self.column or 0)

    @property
    def end_column(self):
        return (self.column or 0) + len(self.matched_text)


def sort_records(records):
    """Sort records by (document, line, column) in place and return them."""
    records.sort(key=lambda r: r.sort_key)
    return records


# Replacement scopes

@dataclass(frozen=True)
class ReplaceOne:
    """Replace a single match"""
    record: MatchRecord
    mode = "one"


@dataclass(frozen=True)
class ReplaceSelected:
    """Replace the matches at the given result-list indices"""
    indices: frozenset[int]
    mode = "selected"

    def __init__(self, indices):
        object.__setattr__(self, 'indices', frozenset(indices))


@dataclass(frozen=True)
class ReplaceDocument:
    """Replace every match in one document"""
    document_id: str
    mode = "document"


@dataclass(frozen=True)
class ReplaceCorpus:
    """Replace every match in the corpus"""
    mode = "corpus"


@dataclass
class ReplacementDiff:
    """What a replacement operation changed.

    consumed_indices are positions in the caller's result list (descending).
    line_texts holds the post-replacement text of every touched line and
    line_edits the (old_start, old_end, new_length) spans rewritten on it,
    ascending, in the line's original columns.
    """
    mode: str
    result_count: int
    total_replacements: int = 0
    documents_modified: set[str] = field(default_factory=set)
    consumed_indices: tuple[int, ...] = ()
    touched_lines: dict[str, set[int]] = field(default_factory=dict)
    line_texts: dict[str, dict[int, str]] = field(default_factory=dict)
    line_edits: dict[str, dict[int, list[tuple[int, int, int]]]] = field(default_factory=dict)
    failed_documents: dict[str, str] = field(default_factory=dict)
    requires_full_rescan: bool = False

    @property
    def has_failures(self):
        return bool(self.failed_documents)


@dataclass
class SearchOutcome:
    """Final result of one search session"""
    query: str
    options: MatchOptions
    results: list = field(default_factory=list)
    total_count: int = 0
    state: SessionState = SessionState.COMPLETED
    documents_scanned: int = 0
    documents_with_results: int = 0
    duration: float = 0.0

    @property
    def truncated(self):
        return self.total_count > len(self.results)

    def summary(self):
        """Human readable result count, e.g. '1000 of 2345 results'."""
        if self.truncated:
            return f"{len(self.results)} of {self.total_count} results"
        noun = "result" if self.total_count == 1 else "results"
        return f"{self.total_count} {noun}"


@dataclass
class ReconcileResult:
    """Updated result list and selection after a replacement"""
    results: list
    selection: set
    needs_full_rescan: bool = False
    removed_count: int = 0
    reason: str = ""

    @classmethod
    def rescan(cls, reason):
        return cls(results=[], selection=set(), needs_full_rescan=True, reason=reason)
