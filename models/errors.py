"""
Exceptions raised by the find and replace engine.
"""


class FindReplaceError(Exception):
    """Base class for engine errors."""


class InvalidPattern(FindReplaceError):
    """The query could not be compiled into a pattern."""

    def __init__(self, query, reason):
        super().__init__(f"Invalid pattern {query!r}: {reason}")
        self.query = query
        self.reason = reason


class SearchCancelled(FindReplaceError):
    """A scan was superseded by a newer request."""


class DocumentUnavailable(FindReplaceError):
    """A document is missing or cannot be read."""

    def __init__(self, document_id, reason=""):
        message = f"Document unavailable: {document_id}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.document_id = document_id


class DocumentWriteError(FindReplaceError):
    """A document could not be written back to the host."""

    def __init__(self, document_id, reason=""):
        message = f"Failed to write document: {document_id}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.document_id = document_id


class StaleSessionWarning(RuntimeWarning):
    """A previous search session never reported a terminal state."""
