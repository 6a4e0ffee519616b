"""
Cooperative cancellation token checked at scan checkpoints.
"""

from models.errors import SearchCancelled


class CancellationToken:
    """Flag shared between a search session and its scanner"""

    def __init__(self):
        self._cancelled = False
        self.reason = ""

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self, reason="superseded"):
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    def raise_if_cancelled(self):
        """Raise SearchCancelled if cancel() has been called."""
        if self._cancelled:
            raise SearchCancelled(self.reason)
