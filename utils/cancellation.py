"""
Cooperative cancellation for long-running reconciliation runs.
"""

import threading

from exceptions import ReconciliationCancelledError


class CancellationToken:
    """
    Flag checked at page, batch and stage boundaries.

    Also doubles as an interruptible sleep so backoff and rate-limit
    pauses end early once cancelled. Cancelling a token cancels every
    child made from it; cancelling a child leaves the parent alone.
    """

    def __init__(self):
        self._event = threading.Event()
        self._children: list["CancellationToken"] = []
        self._lock = threading.Lock()

    def child(self) -> "CancellationToken":
        """Token cancelled with this one, but cancellable on its own."""
        token = CancellationToken()
        with self._lock:
            self._children.append(token)
            if self._event.is_set():
                token.cancel()
        return token

    def cancel(self) -> None:
        with self._lock:
            self._event.set()
            children = list(self._children)
        for token in children:
            token.cancel()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise ReconciliationCancelledError(stage)

    def sleep(self, seconds: float) -> None:
        """Wait up to `seconds`; returns early on cancel."""
        self._event.wait(seconds)
