"""Cooperative cancellation signal for one extraction run."""

from __future__ import annotations

import threading

from ..errors import ExtractionCancelled


class CancellationToken:
    """Thread-safe flag checked before every external call.

    In-flight calls are never interrupted; the token only prevents new ones
    from starting.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExtractionCancelled(self._reason or "cancelled by caller")


__all__ = ["CancellationToken"]
