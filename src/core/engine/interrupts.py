"""
Deferred interrupts — SIGINT/SIGTERM become a cancellation flag.

While a plan runs, the signal handlers only record the request; the
executor polls the token between steps, so a step is never abandoned
halfway (a package manager killed mid-transaction can leave its lock
and database in a bad state). Child processes run in their own session
and never see the terminal's Ctrl-C.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancelToken:
    """Thread-safe "stop before the next step" flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.signal_name: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.signal_name = reason
        self._event.set()


@contextmanager
def deferred_interrupts(token: CancelToken) -> Iterator[CancelToken]:
    """Route SIGINT/SIGTERM to ``token`` for the duration of the block.

    Handlers can only be installed from the main thread; elsewhere the
    token is still usable through ``cancel()`` but signals keep their
    existing behavior. Previous handlers are restored on exit.
    """
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _handler(signum: int, frame: Any) -> None:
        name = signal.Signals(signum).name
        if token.cancelled:
            logger.warning("%s received again; still finishing the current step", name)
        else:
            logger.warning("%s received; stopping after the current step", name)
        token.cancel(name)

    previous = {sig: signal.signal(sig, _handler) for sig in _SIGNALS}
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
