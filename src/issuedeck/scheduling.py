"""Replaceable deferred work items.

``DeferredSlot`` holds at most one armed timer. Arming it again cancels the
previous timer first, so a burst of ``arm()`` calls collapses into a single
callback once the bursts stop for ``delay`` seconds.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class DeferredSlot:
    """A single-slot cancellable timer.

    Each ``arm()`` bumps a generation counter. A timer only runs its callback
    if its generation is still current when it fires; the check and the
    bump happen under the same lock, so a ``cancel()`` that returns before the
    timer fires guarantees the callback never runs.
    """

    def __init__(self, name: str = "deferred") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._generation = 0
        self._timer: threading.Timer | None = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def arm(self, delay: float, callback: Callable[[], object]) -> None:
        """Cancel any armed timer and schedule *callback* after *delay* seconds."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = threading.Timer(delay, self._fire, args=(generation, callback))
            timer.daemon = True
            timer.name = f"{self.name}-{generation}"
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        """Cancel the armed timer. Returns True if one was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            self._generation += 1
            return True

    def join(self, timeout: float | None = None) -> None:
        """Wait for the currently armed timer (if any) to finish firing."""
        with self._lock:
            timer = self._timer
        if timer is not None:
            timer.join(timeout)

    def _fire(self, generation: int, callback: Callable[[], object]) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._generation += 1
        try:
            callback()
        except Exception:
            logger.exception("Deferred callback %r failed", self.name)
        finally:
            with self._lock:
                if self._timer is not None and self._timer.name == f"{self.name}-{generation}":
                    self._timer = None
