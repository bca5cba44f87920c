"""Debounced auto-save trigger."""

import logging
import threading
from typing import Any, Callable, Optional

from labbook.config import AUTO_SAVE_DELAY_SECONDS
from labbook.protocol import AutoSaveRequest

logger = logging.getLogger(__name__)


class AutoSaver:
    """Fire an auto-save request once edits have been quiet for `delay` seconds.

    Every schedule() restarts the quiet period. While a request is
    outstanding (sent but not acknowledged by the host) further timer
    expiries are dropped; only the latest content matters, so nothing is
    queued.
    """

    def __init__(self, on_auto_save: Callable[[AutoSaveRequest], Any], delay: float = AUTO_SAVE_DELAY_SECONDS):
        self.on_auto_save = on_auto_save
        self.delay = delay
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._saving = False

    @property
    def pending(self) -> bool:
        """True while a request is waiting for acknowledge()."""
        with self._lock:
            return self._saving

    def schedule(self) -> None:
        """Note an edit and restart the quiet period."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def acknowledge(self) -> None:
        """Host finished saving."""
        with self._lock:
            self._saving = False

    def cancel(self) -> None:
        """Drop any scheduled save."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._lock:
            if self._timer is threading.current_thread():
                self._timer = None
            if self._saving:
                logger.debug("Auto-save skipped; previous request still pending")
                return
            self._saving = True
        try:
            self.on_auto_save(AutoSaveRequest())
        except Exception:
            logger.exception("Auto-save handler failed")
            self.acknowledge()
