"""
Background polling of external endpoints.

``PeriodicPoller`` runs a fetcher on a daemon thread every *interval*
seconds and keeps the last value and last error for readers.  A failed
fetch is logged and retried at the next tick; there is no backoff.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)


class PeriodicPoller:
    def __init__(self, name: str, fetcher: Callable[[], Any], interval: float) -> None:
        self.name = name
        self._fetcher = fetcher
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._value: Any = None
        self._error: Exception | None = None
        self._updated_at: datetime | None = None

    def poll_once(self) -> Any:
        """Run the fetcher now and record its outcome."""
        try:
            value = self._fetcher()
        except Exception as exc:
            logger.warning("poller %s failed: %s", self.name, exc)
            with self._lock:
                self._error = exc
            return None
        with self._lock:
            self._value = value
            self._error = None
            self._updated_at = datetime.now(timezone.utc)
        return value

    def _run(self) -> None:
        while not self._stop.is_set():
            self.poll_once()
            self._stop.wait(self._interval)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"poller-{self.name}", daemon=True)
        self._thread.start()
        logger.info("poller %s started (every %.0fs)", self.name, self._interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def value(self) -> Any:
        with self._lock:
            return self._value

    @property
    def error(self) -> Exception | None:
        with self._lock:
            return self._error

    @property
    def updated_at(self) -> datetime | None:
        with self._lock:
            return self._updated_at
