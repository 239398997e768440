"""Build log stream — where skip/fallback/failure events become visible.

Every message written to a ``BuildLog`` is also forwarded to the
``torrentmirror.build`` logger, so a host without a CI log stream still
sees them in its process log.  Hosts that own a real build log subclass
``BuildLog`` and override ``_emit``.
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger("torrentmirror.build")


class BuildLog:
    """Thread-safe, bounded in-memory build log.

    Parameters
    ----------
    max_lines:
        Maximum number of lines retained in ``lines``; older lines are
        dropped first.
    """

    def __init__(self, max_lines: int = 1000) -> None:
        self._max_lines = max_lines
        self._lines: list[str] = []
        self._lock = threading.Lock()
        self._progress: list[str] = []

    @property
    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)

    def message(self, text: str) -> None:
        """Informational line (skips, fallbacks, successes)."""
        self._emit(logging.INFO, text)

    def warning(self, text: str) -> None:
        """Something failed but the build continues."""
        self._emit(logging.WARNING, text)

    def progress_started(self, text: str) -> None:
        with self._lock:
            self._progress.append(text)
        self._emit(logging.INFO, text)

    def progress_finished(self) -> None:
        with self._lock:
            if self._progress:
                self._progress.pop()

    def _emit(self, level: int, text: str) -> None:
        with self._lock:
            self._lines.append(text)
            if len(self._lines) > self._max_lines:
                del self._lines[: len(self._lines) - self._max_lines]
        logger.log(level, text)

    def __repr__(self) -> str:
        return f"BuildLog(lines={len(self._lines)})"
