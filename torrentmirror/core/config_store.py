"""Live configuration: an immutable snapshot swapped under a lock.

Readers call ``ConfigStore.current`` and keep using the snapshot they got
for the rest of their operation, so a change mid-scan only affects the
next scan or seed call.  Writers replace the snapshot with ``update()``;
subscribers are notified once per changed field after the swap.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from torrentmirror.models.config import CONFIG_FIELDS, SeederConfig

logger = logging.getLogger(__name__)

ConfigListener = Callable[[str, Any, SeederConfig], None]


class ConfigStore:
    """Holds the current ``SeederConfig`` and its change listeners."""

    def __init__(self, initial: SeederConfig | None = None) -> None:
        self._current = initial or SeederConfig()
        self._lock = threading.Lock()
        self._listeners: list[ConfigListener] = []

    @property
    def current(self) -> SeederConfig:
        return self._current

    def subscribe(self, listener: ConfigListener) -> Callable[[], None]:
        """Register *listener(field, new_value, snapshot)*.

        Returns a callable that removes the subscription.
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def update(self, **changes: Any) -> SeederConfig:
        """Swap in a new snapshot with *changes* applied.

        Raises
        ------
        KeyError
            If a field name is not a ``SeederConfig`` field.
        """
        unknown = set(changes) - CONFIG_FIELDS
        if unknown:
            raise KeyError(f"Unknown configuration fields: {sorted(unknown)}")

        with self._lock:
            old = self._current
            new = SeederConfig.model_validate({**old.model_dump(), **changes})
            self._current = new
            listeners = list(self._listeners)

        changed = [f for f in changes if getattr(old, f) != getattr(new, f)]
        for field in changed:
            value = getattr(new, field)
            logger.info("Configuration changed: %s=%r", field, value)
            for listener in listeners:
                try:
                    listener(field, value, new)
                except Exception:
                    logger.exception("Configuration listener failed for %s", field)
        return new
