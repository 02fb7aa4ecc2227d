from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

"""Completion events.

After an import changes data, an ImportCompleted event is broadcast so other
parts of the system (list views, caches) can refresh. Delivery is synchronous
and fire-and-forget: there is no acknowledgement, and a failing listener is
logged without affecting the import or the other listeners.
"""

__all__ = [
    "ImportCompleted",
    "EventBus",
    "default_bus",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportCompleted:
    entity: str
    success_count: int
    update_count: int
    source: str  # e.g. "csv-import"


Listener = Callable[[ImportCompleted], None]


class EventBus:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, event: ImportCompleted) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("event listener %r failed for %s", listener, event)

    def __len__(self) -> int:
        return len(self._listeners)


default_bus = EventBus()
