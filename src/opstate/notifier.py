"""Notifier — per-id listener sets with synchronous fan-out.

Listeners for an id are kept in registration order (a dict used as an
ordered set). A failing listener is logged and skipped so the remaining
listeners still see the update.
"""

from __future__ import annotations

import logging
from typing import Callable

from opstate.state import LoadingState

logger = logging.getLogger("opstate.notifier")

Listener = Callable[[LoadingState], None]
Disposer = Callable[[], None]


class Notifier:
    """Pub-sub hub keyed by operation id."""

    def __init__(self) -> None:
        self._listeners: dict[str, dict[Listener, None]] = {}

    def subscribe(self, op_id: str, listener: Listener) -> Disposer:
        """Register listener for op_id. Returns a function that removes it."""
        listeners = self._listeners.setdefault(op_id, {})
        listeners[listener] = None

        def _unsubscribe() -> None:
            # Only the set this subscription joined; it may have been discarded since.
            if self._listeners.get(op_id) is not listeners:
                return
            listeners.pop(listener, None)
            if not listeners:
                del self._listeners[op_id]

        return _unsubscribe

    def notify(self, op_id: str, state: LoadingState) -> None:
        """Deliver state to every listener of op_id, in registration order."""
        listeners = self._listeners.get(op_id)
        if not listeners:
            return
        for listener in list(listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Listener %r for %r failed", listener, op_id)

    def listener_count(self, op_id: str) -> int:
        return len(self._listeners.get(op_id, ()))

    def clear(self) -> None:
        self._listeners.clear()
