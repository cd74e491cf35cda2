"""Textual integration for opstate. Opt-in — requires textual.

bind() is the single place where manager notifications cross into widget
code: it skips updates while the app is paused or not running, swallows
NoMatches from widget queries, and marshals notifications raised on another
thread through call_from_thread.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable

from textual.css.query import NoMatches
from textual.widgets import Static

from opstate.manager import LoadingManager
from opstate.notifier import Disposer
from opstate.state import AsyncOperation, LoadingState

# Apps currently inside pause(), keyed by id(app).
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Hold back bound updates while widgets are being replaced."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    return app.is_running and id(app) not in _paused_apps


def bind(
    app,
    manager: LoadingManager,
    op_id: str,
    effect_fn: Callable[[LoadingState], None],
    *,
    fire_immediately: bool = True,
) -> Disposer:
    """Subscribe effect_fn to op_id on behalf of a Textual app.

    With fire_immediately, effect_fn also sees the current state right away.
    Returns the unsubscribe function.
    """
    owner = threading.get_ident()

    def _guarded(state: LoadingState) -> None:
        if not is_safe(app):
            return
        if threading.get_ident() != owner:
            app.call_from_thread(_safe, state)
        else:
            _safe(state)

    def _safe(state: LoadingState) -> None:
        try:
            effect_fn(state)
        except NoMatches:
            pass

    unsubscribe = manager.subscribe(op_id, _guarded)
    if fire_immediately:
        _guarded(manager.get_state(op_id))
    return unsubscribe


def describe_state(state: LoadingState, loading_text: str = "Loading…") -> str:
    if state.is_loading:
        return loading_text
    if state.error is not None:
        return f"{state.error} (press r to try again)"
    return ""


class LoadingStatus(Static):
    """One-line status for an operation id.

    Shows loading_text while the operation runs and the error once it fails;
    empty otherwise. Pressing r retries the given operation manually.
    """

    BINDINGS = [("r", "retry", "Try again")]

    def __init__(
        self,
        manager: LoadingManager,
        op_id: str,
        *,
        operation: AsyncOperation | None = None,
        loading_text: str = "Loading…",
        **kwargs,
    ) -> None:
        super().__init__("", **kwargs)
        self.manager = manager
        self.op_id = op_id
        self.operation = operation
        self.loading_text = loading_text
        self.status_text = ""
        self._unsubscribe: Disposer | None = None

    def on_mount(self) -> None:
        self._unsubscribe = bind(self.app, self.manager, self.op_id, self.show_state)

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def show_state(self, state: LoadingState) -> None:
        self.status_text = describe_state(state, self.loading_text)
        self.update(self.status_text)
        self.set_class(state.is_loading, "-loading")
        self.set_class(state.error is not None, "-error")

    def action_retry(self) -> None:
        if self.operation is None or self.manager.get_state(self.op_id).is_loading:
            return
        # The failure, if any, lands in the recorded state and is shown from there.
        self.run_worker(
            self.manager.retry(self.operation), exclusive=True, exit_on_error=False
        )
