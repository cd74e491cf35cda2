"""LoadingBinding — one component's view of one operation id.

A binding subscribes to its id for as long as it lives, keeps the latest
state at hand for rendering, and re-broadcasts changes to the component's
own callbacks. execute/retry/cancel are bound to the id.

Usage:
    with LoadingBinding(manager, "load-targets", max_retries=5) as loading:
        loading.on_change(lambda state: refresh_table())
        rows = await loading.execute(fetch_targets)
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from opstate.manager import LoadingManager
from opstate.notifier import Disposer, Listener
from opstate.state import AsyncOperation, LoadingOptions, LoadingState, Phase, phase_of

logger = logging.getLogger("opstate.binding")

T = TypeVar("T")

Options = LoadingOptions | Mapping[str, Any] | None


class LoadingBinding:
    """Reactive handle on a single id of a LoadingManager."""

    def __init__(self, manager: LoadingManager, op_id: str, **options) -> None:
        if not op_id:
            raise ValueError("Operation id must be a non-empty string")
        self._manager = manager
        self.op_id = op_id
        self.options = manager.default_options.merged(options)
        self.last_options = self.options
        self._state = manager.get_state(op_id)
        self._callbacks: dict[Listener, None] = {}
        self._unsubscribe: Disposer | None = manager.subscribe(op_id, self._on_state)

    # --- State ---

    @property
    def state(self) -> LoadingState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def retry_count(self) -> int:
        return self._state.retry_count

    @property
    def last_attempt(self) -> float | None:
        return self._state.last_attempt

    @property
    def phase(self) -> Phase:
        return phase_of(self._state, self.last_options.max_retries)

    @property
    def retries_remaining(self) -> int:
        return max(0, self.last_options.max_retries - self._state.retry_count)

    @property
    def can_retry(self) -> bool:
        """Whether a "Try again" control should be offered."""
        return self._state.error is not None and not self._state.is_loading

    @property
    def interaction_blocked(self) -> bool:
        return self._state.is_loading and self.last_options.prevent_user_interaction

    @property
    def disposed(self) -> bool:
        return self._unsubscribe is None

    # --- Operations ---

    def _operation(self, fn: Callable[[], Awaitable[T]], options: Options) -> AsyncOperation[T]:
        # Per-call options apply to this call only; the binding defaults stay put.
        self.last_options = self.options.merged(options)
        return AsyncOperation(self.op_id, fn, self.last_options)

    async def execute(self, fn: Callable[[], Awaitable[T]], options: Options = None) -> T:
        return await self._manager.execute(self._operation(fn, options))

    async def retry(self, fn: Callable[[], Awaitable[T]], options: Options = None) -> T:
        return await self._manager.retry(self._operation(fn, options))

    def cancel(self) -> None:
        self._manager.cancel(self.op_id)

    # --- Subscription ---

    def on_change(self, callback: Listener) -> Disposer:
        """Call callback with every new state of this binding's id."""
        self._callbacks[callback] = None

        def _remove() -> None:
            self._callbacks.pop(callback, None)

        return _remove

    def _on_state(self, state: LoadingState) -> None:
        self._state = state
        for callback in list(self._callbacks):
            try:
                callback(state)
            except Exception:
                logger.exception("Callback %r for %r failed", callback, self.op_id)

    def dispose(self) -> None:
        """Stop following the id. State already recorded is left alone."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._callbacks.clear()

    def __enter__(self) -> LoadingBinding:
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"LoadingBinding({self.op_id!r}, {self.phase.value})"
