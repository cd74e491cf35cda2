"""LoadingManager — the public surface over store, notifier and executor.

Construct one per application (or per test) and hand it to the components
that need it. Instances are fully independent.

Usage:
    manager = LoadingManager()

    unsubscribe = manager.subscribe("load-performance", render)
    data = await manager.execute(
        operation("load-performance", fetch_performance, timeout_ms=5000)
    )
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, TypeVar

from opstate.executor import Executor
from opstate.notifier import Disposer, Listener, Notifier
from opstate.state import DEFAULT_STATE, AsyncOperation, LoadingOptions, LoadingState
from opstate.store import StateStore

T = TypeVar("T")


def operation(
    op_id: str,
    fn: Callable[[], Awaitable[T]],
    options: LoadingOptions | Mapping[str, Any] | None = None,
    **option_overrides,
) -> AsyncOperation[T]:
    """Build an AsyncOperation. Keyword overrides are merged into options."""
    if option_overrides:
        if isinstance(options, LoadingOptions):
            options = options.merged(option_overrides)
        else:
            options = {**(options or {}), **option_overrides}
    return AsyncOperation(op_id, fn, options)


class LoadingManager:
    """Runs async operations and tracks a LoadingState per operation id."""

    def __init__(self, default_options: LoadingOptions | None = None) -> None:
        self._store = StateStore()
        self._notifier = Notifier()
        self._executor = Executor(self._store, self._notifier, default_options)

    @property
    def default_options(self) -> LoadingOptions:
        return self._executor.defaults

    def options_for(self, op: AsyncOperation) -> LoadingOptions:
        """Effective options of op once manager defaults are applied."""
        return self._executor.defaults.merged(op.options)

    async def execute(self, op: AsyncOperation[T]) -> T:
        """Run op once, tracking its state. Raises the attempt's error on failure.

        Failures with retries left also arm a background retry, observable
        only through subscribe().
        """
        return await self._executor.execute(op)

    async def retry(self, op: AsyncOperation[T]) -> T:
        """Manual retry: forget previous failures, then execute."""
        self._executor.update(op.id, retry_count=0, error=None)
        return await self._executor.execute(op)

    def cancel(self, op_id: str) -> None:
        """Disarm any pending retry and reset op_id to the default state.

        An attempt already running is not interrupted; if it settles later it
        writes its outcome as usual. That includes an automatic retry caught
        mid-flight: if it fails, it counts as failure 1 from the reset state
        and arms a fresh retry timer. Call cancel again once it settles to
        stop retrying for good.
        """
        self._executor.cancel_timer(op_id)
        self._store.reset(op_id)
        self._notifier.notify(op_id, DEFAULT_STATE)

    def get_state(self, op_id: str) -> LoadingState:
        return self._store.get(op_id)

    def subscribe(self, op_id: str, listener: Listener) -> Disposer:
        return self._notifier.subscribe(op_id, listener)

    def has_active_operations(self) -> bool:
        return any(state.is_loading for _, state in self._store.items())

    def get_active_operations(self) -> list[str]:
        return [op_id for op_id, state in self._store.items() if state.is_loading]

    def pending_retries(self) -> list[str]:
        """Ids with an automatic retry scheduled."""
        return self._executor.pending_retries()

    def clear(self) -> None:
        """Disarm all retries, drop all state and all subscriptions."""
        self._executor.cancel_all_timers()
        self._store.clear()
        self._notifier.clear()
