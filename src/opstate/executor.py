"""Executor — runs one attempt of an operation and schedules its retries.

Each attempt races the operation against its timeout. Failures bump the
retry count and, while retries remain, arm a single retry timer per id that
re-runs the operation in the background after an exponential delay. The
caller of an attempt always sees that attempt's outcome; background retries
are only visible through state notifications.

There is no guard against overlapping attempts for the same id. Whichever
settles last writes the visible state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TypeVar

from opstate.errors import OperationTimeoutError, error_message
from opstate.notifier import Notifier
from opstate.state import AsyncOperation, LoadingOptions, LoadingState
from opstate.store import StateStore

logger = logging.getLogger("opstate.executor")

T = TypeVar("T")


def backoff_delay_ms(options: LoadingOptions, retry_count: int) -> int:
    """Delay before the retry that follows failure number retry_count."""
    return options.retry_delay_ms * 2 ** (retry_count - 1)


class Executor:
    """Drives state transitions for operations and owns their retry timers."""

    def __init__(
        self,
        store: StateStore,
        notifier: Notifier,
        defaults: LoadingOptions | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self.defaults = defaults or LoadingOptions()
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._retry_tasks: set[asyncio.Task] = set()

    def update(self, op_id: str, **changes) -> LoadingState:
        """Write to the store, then notify op_id's listeners."""
        state = self._store.set(op_id, **changes)
        self._notifier.notify(op_id, state)
        return state

    async def execute(self, op: AsyncOperation[T]) -> T:
        options = self.defaults.merged(op.options)
        self.cancel_timer(op.id)
        self.update(op.id, is_loading=True, error=None, last_attempt=time.time())
        logger.debug("Running %r (timeout %dms)", op.id, options.timeout_ms)

        try:
            result = await self._race(op, options)
        except asyncio.CancelledError:
            self.update(op.id, is_loading=False)
            raise
        except Exception as exc:
            self._record_failure(op, options, exc)
            raise

        self.update(op.id, is_loading=False, error=None, retry_count=0)
        logger.debug("%r succeeded", op.id)
        return result

    async def _race(self, op: AsyncOperation[T], options: LoadingOptions) -> T:
        task = asyncio.ensure_future(op.operation())
        try:
            done, _ = await asyncio.wait({task}, timeout=options.timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            return task.result()

        # An aborted operation may swallow the cancellation and still fail later.
        task.add_done_callback(_discard_late_outcome(op.id))
        if options.abort_on_timeout:
            task.cancel()
        raise OperationTimeoutError(options.timeout_ms)

    def _record_failure(
        self, op: AsyncOperation, options: LoadingOptions, exc: Exception
    ) -> None:
        previous = self._store.get(op.id).retry_count
        state = self.update(
            op.id,
            is_loading=False,
            error=error_message(exc),
            retry_count=previous + 1,
        )
        if state.retry_count < options.max_retries:
            delay_ms = backoff_delay_ms(options, state.retry_count)
            self._arm_timer(op, delay_ms)
            logger.debug(
                "%r failed (%s), retry %d/%d in %dms",
                op.id, state.error, state.retry_count, options.max_retries, delay_ms,
            )
        else:
            logger.debug(
                "%r failed (%s), retries exhausted after %d attempts",
                op.id, state.error, state.retry_count,
            )

    def _arm_timer(self, op: AsyncOperation, delay_ms: int) -> None:
        self.cancel_timer(op.id)
        loop = asyncio.get_running_loop()
        self._timers[op.id] = loop.call_later(delay_ms / 1000, self._fire_retry, op)

    def _fire_retry(self, op: AsyncOperation) -> None:
        self._timers.pop(op.id, None)
        task = asyncio.ensure_future(self.execute(op))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_finished)

    def _retry_finished(self, task: asyncio.Task) -> None:
        self._retry_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Automatic retry failed: %s", error_message(exc))

    def cancel_timer(self, op_id: str) -> bool:
        """Disarm op_id's pending retry. Returns whether one was pending."""
        handle = self._timers.pop(op_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all_timers(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def pending_retries(self) -> list[str]:
        return list(self._timers)


def _discard_late_outcome(op_id: str):
    """Done-callback for an operation that lost the race to its timeout."""

    def _callback(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Ignoring late failure of timed-out %r: %s", op_id, exc)
        else:
            logger.debug("Ignoring late result of timed-out %r", op_id)

    return _callback
