"""Value types — per-operation state, call options, operation descriptors.

LoadingState is immutable; the store replaces records wholesale on every
change, so a listener can hold on to the state it was handed.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, fields, replace
from typing import Any, Awaitable, Callable, Generic, Mapping, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class LoadingState:
    """Observable state of one operation id."""

    is_loading: bool = False
    error: str | None = None
    retry_count: int = 0
    last_attempt: float | None = None


DEFAULT_STATE = LoadingState()


@dataclass(frozen=True)
class LoadingOptions:
    """Per-call knobs. Times are milliseconds.

    prevent_user_interaction is advisory: the manager only carries it, UI
    code decides whether to disable input while loading.
    abort_on_timeout cancels the operation's task when the timeout wins;
    otherwise the task keeps running and its result is ignored.
    """

    max_retries: int = 3
    retry_delay_ms: int = 1000
    timeout_ms: int = 30000
    prevent_user_interaction: bool = True
    abort_on_timeout: bool = False

    def merged(self, overrides: LoadingOptions | Mapping[str, Any] | None) -> LoadingOptions:
        """Apply per-call overrides.

        A full LoadingOptions replaces self outright; a mapping overrides
        only the keys it names.
        """
        if overrides is None:
            return self
        if isinstance(overrides, LoadingOptions):
            return overrides
        changes = dict(overrides)
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise TypeError(f"Unknown loading options: {', '.join(sorted(unknown))}")
        return replace(self, **changes)


@dataclass(frozen=True)
class AsyncOperation(Generic[T]):
    """A unit of work the manager can run, retry and track under ``id``."""

    id: str
    operation: Callable[[], Awaitable[T]]
    options: LoadingOptions | Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("Operation id must be a non-empty string")
        if not callable(self.operation):
            raise TypeError(f"Operation {self.id!r} is not callable")


class Phase(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


def phase_of(state: LoadingState, max_retries: int) -> Phase:
    """Where ``state`` sits in the loading lifecycle.

    A successful run collapses straight back to IDLE, so there is no
    separate succeeded phase.
    """
    if state.is_loading:
        return Phase.LOADING
    if state.error is None:
        return Phase.IDLE
    if state.retry_count >= max_retries:
        return Phase.EXHAUSTED
    return Phase.FAILED
