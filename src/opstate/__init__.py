"""opstate: loading-state management for asynchronous UI operations."""

from importlib.metadata import version as _version

__version__ = _version("opstate")

from opstate.errors import OperationTimeoutError, error_message
from opstate.state import (
    DEFAULT_STATE,
    AsyncOperation,
    LoadingOptions,
    LoadingState,
    Phase,
    phase_of,
)
from opstate.store import StateStore
from opstate.notifier import Notifier
from opstate.executor import Executor, backoff_delay_ms
from opstate.manager import LoadingManager, operation
from opstate.binding import LoadingBinding
# textual NOT auto-imported — opt-in only

__all__ = [
    "AsyncOperation",
    "DEFAULT_STATE",
    "Executor",
    "LoadingBinding",
    "LoadingManager",
    "LoadingOptions",
    "LoadingState",
    "Notifier",
    "OperationTimeoutError",
    "Phase",
    "StateStore",
    "backoff_delay_ms",
    "error_message",
    "operation",
    "phase_of",
]
