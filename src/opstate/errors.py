"""Errors raised by the manager itself and message coercion for recorded state."""

from __future__ import annotations


class OperationTimeoutError(TimeoutError):
    """The per-attempt deadline passed before the operation settled."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Operation timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


def error_message(error: BaseException) -> str:
    """Render an exception the way subscribers display it.

    Exceptions raised without a message fall back to their class name so the
    recorded error is never empty.
    """
    return str(error) or type(error).__name__
