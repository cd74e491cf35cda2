"""StateStore — key-based container of LoadingState records.

Pure data: reads never fail and never insert, writes merge into the current
record. Nothing here notifies; the executor drives the Notifier after each
write.
"""

from __future__ import annotations

from dataclasses import replace

from opstate.state import DEFAULT_STATE, LoadingState


class StateStore:
    """One LoadingState per operation id, created lazily on first write."""

    def __init__(self) -> None:
        self._states: dict[str, LoadingState] = {}

    def get(self, op_id: str) -> LoadingState:
        return self._states.get(op_id, DEFAULT_STATE)

    def set(self, op_id: str, **changes) -> LoadingState:
        """Shallow-merge changes into the record for op_id and return it."""
        state = replace(self.get(op_id), **changes)
        self._states[op_id] = state
        return state

    def reset(self, op_id: str) -> None:
        """Drop the record; op_id reads back as the default."""
        self._states.pop(op_id, None)

    def items(self) -> list[tuple[str, LoadingState]]:
        return list(self._states.items())

    def clear(self) -> None:
        self._states.clear()

    def __contains__(self, op_id: str) -> bool:
        return op_id in self._states

    def __len__(self) -> int:
        return len(self._states)
