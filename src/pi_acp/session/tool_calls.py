"""Monotonic tool-call status tracking."""

from __future__ import annotations

from enum import Enum


class ToolCallStatus(str, Enum):
    """ACP tool call status values."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @property
    def terminal(self) -> bool:
        return self in (ToolCallStatus.COMPLETED, ToolCallStatus.FAILED)


_RANK = {
    ToolCallStatus.PENDING: 0,
    ToolCallStatus.IN_PROGRESS: 1,
    ToolCallStatus.COMPLETED: 2,
    ToolCallStatus.FAILED: 2,
}


class ToolCallRegistry:
    """Tracks live tool calls so their reported status never moves backwards.

    pi can deliver a late ``toolcall_delta`` after ``tool_execution_start``;
    clients hide progress if a call drops back to pending. Ids that reached a
    terminal status are remembered so stragglers for them can be dropped.
    """

    def __init__(self) -> None:
        self._live: dict[str, ToolCallStatus] = {}
        self._closed: set[str] = set()

    def __contains__(self, tool_call_id: str) -> bool:
        return tool_call_id in self._live

    def __len__(self) -> int:
        return len(self._live)

    def status(self, tool_call_id: str) -> ToolCallStatus | None:
        return self._live.get(tool_call_id)

    def is_closed(self, tool_call_id: str) -> bool:
        return tool_call_id in self._closed

    def observe(self, tool_call_id: str, status: ToolCallStatus) -> tuple[bool, ToolCallStatus]:
        """Record a sighting of a tool call.

        Returns:
            (first_sighting, effective_status). The effective status is the
            higher-ranked of the recorded and the observed status. Reaching a
            terminal status closes the call.
        """
        current = self._live.get(tool_call_id)
        first = current is None
        effective = status if current is None or status.rank > current.rank else current

        if effective.terminal:
            self._live.pop(tool_call_id, None)
            self._closed.add(tool_call_id)
        else:
            self._live[tool_call_id] = effective
        return first, effective

    def clear(self) -> None:
        """Forget every call, closed ones included."""
        self._live.clear()
        self._closed.clear()
