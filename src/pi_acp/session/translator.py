"""pi RPC events to ACP session updates."""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from typing import Any

import acp
from acp import helpers
from acp.schema import SessionInfoUpdate

from pi_acp.logging import TRACE, get_logger
from pi_acp.session.diff import DiffSynthesizer
from pi_acp.session.tool_calls import ToolCallRegistry, ToolCallStatus
from pi_acp.translate.tools import to_tool_kind, tool_result_to_text

log = get_logger("session")

_THOUGHT_DELTAS = ("thinking_delta", "reasoning_delta", "thought_delta")
_TOOLCALL_STREAM = ("toolcall_start", "toolcall_delta", "toolcall_end")


def queue_info_update(queue_depth: int, running: bool) -> SessionInfoUpdate:
    """session_info_update carrying the prompt queue state in ``_meta.piAcp``."""
    return SessionInfoUpdate.model_validate(
        {
            "sessionUpdate": "session_info_update",
            "_meta": {"piAcp": {"queueDepth": queue_depth, "running": running}},
        }
    )


def _text_content(text: str) -> list[Any] | None:
    if not text:
        return None
    return [helpers.tool_content(helpers.text_block(text))]


def _raw_input(tool_call: dict[str, Any]) -> Any:
    arguments = tool_call.get("arguments")
    if isinstance(arguments, dict):
        return arguments

    partial = tool_call.get("partialArgs")
    if not partial:
        return None
    partial = str(partial)
    try:
        return json.loads(partial)
    except json.JSONDecodeError:
        # Arguments are still streaming
        return {"partialArgs": partial}


class EventTranslator:
    """Turns the pi event stream of one session into ACP updates.

    Lifecycle events (agent_start, turn_end, agent_end) belong to the turn
    controller and are not handled here.
    """

    def __init__(self, emit: Callable[[Any], None], cwd: str) -> None:
        self._emit = emit
        self.tool_calls = ToolCallRegistry()
        self.diffs = DiffSynthesizer(cwd)

    def handle(self, event: dict[str, Any]) -> None:
        match event.get("type"):
            case "message_update":
                self._on_message_update(event.get("assistantMessageEvent"))
            case "tool_execution_start":
                self._on_tool_start(event)
            case "tool_execution_update":
                self._on_tool_update(event)
            case "tool_execution_end":
                self._on_tool_end(event)
            case other:
                log.log(TRACE, "Ignoring pi event %s", other)

    def _on_message_update(self, ame: Any) -> None:
        if not isinstance(ame, dict):
            return
        kind = ame.get("type")
        delta = ame.get("delta")

        if kind == "text_delta":
            if isinstance(delta, str):
                self._emit(acp.update_agent_message_text(delta))
        elif kind in _THOUGHT_DELTAS:
            if isinstance(delta, str):
                self._emit(acp.update_agent_thought_text(delta))
        elif kind in _TOOLCALL_STREAM:
            self._on_tool_call_stream(ame)

    def _on_tool_call_stream(self, ame: dict[str, Any]) -> None:
        # The call is on the event itself, or in the partial message at contentIndex
        tool_call = ame.get("toolCall")
        if not isinstance(tool_call, dict):
            partial = ame.get("partial")
            content = partial.get("content") if isinstance(partial, dict) else None
            index = ame.get("contentIndex") or 0
            if isinstance(content, list) and isinstance(index, int) and 0 <= index < len(content):
                tool_call = content[index]
        if not isinstance(tool_call, dict):
            return

        tool_call_id = str(tool_call.get("id") or "")
        if not tool_call_id or self.tool_calls.is_closed(tool_call_id):
            return

        name = str(tool_call.get("name") or "tool")
        raw_input = _raw_input(tool_call)
        first, status = self.tool_calls.observe(tool_call_id, ToolCallStatus.PENDING)

        if first:
            self._emit(
                helpers.start_tool_call(
                    tool_call_id,
                    name,
                    kind=to_tool_kind(name),
                    status=status.value,
                    raw_input=raw_input,
                )
            )
        else:
            self._emit(
                helpers.update_tool_call(tool_call_id, status=status.value, raw_input=raw_input)
            )

    def _on_tool_start(self, event: dict[str, Any]) -> None:
        tool_call_id = str(event.get("toolCallId") or uuid.uuid4())
        name = str(event.get("toolName") or "tool")
        args = event.get("args")

        # Must happen before pi gets to touch the file
        self.diffs.capture(tool_call_id, name, args)

        first, status = self.tool_calls.observe(tool_call_id, ToolCallStatus.IN_PROGRESS)
        if first:
            self._emit(
                helpers.start_tool_call(
                    tool_call_id,
                    name,
                    kind=to_tool_kind(name),
                    status=status.value,
                    raw_input=args,
                )
            )
        else:
            self._emit(helpers.update_tool_call(tool_call_id, status=status.value, raw_input=args))

    def _on_tool_update(self, event: dict[str, Any]) -> None:
        tool_call_id = str(event.get("toolCallId") or "")
        # Updates only refine a call announced by start or delta; ids never seen
        # or already closed would surface as orphan updates in the client
        if not tool_call_id or tool_call_id not in self.tool_calls:
            return

        partial = event.get("partialResult")
        _, status = self.tool_calls.observe(tool_call_id, ToolCallStatus.IN_PROGRESS)
        self._emit(
            helpers.update_tool_call(
                tool_call_id,
                status=status.value,
                content=_text_content(tool_result_to_text(partial)),
                raw_output=partial,
            )
        )

    def _on_tool_end(self, event: dict[str, Any]) -> None:
        tool_call_id = str(event.get("toolCallId") or "")
        if not tool_call_id:
            return

        is_error = bool(event.get("isError"))
        diff = self.diffs.finish(tool_call_id, is_error)
        if self.tool_calls.is_closed(tool_call_id):
            return

        result = event.get("result")
        content: list[Any] = []
        if diff is not None:
            content.append(diff)
        content.extend(_text_content(tool_result_to_text(result)) or [])

        _, status = self.tool_calls.observe(
            tool_call_id, ToolCallStatus.FAILED if is_error else ToolCallStatus.COMPLETED
        )
        self._emit(
            helpers.update_tool_call(
                tool_call_id,
                status=status.value,
                content=content or None,
                raw_output=result,
            )
        )

    def reset(self) -> None:
        self.tool_calls.clear()
        self.diffs.clear()
