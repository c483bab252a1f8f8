"""Shared test utilities and fakes for pi-acp tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from pi_acp.rpc.errors import PiRpcProcessExitedError


async def settle(rounds: int = 20) -> None:
    """Let pending tasks (emission chain, scheduled handlers) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def meta_of(update: Any) -> dict[str, Any] | None:
    """The ``_meta`` payload of a session update, as sent on the wire."""
    return update.model_dump(by_alias=True).get("_meta")


class FakeConnection:
    """Records session_update notifications like an ACP client would receive them."""

    def __init__(self) -> None:
        self.updates: list[tuple[str, Any]] = []

    async def session_update(self, session_id: str, update: Any, **kwargs: Any) -> None:
        self.updates.append((session_id, update))

    def kinds(self) -> list[str]:
        return [u.session_update for _, u in self.updates]

    def of_kind(self, kind: str) -> list[Any]:
        return [u for _, u in self.updates if u.session_update == kind]

    def texts(self, kind: str = "agent_message_chunk") -> list[str]:
        return [u.content.text for u in self.of_kind(kind)]

    def queue_meta(self) -> list[dict[str, Any]]:
        return [meta_of(u)["piAcp"] for u in self.of_kind("session_info_update")]


class FakePiProcess:
    """In-memory stand-in for PiRpcProcess.

    Records prompts and other commands; tests push pi events with ``emit``
    and simulate a crash with ``exit``.
    """

    def __init__(
        self,
        state: dict[str, Any] | None = None,
        models: list[dict[str, Any]] | None = None,
    ) -> None:
        self._handlers: list[Callable[[dict[str, Any]], None]] = []
        self._exit_handlers: list[Callable[[PiRpcProcessExitedError], None]] = []

        self.state: dict[str, Any] = state if state is not None else {}
        self.initial_state: dict[str, Any] | None = dict(self.state)
        self.models = models if models is not None else [
            {"provider": "test", "id": "model", "name": "model"}
        ]
        self.messages: list[dict[str, Any]] = []
        self.commands: list[dict[str, Any]] = []
        self.pid = 4242

        # spies
        self.prompts: list[dict[str, Any]] = []
        self.abort_count = 0
        self.calls: list[tuple[Any, ...]] = []
        self.disposed = False

        # failure injection
        self.prompt_error: Exception | None = None
        self.abort_error: Exception | None = None

    def subscribe(self, handler: Callable[[dict[str, Any]], None]) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def on_exit(self, handler: Callable[[PiRpcProcessExitedError], None]) -> Callable[[], None]:
        self._exit_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._exit_handlers:
                self._exit_handlers.remove(handler)

        return unsubscribe

    def emit(self, event: dict[str, Any]) -> None:
        for handler in list(self._handlers):
            handler(event)

    def exit(self, exit_code: int | None = 1, signal: str | None = None) -> None:
        error = PiRpcProcessExitedError(exit_code, signal)
        for handler in list(self._exit_handlers):
            handler(error)

    async def prompt(self, message: str, attachments: list[dict[str, Any]] | None = None) -> None:
        self.prompts.append({"message": message, "attachments": attachments or []})
        if self.prompt_error is not None:
            raise self.prompt_error

    async def abort(self) -> None:
        self.abort_count += 1
        if self.abort_error is not None:
            raise self.abort_error

    async def get_state(self) -> dict[str, Any]:
        return dict(self.state)

    async def get_available_models(self) -> dict[str, Any]:
        return {"models": list(self.models)}

    async def get_messages(self) -> dict[str, Any]:
        return {"messages": list(self.messages)}

    async def get_commands(self) -> dict[str, Any]:
        return {"commands": list(self.commands)}

    async def set_model(self, provider: str, model_id: str) -> None:
        self.calls.append(("set_model", provider, model_id))

    async def set_thinking_level(self, level: str) -> None:
        self.calls.append(("set_thinking_level", level))

    async def compact(self, custom_instructions: str | None = None) -> dict[str, Any]:
        self.calls.append(("compact", custom_instructions))
        return {"summary": "...", "tokensBefore": 1234}

    async def set_auto_compaction(self, enabled: bool) -> None:
        self.calls.append(("set_auto_compaction", enabled))

    async def export_html(self, output_path: str | None = None) -> dict[str, Any]:
        self.calls.append(("export_html", output_path))
        return {"path": "/tmp/session.html"}

    async def set_session_name(self, name: str) -> None:
        self.calls.append(("set_session_name", name))

    async def set_steering_mode(self, mode: str) -> None:
        self.calls.append(("set_steering_mode", mode))

    async def set_follow_up_mode(self, mode: str) -> None:
        self.calls.append(("set_follow_up_mode", mode))

    def dispose(self) -> None:
        self.disposed = True
