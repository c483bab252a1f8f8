"""One ACP session bound to one pi process.

pi runs a single conversation at a time, so prompts are serialized here:
the first prompt becomes the active turn, later ones wait in a FIFO queue.
A turn finishes on ``agent_end`` (pi sends several ``turn_end`` events while
it loops through tool calls), on a failed ``prompt`` command, or when pi
exits.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Coroutine
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import acp

from pi_acp.auth.required import maybe_auth_required_error
from pi_acp.logging import TRACE, get_logger
from pi_acp.rpc.errors import PiRpcProcessExitedError
from pi_acp.session.emitter import UpdateEmitter
from pi_acp.session.translator import EventTranslator, queue_info_update

if TYPE_CHECKING:
    from acp.interfaces import Client

    from pi_acp.rpc.process import PiRpcProcess

log = get_logger("session")


class StopReason(str, Enum):
    """Why a prompt turn ended."""

    END_TURN = "end_turn"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class Turn:
    """A prompt waiting for, or holding, the pi conversation."""

    message: str
    attachments: list[dict[str, Any]] = field(default_factory=list)
    future: asyncio.Future[StopReason] = field(
        default_factory=lambda: asyncio.get_running_loop().create_future()
    )

    def resolve(self, reason: StopReason) -> None:
        if not self.future.done():
            self.future.set_result(reason)

    def reject(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


class PiAcpSession:
    """Turn controller for a single session."""

    def __init__(
        self,
        session_id: str,
        cwd: str,
        proc: PiRpcProcess,
        conn: Client,
        *,
        mcp_servers: list[Any] | None = None,
        session_file: str | None = None,
    ) -> None:
        self.session_id = session_id
        self.cwd = cwd
        self.proc = proc
        self.mcp_servers = mcp_servers or []  # Accepted, pi has no MCP support
        self.session_file = session_file

        self._emitter = UpdateEmitter(conn, session_id)
        self._translator = EventTranslator(self._emitter.emit, cwd)

        self._active: Turn | None = None
        self._queue: deque[Turn] = deque()
        self._cancel_requested = False
        self._exited = False
        self._tasks: set[asyncio.Task[Any]] = set()

        self._startup_info: str | None = None
        self._startup_info_sent = False

        self._unsubscribe = proc.subscribe(self._handle_event)
        self._unsubscribe_exit = proc.on_exit(self._handle_exit)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._active is not None

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def exited(self) -> bool:
        return self._exited

    # -------------------------------------------------------------------------
    # Emission
    # -------------------------------------------------------------------------

    def emit(self, update: Any) -> None:
        """Queue an update for in-order delivery to the client."""
        self._emitter.emit(update)

    def emit_text(self, text: str) -> None:
        self._emitter.emit(acp.update_agent_message_text(text))

    async def flush(self) -> None:
        await self._emitter.flush()

    def _emit_queue_info(self, running: bool) -> None:
        self._emitter.emit(queue_info_update(len(self._queue), running))

    def set_startup_info(self, text: str) -> None:
        self._startup_info = text

    def send_startup_info_if_pending(self) -> None:
        """Emit the startup banner once, if one was set and not yet sent."""
        if self._startup_info_sent or not self._startup_info:
            return
        self._startup_info_sent = True
        self.emit_text(self._startup_info)

    # -------------------------------------------------------------------------
    # Turns
    # -------------------------------------------------------------------------

    async def prompt(
        self, message: str, attachments: list[dict[str, Any]] | None = None
    ) -> StopReason:
        """Run a prompt to completion, queueing it behind the active turn.

        Raises:
            AuthRequiredError: pi rejected the prompt for missing credentials.
        """
        # Some clients only render agent messages once a prompt is running
        self.send_startup_info_if_pending()

        turn = Turn(message, list(attachments or []))
        if self._active is not None:
            self._queue.append(turn)
            log.debug("Session %s: queued prompt (depth %d)", self.session_id, len(self._queue))
            self.emit_text(f"Queued message (position {len(self._queue)}).")
            self._emit_queue_info(running=True)
        else:
            self._start_turn(turn)

        return await turn.future

    async def cancel(self) -> None:
        """Drop queued prompts and abort the active one."""
        self._cancel_requested = True

        if self._queue:
            queued = list(self._queue)
            self._queue.clear()
            for turn in queued:
                turn.resolve(StopReason.CANCELLED)
            self.emit_text("Cleared queued prompts.")
            self._emit_queue_info(running=self._active is not None)

        if self._active is not None:
            try:
                await self.proc.abort()
            except Exception as e:
                log.warning("Session %s: pi abort failed: %s", self.session_id, e)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _start_turn(self, turn: Turn) -> None:
        self._cancel_requested = False
        # Tool call ids are per turn; closed ids from earlier turns are dropped
        self._translator.reset()
        self._active = turn
        self._emit_queue_info(running=True)
        self._spawn(self._send_prompt(turn))

    async def _send_prompt(self, turn: Turn) -> None:
        # pi acknowledges the command right away; completion comes from events
        try:
            await self.proc.prompt(turn.message, turn.attachments)
        except Exception as e:
            log.warning("Session %s: pi prompt failed: %s", self.session_id, e)
            await self._emitter.flush()
            if turn is not self._active:
                return

            self._active = None
            auth_error = None
            if not self._cancel_requested and not isinstance(e, PiRpcProcessExitedError):
                auth_error = maybe_auth_required_error(e)
            if auth_error is not None:
                turn.reject(auth_error)
            else:
                turn.resolve(
                    StopReason.CANCELLED if self._cancel_requested else StopReason.ERROR
                )
            self._advance()

    def _advance(self) -> None:
        """Start the next queued turn, or report the queue as idle."""
        if self._exited:
            while self._queue:
                self._queue.popleft().resolve(StopReason.ERROR)
            self._emit_queue_info(running=False)
            return

        if self._queue:
            turn = self._queue.popleft()
            self.emit_text(f"Starting queued message. ({len(self._queue)} remaining)")
            self._start_turn(turn)
        else:
            self._emit_queue_info(running=False)

    async def _finish_turn(self, turn: Turn) -> None:
        await self._emitter.flush()
        if turn is not self._active:
            return
        self._active = None
        turn.resolve(StopReason.CANCELLED if self._cancel_requested else StopReason.END_TURN)
        self._advance()

    # -------------------------------------------------------------------------
    # pi events
    # -------------------------------------------------------------------------

    def _handle_event(self, event: dict[str, Any]) -> None:
        match event.get("type"):
            case "agent_start" | "turn_end":
                log.log(TRACE, "Session %s: %s", self.session_id, event.get("type"))
            case "agent_end":
                if self._active is not None:
                    self._spawn(self._finish_turn(self._active))
            case _:
                self._translator.handle(event)

    def _handle_exit(self, error: PiRpcProcessExitedError) -> None:
        log.info("Session %s: %s", self.session_id, error)
        self._exited = True
        if self._active is not None or self._queue:
            self._spawn(self._finish_after_exit(self._active))

    async def _finish_after_exit(self, turn: Turn | None) -> None:
        await self._emitter.flush()
        if turn is not None and turn is self._active:
            self._active = None
            turn.resolve(StopReason.CANCELLED if self._cancel_requested else StopReason.ERROR)
        elif not self._queue:
            # The failed prompt command already settled everything
            return
        self._advance()

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def dispose(self) -> None:
        """Detach from pi, stop it, and cancel anything still waiting."""
        self._unsubscribe()
        self._unsubscribe_exit()

        if self._active is not None:
            self._active.resolve(StopReason.CANCELLED)
            self._active = None
        while self._queue:
            self._queue.popleft().resolve(StopReason.CANCELLED)

        self._translator.reset()
        self.proc.dispose()
