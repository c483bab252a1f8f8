"""Channel to a ``pi --mode rpc`` subprocess.

pi reads one JSON command per line on stdin and writes JSON lines on stdout.
A line ``{"type": "response", "id": ...}`` answers the command with the same
id; every other line is an asynchronous event. Commands are correlated by a
fresh uuid4 so several may be outstanding at once.
"""

from __future__ import annotations

import asyncio
import errno
import json
import os
import signal
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pi_acp.logging import get_logger, log_wire
from pi_acp.rpc.errors import (
    PiRpcCommandError,
    PiRpcError,
    PiRpcProcessExitedError,
    PiRpcSpawnError,
    PiRpcWriteError,
)

log = get_logger("rpc")

PiRpcEvent = dict[str, Any]
EventHandler = Callable[[PiRpcEvent], None]
ExitHandler = Callable[[PiRpcProcessExitedError], None]

# get_messages replies carry the whole conversation on one line
_STREAM_LIMIT = 64 * 1024 * 1024


class PiRpcProcess:
    """One spawned pi child plus the command/response bookkeeping around it.

    Use :meth:`spawn` to start pi; the constructor only wires an already
    running ``asyncio.subprocess.Process``.
    """

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self._pending: dict[str, asyncio.Future[dict[str, Any]]] = {}
        self._event_handlers: list[EventHandler] = []
        self._exit_handlers: list[ExitHandler] = []
        self._exit_error: PiRpcProcessExitedError | None = None

        # get_state result captured during spawn
        self.initial_state: dict[str, Any] | None = None

        self._reader_task = asyncio.create_task(self._read_stdout())
        self._stderr_task: asyncio.Task[None] | None = None
        if process.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr(process.stderr))

    @classmethod
    async def spawn(
        cls,
        cwd: str,
        pi_command: str = "pi",
        *,
        session_path: str | None = None,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> PiRpcProcess:
        """Start ``pi --mode rpc`` and perform the get_state handshake.

        Args:
            cwd: Working directory for pi.
            pi_command: Executable name or path.
            session_path: Existing pi session file to resume.
            args: Extra arguments appended after the mode flags.
            env: Environment for the child. Defaults to ``os.environ``.

        Raises:
            PiRpcSpawnError: If the executable is missing or not runnable.
        """
        cmd = [pi_command, "--mode", "rpc"]
        if session_path:
            cmd.extend(["--session", session_path])
        if args:
            cmd.extend(args)

        log.info("Spawning pi: %s (cwd=%s)", " ".join(cmd), cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=dict(os.environ) if env is None else env,
                limit=_STREAM_LIMIT,
            )
        except FileNotFoundError as e:
            raise PiRpcSpawnError(
                f"Could not start pi: executable not found ({pi_command})", "ENOENT"
            ) from e
        except PermissionError as e:
            raise PiRpcSpawnError(
                f"Could not start pi: permission denied ({pi_command})", "EACCES"
            ) from e
        except OSError as e:
            code = errno.errorcode.get(e.errno) if e.errno else None
            raise PiRpcSpawnError(f"Could not start pi: {e}", code) from e

        proc = cls(process)

        try:
            state = await proc.get_state()
        except Exception as e:
            log.warning("pi get_state handshake failed: %s", e)
        else:
            proc.initial_state = state
            session_file = state.get("sessionFile")
            if isinstance(session_file, str) and session_file:
                # pi writes the session file lazily; make sure it can
                try:
                    Path(session_file).parent.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    log.debug("Could not create session dir for %s: %s", session_file, e)

        return proc

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def exited(self) -> bool:
        return self._exit_error is not None

    @property
    def exit_error(self) -> PiRpcProcessExitedError | None:
        return self._exit_error

    async def wait(self) -> PiRpcProcessExitedError:
        """Wait until the child has exited and every handler was notified."""
        await asyncio.shield(self._reader_task)
        if self._exit_error is None:
            raise PiRpcError("pi reader stopped without recording an exit")
        return self._exit_error

    def dispose(self, sig: int = signal.SIGTERM) -> None:
        """Terminate the child. Exit is reported through the usual path."""
        if self._process.returncode is not None:
            return
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            pass  # Already gone

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Receive every line that is not a response to a pending command."""
        self._event_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._event_handlers:
                self._event_handlers.remove(handler)

        return unsubscribe

    def on_exit(self, handler: ExitHandler) -> Callable[[], None]:
        """Be told once when the child exits."""
        self._exit_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._exit_handlers:
                self._exit_handlers.remove(handler)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def request(self, command: dict[str, Any]) -> dict[str, Any]:
        """Send a command and return pi's response object as-is."""
        if self._exit_error is not None:
            raise PiRpcProcessExitedError(self._exit_error.exit_code, self._exit_error.signal)

        stdin = self._process.stdin
        if stdin is None:
            raise PiRpcWriteError("pi stdin is not a pipe")

        request_id = str(uuid.uuid4())
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        line = json.dumps({**command, "id": request_id}, separators=(",", ":"))
        log_wire("->", line)

        try:
            stdin.write(line.encode("utf-8") + b"\n")
            await stdin.drain()
        except (OSError, RuntimeError) as e:
            self._pending.pop(request_id, None)
            if not future.done():
                future.cancel()
            raise PiRpcWriteError(f"Failed to write {command.get('type')} to pi: {e}") from e

        return await future

    async def send(self, command: dict[str, Any]) -> Any:
        """Send a command and return its ``data``.

        Raises:
            PiRpcCommandError: pi replied with ``success: false``.
            PiRpcWriteError: The command could not be written.
            PiRpcProcessExitedError: pi exited before replying.
        """
        response = await self.request(command)
        if not response.get("success"):
            error = response.get("error")
            if not isinstance(error, str) or not error:
                error = json.dumps(response.get("data"))
            raise PiRpcCommandError(str(response.get("command") or command.get("type")), error)
        return response.get("data")

    async def prompt(self, message: str, attachments: list[dict[str, Any]] | None = None) -> None:
        await self.send({"type": "prompt", "message": message, "attachments": attachments or []})

    async def abort(self) -> None:
        await self.send({"type": "abort"})

    async def get_state(self) -> dict[str, Any]:
        data = await self.send({"type": "get_state"})
        return data if isinstance(data, dict) else {}

    async def get_available_models(self) -> dict[str, Any]:
        data = await self.send({"type": "get_available_models"})
        return data if isinstance(data, dict) else {}

    async def set_model(self, provider: str, model_id: str) -> Any:
        return await self.send({"type": "set_model", "provider": provider, "modelId": model_id})

    async def set_thinking_level(self, level: str) -> None:
        await self.send({"type": "set_thinking_level", "level": level})

    async def compact(self, custom_instructions: str | None = None) -> Any:
        command: dict[str, Any] = {"type": "compact"}
        if custom_instructions:
            command["customInstructions"] = custom_instructions
        return await self.send(command)

    async def set_auto_compaction(self, enabled: bool) -> None:
        await self.send({"type": "set_auto_compaction", "enabled": enabled})

    async def export_html(self, output_path: str | None = None) -> Any:
        command: dict[str, Any] = {"type": "export_html"}
        if output_path:
            command["outputPath"] = output_path
        return await self.send(command)

    async def switch_session(self, session_path: str) -> Any:
        return await self.send({"type": "switch_session", "sessionPath": session_path})

    async def get_messages(self) -> dict[str, Any]:
        data = await self.send({"type": "get_messages"})
        return data if isinstance(data, dict) else {}

    async def get_commands(self) -> dict[str, Any]:
        data = await self.send({"type": "get_commands"})
        return data if isinstance(data, dict) else {}

    async def set_session_name(self, name: str) -> None:
        await self.send({"type": "set_session_name", "name": name})

    async def set_steering_mode(self, mode: str) -> None:
        await self.send({"type": "set_steering_mode", "mode": mode})

    async def set_follow_up_mode(self, mode: str) -> None:
        await self.send({"type": "set_follow_up_mode", "mode": mode})

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    async def _read_stdout(self) -> None:
        stdout = self._process.stdout
        if stdout is not None:
            while True:
                try:
                    raw = await stdout.readline()
                except ValueError as e:
                    log.warning("Dropping oversized line from pi: %s", e)
                    continue
                if not raw:
                    break
                self._handle_line(raw)

        returncode = await self._process.wait()
        self._handle_exit(returncode)

    async def _drain_stderr(self, stderr: asyncio.StreamReader) -> None:
        while True:
            try:
                raw = await stderr.readline()
            except ValueError:
                continue
            if not raw:
                return
            log.debug("pi stderr: %s", raw.decode("utf-8", errors="replace").rstrip())

    def _handle_line(self, raw: bytes) -> None:
        text = raw.decode("utf-8", errors="replace").strip()
        if not text:
            return
        log_wire("<-", text)

        try:
            msg = json.loads(text)
        except json.JSONDecodeError:
            log.debug("Ignoring malformed line from pi")
            return
        if not isinstance(msg, dict):
            log.debug("Ignoring non-object line from pi")
            return

        if msg.get("type") == "response":
            request_id = msg.get("id")
            if isinstance(request_id, str):
                future = self._pending.pop(request_id, None)
                if future is not None:
                    if not future.done():
                        future.set_result(msg)
                    return

        for handler in list(self._event_handlers):
            try:
                handler(msg)
            except Exception:
                log.exception("pi event handler failed for %s", msg.get("type"))

    def _handle_exit(self, returncode: int | None) -> None:
        exit_code = returncode
        signal_name = None
        if returncode is not None and returncode < 0:
            exit_code = None
            try:
                signal_name = signal.Signals(-returncode).name
            except ValueError:
                signal_name = str(-returncode)

        self._exit_error = PiRpcProcessExitedError(exit_code, signal_name)
        log.info("pi process %s exited (code=%s, signal=%s)", self.pid, exit_code, signal_name)

        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(PiRpcProcessExitedError(exit_code, signal_name))

        for handler in list(self._exit_handlers):
            try:
                handler(self._exit_error)
            except Exception:
                log.exception("pi exit handler failed")
