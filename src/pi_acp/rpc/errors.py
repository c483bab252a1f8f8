"""Errors raised by the pi RPC channel."""

from __future__ import annotations


class PiRpcError(Exception):
    """Base class for pi RPC channel failures."""


class PiRpcSpawnError(PiRpcError):
    """The pi executable could not be started.

    ``code`` is the errno name reported by the OS (``ENOENT``, ``EACCES``...).
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class PiRpcCommandError(PiRpcError):
    """pi answered a command with ``success: false``."""

    def __init__(self, command: str, error: str) -> None:
        super().__init__(f"pi {command} failed: {error}")
        self.command = command
        self.error = error


class PiRpcWriteError(PiRpcError):
    """Writing a command to pi's stdin failed."""


class PiRpcProcessExitedError(PiRpcError):
    """The pi process exited while (or before) a command was outstanding."""

    def __init__(self, exit_code: int | None = None, signal: str | None = None) -> None:
        super().__init__(f"pi process exited (code={exit_code}, signal={signal})")
        self.exit_code = exit_code
        self.signal = signal
