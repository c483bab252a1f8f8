"""Client side of pi's RPC mode (newline-delimited JSON over stdio)."""

from pi_acp.rpc.errors import (
    PiRpcCommandError,
    PiRpcError,
    PiRpcProcessExitedError,
    PiRpcSpawnError,
    PiRpcWriteError,
)
from pi_acp.rpc.process import PiRpcEvent, PiRpcProcess

__all__ = [
    "PiRpcCommandError",
    "PiRpcError",
    "PiRpcEvent",
    "PiRpcProcess",
    "PiRpcProcessExitedError",
    "PiRpcSpawnError",
    "PiRpcWriteError",
]
