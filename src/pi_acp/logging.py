"""Logging setup for pi-acp.

stdin and stdout carry ACP, so records go to the configured log file
(``logging.file`` or ``PI_ACP_LOG``) and, without one, to stderr only when it
is a terminal.

Lines exchanged with pi go to the ``pi_acp.wire`` logger at TRACE. Enable
them with ``level: TRACE`` or ``verbose: 2``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pi_acp.config.schema import LoggingConfig

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger("pi_acp")
wire_logger = logger.getChild("wire")

# Longest wire line logged in full; pi echoes whole files in tool results
WIRE_PREVIEW = 500

_installed: list[logging.Handler] = []


class _Formatter(logging.Formatter):
    """``HH:MM:SS level [channel] message`` with the ``pi_acp.`` prefix dropped."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(level)s [%(channel)s] %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        record.level = record.levelname.lower()
        record.channel = record.name.removeprefix("pi_acp.")
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level: ``verbose`` (1 debug, 2+ trace) beats ``level``."""
    if config is None:
        return logging.INFO
    if config.verbose:
        return TRACE if config.verbose >= 2 else logging.DEBUG
    if config.level:
        # Known names map to ints, unknown ones to "Level X"
        level = logging.getLevelName(config.level.upper())
        if isinstance(level, int):
            return level
    return logging.INFO


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install the pi_acp handler, replacing one from an earlier call."""
    for handler in _installed:
        logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    logger.setLevel(resolve_level(config))

    handler: logging.Handler | None = None
    if config is not None and config.file:
        handler = _open_log_file(config.file)
    if handler is None and sys.stderr.isatty():
        handler = logging.StreamHandler(sys.stderr)
    if handler is None:
        return

    handler.setFormatter(_Formatter())
    logger.addHandler(handler)
    _installed.append(handler)


def _open_log_file(path: str) -> logging.Handler | None:
    log_path = Path(path).expanduser()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8")
    except OSError as e:
        if sys.stderr.isatty():
            print(f"[pi-acp] Cannot open log file {log_path}: {e}", file=sys.stderr)
        return None


def log_wire(direction: str, line: str) -> None:
    """Log one line sent to (``->``) or received from (``<-``) pi."""
    if not wire_logger.isEnabledFor(TRACE):
        return
    if len(line) > WIRE_PREVIEW:
        line = f"{line[:WIRE_PREVIEW]}... ({len(line)} chars)"
    wire_logger.log(TRACE, "%s %s", direction, line)


def get_logger(name: str | None = None) -> logging.Logger:
    """Child of the pi_acp logger (``rpc``, ``session``, ``acp``...), or the root one."""
    return logger.getChild(name) if name else logger
