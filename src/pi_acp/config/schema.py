"""Configuration schema dataclasses for pi-acp.

All fields are optional to support partial configs that merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class PiConfig:
    """How to launch the pi subprocess."""

    command: str = "pi"  # Executable name or path
    agent_dir: str | None = None  # Overrides PI_CODING_AGENT_DIR when set
    extra_args: list[str] = field(default_factory=list)  # Appended after --mode rpc


@dataclass
class SessionConfig:
    """Session defaults configuration."""

    store_path: str | None = None  # Default: ~/.pi/pi-acp/session-map.yaml
    startup_info: bool = True  # Emit a banner with the first prompt


@dataclass
class CommandsConfig:
    """Which pi commands are advertised to the client.

    Example config.yaml:
        commands:
          enable_skill_commands: false
          include_extension_commands: true
    """

    enable_skill_commands: bool = True
    include_extension_commands: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 1 = DEBUG, 2 = TRACE; takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    pi: PiConfig = field(default_factory=PiConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    commands: CommandsConfig = field(default_factory=CommandsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections
    extra: dict[str, Any] = field(default_factory=dict)
