"""Platform-aware configuration and state path resolution.

Config file locations:
- Windows: %PROGRAMDATA% (system), %APPDATA% (user)
- Unix: /etc/ (system), $XDG_CONFIG_HOME, ~/.config/pi-acp/ or ~/.pi-acp/ (user)
- Project: <cwd>/.pi-acp/

State owned by the adapter lives under ~/.pi/pi-acp/, next to (but separate
from) pi's own ~/.pi/agent/ directory.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "pi-acp"
SHORT_NAME = ".pi-acp"
SESSION_MAP_FILENAME = "session-map.yaml"


def get_system_config_path() -> Path | None:
    """Get system-level config path (the file may not exist)."""
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """Get user-level config path (the file may not exist)."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    xdg_default = home / ".config"
    if xdg_default.exists():
        return xdg_default / APP_NAME / CONFIG_FILENAME

    return home / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(session_root: str) -> Path:
    """Get project-level config path for a working directory."""
    return Path(session_root) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(session_root: str | None = None) -> list[Path]:
    """Get all config paths, lowest priority first (system, user, project)."""
    paths: list[Path] = []

    system_path = get_system_config_path()
    if system_path:
        paths.append(system_path)

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    if session_root:
        paths.append(get_project_config_path(session_root))

    return paths


def get_pi_acp_dir() -> Path:
    """Directory for state owned by the adapter."""
    return Path.home() / ".pi" / "pi-acp"


def get_session_map_path() -> Path:
    """Default location of the session-id to pi-session-file map."""
    return get_pi_acp_dir() / SESSION_MAP_FILENAME


def get_pi_agent_dir() -> Path:
    """pi's own agent directory (credentials, models, settings).

    Honors PI_CODING_AGENT_DIR, including a leading ``~``.
    """
    env_dir = os.environ.get("PI_CODING_AGENT_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".pi" / "agent"
