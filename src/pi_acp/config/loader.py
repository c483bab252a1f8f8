"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from pi_acp.config.paths import get_config_paths
from pi_acp.config.schema import (
    CommandsConfig,
    Config,
    LoggingConfig,
    PiConfig,
    SessionConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("pi_acp.config")

_KNOWN_SECTIONS = {"pi", "session", "commands", "logging"}

# Global cached config
_cached_config: Config | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    Recognized variables:
        PI_ACP_PI_COMMAND: pi executable (pi.command)
        PI_CODING_AGENT_DIR: pi agent directory (pi.agent_dir)
        PI_ACP_LOG: log file path (logging.file)
    """
    overrides: dict[str, Any] = {}

    pi_command = os.environ.get("PI_ACP_PI_COMMAND")
    if pi_command:
        overrides.setdefault("pi", {})["command"] = pi_command

    agent_dir = os.environ.get("PI_CODING_AGENT_DIR")
    if agent_dir:
        overrides.setdefault("pi", {})["agent_dir"] = agent_dir

    log_path = os.environ.get("PI_ACP_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    return overrides


def merge_layers(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold config layers lowest to highest priority.

    Config files are a single level of sections (``pi``, ``logging``, ...):
    sections merge key by key, anything else is replaced whole. A null in a
    higher layer leaves the lower value in place.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        for name, value in layer.items():
            if value is None:
                continue
            section = merged.get(name)
            if isinstance(section, dict) and isinstance(value, dict):
                set_keys = {k: v for k, v in value.items() if v is not None}
                merged[name] = {**section, **set_keys}
            else:
                merged[name] = value
    return merged


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    pi_data = _section(data, "pi")
    extra_args = pi_data.get("extra_args", [])
    pi = PiConfig(
        command=str(pi_data.get("command") or "pi"),
        agent_dir=pi_data.get("agent_dir"),
        extra_args=[str(a) for a in extra_args] if isinstance(extra_args, list) else [],
    )

    session_data = _section(data, "session")
    session = SessionConfig(
        store_path=session_data.get("store_path"),
        startup_info=bool(session_data.get("startup_info", True)),
    )

    commands_data = _section(data, "commands")
    commands = CommandsConfig(
        enable_skill_commands=bool(commands_data.get("enable_skill_commands", True)),
        include_extension_commands=bool(
            commands_data.get("include_extension_commands", False)
        ),
    )

    log_data = _section(data, "logging")
    verbose = log_data.get("verbose")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=verbose if isinstance(verbose, int) else None,
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(
        pi=pi,
        session=session,
        commands=commands,
        logging=logging_config,
        extra=extra,
    )


def load_config(session_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config ($session_root/.pi-acp/config.yaml)
    3. User config (~/.config/pi-acp/config.yaml or %APPDATA%)
    4. System config (/etc/pi-acp/ or %PROGRAMDATA%)

    Args:
        session_root: Project directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and session_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(session_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_layers(*configs))

    # Cache only global config (no session_root)
    if session_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None
