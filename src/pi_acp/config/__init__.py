"""Configuration system for pi-acp.

Loads YAML from system, user and project locations, then applies
environment variable overrides.
"""

from pi_acp.config.loader import get_config, load_config, reset_config
from pi_acp.config.paths import get_pi_agent_dir, get_session_map_path
from pi_acp.config.schema import (
    CommandsConfig,
    Config,
    LoggingConfig,
    PiConfig,
    SessionConfig,
)

__all__ = [
    "CommandsConfig",
    "Config",
    "LoggingConfig",
    "PiConfig",
    "SessionConfig",
    "get_config",
    "get_pi_agent_dir",
    "get_session_map_path",
    "load_config",
    "reset_config",
]
