"""Authentication methods advertised in ``initialize``.

pi handles credentials itself, so the only method is "open pi in a terminal
and log in there". Zed reads the launch command from
``_meta["terminal-auth"]``; registry clients read ``type``/``args``/``env``.
Both shapes are sent.
"""

from __future__ import annotations

import sys
from typing import Any

PI_TERMINAL_LOGIN_METHOD_ID = "pi_terminal_login"
TERMINAL_LOGIN_FLAG = "--terminal-login"


def terminal_auth_launch_spec() -> dict[str, Any]:
    """How a client should relaunch this adapter in login mode."""
    argv0 = sys.argv[0] if sys.argv else ""
    if argv0.endswith("__main__.py"):
        # Started as ``python -m pi_acp``
        return {"command": sys.executable, "args": ["-m", "pi_acp", TERMINAL_LOGIN_FLAG]}
    return {"command": "pi-acp", "args": [TERMINAL_LOGIN_FLAG]}


def get_auth_methods(supports_terminal_auth_meta: bool = True) -> list[dict[str, Any]]:
    """Auth methods in wire (camelCase) form."""
    method: dict[str, Any] = {
        "id": PI_TERMINAL_LOGIN_METHOD_ID,
        "name": "Launch pi in the terminal",
        "description": "Start pi in an interactive terminal to configure API keys or login",
        "type": "terminal",
        "args": [TERMINAL_LOGIN_FLAG],
        "env": {},
    }
    if supports_terminal_auth_meta:
        method["_meta"] = {"terminal-auth": {**terminal_auth_launch_spec(), "label": "Launch pi"}}
    return [method]
