"""Tests for auth method advertisement and credential detection."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from pi_acp.auth import (
    AUTH_REQUIRED_CODE,
    AUTH_REQUIRED_MESSAGE,
    PI_TERMINAL_LOGIN_METHOD_ID,
    AuthRequiredError,
    get_auth_methods,
    has_any_pi_auth_configured,
    maybe_auth_required_error,
)
from pi_acp.auth.methods import TERMINAL_LOGIN_FLAG, terminal_auth_launch_spec
from pi_acp.rpc.errors import PiRpcCommandError


class TestAuthMethods:
    def test_terminal_login_method(self):
        (method,) = get_auth_methods()

        assert method["id"] == PI_TERMINAL_LOGIN_METHOD_ID
        assert method["type"] == "terminal"
        assert method["args"] == [TERMINAL_LOGIN_FLAG]
        assert method["_meta"]["terminal-auth"]["label"] == "Launch pi"

    def test_without_terminal_auth_meta(self):
        (method,) = get_auth_methods(supports_terminal_auth_meta=False)

        assert "_meta" not in method

    def test_launch_spec_installed_script(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(sys, "argv", ["/usr/local/bin/pi-acp"])

        assert terminal_auth_launch_spec() == {"command": "pi-acp", "args": [TERMINAL_LOGIN_FLAG]}

    def test_launch_spec_module(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(sys, "argv", ["/src/pi_acp/__main__.py"])

        spec = terminal_auth_launch_spec()

        assert spec["command"] == sys.executable
        assert spec["args"] == ["-m", "pi_acp", TERMINAL_LOGIN_FLAG]


class TestAuthRequired:
    def test_error_shape(self):
        error = AuthRequiredError()

        assert error.code == AUTH_REQUIRED_CODE
        assert AUTH_REQUIRED_MESSAGE in str(error)
        assert error.data["authMethods"][0]["id"] == PI_TERMINAL_LOGIN_METHOD_ID

    @pytest.mark.parametrize(
        "message",
        [
            "No API key found for provider anthropic",
            "401 Unauthorized",
            "Authentication failed",
            "403 Forbidden",
            "model provider not configured",
        ],
    )
    def test_recognized(self, message):
        assert isinstance(maybe_auth_required_error(PiRpcCommandError("prompt", message)), AuthRequiredError)

    @pytest.mark.parametrize("message", ["model overloaded", "context window exceeded", ""])
    def test_not_recognized(self, message):
        assert maybe_auth_required_error(message) is None

    def test_none(self):
        assert maybe_auth_required_error(None) is None


class TestAuthStatus:
    @pytest.fixture
    def agent_dir(self, tmp_path: Path) -> Path:
        path = tmp_path / "agent"
        path.mkdir()
        return path

    def test_nothing_configured(self, agent_dir: Path):
        assert has_any_pi_auth_configured(agent_dir, environ={}) is False

    def test_auth_json(self, agent_dir: Path):
        (agent_dir / "auth.json").write_text(json.dumps({"anthropic": {"type": "oauth"}}))

        assert has_any_pi_auth_configured(agent_dir, environ={}) is True

    def test_empty_auth_json(self, agent_dir: Path):
        (agent_dir / "auth.json").write_text("{}")

        assert has_any_pi_auth_configured(agent_dir, environ={}) is False

    def test_invalid_auth_json(self, agent_dir: Path):
        (agent_dir / "auth.json").write_text("{not json")

        assert has_any_pi_auth_configured(agent_dir, environ={}) is False

    def test_custom_provider_key(self, agent_dir: Path):
        models = {"providers": {"local": {"baseUrl": "http://localhost", "apiKey": "LOCAL_KEY"}}}
        (agent_dir / "models.json").write_text(json.dumps(models))

        assert has_any_pi_auth_configured(agent_dir, environ={}) is True

    def test_custom_provider_without_key(self, agent_dir: Path):
        models = {"providers": {"local": {"baseUrl": "http://localhost", "apiKey": "  "}}}
        (agent_dir / "models.json").write_text(json.dumps(models))

        assert has_any_pi_auth_configured(agent_dir, environ={}) is False

    def test_provider_env_var(self, agent_dir: Path):
        assert has_any_pi_auth_configured(agent_dir, environ={"OPENAI_API_KEY": "sk-test"}) is True
        assert has_any_pi_auth_configured(agent_dir, environ={"OPENAI_API_KEY": " "}) is False
        assert has_any_pi_auth_configured(agent_dir, environ={"UNRELATED": "x"}) is False

    def test_default_agent_dir_from_env(self, agent_dir: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PI_CODING_AGENT_DIR", str(agent_dir))
        (agent_dir / "auth.json").write_text(json.dumps({"openai": {"key": "x"}}))

        assert has_any_pi_auth_configured(environ={}) is True
