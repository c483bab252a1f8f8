"""Detect whether pi has any credentials configured.

Checked before spawning pi for a new session so the client can be told to
authenticate instead of getting a session that fails on its first prompt.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pi_acp.config.paths import get_pi_agent_dir
from pi_acp.logging import get_logger

log = get_logger("auth")

# Provider env vars pi understands
PROVIDER_ENV_VARS = (
    "OPENAI_API_KEY",
    "AZURE_OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "GROQ_API_KEY",
    "CEREBRAS_API_KEY",
    "XAI_API_KEY",
    "OPENROUTER_API_KEY",
    "AI_GATEWAY_API_KEY",
    "ZAI_API_KEY",
    "MISTRAL_API_KEY",
    "MINIMAX_API_KEY",
    "MINIMAX_CN_API_KEY",
    "HF_TOKEN",
    "OPENCODE_API_KEY",
    "KIMI_API_KEY",
    "COPILOT_GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_TOKEN",
    "ANTHROPIC_OAUTH_TOKEN",
    "ANTHROPIC_API_KEY",
)


def _read_json(path: Path) -> Any:
    """Parsed JSON, or None when the file is missing, empty or invalid."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return None
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        log.debug("Ignoring invalid JSON in %s: %s", path, e)
        return None


def has_any_pi_auth_configured(
    agent_dir: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """True if pi has stored credentials, a keyed custom provider, or a provider env var."""
    base = Path(agent_dir).expanduser() if agent_dir else get_pi_agent_dir()
    env = os.environ if environ is None else environ

    # auth.json holds API keys and OAuth tokens saved by pi's /login
    auth = _read_json(base / "auth.json")
    if isinstance(auth, dict) and auth:
        return True

    # A custom provider's apiKey may name an env var or be the secret itself;
    # either way it counts
    models = _read_json(base / "models.json")
    providers = models.get("providers") if isinstance(models, dict) else None
    if isinstance(providers, dict):
        for provider in providers.values():
            api_key = provider.get("apiKey") if isinstance(provider, dict) else None
            if isinstance(api_key, str) and api_key.strip():
                return True

    return any(env.get(name, "").strip() for name in PROVIDER_ENV_VARS)
