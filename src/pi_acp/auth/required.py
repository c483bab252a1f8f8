"""Recognizing "no credentials" failures from pi and its providers."""

from __future__ import annotations

import acp

from pi_acp.auth.methods import get_auth_methods

AUTH_REQUIRED_CODE = -32000
AUTH_REQUIRED_MESSAGE = "Configure an API key or log in with an OAuth provider."

# Provider-agnostic, so substring matching is the best available signal
_AUTH_PATTERNS = (
    "api key",
    "apikey",
    "missing key",
    "no key",
    "not configured",
    "unauthorized",
    "authentication",
    "permission denied",
    "forbidden",
    "401",
    "403",
)


class AuthRequiredError(acp.RequestError):
    """ACP auth-required error carrying the terminal login method."""

    def __init__(self, message: str = AUTH_REQUIRED_MESSAGE) -> None:
        super().__init__(
            code=AUTH_REQUIRED_CODE,
            message=message,
            data={"authMethods": get_auth_methods()},
        )


def looks_like_auth_error(err: BaseException | str | None) -> bool:
    text = str(err or "").lower()
    return any(p in text for p in _AUTH_PATTERNS)


def maybe_auth_required_error(err: BaseException | str | None) -> AuthRequiredError | None:
    """Return an AuthRequiredError if ``err`` reads like missing credentials."""
    if not looks_like_auth_error(err):
        return None
    return AuthRequiredError()
