"""Authentication advertisement and detection."""

from pi_acp.auth.methods import PI_TERMINAL_LOGIN_METHOD_ID, get_auth_methods
from pi_acp.auth.required import (
    AUTH_REQUIRED_CODE,
    AUTH_REQUIRED_MESSAGE,
    AuthRequiredError,
    maybe_auth_required_error,
)
from pi_acp.auth.status import has_any_pi_auth_configured

__all__ = [
    "AUTH_REQUIRED_CODE",
    "AUTH_REQUIRED_MESSAGE",
    "AuthRequiredError",
    "PI_TERMINAL_LOGIN_METHOD_ID",
    "get_auth_methods",
    "has_any_pi_auth_configured",
    "maybe_auth_required_error",
]
