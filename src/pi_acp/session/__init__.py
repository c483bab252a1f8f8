"""Session layer: turn control, event translation and persistence."""

from pi_acp.session.manager import SessionManager
from pi_acp.session.session import PiAcpSession, StopReason
from pi_acp.session.store import (
    InMemorySessionStore,
    SessionRepository,
    SessionStore,
    StoredSession,
)

__all__ = [
    "InMemorySessionStore",
    "PiAcpSession",
    "SessionManager",
    "SessionRepository",
    "SessionStore",
    "StopReason",
    "StoredSession",
]
