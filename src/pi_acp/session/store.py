"""Persistence of the ACP session id to pi session file mapping.

pi keeps conversations in its own session files (under ~/.pi/agent/sessions).
The adapter only remembers which file belongs to which ACP session so that
session/load can point a fresh pi process at it. The map lives in:
  ~/.pi/pi-acp/session-map.yaml

  version: 1
  sessions:
    <session-id>:
      session_id: ...
      cwd: ...
      session_file: ...
      updated_at: <ISO timestamp>
      name: ...          # optional
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import yaml

from pi_acp.config.paths import get_session_map_path
from pi_acp.logging import get_logger

log = get_logger("store")

MAP_VERSION = 1


@dataclass
class StoredSession:
    """One persisted session mapping."""

    session_id: str
    cwd: str
    session_file: str
    updated_at: str
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredSession | None:
        try:
            return cls(
                session_id=str(data["session_id"]),
                cwd=str(data["cwd"]),
                session_file=str(data["session_file"]),
                updated_at=str(data.get("updated_at", "")),
                name=data.get("name"),
            )
        except (KeyError, TypeError):
            return None


class SessionRepository(Protocol):
    """Storage interface used by the session manager and the agent."""

    def get(self, session_id: str) -> StoredSession | None: ...

    def upsert(
        self, session_id: str, cwd: str, session_file: str, name: str | None = None
    ) -> StoredSession: ...

    def list(self, cwd: str | None = None) -> list[StoredSession]: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _filter_sorted(sessions: list[StoredSession], cwd: str | None) -> list[StoredSession]:
    if cwd is not None:
        sessions = [s for s in sessions if s.cwd == cwd]
    # Newest first
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


class SessionStore:
    """YAML-file backed SessionRepository.

    The file is re-read on every call so several adapter processes can share it.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path).expanduser() if path else get_session_map_path()

    def _load(self) -> dict[str, StoredSession]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            log.warning("Failed to read session map %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict) or data.get("version") != MAP_VERSION:
            return {}
        raw = data.get("sessions")
        if not isinstance(raw, dict):
            return {}

        sessions: dict[str, StoredSession] = {}
        for session_id, entry in raw.items():
            stored = StoredSession.from_dict(entry) if isinstance(entry, dict) else None
            if stored is not None:
                sessions[str(session_id)] = stored
        return sessions

    def _save(self, sessions: dict[str, StoredSession]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_name(self.path.name + ".tmp")
        data = {
            "version": MAP_VERSION,
            "sessions": {sid: asdict(s) for sid, s in sessions.items()},
        }

        # Atomic write
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
            temp_path.replace(self.path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def get(self, session_id: str) -> StoredSession | None:
        return self._load().get(session_id)

    def upsert(
        self, session_id: str, cwd: str, session_file: str, name: str | None = None
    ) -> StoredSession:
        sessions = self._load()
        previous = sessions.get(session_id)
        stored = StoredSession(
            session_id=session_id,
            cwd=cwd,
            session_file=session_file,
            updated_at=_now(),
            name=name if name is not None else (previous.name if previous else None),
        )
        sessions[session_id] = stored
        self._save(sessions)
        log.debug("Stored session %s -> %s", session_id, session_file)
        return stored

    def list(self, cwd: str | None = None) -> list[StoredSession]:
        return _filter_sorted(list(self._load().values()), cwd)


class InMemorySessionStore:
    """SessionRepository that keeps everything in a dict."""

    def __init__(self) -> None:
        self.sessions: dict[str, StoredSession] = {}

    def get(self, session_id: str) -> StoredSession | None:
        return self.sessions.get(session_id)

    def upsert(
        self, session_id: str, cwd: str, session_file: str, name: str | None = None
    ) -> StoredSession:
        previous = self.sessions.get(session_id)
        stored = StoredSession(
            session_id=session_id,
            cwd=cwd,
            session_file=session_file,
            updated_at=_now(),
            name=name if name is not None else (previous.name if previous else None),
        )
        self.sessions[session_id] = stored
        return stored

    def list(self, cwd: str | None = None) -> list[StoredSession]:
        return _filter_sorted(list(self.sessions.values()), cwd)
