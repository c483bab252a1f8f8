"""Session registry: spawns pi per session and remembers where pi saved it."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from pi_acp.logging import get_logger
from pi_acp.rpc.process import PiRpcProcess
from pi_acp.session.session import PiAcpSession

if TYPE_CHECKING:
    from acp.interfaces import Client

    from pi_acp.session.store import SessionRepository, StoredSession

log = get_logger("session")

SpawnFn = Callable[..., Awaitable[PiRpcProcess]]


class SessionManager:
    """Creates, loads and tracks PiAcpSession objects.

    pi keeps its session files in its default location so they stay visible to
    the regular ``pi`` CLI; the manager only records the file path per ACP
    session id in the injected repository.
    """

    def __init__(
        self,
        store: SessionRepository,
        *,
        pi_command: str = "pi",
        pi_args: list[str] | None = None,
        env: dict[str, str] | None = None,
        spawn: SpawnFn | None = None,
    ) -> None:
        """Initialize the session manager.

        Args:
            store: Where session id -> pi session file mappings are persisted.
            pi_command: pi executable.
            pi_args: Extra arguments passed to every pi process.
            env: Environment for pi processes (default: inherit).
            spawn: Process factory with the signature of PiRpcProcess.spawn.
        """
        self._sessions: dict[str, PiAcpSession] = {}
        self._store = store
        self._pi_command = pi_command
        self._pi_args = list(pi_args or [])
        self._env = env
        self._spawn = spawn or PiRpcProcess.spawn

    @property
    def store(self) -> SessionRepository:
        return self._store

    async def _spawn_pi(self, cwd: str, session_path: str | None = None) -> PiRpcProcess:
        return await self._spawn(
            cwd,
            self._pi_command,
            session_path=session_path,
            args=self._pi_args,
            env=self._env,
        )

    async def create_session(
        self,
        cwd: str,
        conn: Client,
        mcp_servers: list[Any] | None = None,
    ) -> PiAcpSession:
        """Spawn pi for a new conversation and register the session.

        The session id is pi's own session id when its handshake reports one.

        Raises:
            PiRpcSpawnError: pi could not be started.
        """
        proc = await self._spawn_pi(cwd)

        state = proc.initial_state or {}
        session_id = state.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            session_id = str(uuid.uuid4())
        session_file = state.get("sessionFile")
        if not isinstance(session_file, str) or not session_file:
            session_file = None

        if session_file:
            self._store.upsert(session_id, cwd, session_file)

        session = PiAcpSession(
            session_id,
            cwd,
            proc,
            conn,
            mcp_servers=mcp_servers,
            session_file=session_file,
        )
        self._sessions[session_id] = session
        log.info("Created session %s (pid %s)", session_id, proc.pid)
        return session

    async def load_session(
        self,
        stored: StoredSession,
        cwd: str,
        conn: Client,
        mcp_servers: list[Any] | None = None,
    ) -> PiAcpSession:
        """Spawn pi on a stored session file and register it under the stored id.

        An already registered session is disposed first so one id never has
        two pi processes.
        """
        existing = self._sessions.pop(stored.session_id, None)
        if existing is not None:
            existing.dispose()

        proc = await self._spawn_pi(cwd, session_path=stored.session_file)
        session = PiAcpSession(
            stored.session_id,
            cwd,
            proc,
            conn,
            mcp_servers=mcp_servers,
            session_file=stored.session_file,
        )
        self._sessions[stored.session_id] = session
        self._store.upsert(stored.session_id, cwd, stored.session_file)
        log.info("Loaded session %s from %s", stored.session_id, stored.session_file)
        return session

    def get_session(self, session_id: str) -> PiAcpSession | None:
        return self._sessions.get(session_id)

    def close_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.dispose()

    def dispose_all(self) -> None:
        for session in self._sessions.values():
            session.dispose()
        self._sessions.clear()
