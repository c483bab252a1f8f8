"""ACP Agent implementation for pi-acp.

Exposes pi (running in ``--mode rpc``) to Zed and other ACP clients. Each ACP
session owns one pi process; prompts, cancellation and the handful of pi
settings that ACP can express are forwarded to it.
"""

from __future__ import annotations

import asyncio
import os
import traceback
from collections.abc import Awaitable, Callable, Coroutine
from typing import TYPE_CHECKING, Any

import acp
from acp import helpers
from acp.schema import (
    AgentCapabilities,
    AuthMethod,
    AvailableCommandsUpdate,
    ClientCapabilities,
    Implementation,
    ModelInfo,
    PromptCapabilities,
    SessionCapabilities,
    SessionMode,
    SessionModelState,
    SessionModeState,
    SetSessionModelResponse,
    SetSessionModeResponse,
)

from pi_acp import __version__
from pi_acp.auth import AuthRequiredError, get_auth_methods, has_any_pi_auth_configured
from pi_acp.config import Config, get_config
from pi_acp.logging import get_logger
from pi_acp.rpc.errors import PiRpcError, PiRpcSpawnError
from pi_acp.session.manager import SessionManager
from pi_acp.session.session import PiAcpSession, StopReason
from pi_acp.session.store import SessionRepository, SessionStore
from pi_acp.translate.commands import BUILTIN_COMMANDS, merge_commands, to_available_commands
from pi_acp.translate.messages import iter_history
from pi_acp.translate.prompt import prompt_text, prompt_to_pi_message

log = get_logger("acp")

if TYPE_CHECKING:
    from acp.interfaces import Client

    from pi_acp.rpc.process import PiRpcProcess

# pi thinking levels double as ACP session modes
THINKING_LEVELS = [
    SessionMode(id="off", name="Off", description="No extended thinking"),
    SessionMode(id="minimal", name="Minimal", description="Minimal thinking"),
    SessionMode(id="low", name="Low", description="Light thinking"),
    SessionMode(id="medium", name="Medium", description="Moderate thinking"),
    SessionMode(id="high", name="High", description="Deep thinking"),
    SessionMode(id="xhigh", name="Extra high", description="Maximum thinking"),
]
DEFAULT_THINKING_LEVEL = "medium"

QUEUE_MODES = ("all", "one-at-a-time")


def _model_id(provider: Any, model_id: Any) -> str | None:
    provider = str(provider or "").strip()
    model_id = str(model_id or "").strip()
    if not provider or not model_id:
        return None
    return f"{provider}/{model_id}"


async def build_model_state(proc: PiRpcProcess) -> SessionModelState | None:
    """Available models as ``provider/id`` plus the model pi is currently using."""
    available: list[ModelInfo] = []
    try:
        data = await proc.get_available_models()
    except PiRpcError as e:
        log.warning("get_available_models failed: %s", e)
        data = {}

    models = data.get("models")
    for m in models if isinstance(models, list) else []:
        if not isinstance(m, dict):
            continue
        model_id = _model_id(m.get("provider"), m.get("id"))
        if model_id is None:
            continue
        name = str(m.get("name") or m.get("id"))
        available.append(ModelInfo(model_id=model_id, name=f"{m['provider']}/{name}"))

    current: str | None = None
    try:
        state = await proc.get_state()
    except PiRpcError as e:
        log.warning("get_state failed: %s", e)
        state = {}
    model = state.get("model")
    if isinstance(model, dict):
        current = _model_id(model.get("provider"), model.get("id"))

    if not available and current is None:
        return None
    if current is None:
        current = available[0].model_id if available else "default"

    return SessionModelState(available_models=available, current_model_id=current)


async def build_mode_state(proc: PiRpcProcess) -> SessionModeState:
    """Thinking levels, with pi's current level selected."""
    current = DEFAULT_THINKING_LEVEL
    try:
        state = await proc.get_state()
    except PiRpcError as e:
        log.debug("get_state failed: %s", e)
    else:
        level = state.get("thinkingLevel")
        if isinstance(level, str) and level:
            current = level
    return SessionModeState(available_modes=THINKING_LEVELS, current_mode_id=current)


def _invalid_params(message: str) -> acp.RequestError:
    return acp.RequestError(code=-32602, message=message)


class PiAcpAgent:
    """ACP Agent adapter for pi.

    Implements the ACP Agent protocol by delegating each session to its own
    pi RPC process through SessionManager.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        sessions: SessionManager | None = None,
        store: SessionRepository | None = None,
    ) -> None:
        self._config = config or get_config()

        if sessions is None:
            if store is None:
                store = SessionStore(self._config.session.store_path)
            env = None
            if self._config.pi.agent_dir:
                env = {**os.environ, "PI_CODING_AGENT_DIR": self._config.pi.agent_dir}
            sessions = SessionManager(
                store,
                pi_command=self._config.pi.command,
                pi_args=self._config.pi.extra_args,
                env=env,
            )
        self._sessions = sessions
        self._conn: Client | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    def on_connect(self, conn: Client) -> None:
        """Called when a client connects."""
        self._conn = conn

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _get_session(self, session_id: str) -> PiAcpSession:
        session = self._sessions.get_session(session_id)
        if session is None:
            raise acp.RequestError(
                code=-32600,
                message=f"Session not found: {session_id}",
            )
        return session

    @staticmethod
    def _require_absolute(cwd: str) -> None:
        if not os.path.isabs(cwd):
            raise _invalid_params(f"cwd must be an absolute path: {cwd}")

    # -------------------------------------------------------------------------
    # Initialization and auth
    # -------------------------------------------------------------------------

    async def initialize(
        self,
        protocol_version: int,
        client_capabilities: ClientCapabilities | None = None,
        client_info: Implementation | None = None,
        **kwargs: Any,
    ) -> acp.InitializeResponse:
        """Handle initialization request from client."""
        log.info(
            "Client %s requested protocol %s",
            client_info.name if client_info else "unknown",
            protocol_version,
        )
        return acp.InitializeResponse(
            protocol_version=acp.PROTOCOL_VERSION,
            agent_info=Implementation(
                name="pi-acp",
                title="pi ACP adapter",
                version=__version__,
            ),
            auth_methods=[AuthMethod.model_validate(m) for m in get_auth_methods()],
            agent_capabilities=AgentCapabilities(
                load_session=True,
                prompt_capabilities=PromptCapabilities(
                    image=True,
                    audio=False,
                    embedded_context=False,
                ),
                session_capabilities=SessionCapabilities(),
            ),
        )

    async def authenticate(
        self,
        method_id: str,
        **kwargs: Any,
    ) -> acp.AuthenticateResponse | None:
        """Credentials are managed by pi itself (see --terminal-login)."""
        return None

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def _spawn_session(self, coro: Coroutine[Any, Any, PiAcpSession]) -> PiAcpSession:
        try:
            return await coro
        except PiRpcSpawnError as e:
            log.error("Failed to start pi: %s", e)
            raise acp.RequestError(
                code=-32603,
                message=str(e),
                data={"code": e.code},
            ) from e

    async def new_session(
        self,
        cwd: str,
        mcp_servers: list[Any] | None = None,
        **kwargs: Any,
    ) -> acp.NewSessionResponse:
        """Create a new session backed by a fresh pi process."""
        self._require_absolute(cwd)

        # Refuse before spawning so the client can offer terminal login
        if not has_any_pi_auth_configured(self._config.pi.agent_dir):
            log.info("No pi credentials configured, requesting authentication")
            raise AuthRequiredError()

        session = await self._spawn_session(
            self._sessions.create_session(cwd, self._conn, mcp_servers)
        )

        try:
            models = await build_model_state(session.proc)
            if models is None or not models.available_models:
                log.info("pi reports no available models, requesting authentication")
                self._sessions.close_session(session.session_id)
                raise AuthRequiredError()

            modes = await build_mode_state(session.proc)

            if self._config.session.startup_info:
                session.set_startup_info(
                    f"pi-acp {__version__}: model {models.current_model_id}, "
                    f"thinking {modes.current_mode_id}"
                )
        except acp.RequestError:
            raise
        except Exception as e:
            log.error("Failed to create session: %s", e)
            log.error("%s", traceback.format_exc())
            self._sessions.close_session(session.session_id)
            raise acp.RequestError(
                code=-32603,
                message="Failed to initialize ACP session",
                data={"details": str(e)},
            ) from e

        log.info("Created session %s", session.session_id)
        log.info("  Models (%d), current %s", len(models.available_models), models.current_model_id)

        self._schedule(self._publish_available_commands(session))
        return acp.NewSessionResponse(
            session_id=session.session_id,
            models=models,
            modes=modes,
        )

    async def load_session(
        self,
        cwd: str,
        mcp_servers: list[Any] | None = None,
        session_id: str = "",
        **kwargs: Any,
    ) -> acp.LoadSessionResponse | None:
        """Resume a stored session and replay its history to the client."""
        self._require_absolute(cwd)

        stored = self._sessions.store.get(session_id)
        if stored is None:
            raise _invalid_params(f"Unknown sessionId: {session_id}")

        session = await self._spawn_session(
            self._sessions.load_session(stored, cwd, self._conn, mcp_servers)
        )

        try:
            data = await session.proc.get_messages()
            for role, text in iter_history(data.get("messages")):
                if role == "user":
                    session.emit(helpers.update_user_message_text(text))
                else:
                    session.emit(acp.update_agent_message_text(text))
            await session.flush()

            models = await build_model_state(session.proc)
            modes = await build_mode_state(session.proc)
        except Exception as e:
            log.error("Failed to load session %s: %s", session_id, e)
            log.error("%s", traceback.format_exc())
            raise acp.RequestError(
                code=-32603,
                message="Failed to load session",
                data={"details": str(e)},
            ) from e

        log.info("Loaded session %s", session_id)
        self._schedule(self._publish_available_commands(session))
        return acp.LoadSessionResponse(models=models, modes=modes)

    async def list_sessions(
        self,
        cursor: str | None = None,
        cwd: str | None = None,
        **kwargs: Any,
    ) -> acp.schema.ListSessionsResponse:
        """List stored sessions, newest first, optionally for one cwd."""
        sessions = [
            acp.schema.SessionInfo(
                session_id=s.session_id,
                cwd=s.cwd,
                title=s.name,
                updated_at=s.updated_at or None,
            )
            for s in self._sessions.store.list(cwd)
        ]
        return acp.schema.ListSessionsResponse(sessions=sessions)

    async def set_session_mode(
        self,
        mode_id: str,
        session_id: str,
        **kwargs: Any,
    ) -> SetSessionModeResponse | None:
        """Set pi's thinking level."""
        valid_modes = {m.id for m in THINKING_LEVELS}
        if mode_id not in valid_modes:
            raise _invalid_params(f"Invalid mode: {mode_id}. Valid modes: {sorted(valid_modes)}")

        session = self._get_session(session_id)
        await session.proc.set_thinking_level(mode_id)
        return SetSessionModeResponse()

    async def set_session_model(
        self,
        model_id: str,
        session_id: str,
        **kwargs: Any,
    ) -> SetSessionModelResponse | None:
        """Switch model. Accepts ``provider/model`` or a bare model id."""
        session = self._get_session(session_id)

        provider: str | None = None
        model: str | None = model_id
        if "/" in model_id:
            provider, model = model_id.split("/", 1)
        else:
            data = await session.proc.get_available_models()
            models = data.get("models")
            for m in models if isinstance(models, list) else []:
                if isinstance(m, dict) and str(m.get("id")) == model_id and m.get("provider"):
                    provider = str(m["provider"])
                    break

        if not provider or not model:
            raise _invalid_params(f"Unknown modelId: {model_id}")

        await session.proc.set_model(provider, model)
        return SetSessionModelResponse()

    # -------------------------------------------------------------------------
    # Prompting
    # -------------------------------------------------------------------------

    async def prompt(
        self,
        prompt: list[Any],
        session_id: str,
        **kwargs: Any,
    ) -> acp.PromptResponse:
        """Run a prompt through pi, or answer an adapter slash command."""
        session = self._get_session(session_id)

        content = prompt_text(prompt).strip()
        if content.startswith("/"):
            handled, response = await self._handle_slash_command(content, session)
            if handled:
                session.emit_text(response)
                await session.flush()
                return acp.PromptResponse(stop_reason="end_turn")

        message = prompt_to_pi_message(prompt)
        try:
            reason = await session.prompt(message.message, message.attachments)
        except acp.RequestError:
            raise
        except Exception as e:
            log.error("Error in prompt: %s", e)
            log.error("%s", traceback.format_exc())
            raise acp.RequestError(
                code=-32603,
                message="Prompt failed",
                data={"details": str(e)},
            ) from e

        # ACP has no "error" stop reason
        stop_reason = "end_turn" if reason is StopReason.ERROR else reason.value
        return acp.PromptResponse(stop_reason=stop_reason)

    async def cancel(self, session_id: str, **kwargs: Any) -> None:
        """Cancel the running prompt and drop queued ones."""
        session = self._sessions.get_session(session_id)
        if session:
            await session.cancel()

    async def ext_method(
        self,
        method: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Handle extension methods."""
        return {}

    async def ext_notification(
        self,
        method: str,
        params: dict[str, Any],
    ) -> None:
        """Handle extension notifications."""
        pass

    # -------------------------------------------------------------------------
    # Slash commands
    # -------------------------------------------------------------------------

    async def _publish_available_commands(self, session: PiAcpSession) -> None:
        """Advertise builtins plus pi's own commands."""
        try:
            data = await session.proc.get_commands()
        except PiRpcError as e:
            log.debug("get_commands failed: %s", e)
            data = {}

        pi_commands = to_available_commands(
            data,
            enable_skill_commands=self._config.commands.enable_skill_commands,
            include_extension_commands=self._config.commands.include_extension_commands,
        )
        session.emit(
            AvailableCommandsUpdate(
                session_update="available_commands_update",
                available_commands=merge_commands(BUILTIN_COMMANDS, pi_commands),
            )
        )

    async def _handle_slash_command(
        self, content: str, session: PiAcpSession
    ) -> tuple[bool, str]:
        """Handle slash commands that map onto pi RPC commands.

        Returns:
            (handled, response) - handled=False lets the text go to pi as-is
        """
        parts = content.split(maxsplit=1)
        command = parts[0].lower()
        args = parts[1].strip() if len(parts) > 1 else ""
        proc = session.proc

        try:
            if command == "/compact":
                result = await proc.compact(args or None)
                tokens = result.get("tokensBefore") if isinstance(result, dict) else None
                if isinstance(tokens, int):
                    return True, f"Compacted conversation (tokens before: {tokens})."
                return True, "Compacted conversation."

            elif command == "/autocompact":
                value = args.lower()
                if value not in ("on", "off"):
                    return True, "Usage: /autocompact on|off"
                await proc.set_auto_compaction(value == "on")
                return True, f"Auto-compaction {'enabled' if value == 'on' else 'disabled'}."

            elif command == "/export":
                result = await proc.export_html(args or None)
                path = result.get("path") if isinstance(result, dict) else None
                return True, f"Exported session to {path}" if path else "Exported session."

            elif command == "/name":
                if not args:
                    return True, "Usage: /name <title>"
                await proc.set_session_name(args)
                if session.session_file:
                    self._sessions.store.upsert(
                        session.session_id, session.cwd, session.session_file, name=args
                    )
                return True, f"Session name set to: {args}"

            elif command == "/session":
                return True, await self._describe_session(session)

            elif command == "/steering":
                return True, await self._queue_mode_command(
                    proc, args, "Steering", "steeringMode", proc.set_steering_mode
                )

            elif command == "/follow-up":
                return True, await self._queue_mode_command(
                    proc, args, "Follow-up", "followUpMode", proc.set_follow_up_mode
                )

        except PiRpcError as e:
            log.warning("%s failed: %s", command, e)
            return True, f"{command} failed: {e}"

        return False, ""

    async def _queue_mode_command(
        self,
        proc: PiRpcProcess,
        args: str,
        label: str,
        state_key: str,
        setter: Callable[[str], Awaitable[None]],
    ) -> str:
        """Show or set one of pi's message queue modes (steering, follow-up)."""
        usage = "/" + label.lower()
        if not args:
            state = await proc.get_state()
            return f"{label} mode: {state.get(state_key, 'unknown')}"
        if args not in QUEUE_MODES:
            return f"Usage: {usage} {'|'.join(QUEUE_MODES)}"
        await setter(args)
        return f"{label} mode set to: {args}"

    async def _describe_session(self, session: PiAcpSession) -> str:
        state = await session.proc.get_state()
        model = state.get("model")
        model_id = (
            _model_id(model.get("provider"), model.get("id")) if isinstance(model, dict) else None
        )
        lines = [
            f"Session: {session.session_id}",
            f"Session file: {state.get('sessionFile') or session.session_file or 'none'}",
            f"Working directory: {session.cwd}",
            f"Model: {model_id or 'unknown'}",
            f"Thinking level: {state.get('thinkingLevel') or 'unknown'}",
        ]
        if state.get("sessionName"):
            lines.append(f"Name: {state['sessionName']}")
        if isinstance(state.get("messageCount"), int):
            lines.append(f"Messages: {state['messageCount']}")
        lines.append(f"Queued prompts: {session.queue_depth}")
        return "\n".join(lines)

    def dispose(self) -> None:
        """Stop every pi process."""
        self._sessions.dispose_all()


def create_agent(config: Config | None = None) -> PiAcpAgent:
    """Create a new pi-acp ACP agent."""
    return PiAcpAgent(config)
