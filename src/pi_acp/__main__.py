"""Entry point for running pi-acp as an ACP agent.

Usage:
    python -m pi_acp
    pi-acp

    # Open pi interactively to log in or configure API keys:
    pi-acp --terminal-login

This starts the ACP agent listening on stdin/stdout for JSON-RPC
messages from an ACP client (Zed, etc.). Each session runs its own
``pi --mode rpc`` child process.
"""

import os
import sys

from pi_acp.auth.methods import TERMINAL_LOGIN_FLAG
from pi_acp.logging import get_logger, setup_logging

log = get_logger()


def _terminal_login(pi_command: str, agent_dir: str | None) -> None:
    """Replace this process with interactive pi."""
    if agent_dir:
        os.environ["PI_CODING_AGENT_DIR"] = agent_dir
    log.info("Launching %s for terminal login", pi_command)
    try:
        os.execvp(pi_command, [pi_command])
    except OSError as e:
        print(f"pi-acp: could not launch {pi_command}: {e}", file=sys.stderr)
        sys.exit(1)


async def _main() -> None:
    """Async entry point with proper cleanup."""
    import asyncio
    import json

    from acp.agent.connection import AgentSideConnection
    from acp.connection import StreamDirection, StreamEvent
    from acp.stdio import stdio_streams

    from pi_acp.transport.acp.agent import create_agent

    log.info("Creating agent...")
    agent = create_agent()

    def log_message(event: StreamEvent) -> None:
        """Log ACP traffic for debugging."""
        direction = "<<" if event.direction == StreamDirection.INCOMING else ">>"
        method = event.message.get("method", "response")
        msg_id = event.message.get("id", "-")
        msg_str = json.dumps(event.message, default=str)

        if method == "response":
            error = event.message.get("error")
            if error:
                log.debug("%s response (id=%s) ERROR: %s", direction, msg_id, error)
            else:
                log.debug("%s response (id=%s) len=%d", direction, msg_id, len(msg_str))
        elif method == "session/update":
            update = event.message.get("params", {}).get("update", {})
            log.debug(
                "%s %s type=%s len=%d",
                direction, method, update.get("sessionUpdate", "unknown"), len(msg_str)
            )
        else:
            preview = msg_str[:200] + "..." if len(msg_str) > 200 else msg_str
            log.debug("%s %s (id=%s) %s", direction, method, msg_id, preview)

    output_stream, input_stream = await stdio_streams()
    conn = AgentSideConnection(
        agent,
        input_stream,
        output_stream,
        listening=False,
        use_unstable_protocol=True,
    )
    conn._conn.add_observer(log_message)

    log.info("Ready to accept ACP requests")

    try:
        await conn.listen()
    except (BrokenPipeError, ConnectionResetError):
        log.info("Pipe closed, shutting down...")
    finally:
        log.info("Connection closed, stopping pi processes...")
        agent.dispose()
        try:
            await asyncio.wait_for(conn.close(), timeout=2.0)
        except asyncio.TimeoutError:
            log.warning("Connection close timed out, forcing exit")
        except Exception as e:
            log.warning("Error during cleanup: %s", e)


def main() -> None:
    """Run the pi-acp ACP agent."""
    import asyncio

    from pi_acp.config import load_config

    # Load config before logging so we can use config.logging settings
    config = load_config()
    setup_logging(config.logging)

    if TERMINAL_LOGIN_FLAG in sys.argv[1:]:
        _terminal_login(config.pi.command, config.pi.agent_dir)
        return

    log.info("Starting pi-acp (pi command: %s)", config.pi.command)

    try:
        asyncio.run(_main())
    finally:
        # Ensure process exits even if there are lingering resources
        log.info("Exiting...")
        os._exit(0)


if __name__ == "__main__":
    main()
