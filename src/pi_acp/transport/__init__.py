"""Transport layer: ACP over stdio."""

from pi_acp.transport.acp.agent import PiAcpAgent, create_agent

__all__ = [
    "PiAcpAgent",
    "create_agent",
]
