"""pi-acp: Agent Client Protocol adapter for the pi coding agent."""

__version__ = "0.1.0"

from pi_acp.config import Config, get_config, load_config
from pi_acp.rpc import PiRpcProcess
from pi_acp.session import PiAcpSession, SessionManager, StopReason
from pi_acp.transport import PiAcpAgent, create_agent

__all__ = [
    "Config",
    "PiAcpAgent",
    "PiAcpSession",
    "PiRpcProcess",
    "SessionManager",
    "StopReason",
    "__version__",
    "create_agent",
    "get_config",
    "load_config",
]
