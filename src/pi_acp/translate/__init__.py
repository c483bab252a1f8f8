"""Conversions between ACP shapes and pi RPC shapes."""

from pi_acp.translate.commands import BUILTIN_COMMANDS, merge_commands, to_available_commands
from pi_acp.translate.messages import iter_history
from pi_acp.translate.prompt import (
    PiPrompt,
    base64_byte_length,
    guess_file_name_from_mime,
    prompt_text,
    prompt_to_pi_message,
)
from pi_acp.translate.tools import to_tool_kind, tool_result_to_text

__all__ = [
    "BUILTIN_COMMANDS",
    "PiPrompt",
    "base64_byte_length",
    "guess_file_name_from_mime",
    "iter_history",
    "merge_commands",
    "prompt_text",
    "prompt_to_pi_message",
    "to_available_commands",
    "to_tool_kind",
    "tool_result_to_text",
]
