"""Slash commands advertised to the client.

Builtins are handled by the adapter itself; the rest come from pi's
``get_commands`` (prompt templates, skills, extension commands).
"""

from __future__ import annotations

from typing import Any

from acp.schema import AvailableCommand

BUILTIN_COMMANDS = [
    AvailableCommand(
        name="compact",
        description="Compact the conversation (optional: custom instructions)",
    ),
    AvailableCommand(name="autocompact", description="Turn automatic compaction on or off"),
    AvailableCommand(name="export", description="Export the session to an HTML file"),
    AvailableCommand(name="name", description="Set the session name"),
    AvailableCommand(name="session", description="Show session details"),
    AvailableCommand(
        name="steering",
        description="Show or set the steering mode (all | one-at-a-time)",
    ),
    AvailableCommand(
        name="follow-up",
        description="Show or set the follow-up mode (all | one-at-a-time)",
    ),
]


def _describe_fallback(command: dict[str, Any]) -> str:
    parts = [
        v for v in (command.get("source"), command.get("location")) if isinstance(v, str) and v
    ]
    return f"({':'.join(parts)})" if parts else "(command)"


def to_available_commands(
    data: Any,
    *,
    enable_skill_commands: bool = True,
    include_extension_commands: bool = False,
) -> list[AvailableCommand]:
    """Convert a ``get_commands`` reply into ACP available commands.

    Extension commands are hidden unless requested, ``skill:`` commands are
    hidden when skills are disabled, and a missing description falls back to
    ``(source:location)``.
    """
    raw: Any = []
    if isinstance(data, dict):
        raw = data.get("commands")
        if not isinstance(raw, list) and isinstance(data.get("data"), dict):
            raw = data["data"].get("commands")
    if not isinstance(raw, list):
        return []

    out: list[AvailableCommand] = []
    for c in raw:
        if not isinstance(c, dict):
            continue
        name = c.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            continue
        if not include_extension_commands and c.get("source") == "extension":
            continue
        if not enable_skill_commands and name.startswith("skill:"):
            continue

        description = c.get("description")
        description = description.strip() if isinstance(description, str) else ""
        out.append(AvailableCommand(name=name, description=description or _describe_fallback(c)))
    return out


def merge_commands(*groups: list[AvailableCommand]) -> list[AvailableCommand]:
    """Concatenate command lists, keeping the first command of each name."""
    seen: set[str] = set()
    merged: list[AvailableCommand] = []
    for group in groups:
        for command in group:
            if command.name in seen:
                continue
            seen.add(command.name)
            merged.append(command)
    return merged
