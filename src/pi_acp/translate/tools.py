"""pi tool names and results in ACP terms."""

from __future__ import annotations

import json
from typing import Any

_TOOL_KINDS = {
    "read": "read",
    "edit": "edit",
    "write": "edit",
}


def to_tool_kind(tool_name: str) -> str:
    """Map a pi tool name to an ACP tool kind.

    bash runs inside pi rather than through the client's terminal API, so it is
    reported as ``other`` and its output is shown inline.
    """
    return _TOOL_KINDS.get(tool_name, "other")


def _first_str(*candidates: Any) -> str | None:
    for c in candidates:
        if isinstance(c, str):
            return c
    return None


def _first_int(*candidates: Any) -> int | None:
    for c in candidates:
        if isinstance(c, int) and not isinstance(c, bool):
            return c
    return None


def tool_result_to_text(result: Any) -> str:
    """Flatten a pi tool result into display text.

    Preference order: text content blocks, ``details.diff``, stdout/stderr
    with exit code, then the whole result as indented JSON.
    """
    if result is None or result == "":
        return ""
    if isinstance(result, str):
        return result

    if isinstance(result, dict):
        content = result.get("content")
        if isinstance(content, list):
            texts = [
                c["text"]
                for c in content
                if isinstance(c, dict) and c.get("type") == "text" and isinstance(c.get("text"), str)
            ]
            joined = "".join(texts)
            if joined:
                return joined

        details = result.get("details")
        if not isinstance(details, dict):
            details = {}

        diff = details.get("diff")
        if isinstance(diff, str) and diff.strip():
            return diff

        stdout = _first_str(
            details.get("stdout"), result.get("stdout"), details.get("output"), result.get("output")
        )
        stderr = _first_str(details.get("stderr"), result.get("stderr"))
        exit_code = _first_int(
            details.get("exitCode"), result.get("exitCode"), details.get("code"), result.get("code")
        )

        if (stdout and stdout.strip()) or (stderr and stderr.strip()):
            parts: list[str] = []
            if stdout and stdout.strip():
                parts.append(stdout)
            if stderr and stderr.strip():
                parts.append(f"stderr:\n{stderr}")
            if exit_code is not None:
                parts.append(f"exit code: {exit_code}")
            return "\n\n".join(parts).rstrip()

    try:
        return json.dumps(result, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(result)
