"""ACP prompt content blocks to a pi prompt command."""

from __future__ import annotations

import uuid
from typing import Any, NamedTuple

_MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}


class PiPrompt(NamedTuple):
    message: str
    attachments: list[dict[str, Any]]


def guess_file_name_from_mime(mime_type: str) -> str:
    return f"attachment.{_MIME_EXTENSIONS.get(mime_type, 'bin')}"


def base64_byte_length(data: str) -> int:
    """Decoded size of a base64 payload, without decoding it."""
    stripped = "".join(data.split()).rstrip("=")
    return len(stripped) * 3 // 4


def _get(block: Any, name: str, alias: str | None = None) -> Any:
    # Blocks arrive as acp schema models; plain dicts use the wire names
    if isinstance(block, dict):
        return block.get(alias or name)
    return getattr(block, name, None)


def prompt_to_pi_message(blocks: list[Any]) -> PiPrompt:
    """Translate ACP prompt blocks.

    Text blocks are concatenated, resource links become ``[Context] <uri>``
    lines and images become pi attachments (base64 without a data-url
    prefix). Audio and embedded resources are not supported by pi and are
    skipped.
    """
    message = ""
    attachments: list[dict[str, Any]] = []

    for block in blocks:
        match _get(block, "type"):
            case "text":
                message += _get(block, "text") or ""
            case "resource_link":
                message += f"\n[Context] {_get(block, 'uri')}"
            case "image":
                data = _get(block, "data") or ""
                mime_type = _get(block, "mime_type", "mimeType") or ""
                attachments.append(
                    {
                        "id": _get(block, "uri") or str(uuid.uuid4()),
                        "type": "image",
                        "fileName": guess_file_name_from_mime(mime_type),
                        "mimeType": mime_type,
                        "size": base64_byte_length(data),
                        "content": data,
                    }
                )
            case _:
                pass

    return PiPrompt(message, attachments)


def prompt_text(blocks: list[Any]) -> str:
    """Concatenated text of the text blocks only (for slash command parsing)."""
    return "".join(_get(b, "text") or "" for b in blocks if _get(b, "type") == "text")
