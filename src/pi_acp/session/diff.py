"""Before/after snapshots for edit-type tool calls.

pi reports edits as a unified-diff string; ACP clients want the old and new
file text, so the file is read when the tool starts and again when it ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from acp import helpers

from pi_acp.logging import get_logger

log = get_logger("session")

EDIT_TOOLS = frozenset({"edit", "write"})


@dataclass
class EditSnapshot:
    """File text captured before an edit tool ran."""

    path: str  # As given in the tool args
    old_text: str


class DiffSynthesizer:
    """Per-session store of pending edit snapshots."""

    def __init__(self, cwd: str) -> None:
        self._cwd = Path(cwd)
        self._snapshots: dict[str, EditSnapshot] = {}

    def __len__(self) -> int:
        return len(self._snapshots)

    def resolve(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self._cwd / p

    def _read(self, path: str) -> str | None:
        try:
            return self.resolve(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log.debug("Snapshot read failed for %s: %s", path, e)
            return None

    def capture(self, tool_call_id: str, tool_name: str, args: Any) -> bool:
        """Snapshot the target file of an edit tool. Returns True if captured."""
        if tool_name not in EDIT_TOOLS or not isinstance(args, dict):
            return False
        path = args.get("path")
        if not isinstance(path, str) or not path:
            return False

        old_text = self._read(path)
        if old_text is None:
            return False
        self._snapshots[tool_call_id] = EditSnapshot(path=path, old_text=old_text)
        return True

    def finish(self, tool_call_id: str, is_error: bool) -> Any | None:
        """Consume the snapshot and return a diff content block if the file changed."""
        snapshot = self._snapshots.pop(tool_call_id, None)
        if snapshot is None or is_error:
            return None

        new_text = self._read(snapshot.path)
        if new_text is None or new_text == snapshot.old_text:
            return None
        return helpers.tool_diff_content(snapshot.path, new_text, snapshot.old_text)

    def clear(self) -> None:
        self._snapshots.clear()
