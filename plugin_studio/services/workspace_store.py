"""
Workspace Store - autosave text and append-only snapshot/history/changelog lists

Lists are kept newest first and capped; writes are last-writer-wins.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SNAPSHOT_LIMIT = 100
HISTORY_LIMIT = 200
CHANGELOG_LIMIT = 500


class WorkspaceStore:
    """JSON file persistence for editor state"""

    def __init__(self, directory: Path):
        self._file = Path(directory) / "workspace.json"

    def _load(self) -> dict[str, Any]:
        if not self._file.exists():
            return {}
        try:
            with open(self._file) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Error loading workspace: %s", e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]):
        self._file.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self._file, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save workspace: {e}")

    def _get_list(self, key: str) -> list[dict[str, Any]]:
        value = self._load().get(key)
        return value if isinstance(value, list) else []

    def _prepend(self, key: str, entry: dict[str, Any], limit: int):
        data = self._load()
        items = data.get(key) if isinstance(data.get(key), list) else []
        data[key] = [entry, *items][:limit]
        self._save(data)

    # ========== Autosave ==========

    def get_autosave(self) -> str:
        return self._load().get("autosave") or ""

    def set_autosave(self, text: str | None):
        data = self._load()
        data["autosave"] = text or ""
        self._save(data)

    # ========== Snapshots ==========

    def get_snapshots(self) -> list[dict[str, Any]]:
        return self._get_list("snapshots")

    def add_snapshot(self, snapshot: dict[str, Any]):
        self._prepend("snapshots", snapshot, SNAPSHOT_LIMIT)

    def delete_snapshot(self, ts: int) -> bool:
        data = self._load()
        snapshots = self._get_list("snapshots")
        remaining = [s for s in snapshots if s.get("ts") != ts]
        data["snapshots"] = remaining
        self._save(data)
        return len(remaining) != len(snapshots)

    # ========== History / changelog ==========

    def get_history(self) -> list[dict[str, Any]]:
        return self._get_list("history")

    def add_history(self, entry: dict[str, Any]):
        self._prepend("history", entry, HISTORY_LIMIT)

    def get_changelog(self) -> list[dict[str, Any]]:
        return self._get_list("changelog")

    def add_changelog(self, entry: dict[str, Any]):
        self._prepend("changelog", entry, CHANGELOG_LIMIT)
