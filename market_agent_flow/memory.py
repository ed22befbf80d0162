"""Per-agent conversation memory persisted as JSON files.

Layout: ``<directory>/<agent>/<session>.json``. Kept separate from the
suspension store's directory.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from .llm.adapter import Message

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]+")


def _safe(name: str) -> str:
    cleaned = _SAFE_NAME.sub("_", name).strip(".")
    return cleaned or "_"


class ConversationMemory:
    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, agent: str, session_id: str) -> Path:
        return self.directory / _safe(agent) / f"{_safe(session_id)}.json"

    def load(self, agent: str, session_id: str) -> list[Message]:
        """Stored messages for a session, oldest first. Empty if none."""
        path = self._path(agent, session_id)
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return [Message.from_dict(m) for m in data.get("messages", [])]

    def save(self, agent: str, session_id: str, messages: list[Message]) -> None:
        path = self._path(agent, session_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(
                {"agent": agent, "session_id": session_id, "messages": [m.to_dict() for m in messages]},
                f,
                indent=2,
                ensure_ascii=False,
            )
        logger.debug("Saved %d messages for %s/%s", len(messages), agent, session_id)

    def append(self, agent: str, session_id: str, *messages: Message) -> None:
        history = self.load(agent, session_id)
        history.extend(messages)
        self.save(agent, session_id, history)

    def clear(self, agent: str, session_id: str) -> None:
        self._path(agent, session_id).unlink(missing_ok=True)

    def sessions(self, agent: str) -> list[str]:
        folder = self.directory / _safe(agent)
        if not folder.exists():
            return []
        return sorted(p.stem for p in folder.glob("*.json"))
