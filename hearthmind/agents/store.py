from __future__ import annotations

import json
import logging
import os
import tempfile
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Sequence

from git import InvalidGitRepositoryError, NoSuchPathError, Repo  # type: ignore

from .base import Message, StoredMessage
from .errors import StoreUnavailable

logger = logging.getLogger(__name__)


def _now_id() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def _project_root() -> Path:
    try:
        repo = Repo(search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return Path.cwd()
    return Path(repo.working_tree_dir or Path(repo.git_dir).parent)


def sessions_dir(cfg: Any = None) -> Path:
    """Directory holding session transcripts for the current project."""
    override = getattr(cfg, "sessions_dir", None)
    base = Path(override).expanduser() if override else _project_root() / ".hearthmind" / "sessions"
    base.mkdir(parents=True, exist_ok=True)
    return base


def list_sessions(base: Path) -> List[Path]:
    """Session files, most recently modified first."""
    return sorted(base.glob("*.json"), key=lambda p: (p.stat().st_mtime, p.name), reverse=True)


class MessageStore:
    """Append-only conversation log backed by one JSON file per session.

    Every ``append`` rewrites the file through a temporary sibling and
    ``os.replace``, so a batch is either fully persisted or not at all.
    """

    def __init__(self, path: Path, session_id: Optional[str] = None) -> None:
        self.path = Path(path)
        self.session_id = session_id or self.path.stem

    @classmethod
    def create(cls, base: Path) -> "MessageStore":
        sid = _now_id()
        path = base / f"{sid}.json"
        n = 1
        while path.exists():
            n += 1
            path = base / f"{sid}-{n}.json"
        return cls(path, path.stem)

    @classmethod
    def open(cls, base: Path, session_id: str) -> "MessageStore":
        p = Path(session_id)
        if p.suffix == ".json" and p.exists():
            return cls(p)
        return cls(base / f"{session_id}.json", session_id)

    @classmethod
    def latest(cls, base: Path) -> "MessageStore":
        found = list_sessions(base)
        if found:
            return cls(found[0])
        return cls.create(base)

    def _read(self) -> List[StoredMessage]:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreUnavailable(f"cannot read {self.path}: {e}") from e
        try:
            raw = json.loads(data.decode("utf-8"))
            items = raw["messages"]
            if not isinstance(items, list) or not all(isinstance(r, dict) for r in items):
                raise TypeError("messages must be a list of objects")
            records = [StoredMessage.from_record(r) for r in items]
            _check_tool_links([], [r.message for r in records])
        except (ValueError, KeyError, TypeError) as e:
            raise StoreUnavailable(f"corrupt session file {self.path}: {e}") from e
        return records

    def _write(self, records: List[StoredMessage]) -> None:
        payload = {
            "session_id": self.session_id,
            "messages": [r.to_record() for r in records],
        }
        data = json.dumps(payload, ensure_ascii=False, indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.stem}-", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreUnavailable(f"cannot write {self.path}: {e}") from e

    def append(self, messages: Sequence[Message]) -> List[StoredMessage]:
        existing = self._read()
        _check_tool_links(existing, messages)
        now = datetime.now(timezone.utc).isoformat()
        added = [StoredMessage(id=uuid.uuid4().hex, created_at=now, message=m) for m in messages]
        self._write(existing + added)
        logger.debug("appended %d message(s) to %s", len(added), self.path)
        return added

    def load_all(self) -> List[Message]:
        return [r.message for r in self._read()]

    def records(self) -> List[StoredMessage]:
        return self._read()


def _check_tool_links(existing: Sequence[StoredMessage], batch: Sequence[Message]) -> None:
    issued = {c.id for r in existing for c in r.message.tool_calls}
    for m in batch:
        if m.role == "tool" and m.tool_call_id not in issued:
            raise ValueError(f"tool result for unknown tool call id {m.tool_call_id!r}")
        issued.update(c.id for c in m.tool_calls)


def pending_tool_call(messages: Sequence[Message]) -> Optional[tuple]:
    """Return ``(call, user_text)`` when the transcript ends in an unanswered tool request."""
    if not messages:
        return None
    last = messages[-1]
    if not last.is_tool_request:
        return None
    user_text = ""
    for m in reversed(messages):
        if m.role == "user":
            user_text = m.content or ""
            break
    return last.tool_calls[0], user_text
