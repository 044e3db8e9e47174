from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

from hearthmind.agents.base import LLMClient, Message, ToolCall
from hearthmind.agents.registry import ToolRegistry
from hearthmind.agents.store import MessageStore
from hearthmind.agents.tools import default_tools


class ScriptedLLM(LLMClient):
    """Returns queued replies in order and records every request."""

    def __init__(self, replies: Sequence[Any]) -> None:
        self.replies = list(replies)
        self.calls: List[List[Message]] = []
        self.tools_seen: List[Optional[List[Dict[str, Any]]]] = []

    def complete(self, history, tools=None) -> Message:
        self.calls.append(list(history))
        self.tools_seen.append(tools)
        if not self.replies:
            raise AssertionError("ScriptedLLM ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class CountingStore(MessageStore):
    """MessageStore that counts append calls."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.append_calls = 0

    def append(self, messages):
        self.append_calls += 1
        return super().append(messages)


def tool_request(name: str, arguments: str = "{}", call_id: str = "call_1") -> Message:
    return Message(role="assistant", tool_calls=(ToolCall(id=call_id, name=name, arguments=arguments),))


@pytest.fixture
def store(tmp_path: Path) -> CountingStore:
    return CountingStore(tmp_path / "sessions" / "test-session.json")


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry(default_tools())
