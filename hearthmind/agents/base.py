from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel

ROLES = ("user", "assistant", "tool")


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str = ""  # raw JSON object as sent by the provider


@dataclass(frozen=True)
class Message:
    role: str  # user | assistant | tool
    content: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"unknown role: {self.role!r}")
        if self.tool_calls and self.role != "assistant":
            raise ValueError("only assistant messages may carry tool calls")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("tool messages require tool_call_id")
        if self.tool_call_id and self.role != "tool":
            raise ValueError("only tool messages may carry tool_call_id")

    @property
    def is_tool_request(self) -> bool:
        # Content wins when a provider returns both.
        return bool(self.tool_calls) and not self.content

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role="user", content=text)

    @classmethod
    def assistant(cls, text: str) -> "Message":
        return cls(role="assistant", content=text)

    @classmethod
    def tool_result(cls, call_id: str, text: str) -> "Message":
        return cls(role="tool", content=text, tool_call_id=call_id)


@dataclass(frozen=True)
class StoredMessage:
    """A message as persisted, with storage metadata."""

    id: str
    created_at: str
    message: Message

    def to_record(self) -> Dict[str, Any]:
        m = self.message
        return {
            "id": self.id,
            "role": m.role,
            "content": m.content,
            "tool_calls": [{"id": c.id, "name": c.name, "arguments": c.arguments} for c in m.tool_calls],
            "tool_call_id": m.tool_call_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, raw: Dict[str, Any]) -> "StoredMessage":
        calls = tuple(
            ToolCall(id=str(c["id"]), name=str(c["name"]), arguments=str(c.get("arguments") or ""))
            for c in raw.get("tool_calls") or []
        )
        msg = Message(
            role=raw["role"],
            content=raw.get("content"),
            tool_calls=calls,
            tool_call_id=raw.get("tool_call_id"),
        )
        return cls(id=str(raw["id"]), created_at=str(raw["created_at"]), message=msg)


class LLMClient:
    """Chat completion interface consumed by the agent orchestrator.

    ``complete`` returns exactly one message: either content-bearing or a
    tool request.
    """

    def complete(
        self, history: Sequence[Message], tools: Optional[List[Dict[str, Any]]] = None
    ) -> Message:  # pragma: no cover - interface
        raise NotImplementedError


class ToolContext:
    """Ambient context handed to tool handlers."""

    def __init__(self, *, user_message: str = "", cfg: Any = None) -> None:
        self.user_message = user_message
        self.cfg = cfg


class Tool:
    """Named, schema-described deterministic function the model may request.

    Subclasses set ``name``, ``description`` and an ``Args`` pydantic model
    whose fields carry a ``description``; ``run`` receives a validated
    ``Args`` instance and must not touch the message store.
    """

    name: ClassVar[str] = "tool"
    description: ClassVar[str] = ""
    Args: ClassVar[Type[BaseModel]]

    def run(self, ctx: ToolContext, args: Any) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    @classmethod
    def parameter_schema(cls) -> Dict[str, Any]:
        schema = cls.Args.model_json_schema()
        props = {}
        for key, prop in (schema.get("properties") or {}).items():
            props[key] = {k: v for k, v in prop.items() if k != "title"}
        out: Dict[str, Any] = {"type": "object", "properties": props}
        if schema.get("required"):
            out["required"] = list(schema["required"])
        return out

    @classmethod
    def to_schema(cls) -> Dict[str, Any]:
        return {
            "name": cls.name,
            "description": cls.description,
            "parameters": cls.parameter_schema(),
        }


def serialize_result(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)


@dataclass
class TurnStats:
    """Counters for one turn, used for status output."""

    completions: int = 0
    tool_cycles: int = 0
    tools_used: List[str] = field(default_factory=list)
