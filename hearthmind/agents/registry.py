from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .base import Tool, ToolCall, ToolContext
from .errors import InvalidArguments, ToolExecutionError, UnknownTool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name → tool lookup plus argument validation and dispatch.

    Usage::

        registry = ToolRegistry([WeatherTool(), HeaterTool()])
        result = registry.dispatch(call, user_message="is it cold in Oslo?")
    """

    def __init__(self, tools: Iterable[Tool] = (), cfg: Any = None) -> None:
        self._tools: Dict[str, Tool] = {}
        self.cfg = cfg
        for t in tools:
            self.register(t)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def schemas(self) -> List[Dict[str, Any]]:
        return [t.to_schema() for t in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def parse_arguments(self, tool: Tool, raw: str) -> Any:
        text = (raw or "").strip() or "{}"
        try:
            data = json.loads(text)
        except ValueError as e:
            raise InvalidArguments(tool.name, f"not valid JSON ({e})") from e
        if not isinstance(data, dict):
            raise InvalidArguments(tool.name, "expected a JSON object")
        try:
            return tool.Args.model_validate(data)
        except ValidationError as e:
            raise InvalidArguments(tool.name, _summarize(e)) from e

    def dispatch(self, call: ToolCall, user_message: str) -> Any:
        tool = self._tools.get(call.name)
        if tool is None:
            raise UnknownTool(call.name, self.names())
        args = self.parse_arguments(tool, call.arguments)
        ctx = ToolContext(user_message=user_message, cfg=self.cfg)
        logger.debug("dispatching %s(%s) for call %s", tool.name, call.arguments, call.id)
        try:
            return tool.run(ctx, args)
        except Exception as e:
            raise ToolExecutionError(tool.name, e) from e


def _summarize(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "(root)"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)
