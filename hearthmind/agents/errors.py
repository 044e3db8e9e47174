from __future__ import annotations

from typing import Optional


class AgentError(Exception):
    """Base for every failure that aborts a single turn."""


class StoreUnavailable(AgentError):
    """Durable conversation state cannot be read or written."""


class ToolError(AgentError):
    """Base for tool-dispatch failures."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class UnknownTool(ToolError):
    def __init__(self, tool_name: str, available: Optional[list] = None) -> None:
        msg = f"unknown tool '{tool_name}'"
        if available:
            msg += f" (available: {', '.join(available)})"
        super().__init__(tool_name, msg)


class InvalidArguments(ToolError):
    def __init__(self, tool_name: str, detail: str) -> None:
        self.detail = detail
        super().__init__(tool_name, f"invalid arguments for '{tool_name}': {detail}")


class ToolExecutionError(ToolError):
    """A handler raised. The original exception is kept on ``cause``."""

    def __init__(self, tool_name: str, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(tool_name, f"tool '{tool_name}' failed: {type(cause).__name__}: {cause}")


class CompletionError(AgentError):
    """Base for LLM client failures."""


class UpstreamError(CompletionError):
    """Network or provider failure."""


class RateLimited(CompletionError):
    def __init__(self, message: str = "rate limited by provider", retry_after: Optional[float] = None) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


class TurnLimitExceeded(AgentError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"turn exceeded {limit} tool-call cycles")


class ProviderConfigError(Exception):
    """Provider cannot be constructed (missing package or API key)."""
