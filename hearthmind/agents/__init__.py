from .base import LLMClient, Message, StoredMessage, Tool, ToolCall, ToolContext
from .errors import (
    AgentError,
    InvalidArguments,
    ProviderConfigError,
    RateLimited,
    StoreUnavailable,
    ToolExecutionError,
    TurnLimitExceeded,
    UnknownTool,
    UpstreamError,
)
from .orchestrator import AgentOrchestrator, AgentState
from .providers import NoopLLM, OpenAIChat, RetryingLLM, build_llm
from .registry import ToolRegistry
from .store import MessageStore
from .tools import HeaterTool, WeatherTool, default_tools

__all__ = [
    "LLMClient",
    "Message",
    "StoredMessage",
    "Tool",
    "ToolCall",
    "ToolContext",
    "AgentError",
    "InvalidArguments",
    "ProviderConfigError",
    "RateLimited",
    "StoreUnavailable",
    "ToolExecutionError",
    "TurnLimitExceeded",
    "UnknownTool",
    "UpstreamError",
    "AgentOrchestrator",
    "AgentState",
    "NoopLLM",
    "OpenAIChat",
    "RetryingLLM",
    "build_llm",
    "ToolRegistry",
    "MessageStore",
    "HeaterTool",
    "WeatherTool",
    "default_tools",
]
