from __future__ import annotations

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import openai
import tenacity

from .base import LLMClient, Message, ToolCall
from .errors import ProviderConfigError, RateLimited, UpstreamError

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are HearthMind, a home-climate assistant. You can look up the weather and decide "
    "whether the heater should run. Call at most one tool at a time and wait for its result. "
    "Keep answers short and match the user's language."
)


def to_wire(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """Convert stored messages to the OpenAI chat payload."""
    payload: List[Dict[str, Any]] = []
    for m in messages:
        item: Dict[str, Any] = {"role": m.role, "content": m.content}
        if m.tool_calls:
            item["tool_calls"] = [
                {
                    "id": c.id,
                    "type": "function",
                    "function": {"name": c.name, "arguments": c.arguments or "{}"},
                }
                for c in m.tool_calls
            ]
        if m.tool_call_id:
            item["tool_call_id"] = m.tool_call_id
        payload.append(item)
    return payload


def from_wire(msg: Any) -> Message:
    """Convert an OpenAI response message to a Message."""
    content = (getattr(msg, "content", None) or "").strip() or None
    calls = tuple(
        ToolCall(id=c.id, name=c.function.name, arguments=c.function.arguments or "")
        for c in (getattr(msg, "tool_calls", None) or [])
    )
    if not content and not calls:
        raise UpstreamError("provider returned an empty message")
    return Message(role="assistant", content=content, tool_calls=calls)


class OpenAIChat(LLMClient):
    def __init__(self, *, api_key: str, base_url: Optional[str], model: str, system_prompt: str = SYSTEM_PROMPT) -> None:
        if not api_key:
            raise ProviderConfigError("OpenAI API key is missing (set OPENAI_API_KEY)")
        # Retries are a caller policy (see RetryingLLM).
        self._client = openai.OpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self._model = model
        self._system = system_prompt

    def complete(self, history: Sequence[Message], tools: Optional[List[Dict[str, Any]]] = None) -> Message:
        payload = [{"role": "system", "content": self._system}] + to_wire(history)
        kwargs: Dict[str, Any] = {"model": self._model, "messages": payload}
        if tools:
            kwargs["tools"] = [{"type": "function", "function": t} for t in tools]
            kwargs["parallel_tool_calls"] = False
        try:
            resp = self._client.chat.completions.create(**kwargs)
        except openai.RateLimitError as e:
            raise RateLimited(retry_after=_retry_after(e)) from e
        except openai.OpenAIError as e:
            raise UpstreamError(f"{type(e).__name__}: {e}") from e
        if not resp.choices:
            raise UpstreamError("provider returned no choices")
        return from_wire(resp.choices[0].message)


def _retry_after(err: "openai.RateLimitError") -> Optional[float]:
    response = getattr(err, "response", None)
    raw = response.headers.get("retry-after") if response is not None else None
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class NoopLLM(LLMClient):
    """LLM stub for simple mode. Returns a helpful offline message."""

    def complete(self, history: Sequence[Message], tools: Optional[List[Dict[str, Any]]] = None) -> Message:  # noqa: ARG002
        return Message.assistant(
            "AI is unavailable in simple mode. Set OPENAI_API_KEY and run with --provider openai."
        )


class RetryingLLM(LLMClient):
    """Wraps a client with bounded exponential backoff on RateLimited only."""

    def __init__(
        self,
        inner: LLMClient,
        attempts: int = 3,
        max_wait: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inner = inner
        self.attempts = max(1, attempts)
        self.max_wait = max_wait
        self._sleep = sleep

    def _wait(self, retry_state: tenacity.RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        hinted = getattr(exc, "retry_after", None)
        backoff = tenacity.wait_exponential(multiplier=1, min=1, max=self.max_wait)(retry_state)
        if hinted is not None:
            return min(max(hinted, backoff), self.max_wait)
        return backoff

    def complete(self, history: Sequence[Message], tools: Optional[List[Dict[str, Any]]] = None) -> Message:
        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception_type(RateLimited),
            wait=self._wait,
            stop=tenacity.stop_after_attempt(self.attempts),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
            sleep=self._sleep,
        )
        return retryer(self.inner.complete, history, tools)


def build_llm(cfg: Any) -> LLMClient:
    """Construct the configured client once; the credential is read here."""
    provider = (cfg.provider or "openai").lower()
    if provider in {"simple", "noop", "offline"}:
        return NoopLLM()
    if provider not in {"openai", "gpt"}:
        raise ProviderConfigError(f"Unknown provider: {cfg.provider}")
    key = cfg.openai_api_key or os.getenv("OPENAI_API_KEY")
    llm: LLMClient = OpenAIChat(api_key=key or "", base_url=cfg.openai_base_url, model=cfg.openai_model)
    if cfg.rate_limit_retries > 0:
        llm = RetryingLLM(llm, attempts=cfg.rate_limit_retries + 1)
    return llm
