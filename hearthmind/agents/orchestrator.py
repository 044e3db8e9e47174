from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Optional

from .base import LLMClient, Message, TurnStats, serialize_result
from .errors import ToolError, TurnLimitExceeded
from .registry import ToolRegistry
from .store import MessageStore, pending_tool_call

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_CYCLES = 8


class AgentState(str, enum.Enum):
    AWAITING_USER_INPUT = "awaiting_user_input"
    THINKING = "thinking"
    RESPONDING = "responding"
    ACTING = "acting"
    DONE = "done"


class AgentOrchestrator:
    """Runs one turn: user message → (model → tool)* → final answer.

    The transcript is reloaded from the store before every model call, so
    the model always sees the last committed state. At most one tool call is
    executed per assistant message; when the model proposes several, the
    first wins and the rest are dropped from the persisted message.
    """

    def __init__(
        self,
        llm: LLMClient,
        registry: ToolRegistry,
        store: MessageStore,
        max_tool_cycles: int = DEFAULT_MAX_TOOL_CYCLES,
    ) -> None:
        if max_tool_cycles < 0:
            raise ValueError("max_tool_cycles must be >= 0")
        self.llm = llm
        self.registry = registry
        self.store = store
        self.max_tool_cycles = max_tool_cycles
        self.state = AgentState.AWAITING_USER_INPUT
        self.last_stats: Optional[TurnStats] = None

    def _enter(self, state: AgentState) -> None:
        logger.debug("state %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self, user_message: str) -> str:
        stats = TurnStats()
        self.last_stats = stats
        try:
            self.reconcile()
            self.store.append([Message.user(user_message)])
            self._enter(AgentState.THINKING)
            while True:
                transcript = self.store.load_all()
                reply = self.llm.complete(transcript, self.registry.schemas() or None)
                stats.completions += 1

                if not reply.is_tool_request:
                    self._enter(AgentState.RESPONDING)
                    if reply.tool_calls:
                        logger.warning(
                            "model returned content and %d tool call(s); keeping content only",
                            len(reply.tool_calls),
                        )
                        reply = dataclasses.replace(reply, tool_calls=())
                    self.store.append([reply])
                    self._enter(AgentState.DONE)
                    return reply.content or ""

                if stats.tool_cycles >= self.max_tool_cycles:
                    raise TurnLimitExceeded(self.max_tool_cycles)

                self._enter(AgentState.ACTING)
                call = reply.tool_calls[0]
                if len(reply.tool_calls) > 1:
                    dropped = ", ".join(c.name for c in reply.tool_calls[1:])
                    logger.warning("parallel tool calls are not supported; running %s, dropping %s", call.name, dropped)
                    reply = dataclasses.replace(reply, tool_calls=(call,))
                self.store.append([reply])

                result = self.registry.dispatch(call, user_message)
                self.store.append([Message.tool_result(call.id, serialize_result(result))])
                stats.tool_cycles += 1
                stats.tools_used.append(call.name)
                self._enter(AgentState.THINKING)
        except BaseException:
            # Errors and interrupts end the turn; committed appends stay.
            self.state = AgentState.AWAITING_USER_INPUT
            raise

    def reconcile(self) -> bool:
        """Answer a tool request left unanswered by an earlier, interrupted turn.

        Handlers are pure, so the call is simply dispatched again. If that
        fails, an error result is recorded to close the call. Returns True
        when a result was appended.
        """
        pending = pending_tool_call(self.store.load_all())
        if pending is None:
            return False
        call, user_text = pending
        logger.info("re-dispatching unanswered tool call %s (%s)", call.id, call.name)
        try:
            text = serialize_result(self.registry.dispatch(call, user_text))
        except ToolError as e:
            text = serialize_result({"error": str(e), "abandoned": True})
        self.store.append([Message.tool_result(call.id, text)])
        return True
