"""
Agent execution loop.

Drives one agent's conversation forward:
1. Calls the model with the conversation and the agent's tool definitions
2. Appends the reply (always, so tool calls keep their assistant turn)
3. Stops on the terminal marker, or when the reply has no tool calls
4. Otherwise runs the tool calls in order, appends their results and loops

Tool failures come back as result strings from the executor. Model failures
propagate to the caller. An iteration cap bounds runaway tool loops.
"""

import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from ..errors import AgentTimeoutError
from ..llm.base import BaseLLM, LLMMessage, LLMResponse, ToolCall, ToolDefinition
from ..tools.executor import ToolExecutor
from .observer import ProgressObserver

logger = structlog.get_logger()

DEFAULT_TERMINAL_MARKER = "[STOP]"
DEFAULT_MAX_ITERATIONS = 20


def strip_marker(text: str, marker: str = DEFAULT_TERMINAL_MARKER) -> str:
    """Remove every occurrence of ``marker`` and surrounding whitespace."""
    return (text or "").replace(marker, "").strip()


def format_task(task: str, options: dict[str, Any] | None = None) -> str:
    """Append a visible Options block to the task when options are given."""
    if not options:
        return task
    return f"{task}\n\nOptions:\n{json.dumps(options, indent=2, ensure_ascii=False, default=str)}"


@dataclass
class Conversation:
    """One agent's private message list."""

    messages: list[LLMMessage] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_task(
        cls,
        system_prompt: str,
        task: str,
        options: dict[str, Any] | None = None,
    ) -> "Conversation":
        """Seed a conversation with a system prompt and a task."""
        conversation = cls()
        conversation.add_system_message(system_prompt)
        conversation.add_user_message(format_task(task, options))
        return conversation

    def add_system_message(self, content: str) -> None:
        self.messages.append(LLMMessage(role="system", content=content))

    def add_user_message(self, content: str) -> None:
        """Add a user message."""
        self.messages.append(LLMMessage(role="user", content=content))

    def add_assistant_message(
        self, content: str, tool_calls: list[ToolCall] | None = None
    ) -> None:
        """Add an assistant message."""
        self.messages.append(LLMMessage(
            role="assistant",
            content=content,
            tool_calls=tool_calls,
        ))

    def add_tool_result(self, tool_call_id: str, result: str, tool_name: str = "") -> None:
        """Add a tool result."""
        self.messages.append(LLMMessage(
            role="tool",
            content=result,
            tool_call_id=tool_call_id,
            name=tool_name,
        ))

    @property
    def last_message(self) -> LLMMessage | None:
        return self.messages[-1] if self.messages else None

    def final_content(self, marker: str = DEFAULT_TERMINAL_MARKER) -> str:
        """The last turn's content with markers stripped."""
        last = self.last_message
        return strip_marker(last.content if last else "", marker)

    @property
    def message_count(self) -> int:
        """Get the number of messages."""
        return len(self.messages)


class StopReason(str, Enum):
    """Why an agent loop stopped."""
    MARKER = "marker"
    COMPLETED = "completed"
    MAX_ITERATIONS = "max_iterations"


@dataclass
class LoopResult:
    """Outcome of one AgentLoop.run."""

    reason: StopReason
    iterations: int
    content: str


class AgentLoop:
    """The model/tool loop shared by every agent."""

    def __init__(
        self,
        llm: BaseLLM,
        terminal_marker: str = DEFAULT_TERMINAL_MARKER,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        model_timeout: float | None = None,
        observer: ProgressObserver | None = None,
    ):
        self.llm = llm
        self.terminal_marker = terminal_marker
        self.max_iterations = max_iterations
        self.model_timeout = model_timeout
        self.observer = observer or ProgressObserver()

    async def _generate(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition],
    ) -> LLMResponse:
        call = self.llm.generate(messages=list(messages), tools=tools if tools else None)
        if self.model_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.model_timeout)
        except asyncio.TimeoutError as e:
            raise AgentTimeoutError(
                f"Model call timed out after {self.model_timeout} seconds"
            ) from e

    async def run(
        self,
        conversation: Conversation,
        tools: list[ToolDefinition],
        executor: ToolExecutor,
        depth: int = 0,
    ) -> LoopResult:
        """Run until the marker, a reply without tool calls, or the iteration cap.

        ``conversation`` is mutated in place.
        """
        iteration = 0
        last_content = ""
        while iteration < self.max_iterations:
            iteration += 1

            response = await self._generate(conversation.messages, tools)
            message = response.to_message()
            conversation.messages.append(message)
            last_content = message.content
            self.observer.assistant_message(message, depth)

            if self.terminal_marker in message.content:
                logger.debug("Terminal marker received", depth=depth, iteration=iteration)
                return LoopResult(
                    reason=StopReason.MARKER,
                    iterations=iteration,
                    content=strip_marker(message.content, self.terminal_marker),
                )

            if not message.tool_calls:
                return LoopResult(
                    reason=StopReason.COMPLETED,
                    iterations=iteration,
                    content=strip_marker(message.content, self.terminal_marker),
                )

            logger.debug(
                "Dispatching tool calls",
                depth=depth,
                tools=[tc.name for tc in message.tool_calls],
            )
            results = await executor.execute_batch(message.tool_calls, self.observer, depth)
            conversation.messages.extend(results)

        logger.warning(
            "Agent loop hit the iteration limit",
            depth=depth,
            max_iterations=self.max_iterations,
        )
        notice = f"I've reached the maximum of {self.max_iterations} iterations. Here's what I have so far."
        if last_content:
            notice = f"{strip_marker(last_content, self.terminal_marker)}\n\n{notice}"
        conversation.add_assistant_message(notice)
        return LoopResult(
            reason=StopReason.MAX_ITERATIONS,
            iterations=iteration,
            content=notice,
        )
