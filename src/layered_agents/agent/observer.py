"""
Progress observers for the agent loop and dispatcher.

Observers receive human-oriented progress events; they are purely
diagnostic and never influence control flow.
"""

from typing import Callable

from ..hierarchy.definitions import AgentDef
from ..llm.base import LLMMessage, ToolCall


def _shorten(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class ProgressObserver:
    """Base observer. Every hook is a no-op."""

    def agent_started(self, agent: AgentDef, depth: int) -> None:
        pass

    def assistant_message(self, message: LLMMessage, depth: int) -> None:
        pass

    def tool_call(self, call: ToolCall, depth: int) -> None:
        pass

    def tool_result(self, message: LLMMessage, depth: int) -> None:
        pass


class LineObserver(ProgressObserver):
    """Writes depth-indented progress lines to ``write`` (``print`` by default).

    Tool results are only echoed below the top level, where the parent would
    otherwise never show them.
    """

    def __init__(
        self,
        write: Callable[[str], None] = print,
        indent: str = "\t",
        preview_chars: int = 80,
        result_chars: int = 100,
    ):
        self.write = write
        self.indent = indent
        self.preview_chars = preview_chars
        self.result_chars = result_chars

    def _prefix(self, depth: int) -> str:
        return self.indent * depth

    def agent_started(self, agent: AgentDef, depth: int) -> None:
        self.write(f"\n{self._prefix(depth)}[{agent.level.value.upper()}] {agent.id}")

    def assistant_message(self, message: LLMMessage, depth: int) -> None:
        if not message.content:
            return
        prefix = self._prefix(depth)
        raw = message.content
        shown = raw[: self.preview_chars] + "..." if len(raw) > self.preview_chars else raw
        indented = ("\n" + prefix).join(shown.split("\n"))
        self.write(f"\n{prefix}AI: {indented}")

    def tool_call(self, call: ToolCall, depth: int) -> None:
        args = _shorten((call.arguments or "").strip() or "{}", self.preview_chars)
        self.write(f"{self._prefix(depth)}Tool: {call.name}({args})")

    def tool_result(self, message: LLMMessage, depth: int) -> None:
        if depth < 1:
            return
        short = _shorten(message.content or "", self.result_chars).replace("\n", " ")
        self.write(f"{self._prefix(depth)}  → {short}")
