"""
Tool call dispatch.

Turns the model's tool-call requests into tool-result messages. Primitive
tools run through the ToolRegistry; delegate tools are routed to a
delegation callback (the hierarchical dispatcher). Every failure short of a
configuration error becomes a result string, so one bad call never aborts
its siblings or the agent loop.
"""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

import structlog

from ..errors import ConfigurationError
from ..llm.base import LLMMessage, ToolCall
from .registry import ToolRegistry

if TYPE_CHECKING:
    from ..agent.observer import ProgressObserver

logger = structlog.get_logger()

UNKNOWN_TOOL = "Unknown tool: {name}"
ERROR_PREFIX = "Error: "

DelegateFn = Callable[[str, str, dict[str, Any] | None], Awaitable[str]]


@dataclass(frozen=True)
class DelegateRoute:
    """Maps a delegate tool name to the agent it starts."""

    agent_id: str
    input_key: str


def parse_arguments(blob: str | None) -> dict[str, Any]:
    """Parse a tool-call argument blob into a string-keyed map.

    Raises:
        ValueError: the blob is not JSON or not a JSON object.
    """
    text = (blob or "").strip() or "{}"
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"arguments are not valid JSON ({e.msg})") from e
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"arguments must be a JSON object, got {type(parsed).__name__}")
    return parsed


def split_delegate_arguments(
    arguments: dict[str, Any], input_key: str
) -> tuple[str, dict[str, Any]]:
    """Pull the task text out of a delegate call; everything else becomes options."""
    remaining = dict(arguments)
    task = remaining.pop(input_key, "")
    if not isinstance(task, str):
        task = json.dumps(task, ensure_ascii=False)

    options: dict[str, Any] = {}
    nested = remaining.pop("options", None)
    if isinstance(nested, dict):
        options.update(nested)
    elif nested is not None:
        options["options"] = nested
    options.update(remaining)
    return task, options


class ToolExecutor:
    """Dispatches tool calls for one agent run.

    Args:
        registry: primitive tools.
        tool_names: the primitive tools this agent may call. ``None`` allows
            every registered tool.
        routes: delegate tool name -> DelegateRoute.
        delegate: coroutine ``(agent_id, task, options) -> str`` used for routes.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        tool_names: Iterable[str] | None = None,
        routes: dict[str, DelegateRoute] | None = None,
        delegate: DelegateFn | None = None,
    ):
        self.registry = registry
        self.tool_names = set(tool_names) if tool_names is not None else None
        self.routes = dict(routes or {})
        self.delegate = delegate
        if self.routes and self.delegate is None:
            raise ConfigurationError("Delegate routes were given without a delegate callback")

    def knows(self, name: str) -> bool:
        if name in self.routes:
            return True
        if self.tool_names is not None and name not in self.tool_names:
            return False
        return name in self.registry

    async def dispatch(self, call: ToolCall) -> str:
        """Execute one tool call and return its result string."""
        try:
            arguments = parse_arguments(call.arguments)
        except ValueError as e:
            logger.warning("Invalid tool arguments", tool_name=call.name, error=str(e))
            return f"{ERROR_PREFIX}invalid arguments for {call.name}: {e}"

        route = self.routes.get(call.name)
        if route is not None:
            task, options = split_delegate_arguments(arguments, route.input_key)
            try:
                return await self.delegate(route.agent_id, task, options or None)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error("Delegation failed", agent_id=route.agent_id, error=str(e))
                return f"{ERROR_PREFIX}delegation to {route.agent_id} failed: {e}"

        if not self.knows(call.name):
            logger.warning("Unknown tool requested", tool_name=call.name)
            return UNKNOWN_TOOL.format(name=call.name)

        result = await self.registry.execute(call.name, arguments)
        return result.to_text()

    async def execute_batch(
        self,
        tool_calls: list[ToolCall],
        observer: "ProgressObserver | None" = None,
        depth: int = 0,
    ) -> list[LLMMessage]:
        """Run ``tool_calls`` strictly in order; one tool message per call."""
        results = []
        for call in tool_calls:
            if observer is not None:
                observer.tool_call(call, depth)
            content = await self.dispatch(call)
            message = LLMMessage(
                role="tool",
                content=content,
                tool_call_id=call.id,
                name=call.name,
            )
            if observer is not None:
                observer.tool_result(message, depth)
            results.append(message)
        return results
