"""
Tool registry for managing available tools.
"""

from typing import Any, Iterable, Union

import structlog

from ..llm.base import ToolDefinition
from .base import BaseTool, Tool, ToolResult

logger = structlog.get_logger()

AnyTool = Union[BaseTool, Tool]


class ToolRegistry:
    """Registry for primitive (non-delegating) tools."""

    def __init__(self, tools: Iterable[AnyTool] = ()):
        self._tools: dict[str, AnyTool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: AnyTool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool
        logger.debug("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            del self._tools[name]
            logger.debug("Tool unregistered", tool_name=name)

    def get(self, name: str) -> AnyTool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_definitions(self, names: Iterable[str] | None = None) -> list[ToolDefinition]:
        """Get tool definitions for the LLM, optionally restricted to ``names``.

        Names that are not registered are skipped with a warning.
        """
        if names is None:
            return [tool.to_definition() for tool in self._tools.values()]

        definitions = []
        for name in names:
            tool = self._tools.get(name)
            if tool is None:
                logger.warning("Tool definition requested for unregistered tool", tool_name=name)
                continue
            definitions.append(tool.to_definition())
        return definitions

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name."""
        tool = self.get(name)
        if tool is None:
            return ToolResult(
                success=False,
                output="",
                error=f"Tool '{name}' not found",
            )

        try:
            logger.info("Executing tool", tool_name=name, arguments=arguments)
            result = await tool.execute(**arguments)
            logger.info("Tool executed", tool_name=name, success=result.success)
            return result
        except Exception as e:
            logger.error("Tool execution error", tool_name=name, error=str(e))
            return ToolResult(
                success=False,
                output="",
                error=str(e),
            )
