"""
Base classes for tools.
"""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from ..llm.base import ToolDefinition


@dataclass
class ToolResult:
    """Result from a tool execution."""

    success: bool
    output: str = ""
    data: Any = None
    error: str | None = None

    def to_text(self) -> str:
        """Render the result as the string handed back to the model."""
        if self.success:
            return self.output
        return f"Error: {self.error or 'tool failed'}"


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    param_type: str  # string, integer, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None


def parameters_schema(parameters: list[ToolParameter]) -> dict[str, Any]:
    """Convert parameters to JSON Schema format."""
    properties = {}
    required = []

    for param in parameters:
        prop: dict[str, Any] = {
            "type": param.param_type,
            "description": param.description,
        }
        if param.enum:
            prop["enum"] = param.enum
        if param.default is not None:
            prop["default"] = param.default

        properties[param.name] = prop

        if param.required:
            required.append(param.name)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


HandlerReturn = Union[str, ToolResult]
ToolHandler = Callable[..., Union[HandlerReturn, Awaitable[HandlerReturn]]]


@dataclass
class Tool:
    """
    Simple tool wrapper that can be created from a function.

    The handler may be sync or async and may return either a plain string
    or a ToolResult.
    """

    name: str
    description: str
    parameters: list[ToolParameter]
    handler: ToolHandler

    def get_parameters_schema(self) -> dict[str, Any]:
        """Convert parameters to JSON Schema format."""
        return parameters_schema(self.parameters)

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.get_parameters_schema(),
        )

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool handler."""
        result = self.handler(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, ToolResult):
            return result
        return ToolResult(success=True, output=str(result))


class BaseTool(ABC):
    """Base class for class-based tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the tool name."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Get the tool description."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """Get the tool parameters schema (JSON Schema)."""
        pass

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool with given arguments."""
        pass

    def to_definition(self) -> ToolDefinition:
        """Convert to a tool definition for LLM."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )
