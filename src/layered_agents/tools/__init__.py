"""
Tools module for agent capabilities.
"""

from .base import BaseTool, Tool, ToolParameter, ToolResult
from .registry import ToolRegistry
from .executor import UNKNOWN_TOOL, DelegateRoute, ToolExecutor
from .shell_tool import RunSafeShellTool, ShellConfig
from .message_detail import create_message_detail_tool

__all__ = [
    "BaseTool",
    "Tool",
    "ToolParameter",
    "ToolResult",
    "ToolRegistry",
    "UNKNOWN_TOOL",
    "DelegateRoute",
    "ToolExecutor",
    "RunSafeShellTool",
    "ShellConfig",
    "create_message_detail_tool",
]
