"""
Static agent definitions.
"""

from dataclasses import dataclass, field
from enum import Enum

from ..llm.base import ToolDefinition
from ..tools.base import ToolParameter, parameters_schema


class AgentLevel(str, Enum):
    """Position of an agent in the delegation tree."""
    COORDINATOR = "coordinator"
    MANAGER = "manager"
    WORKER = "worker"


@dataclass(frozen=True)
class DelegateSchema:
    """How a parent invokes an agent as a tool.

    ``input_key`` names the parameter whose value becomes the child's task
    text; every other argument is passed along as options.
    """

    name: str
    description: str
    parameters: tuple[ToolParameter, ...]
    input_key: str = "task"

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=parameters_schema(list(self.parameters)),
        )


@dataclass(frozen=True)
class AgentDef:
    """One agent: its prompt, its place in the tree and what it may call."""

    id: str
    level: AgentLevel
    system_prompt: str
    delegate: DelegateSchema
    parent_id: str | None = None
    children: tuple[str, ...] = ()
    tools: tuple[str, ...] = field(default_factory=tuple)

    @property
    def can_delegate(self) -> bool:
        return self.level != AgentLevel.WORKER

    @property
    def is_delegate_target(self) -> bool:
        return self.level != AgentLevel.COORDINATOR
