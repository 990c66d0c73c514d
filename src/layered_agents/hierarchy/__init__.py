"""
Agent hierarchy - definitions, registry and the default catalog.
"""

from .definitions import AgentDef, AgentLevel, DelegateSchema
from .registry import AgentRegistry
from .catalog import MEMORY_COORDINATOR_PROMPT, build_default_registry, default_agents

__all__ = [
    "AgentDef",
    "AgentLevel",
    "DelegateSchema",
    "AgentRegistry",
    "MEMORY_COORDINATOR_PROMPT",
    "build_default_registry",
    "default_agents",
]
