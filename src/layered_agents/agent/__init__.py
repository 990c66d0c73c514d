"""
Agent module - the orchestration engine.

Includes:
- AgentLoop: model + tool-call loop shared by every agent
- Conversation: one agent's private message list
- HierarchicalDispatcher: delegation from coordinator to managers to workers
- MemorySession: a conversation kept bounded by memory compression
- Orchestrator: the context object wiring everything together
"""

from .core import AgentLoop, Conversation, LoopResult, StopReason
from .dispatcher import HierarchicalDispatcher
from .observer import LineObserver, ProgressObserver
from .session import MemorySession
from .orchestrator import Orchestrator

__all__ = [
    "AgentLoop",
    "Conversation",
    "LoopResult",
    "StopReason",
    "HierarchicalDispatcher",
    "LineObserver",
    "ProgressObserver",
    "MemorySession",
    "Orchestrator",
]
