"""
Orchestrator: the context object built once per process (or per test).

Owns the LLM, tool and agent registries, message store, agent loop,
hierarchical dispatcher and memory session. Nothing in the core reads
module-level state; everything is reached through an Orchestrator.
"""

from typing import Any

import structlog

from ..config import Settings, get_settings
from ..hierarchy.catalog import build_default_registry
from ..hierarchy.registry import AgentRegistry
from ..llm import BaseLLM, create_llm
from ..memory.compress import MemoryCompressor
from ..memory.store import MessageStore
from ..tools.message_detail import create_message_detail_tool
from ..tools.registry import ToolRegistry
from ..tools.shell_tool import RunSafeShellTool, ShellConfig
from .core import AgentLoop, Conversation
from .dispatcher import HierarchicalDispatcher
from .observer import ProgressObserver
from .session import MemorySession

logger = structlog.get_logger()


class Orchestrator:
    """Wires the orchestration core together from Settings."""

    def __init__(
        self,
        settings: Settings | None = None,
        llm: BaseLLM | None = None,
        agents: AgentRegistry | None = None,
        tools: ToolRegistry | None = None,
        store: MessageStore | None = None,
        observer: ProgressObserver | None = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm or create_llm(settings=self.settings)
        self.store = store if store is not None else MessageStore()
        self.tools = tools if tools is not None else self._default_tools()
        self.agents = agents if agents is not None else build_default_registry(
            self.settings.terminal_marker
        )
        self.agents.validate(self.tools)

        self.loop = AgentLoop(
            self.llm,
            terminal_marker=self.settings.terminal_marker,
            max_iterations=self.settings.max_agent_iterations,
            model_timeout=self.settings.model_timeout_seconds,
            observer=observer,
        )
        self.dispatcher = HierarchicalDispatcher(
            self.agents,
            self.tools,
            self.loop,
            scope=self.settings.delegation_scope,
            max_depth=self.settings.max_delegation_depth,
            delegation_timeout=self.settings.delegation_timeout_seconds,
        )
        self.memory = MemorySession(
            self.store,
            self.loop,
            self.tools,
            compressor=MemoryCompressor(self.llm, self.store),
            budget=self.settings.inject_budget(),
            compress_threshold=self.settings.compress_threshold,
            compress_take_count=self.settings.compress_take_count,
            merge_threshold=self.settings.merge_threshold,
        )
        self.conversation = self._new_conversation()

        logger.info(
            "Orchestrator ready",
            provider=self.llm.provider_name,
            model=self.llm.model,
            agents=len(self.agents),
            tools=self.tools.list_tools(),
        )

    def _default_tools(self) -> ToolRegistry:
        return ToolRegistry([
            RunSafeShellTool(ShellConfig(
                workdir=self.settings.shell_workdir,
                timeout_seconds=self.settings.shell_timeout_seconds,
            )),
            create_message_detail_tool(self.store),
        ])

    def _new_conversation(self) -> Conversation:
        conversation = Conversation()
        conversation.add_system_message(self.agents.root().system_prompt)
        return conversation

    async def handle(self, message: str) -> str:
        """Send a user message to the coordinator and return its final reply.

        If the run fails, the conversation is rolled back to where it was
        before ``message``, so no unanswered tool call is left behind.
        """
        mark = self.conversation.message_count
        self.conversation.add_user_message(message)
        try:
            result = await self.dispatcher.run_coordinator(self.conversation)
        except Exception:
            del self.conversation.messages[mark:]
            raise
        return result.content

    async def delegate(
        self, agent_id: str, task: str, options: dict[str, Any] | None = None
    ) -> str:
        """Run a single agent directly, outside the coordinator conversation."""
        return await self.dispatcher.delegate(agent_id, task, options)

    async def chat_with_memory(self, message: str) -> str:
        return await self.memory.process_message(message)

    def reset(self) -> None:
        """Start a fresh coordinator conversation and empty the message store."""
        self.conversation = self._new_conversation()
        self.store.clear()
