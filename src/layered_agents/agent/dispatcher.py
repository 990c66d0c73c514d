"""
Hierarchical delegation.

A delegate tool call starts a fresh conversation for the named agent, runs
the agent loop on it and reduces the final turn to a plain string for the
parent. Delegation recurses depth first: a parent waits for the whole child
subtree before its next tool call.
"""

import asyncio
from typing import Any

import structlog

from ..errors import AgentTimeoutError, DelegationDepthError
from ..hierarchy.definitions import AgentDef
from ..hierarchy.registry import AgentRegistry, DelegationScope
from ..llm.base import ToolDefinition
from ..tools.executor import ToolExecutor
from ..tools.registry import ToolRegistry
from .core import AgentLoop, Conversation, LoopResult
from .observer import ProgressObserver

logger = structlog.get_logger()


class HierarchicalDispatcher:
    """Runs agents from the registry, recursing on delegate tool calls."""

    def __init__(
        self,
        agents: AgentRegistry,
        tools: ToolRegistry,
        loop: AgentLoop,
        scope: DelegationScope = "children",
        max_depth: int = 4,
        delegation_timeout: float | None = None,
    ):
        self.agents = agents
        self.tools = tools
        self.loop = loop
        self.scope = scope
        self.max_depth = max_depth
        self.delegation_timeout = delegation_timeout

    @property
    def observer(self) -> ProgressObserver:
        return self.loop.observer

    def toolset(self, agent: AgentDef) -> list[ToolDefinition]:
        """Tool definitions offered to ``agent``: its own tools, plus delegates if it may delegate."""
        definitions = self.tools.get_definitions(agent.tools)
        if agent.can_delegate:
            definitions.extend(self.agents.delegate_definitions(agent.id, self.scope))
        return definitions

    def executor_for(self, agent: AgentDef, depth: int) -> ToolExecutor:
        """Build the executor for one run of ``agent`` at ``depth``."""
        routes = self.agents.delegate_routes(agent.id, self.scope) if agent.can_delegate else {}

        async def delegate(agent_id: str, task: str, options: dict[str, Any] | None) -> str:
            return await self.delegate(agent_id, task, options, depth=depth + 1)

        return ToolExecutor(
            self.tools,
            tool_names=agent.tools,
            routes=routes,
            delegate=delegate if routes else None,
        )

    async def delegate(
        self,
        agent_id: str,
        task: str,
        options: dict[str, Any] | None = None,
        depth: int = 1,
    ) -> str:
        """Run ``agent_id`` on ``task`` and return its final answer.

        Raises:
            UnknownAgentError: ``agent_id`` is not registered.
            DelegationDepthError: ``depth`` is beyond ``max_depth``.
            AgentTimeoutError: the subtree ran past ``delegation_timeout``.
        """
        agent = self.agents.require(agent_id)
        if depth > self.max_depth:
            raise DelegationDepthError(agent_id, depth, self.max_depth)

        conversation = Conversation.for_task(agent.system_prompt, task, options)
        self.observer.agent_started(agent, depth)
        logger.info("Delegating task", agent_id=agent.id, level=agent.level.value, depth=depth)

        result = await self._run(agent, conversation, depth)

        logger.info(
            "Delegation finished",
            agent_id=agent.id,
            depth=depth,
            reason=result.reason.value,
            iterations=result.iterations,
        )
        return conversation.final_content(self.loop.terminal_marker)

    async def _run(self, agent: AgentDef, conversation: Conversation, depth: int) -> LoopResult:
        tools = self.toolset(agent)
        executor = self.executor_for(agent, depth)
        if self.delegation_timeout is None:
            return await self.loop.run(conversation, tools, executor, depth)
        try:
            return await asyncio.wait_for(
                self.loop.run(conversation, tools, executor, depth),
                timeout=self.delegation_timeout,
            )
        except asyncio.TimeoutError as e:
            raise AgentTimeoutError(
                f"Agent '{agent.id}' did not finish within {self.delegation_timeout} seconds"
            ) from e

    async def run_coordinator(self, conversation: Conversation) -> LoopResult:
        """Drive the root coordinator's own (persistent) conversation."""
        root = self.agents.root()
        return await self.loop.run(
            conversation,
            self.toolset(root),
            self.executor_for(root, 0),
            0,
        )
