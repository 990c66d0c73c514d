"""
Agent registry: the directory of agent definitions.

Built once at startup and validated as a tree rooted at the coordinator.
It also answers which delegate tools a given agent sees, either its declared
children or (``scope="registry"``) every manager and worker.
"""

from typing import Iterable, Iterator, Literal

import structlog

from ..errors import ConfigurationError, CyclicRegistryError, UnknownAgentError
from ..llm.base import ToolDefinition
from ..tools.executor import DelegateRoute
from ..tools.registry import ToolRegistry
from .definitions import AgentDef, AgentLevel

logger = structlog.get_logger()

DelegationScope = Literal["children", "registry"]


class AgentRegistry:
    """Registry of AgentDefs keyed by id."""

    def __init__(self, agents: Iterable[AgentDef] = ()):
        self._agents: dict[str, AgentDef] = {}
        for agent in agents:
            self.register(agent)

    def register(self, agent: AgentDef) -> None:
        if agent.id in self._agents:
            raise ConfigurationError(f"Agent '{agent.id}' is registered twice")
        self._agents[agent.id] = agent

    def get(self, agent_id: str) -> AgentDef | None:
        return self._agents.get(agent_id)

    def require(self, agent_id: str) -> AgentDef:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise UnknownAgentError(agent_id)
        return agent

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def __iter__(self) -> Iterator[AgentDef]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    def list_agents(self) -> list[str]:
        return list(self._agents.keys())

    def root(self) -> AgentDef:
        """The coordinator at the top of the tree."""
        for agent in self._agents.values():
            if agent.level == AgentLevel.COORDINATOR:
                return agent
        raise ConfigurationError("No coordinator agent is registered")

    def children_of(self, parent_id: str) -> list[AgentDef]:
        parent = self.require(parent_id)
        return [self._agents[c] for c in parent.children if c in self._agents]

    def delegate_targets(self, agent_id: str, scope: DelegationScope = "children") -> list[AgentDef]:
        """Agents that ``agent_id`` may delegate to."""
        agent = self.require(agent_id)
        if not agent.can_delegate:
            return []
        if scope == "registry":
            return [
                a for a in self._agents.values()
                if a.is_delegate_target and a.id != agent.id
            ]
        return [a for a in self.children_of(agent_id) if a.is_delegate_target]

    def delegate_definitions(
        self, agent_id: str, scope: DelegationScope = "children"
    ) -> list[ToolDefinition]:
        return [a.delegate.to_definition() for a in self.delegate_targets(agent_id, scope)]

    def delegate_routes(
        self, agent_id: str, scope: DelegationScope = "children"
    ) -> dict[str, DelegateRoute]:
        return {
            a.delegate.name: DelegateRoute(agent_id=a.id, input_key=a.delegate.input_key)
            for a in self.delegate_targets(agent_id, scope)
        }

    def validate(self, tool_registry: ToolRegistry | None = None) -> None:
        """Check that the definitions form a well-formed tree.

        Raises:
            ConfigurationError: dangling or inconsistent links, duplicate
                delegate names, bad input keys or unregistered tools.
            CyclicRegistryError: the children links contain a cycle.
        """
        coordinators = [a.id for a in self._agents.values() if a.level == AgentLevel.COORDINATOR]
        if len(coordinators) != 1:
            raise ConfigurationError(
                f"Expected exactly one coordinator, found {len(coordinators)}: {coordinators}"
            )

        delegate_names: dict[str, str] = {}
        for agent in self._agents.values():
            name = agent.delegate.name
            if name in delegate_names:
                raise ConfigurationError(
                    f"Delegate tool '{name}' is used by both '{delegate_names[name]}' and '{agent.id}'"
                )
            delegate_names[name] = agent.id

            param_names = {p.name for p in agent.delegate.parameters}
            if agent.delegate.input_key not in param_names:
                raise ConfigurationError(
                    f"Agent '{agent.id}' input key '{agent.delegate.input_key}' "
                    f"is not one of its delegate parameters"
                )

            if agent.level == AgentLevel.WORKER and agent.children:
                raise ConfigurationError(f"Worker '{agent.id}' cannot have children")
            if agent.level == AgentLevel.COORDINATOR and agent.parent_id is not None:
                raise ConfigurationError(f"Coordinator '{agent.id}' cannot have a parent")

            for child_id in agent.children:
                child = self._agents.get(child_id)
                if child is None:
                    raise ConfigurationError(f"Agent '{agent.id}' lists unknown child '{child_id}'")
                if child.parent_id != agent.id:
                    raise ConfigurationError(
                        f"Agent '{child_id}' is a child of '{agent.id}' but names "
                        f"'{child.parent_id}' as its parent"
                    )

            if agent.parent_id is not None:
                parent = self._agents.get(agent.parent_id)
                if parent is None:
                    raise ConfigurationError(
                        f"Agent '{agent.id}' names unknown parent '{agent.parent_id}'"
                    )
                if agent.id not in parent.children:
                    raise ConfigurationError(
                        f"Agent '{agent.id}' names '{parent.id}' as parent but is not one of its children"
                    )

            if tool_registry is not None:
                for tool_name in agent.tools:
                    if tool_name not in tool_registry:
                        raise ConfigurationError(
                            f"Agent '{agent.id}' uses unregistered tool '{tool_name}'"
                        )

        self._check_cycles()

        reachable = self._reachable_from(coordinators[0])
        for agent_id in self._agents:
            if agent_id not in reachable:
                logger.warning("Agent is not reachable from the coordinator", agent_id=agent_id)

    def _check_cycles(self) -> None:
        visiting: list[str] = []
        done: set[str] = set()

        def visit(agent_id: str) -> None:
            if agent_id in done:
                return
            if agent_id in visiting:
                start = visiting.index(agent_id)
                raise CyclicRegistryError(visiting[start:] + [agent_id])
            visiting.append(agent_id)
            for child_id in self._agents[agent_id].children:
                if child_id in self._agents:
                    visit(child_id)
            visiting.pop()
            done.add(agent_id)

        for agent_id in self._agents:
            visit(agent_id)

    def _reachable_from(self, root_id: str) -> set[str]:
        seen: set[str] = set()
        stack = [root_id]
        while stack:
            agent_id = stack.pop()
            if agent_id in seen:
                continue
            seen.add(agent_id)
            stack.extend(c for c in self._agents[agent_id].children if c in self._agents)
        return seen
