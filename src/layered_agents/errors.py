"""
Exceptions raised by the orchestration core.

Configuration errors are fatal and never retried. Tool failures never reach
this module: the tool executor turns them into result strings for the model.
"""


class OrchestrationError(Exception):
    """Base exception for orchestration errors."""


class ConfigurationError(OrchestrationError):
    """The agent registry or a delegation request is invalid."""


class UnknownAgentError(ConfigurationError):
    """A delegation named an agent id that is not registered."""

    def __init__(self, agent_id: str):
        super().__init__(f"Unknown agent: {agent_id}")
        self.agent_id = agent_id


class CyclicRegistryError(ConfigurationError):
    """The parent/children links of the registry contain a cycle."""

    def __init__(self, cycle: list[str]):
        super().__init__("Agent hierarchy contains a cycle: " + " -> ".join(cycle))
        self.cycle = cycle


class DelegationDepthError(ConfigurationError):
    """A delegation chain went deeper than the configured maximum."""

    def __init__(self, agent_id: str, depth: int, max_depth: int):
        super().__init__(
            f"Delegation to '{agent_id}' at depth {depth} exceeds the maximum depth of {max_depth}"
        )
        self.agent_id = agent_id
        self.depth = depth
        self.max_depth = max_depth


class AgentTimeoutError(OrchestrationError):
    """A model call or a delegated subtree did not finish in time."""
