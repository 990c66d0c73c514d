"""
Memory-backed conversation session.

Every user input and final reply is stored as a Turn. Each model step sees
the system prompt plus the injected context (memory summaries standing in
for compressed turns). After each exchange, the oldest uncompressed turns
are folded into a memory once enough of them pile up.
"""

from typing import Iterable

import anthropic
import openai
import structlog

from ..hierarchy.catalog import MEMORY_COORDINATOR_PROMPT
from ..llm.base import LLMMessage
from ..memory.compress import DEFAULT_TAKE_COUNT, MemoryCompressor
from ..memory.inject import build_injected
from ..memory.models import InjectBudget, Memory, Turn
from ..memory.store import MessageStore
from ..tools.executor import ToolExecutor
from ..tools.registry import ToolRegistry
from .core import AgentLoop, Conversation

logger = structlog.get_logger()

# Provider errors that memory maintenance never swallows.
FATAL_PROVIDER_ERRORS = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
)

MEMORY_TOOLS = ("load_message_detail",)


class MemorySession:
    """A single agent conversation that can grow without bound."""

    def __init__(
        self,
        store: MessageStore,
        loop: AgentLoop,
        tools: ToolRegistry,
        compressor: MemoryCompressor | None = None,
        budget: InjectBudget | None = None,
        system_prompt: str = MEMORY_COORDINATOR_PROMPT,
        tool_names: Iterable[str] = MEMORY_TOOLS,
        compress_threshold: int = 6,
        compress_take_count: int = DEFAULT_TAKE_COUNT,
        merge_threshold: int = 4,
    ):
        self.store = store
        self.loop = loop
        self.tools = tools
        self.compressor = compressor or MemoryCompressor(loop.llm, store)
        self.budget = budget
        self.system_prompt = system_prompt
        self.tool_names = tuple(tool_names)
        self.compress_threshold = compress_threshold
        self.compress_take_count = compress_take_count
        self.merge_threshold = merge_threshold

    def build_messages(self) -> list[LLMMessage]:
        """System prompt followed by the injected context."""
        return [LLMMessage(role="system", content=self.system_prompt)] + build_injected(
            self.store, self.budget
        )

    async def process_message(self, content: str) -> str:
        """Store ``content``, answer it, store the answer and maintain memory."""
        self.store.add_message(Turn.create("user", content))

        conversation = Conversation(messages=self.build_messages())
        executor = ToolExecutor(self.tools, tool_names=self.tool_names)
        result = await self.loop.run(
            conversation,
            self.tools.get_definitions(self.tool_names),
            executor,
        )

        self.store.add_message(Turn.create("assistant", result.content))
        await self.maintain_memory()
        return result.content

    async def maintain_memory(self) -> list[Memory]:
        """Compress and merge when the thresholds are reached.

        Failures are logged and retried on the next exchange; the reply has
        already been stored by then. Authentication and permission errors
        from the provider are re-raised.
        """
        created: list[Memory] = []
        try:
            if self.compressor.uncompressed_count() >= self.compress_threshold:
                memory = await self.compressor.run_compress(self.compress_take_count)
                if memory is not None:
                    created.append(memory)

            active = self.store.get_active_memories()
            if self.merge_threshold and len(active) >= self.merge_threshold:
                merged = await self.compressor.run_merge([m.id for m in active])
                if merged is not None:
                    created.append(merged)
        except FATAL_PROVIDER_ERRORS:
            raise
        except Exception as e:
            logger.error("Memory maintenance failed", error=str(e))
        return created
