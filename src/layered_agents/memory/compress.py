"""
Memory compression subagent.

Folds the oldest uncompressed turns into a Memory record, and coalesces
several memories into one. Both operations are total with respect to bad
model output: an unparseable compression reply still yields a memory that
covers the whole batch, using the raw reply as its summary.

Model transport errors are not swallowed here; callers decide whether a
failed compression is worth surfacing.
"""

import json
import re
from dataclasses import dataclass

import structlog

from ..llm.base import BaseLLM, LLMMessage
from .models import Memory, MemoryStatus, Turn, new_memory_id
from .store import MessageStore

logger = structlog.get_logger()

DEFAULT_TAKE_COUNT = 6

COMPRESS_SYSTEM_PROMPT = """You are a memory compression specialist. Condense a slice of conversation history into one concise memory summary.

Rules:
1. Keep key facts, user preferences, decisions made and important conclusions. Drop greetings and repetition.
2. Write in the third person or as objective statements ("The user said...", "Both sides agreed...").
3. Index the summary back to the original messages: list the id of every message the summary covers so the originals can be loaded later.
4. Reply with JSON only, no other text:
   {"summary": "your summary", "messageIds": ["id1", "id2", ...]}

messageIds must match the ids of the input messages one to one, in the same order."""

MERGE_SYSTEM_PROMPT = (
    "Merge the following memory summaries into one shorter summary that keeps the key "
    "information. Reply with the merged summary text only, not JSON."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class CompressionResult:
    """Summary text plus the turn ids it stands in for."""

    summary: str
    message_ids: list[str]
    fallback: bool = False


def render_turns(turns: list[Turn]) -> str:
    """Render turns with their ids visible to the model."""
    return "\n\n".join(f"[id={t.id}] [{t.role}]\n{t.content}" for t in turns)


def parse_compression_reply(text: str, turns: list[Turn]) -> CompressionResult:
    """Parse the model's JSON reply, validating ids against the batch.

    Only the longest run of returned ids starting at the first batch turn is
    kept, so a memory always covers a contiguous run that injection can
    substitute. Ids outside the batch are dropped. When no such run exists,
    the whole batch is treated as covered.
    """
    raw = (text or "").strip()
    batch_ids = [t.id for t in turns]

    match = _JSON_OBJECT.search(raw)
    candidate = match.group(0) if match else raw

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return CompressionResult(summary=raw, message_ids=batch_ids, fallback=True)

    if not isinstance(parsed, dict):
        return CompressionResult(summary=raw, message_ids=batch_ids, fallback=True)

    summary = parsed.get("summary")
    if not isinstance(summary, str):
        summary = raw

    returned = parsed.get("messageIds")
    if not isinstance(returned, list):
        return CompressionResult(summary=summary, message_ids=batch_ids, fallback=True)

    wanted = {x for x in returned if isinstance(x, str)}
    message_ids = []
    for mid in batch_ids:
        if mid not in wanted:
            break
        message_ids.append(mid)
    if not message_ids:
        return CompressionResult(summary=summary, message_ids=batch_ids, fallback=True)

    return CompressionResult(summary=summary, message_ids=message_ids)


class MemoryCompressor:
    """Creates and merges memories for one MessageStore."""

    def __init__(self, llm: BaseLLM, store: MessageStore):
        self.llm = llm
        self.store = store

    async def compress(self, turns: list[Turn]) -> CompressionResult:
        """Ask the model for a summary of ``turns`` and the ids it covers."""
        if not turns:
            return CompressionResult(summary="", message_ids=[])

        messages = [
            LLMMessage(role="system", content=COMPRESS_SYSTEM_PROMPT),
            LLMMessage(
                role="user",
                content="Compress the following conversation into one memory (JSON):\n\n"
                + render_turns(turns),
            ),
        ]
        response = await self.llm.generate(messages=messages)
        result = parse_compression_reply(response.content, turns)
        if result.fallback:
            logger.warning(
                "Compression reply was unusable, covering the whole batch",
                batch_size=len(turns),
            )
        return result

    async def merge(self, summaries: list[str]) -> str:
        """Reduce several summaries to one."""
        content = "\n\n".join(f"[{i}]\n{s}" for i, s in enumerate(summaries, start=1))
        messages = [
            LLMMessage(role="system", content=MERGE_SYSTEM_PROMPT),
            LLMMessage(role="user", content=content),
        ]
        response = await self.llm.generate(messages=messages)
        return (response.content or "").strip() or "\n".join(summaries)

    def uncompressed(self, take_count: int | None = None) -> list[Turn]:
        """Oldest turns not covered by any active memory."""
        covered = self.store.covered_message_ids()
        turns = []
        for turn in self.store.get_messages():
            if turn.id in covered:
                continue
            turns.append(turn)
            if take_count is not None and len(turns) >= take_count:
                break
        return turns

    def uncompressed_count(self) -> int:
        return len(self.uncompressed())

    async def run_compress(self, take_count: int = DEFAULT_TAKE_COUNT) -> Memory | None:
        """Compress the oldest uncovered turns into a new active memory.

        Returns None when every turn is already covered.
        """
        batch = self.uncompressed(take_count)
        if not batch:
            return None

        result = await self.compress(batch)
        memory = Memory(
            id=new_memory_id(),
            content=result.summary,
            message_ids=result.message_ids,
            status=MemoryStatus.ACTIVE,
        )
        self.store.add_memory(memory)
        logger.info(
            "Compressed turns into memory",
            memory_id=memory.id,
            message_count=len(memory.message_ids),
        )
        return memory

    async def run_merge(self, memory_ids: list[str]) -> Memory | None:
        """Merge two or more active memories into one.

        Unknown or inactive ids are ignored; fewer than two usable memories
        is a no-op returning None.
        """
        active = {m.id: m for m in self.store.get_active_memories()}
        to_merge: list[Memory] = []
        for memory_id in dict.fromkeys(memory_ids):
            if memory_id in active:
                to_merge.append(active[memory_id])
        if len(to_merge) < 2:
            return None

        content = await self.merge([m.content for m in to_merge])

        union = {mid for m in to_merge for mid in m.message_ids}
        order = {turn.id: index for index, turn in enumerate(self.store.get_messages())}
        message_ids = sorted(union, key=lambda mid: order.get(mid, len(order)))

        merged = Memory(
            id=new_memory_id(),
            content=content,
            message_ids=message_ids,
            status=MemoryStatus.ACTIVE,
        )
        for m in to_merge:
            self.store.update_memory_merged_into(m.id, merged.id)
        self.store.add_memory(merged)

        logger.info(
            "Merged memories",
            memory_id=merged.id,
            sources=[m.id for m in to_merge],
            message_count=len(message_ids),
        )
        return merged
