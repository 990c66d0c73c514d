"""
In-memory message and memory store.

Turns are append-only and ordered by insertion. Memories are never deleted;
merging or deactivating flips their status. Every read hands back copies so
callers never iterate over live state.

The store assumes a single writer (one asyncio task at a time).
"""

from dataclasses import replace
from typing import Iterable

import structlog

from .models import Memory, MemoryStatus, Turn

logger = structlog.get_logger()


def _copy_turn(turn: Turn) -> Turn:
    return replace(turn, tool_calls=list(turn.tool_calls) if turn.tool_calls else None)


def _copy_memory(memory: Memory) -> Memory:
    return replace(memory, message_ids=list(memory.message_ids))


class MessageStore:
    """Ordered log of turns plus the memories that compress them."""

    def __init__(self):
        self._messages: list[Turn] = []
        self._index: dict[str, Turn] = {}
        self._memories: list[Memory] = []

    # Turns

    def add_message(self, turn: Turn) -> None:
        """Append a turn. Ids must be unique."""
        if turn.id in self._index:
            raise ValueError(f"Duplicate message id: {turn.id}")
        stored = _copy_turn(turn)
        self._messages.append(stored)
        self._index[stored.id] = stored

    def get_messages(self) -> list[Turn]:
        return [_copy_turn(t) for t in self._messages]

    def get_message_by_id(self, message_id: str) -> Turn | None:
        turn = self._index.get(message_id)
        return _copy_turn(turn) if turn is not None else None

    def __len__(self) -> int:
        return len(self._messages)

    # Memories

    def add_memory(self, memory: Memory) -> None:
        """Store a memory.

        An active memory may not cover a turn that another active memory
        already covers.
        """
        if any(m.id == memory.id for m in self._memories):
            raise ValueError(f"Duplicate memory id: {memory.id}")
        if memory.status == MemoryStatus.ACTIVE:
            covered = self.covered_message_ids()
            overlap = covered.intersection(memory.message_ids)
            if overlap:
                raise ValueError(
                    f"Memory {memory.id} overlaps active memories on {sorted(overlap)}"
                )
        self._memories.append(_copy_memory(memory))
        logger.debug("Memory stored", memory_id=memory.id, message_count=len(memory.message_ids))

    def get_active_memories(self) -> list[Memory]:
        return [_copy_memory(m) for m in self._memories if m.status == MemoryStatus.ACTIVE]

    def get_all_memories(self) -> list[Memory]:
        return [_copy_memory(m) for m in self._memories]

    def get_memory_by_id(self, memory_id: str) -> Memory | None:
        for m in self._memories:
            if m.id == memory_id:
                return _copy_memory(m)
        return None

    def covered_message_ids(self) -> set[str]:
        """Ids of every turn covered by an active memory."""
        covered: set[str] = set()
        for m in self._memories:
            if m.status == MemoryStatus.ACTIVE:
                covered.update(m.message_ids)
        return covered

    def deactivate_memories(self, memory_ids: Iterable[str]) -> None:
        ids = set(memory_ids)
        for m in self._memories:
            if m.id in ids:
                m.status = MemoryStatus.INACTIVE

    def update_memory_merged_into(self, memory_id: str, merged_into_id: str) -> None:
        """Deactivate a memory and record the memory it was merged into."""
        for m in self._memories:
            if m.id == memory_id:
                m.status = MemoryStatus.INACTIVE
                m.merged_into_id = merged_into_id
                return

    def clear(self) -> None:
        """Drop every turn and memory."""
        self._messages.clear()
        self._index.clear()
        self._memories.clear()
