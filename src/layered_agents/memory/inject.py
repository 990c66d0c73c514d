"""
Context injection: build the bounded message list sent to the model.

The stored turns are first cut down by the budget (most recent N turns,
a time window ending at the newest turn, and an estimated token budget).
Then any run of turns fully covered by an active memory is replaced by that
memory's summary. A memory only partially inside the window is not used;
its turns pass through verbatim.
"""

import math

from ..llm.base import LLMMessage
from .models import InjectBudget, Memory, Turn
from .store import MessageStore

CHARS_PER_TOKEN = 4
MEMORY_MARKER = "[Memory summary]"


def estimate_tokens(text: str) -> int:
    """Estimate tokens as ceil(characters / 4)."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def window_turns(turns: list[Turn], budget: InjectBudget | None = None) -> list[Turn]:
    """Apply the message, time and token limits.

    The newest turn is always kept, even when it alone is over ``max_tokens``.
    """
    if not turns or budget is None:
        return list(turns)

    start = 0
    if budget.max_messages and budget.max_messages > 0:
        start = max(0, len(turns) - budget.max_messages)

    if budget.time_window is not None and budget.time_window.total_seconds() > 0:
        cutoff = turns[-1].timestamp - budget.time_window
        for index, turn in enumerate(turns):
            if turn.timestamp >= cutoff:
                start = max(start, index)
                break

    window = turns[start:]

    if budget.max_tokens and budget.max_tokens > 0:
        total = 0
        keep = 0
        for turn in reversed(window):
            cost = estimate_tokens(turn.content)
            if keep and total + cost > budget.max_tokens:
                break
            total += cost
            keep += 1
        window = window[len(window) - keep:]

    return window


def memory_message(memory: Memory) -> LLMMessage:
    return LLMMessage(role="user", content=f"{MEMORY_MARKER}\n{memory.content}")


def _memory_starting_at(
    ids: list[str],
    index: int,
    memories: list[Memory],
    used: set[str],
) -> Memory | None:
    for memory in memories:
        if memory.id in used:
            continue
        covered = set(memory.message_ids)
        if ids[index] not in covered:
            continue
        if set(ids[index:index + len(covered)]) == covered:
            return memory
    return None


def build_injected(store: MessageStore, budget: InjectBudget | None = None) -> list[LLMMessage]:
    """Build the message list for one model call."""
    window = window_turns(store.get_messages(), budget)
    memories = store.get_active_memories()
    ids = [turn.id for turn in window]

    injected: list[LLMMessage] = []
    used: set[str] = set()
    index = 0
    while index < len(window):
        memory = _memory_starting_at(ids, index, memories, used)
        if memory is not None:
            used.add(memory.id)
            injected.append(memory_message(memory))
            index += len(set(memory.message_ids))
            continue
        injected.append(window[index].to_message())
        index += 1

    return injected
