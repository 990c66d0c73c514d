"""
Tests for context injection.
"""

from datetime import timedelta

from helpers import turn
from layered_agents.llm.base import ToolCall
from layered_agents.memory.inject import (
    MEMORY_MARKER,
    build_injected,
    estimate_tokens,
    window_turns,
)
from layered_agents.memory.models import InjectBudget, Memory, MemoryStatus, Turn
from layered_agents.memory.store import MessageStore


def _store(count: int) -> MessageStore:
    store = MessageStore()
    for i in range(1, count + 1):
        store.add_message(turn(f"t{i}", role="user" if i % 2 else "assistant", minutes=i))
    return store


def test_estimate_tokens():
    """Tokens are estimated as ceil(chars / 4)."""
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_memory_replaces_covered_run():
    """A memory covering t2..t4 replaces those turns in place."""
    store = _store(6)
    store.add_memory(Memory(id="mem_1", content="S", message_ids=["t2", "t3", "t4"]))

    injected = build_injected(store, InjectBudget(max_messages=10))

    assert len(injected) == 4
    assert injected[0].content == "content of t1"
    assert injected[1].role == "user"
    assert injected[1].content == f"{MEMORY_MARKER}\nS"
    assert injected[2].content == "content of t5"
    assert injected[3].content == "content of t6"


def test_length_shrinks_by_covered_count():
    """N turns with a K-turn memory inside the window give N - K + 1 entries."""
    store = _store(8)
    store.add_memory(Memory(id="mem_1", content="S", message_ids=["t3", "t4", "t5", "t6"]))

    injected = build_injected(store)

    assert len(injected) == 8 - 4 + 1


def test_no_memories_passes_turns_through():
    """Without memories, injection is the raw turns."""
    store = _store(3)

    injected = build_injected(store)

    assert [m.content for m in injected] == ["content of t1", "content of t2", "content of t3"]
    assert [m.role for m in injected] == ["user", "assistant", "user"]


def test_partially_windowed_memory_is_not_used():
    """A memory whose turns start before the window is skipped; its visible turns stay raw."""
    store = _store(6)
    store.add_memory(Memory(id="mem_1", content="S", message_ids=["t2", "t3", "t4"]))

    injected = build_injected(store, InjectBudget(max_messages=4))

    assert [m.content for m in injected] == [
        "content of t3",
        "content of t4",
        "content of t5",
        "content of t6",
    ]


def test_inactive_memory_is_ignored():
    """Inactive memories never replace turns."""
    store = _store(4)
    store.add_memory(
        Memory(
            id="mem_1",
            content="S",
            message_ids=["t1", "t2"],
            status=MemoryStatus.INACTIVE,
        )
    )

    assert len(build_injected(store)) == 4


def test_several_memories():
    """Each active memory is substituted once, in order."""
    store = _store(6)
    store.add_memory(Memory(id="mem_a", content="A", message_ids=["t1", "t2"]))
    store.add_memory(Memory(id="mem_b", content="B", message_ids=["t4", "t5"]))

    injected = build_injected(store)

    assert [m.content for m in injected] == [
        f"{MEMORY_MARKER}\nA",
        "content of t3",
        f"{MEMORY_MARKER}\nB",
        "content of t6",
    ]


def test_max_messages_budget():
    """Only the most recent turns are considered."""
    turns = _store(10).get_messages()

    window = window_turns(turns, InjectBudget(max_messages=3))

    assert [t.id for t in window] == ["t8", "t9", "t10"]


def test_time_window_budget():
    """Turns older than the window before the newest turn are dropped."""
    turns = _store(10).get_messages()

    window = window_turns(turns, InjectBudget(time_window=timedelta(minutes=2)))

    assert [t.id for t in window] == ["t8", "t9", "t10"]


def test_token_budget_trims_oldest():
    """The token budget drops the oldest turns first."""
    store = MessageStore()
    for i in range(1, 5):
        store.add_message(turn(f"t{i}", "x" * 40, minutes=i))

    window = window_turns(store.get_messages(), InjectBudget(max_tokens=25))

    assert [t.id for t in window] == ["t3", "t4"]


def test_token_budget_keeps_newest_turn():
    """A single turn over the budget is still sent."""
    store = MessageStore()
    store.add_message(turn("t1", "x" * 400))

    window = window_turns(store.get_messages(), InjectBudget(max_tokens=5))

    assert [t.id for t in window] == ["t1"]


def test_zero_budget_means_unlimited():
    """A budget of zero does not cut anything."""
    turns = _store(5).get_messages()

    assert len(window_turns(turns, InjectBudget(max_messages=0, max_tokens=0))) == 5


def test_tool_fields_survive_injection():
    """Tool calls and tool call ids are carried into the model messages."""
    store = MessageStore()
    store.add_message(
        Turn(
            id="t1",
            role="assistant",
            content="",
            tool_calls=[ToolCall(id="c1", name="load_message_detail", arguments="{}")],
        )
    )
    store.add_message(Turn(id="t2", role="tool", content="[user] hi", tool_call_id="c1"))

    injected = build_injected(store)

    assert injected[0].tool_calls[0].id == "c1"
    assert injected[1].tool_call_id == "c1"
