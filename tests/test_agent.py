"""
Tests for the agent loop.
"""

import asyncio

import pytest

from helpers import call, make_llm, reply
from layered_agents.agent.core import (
    AgentLoop,
    Conversation,
    StopReason,
    format_task,
    strip_marker,
)
from layered_agents.agent.observer import LineObserver
from layered_agents.errors import AgentTimeoutError
from layered_agents.hierarchy import build_default_registry
from layered_agents.tools.base import Tool
from layered_agents.tools.executor import ToolExecutor
from layered_agents.tools.registry import ToolRegistry


def _conversation() -> Conversation:
    return Conversation.for_task("You are a helper.", "Do the thing")


def _registry() -> ToolRegistry:
    return ToolRegistry([
        Tool(
            name="lookup",
            description="Look something up",
            parameters=[],
            handler=lambda: "42",
        )
    ])


def test_conversation_add_messages():
    """Test adding messages to conversation."""
    conv = Conversation()

    conv.add_user_message("Hello")
    conv.add_assistant_message("Hi there!")

    assert conv.message_count == 2
    assert conv.messages[0].role == "user"
    assert conv.messages[0].content == "Hello"
    assert conv.messages[1].role == "assistant"
    assert conv.messages[1].content == "Hi there!"


def test_conversation_tool_result():
    """Test adding tool results."""
    conv = Conversation()

    conv.add_tool_result("call_123", "Tool output", "test_tool")

    assert conv.message_count == 1
    assert conv.messages[0].role == "tool"
    assert conv.messages[0].tool_call_id == "call_123"
    assert conv.messages[0].name == "test_tool"


def test_conversation_for_task_with_options():
    """Options are appended to the task as a visible block."""
    conv = Conversation.for_task("system", "Scan /repo", {"filter": "package.json"})

    assert conv.messages[0].role == "system"
    assert conv.messages[1].role == "user"
    assert conv.messages[1].content.startswith("Scan /repo\n\nOptions:\n")
    assert '"filter": "package.json"' in conv.messages[1].content


def test_format_task_without_options():
    """No options leaves the task untouched."""
    assert format_task("Scan /repo") == "Scan /repo"
    assert format_task("Scan /repo", {}) == "Scan /repo"


def test_strip_marker():
    """Markers are removed wherever they appear."""
    assert strip_marker("Done [STOP]") == "Done"
    assert strip_marker("[STOP] a [STOP]") == "a"
    assert strip_marker("Done <<END>>", "<<END>>") == "Done"


def test_final_content_on_empty_conversation():
    """An empty conversation has empty final content."""
    assert Conversation().final_content() == ""


@pytest.mark.asyncio
async def test_marker_stops_after_one_call():
    """A reply containing the marker ends the loop after one model call."""
    llm = make_llm(reply("All done [STOP]"))
    loop = AgentLoop(llm)
    conv = _conversation()

    result = await loop.run(conv, [], ToolExecutor(ToolRegistry()))

    assert llm.generate.await_count == 1
    assert conv.message_count == 3
    assert conv.messages[-1].content == "All done [STOP]"
    assert result.reason == StopReason.MARKER
    assert result.content == "All done"
    assert conv.final_content() == "All done"


@pytest.mark.asyncio
async def test_marker_wins_over_tool_calls():
    """Tool calls in the same reply as the marker are not executed."""
    executed = []
    registry = ToolRegistry([
        Tool(name="lookup", description="", parameters=[], handler=lambda: executed.append(1) or "x")
    ])
    llm = make_llm(reply("Finished [STOP]", call("lookup")))

    result = await AgentLoop(llm).run(_conversation(), [], ToolExecutor(registry))

    assert result.reason == StopReason.MARKER
    assert executed == []


@pytest.mark.asyncio
async def test_reply_without_tool_calls_completes():
    """A plain reply without the marker ends the loop."""
    llm = make_llm(reply("Just an answer"))

    result = await AgentLoop(llm).run(_conversation(), [], ToolExecutor(ToolRegistry()))

    assert result.reason == StopReason.COMPLETED
    assert result.content == "Just an answer"
    assert result.iterations == 1


@pytest.mark.asyncio
async def test_tool_calls_then_marker():
    """Tool results are appended after the assistant turn that requested them."""
    registry = _registry()
    llm = make_llm(
        reply("", call("lookup", call_id="c1")),
        reply("The answer is 42 [STOP]"),
    )
    conv = _conversation()

    result = await AgentLoop(llm).run(conv, registry.get_definitions(), ToolExecutor(registry))

    assert result.content == "The answer is 42"
    assert result.iterations == 2
    roles = [m.role for m in conv.messages]
    assert roles == ["system", "user", "assistant", "tool", "assistant"]
    assert conv.messages[2].content == ""
    assert conv.messages[2].tool_calls[0].id == "c1"
    assert conv.messages[3].tool_call_id == "c1"
    assert conv.messages[3].content == "42"

    second_call = llm.generate.await_args_list[1].kwargs
    assert [m.role for m in second_call["messages"]] == ["system", "user", "assistant", "tool"]
    assert [t.name for t in second_call["tools"]] == ["lookup"]


@pytest.mark.asyncio
async def test_no_tools_passes_none():
    """An agent without tools sends no tool list."""
    llm = make_llm(reply("ok [STOP]"))

    await AgentLoop(llm).run(_conversation(), [], ToolExecutor(ToolRegistry()))

    assert llm.generate.await_args.kwargs["tools"] is None


@pytest.mark.asyncio
async def test_unknown_tool_result_is_fed_back():
    """Unknown tools are answered with the sentinel and the loop continues."""
    llm = make_llm(reply("", call("nope")), reply("sorry [STOP]"))
    conv = _conversation()

    await AgentLoop(llm).run(conv, [], ToolExecutor(ToolRegistry()))

    assert conv.messages[3].content == "Unknown tool: nope"


@pytest.mark.asyncio
async def test_max_iterations():
    """The loop stops at the iteration cap and records a notice."""
    registry = _registry()
    llm = make_llm(*[reply("still working", call("lookup")) for _ in range(3)])
    conv = _conversation()

    result = await AgentLoop(llm, max_iterations=3).run(
        conv, registry.get_definitions(), ToolExecutor(registry)
    )

    assert result.reason == StopReason.MAX_ITERATIONS
    assert result.iterations == 3
    assert llm.generate.await_count == 3
    assert "maximum of 3 iterations" in result.content
    assert conv.messages[-1].role == "assistant"
    assert conv.messages[-1].content == result.content


@pytest.mark.asyncio
async def test_model_error_propagates():
    """Model failures are not swallowed by the loop."""
    llm = make_llm(RuntimeError("401 unauthorized"))

    with pytest.raises(RuntimeError, match="unauthorized"):
        await AgentLoop(llm).run(_conversation(), [], ToolExecutor(ToolRegistry()))


@pytest.mark.asyncio
async def test_model_timeout():
    """A model call slower than the timeout raises AgentTimeoutError."""

    async def slow(**kwargs):
        await asyncio.sleep(1)
        return reply("late [STOP]")

    llm = make_llm()
    llm.generate.side_effect = slow

    with pytest.raises(AgentTimeoutError):
        await AgentLoop(llm, model_timeout=0.01).run(
            _conversation(), [], ToolExecutor(ToolRegistry())
        )


@pytest.mark.asyncio
async def test_custom_marker():
    """The marker is configurable."""
    llm = make_llm(reply("[STOP] is just text"), reply("done <<END>>"))

    result = await AgentLoop(llm, terminal_marker="<<END>>").run(
        _conversation(), [], ToolExecutor(ToolRegistry())
    )

    assert result.reason == StopReason.COMPLETED
    assert result.content == "[STOP] is just text"


@pytest.mark.asyncio
async def test_line_observer_output():
    """The line observer prints indented progress lines."""
    lines: list[str] = []
    observer = LineObserver(write=lines.append)
    registry = _registry()
    llm = make_llm(reply("checking", call("lookup", call_id="c1")), reply("done [STOP]"))

    await AgentLoop(llm, observer=observer).run(
        _conversation(), registry.get_definitions(), ToolExecutor(registry), depth=1
    )
    observer.agent_started(build_default_registry().require("scanner"), 2)

    assert lines[0] == "\n\tAI: checking"
    assert lines[1] == "\tTool: lookup({})"
    assert lines[2] == "\t  → 42"
    assert lines[3] == "\n\tAI: done [STOP]"
    assert lines[4] == "\n\t\t[WORKER] scanner"


def test_line_observer_hides_top_level_results():
    """Results at depth 0 are not echoed."""
    lines: list[str] = []
    observer = LineObserver(write=lines.append)
    conv = Conversation()
    conv.add_tool_result("c1", "output", "lookup")

    observer.tool_result(conv.messages[0], 0)

    assert lines == []
