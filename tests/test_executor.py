"""
Tests for tool call dispatch.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from helpers import call
from layered_agents.errors import ConfigurationError, UnknownAgentError
from layered_agents.tools.base import Tool
from layered_agents.tools.executor import (
    DelegateRoute,
    ToolExecutor,
    parse_arguments,
    split_delegate_arguments,
)
from layered_agents.tools.registry import ToolRegistry


def _sleeping_tool(name: str, delay: float, log: list[str]) -> Tool:
    async def handler():
        await asyncio.sleep(delay)
        log.append(name)
        return f"{name} done"

    return Tool(name=name, description="", parameters=[], handler=handler)


def test_parse_arguments():
    """Empty blobs are an empty map; objects parse; anything else is rejected."""
    assert parse_arguments("") == {}
    assert parse_arguments(None) == {}
    assert parse_arguments("null") == {}
    assert parse_arguments('{"a": 1}') == {"a": 1}

    with pytest.raises(ValueError):
        parse_arguments("{not json")
    with pytest.raises(ValueError):
        parse_arguments("[1, 2]")


def test_split_delegate_arguments():
    """The input key becomes the task; the rest become options."""
    task, options = split_delegate_arguments(
        {"directory": "/repo", "filter": "package.json"}, "directory"
    )

    assert task == "/repo"
    assert options == {"filter": "package.json"}


def test_split_delegate_arguments_flattens_options_object():
    """A nested options object is folded into the options map."""
    task, options = split_delegate_arguments(
        {"task": "scan", "options": {"depth": 2}, "extra": True}, "task"
    )

    assert task == "scan"
    assert options == {"depth": 2, "extra": True}


def test_split_delegate_arguments_non_string_task():
    """Structured task values are passed on as JSON text."""
    task, options = split_delegate_arguments({"projects": [{"name": "a"}]}, "projects")

    assert task == '[{"name": "a"}]'
    assert options == {}


def test_routes_require_delegate():
    """Routes without a delegate callback are a configuration error."""
    with pytest.raises(ConfigurationError):
        ToolExecutor(ToolRegistry(), routes={"delegate_to_x": DelegateRoute("x", "task")})


@pytest.mark.asyncio
async def test_unknown_tool_sentinel():
    """Unknown tools produce the sentinel string."""
    executor = ToolExecutor(ToolRegistry())

    assert await executor.dispatch(call("nonexistent")) == "Unknown tool: nonexistent"


@pytest.mark.asyncio
async def test_tool_outside_allowed_names_is_unknown():
    """A registered tool the agent may not use is treated as unknown."""
    log: list[str] = []
    executor = ToolExecutor(
        ToolRegistry([_sleeping_tool("secret", 0, log)]),
        tool_names=["other"],
    )

    result = await executor.dispatch(call("secret"))

    assert result == "Unknown tool: secret"
    assert log == []


@pytest.mark.asyncio
async def test_invalid_json_arguments():
    """Malformed argument blobs become an error result."""
    executor = ToolExecutor(ToolRegistry([_sleeping_tool("a", 0, [])]))

    result = await executor.dispatch(call("a", "{oops"))

    assert result.startswith("Error: invalid arguments for a")


@pytest.mark.asyncio
async def test_results_follow_request_order():
    """Results come back in request order regardless of per-tool latency."""
    log: list[str] = []
    registry = ToolRegistry([
        _sleeping_tool("A", 0.03, log),
        _sleeping_tool("B", 0.0, log),
        _sleeping_tool("C", 0.01, log),
    ])
    executor = ToolExecutor(registry)
    calls = [call("A", call_id="1"), call("B", call_id="2"), call("C", call_id="3")]

    results = await executor.execute_batch(calls)

    assert [m.content for m in results] == ["A done", "B done", "C done"]
    assert [m.tool_call_id for m in results] == ["1", "2", "3"]
    assert [m.name for m in results] == ["A", "B", "C"]
    assert all(m.role == "tool" for m in results)
    assert log == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_failing_tool_does_not_stop_siblings():
    """One failing call yields an error string; later calls still run."""

    def explode():
        raise RuntimeError("kaput")

    log: list[str] = []
    registry = ToolRegistry([
        Tool(name="bad", description="", parameters=[], handler=explode),
        _sleeping_tool("good", 0, log),
    ])
    executor = ToolExecutor(registry)

    results = await executor.execute_batch([call("bad"), call("good")])

    assert results[0].content == "Error: kaput"
    assert results[1].content == "good done"
    assert log == ["good"]


@pytest.mark.asyncio
async def test_delegate_route():
    """Delegate calls are routed with the task and remaining options."""
    delegate = AsyncMock(return_value="3 projects found")
    executor = ToolExecutor(
        ToolRegistry(),
        routes={"delegate_to_scanner": DelegateRoute("scanner", "directory")},
        delegate=delegate,
    )

    result = await executor.dispatch(
        call("delegate_to_scanner", {"directory": "/repo", "filter": "package.json"})
    )

    assert result == "3 projects found"
    delegate.assert_awaited_once_with("scanner", "/repo", {"filter": "package.json"})


@pytest.mark.asyncio
async def test_delegate_route_without_options():
    """No extra arguments means no options."""
    delegate = AsyncMock(return_value="ok")
    executor = ToolExecutor(
        ToolRegistry(),
        routes={"delegate_to_x": DelegateRoute("x", "task")},
        delegate=delegate,
    )

    await executor.dispatch(call("delegate_to_x", {"task": "go"}))

    delegate.assert_awaited_once_with("x", "go", None)


@pytest.mark.asyncio
async def test_delegation_failure_becomes_error_result():
    """A failing child run is reported to the parent as a result string."""
    delegate = AsyncMock(side_effect=RuntimeError("model unavailable"))
    executor = ToolExecutor(
        ToolRegistry(),
        routes={"delegate_to_x": DelegateRoute("x", "task")},
        delegate=delegate,
    )

    result = await executor.dispatch(call("delegate_to_x", {"task": "go"}))

    assert result == "Error: delegation to x failed: model unavailable"


@pytest.mark.asyncio
async def test_configuration_errors_propagate():
    """Configuration errors are not turned into results."""
    delegate = AsyncMock(side_effect=UnknownAgentError("ghost"))
    executor = ToolExecutor(
        ToolRegistry(),
        routes={"delegate_to_ghost": DelegateRoute("ghost", "task")},
        delegate=delegate,
    )

    with pytest.raises(UnknownAgentError):
        await executor.execute_batch([call("delegate_to_ghost", {"task": "boo"})])


@pytest.mark.asyncio
async def test_observer_sees_calls_and_results():
    """The observer receives one call and one result event per tool call."""
    events = []

    class Recorder:
        def tool_call(self, tool_call, depth):
            events.append(("call", tool_call.name, depth))

        def tool_result(self, message, depth):
            events.append(("result", message.content, depth))

    executor = ToolExecutor(ToolRegistry([_sleeping_tool("a", 0, [])]))
    await executor.execute_batch([call("a")], observer=Recorder(), depth=2)

    assert events == [("call", "a", 2), ("result", "a done", 2)]


def test_knows():
    """knows() covers routes and allowed primitive tools."""
    executor = ToolExecutor(
        ToolRegistry([_sleeping_tool("a", 0, []), _sleeping_tool("b", 0, [])]),
        tool_names=["a"],
        routes={"delegate_to_x": DelegateRoute("x", "task")},
        delegate=AsyncMock(),
    )

    assert executor.knows("a")
    assert not executor.knows("b")
    assert executor.knows("delegate_to_x")
    assert not executor.knows("c")

