"""
Shared test helpers: scripted model stubs and message builders.
"""

import json
from datetime import datetime, timedelta, timezone
from itertools import count
from unittest.mock import AsyncMock, MagicMock

from layered_agents.llm.base import LLMResponse, ToolCall
from layered_agents.memory.models import Turn

_call_ids = count(1)

BASE_TIME = datetime(2025, 1, 1, 11, 0, tzinfo=timezone.utc)


def make_llm(*responses):
    """A BaseLLM stand-in whose generate() returns ``responses`` in order."""
    llm = MagicMock()
    llm.generate = AsyncMock(side_effect=list(responses))
    llm.model = "test-model"
    llm.provider_name = "test"
    return llm


def call(name: str, arguments=None, call_id: str | None = None) -> ToolCall:
    if arguments is None:
        blob = "{}"
    elif isinstance(arguments, str):
        blob = arguments
    else:
        blob = json.dumps(arguments)
    return ToolCall(id=call_id or f"call_{next(_call_ids)}", name=name, arguments=blob)


def reply(content: str = "", *tool_calls: ToolCall) -> LLMResponse:
    return LLMResponse(content=content, tool_calls=list(tool_calls))


def turn(turn_id: str, content: str | None = None, role: str = "user", minutes: int = 0) -> Turn:
    return Turn(
        id=turn_id,
        role=role,
        content=content if content is not None else f"content of {turn_id}",
        timestamp=BASE_TIME + timedelta(minutes=minutes),
    )
