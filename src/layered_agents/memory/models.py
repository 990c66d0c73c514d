"""
Records kept by the message store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from uuid import uuid4

from ..llm.base import LLMMessage, Role, ToolCall


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    return f"msg_{uuid4().hex}"


def new_memory_id() -> str:
    return f"mem_{uuid4().hex}"


class MemoryStatus(str, Enum):
    """Only active memories take part in injection."""
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class Turn:
    """One stored conversation message with a stable id."""

    id: str
    role: Role
    content: str
    timestamp: datetime = field(default_factory=_now)
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    @classmethod
    def create(
        cls,
        role: Role,
        content: str,
        tool_calls: list[ToolCall] | None = None,
        tool_call_id: str | None = None,
    ) -> "Turn":
        return cls(
            id=new_message_id(),
            role=role,
            content=content,
            tool_calls=tool_calls,
            tool_call_id=tool_call_id,
        )

    def to_message(self) -> LLMMessage:
        return LLMMessage(
            role=self.role,
            content=self.content,
            tool_calls=list(self.tool_calls) if self.tool_calls else None,
            tool_call_id=self.tool_call_id,
        )


@dataclass
class Memory:
    """A compressed summary standing in for a run of turns."""

    id: str
    content: str
    message_ids: list[str]
    status: MemoryStatus = MemoryStatus.ACTIVE
    created_at: datetime = field(default_factory=_now)
    merged_into_id: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == MemoryStatus.ACTIVE


@dataclass
class InjectBudget:
    """Limits applied before memory substitution. ``None`` or 0 means unlimited."""

    max_messages: int | None = None
    max_tokens: int | None = None
    time_window: timedelta | None = None
