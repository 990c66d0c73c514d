"""
Memory module - message store, context injection and compression.
"""

from .models import InjectBudget, Memory, MemoryStatus, Turn
from .store import MessageStore
from .inject import MEMORY_MARKER, build_injected, estimate_tokens
from .compress import CompressionResult, MemoryCompressor

__all__ = [
    "InjectBudget",
    "Memory",
    "MemoryStatus",
    "Turn",
    "MessageStore",
    "MEMORY_MARKER",
    "build_injected",
    "estimate_tokens",
    "CompressionResult",
    "MemoryCompressor",
]
