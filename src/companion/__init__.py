"""Companion - keyword-indexed conversation memory for coding assistants."""

__version__ = "0.1.0"

from companion.core.models import (
    ConversationRecord,
    DecisionRecord,
    IndexEntry,
    ProblemSolution,
    TodoItem,
)
from companion.memory.coordinator import MemoryCoordinator

__all__ = [
    "ConversationRecord",
    "DecisionRecord",
    "IndexEntry",
    "MemoryCoordinator",
    "ProblemSolution",
    "TodoItem",
]
