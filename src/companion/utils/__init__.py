"""Utility functions and helpers for Companion."""

from companion.utils.exceptions import (
    CompanionError,
    ConfigurationError,
    ConversationNotFoundError,
    CorruptRecordError,
    NotInitializedError,
    StorageError,
    TodoNotFoundError,
)
from companion.utils.logging import configure_logging

__all__ = [
    "CompanionError",
    "ConfigurationError",
    "ConversationNotFoundError",
    "CorruptRecordError",
    "NotInitializedError",
    "StorageError",
    "TodoNotFoundError",
    "configure_logging",
]
