"""Companion configuration module."""

from companion.config.settings import (
    LoggingSettings,
    MemorySettings,
    RetrievalSettings,
    SessionSettings,
    Settings,
)

__all__ = [
    "Settings",
    "MemorySettings",
    "RetrievalSettings",
    "SessionSettings",
    "LoggingSettings",
]
