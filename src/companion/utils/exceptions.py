"""Custom exceptions for Companion."""


class CompanionError(Exception):
    """Base exception for all Companion errors."""

    pass


class ConfigurationError(CompanionError):
    """Configuration loading or validation error."""

    pass


class NotInitializedError(CompanionError):
    """A component was used before it was initialized."""

    pass


class StorageError(CompanionError):
    """Reading, writing or listing the memory store failed."""

    def __init__(self, message: str, path: str):
        super().__init__(f"{message}: {path}")
        self.path = path


class CorruptRecordError(StorageError):
    """A stored file exists but could not be parsed."""

    pass


class ConversationNotFoundError(CompanionError):
    """Referenced conversation does not exist in the store."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class TodoNotFoundError(CompanionError):
    """Referenced todo does not exist on the conversation."""

    def __init__(self, conversation_id: str, todo_id: str):
        super().__init__(f"Todo {todo_id} not found in conversation {conversation_id}")
        self.conversation_id = conversation_id
        self.todo_id = todo_id
