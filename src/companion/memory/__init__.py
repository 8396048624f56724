"""Memory stores, keyword index and the coordinator that ties them together."""

from companion.memory.conversation_store import ConversationStore
from companion.memory.coordinator import MemoryCoordinator
from companion.memory.keyword_index import KeywordIndex, extract_keywords
from companion.memory.project_context import ProjectContextStore
from companion.memory.retrieval import RetrievalEngine
from companion.memory.storage import FileSystemStorage
from companion.memory.user_preferences import UserPreferenceStore

__all__ = [
    "ConversationStore",
    "FileSystemStorage",
    "KeywordIndex",
    "MemoryCoordinator",
    "ProjectContextStore",
    "RetrievalEngine",
    "UserPreferenceStore",
    "extract_keywords",
]
