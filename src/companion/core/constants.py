"""Memory store constants.

Layout names are part of the on-disk format and must not change between
releases; weights are the defaults for RetrievalSettings.
"""

MANIFEST_VERSION = "1.0.0"
"""Version written to memory_manifest.json."""

# On-disk layout
CONVERSATIONS_DIR = "conversations"
USER_PROFILE_DIR = "user_profile"
PROJECT_CONTEXT_DIR = "project_context"
SESSION_MEMORY_DIR = "session_memory"
SEMANTIC_INDEX_DIR = "semantic_index"
STORE_DIRECTORIES = (
    CONVERSATIONS_DIR,
    USER_PROFILE_DIR,
    PROJECT_CONTEXT_DIR,
    SESSION_MEMORY_DIR,
    SEMANTIC_INDEX_DIR,
)

MANIFEST_FILE = "memory_manifest.json"
INDEX_FILE = f"{SEMANTIC_INDEX_DIR}/index.json"
USER_PREFERENCES_FILE = f"{USER_PROFILE_DIR}/user_preferences.json"
PROJECT_CONTEXT_FILE = f"{PROJECT_CONTEXT_DIR}/project_context.json"
PROJECT_OVERVIEW_FILE = f"{PROJECT_CONTEXT_DIR}/project_overview.md"

RECORD_SUFFIX = ".json"
MARKDOWN_SUFFIX = ".md"

# Index entry base weights
CONVERSATION_WEIGHT = 1.0
DECISION_WEIGHT = 0.9
PROBLEM_WEIGHT = 0.95

PROBLEM_ID_LENGTH = 20
"""Characters of problem text embedded in a problem entry id."""

CONVERSATION_ID_PREFIX = "conv"

STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare",
    "的", "了", "是", "在", "和", "有", "我", "你", "他", "她", "它",
})
