"""Memory coordinator: one entry point over every memory store.

The coordinator owns the conversation store, the keyword index and
retrieval engine, and the two singleton profile stores. It is only
obtainable through ``MemoryCoordinator.initialize``, which prepares the
on-disk layout and loads state before handing out a ready instance.

Record mutations are read-modify-write without locking (see
``companion.memory.conversation_store``); concurrent callers touching
the same conversation get last-write-wins behaviour.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Union

from loguru import logger

from companion.core.models import (
    ConversationRecord,
    IndexStats,
    MemoryManifest,
    MemoryRetrievalResult,
    Priority,
    TodoItem,
)
from companion.core.profiles import ProjectContext, TechStackItem, UserPreferences
from companion.memory.conversation_store import ConversationStore
from companion.memory.keyword_index import KeywordIndex
from companion.memory.markdown import render_conversation, render_memory_summary
from companion.memory.project_context import ProjectContextStore
from companion.memory.retrieval import RetrievalEngine
from companion.memory.storage import FileSystemStorage
from companion.memory.user_preferences import UserPreferenceStore
from companion.utils.exceptions import ConversationNotFoundError

if TYPE_CHECKING:
    from companion.config.settings import Settings


def resolve_storage_path(storage_path: str, global_access: bool) -> Path:
    """Absolute store root; relative paths hang off the working directory unless global."""
    path = Path(storage_path).expanduser()
    if global_access or path.is_absolute():
        return path.resolve()
    return (Path.cwd() / path).resolve()


class MemoryCoordinator:
    """Unified API over conversations, keyword index and profiles."""

    def __init__(
        self,
        settings: Settings,
        storage: FileSystemStorage,
        conversations: ConversationStore,
        index: KeywordIndex,
        user_preferences: UserPreferenceStore,
        project_context: ProjectContextStore,
        user_id: str,
        project: str,
    ):
        """Wire up already-prepared components. Use ``initialize`` instead."""
        self.settings = settings
        self.storage = storage
        self.conversations = conversations
        self.index = index
        self.retrieval = RetrievalEngine(index)
        self.user_preferences = user_preferences
        self.project_context = project_context
        self.user_id = user_id
        self.project = project

        # Failures of best-effort persistence after mutations
        self.auto_save_failures = 0

    @classmethod
    def initialize(
        cls,
        settings: Optional[Settings] = None,
        user_id: Optional[str] = None,
        project: Optional[str] = None,
    ) -> MemoryCoordinator:
        """
        Prepare the memory store and return a ready coordinator.

        Creates the directory layout and manifest if absent, loads the
        keyword index when semantic indexing is enabled and loads the
        profile documents when auto-load is enabled.

        Args:
            settings: Companion settings (loaded from env/TOML if not provided)
            user_id: Owner of the preferences profile (defaults to settings.session)
            project: Project name for the project context (defaults to settings.session)
        """
        if settings is None:
            from companion.config.settings import Settings
            settings = Settings()

        user_id = user_id or settings.session.user_id
        project = project or settings.session.project
        memory = settings.memory

        storage = FileSystemStorage(
            resolve_storage_path(memory.storage_path, memory.global_access)
        )
        storage.initialize_structure()

        index = KeywordIndex.from_settings(storage, settings.retrieval)
        if memory.semantic_index:
            index.load()

        coordinator = cls(
            settings=settings,
            storage=storage,
            conversations=ConversationStore(storage, markdown_mirror=memory.markdown_mirror),
            index=index,
            user_preferences=UserPreferenceStore(storage),
            project_context=ProjectContextStore(storage),
            user_id=user_id,
            project=project,
        )

        if memory.auto_load:
            coordinator.user_preferences.load(user_id)
            coordinator.project_context.load(project)

        logger.info(f"Memory system ready at {storage.base_path} (user={user_id}, project={project})")
        return coordinator

    @property
    def storage_path(self) -> Path:
        return self.storage.base_path

    # =========================================================================
    # Retrieval
    # =========================================================================

    def retrieve_memories(self, query: str, limit: Optional[int] = None) -> MemoryRetrievalResult:
        """
        Conversations related to ``query`` plus whichever profiles are loaded.

        ``relevance_score`` is a coarse hit indicator (the configured
        hit relevance when anything matched, otherwise 0), not an
        aggregate of entry scores.
        """
        result = MemoryRetrievalResult(
            user_preferences=self.user_preferences.preferences,
            project_context=self.project_context.context,
        )

        if not self.settings.memory.semantic_index:
            return result

        if limit is None:
            limit = self.settings.retrieval.default_limit
        related_ids = self.retrieval.get_related_conversation_ids(query, limit)

        for conversation_id in related_ids:
            record = self.conversations.load(conversation_id)
            if record is None:
                logger.debug(f"Index refers to missing conversation {conversation_id}")
                continue
            result.conversations.append(record)

        result.relevance_score = self.settings.retrieval.hit_relevance if related_ids else 0.0
        return result

    def get_related_conversation_ids(self, query: str, limit: Optional[int] = None) -> List[str]:
        if not self.settings.memory.semantic_index:
            return []
        return self.retrieval.get_related_conversation_ids(
            query, self.settings.retrieval.related_limit if limit is None else limit
        )

    def get_recent_conversations(self, limit: int = 10) -> List[ConversationRecord]:
        return self.conversations.list_recent(limit)

    def search_conversations(self, text: str) -> List[ConversationRecord]:
        return self.conversations.search(text)

    def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        return self.conversations.load(conversation_id)

    # =========================================================================
    # Conversation lifecycle
    # =========================================================================

    def create_conversation(
        self,
        title: str,
        user_name: Optional[str] = None,
        project: Optional[str] = None,
    ) -> str:
        conversation_id = self.conversations.create(
            title,
            user_name or self.settings.session.user_name,
            project or self.project,
        )
        self._preferences().increment_session_count()

        record = self.conversations.load(conversation_id)
        if record is not None:
            self._after_mutation(record)
        return conversation_id

    def add_decision(
        self,
        conversation_id: str,
        decision_point: str,
        decision: str,
        reason: str,
    ) -> ConversationRecord:
        record = self.conversations.add_decision(conversation_id, decision_point, decision, reason)
        self._after_mutation(record)
        return record

    def add_problem_solution(
        self,
        conversation_id: str,
        problem: str,
        solution: str,
        result: str,
    ) -> ConversationRecord:
        record = self.conversations.add_problem_solution(conversation_id, problem, solution, result)
        self._after_mutation(record)
        return record

    def update_summary(self, conversation_id: str, summary: str) -> ConversationRecord:
        record = self.conversations.update_summary(conversation_id, summary)
        self._after_mutation(record)
        return record

    def end_conversation(self, conversation_id: str) -> ConversationRecord:
        record = self.conversations.end_conversation(conversation_id)
        self._after_mutation(record)
        return record

    def add_todo(
        self,
        conversation_id: str,
        task: str,
        priority: Union[Priority, str] = Priority.MEDIUM,
    ) -> TodoItem:
        todo = self.conversations.add_todo(conversation_id, task, priority)
        self._auto_save()
        return todo

    def complete_todo(self, conversation_id: str, todo_id: str) -> ConversationRecord:
        record = self.conversations.complete_todo(conversation_id, todo_id)
        self._auto_save()
        return record

    def add_technology(self, conversation_id: str, name: str, purpose: str = "") -> ConversationRecord:
        record = self.conversations.add_technology(conversation_id, name, purpose)
        self._after_mutation(record)
        return record

    def export_conversation(self, conversation_id: str) -> str:
        """Markdown rendering of a stored conversation."""
        record = self.conversations.load(conversation_id)
        if record is None:
            raise ConversationNotFoundError(conversation_id)
        return render_conversation(record)

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_user_preferences(self) -> UserPreferences:
        return self._preferences().preferences

    def get_project_context(self) -> ProjectContext:
        return self._project().context

    def update_communication_preferences(
        self,
        detail_level: Optional[str] = None,
        explanation_style: Optional[str] = None,
    ) -> UserPreferences:
        prefs = self._preferences().update_communication(
            detail_level=detail_level,
            explanation_style=explanation_style,
        )
        self._auto_save()
        return prefs

    def update_persona_preference(
        self,
        default_mode: str,
        preferred_modes: Optional[List[str]] = None,
    ) -> UserPreferences:
        prefs = self._preferences().update_persona(
            default_mode=default_mode,
            preferred_modes=preferred_modes,
        )
        self._auto_save()
        return prefs

    def record_common_task(self, task: str) -> None:
        self._preferences().record_common_task(task)
        self._auto_save()

    def update_project_context(
        self,
        overview: Optional[str] = None,
        tech_stack: Optional[List[TechStackItem]] = None,
    ) -> ProjectContext:
        store = self._project()
        if overview:
            store.update_overview(overview)
        for item in tech_stack or []:
            store.add_tech_stack_item(item)
        self._auto_save()
        return store.context

    # =========================================================================
    # Maintenance
    # =========================================================================

    def get_index_stats(self) -> IndexStats:
        return self.index.get_stats()

    def cleanup_old_memories(self, days_to_keep: Optional[int] = None) -> int:
        """
        Evict old keyword index entries. Conversation files are never deleted.

        Returns:
            Number of index entries evicted
        """
        if not self.settings.memory.semantic_index:
            return 0
        if days_to_keep is None:
            days_to_keep = self.settings.memory.retention_days
        return self.index.clear_old_entries(days_to_keep)

    def save_all(self) -> MemoryManifest:
        """Persist loaded profiles, the index and refreshed manifest counters."""
        if self.user_preferences.is_loaded:
            self.user_preferences.save()
        if self.project_context.is_loaded:
            self.project_context.save()
        if self.settings.memory.semantic_index:
            self.index.save()

        return self.storage.update_manifest(
            total_conversations=self.conversations.count(),
            total_memories=self.index.get_stats().total_entry_count,
        )

    def get_memory_summary(self) -> str:
        return render_memory_summary(
            recent=self.conversations.list_recent(3),
            preferences=self.user_preferences.preferences,
            context=self.project_context.context,
            stats=self.index.get_stats(),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _preferences(self) -> UserPreferenceStore:
        if not self.user_preferences.is_loaded:
            self.user_preferences.load(self.user_id)
        return self.user_preferences

    def _project(self) -> ProjectContextStore:
        if not self.project_context.is_loaded:
            self.project_context.load(self.project)
        return self.project_context

    def _after_mutation(self, record: ConversationRecord) -> None:
        if self.settings.memory.semantic_index:
            self.index.index_conversation(record)
        self._auto_save()

    def _auto_save(self) -> None:
        """Best-effort persistence; failures are logged and counted, never raised."""
        if not self.settings.memory.auto_save:
            return
        try:
            self.save_all()
        except Exception:
            self.auto_save_failures += 1
            logger.exception(f"Auto-save failed ({self.auto_save_failures} so far)")
