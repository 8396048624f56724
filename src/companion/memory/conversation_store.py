"""Durable storage for conversation records.

Each record is one JSON document under ``conversations/`` named
``<YYYY-MM-DD>_<conversation_id>_<title>.json`` where the date is the
record's start date. Filenames therefore sort by recency.

Every mutating operation is a read-modify-write of the whole record with
no locking. Two operations racing on the same conversation id lose one
of the updates (last write wins). The store is meant to be driven by one
client at a time.
"""

import json
import re
import time
from datetime import datetime
from typing import Callable, List, Optional, Union
from uuid import uuid4

from loguru import logger

from companion.core.constants import (
    CONVERSATION_ID_PREFIX,
    CONVERSATIONS_DIR,
    MARKDOWN_SUFFIX,
    RECORD_SUFFIX,
)
from companion.core.models import (
    ConversationMetadata,
    ConversationRecord,
    DecisionRecord,
    Priority,
    ProblemSolution,
    Technology,
    TodoItem,
)
from companion.memory.markdown import render_conversation
from companion.utils.exceptions import (
    ConversationNotFoundError,
    CorruptRecordError,
    TodoNotFoundError,
)

_TITLE_UNSAFE = re.compile(r"[^a-zA-Z0-9\u4e00-\u9fa5]")


def new_conversation_id() -> str:
    """Millisecond timestamp plus a random suffix."""
    return f"{CONVERSATION_ID_PREFIX}_{int(time.time() * 1000)}_{uuid4().hex[:8]}"


def record_stem(record: ConversationRecord) -> str:
    """Filename (without suffix) for a record."""
    meta = record.metadata
    title = _TITLE_UNSAFE.sub("_", meta.title)
    return f"{meta.start_time.date().isoformat()}_{meta.conversation_id}_{title}"


def searchable_text(record: ConversationRecord) -> str:
    """User-visible text of a record, one field per line."""
    meta = record.metadata
    parts = [meta.title, meta.user_name, meta.project, record.summary]
    for d in record.decisions:
        parts += [d.decision_point, d.decision, d.reason]
    for p in record.problems:
        parts += [p.problem, p.solution, p.result]
    parts += [f"{t.name} {t.purpose}" for t in record.technologies]
    parts += [t.task for t in record.todos]
    parts += record.key_code
    if record.user_feedback:
        parts.append(record.user_feedback)
    return "\n".join(parts)


class ConversationStore:
    """CRUD for ConversationRecord documents."""

    def __init__(self, storage, markdown_mirror: bool = True):
        """
        Initialize the store.

        Args:
            storage: FileSystemStorage rooted at the memory store
            markdown_mirror: Also write a rendered .md copy of each record
        """
        self.storage = storage
        self.markdown_mirror = markdown_mirror
        self._issued_ids: set = set()

    # =========================================================================
    # Basic persistence
    # =========================================================================

    def create(self, title: str, user_name: str, project: str) -> str:
        """Create an empty open conversation and return its id."""
        conversation_id = new_conversation_id()
        while conversation_id in self._issued_ids:
            conversation_id = new_conversation_id()
        self._issued_ids.add(conversation_id)

        record = ConversationRecord(
            metadata=ConversationMetadata(
                conversation_id=conversation_id,
                title=title,
                start_time=datetime.now(),
                user_name=user_name,
                project=project,
            )
        )
        self.save(conversation_id, record)
        logger.debug(f"Created conversation {conversation_id}: {title}")
        return conversation_id

    def save(self, conversation_id: str, record: ConversationRecord) -> None:
        """Overwrite the stored document for a record."""
        if record.id != conversation_id:
            raise ValueError(
                f"Record id {record.id} does not match conversation id {conversation_id}"
            )

        stem = f"{CONVERSATIONS_DIR}/{record_stem(record)}"
        self.storage.write(
            stem + RECORD_SUFFIX,
            json.dumps(record.to_dict(), indent=2, ensure_ascii=False),
        )
        if self.markdown_mirror:
            self.storage.write(stem + MARKDOWN_SUFFIX, render_conversation(record))

    def load(self, conversation_id: str) -> Optional[ConversationRecord]:
        """
        Load a record by id.

        Returns:
            The record, or None if no record with that id exists or its
            file could not be parsed
        """
        filename = self._find_file(conversation_id)
        if filename is None:
            return None
        return self._read_or_skip(filename)

    def list_recent(self, limit: int = 10) -> List[ConversationRecord]:
        """Most recent records first, by date-prefixed filename."""
        if limit <= 0:
            return []

        records = []
        for filename in sorted(self._record_files(), reverse=True)[:limit]:
            record = self._read_or_skip(filename)
            if record is not None:
                records.append(record)
        return records

    def search(self, text: str) -> List[ConversationRecord]:
        """Case-insensitive substring scan over the text fields of every record."""
        needle = text.lower()
        results = []
        for filename in sorted(self._record_files(), reverse=True):
            record = self._read_or_skip(filename)
            if record is not None and needle in searchable_text(record).lower():
                results.append(record)
        return results

    def count(self) -> int:
        return len(self._record_files())

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_decision(
        self,
        conversation_id: str,
        decision_point: str,
        decision: str,
        reason: str,
    ) -> ConversationRecord:
        return self._mutate(
            conversation_id,
            lambda r: r.decisions.append(DecisionRecord(decision_point, decision, reason)),
        )

    def add_problem_solution(
        self,
        conversation_id: str,
        problem: str,
        solution: str,
        result: str,
    ) -> ConversationRecord:
        return self._mutate(
            conversation_id,
            lambda r: r.problems.append(ProblemSolution(problem, solution, result)),
        )

    def add_todo(
        self,
        conversation_id: str,
        task: str,
        priority: Union[Priority, str] = Priority.MEDIUM,
    ) -> TodoItem:
        todo = TodoItem(id=str(uuid4()), task=task, priority=Priority(priority))
        self._mutate(conversation_id, lambda r: r.todos.append(todo))
        return todo

    def complete_todo(self, conversation_id: str, todo_id: str) -> ConversationRecord:
        def apply(record: ConversationRecord) -> None:
            for todo in record.todos:
                if todo.id == todo_id:
                    todo.completed = True
                    return
            raise TodoNotFoundError(conversation_id, todo_id)

        return self._mutate(conversation_id, apply)

    def add_technology(
        self,
        conversation_id: str,
        name: str,
        purpose: str = "",
    ) -> ConversationRecord:
        def apply(record: ConversationRecord) -> None:
            for tech in record.technologies:
                if tech.name.lower() == name.lower():
                    tech.purpose = purpose or tech.purpose
                    return
            record.technologies.append(Technology(name=name, purpose=purpose))

        return self._mutate(conversation_id, apply)

    def update_summary(self, conversation_id: str, summary: str) -> ConversationRecord:
        def apply(record: ConversationRecord) -> None:
            record.summary = summary
            record.metadata.summary = summary

        return self._mutate(conversation_id, apply)

    def end_conversation(self, conversation_id: str) -> ConversationRecord:
        """Stamp the end time. A closed conversation keeps its first end time."""
        def apply(record: ConversationRecord) -> None:
            if record.metadata.end_time is None:
                record.metadata.end_time = datetime.now()
            else:
                logger.debug(f"Conversation {conversation_id} already ended")

        return self._mutate(conversation_id, apply)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _mutate(
        self,
        conversation_id: str,
        apply: Callable[[ConversationRecord], None],
    ) -> ConversationRecord:
        record = self.load(conversation_id)
        if record is None:
            raise ConversationNotFoundError(conversation_id)

        apply(record)
        self.save(conversation_id, record)
        return record

    def _record_files(self) -> List[str]:
        if not self.storage.exists(CONVERSATIONS_DIR):
            return []
        return [f for f in self.storage.list(CONVERSATIONS_DIR) if f.endswith(RECORD_SUFFIX)]

    def _find_file(self, conversation_id: str) -> Optional[str]:
        marker = f"_{conversation_id}_"
        for filename in self._record_files():
            if marker in filename:
                return filename
        return None

    def _read_or_skip(self, filename: str) -> Optional[ConversationRecord]:
        content = self.storage.read(f"{CONVERSATIONS_DIR}/{filename}")
        try:
            return self._parse(content, filename)
        except CorruptRecordError as e:
            logger.warning(f"Skipping unreadable conversation: {e}")
            return None

    def _parse(self, content: str, filename: str) -> ConversationRecord:
        try:
            return ConversationRecord.from_dict(json.loads(content))
        except (ValueError, KeyError, TypeError) as e:
            path = str(self.storage.full_path(f"{CONVERSATIONS_DIR}/{filename}"))
            raise CorruptRecordError("Unparseable conversation record", path) from e
