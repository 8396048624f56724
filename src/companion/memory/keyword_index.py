"""Inverted keyword index over conversation records.

The index maps each keyword to the entries that mention it. One entry is
built for the conversation as a whole, one per decision and one per
problem/solution pair; every entry is filed under each of its keywords,
so the same entry is reachable from several buckets. A second mapping
keyed by entry id resolves search hits without scanning buckets.

Re-indexing a conversation first drops all of its previous entries, so
the index always reflects the latest version of each record.
"""

import json
import re
import threading
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from loguru import logger

from companion.core.constants import (
    CONVERSATION_WEIGHT,
    DECISION_WEIGHT,
    INDEX_FILE,
    PROBLEM_ID_LENGTH,
    PROBLEM_WEIGHT,
    STOP_WORDS,
)
from companion.core.models import ConversationRecord, EntryType, IndexEntry, IndexStats
from companion.utils.exceptions import StorageError

# Anything outside CJK ideographs, lowercase ASCII letters, digits and whitespace
_NON_KEYWORD_CHARS = re.compile(r"[^\u4e00-\u9fa5a-z0-9\s]")


def extract_keywords(text: Optional[str]) -> List[str]:
    """
    Extract distinct search keywords from free text.

    Lowercases, replaces every character outside the allow-list with a
    space, splits on whitespace and drops single-character tokens and
    stop words. Order of first appearance is kept.
    """
    if not text:
        return []

    cleaned = _NON_KEYWORD_CHARS.sub(" ", text.lower())
    words = (w for w in cleaned.split() if len(w) > 1 and w not in STOP_WORDS)
    return list(dict.fromkeys(words))


def _merge_keywords(*groups: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(kw for group in groups for kw in group))


class KeywordIndex:
    """Keyword to IndexEntry mapping with a JSON snapshot on disk."""

    def __init__(
        self,
        storage,
        conversation_weight: float = CONVERSATION_WEIGHT,
        decision_weight: float = DECISION_WEIGHT,
        problem_weight: float = PROBLEM_WEIGHT,
        problem_id_length: int = PROBLEM_ID_LENGTH,
    ):
        self.storage = storage
        self.conversation_weight = conversation_weight
        self.decision_weight = decision_weight
        self.problem_weight = problem_weight
        self.problem_id_length = problem_id_length

        self._buckets: Dict[str, List[IndexEntry]] = {}
        self._entries: Dict[str, IndexEntry] = {}
        # Guards the maps across the mutate-then-persist cycle
        self.lock = threading.RLock()

    @classmethod
    def from_settings(cls, storage, retrieval_settings) -> "KeywordIndex":
        return cls(
            storage,
            conversation_weight=retrieval_settings.conversation_weight,
            decision_weight=retrieval_settings.decision_weight,
            problem_weight=retrieval_settings.problem_weight,
            problem_id_length=retrieval_settings.problem_id_length,
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Load the snapshot. A missing or unreadable file leaves the index empty."""
        with self.lock:
            self._buckets = {}
            self._entries = {}

            if not self.storage.exists(INDEX_FILE):
                logger.debug("No keyword index on disk, starting empty")
                return

            try:
                data = json.loads(self.storage.read(INDEX_FILE))
                buckets = {
                    keyword: [IndexEntry.from_dict(e) for e in entries]
                    for keyword, entries in data.items()
                }
            except (StorageError, ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable keyword index: {e}")
                return

            for keyword, entries in buckets.items():
                canonical = []
                for entry in entries:
                    # Share one object per entry id across buckets
                    canonical.append(self._entries.setdefault(entry.id, entry))
                if canonical:
                    self._buckets[keyword] = canonical

            logger.info(
                f"Loaded keyword index: {len(self._buckets)} keywords, "
                f"{len(self._entries)} entries"
            )

    def save(self) -> None:
        with self.lock:
            data = {
                keyword: [entry.to_dict() for entry in entries]
                for keyword, entries in self._buckets.items()
            }
            self.storage.write(INDEX_FILE, json.dumps(data, indent=2, ensure_ascii=False))

    # =========================================================================
    # Indexing
    # =========================================================================

    def build_entries(self, record: ConversationRecord) -> List[IndexEntry]:
        """Compute the entries for a record without touching the index."""
        conversation_id = record.id
        timestamp = record.metadata.start_time
        entries: Dict[str, IndexEntry] = {}

        def add(entry_id: str, entry_type: EntryType, keywords: List[str], weight: float) -> None:
            if not keywords:
                return
            existing = entries.get(entry_id)
            if existing is not None:
                # Repeated decision points collapse into a single entry
                existing.keywords = _merge_keywords(existing.keywords, keywords)
                return
            entries[entry_id] = IndexEntry(
                id=entry_id,
                type=entry_type,
                keywords=keywords,
                timestamp=timestamp,
                conversation_id=conversation_id,
                relevance_score=weight,
            )

        add(
            conversation_id,
            EntryType.CONVERSATION,
            _merge_keywords(
                extract_keywords(record.metadata.title),
                extract_keywords(record.summary),
                extract_keywords(record.metadata.project),
                *(extract_keywords(tech.name) for tech in record.technologies),
            ),
            self.conversation_weight,
        )

        for decision in record.decisions:
            add(
                f"{conversation_id}_decision_{decision.decision_point}",
                EntryType.DECISION,
                _merge_keywords(
                    extract_keywords(decision.decision),
                    extract_keywords(decision.reason),
                ),
                self.decision_weight,
            )

        for ps in record.problems:
            add(
                f"{conversation_id}_problem_{ps.problem[:self.problem_id_length]}",
                EntryType.PROBLEM,
                _merge_keywords(
                    extract_keywords(ps.problem),
                    extract_keywords(ps.solution),
                ),
                self.problem_weight,
            )

        return list(entries.values())

    def index_conversation(self, record: ConversationRecord) -> List[IndexEntry]:
        """Replace a record's entries with freshly computed ones and persist."""
        with self.lock:
            removed = self._remove_conversation(record.id)
            entries = self.build_entries(record)
            for entry in entries:
                self._entries[entry.id] = entry
                for keyword in entry.keywords:
                    self._buckets.setdefault(keyword, []).append(entry)

            logger.debug(
                f"Indexed conversation {record.id}: {len(entries)} entries "
                f"(replaced {removed})"
            )
            self.save()
            return entries

    def remove_conversation(self, conversation_id: str) -> int:
        """Drop every entry owned by a conversation and persist."""
        with self.lock:
            removed = self._remove_conversation(conversation_id)
            if removed:
                self.save()
            return removed

    def clear_old_entries(self, days_to_keep: int = 365) -> int:
        """
        Evict entries older than the retention window and persist.

        The cutoff is ``days_to_keep`` days before now; entries stamped
        at or after it are kept. ``days_to_keep=0`` evicts everything
        stamped before the call.

        Returns:
            Number of distinct entries evicted
        """
        if days_to_keep < 0:
            raise ValueError("days_to_keep must be >= 0")

        cutoff = datetime.now() - timedelta(days=days_to_keep)

        with self.lock:
            before = len(self._entries)
            for keyword in list(self._buckets):
                kept = [e for e in self._buckets[keyword] if e.timestamp >= cutoff]
                if kept:
                    self._buckets[keyword] = kept
                else:
                    del self._buckets[keyword]

            self._entries = {
                entry.id: entry for entries in self._buckets.values() for entry in entries
            }
            evicted = before - len(self._entries)
            logger.info(f"Evicted {evicted} index entries older than {cutoff:%Y-%m-%d %H:%M}")
            self.save()
            return evicted

    # =========================================================================
    # Queries
    # =========================================================================

    def bucket(self, keyword: str) -> List[IndexEntry]:
        return list(self._buckets.get(keyword, ()))

    def get_entry(self, entry_id: str) -> Optional[IndexEntry]:
        return self._entries.get(entry_id)

    def keywords(self) -> List[str]:
        return list(self._buckets)

    def get_stats(self) -> IndexStats:
        with self.lock:
            return IndexStats(
                keyword_count=len(self._buckets),
                total_entry_count=sum(len(entries) for entries in self._buckets.values()),
            )

    def _remove_conversation(self, conversation_id: str) -> int:
        owned = {e.id for e in self._entries.values() if e.conversation_id == conversation_id}
        if not owned:
            return 0

        for keyword in list(self._buckets):
            kept = [e for e in self._buckets[keyword] if e.id not in owned]
            if kept:
                self._buckets[keyword] = kept
            else:
                del self._buckets[keyword]

        for entry_id in owned:
            del self._entries[entry_id]
        return len(owned)
