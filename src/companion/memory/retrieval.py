"""Keyword-overlap retrieval over the KeywordIndex."""

from dataclasses import replace
from typing import Dict, List

from loguru import logger

from companion.core.models import IndexEntry
from companion.memory.keyword_index import KeywordIndex, extract_keywords


class RetrievalEngine:
    """Ranks index entries against a free-text query."""

    def __init__(self, index: KeywordIndex):
        self.index = index

    def search(self, query: str, limit: int = 10) -> List[IndexEntry]:
        """
        Rank entries by accumulated keyword overlap with the query.

        Each query keyword adds the base weight of every entry in its
        bucket, so an entry matching three query keywords scores three
        times its weight. Ties keep the order in which entries were first
        reached (query keyword order, then bucket order).

        Returns:
            Copies of the top entries with ``relevance_score`` set to the
            accumulated score, best first
        """
        if limit <= 0:
            return []

        keywords = extract_keywords(query)
        if not keywords:
            return []

        with self.index.lock:
            scores: Dict[str, float] = {}
            for keyword in keywords:
                for entry in self.index.bucket(keyword):
                    scores[entry.id] = scores.get(entry.id, 0.0) + entry.relevance_score

            ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)[:limit]

            results = []
            for entry_id, score in ranked:
                entry = self.index.get_entry(entry_id)
                if entry is not None:
                    results.append(replace(entry, keywords=list(entry.keywords), relevance_score=score))

        logger.debug(f"Search '{query[:50]}': {len(results)} of {len(scores)} matching entries")
        return results

    def get_related_conversation_ids(self, query: str, limit: int = 5) -> List[str]:
        """
        Distinct owning conversation ids of the top ``limit`` entries.

        The same limit bounds the entry search, so fewer than ``limit``
        ids can come back when several top entries share a conversation.
        """
        ids: Dict[str, None] = {}
        for entry in self.search(query, limit):
            ids.setdefault(entry.conversation_id, None)
        return list(ids)[:limit]
