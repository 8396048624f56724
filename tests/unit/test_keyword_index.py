"""Tests for the inverted keyword index."""

import json
from datetime import datetime, timedelta

import pytest

from companion.core.constants import INDEX_FILE
from companion.core.models import (
    ConversationMetadata,
    ConversationRecord,
    DecisionRecord,
    EntryType,
    ProblemSolution,
    Technology,
)
from companion.memory.keyword_index import KeywordIndex


def make_record(
    conversation_id: str = "conv_1_abc",
    title: str = "Implement JWT authentication",
    start_time: datetime = None,
    **kwargs,
) -> ConversationRecord:
    project = kwargs.pop("project", "")
    return ConversationRecord(
        metadata=ConversationMetadata(
            conversation_id=conversation_id,
            title=title,
            start_time=start_time or datetime.now(),
            project=project,
        ),
        **kwargs,
    )


@pytest.fixture
def index(storage):
    return KeywordIndex(storage)


class TestBuildEntries:
    """Test entry construction from records."""

    def test_conversation_entry(self, index):
        record = make_record(
            summary="Token refresh flow",
            project="core",
            technologies=[Technology("Node.js", "runtime")],
        )
        entries = index.build_entries(record)

        assert len(entries) == 1
        entry = entries[0]
        assert entry.id == "conv_1_abc"
        assert entry.type is EntryType.CONVERSATION
        assert entry.relevance_score == 1.0
        assert entry.conversation_id == "conv_1_abc"
        assert entry.keywords == [
            "implement", "jwt", "authentication", "token", "refresh", "flow",
            "core", "node", "js",
        ]

    def test_decision_and_problem_entries(self, index):
        record = make_record(
            decisions=[DecisionRecord("algorithm", "Use RS256", "Key rotation")],
            problems=[ProblemSolution("Tokens expire too quickly in tests", "Mock clock", "ok")],
        )
        entries = {e.type: e for e in index.build_entries(record)}

        decision = entries[EntryType.DECISION]
        assert decision.id == "conv_1_abc_decision_algorithm"
        assert decision.relevance_score == 0.9
        assert decision.keywords == ["use", "rs256", "key", "rotation"]

        problem = entries[EntryType.PROBLEM]
        assert problem.id == "conv_1_abc_problem_Tokens expire too qu"
        assert problem.relevance_score == 0.95
        assert "mock" in problem.keywords

    def test_repeated_decision_point_merges(self, index):
        record = make_record(
            decisions=[
                DecisionRecord("storage", "Use Redis", ""),
                DecisionRecord("storage", "Add persistence", ""),
            ]
        )
        decisions = [e for e in index.build_entries(record) if e.type is EntryType.DECISION]

        assert len(decisions) == 1
        assert decisions[0].keywords == ["use", "redis", "add", "persistence"]

    def test_entry_without_keywords_skipped(self, index):
        record = make_record(title="a", decisions=[DecisionRecord("x", "!!", "")])
        assert index.build_entries(record) == []

    def test_custom_weights(self, storage):
        index = KeywordIndex(storage, conversation_weight=0.5)
        assert index.build_entries(make_record())[0].relevance_score == 0.5


class TestIndexing:
    """Test index mutation and persistence."""

    def test_every_keyword_gets_a_bucket(self, index):
        index.index_conversation(make_record())

        for keyword in ("implement", "jwt", "authentication"):
            assert [e.id for e in index.bucket(keyword)] == ["conv_1_abc"]
        assert index.get_entry("conv_1_abc") is not None

    def test_reindex_replaces_entries(self, index):
        index.index_conversation(make_record(title="Redis cache"))
        index.index_conversation(make_record(title="Redis queue"))

        assert len(index.bucket("redis")) == 1
        assert index.bucket("cache") == []
        assert "cache" not in index.keywords()
        assert len(index.bucket("queue")) == 1

    def test_remove_conversation(self, index):
        index.index_conversation(make_record("conv_1_a", "Shared topic"))
        index.index_conversation(make_record("conv_2_b", "Shared other"))

        assert index.remove_conversation("conv_1_a") == 1
        assert [e.conversation_id for e in index.bucket("shared")] == ["conv_2_b"]
        assert index.remove_conversation("conv_1_a") == 0

    def test_save_and_load_roundtrip(self, index, storage):
        record = make_record(decisions=[DecisionRecord("algo", "Use RS256", "")])
        index.index_conversation(record)

        reloaded = KeywordIndex(storage)
        reloaded.load()

        assert sorted(reloaded.keywords()) == sorted(index.keywords())
        assert reloaded.get_stats() == index.get_stats()
        entry = reloaded.get_entry("conv_1_abc_decision_algo")
        assert entry.type is EntryType.DECISION
        # One shared object per entry id across buckets
        assert reloaded.bucket("use")[0] is reloaded.bucket("rs256")[0]

    def test_snapshot_format(self, index, storage):
        index.index_conversation(make_record())
        data = json.loads(storage.read(INDEX_FILE))

        entry = data["jwt"][0]
        assert entry["conversationId"] == "conv_1_abc"
        assert entry["relevanceScore"] == 1.0
        assert entry["type"] == "conversation"

    def test_missing_snapshot_loads_empty(self, index):
        index.load()
        assert index.get_stats().keyword_count == 0

    def test_corrupt_snapshot_loads_empty(self, index, storage):
        storage.write(INDEX_FILE, "[[[ not json")
        index.load()
        assert index.keywords() == []

    def test_stats_count_entry_per_keyword(self, index):
        index.index_conversation(make_record(title="alpha beta gamma"))
        stats = index.get_stats()

        assert stats.keyword_count == 3
        assert stats.total_entry_count == 3


class TestClearOldEntries:
    """Test age-based eviction."""

    def test_old_entries_evicted_and_empty_buckets_dropped(self, index):
        index.index_conversation(
            make_record("conv_1_old", "legacy shared", start_time=datetime(2000, 1, 1))
        )
        index.index_conversation(make_record("conv_2_new", "fresh shared"))

        evicted = index.clear_old_entries(30)

        assert evicted == 1
        assert "legacy" not in index.keywords()
        assert [e.id for e in index.bucket("shared")] == ["conv_2_new"]
        assert index.get_entry("conv_1_old") is None

    def test_zero_days_evicts_everything_before_now(self, index):
        index.index_conversation(make_record(start_time=datetime.now() - timedelta(seconds=1)))
        assert index.clear_old_entries(0) == 1
        assert index.get_entry("conv_1_abc") is None

    def test_cutoff_is_days_before_now(self, index):
        now = datetime.now()
        index.index_conversation(
            make_record("conv_1_kept", "recent", start_time=now - timedelta(hours=23))
        )
        index.index_conversation(
            make_record("conv_2_gone", "stale", start_time=now - timedelta(hours=30))
        )

        assert index.clear_old_entries(1) == 1
        assert index.get_entry("conv_1_kept") is not None
        assert index.get_entry("conv_2_gone") is None

    def test_idempotent(self, index):
        index.index_conversation(make_record(start_time=datetime(2000, 1, 1)))
        assert index.clear_old_entries(10) == 1
        stats = index.get_stats()

        assert index.clear_old_entries(10) == 0
        assert index.get_stats() == stats

    def test_eviction_is_persisted(self, index, storage):
        index.index_conversation(make_record(start_time=datetime(2000, 1, 1)))
        index.clear_old_entries(10)

        reloaded = KeywordIndex(storage)
        reloaded.load()
        assert reloaded.keywords() == []

    def test_negative_days_rejected(self, index):
        with pytest.raises(ValueError):
            index.clear_old_entries(-1)
