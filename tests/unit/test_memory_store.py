# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the session memory store.

Covers tiering on store, ranked retrieval, stepwise consolidation
(flush, merge, promote, prune) and session teardown.
"""

import pytest

from learnsync.core.config.settings import MemorySettings
from learnsync.core.exceptions import ExhaustionError, NotFoundError, ValidationError
from learnsync.core.memory.models import (
    InsightType,
    Lifespan,
    MemoryTier,
    MemoryType,
    RetrievalStrategy,
    StoreRequest,
    Urgency,
)
from learnsync.core.memory.store import MemoryStore


def _store(store: MemoryStore, content: str, concepts: list[str], **fields) -> str:
    request = StoreRequest(content=content, concepts=concepts, **fields)
    return store.store("s-1", request).memory_id


@pytest.fixture
def small_store() -> MemoryStore:
    """Provide a store with tight capacities and a short retention window."""
    store = MemoryStore(
        MemorySettings(
            short_term_capacity=3,
            working_capacity=2,
            retention_window_turns=2,
        )
    )
    store.open_session("s-1", "user-1")
    return store


@pytest.fixture
def forgetful_store() -> MemoryStore:
    """Provide a store whose short-term records expire after two stores."""
    store = MemoryStore(MemorySettings(retention_window_turns=2))
    store.open_session("s-1", "user-1")
    return store


@pytest.mark.unit
class TestStoreTiering:
    """Tests for tier selection on store."""

    def test_high_importance_goes_long_term(self, memory_store: MemoryStore) -> None:
        result = memory_store.store(
            "s-1", {"content": "Cache-aside pattern", "concepts": ["caching"], "importance": 0.9}
        )

        assert result.tier == MemoryTier.LONG_TERM
        _, skills = memory_store.long_term_entries("s-1")
        assert [s.concept_id for s in skills] == ["caching"]

    def test_long_lifespan_goes_long_term(self, memory_store: MemoryStore) -> None:
        result = memory_store.store(
            "s-1",
            {
                "content": "Hashes store objects",
                "concepts": ["hset"],
                "importance": 0.2,
                "lifespan": "long",
                "memory_type": "conceptual",
            },
        )

        assert result.tier == MemoryTier.LONG_TERM
        concepts, skills = memory_store.long_term_entries("s-1")
        assert [c.concept_id for c in concepts] == ["hset"]
        assert skills == []

    def test_immediate_urgency_goes_to_working(self, memory_store: MemoryStore) -> None:
        result = memory_store.store(
            "s-1", {"content": "Current key", "concepts": ["get"], "urgency": "immediate"}
        )

        assert result.tier == MemoryTier.WORKING

    def test_default_goes_short_term(self, memory_store: MemoryStore) -> None:
        result = memory_store.store("s-1", {"content": "SET stores a value", "concepts": ["SET"]})

        assert result.tier == MemoryTier.SHORT_TERM
        assert result.concepts == ["set"]

    def test_working_overflow_demotes_oldest(self, small_store: MemoryStore) -> None:
        first = _store(small_store, "one", ["get"], urgency=Urgency.IMMEDIATE)
        _store(small_store, "two", ["set"], urgency=Urgency.IMMEDIATE)
        _store(small_store, "three", ["del"], urgency=Urgency.IMMEDIATE)

        working = small_store.list_memories("s-1", MemoryTier.WORKING)
        short_term = small_store.list_memories("s-1", MemoryTier.SHORT_TERM)
        assert len(working) == 2
        assert [r.id for r in short_term] == [first]

    def test_short_term_overflow_evicts_least_important(self, small_store: MemoryStore) -> None:
        _store(small_store, "a", ["get"], importance=0.5)
        weakest = _store(small_store, "b", ["set"], importance=0.1)
        _store(small_store, "c", ["del"], importance=0.3)

        result = small_store.store("s-1", StoreRequest(content="d", concepts=["ttl"], importance=0.2))

        assert result.evicted_ids == [weakest]
        assert not small_store.has_memory("s-1", weakest)
        assert small_store.has_memory("s-1", result.memory_id)


@pytest.mark.unit
class TestStoreValidation:
    """Tests for store input validation."""

    def test_empty_content_raises_validation_error(self, memory_store: MemoryStore) -> None:
        with pytest.raises(ValidationError) as exc_info:
            memory_store.store("s-1", {"content": "   ", "concepts": ["get"]})

        assert exc_info.value.fields == ["content"]

    def test_empty_concepts_raises_validation_error(self, memory_store: MemoryStore) -> None:
        with pytest.raises(ValidationError) as exc_info:
            memory_store.store("s-1", {"content": "Something", "concepts": [" "]})

        assert exc_info.value.fields == ["concepts"]

    def test_malformed_field_raises_validation_error(self, memory_store: MemoryStore) -> None:
        with pytest.raises(ValidationError) as exc_info:
            memory_store.store("s-1", {"content": "x", "concepts": ["get"], "importance": 1.5})

        assert "importance" in exc_info.value.fields

    def test_unopened_session_raises_not_found(self, memory_store: MemoryStore) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            memory_store.store("missing", {"content": "x", "concepts": ["get"]})

        assert exc_info.value.entity == "session"

    def test_failed_store_leaves_tick_unchanged(self, memory_store: MemoryStore) -> None:
        with pytest.raises(ValidationError):
            memory_store.store("s-1", {"content": "", "concepts": ["get"]})

        assert memory_store.current_tick("s-1") == 0


@pytest.mark.unit
class TestRetrieve:
    """Tests for ranked retrieval."""

    def test_round_trip_caching_is_long_term_and_retrievable(
        self, memory_store: MemoryStore
    ) -> None:
        stored = memory_store.store(
            "s-1", {"content": "Cache reads with TTL", "concepts": ["caching"], "importance": 0.9}
        )

        result = memory_store.retrieve("s-1", {"text": "how does caching work?"})

        assert stored.tier == MemoryTier.LONG_TERM
        assert stored.memory_id in [r.id for r in result.records]

    def test_unknown_session_returns_empty_result(self, memory_store: MemoryStore) -> None:
        result = memory_store.retrieve("missing", {"text": "caching"})

        assert result.memories == []
        assert result.total_candidates == 0

    def test_non_overlapping_records_are_skipped(self, memory_store: MemoryStore) -> None:
        _store(memory_store, "About hashes", ["hset"])
        caching = _store(memory_store, "About caching", ["caching"])

        result = memory_store.retrieve("s-1", {"concepts": ["caching"]})

        assert [r.id for r in result.records] == [caching]

    def test_relevance_is_non_increasing(
        self, memory_store: MemoryStore
    ) -> None:
        low = _store(memory_store, "low", ["caching"], importance=0.2)
        high = _store(memory_store, "high", ["caching"], importance=0.6)
        partial = _store(memory_store, "partial", ["caching", "hset"], importance=0.6)

        result = memory_store.retrieve(
            "s-1", {"concepts": ["caching"], "strategy": RetrievalStrategy.RELEVANCE}
        )

        scores = [m.score for m in result.memories]
        assert scores == sorted(scores, reverse=True)
        assert [r.id for r in result.records] == [high, low, partial]

    def test_recency_is_non_increasing_by_timestamp(self, memory_store: MemoryStore) -> None:
        for index in range(4):
            _store(memory_store, f"note {index}", ["get"], importance=0.1 * index)

        result = memory_store.retrieve("s-1", {"strategy": "recency"})

        timestamps = [r.created_at for r in result.records]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_equal_scores_keep_insertion_order(self, memory_store: MemoryStore) -> None:
        first = _store(memory_store, "first", ["get"], importance=0.5)
        second = _store(memory_store, "second", ["get"], importance=0.5)

        result = memory_store.retrieve("s-1", {"concepts": ["get"], "strategy": "relevance"})

        assert [r.id for r in result.records] == [first, second]

    def test_comprehensive_prefers_recent_and_important(self, memory_store: MemoryStore) -> None:
        _store(memory_store, "first", ["get"], importance=0.3)
        second = _store(memory_store, "second", ["get"], importance=0.5)

        result = memory_store.retrieve("s-1", {"concepts": ["get"], "max_results": 1})

        assert [r.id for r in result.records] == [second]

    def test_retrieved_records_are_marked_accessed(self, memory_store: MemoryStore) -> None:
        memory_id = _store(memory_store, "SET basics", ["set"])

        memory_store.retrieve("s-1", {"concepts": ["set"]})
        record = memory_store.list_memories("s-1")[0]

        assert record.id == memory_id
        assert record.access_count == 1
        assert record.reinforcement_count == 2

    def test_max_results_limits_output(self, memory_store: MemoryStore) -> None:
        for index in range(5):
            _store(memory_store, f"note {index}", ["get"])

        result = memory_store.retrieve("s-1", {"concepts": ["get"], "max_results": 2})

        assert len(result.memories) == 2
        assert result.total_candidates == 5


@pytest.mark.unit
class TestConsolidation:
    """Tests for consolidation."""

    def test_duplicates_merge_into_one_skill_entry(self, memory_store: MemoryStore) -> None:
        """Three 0.4 caching records become one long-term skill entry."""
        for text in ("Cache reads", "Cache writes", "Cache invalidation"):
            _store(memory_store, text, ["caching"], importance=0.4)

        result = memory_store.consolidate("s-1")

        assert len(result.merged) == 1
        assert result.merged[0].reinforcement_count == 3
        assert len(result.promoted) == 1
        _, skills = memory_store.long_term_entries("s-1")
        assert len(skills) == 1
        assert skills[0].concept_id == "caching"
        assert skills[0].importance == 0.4
        assert skills[0].reinforcement_count == 3
        distribution = memory_store.distribution("s-1")
        assert distribution.long_term == 1
        assert distribution.short_term == 0

    def test_merged_content_is_concatenated_and_capped(self) -> None:
        store = MemoryStore(MemorySettings(merge_content_cap=20))
        store.open_session("s-1")
        store.store("s-1", {"content": "a" * 15, "concepts": ["get"], "importance": 0.1})
        store.store("s-1", {"content": "b" * 15, "concepts": ["get"], "importance": 0.3})

        store.consolidate("s-1")
        record = store.list_memories("s-1")[0]

        assert record.content == "a" * 15 + "\n" + "b" * 4
        assert record.importance == 0.3
        assert len(record.merged_from) == 1

    def test_important_records_are_promoted(self, memory_store: MemoryStore) -> None:
        memory_id = _store(memory_store, "Sorted sets rank", ["zadd"], importance=0.6)

        result = memory_store.consolidate("s-1")

        assert [p.memory_id for p in result.promoted] == [memory_id]
        assert memory_store.list_memories("s-1")[0].tier == MemoryTier.LONG_TERM

    def test_promotion_into_existing_entry_is_strengthened(
        self, memory_store: MemoryStore
    ) -> None:
        _store(memory_store, "Pub/sub basics", ["pub_sub"], importance=0.9)
        _store(memory_store, "Pub/sub fan-out", ["pub_sub"], importance=0.65)

        result = memory_store.consolidate("s-1")

        assert result.strengthened == ["pub_sub"]

    def test_working_records_are_flushed(self, memory_store: MemoryStore) -> None:
        memory_id = _store(memory_store, "Now", ["get"], urgency=Urgency.IMMEDIATE)

        result = memory_store.consolidate("s-1")

        assert result.flushed == [memory_id]
        assert memory_store.list_memories("s-1", MemoryTier.WORKING) == []

    def test_untouched_records_are_pruned(self, forgetful_store: MemoryStore) -> None:
        stale = _store(forgetful_store, "stale", ["get"], importance=0.2)
        _store(forgetful_store, "b", ["set"], importance=0.2)
        _store(forgetful_store, "c", ["del"], importance=0.2)
        _store(forgetful_store, "d", ["ttl"], importance=0.2)

        result = forgetful_store.consolidate("s-1")

        assert result.pruned == [stale]
        assert any(i.insight_type == InsightType.RETENTION_ISSUE for i in result.insights)

    def test_second_consolidation_is_idempotent(self, forgetful_store: MemoryStore) -> None:
        _store(forgetful_store, "a", ["get"], importance=0.2)
        _store(forgetful_store, "b", ["get"], importance=0.65)
        _store(forgetful_store, "c", ["set"], importance=0.2)
        _store(forgetful_store, "d", ["del"], importance=0.2)

        first = forgetful_store.consolidate("s-1")
        second = forgetful_store.consolidate("s-1")

        assert first.changed
        assert second.promoted == []
        assert second.pruned == []
        assert second.merged == []

    def test_session_lifespan_records_are_not_promoted(self, memory_store: MemoryStore) -> None:
        _store(memory_store, "Scratch", ["get"], importance=0.65, lifespan=Lifespan.SESSION)

        result = memory_store.consolidate("s-1")

        assert result.promoted == []

    def test_session_records_do_not_merge_into_longer_lived_ones(
        self, memory_store: MemoryStore
    ) -> None:
        kept = _store(memory_store, "Kept note", ["get"], importance=0.3)
        scratch = _store(memory_store, "Scratch note", ["get"], lifespan=Lifespan.SESSION)

        result = memory_store.consolidate("s-1")
        purged = memory_store.purge_session("s-1")

        assert result.merged == []
        assert purged == [scratch]
        remaining = memory_store.list_memories("s-1")
        assert [r.id for r in remaining] == [kept]
        assert remaining[0].content == "Kept note"

    def test_session_records_merge_with_each_other(self, memory_store: MemoryStore) -> None:
        first = _store(memory_store, "Scratch one", ["get"], lifespan=Lifespan.SESSION)
        _store(memory_store, "Scratch two", ["get"], lifespan=Lifespan.SESSION)

        result = memory_store.consolidate("s-1")

        assert [m.survivor_id for m in result.merged] == [first]
        assert memory_store.purge_session("s-1") == [first]
        assert memory_store.list_memories("s-1") == []

    def test_stepwise_run_can_stop_between_decisions(self, memory_store: MemoryStore) -> None:
        _store(memory_store, "one", ["get"], urgency=Urgency.IMMEDIATE)
        _store(memory_store, "two", ["set"], urgency=Urgency.IMMEDIATE)

        run = memory_store.begin_consolidation("s-1")
        assert run.step() is True

        # One decision applied, the other still pending
        assert len(memory_store.list_memories("s-1", MemoryTier.WORKING)) == 1
        assert run.done is False

        result = run.run()
        assert result.completed is True
        assert run.done is True

    def test_step_budget_raises_exhaustion(self) -> None:
        store = MemoryStore(MemorySettings(max_consolidation_steps_factor=1))
        store.open_session("s-1")
        for concept in ("get", "set", "del"):
            store.store(
                "s-1",
                {"content": concept, "concepts": [concept], "importance": 0.65, "urgency": "immediate"},
            )

        with pytest.raises(ExhaustionError) as exc_info:
            store.consolidate("s-1")

        assert exc_info.value.limit == 4

    def test_unopened_session_raises_not_found(self, memory_store: MemoryStore) -> None:
        with pytest.raises(NotFoundError):
            memory_store.consolidate("missing")


@pytest.mark.unit
class TestSessionLifecycle:
    """Tests for open, purge, export and restore."""

    def test_open_session_is_idempotent(self, memory_store: MemoryStore) -> None:
        assert memory_store.open_session("s-1") is False
        assert memory_store.open_session("s-2") is True

    def test_purge_drops_session_scoped_records(self, memory_store: MemoryStore) -> None:
        scratch = _store(memory_store, "Scratch", ["get"], lifespan=Lifespan.SESSION)
        kept = _store(memory_store, "Kept", ["set"])

        purged = memory_store.purge_session("s-1")

        assert purged == [scratch]
        assert [r.id for r in memory_store.list_memories("s-1")] == [kept]

    def test_purge_unknown_session_is_empty(self, memory_store: MemoryStore) -> None:
        assert memory_store.purge_session("missing") == []

    def test_export_and_restore_round_trip(self, memory_store: MemoryStore) -> None:
        _store(memory_store, "Before", ["get"])
        exported = memory_store.export_partition("s-1")

        _store(memory_store, "After", ["set"])
        memory_store.restore_partition("s-1", exported)

        assert [r.content for r in memory_store.list_memories("s-1")] == ["Before"]
        assert memory_store.current_tick("s-1") == 1

    def test_restore_none_removes_partition(self, memory_store: MemoryStore) -> None:
        memory_store.restore_partition("s-1", None)

        assert memory_store.has_session("s-1") is False


@pytest.mark.unit
class TestAdjustmentsAndInsights:
    """Tests for boosting and insight generation."""

    def test_boost_concepts_caps_at_one(self, memory_store: MemoryStore) -> None:
        memory_id = _store(memory_store, "TTL", ["ttl"], importance=0.5)
        _store(memory_store, "GET", ["get"], importance=0.5)

        boosted = memory_store.boost_concepts("s-1", ["TTL"], 0.6)

        assert boosted == [memory_id]
        importances = {r.id: r.importance for r in memory_store.list_memories("s-1")}
        assert importances[memory_id] == 1.0

    def test_insights_report_gaps_and_strengths(self, memory_store: MemoryStore) -> None:
        _store(memory_store, "Streams", ["xadd"], importance=0.3)
        for _ in range(3):
            _store(
                memory_store,
                "Caching",
                ["caching"],
                importance=0.9,
                memory_type=MemoryType.PROCEDURAL,
            )

        report = memory_store.generate_insights("s-1")

        assert report.knowledge_gaps == ["xadd"]
        assert report.strength_areas == ["caching"]
        assert report.retention.consolidation_due is True
        assert report.memory_efficiency == 0.75

    def test_insights_for_unknown_session_are_empty(self, memory_store: MemoryStore) -> None:
        report = memory_store.generate_insights("missing")

        assert report.insights == []
        assert report.distribution.total == 0
