# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the context persistence orchestrator.

Tests cover:
- Session initialization and idempotence
- Store, retrieve, consolidate, advance and snapshot requests
- Error responses and rollback of failed requests
- Concurrent sessions
- Recorded turns, session teardown and state export
"""

import asyncio
from typing import Any

import pytest

from learnsync.core.learning.models import AdaptationDimension, MasteryLevel
from learnsync.core.memory.models import MemoryTier
from learnsync.core.persistence.models import ContextRequest, ContextResponse, RequestType
from learnsync.core.persistence.orchestrator import ContextPersistenceOrchestrator
from learnsync.core.exceptions import NotFoundError


async def send(
    orchestrator: ContextPersistenceOrchestrator,
    request_type: str,
    session_id: str = "s-1",
    **payload: Any,
) -> ContextResponse:
    return await orchestrator.process_request(
        {"request_type": request_type, "session_id": session_id, "payload": payload}
    )


async def store(
    orchestrator: ContextPersistenceOrchestrator,
    concepts: list[str],
    session_id: str = "s-1",
    **fields: Any,
) -> ContextResponse:
    fields.setdefault("content", f"Notes on {', '.join(concepts)}")
    return await send(orchestrator, "store", session_id, concepts=concepts, **fields)


# =============================================================================
# Initialize
# =============================================================================


@pytest.mark.unit
class TestInitialize:
    """Tests for initialize requests."""

    @pytest.mark.asyncio
    async def test_initialize_creates_session(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        response = await send(orchestrator, "initialize")

        assert response.success is True
        assert response.request_type == RequestType.INITIALIZE
        assert response.data["created"] is True
        assert response.data["current_phase"] == "foundation"
        assert response.data["building_blocks"] == ["basic_operations", "key_expiration"]
        assert response.next_actions
        assert orchestrator.has_session("s-1")

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        first = await send(orchestrator, "initialize")
        second = await send(
            orchestrator, "initialize", profile={"experience_level": "advanced"}
        )

        assert second.success is True
        assert second.data["created"] is False
        assert second.data["experience_id"] == first.data["experience_id"]
        assert second.data["current_phase"] == "foundation"
        assert orchestrator.session_count == 1

    @pytest.mark.asyncio
    async def test_initialize_with_profile_and_user(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        response = await orchestrator.process_request(
            ContextRequest(
                request_type=RequestType.INITIALIZE,
                session_id="s-1",
                user_id="user-9",
                payload={
                    "profile": {"experience_level": "intermediate"},
                    "learning_goals": ["Build a cache"],
                },
            )
        )

        assert response.data["current_phase"] == "building"
        state = orchestrator.get_session("s-1")
        assert state.user_id == "user-9"
        assert state.conversation.remaining_learning_goals() == ["Build a cache"]

    @pytest.mark.asyncio
    async def test_malformed_profile_is_rejected(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        response = await send(orchestrator, "initialize", profile={"experience_level": "wizard"})

        assert response.success is False
        assert response.error.code == "validation_error"
        assert orchestrator.session_count == 0

    @pytest.mark.asyncio
    async def test_failed_initialize_registers_no_lock(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize", profile={"experience_level": "wizard"})

        assert "s-1" not in orchestrator._locks

        await send(orchestrator, "initialize")

        assert orchestrator._locks["s-1"] is orchestrator.get_session("s-1").lock

    @pytest.mark.asyncio
    async def test_sessions_of_one_user_learn_separately(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        for session_id in ("s-a", "s-b"):
            await orchestrator.process_request(
                {"request_type": "initialize", "session_id": session_id, "user_id": "u-1"}
            )

        for _ in range(3):
            response = await store(orchestrator, ["get"], "s-b", performance=0.9)

        assert response.data["learning"]["mastery_level"] == "developing"
        first = orchestrator.get_session("s-a")
        second = orchestrator.get_session("s-b")
        assert first.user_id == second.user_id == "u-1"
        assert first.experience_id != second.experience_id
        untouched = orchestrator.learning.get_experience(first.experience_id)
        assert untouched.turn == 0
        assert untouched.building_blocks["basic_operations"].mastery_level == (
            MasteryLevel.INTRODUCED
        )


# =============================================================================
# Envelope Errors
# =============================================================================


@pytest.mark.unit
class TestErrorResponses:
    """Tests for error responses."""

    @pytest.mark.asyncio
    async def test_unknown_request_type(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        response = await orchestrator.process_request(
            {"request_type": "teleport", "session_id": "s-1"}
        )

        assert response.success is False
        assert response.request_type == "teleport"
        assert response.error.code == "validation_error"
        assert "request_type" in response.error.details["fields"]
        assert response.recommendations[0].title == "Error Recovery"

    @pytest.mark.asyncio
    async def test_missing_session_id(self, orchestrator: ContextPersistenceOrchestrator) -> None:
        response = await orchestrator.process_request({"request_type": "store"})

        assert response.success is False
        assert response.session_id == ""
        assert "session_id" in response.error.details["fields"]

    @pytest.mark.asyncio
    async def test_requests_for_unknown_sessions_register_no_lock(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await store(orchestrator, ["get"], "ghost-1")
        await send(orchestrator, "retrieve", "ghost-2", concepts=["get"])
        await orchestrator.record_turn("ghost-3", "q", "a")

        assert orchestrator._locks == {}

    @pytest.mark.asyncio
    async def test_request_before_initialize(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        response = await store(orchestrator, ["get"])

        assert response.success is False
        assert response.error.code == "not_found"
        assert response.error.details["entity"] == "session"
        assert response.error.details["entity_id"] == "s-1"
        assert response.error.details["request_type"] == "store"
        recovery = response.recommendations[0]
        assert recovery.title == "Error Recovery"
        assert recovery.priority == "high"
        assert recovery.description == "Initialize the session before sending other requests"


# =============================================================================
# Store and Retrieve
# =============================================================================


@pytest.mark.unit
class TestStoreAndRetrieve:
    """Tests for store and retrieve requests."""

    @pytest.mark.asyncio
    async def test_store_creates_connection(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await store(orchestrator, ["caching", "expire"], importance=0.5)

        assert response.success is True
        assert response.data["tier"] == "short_term"
        assert response.data["learning"]["block_id"] == "caching_patterns"
        connection = orchestrator.get_session("s-1").connections[response.data["connection_id"]]
        assert connection.from_id == response.data["memory_id"]
        assert connection.strength == 0.7
        assert connection.last_reinforced_tick == 1
        assert connection.concepts == ["caching", "expire"]

    @pytest.mark.asyncio
    async def test_important_memory_goes_long_term(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await store(orchestrator, ["hset"], importance=0.9)

        assert response.data["tier"] == "long_term"

    @pytest.mark.asyncio
    async def test_invalid_store_leaves_state_unchanged(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        await store(orchestrator, ["get"])
        before = orchestrator.export_state("s-1")

        response = await store(orchestrator, ["set"], content="   ")

        assert response.success is False
        assert response.error.code == "validation_error"
        assert response.error.details["fields"] == ["content"]
        assert response.recommendations[0].title == "Error Recovery"
        assert response.recommendations[0].description == (
            "Correct the request fields and retry: content"
        )
        assert orchestrator.export_state("s-1") == before

    @pytest.mark.asyncio
    async def test_out_of_range_importance_is_rejected(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await store(orchestrator, ["get"], importance=1.5)

        assert response.success is False
        assert response.error.details["fields"] == ["importance"]

    @pytest.mark.asyncio
    async def test_failure_after_memory_write_is_rolled_back(
        self,
        orchestrator: ContextPersistenceOrchestrator,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await send(orchestrator, "initialize")

        def boom(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("learning engine unavailable")

        monkeypatch.setattr(orchestrator.learning, "build_incremental_context", boom)
        response = await store(orchestrator, ["get"])

        assert response.success is False
        assert response.error.code == "internal_error"
        assert response.error.message == "learning engine unavailable"
        assert orchestrator.memory.distribution("s-1").total == 0
        assert orchestrator.memory.current_tick("s-1") == 0
        assert orchestrator.get_session("s-1").connections == {}

    @pytest.mark.asyncio
    async def test_store_without_performance_leaves_adaptation_unchanged(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        for _ in range(3):
            response = await store(orchestrator, ["caching"], importance=0.4)

        assert response.success is True
        assert response.data["learning"]["adaptations"] == []
        experience = orchestrator.learning.get_experience(
            orchestrator.get_session("s-1").experience_id
        )
        elements = experience.adaptive_elements
        assert elements[AdaptationDimension.DIFFICULTY].current_setting == "easy"
        assert elements[AdaptationDimension.SCAFFOLDING].current_setting == "moderate"
        assert experience.performance_history == []
        assert experience.building_blocks["caching_patterns"].interaction_count == 3

    @pytest.mark.asyncio
    async def test_store_without_performance_does_not_advance_mastery(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        for _ in range(3):
            response = await store(orchestrator, ["get"], importance=0.9)

        assert response.data["learning"]["mastery_level"] == "introduced"
        assert response.data["learning"]["previous_level"] == "introduced"

    @pytest.mark.asyncio
    async def test_consolidation_recommended_when_short_term_fills(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        concepts = ["get", "set", "del", "exists", "incr", "mget", "mset", "scan", "hset"]
        for concept in concepts:
            response = await store(orchestrator, [concept])
        assert "Consolidate Memory" not in [r.title for r in response.recommendations]

        response = await store(orchestrator, ["hget"])

        assert "Consolidate Memory" in [r.title for r in response.recommendations]

    @pytest.mark.asyncio
    async def test_retrieve_unknown_session_is_empty(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        response = await send(orchestrator, "retrieve", "ghost", concepts=["get"])

        assert response.success is True
        assert response.data["memories"] == []
        assert response.data["total_candidates"] == 0
        assert response.data["snapshot"]["composite_progress"] == 0.0

    @pytest.mark.asyncio
    async def test_retrieve_refreshes_connections(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        first = await store(orchestrator, ["get"])
        await store(orchestrator, ["set"])
        await store(orchestrator, ["del"])

        response = await send(orchestrator, "retrieve", concepts=["get"], strategy="relevance")

        assert [m["record"]["id"] for m in response.data["memories"]] == [first.data["memory_id"]]
        assert response.data["strategy"] == "relevance"
        connection = orchestrator.get_session("s-1").connections[first.data["connection_id"]]
        assert connection.last_reinforced_tick == 3


# =============================================================================
# Consolidate and Advance
# =============================================================================


@pytest.mark.unit
class TestConsolidateAndAdvance:
    """Tests for consolidate and advance requests."""

    @pytest.mark.asyncio
    async def test_consolidation_adapts_connections(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        stored = [await store(orchestrator, ["hset"], content=f"HSET note {i}") for i in range(3)]
        survivor_connection = stored[0].data["connection_id"]

        response = await send(orchestrator, "consolidate")

        assert response.success is True
        event = response.data["adaptation_event"]
        assert event["promoted"] == 1
        assert event["merged"] == 1
        assert event["pruned"] == 0
        assert event["strengthened_connections"] == 1
        assert event["removed_connections"] == 2
        assert event["reinforced_blocks"] == ["hash_operations"]

        insight_types = [i["insight_type"] for i in response.data["consolidation"]["insights"]]
        assert "retention_issue" in insight_types
        assert "pattern_discovery" in insight_types

        state = orchestrator.get_session("s-1")
        assert list(state.connections) == [survivor_connection]
        assert state.connections[survivor_connection].strength == pytest.approx(0.8)
        assert len(state.adaptation_history) == 1
        assert orchestrator.memory.distribution("s-1").long_term_skills == 1

    @pytest.mark.asyncio
    async def test_stale_connections_decay(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        concepts = ["get", "set", "del", "exists", "incr", "mget", "mset"]
        stored = [await store(orchestrator, [concept]) for concept in concepts]

        response = await send(orchestrator, "consolidate")

        assert response.data["adaptation_event"]["decayed_connections"] == 1
        connections = orchestrator.get_session("s-1").connections
        assert connections[stored[0].data["connection_id"]].strength == pytest.approx(0.56)
        assert connections[stored[1].data["connection_id"]].strength == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_consolidation_without_work_is_empty(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await send(orchestrator, "consolidate")

        assert response.success is True
        assert response.data["reinforced_blocks"] == []
        assert response.data["consolidation"]["completed"] is True

    @pytest.mark.asyncio
    async def test_advance_boosts_newly_relevant_memories(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        stored = await store(orchestrator, ["hset"], importance=0.5)

        response = await send(orchestrator, "advance", evidence={"concept_familiarity": 0.9})

        assert response.success is True
        assert response.data["advancement"]["advanced"] is True
        assert response.data["advancement"]["current_phase"] == "building"
        assert response.data["boosted_memory_ids"] == [stored.data["memory_id"]]
        record = orchestrator.memory.list_memories("s-1")[0]
        assert record.importance == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_advance_without_evidence_stays(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await send(orchestrator, "advance")

        assert response.success is True
        assert response.data["advancement"]["advanced"] is False
        assert response.data["boosted_memory_ids"] == []

    @pytest.mark.asyncio
    async def test_phase_skip_is_a_conflict(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await send(
            orchestrator,
            "advance",
            evidence={"concept_familiarity": 1.0},
            target_phase="connecting",
        )

        assert response.success is False
        assert response.error.code == "state_conflict"
        assert response.error.details["current_state"] == "foundation"
        assert response.error.details["requested_state"] == "connecting"
        state = orchestrator.export_state("s-1")
        assert state["current_phase"] == "foundation"


# =============================================================================
# Snapshot
# =============================================================================


@pytest.mark.unit
class TestSnapshot:
    """Tests for snapshot requests."""

    @pytest.mark.asyncio
    async def test_snapshot_composite_progress(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        await store(orchestrator, ["get"], importance=0.8)

        response = await send(orchestrator, "snapshot")

        snapshot = response.data["snapshot"]
        assert snapshot["memory_efficiency"] == 1.0
        assert snapshot["learning_velocity"] == 0.0
        assert snapshot["contextual_understanding"] == pytest.approx(0.7)
        assert snapshot["composite_progress"] == pytest.approx(1.7 / 3)
        assert snapshot["connection_count"] == 1
        assert snapshot["current_phase"] == "foundation"
        assert len(orchestrator.get_session("s-1").snapshots) == 1

    @pytest.mark.asyncio
    async def test_snapshot_recommends_top_suggestions(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await send(orchestrator, "snapshot")

        suggestions = response.data["suggestions"]
        assert [s["id"] for s in suggestions] == [
            "next_concept-basic_operations",
            "next_concept-key_expiration",
        ]
        assert [r.title for r in response.recommendations] == [s["title"] for s in suggestions]
        assert "memory_efficiency" in response.data["insights"]

    @pytest.mark.asyncio
    async def test_composite_progress_is_bounded(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        for _ in range(3):
            await store(orchestrator, ["get"], importance=0.9, performance=0.9)

        response = await send(orchestrator, "snapshot")

        assert 0.0 <= response.data["snapshot"]["composite_progress"] <= 1.0


# =============================================================================
# Concurrency
# =============================================================================


@pytest.mark.unit
class TestConcurrency:
    """Tests for concurrent requests."""

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await asyncio.gather(
            send(orchestrator, "initialize", "s-a"),
            send(orchestrator, "initialize", "s-b"),
        )

        responses = await asyncio.gather(
            store(orchestrator, ["get"], "s-a"),
            store(orchestrator, ["hset"], "s-b"),
            store(orchestrator, ["set"], "s-a"),
        )

        assert all(r.success for r in responses)
        assert orchestrator.session_count == 2
        assert orchestrator.memory.distribution("s-a").total == 2
        assert orchestrator.memory.distribution("s-b").total == 1

    @pytest.mark.asyncio
    async def test_same_session_requests_are_serialized(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        responses = await asyncio.gather(
            *(store(orchestrator, [concept]) for concept in ["get", "set", "del", "incr", "scan"])
        )

        assert all(r.success for r in responses)
        ticks = sorted(
            c.last_reinforced_tick for c in orchestrator.get_session("s-1").connections.values()
        )
        assert ticks == [1, 2, 3, 4, 5]


# =============================================================================
# Turns, Teardown and Export
# =============================================================================


@pytest.mark.unit
class TestTurnsAndTeardown:
    """Tests for record_turn, end_session and export_state."""

    @pytest.mark.asyncio
    async def test_record_turn_stores_learning_points(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await orchestrator.record_turn(
            "s-1",
            "How do I cache user profiles?",
            "Store them with HSET and expire the key.",
            response_metadata={"commands_used": ["hset"], "patterns_detected": ["caching"]},
        )

        assert response.success is True
        assert response.request_type == "record_turn"
        stored = response.data["stored"]
        assert [s["tier"] for s in stored] == ["long_term", "short_term"]
        assert response.next_actions == response.data["turn"]["next_suggestions"]
        state = orchestrator.get_session("s-1")
        assert len(state.connections) == 2
        assert state.conversation.message_count == 2

        record = orchestrator.memory.list_memories("s-1", MemoryTier.LONG_TERM)[0]
        assert record.concepts == ["hset", "hget", "hgetall"]
        assert record.content.startswith("Understanding the HSET command usage and syntax: ")

    @pytest.mark.asyncio
    async def test_record_turn_with_bad_metadata(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")

        response = await orchestrator.record_turn(
            "s-1", "q", "a", response_metadata={"commands_used": ["hsett"]}
        )

        assert response.success is False
        assert response.error.code == "validation_error"
        assert orchestrator.get_session("s-1").conversation.message_count == 0

    @pytest.mark.asyncio
    async def test_failed_turn_leaves_no_trace(
        self,
        orchestrator: ContextPersistenceOrchestrator,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await send(orchestrator, "initialize")

        def boom(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("learning engine unavailable")

        monkeypatch.setattr(orchestrator.learning, "build_incremental_context", boom)
        response = await orchestrator.record_turn(
            "s-1",
            "How do I cache user profiles?",
            "Store them with HSET and expire the key.",
            response_metadata={"commands_used": ["hset"], "patterns_detected": ["caching"]},
        )

        assert response.success is False
        assert response.error.code == "internal_error"
        assert response.error.message == "learning engine unavailable"
        state = orchestrator.get_session("s-1")
        assert state.conversation.message_count == 0
        assert state.conversation.turn_count == 0
        assert state.connections == {}
        assert orchestrator.memory.distribution("s-1").total == 0

    @pytest.mark.asyncio
    async def test_turn_after_failed_turn_is_recorded(
        self,
        orchestrator: ContextPersistenceOrchestrator,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await send(orchestrator, "initialize")
        metadata = {"commands_used": ["hset"]}

        def boom(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("learning engine unavailable")

        with monkeypatch.context() as patch:
            patch.setattr(orchestrator.learning, "build_incremental_context", boom)
            failed = await orchestrator.record_turn("s-1", "q", "a", response_metadata=metadata)
        response = await orchestrator.record_turn("s-1", "q", "a", response_metadata=metadata)

        assert failed.success is False
        assert response.success is True
        state = orchestrator.get_session("s-1")
        assert state.conversation.message_count == 2
        assert state.conversation.turn_count == 1

    @pytest.mark.asyncio
    async def test_record_turn_unknown_session(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        response = await orchestrator.record_turn("ghost", "q", "a")

        assert response.success is False
        assert response.error.details["entity"] == "session"

    @pytest.mark.asyncio
    async def test_end_session_purges_session_memories(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        await send(orchestrator, "initialize")
        scratch = await store(orchestrator, ["get"], lifespan="session")
        kept = await store(orchestrator, ["set"])

        purged = await orchestrator.end_session("s-1")

        assert purged == [scratch.data["memory_id"]]
        state = orchestrator.get_session("s-1")
        assert list(state.connections) == [kept.data["connection_id"]]
        assert orchestrator.has_session("s-1")

    @pytest.mark.asyncio
    async def test_end_unknown_session_raises(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        with pytest.raises(NotFoundError):
            await orchestrator.end_session("ghost")

    @pytest.mark.asyncio
    async def test_export_state(self, orchestrator: ContextPersistenceOrchestrator) -> None:
        await send(orchestrator, "initialize")
        await store(orchestrator, ["get"], importance=0.9)
        await store(orchestrator, ["set"])
        await send(orchestrator, "consolidate")

        exported = orchestrator.export_state("s-1")

        assert set(exported) == {
            "session_id",
            "user_id",
            "messages",
            "turns",
            "memory_layers",
            "building_blocks",
            "context_layers",
            "adaptive_elements",
            "current_phase",
            "connections",
            "adaptation_history",
        }
        layers = exported["memory_layers"]
        assert len(layers["long_term"]["records"]) == 1
        assert len(layers["short_term"]) == 1
        assert [s["concept_id"] for s in layers["long_term"]["skills"]] == ["get"]
        assert set(exported["adaptive_elements"]) == {"difficulty", "pace", "scaffolding"}
        assert len(exported["adaptation_history"]) == 1
        assert exported["user_id"] == "s-1"

    def test_export_unknown_session_raises(
        self, orchestrator: ContextPersistenceOrchestrator
    ) -> None:
        with pytest.raises(NotFoundError):
            orchestrator.export_state("ghost")
