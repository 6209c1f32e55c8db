# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Context persistence orchestrator.

Keeps the memory store, the learning experience engine, the conversation
log and the progression engine in sync for each session. Every session owns
one SessionState entry in a single arena and its own learning experience,
even when several sessions share a user. Requests for the same session are
serialized by that session's asyncio lock while different sessions run
concurrently. Locks exist only for initialized sessions.

process_request() never raises. Failures come back as
``ContextResponse(success=False, error=...)`` with an "Error Recovery"
recommendation, and failed store, advance and consolidate requests leave
memory and learning state exactly as they were before the request. A failed
recorded turn also leaves the conversation log untouched.

A store without a ``performance`` only reinforces the concept in the
learning experience; mastery streaks and adaptive elements move only on
observed performance.

Connection policy (turn-based, measured in memory store ticks):
- a stored memory gets one connection to the session's experience at
  ``initial_connection_strength``
- a consolidation that promotes or merges a memory strengthens its
  connection by ``connection_reinforcement``
- connections not reinforced for ``connection_retention_turns`` ticks lose
  ``connection_decay_rate`` of their strength at each consolidation
- connections whose memory no longer exists are removed

Learning points of a recorded turn are stored with an importance taken from
the point's importance and fed to the learning engine as explanations with
a performance taken from the point's prior-occurrence mastery.

Example:
    orchestrator = ContextPersistenceOrchestrator()
    await orchestrator.process_request(
        {"request_type": "initialize", "session_id": "s-1"}
    )
    response = await orchestrator.process_request(
        {
            "request_type": "store",
            "session_id": "s-1",
            "payload": {"content": "Cache-aside with TTL", "concepts": ["caching"]},
        }
    )
"""

import asyncio
import copy
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from learnsync.core.config.settings import Settings, get_settings
from learnsync.core.conversation.models import ConceptMastery, PointImportance
from learnsync.core.conversation.session import ConversationalSession
from learnsync.core.exceptions import (
    LearnSyncError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from learnsync.core.learning.engine import LearningExperienceEngine
from learnsync.core.learning.models import InteractionType, LearningDatum
from learnsync.core.memory.models import (
    InsightType,
    MemoryDistribution,
    MemoryInsight,
    MemoryTier,
    MemoryType,
    RetrievalQuery,
)
from learnsync.core.memory.store import MemoryStore
from learnsync.core.persistence.models import (
    AdaptationEvent,
    AdvancePayload,
    ContextConnection,
    ContextRecommendation,
    ContextRequest,
    ContextResponse,
    ContextSnapshot,
    ErrorInfo,
    InitializePayload,
    RequestType,
    SessionState,
    StorePayload,
)
from learnsync.core.progression.engine import ProgressionSuggestionEngine
from learnsync.utils.datetime import utc_now
from learnsync.utils.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)

# One mastery gain every three interactions counts as full velocity
_VELOCITY_SCALE = 1 / 3

_POINT_IMPORTANCE = {
    PointImportance.HIGH: 0.8,
    PointImportance.MEDIUM: 0.5,
    PointImportance.LOW: 0.3,
}

_MASTERY_PERFORMANCE = {
    ConceptMastery.UNKNOWN: 0.4,
    ConceptMastery.LEARNING: 0.6,
    ConceptMastery.FAMILIAR: 0.75,
    ConceptMastery.EXPERT: 0.9,
}

_NEXT_ACTIONS = {
    RequestType.INITIALIZE: [
        "Store learning interactions as they happen",
        "Retrieve context before answering",
    ],
    RequestType.STORE: [
        "Consolidate memories periodically",
        "Retrieve related context",
    ],
    RequestType.RETRIEVE: [
        "Use retrieved memories to personalize the response",
        "Store the outcome of the interaction",
    ],
    RequestType.CONSOLIDATE: [
        "Check whether the learner can advance to the next phase",
        "Take a snapshot to review progress",
    ],
    RequestType.ADVANCE: [
        "Introduce the concepts of the current phase",
        "Take a snapshot to review progress",
    ],
    RequestType.SNAPSHOT: [
        "Follow the top progression suggestion",
        "Consolidate memories if many are pending",
    ],
}


class ContextPersistenceOrchestrator:
    """Routes context requests across memory, learning and progression.

    Attributes:
        settings: Engine settings.
        memory: Session-partitioned memory store.
        learning: Learning experience engine.
        progression: Progression suggestion engine.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        memory: MemoryStore | None = None,
        learning: LearningExperienceEngine | None = None,
        progression: ProgressionSuggestionEngine | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            settings: Engine settings. Defaults to the cached global settings.
            memory: Memory store. Built from settings when omitted.
            learning: Learning engine. Built from settings when omitted.
            progression: Progression engine. Built from settings when omitted,
                sharing the learning engine's curriculum.
        """
        self.settings = settings or get_settings()
        self.memory = memory or MemoryStore(self.settings.memory)
        self.learning = learning or LearningExperienceEngine(self.settings.learning)
        self.progression = progression or ProgressionSuggestionEngine(
            self.settings.progression, curriculum=self.learning.curriculum
        )
        self._sessions: dict[str, SessionState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._handlers = {
            RequestType.INITIALIZE: self._initialize,
            RequestType.STORE: self._store,
            RequestType.RETRIEVE: self._retrieve,
            RequestType.CONSOLIDATE: self._consolidate,
            RequestType.ADVANCE: self._advance,
            RequestType.SNAPSHOT: self._snapshot,
        }

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get_session(self, session_id: str) -> SessionState:
        """Return a session's arena entry.

        Raises:
            NotFoundError: If the session was never initialized.
        """
        state = self._sessions.get(session_id)
        if state is None:
            raise NotFoundError("session", session_id)
        return state

    def _lock_for(self, session_id: str, create: bool = False) -> asyncio.Lock:
        """Return the session's lock.

        Only initialize registers a new lock. Requests for sessions that
        were never initialized get a throwaway lock and fail in their
        handler, so unknown session ids never accumulate.
        """
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            if create:
                self._locks[session_id] = lock
        return lock

    # -------------------------------------------------------------------------
    # Request routing
    # -------------------------------------------------------------------------

    async def process_request(self, request: ContextRequest | dict[str, Any]) -> ContextResponse:
        """Process one context request.

        Args:
            request: The request or its dict form.

        Returns:
            ContextResponse. Errors are reported in the response, never raised.
        """
        try:
            if not isinstance(request, ContextRequest):
                request = ContextRequest.model_validate(request)
        except PydanticValidationError as e:
            raw = request if isinstance(request, dict) else {}
            error = ValidationError.from_pydantic(e, "context request")
            logger.warning("Rejected malformed context request", errors=error.fields)
            return self._error_response(
                str(raw.get("request_type", "unknown")),
                str(raw.get("session_id", "")),
                error,
            )

        bind_context(session_id=request.session_id, request_type=request.request_type.value)
        initializing = request.request_type == RequestType.INITIALIZE
        try:
            async with self._lock_for(request.session_id, create=initializing):
                data = await self._handlers[request.request_type](request)
            logger.info("Context request processed")
            return ContextResponse(
                success=True,
                request_type=request.request_type,
                session_id=request.session_id,
                data=data,
                recommendations=self._recommendations(request, data),
                next_actions=list(_NEXT_ACTIONS[request.request_type]),
            )
        except LearnSyncError as e:
            logger.warning("Context request failed", error_code=e.code, error=e.message)
            return self._error_response(request.request_type, request.session_id, e)
        except Exception as e:
            logger.exception("Unexpected error processing context request")
            return self._error_response(request.request_type, request.session_id, e)
        finally:
            if initializing and not self.has_session(request.session_id):
                self._locks.pop(request.session_id, None)
            clear_context()

    def _error_response(
        self,
        request_type: RequestType | str,
        session_id: str,
        error: Exception,
    ) -> ContextResponse:
        if isinstance(error, LearnSyncError):
            info = ErrorInfo(code=error.code, message=error.message, details=error.details)
        else:
            info = ErrorInfo(code="internal_error", message=str(error) or type(error).__name__)
        info.details = {
            **info.details,
            "request_type": getattr(request_type, "value", request_type),
            "session_id": session_id,
        }

        if isinstance(error, NotFoundError):
            info.details = {**info.details, "entity": error.entity, "entity_id": error.entity_id}
        elif isinstance(error, StateConflictError):
            info.details = {
                **info.details,
                "current_state": error.current_state,
                "requested_state": error.requested_state,
            }
        elif isinstance(error, ValidationError):
            info.details = {**info.details, "fields": error.fields}

        if isinstance(error, NotFoundError) and error.entity == "session":
            hint = "Initialize the session before sending other requests"
        elif isinstance(error, ValidationError):
            hint = f"Correct the request fields and retry: {', '.join(error.fields) or 'payload'}"
        else:
            hint = "Retry the request; no partial changes were kept"
        return ContextResponse(
            success=False,
            request_type=request_type,
            session_id=session_id,
            recommendations=[
                ContextRecommendation(title="Error Recovery", description=hint, priority="high")
            ],
            next_actions=["Review the error details", "Retry the request"],
            error=info,
        )

    def _recommendations(
        self, request: ContextRequest, data: dict[str, Any]
    ) -> list[ContextRecommendation]:
        recommendations = []
        if request.request_type == RequestType.SNAPSHOT:
            for suggestion in data.get("suggestions", [])[:3]:
                recommendations.append(
                    ContextRecommendation(
                        title=suggestion["title"],
                        description=suggestion["reasoning"],
                        priority=suggestion["priority"],
                    )
                )
        distribution = self.memory.distribution(request.session_id)
        if distribution.short_term >= self.settings.memory.short_term_capacity // 2:
            recommendations.append(
                ContextRecommendation(
                    title="Consolidate Memory",
                    description=f"{distribution.short_term} short-term memories are pending",
                    priority="medium",
                )
            )
        return recommendations

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def _initialize(self, request: ContextRequest) -> dict[str, Any]:
        existing = self._sessions.get(request.session_id)
        if existing is not None:
            return {
                "created": False,
                "experience_id": existing.experience_id,
                "current_phase": self.learning.get_experience(
                    existing.experience_id
                ).current_phase.value,
            }

        payload = self._payload(InitializePayload, request, "initialize payload")
        user_id = request.user_id or request.session_id
        conversation = ConversationalSession(
            session_id=request.session_id,
            user_id=user_id,
            initial_context={
                "user_experience_level": payload.profile.experience_level.value,
                **payload.context,
            },
            preferences=payload.preferences,
            learning_goals=payload.learning_goals or payload.profile.learning_goals,
            settings=self.settings.session,
        )
        experience = self.learning.initialize(
            user_id, payload.profile, payload.context, owner_id=request.session_id
        )
        self.memory.open_session(request.session_id, user_id)

        self._sessions[request.session_id] = SessionState(
            session_id=request.session_id,
            user_id=user_id,
            conversation=conversation,
            experience_id=experience.experience_id,
            profile=payload.profile,
            lock=self._lock_for(request.session_id, create=True),
        )
        logger.info(
            "Session initialized",
            experience_id=experience.experience_id,
            phase=experience.current_phase.value,
        )
        return {
            "created": True,
            "experience_id": experience.experience_id,
            "current_phase": experience.current_phase.value,
            "building_blocks": sorted(experience.building_blocks),
        }

    async def _store(self, request: ContextRequest) -> dict[str, Any]:
        state = self.get_session(request.session_id)
        payload = self._payload(StorePayload, request, "store payload")
        with self._transaction(state):
            return self._store_one(state, payload)

    def _store_one(self, state: SessionState, payload: StorePayload) -> dict[str, Any]:
        stored = self.memory.store(state.session_id, payload)
        datum = LearningDatum(
            concept=stored.concepts[0],
            performance=payload.performance,
            interaction_type=payload.interaction_type,
            related_concepts=stored.concepts[1:],
            exercise_id=payload.exercise_id,
        )
        built = self.learning.build_incremental_context(state.experience_id, datum)

        tick = self.memory.current_tick(state.session_id)
        connection = ContextConnection(
            from_id=stored.memory_id,
            to_id=state.experience_id,
            concepts=list(stored.concepts),
            strength=self.settings.context.initial_connection_strength,
            last_reinforced_tick=tick,
        )
        state.connections[connection.id] = connection
        for memory_id in stored.evicted_ids:
            self._drop_connections(state, memory_id)

        return {
            "memory_id": stored.memory_id,
            "tier": stored.tier.value,
            "evicted_ids": stored.evicted_ids,
            "connection_id": connection.id,
            "learning": built.model_dump(mode="json"),
        }

    async def _retrieve(self, request: ContextRequest) -> dict[str, Any]:
        query = self._payload(RetrievalQuery, request, "retrieval query")
        result = self.memory.retrieve(request.session_id, query)

        state = self._sessions.get(request.session_id)
        if state is not None:
            tick = self.memory.current_tick(state.session_id)
            retrieved = {m.record.id for m in result.memories}
            for connection in state.connections.values():
                if connection.from_id in retrieved:
                    connection.last_reinforced_tick = tick
                    connection.last_reinforced_at = utc_now()

        snapshot = self._build_snapshot(request.session_id, state)
        return {
            "memories": [m.model_dump(mode="json") for m in result.memories],
            "total_candidates": result.total_candidates,
            "strategy": result.strategy.value,
            "snapshot": snapshot.model_dump(mode="json"),
        }

    async def _consolidate(self, request: ContextRequest) -> dict[str, Any]:
        state = self.get_session(request.session_id)
        with self._transaction(state):
            run = self.memory.begin_consolidation(state.session_id)
            while run.step():
                # Yield between decisions so a caller may cancel the run
                await asyncio.sleep(0)
            result = run.result

            concepts = list(
                dict.fromkeys(
                    [p.concept_id for p in result.promoted] + [m.concept_id for m in result.merged]
                )
            )
            reinforced_blocks = (
                self.learning.reinforce_from_memory(state.experience_id, concepts)
                if concepts
                else []
            )

            touched = {p.memory_id for p in result.promoted} | {m.survivor_id for m in result.merged}
            strengthened, decayed, removed = self._update_connections(state, touched)
            if removed:
                insight = MemoryInsight(
                    insight_type=InsightType.RETENTION_ISSUE,
                    description=f"Removed {len(removed)} connections to memories that no longer exist",
                    confidence=1.0,
                    evidence=removed,
                )
                result.insights.append(insight)
                logger.info(
                    "Removed dangling connections",
                    count=len(removed),
                    insight=insight.description,
                )

            event = AdaptationEvent(
                promoted=len(result.promoted),
                merged=len(result.merged),
                pruned=len(result.pruned),
                reinforced_blocks=reinforced_blocks,
                strengthened_connections=strengthened,
                decayed_connections=decayed,
                removed_connections=len(removed),
            )
            state.adaptation_history.append(event)

        return {
            "consolidation": result.model_dump(mode="json"),
            "reinforced_blocks": reinforced_blocks,
            "adaptation_event": event.model_dump(mode="json"),
        }

    def _update_connections(
        self, state: SessionState, touched: set[str]
    ) -> tuple[int, int, list[str]]:
        policy = self.settings.context
        tick = self.memory.current_tick(state.session_id)
        strengthened = decayed = 0
        removed = []
        for connection_id, connection in list(state.connections.items()):
            if not self.memory.has_memory(state.session_id, connection.from_id):
                del state.connections[connection_id]
                removed.append(connection_id)
            elif connection.from_id in touched:
                connection.strength = min(1.0, connection.strength + policy.connection_reinforcement)
                connection.last_reinforced_tick = tick
                connection.last_reinforced_at = utc_now()
                strengthened += 1
            elif tick - connection.last_reinforced_tick > policy.connection_retention_turns:
                connection.strength *= 1.0 - policy.connection_decay_rate
                decayed += 1
        return strengthened, decayed, removed

    async def _advance(self, request: ContextRequest) -> dict[str, Any]:
        state = self.get_session(request.session_id)
        payload = self._payload(AdvancePayload, request, "advance payload")
        with self._transaction(state):
            result = self.learning.advance_learning_phase(
                state.experience_id, payload.evidence, payload.target_phase
            )
            boosted: list[str] = []
            if result.advanced:
                boosted = self.memory.boost_concepts(
                    state.session_id,
                    result.newly_relevant_concepts,
                    self.settings.context.phase_importance_boost,
                )
                logger.info(
                    "Learning phase advanced",
                    previous_phase=result.previous_phase.value,
                    current_phase=result.current_phase.value,
                    boosted=len(boosted),
                )
        return {
            "advancement": result.model_dump(mode="json"),
            "boosted_memory_ids": boosted,
        }

    async def _snapshot(self, request: ContextRequest) -> dict[str, Any]:
        state = self.get_session(request.session_id)
        snapshot = self._build_snapshot(state.session_id, state)
        state.snapshots.append(snapshot)

        experience = self.learning.get_experience(state.experience_id)
        suggestions = self.progression.generate_progression_suggestions(
            experience.profile,
            state.conversation.messages,
            list(experience.building_blocks.values()),
            current_turn=experience.turn,
        )
        return {
            "snapshot": snapshot.model_dump(mode="json"),
            "insights": self.memory.generate_insights(state.session_id).model_dump(mode="json"),
            "suggestions": [s.model_dump(mode="json") for s in suggestions],
        }

    def _build_snapshot(self, session_id: str, state: SessionState | None) -> ContextSnapshot:
        distribution = self.memory.distribution(session_id)
        if state is None:
            return ContextSnapshot(session_id=session_id, memory_distribution=MemoryDistribution())

        learning = self.learning.create_learning_snapshot(state.experience_id)
        strengths = [c.strength for c in state.connections.values()]
        understanding = sum(strengths) / len(strengths) if strengths else 0.0
        velocity = min(1.0, learning.learning_velocity / _VELOCITY_SCALE)
        composite = (distribution.memory_efficiency + velocity + understanding) / 3
        return ContextSnapshot(
            session_id=session_id,
            memory_distribution=distribution,
            current_phase=learning.current_phase.value,
            mastery_distribution=dict(learning.mastery_distribution),
            connection_count=len(state.connections),
            memory_efficiency=distribution.memory_efficiency,
            learning_velocity=learning.learning_velocity,
            contextual_understanding=understanding,
            composite_progress=min(1.0, composite),
        )

    # -------------------------------------------------------------------------
    # Conversation and teardown
    # -------------------------------------------------------------------------

    async def record_turn(
        self,
        session_id: str,
        user_content: str,
        assistant_content: str,
        user_context: dict[str, Any] | None = None,
        response_metadata: dict[str, Any] | None = None,
    ) -> ContextResponse:
        """Record a conversation turn and store its learning points.

        Args:
            session_id: Initialized session.
            user_content: User message text.
            assistant_content: Assistant response text.
            user_context: Query context of the user message.
            response_metadata: Metadata naming the commands and patterns of
                the response.

        Returns:
            ContextResponse with the turn and one store result per
            learning point.
        """
        bind_context(session_id=session_id, request_type="record_turn")
        try:
            async with self._lock_for(session_id):
                state = self.get_session(session_id)
                stored = []
                with self._transaction(state, include_conversation=True):
                    turn = state.conversation.create_turn(
                        user_content, assistant_content, user_context, response_metadata
                    )
                    for point in turn.learning_points:
                        payload = StorePayload(
                            content=f"{point.description}: {assistant_content}",
                            concepts=[point.concept.value, *point.related_concepts],
                            memory_type=(
                                MemoryType.PROCEDURAL
                                if point.kind == "command"
                                else MemoryType.CONCEPTUAL
                            ),
                            importance=_POINT_IMPORTANCE[point.importance],
                            performance=_MASTERY_PERFORMANCE[point.mastery],
                            interaction_type=InteractionType.EXPLANATION,
                        )
                        stored.append(self._store_one(state, payload))
            logger.info("Turn recorded", learning_points=len(turn.learning_points))
            return ContextResponse(
                success=True,
                request_type="record_turn",
                session_id=session_id,
                data={"turn": turn.model_dump(mode="json"), "stored": stored},
                next_actions=list(turn.next_suggestions),
            )
        except LearnSyncError as e:
            logger.warning("Recording turn failed", error_code=e.code, error=e.message)
            return self._error_response("record_turn", session_id, e)
        except Exception as e:
            logger.exception("Unexpected error recording turn")
            return self._error_response("record_turn", session_id, e)
        finally:
            clear_context()

    async def end_session(self, session_id: str) -> list[str]:
        """Tear down a session's session-scoped memories.

        Session-lifespan memories are purged and their connections removed.
        The arena entry stays so the session's state can still be exported.

        Returns:
            Ids of purged memories.

        Raises:
            NotFoundError: If the session was never initialized.
        """
        async with self._lock_for(session_id):
            state = self.get_session(session_id)
            purged = self.memory.purge_session(session_id)
            for memory_id in purged:
                self._drop_connections(state, memory_id)
        logger.info("Session ended", session_id=session_id, purged=len(purged))
        return purged

    def export_state(self, session_id: str) -> dict[str, Any]:
        """Return the logical persisted state of a session.

        Raises:
            NotFoundError: If the session was never initialized.
        """
        state = self.get_session(session_id)
        experience = self.learning.get_experience(state.experience_id)
        concepts, skills = self.memory.long_term_entries(session_id)
        conversation = state.conversation.export()

        def records(tier: MemoryTier) -> list[dict[str, Any]]:
            return [r.model_dump(mode="json") for r in self.memory.list_memories(session_id, tier)]

        return {
            "session_id": session_id,
            "user_id": state.user_id,
            "messages": conversation["messages"],
            "turns": conversation["turns"],
            "memory_layers": {
                "working": records(MemoryTier.WORKING),
                "short_term": records(MemoryTier.SHORT_TERM),
                "long_term": {
                    "records": records(MemoryTier.LONG_TERM),
                    "concepts": [e.model_dump(mode="json") for e in concepts],
                    "skills": [e.model_dump(mode="json") for e in skills],
                },
            },
            "building_blocks": {
                block_id: block.model_dump(mode="json")
                for block_id, block in experience.building_blocks.items()
            },
            "context_layers": [layer.model_dump(mode="json") for layer in experience.context_layers],
            "adaptive_elements": {
                dimension.value: element.model_dump(mode="json")
                for dimension, element in experience.adaptive_elements.items()
            },
            "current_phase": experience.current_phase.value,
            "connections": [c.model_dump(mode="json") for c in state.connections.values()],
            "adaptation_history": [e.model_dump(mode="json") for e in state.adaptation_history],
        }

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @contextmanager
    def _transaction(
        self, state: SessionState, include_conversation: bool = False
    ) -> Iterator[None]:
        """Restore memory, learning and connection state if the block fails.

        With include_conversation the conversation log is restored as well,
        so a failed turn leaves no messages behind.

        Cancellation is not a failure: decisions applied before a cancelled
        consolidation are kept.
        """
        partition = self.memory.export_partition(state.session_id)
        experience = self.learning.export_experience(state.experience_id)
        connections = {cid: c.model_copy() for cid, c in state.connections.items()}
        history_length = len(state.adaptation_history)
        conversation = copy.deepcopy(state.conversation) if include_conversation else None
        try:
            yield
        except Exception as e:
            self.memory.restore_partition(state.session_id, partition)
            self.learning.restore_experience(state.experience_id, experience)
            state.connections = connections
            del state.adaptation_history[history_length:]
            if conversation is not None:
                state.conversation = conversation
            logger.warning("Rolled back session state after failure", error=str(e))
            raise

    @staticmethod
    def _drop_connections(state: SessionState, memory_id: str) -> None:
        for connection_id in [
            cid for cid, c in state.connections.items() if c.from_id == memory_id
        ]:
            del state.connections[connection_id]

    @staticmethod
    def _payload(model_cls: Any, request: ContextRequest, subject: str) -> Any:
        try:
            return model_cls.model_validate(request.payload)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, subject) from e

