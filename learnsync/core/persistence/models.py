# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for the context persistence orchestrator.

This module defines:
- ContextRequest / ContextResponse: the request envelope routed by the
  orchestrator and its never-raising response
- ContextConnection: a bidirectional link between a memory and a learning
  experience
- AdaptationEvent and ContextSnapshot: history kept per session
- SessionState: the per-session arena entry owning all of the above
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from learnsync.core.conversation.session import ConversationalSession
from learnsync.core.learning.models import InteractionType, LearnerProfile
from learnsync.core.memory.models import MemoryDistribution, StoreRequest
from learnsync.utils.datetime import utc_now


class RequestType(str, Enum):
    """Operations routed by the orchestrator."""

    INITIALIZE = "initialize"
    STORE = "store"
    RETRIEVE = "retrieve"
    CONSOLIDATE = "consolidate"
    ADVANCE = "advance"
    SNAPSHOT = "snapshot"


class ConnectionType(str, Enum):
    MEMORY_TO_LEARNING = "memory_to_learning"


class ContextRequest(BaseModel):
    """One request to the orchestrator.

    Attributes:
        request_type: Operation to run.
        session_id: Session the request belongs to.
        user_id: Learner id. Defaults to the session id on initialize.
        payload: Operation-specific data, validated by the operation.
    """

    request_type: RequestType
    session_id: str = Field(min_length=1)
    user_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class ContextRecommendation(BaseModel):
    title: str
    description: str
    priority: str = "medium"


class ErrorInfo(BaseModel):
    """Error carried by a failed response."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ContextResponse(BaseModel):
    """Result of one orchestrator request. Never raised, always returned."""

    success: bool
    request_type: RequestType | str
    session_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    recommendations: list[ContextRecommendation] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)
    error: ErrorInfo | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class ContextConnection(BaseModel):
    """Link between a stored memory and the session's learning experience.

    Attributes:
        from_id: Memory id.
        to_id: Experience id.
        strength: Link strength in [0, 1].
        last_reinforced_tick: Memory tick of the last reinforcement, used
            for turn-based decay.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    connection_type: ConnectionType = ConnectionType.MEMORY_TO_LEARNING
    from_id: str
    to_id: str
    concepts: list[str] = Field(default_factory=list)
    strength: float = Field(default=0.7, ge=0.0, le=1.0)
    bidirectional: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    last_reinforced_at: datetime = Field(default_factory=utc_now)
    last_reinforced_tick: int = 0


class AdaptationEvent(BaseModel):
    """What a consolidation changed across memory and learning."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=utc_now)
    trigger: str = "consolidation"
    promoted: int = 0
    merged: int = 0
    pruned: int = 0
    reinforced_blocks: list[str] = Field(default_factory=list)
    strengthened_connections: int = 0
    decayed_connections: int = 0
    removed_connections: int = 0


class ContextSnapshot(BaseModel):
    """Immutable point-in-time view of a session's learner context.

    composite_progress averages memory efficiency, learning velocity
    normalized against one mastery gain per three interactions, and
    contextual understanding (mean connection strength).
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    taken_at: datetime = Field(default_factory=utc_now)
    memory_distribution: MemoryDistribution
    current_phase: str | None = None
    mastery_distribution: dict[str, int] = Field(default_factory=dict)
    connection_count: int = 0
    memory_efficiency: float = 0.0
    learning_velocity: float = 0.0
    contextual_understanding: float = 0.0
    composite_progress: float = Field(default=0.0, ge=0.0, le=1.0)


@dataclass
class SessionState:
    """Everything the orchestrator owns for one session.

    Memory records live in the MemoryStore partition and the learning
    experience in the LearningExperienceEngine; this entry holds their ids
    and the cross-component state.
    """

    session_id: str
    user_id: str
    conversation: ConversationalSession
    experience_id: str
    profile: LearnerProfile
    connections: dict[str, ContextConnection] = field(default_factory=dict)
    adaptation_history: list[AdaptationEvent] = field(default_factory=list)
    snapshots: list[ContextSnapshot] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class InitializePayload(BaseModel):
    """Payload of an initialize request."""

    profile: LearnerProfile = Field(default_factory=LearnerProfile)
    context: dict[str, Any] = Field(default_factory=dict)
    preferences: dict[str, Any] = Field(default_factory=dict)
    learning_goals: list[str] = Field(default_factory=list)


class StorePayload(StoreRequest):
    """Payload of a store request.

    The memory fields are those of StoreRequest. ``performance`` is the
    observed performance fed to the learning experience; when omitted the
    store only reinforces the concept, without touching streaks or
    adaptation.
    """

    performance: float | None = Field(default=None, ge=0.0, le=1.0)
    interaction_type: InteractionType = InteractionType.PRACTICE
    exercise_id: str | None = None


class AdvancePayload(BaseModel):
    """Payload of an advance request."""

    evidence: dict[str, float] = Field(default_factory=dict)
    target_phase: str | None = None
