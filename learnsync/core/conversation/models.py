# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for conversational sessions.

This module defines Pydantic models and enums for:
- Query context and message metadata
- Messages, turns and context changes
- Learning points extracted from assistant responses
- Session summaries, preferences and continuation decisions

Message metadata refers to commands and patterns by ConceptId. An unknown
identifier fails validation instead of creating a stray concept.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from learnsync.core.concepts import ConceptId
from learnsync.utils.datetime import utc_now


class MessageType(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ContextChangeType(str, Enum):
    """Kind of change between the context before and after a turn."""

    INTENT_CLARIFICATION = "intent_clarification"
    EXPERTISE_LEVEL = "expertise_level"
    DOMAIN_KNOWLEDGE = "domain_knowledge"
    PREFERENCE_UPDATE = "preference_update"


class PointImportance(str, Enum):
    """Importance of a learning point."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConceptMastery(str, Enum):
    """Mastery of a concept judged by how often it came up before.

    - UNKNOWN: never seen
    - LEARNING: seen once or twice
    - FAMILIAR: seen three to five times
    - EXPERT: seen more than five times
    """

    UNKNOWN = "unknown"
    LEARNING = "learning"
    FAMILIAR = "familiar"
    EXPERT = "expert"


class QueryContext(BaseModel):
    """Context supplied by the query layer.

    Extra fields are kept as-is and shallow-merged like the named ones.
    """

    model_config = ConfigDict(extra="allow")

    intent: str = "general"
    user_experience_level: str = "beginner"


class ResponseQuality(BaseModel):
    """Quality scores of an assistant response."""

    accuracy: float = Field(default=0.0, ge=0.0, le=1.0)
    completeness: float = Field(default=0.0, ge=0.0, le=1.0)
    helpfulness: float = Field(default=0.0, ge=0.0, le=1.0)
    clarity: float = Field(default=0.0, ge=0.0, le=1.0)
    relevance: float = Field(default=0.0, ge=0.0, le=1.0)
    overall_score: float = Field(default=0.0, ge=0.0, le=1.0)


class UserSatisfaction(BaseModel):
    """Feedback from the user on a response."""

    rating: int | None = Field(default=None, ge=1, le=5)
    feedback: str | None = None
    resolved: bool | None = None
    follow_up_needed: bool | None = None


class MessageMetadata(BaseModel):
    """Structured metadata attached to a message.

    Attributes:
        commands_used: Commands the response covered.
        patterns_detected: Usage patterns the response covered.
        tools_invoked: Names of tools the assistant called.
        response_quality: Quality scores, if measured.
        user_satisfaction: User feedback, if given.
        follow_up_generated: Whether follow-up questions were produced.
    """

    commands_used: list[ConceptId] = Field(default_factory=list)
    patterns_detected: list[ConceptId] = Field(default_factory=list)
    tools_invoked: list[str] = Field(default_factory=list)
    response_quality: ResponseQuality | None = None
    user_satisfaction: UserSatisfaction | None = None
    follow_up_generated: bool = False

    @field_validator("commands_used", "patterns_detected", mode="before")
    @classmethod
    def parse_concepts(cls, v: Any) -> list[ConceptId]:
        """Parse identifiers leniently (case, aliases) and drop duplicates."""
        if v is None:
            return []
        parsed: list[ConceptId] = []
        for item in v:
            concept = ConceptId.parse(item)
            if concept not in parsed:
                parsed.append(concept)
        return parsed

    @property
    def concepts(self) -> list[ConceptId]:
        """Commands followed by patterns."""
        return [*self.commands_used, *self.patterns_detected]


class ConversationMessage(BaseModel):
    """One message of the conversation log."""

    id: str = Field(default_factory=lambda: f"msg-{uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=utc_now)
    message_type: MessageType
    content: str
    context: QueryContext = Field(default_factory=QueryContext)
    metadata: MessageMetadata | None = None


class ContextChange(BaseModel):
    """Difference in context observed across a turn."""

    change_type: ContextChangeType
    before: Any = None
    after: Any = None
    reason: str
    confidence: float = Field(ge=0.0, le=1.0)


class LearningPoint(BaseModel):
    """A concept covered by an assistant response."""

    concept: ConceptId
    kind: Literal["command", "pattern"]
    description: str
    importance: PointImportance
    mastery: ConceptMastery
    examples: list[str] = Field(default_factory=list)
    related_concepts: list[str] = Field(default_factory=list)


class ConversationTurn(BaseModel):
    """A user message paired with the assistant response."""

    turn_id: str = Field(default_factory=lambda: f"turn-{uuid4().hex[:12]}")
    index: int
    user_message: ConversationMessage
    assistant_message: ConversationMessage
    context_evolution: list[ContextChange] = Field(default_factory=list)
    learning_points: list[LearningPoint] = Field(default_factory=list)
    next_suggestions: list[str] = Field(default_factory=list)


class SessionPreferences(BaseModel):
    """How the learner likes responses to be shaped."""

    preferred_response_length: Literal["brief", "moderate", "detailed"] = "moderate"
    code_example_preference: Literal["minimal", "practical", "comprehensive"] = "practical"
    explanation_style: Literal["technical", "conversational", "tutorial"] = "conversational"
    progress_tracking: bool = True
    interactive_prompts: bool = True


class LearningProgression(BaseModel):
    """Learning progress observed in the conversation."""

    starting_level: str
    current_level: str
    concepts_learned: list[str] = Field(default_factory=list)
    skills_acquired: list[str] = Field(default_factory=list)
    areas_for_improvement: list[str] = Field(default_factory=list)
    next_learning_goals: list[str] = Field(default_factory=list)


class RecentContext(BaseModel):
    """Recent conversation context for the query layer."""

    recent_messages: list[ConversationMessage] = Field(default_factory=list)
    context_summary: str
    current_intent: str
    user_expertise: str
    relevant_history: list[str] = Field(default_factory=list)


class ConversationSummary(BaseModel):
    """Summary of a whole conversation."""

    session_id: str
    user_id: str | None = None
    total_messages: int
    total_turns: int
    duration_seconds: float
    primary_topics: list[str] = Field(default_factory=list)
    commands_covered: list[str] = Field(default_factory=list)
    learning_progression: LearningProgression
    unresolved_questions: list[str] = Field(default_factory=list)
    recommended_next_steps: list[str] = Field(default_factory=list)


class ContinuationDecision(BaseModel):
    """Whether a session should go on, and why."""

    should_continue: bool
    reason: str
    suggestions: list[str] = Field(default_factory=list)
