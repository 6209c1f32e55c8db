# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for the memory store.

This module defines Pydantic models and enums for:
- Memory records and their tier, lifespan and urgency
- Store and retrieval requests and results
- Long-term concept and skill memory
- Consolidation results and memory insights
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from learnsync.core.concepts import normalize_concept
from learnsync.utils.datetime import utc_now


class MemoryType(str, Enum):
    """Kind of knowledge a memory record carries.

    Conceptual records consolidate into concept memory, procedural and
    experiential records into skill memory.
    """

    CONCEPTUAL = "conceptual"
    PROCEDURAL = "procedural"
    EXPERIENTIAL = "experiential"


class Urgency(str, Enum):
    """How soon a memory is needed again."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    IMMEDIATE = "immediate"


class Lifespan(str, Enum):
    """Intended lifetime of a memory record.

    SESSION records are purged at session teardown and never promoted by
    consolidation.
    """

    SESSION = "session"
    SHORT = "short"
    LONG = "long"


class MemoryTier(str, Enum):
    """Storage tier a record currently lives in."""

    WORKING = "working"
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"


class RetrievalStrategy(str, Enum):
    """Ranking strategy for retrieval.

    - RECENCY: creation time, newest first
    - RELEVANCE: concept overlap weighted by importance and reinforcement
    - COMPREHENSIVE: weighted blend of relevance and recency
    """

    RECENCY = "recency"
    RELEVANCE = "relevance"
    COMPREHENSIVE = "comprehensive"


class InsightType(str, Enum):
    """Category of a generated memory insight."""

    PATTERN_DISCOVERY = "pattern_discovery"
    KNOWLEDGE_GAP = "knowledge_gap"
    STRENGTH_AREA = "strength_area"
    RETENTION_ISSUE = "retention_issue"


def _normalize_concepts(values: list[str]) -> list[str]:
    """Normalize concept tags, dropping blanks and duplicates in order."""
    seen: list[str] = []
    for value in values:
        tag = normalize_concept(value)
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class MemoryRecord(BaseModel):
    """A single stored memory.

    ``sequence`` is the insertion order inside the session partition and
    ``last_touched_tick`` the partition tick of the last store, merge or
    retrieval that touched the record. Both are logical clocks, so ranking
    and retention never depend on wall-clock resolution.

    Attributes:
        id: Unique memory identifier.
        session_id: Owning session.
        content: Free-text content.
        memory_type: Conceptual, procedural or experiential.
        importance: Importance in [0, 1].
        urgency: How soon the memory is needed.
        lifespan: Intended lifetime.
        concepts: Normalized concept tags, primary concept first.
        tier: Current storage tier.
        created_at: Creation time.
        last_accessed_at: Last retrieval or merge time.
        sequence: Insertion order within the session.
        last_touched_tick: Partition tick of the last touch.
        reinforcement_count: Number of times the memory was referenced.
        access_count: Number of retrievals that returned the memory.
        merged_from: Ids of records merged into this one.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    content: str
    memory_type: MemoryType = MemoryType.EXPERIENTIAL
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    urgency: Urgency = Urgency.MEDIUM
    lifespan: Lifespan = Lifespan.SHORT
    concepts: list[str] = Field(min_length=1)
    tier: MemoryTier = MemoryTier.SHORT_TERM
    created_at: datetime = Field(default_factory=utc_now)
    last_accessed_at: datetime = Field(default_factory=utc_now)
    sequence: int = Field(default=0, ge=0)
    last_touched_tick: int = Field(default=0, ge=0)
    reinforcement_count: int = Field(default=1, ge=1)
    access_count: int = Field(default=0, ge=0)
    merged_from: list[str] = Field(default_factory=list)

    @property
    def primary_concept(self) -> str:
        """Return the first concept tag, used for duplicate detection."""
        return self.concepts[0]


class StoreRequest(BaseModel):
    """Input for storing a memory.

    Concept tags are normalized on construction; blank content and an empty
    concept list are rejected by the store with a ValidationError.
    """

    content: str
    concepts: list[str] = Field(default_factory=list)
    memory_type: MemoryType = MemoryType.EXPERIENTIAL
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    urgency: Urgency = Urgency.MEDIUM
    lifespan: Lifespan = Lifespan.SHORT

    @field_validator("concepts")
    @classmethod
    def normalize_concepts(cls, v: list[str]) -> list[str]:
        """Normalize concept tags."""
        return _normalize_concepts(v)


class StoreResult(BaseModel):
    """Result of a store operation."""

    memory_id: str
    session_id: str
    tier: MemoryTier
    concepts: list[str]
    evicted_ids: list[str] = Field(
        default_factory=list,
        description="Short-term records evicted by capacity overflow",
    )


class RetrievalQuery(BaseModel):
    """Input for retrieving memories.

    Attributes:
        text: Free-text query; tokens are matched against concept tags.
        concepts: Explicit concept tags to match.
        strategy: Ranking strategy.
        max_results: Result cap. Falls back to the configured default.
    """

    text: str = ""
    concepts: list[str] = Field(default_factory=list)
    strategy: RetrievalStrategy = RetrievalStrategy.COMPREHENSIVE
    max_results: int | None = Field(default=None, ge=1)

    @field_validator("concepts")
    @classmethod
    def normalize_concepts(cls, v: list[str]) -> list[str]:
        """Normalize concept tags."""
        return _normalize_concepts(v)


class ScoredMemory(BaseModel):
    """A retrieved record with its ranking scores."""

    record: MemoryRecord
    score: float = Field(ge=0.0, le=1.0)
    relevance: float = Field(ge=0.0, le=1.0)
    recency: float = Field(ge=0.0, le=1.0)


class RetrievalResult(BaseModel):
    """Ranked retrieval output. Empty for unknown sessions."""

    session_id: str
    strategy: RetrievalStrategy
    memories: list[ScoredMemory] = Field(default_factory=list)
    total_candidates: int = 0

    @property
    def records(self) -> list[MemoryRecord]:
        """Return the ranked records without scores."""
        return [scored.record for scored in self.memories]


class LongTermMemory(BaseModel):
    """Long-term knowledge about one concept.

    ``mastery`` is a heuristic of accumulated evidence: half of the best
    importance seen plus 0.1 per reinforcement, capped at 1.0.

    Attributes:
        concept_id: Normalized concept tag.
        mastery: Estimated mastery in [0, 1].
        importance: Highest importance of contributing records.
        reinforcement_count: Accumulated evidence count.
        last_reinforced_at: When evidence was last added.
        memory_ids: Records that contributed evidence.
    """

    kind: ClassVar[str] = "long_term"

    concept_id: str
    mastery: float = Field(default=0.0, ge=0.0, le=1.0)
    importance: float = Field(default=0.0, ge=0.0, le=1.0)
    reinforcement_count: int = Field(default=0, ge=0)
    last_reinforced_at: datetime = Field(default_factory=utc_now)
    memory_ids: list[str] = Field(default_factory=list)

    def reinforce(self, memory_id: str, importance: float, count: int) -> None:
        """Add evidence from a record."""
        self.reinforcement_count += count
        self.importance = max(self.importance, importance)
        if memory_id not in self.memory_ids:
            self.memory_ids.append(memory_id)
        self.last_reinforced_at = utc_now()
        self.recompute_mastery()

    def recompute_mastery(self) -> None:
        self.mastery = min(1.0, 0.5 * self.importance + 0.1 * self.reinforcement_count)


class ConceptMemory(LongTermMemory):
    """Long-term memory of conceptual knowledge."""

    kind: ClassVar[str] = "concept"


class SkillMemory(LongTermMemory):
    """Long-term memory of procedural or experiential knowledge."""

    kind: ClassVar[str] = "skill"


class PromotionSummary(BaseModel):
    """A short-term record promoted to long-term during consolidation."""

    memory_id: str
    concept_id: str
    kind: str
    importance: float
    reinforcement_count: int


class MergeSummary(BaseModel):
    """Duplicate records merged into a surviving record."""

    survivor_id: str
    absorbed_ids: list[str]
    concept_id: str
    importance: float
    reinforcement_count: int


class MemoryInsight(BaseModel):
    """An observation about a learner's memory state."""

    insight_type: InsightType
    description: str
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)


class ConsolidationResult(BaseModel):
    """Outcome of one consolidation run.

    Attributes:
        session_id: Consolidated session.
        flushed: Working records moved to short-term.
        merged: Duplicate groups merged into one record.
        promoted: Records promoted to long-term.
        pruned: Ids of records pruned for exceeding the retention window.
        strengthened: Long-term concept ids that gained evidence.
        insights: Insights observed during the run.
        steps: Number of per-record decisions applied.
        completed: False if the run was cancelled before finishing.
    """

    session_id: str
    flushed: list[str] = Field(default_factory=list)
    merged: list[MergeSummary] = Field(default_factory=list)
    promoted: list[PromotionSummary] = Field(default_factory=list)
    pruned: list[str] = Field(default_factory=list)
    strengthened: list[str] = Field(default_factory=list)
    insights: list[MemoryInsight] = Field(default_factory=list)
    steps: int = 0
    completed: bool = False

    @property
    def changed(self) -> bool:
        """Whether the run promoted, merged or pruned anything."""
        return bool(self.promoted or self.merged or self.pruned)


class MemoryDistribution(BaseModel):
    """Record counts per tier for one session."""

    working: int = 0
    short_term: int = 0
    long_term: int = 0
    long_term_concepts: int = 0
    long_term_skills: int = 0

    @property
    def total(self) -> int:
        """Total live records."""
        return self.working + self.short_term + self.long_term

    @property
    def memory_efficiency(self) -> float:
        """Share of live records that reached long-term memory."""
        if self.total == 0:
            return 0.0
        return self.long_term / self.total


class RetentionAnalysis(BaseModel):
    """Retention statistics for one session."""

    average_reinforcement: float = 0.0
    at_risk_ids: list[str] = Field(
        default_factory=list,
        description="Short-term records past half the retention window",
    )
    consolidation_due: bool = False


class MemoryInsightReport(BaseModel):
    """Aggregated memory insights for one session."""

    session_id: str
    insights: list[MemoryInsight] = Field(default_factory=list)
    knowledge_gaps: list[str] = Field(default_factory=list)
    strength_areas: list[str] = Field(default_factory=list)
    retention: RetentionAnalysis = Field(default_factory=RetentionAnalysis)
    distribution: MemoryDistribution = Field(default_factory=MemoryDistribution)
    memory_efficiency: float = 0.0
