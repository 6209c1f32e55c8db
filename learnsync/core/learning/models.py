# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for the learning experience engine.

This module defines Pydantic models and enums for:
- Learner profiles
- Building blocks and their mastery state machine
- Context layers and adaptive elements
- Learning phases, completion criteria and advancement results
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from learnsync.core.concepts import normalize_concept
from learnsync.utils.datetime import utc_now


class ExperienceLevel(str, Enum):
    """Self-reported experience of a learner."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class LearningStyle(str, Enum):
    """Preferred way of learning."""

    VISUAL = "visual"
    HANDS_ON = "hands_on"
    THEORETICAL = "theoretical"
    EXAMPLE_DRIVEN = "example_driven"


class MasteryLevel(str, Enum):
    """Ordered mastery stages of a building block."""

    INTRODUCED = "introduced"
    DEVELOPING = "developing"
    PRACTICED = "practiced"
    MASTERED = "mastered"

    @property
    def rank(self) -> int:
        """Position in the mastery order, starting at 0."""
        return _MASTERY_ORDER.index(self)

    def next_level(self) -> "MasteryLevel | None":
        """Return the next level, or None at MASTERED."""
        if self.rank + 1 < len(_MASTERY_ORDER):
            return _MASTERY_ORDER[self.rank + 1]
        return None

    def previous_level(self) -> "MasteryLevel | None":
        """Return the previous level, or None at INTRODUCED."""
        if self.rank > 0:
            return _MASTERY_ORDER[self.rank - 1]
        return None


_MASTERY_ORDER = list(MasteryLevel)


class LearningPhaseName(str, Enum):
    """Learning phases, visited in order without skipping."""

    FOUNDATION = "foundation"
    BUILDING = "building"
    CONNECTING = "connecting"
    APPLYING = "applying"
    MASTERING = "mastering"

    @property
    def rank(self) -> int:
        return _PHASE_ORDER.index(self)

    def next_phase(self) -> "LearningPhaseName | None":
        """Return the single allowed next phase, or None at MASTERING."""
        if self.rank + 1 < len(_PHASE_ORDER):
            return _PHASE_ORDER[self.rank + 1]
        return None


_PHASE_ORDER = list(LearningPhaseName)


class LayerType(str, Enum):
    """Kind of knowledge a context layer groups."""

    CONCEPTUAL = "conceptual"
    PROCEDURAL = "procedural"
    CONDITIONAL = "conditional"
    METACOGNITIVE = "metacognitive"


class AdaptationDimension(str, Enum):
    """Dimension an adaptive element tunes."""

    DIFFICULTY = "difficulty"
    PACE = "pace"
    MODALITY = "modality"
    SCAFFOLDING = "scaffolding"
    FEEDBACK = "feedback"


class InteractionType(str, Enum):
    """Kind of interaction a learning datum records.

    REVIEW with performance below the review threshold is the explicit
    review event that may lower a block's mastery.
    """

    EXPLANATION = "explanation"
    EXAMPLE = "example"
    QUESTION = "question"
    PRACTICE = "practice"
    EXERCISE = "exercise"
    APPLICATION = "application"
    REVIEW = "review"


class LearnerProfile(BaseModel):
    """What is known about a learner up front.

    Attributes:
        experience_level: Self-reported experience.
        preferred_learning_style: Preferred way of learning.
        known_concepts: Concepts the learner already knows.
        learning_goals: Free-text goals, matched against milestone keywords.
        struggle_areas: Concepts the learner finds hard.
        interests: Topics the learner cares about.
    """

    experience_level: ExperienceLevel = ExperienceLevel.BEGINNER
    preferred_learning_style: LearningStyle = LearningStyle.HANDS_ON
    known_concepts: list[str] = Field(default_factory=list)
    learning_goals: list[str] = Field(default_factory=list)
    struggle_areas: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)

    @field_validator("known_concepts", "struggle_areas")
    @classmethod
    def normalize_concepts(cls, v: list[str]) -> list[str]:
        """Normalize concept tags, dropping blanks and duplicates."""
        result: list[str] = []
        for value in v:
            tag = normalize_concept(value)
            if tag and tag not in result:
                result.append(tag)
        return result


class MasteryChange(BaseModel):
    """One entry of a block's mastery history."""

    from_level: MasteryLevel | None
    to_level: MasteryLevel
    reason: str
    turn: int
    changed_at: datetime = Field(default_factory=utc_now)


class BuildingBlock(BaseModel):
    """Smallest trackable curriculum unit.

    Attributes:
        block_id: Block identifier (the topic it covers).
        concept_id: Concept the block teaches.
        title: Display title.
        level: Curriculum level, 1 for entry blocks.
        phase: Phase the block belongs to.
        prerequisites: Blocks that must reach PRACTICED before this one
            may enter DEVELOPING.
        dependents: Blocks listing this one as a prerequisite.
        mastery_level: Current mastery stage.
        success_streak: Consecutive interactions at or above the mastery
            performance threshold.
        interaction_count: Total interactions.
        last_reinforced_turn: Experience turn of the last interaction.
        completed_exercises: Exercise ids completed successfully.
        mastery_history: Every mastery change, oldest first.
        objectives: What the learner should be able to do.
    """

    block_id: str
    concept_id: str
    title: str = ""
    level: int = Field(default=1, ge=1)
    phase: LearningPhaseName = LearningPhaseName.FOUNDATION
    prerequisites: list[str] = Field(default_factory=list)
    dependents: list[str] = Field(default_factory=list)
    mastery_level: MasteryLevel = MasteryLevel.INTRODUCED
    success_streak: int = 0
    interaction_count: int = 0
    last_reinforced_turn: int | None = None
    completed_exercises: list[str] = Field(default_factory=list)
    mastery_history: list[MasteryChange] = Field(default_factory=list)
    objectives: list[str] = Field(default_factory=list)


class LayerConnection(BaseModel):
    """Weighted, undirected connection between two knowledge elements."""

    source: str
    target: str
    weight: float = Field(ge=0.0, le=1.0)
    reinforcement_count: int = 1

    @property
    def key(self) -> tuple[str, str]:
        return (self.source, self.target)


class ContextLayer(BaseModel):
    """Group of knowledge elements and their weighted connections."""

    layer_id: str = Field(default_factory=lambda: str(uuid4()))
    layer_type: LayerType
    phase: LearningPhaseName
    knowledge_elements: list[str] = Field(default_factory=list)
    connections: list[LayerConnection] = Field(default_factory=list)

    def add_element(self, element: str) -> bool:
        """Add a knowledge element. Returns True if it was new."""
        if element in self.knowledge_elements:
            return False
        self.knowledge_elements.append(element)
        return True

    def connect(self, a: str, b: str, initial: float, increment: float) -> LayerConnection:
        """Create or strengthen the connection between two elements.

        Args:
            a: First element.
            b: Second element.
            initial: Weight of a new connection.
            increment: Weight added to an existing connection, capped at 1.0.

        Returns:
            The created or strengthened connection.
        """
        source, target = sorted((a, b))
        for connection in self.connections:
            if connection.key == (source, target):
                connection.weight = min(1.0, connection.weight + increment)
                connection.reinforcement_count += 1
                return connection
        connection = LayerConnection(source=source, target=target, weight=initial)
        self.connections.append(connection)
        return connection


class AdaptationRecord(BaseModel):
    """One change of an adaptive element's setting."""

    from_setting: str
    to_setting: str
    reason: str
    turn: int
    changed_at: datetime = Field(default_factory=utc_now)


class AdaptiveElement(BaseModel):
    """A tunable dimension of the learning experience.

    ``levels`` is the ordered ladder of settings; tuning moves one notch.
    """

    dimension: AdaptationDimension
    levels: list[str]
    current_setting: str
    history: list[AdaptationRecord] = Field(default_factory=list)

    def shift(self, delta: int, reason: str, turn: int) -> AdaptationRecord | None:
        """Move ``delta`` notches along the ladder, clamped at its ends.

        Returns:
            The recorded change, or None if already at the end.
        """
        index = self.levels.index(self.current_setting)
        target = max(0, min(len(self.levels) - 1, index + delta))
        if target == index:
            return None
        record = AdaptationRecord(
            from_setting=self.current_setting,
            to_setting=self.levels[target],
            reason=reason,
            turn=turn,
        )
        self.current_setting = self.levels[target]
        self.history.append(record)
        return record


class CompletionCriterion(BaseModel):
    """A named metric threshold gating phase completion."""

    name: str
    threshold: float = Field(ge=0.0, le=1.0)
    description: str = ""


class LearningPhase(BaseModel):
    """Definition of a learning phase."""

    name: LearningPhaseName
    objectives: list[str] = Field(default_factory=list)
    criteria: list[CompletionCriterion] = Field(default_factory=list)
    focus_layers: list[LayerType] = Field(default_factory=list)


class LearningDatum(BaseModel):
    """One observed learning interaction.

    Attributes:
        concept: Concept the interaction was about.
        performance: Observed performance in [0, 1], or None when the
            concept was only mentioned and nothing was assessed.
        interaction_type: Kind of interaction.
        related_concepts: Concepts co-mentioned in the interaction.
        exercise_id: Exercise completed, if any.
    """

    concept: str
    performance: float | None = Field(default=None, ge=0.0, le=1.0)
    interaction_type: InteractionType = InteractionType.PRACTICE
    related_concepts: list[str] = Field(default_factory=list)
    exercise_id: str | None = None

    @field_validator("concept")
    @classmethod
    def normalize_concept_tag(cls, v: str) -> str:
        """Normalize the concept tag and reject blanks."""
        tag = normalize_concept(v)
        if not tag:
            raise ValueError("concept must not be empty")
        return tag

    @field_validator("related_concepts")
    @classmethod
    def normalize_related(cls, v: list[str]) -> list[str]:
        """Normalize related concept tags."""
        return [tag for tag in (normalize_concept(c) for c in v) if tag]


class LearningExperience(BaseModel):
    """All learning state of one learner scope.

    Attributes:
        experience_id: Unique identifier.
        user_id: Learner the experience describes.
        owner_id: Key the experience is indexed by; the user id unless the
            caller scopes it, e.g. to one session.
        profile: Learner profile at initialization.
        current_phase: Current learning phase.
        phase_history: Phases visited, oldest first.
        building_blocks: Blocks keyed by block id.
        context_layers: Context layers in creation order.
        adaptive_elements: Adaptive elements keyed by dimension.
        turn: Number of learning data processed.
        low_streak: Consecutive interactions below the low threshold.
        high_streak: Consecutive interactions above the high threshold.
        performance_history: Observed performances, oldest first.
        context: Caller context supplied at initialization.
    """

    experience_id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    owner_id: str = ""
    profile: LearnerProfile = Field(default_factory=LearnerProfile)
    current_phase: LearningPhaseName = LearningPhaseName.FOUNDATION
    phase_history: list[LearningPhaseName] = Field(default_factory=list)
    building_blocks: dict[str, BuildingBlock] = Field(default_factory=dict)
    context_layers: list[ContextLayer] = Field(default_factory=list)
    adaptive_elements: dict[AdaptationDimension, AdaptiveElement] = Field(default_factory=dict)
    turn: int = 0
    low_streak: int = 0
    high_streak: int = 0
    performance_history: list[float] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def default_owner(self) -> "LearningExperience":
        """Own the experience by its user unless an owner was given."""
        if not self.owner_id:
            self.owner_id = self.user_id
        return self

    def layer(self, layer_type: LayerType) -> ContextLayer | None:
        """Return the most recent layer of a type."""
        for layer in reversed(self.context_layers):
            if layer.layer_type == layer_type:
                return layer
        return None


class AdaptationChange(BaseModel):
    """An adaptive element change caused by one learning datum."""

    dimension: AdaptationDimension
    from_setting: str
    to_setting: str
    reason: str


class ContextBuildingResult(BaseModel):
    """Outcome of building incremental context from one datum.

    Attributes:
        experience_id: Updated experience.
        block_id: Block the datum touched.
        block_created: Whether the block was created by this datum.
        previous_level: Mastery before the datum.
        mastery_level: Mastery after the datum.
        review_applied: Whether the datum was an explicit review event that
            lowered mastery.
        gated_by: Prerequisites blocking an advance, if any.
        connections_updated: Connections created or strengthened.
        adaptations: Adaptive element changes.
    """

    experience_id: str
    block_id: str
    block_created: bool = False
    previous_level: MasteryLevel
    mastery_level: MasteryLevel
    review_applied: bool = False
    gated_by: list[str] = Field(default_factory=list)
    connections_updated: list[str] = Field(default_factory=list)
    adaptations: list[AdaptationChange] = Field(default_factory=list)

    @property
    def mastery_changed(self) -> bool:
        return self.previous_level != self.mastery_level


class CriterionStatus(BaseModel):
    """Evaluation of one completion criterion."""

    name: str
    threshold: float
    value: float
    met: bool
    derived: bool = Field(
        default=False,
        description="True when the value was derived from experience state",
    )


class PhaseAdvancementResult(BaseModel):
    """Outcome of a phase advancement attempt."""

    experience_id: str
    advanced: bool
    previous_phase: LearningPhaseName
    current_phase: LearningPhaseName
    completion_status: list[CriterionStatus] = Field(default_factory=list)
    new_blocks: list[str] = Field(default_factory=list)
    new_layers: list[str] = Field(default_factory=list)
    newly_relevant_concepts: list[str] = Field(default_factory=list)


class LearningSnapshot(BaseModel):
    """Immutable summary of a learning experience.

    Attributes:
        learning_velocity: Mastery levels gained per processed datum.
        contextual_understanding: Mean layer connection weight.
    """

    model_config = ConfigDict(frozen=True)

    experience_id: str
    user_id: str
    current_phase: LearningPhaseName
    phase_history: tuple[LearningPhaseName, ...]
    mastery_distribution: dict[str, int]
    block_count: int
    turn: int
    average_performance: float
    learning_velocity: float
    contextual_understanding: float
    adaptive_settings: dict[str, str]
    taken_at: datetime = Field(default_factory=utc_now)
