# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for the progression suggestion engine.

This module defines Pydantic models and enums for:
- Skill assessments per fixed skill category
- Ranked progression suggestions
- Personalized learning paths, milestones and progress tracking
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from learnsync.utils.datetime import utc_now


class SkillLevel(str, Enum):
    """Skill level derived from category confidence.

    Thresholds: >= 0.9 expert, >= 0.7 advanced, >= 0.5 intermediate,
    >= 0.3 beginner, otherwise novice.
    """

    NOVICE = "novice"
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def from_confidence(cls, confidence: float) -> "SkillLevel":
        if confidence >= 0.9:
            return cls.EXPERT
        if confidence >= 0.7:
            return cls.ADVANCED
        if confidence >= 0.5:
            return cls.INTERMEDIATE
        if confidence >= 0.3:
            return cls.BEGINNER
        return cls.NOVICE


class SuggestionType(str, Enum):
    """Kind of progression suggestion."""

    NEXT_CONCEPT = "next_concept"
    REINFORCEMENT = "reinforcement"
    APPLICATION = "application"


class Priority(str, Enum):
    """Suggestion priority, critical first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}


class SkillEvaluation(BaseModel):
    """Confidence in one skill category."""

    skill: str
    current_level: SkillLevel
    confidence: float = Field(ge=0.0, le=1.0)
    evidence_points: list[str] = Field(default_factory=list)
    improvement_suggestions: list[str] = Field(default_factory=list)


class SkillAssessment(BaseModel):
    """Assessment of a learner across all skill categories."""

    assessment_id: str = Field(default_factory=lambda: f"assessment-{uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=utc_now)
    demonstrated_skills: list[str] = Field(default_factory=list)
    skill_areas: list[SkillEvaluation] = Field(default_factory=list)
    overall_level: SkillLevel = SkillLevel.NOVICE
    recommendations: list[str] = Field(default_factory=list)
    strengths_identified: list[str] = Field(default_factory=list)
    areas_for_improvement: list[str] = Field(default_factory=list)
    next_learning_goals: list[str] = Field(default_factory=list)


class LearningResource(BaseModel):
    """Material supporting a suggestion."""

    resource_type: str
    title: str
    description: str = ""
    difficulty: str = "beginner"
    format: str = "text"


class ProgressionSuggestion(BaseModel):
    """A ranked, actionable next step."""

    id: str
    suggestion_type: SuggestionType
    block_id: str
    title: str
    description: str
    reasoning: str
    priority: Priority
    prerequisites: list[str] = Field(default_factory=list)
    resources: list[LearningResource] = Field(default_factory=list)
    estimated_minutes: int = 30


class PracticalExercise(BaseModel):
    """A hands-on exercise of a milestone."""

    id: str
    title: str
    description: str = ""
    difficulty: str = "beginner"
    estimated_minutes: int = Field(default=30, ge=1)
    instructions: list[str] = Field(default_factory=list)
    expected_outcome: str = ""
    hints: list[str] = Field(default_factory=list)


class LearningMilestone(BaseModel):
    """A step of a learning path."""

    id: str
    title: str
    description: str = ""
    order: int = 1
    block_id: str | None = None
    estimated_minutes: int = Field(default=60, ge=1)
    keywords: list[str] = Field(default_factory=list)
    learning_objectives: list[str] = Field(default_factory=list)
    practical_exercises: list[PracticalExercise] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    completed_exercises: list[str] = Field(default_factory=list)

    @property
    def completed(self) -> bool:
        """Whether every exercise of the milestone is done."""
        required = {e.id for e in self.practical_exercises}
        return bool(required) and required.issubset(self.completed_exercises)


class ProgressMetrics(BaseModel):
    """Progress through a learning path."""

    completion_percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    milestones_completed: int = 0
    total_milestones: int = 0
    skills_acquired: list[str] = Field(default_factory=list)
    time_spent_minutes: int = 0
    strength_areas: list[str] = Field(default_factory=list)
    improvement_areas: list[str] = Field(default_factory=list)
    next_recommendations: list[str] = Field(default_factory=list)


class Achievement(BaseModel):
    """A milestone of progress worth celebrating."""

    id: str
    title: str
    description: str
    earned_at: datetime = Field(default_factory=utc_now)


class LearningPath(BaseModel):
    """A personalized sequence of milestones."""

    path_id: str = Field(default_factory=lambda: f"path-{uuid4().hex[:12]}")
    template: str
    name: str
    description: str
    target_audience: list[str] = Field(default_factory=list)
    pace: str = "normal"
    estimated_hours: float = 0.0
    milestones: list[LearningMilestone] = Field(default_factory=list)
    progress: ProgressMetrics = Field(default_factory=ProgressMetrics)
    achievements: list[Achievement] = Field(default_factory=list)


class ProgressUpdate(BaseModel):
    """Result of recording progress on a path."""

    path_id: str
    milestone_id: str
    updated_progress: ProgressMetrics
    next_suggestions: list[ProgressionSuggestion] = Field(default_factory=list)
    achievements: list[Achievement] = Field(
        default_factory=list,
        description="Achievements newly earned by this update",
    )
