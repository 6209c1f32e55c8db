# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression suggestion package.

Assesses skills, ranks what to learn next and tracks personalized
learning paths.
"""

from learnsync.core.progression.engine import ProgressionSuggestionEngine
from learnsync.core.progression.models import (
    Achievement,
    LearningMilestone,
    LearningPath,
    LearningResource,
    PracticalExercise,
    Priority,
    ProgressionSuggestion,
    ProgressMetrics,
    ProgressUpdate,
    SkillAssessment,
    SkillEvaluation,
    SkillLevel,
    SuggestionType,
)
from learnsync.core.progression.templates import (
    DEFAULT_PATH_TEMPLATES,
    PACE_FACTORS,
    load_path_templates,
)

__all__ = [
    # Engine
    "ProgressionSuggestionEngine",
    # Templates
    "DEFAULT_PATH_TEMPLATES",
    "PACE_FACTORS",
    "load_path_templates",
    # Enums
    "SkillLevel",
    "SuggestionType",
    "Priority",
    # Models
    "SkillEvaluation",
    "SkillAssessment",
    "LearningResource",
    "ProgressionSuggestion",
    "PracticalExercise",
    "LearningMilestone",
    "ProgressMetrics",
    "Achievement",
    "LearningPath",
    "ProgressUpdate",
]
