# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learning experience package.

Tracks building block mastery, context layers, adaptive elements and
learning phase progression per user.
"""

from learnsync.core.learning.adaptation import AdaptationTuner
from learnsync.core.learning.curriculum import DEFAULT_CURRICULUM, BlockDefinition, Curriculum
from learnsync.core.learning.engine import LearningExperienceEngine
from learnsync.core.learning.models import (
    AdaptationChange,
    AdaptationDimension,
    AdaptiveElement,
    BuildingBlock,
    CompletionCriterion,
    ContextBuildingResult,
    ContextLayer,
    CriterionStatus,
    ExperienceLevel,
    InteractionType,
    LayerConnection,
    LayerType,
    LearnerProfile,
    LearningDatum,
    LearningExperience,
    LearningPhase,
    LearningPhaseName,
    LearningSnapshot,
    LearningStyle,
    MasteryChange,
    MasteryLevel,
    PhaseAdvancementResult,
)

__all__ = [
    # Engine
    "LearningExperienceEngine",
    "AdaptationTuner",
    # Curriculum
    "Curriculum",
    "BlockDefinition",
    "DEFAULT_CURRICULUM",
    # Enums
    "ExperienceLevel",
    "LearningStyle",
    "MasteryLevel",
    "LearningPhaseName",
    "LayerType",
    "AdaptationDimension",
    "InteractionType",
    # Models
    "LearnerProfile",
    "BuildingBlock",
    "MasteryChange",
    "ContextLayer",
    "LayerConnection",
    "AdaptiveElement",
    "AdaptationChange",
    "CompletionCriterion",
    "LearningPhase",
    "LearningDatum",
    "LearningExperience",
    "ContextBuildingResult",
    "CriterionStatus",
    "PhaseAdvancementResult",
    "LearningSnapshot",
]
