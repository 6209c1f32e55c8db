# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Adaptive element tuning.

Difficulty follows performance streaks: it drops one notch after
``low_streak_for_decrease`` consecutive interactions below the low
threshold and rises one notch after ``high_streak_for_increase``
consecutive interactions above the high threshold. Scaffolding always
moves opposite to difficulty.
"""

from learnsync.core.config.settings import LearningSettings
from learnsync.core.learning.models import (
    AdaptationChange,
    AdaptationDimension,
    AdaptiveElement,
    ExperienceLevel,
    LearnerProfile,
    LearningExperience,
    LearningStyle,
)

DIFFICULTY_LEVELS = ["very_easy", "easy", "medium", "hard", "very_hard"]
SCAFFOLDING_LEVELS = ["none", "light", "moderate", "heavy"]
PACE_LEVELS = ["slow", "moderate", "fast"]

_INITIAL_DIFFICULTY = {
    ExperienceLevel.BEGINNER: "easy",
    ExperienceLevel.INTERMEDIATE: "medium",
    ExperienceLevel.ADVANCED: "hard",
}
_INITIAL_SCAFFOLDING = {
    ExperienceLevel.BEGINNER: "heavy",
    ExperienceLevel.INTERMEDIATE: "moderate",
    ExperienceLevel.ADVANCED: "light",
}
_INITIAL_PACE = {
    ExperienceLevel.BEGINNER: "slow",
    ExperienceLevel.INTERMEDIATE: "moderate",
    ExperienceLevel.ADVANCED: "fast",
}

# Learners who prefer hands-on work get less up-front scaffolding
_STYLE_SCAFFOLDING_SHIFT = {
    LearningStyle.HANDS_ON: -1,
    LearningStyle.THEORETICAL: 0,
    LearningStyle.VISUAL: 0,
    LearningStyle.EXAMPLE_DRIVEN: 0,
}


def initial_elements(profile: LearnerProfile) -> dict[AdaptationDimension, AdaptiveElement]:
    """Create difficulty, pace and scaffolding elements for a profile."""
    scaffolding_index = SCAFFOLDING_LEVELS.index(_INITIAL_SCAFFOLDING[profile.experience_level])
    scaffolding_index = max(
        0, scaffolding_index + _STYLE_SCAFFOLDING_SHIFT[profile.preferred_learning_style]
    )
    return {
        AdaptationDimension.DIFFICULTY: AdaptiveElement(
            dimension=AdaptationDimension.DIFFICULTY,
            levels=list(DIFFICULTY_LEVELS),
            current_setting=_INITIAL_DIFFICULTY[profile.experience_level],
        ),
        AdaptationDimension.PACE: AdaptiveElement(
            dimension=AdaptationDimension.PACE,
            levels=list(PACE_LEVELS),
            current_setting=_INITIAL_PACE[profile.experience_level],
        ),
        AdaptationDimension.SCAFFOLDING: AdaptiveElement(
            dimension=AdaptationDimension.SCAFFOLDING,
            levels=list(SCAFFOLDING_LEVELS),
            current_setting=SCAFFOLDING_LEVELS[scaffolding_index],
        ),
    }


class AdaptationTuner:
    """Tunes an experience's adaptive elements from performance streaks."""

    def __init__(self, settings: LearningSettings):
        self._settings = settings

    def observe(self, experience: LearningExperience, performance: float) -> list[AdaptationChange]:
        """Record one performance and tune elements if a streak completes.

        Args:
            experience: Experience to tune. Its streak counters are updated.
            performance: Observed performance in [0, 1].

        Returns:
            Changes applied, empty if no streak completed.
        """
        if performance < self._settings.low_performance_threshold:
            experience.low_streak += 1
            experience.high_streak = 0
        elif performance > self._settings.high_performance_threshold:
            experience.high_streak += 1
            experience.low_streak = 0
        else:
            experience.low_streak = 0
            experience.high_streak = 0

        if experience.low_streak >= self._settings.low_streak_for_decrease:
            experience.low_streak = 0
            return self._shift_difficulty(
                experience, -1, f"{self._settings.low_streak_for_decrease} consecutive struggles"
            )
        if experience.high_streak >= self._settings.high_streak_for_increase:
            experience.high_streak = 0
            return self._shift_difficulty(
                experience, 1, f"{self._settings.high_streak_for_increase} consecutive high scores"
            )
        return []

    @staticmethod
    def _shift_difficulty(
        experience: LearningExperience, delta: int, reason: str
    ) -> list[AdaptationChange]:
        changes = []
        for dimension, direction in (
            (AdaptationDimension.DIFFICULTY, delta),
            (AdaptationDimension.SCAFFOLDING, -delta),
        ):
            element = experience.adaptive_elements.get(dimension)
            if element is None:
                continue
            record = element.shift(direction, reason, experience.turn)
            if record is not None:
                changes.append(
                    AdaptationChange(
                        dimension=dimension,
                        from_setting=record.from_setting,
                        to_setting=record.to_setting,
                        reason=reason,
                    )
                )
        return changes
