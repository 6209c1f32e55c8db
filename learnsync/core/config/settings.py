# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Engine configuration settings using Pydantic Settings.

Every policy constant of the learner-context engine (promotion thresholds,
retention windows, mastery streaks, decay rates) lives here so it can be
tuned from environment variables instead of being hardcoded in the
components.

The Settings class aggregates all subsettings. A cached instance is
provided via get_settings().

Example:
    >>> from learnsync.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.memory.retention_window_turns
    20
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MemorySettings(BaseSettings):
    """Tiering, retrieval and consolidation policy for the memory store.

    The retention window is turn-based: every store into a session advances
    that session's logical clock by one tick, and short-term memories whose
    last touch is older than ``retention_window_turns`` ticks are pruned at
    consolidation.

    Attributes:
        long_term_importance_threshold: Importance at which a stored memory
            goes straight to the long-term tier.
        promotion_importance_threshold: Importance at which a short-term
            memory is promoted during consolidation.
        promotion_reinforcement_threshold: Reference count at which a
            short-term memory is promoted during consolidation.
        retention_window_turns: Ticks a short-term memory may stay untouched.
        short_term_capacity: Maximum short-term memories per session.
        working_capacity: Maximum working memories per session.
        merge_content_cap: Maximum characters of merged memory content.
        relevance_weight: Weight of relevance in comprehensive retrieval.
        recency_weight: Weight of recency in comprehensive retrieval.
        recency_half_life_turns: Ticks after which recency score halves.
        default_max_results: Default retrieval result count.
        max_consolidation_steps_factor: Per-memory budget for the
            consolidation loop before ExhaustionError is raised.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_",
        extra="ignore",
    )

    long_term_importance_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    promotion_importance_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    promotion_reinforcement_threshold: int = Field(default=3, ge=1)
    retention_window_turns: int = Field(default=20, ge=1)
    short_term_capacity: int = Field(default=20, ge=1)
    working_capacity: int = Field(default=7, ge=1)
    merge_content_cap: int = Field(default=500, ge=16)
    relevance_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    recency_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    recency_half_life_turns: float = Field(default=10.0, gt=0.0)
    default_max_results: int = Field(default=10, ge=1)
    max_consolidation_steps_factor: int = Field(default=4, ge=1)


class LearningSettings(BaseSettings):
    """Mastery and adaptation policy for the learning experience engine.

    Attributes:
        mastery_performance_threshold: Performance counting as a success.
        mastery_streak_required: Consecutive successes to advance a level.
        low_performance_threshold: Performance counting as a struggle.
        low_streak_for_decrease: Consecutive struggles lowering difficulty.
        high_performance_threshold: Performance counting as excelling.
        high_streak_for_increase: Consecutive high scores raising difficulty.
        review_reset_threshold: Review performance below which a block drops
            one mastery level.
        initial_connection_weight: Weight of a new layer connection.
        connection_increment: Weight added when a connection recurs.
        curriculum_file: Optional YAML file overriding phase definitions.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEARNING_",
        extra="ignore",
    )

    mastery_performance_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    mastery_streak_required: int = Field(default=3, ge=1)
    low_performance_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    low_streak_for_decrease: int = Field(default=2, ge=1)
    high_performance_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    high_streak_for_increase: int = Field(default=3, ge=1)
    review_reset_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    initial_connection_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    connection_increment: float = Field(default=0.1, ge=0.0, le=1.0)
    curriculum_file: str | None = None


class ProgressionSettings(BaseSettings):
    """Suggestion ranking and learning path configuration.

    Attributes:
        max_suggestions: Cap on ranked progression suggestions.
        reinforcement_window_turns: Turns a developing block may go
            unreinforced before a reinforcement suggestion is emitted.
        path_templates_file: Optional YAML file overriding path templates.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROGRESSION_",
        extra="ignore",
    )

    max_suggestions: int = Field(default=10, ge=1)
    reinforcement_window_turns: int = Field(default=3, ge=1)
    path_templates_file: str | None = None


class SessionSettings(BaseSettings):
    """Conversational session behaviour.

    Attributes:
        idle_timeout_minutes: Inactivity after which a session should stop.
        max_next_suggestions: Suggestions generated per turn.
        recent_context_lookback: Messages included in recent context.
        max_unresolved_questions: Cap on tracked unresolved questions.
        answered_completeness_threshold: Response completeness that counts
            as having answered a user question.
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        extra="ignore",
    )

    idle_timeout_minutes: float = Field(default=30.0, gt=0.0)
    max_next_suggestions: int = Field(default=3, ge=1)
    recent_context_lookback: int = Field(default=5, ge=1)
    max_unresolved_questions: int = Field(default=5, ge=1)
    answered_completeness_threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class ContextSettings(BaseSettings):
    """Orchestrator policy for memory-learning connections.

    Connection decay is turn-based: a connection not reinforced within
    ``connection_retention_turns`` store ticks loses ``connection_decay_rate``
    of its strength at each consolidation.

    Attributes:
        initial_connection_strength: Strength of a new memory connection.
        connection_reinforcement: Strength added when a connection is touched.
        connection_retention_turns: Ticks a connection may go unreinforced.
        connection_decay_rate: Fraction of strength lost per consolidation.
        phase_importance_boost: Importance added to concepts newly relevant
            to an entered learning phase.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTEXT_",
        extra="ignore",
    )

    initial_connection_strength: float = Field(default=0.7, ge=0.0, le=1.0)
    connection_reinforcement: float = Field(default=0.1, ge=0.0, le=1.0)
    connection_retention_turns: int = Field(default=5, ge=1)
    connection_decay_rate: float = Field(default=0.2, ge=0.0, le=1.0)
    phase_importance_boost: float = Field(default=0.2, ge=0.0, le=1.0)


class Settings(BaseSettings):
    """Main settings aggregating all subsettings.

    Use get_settings() to obtain a cached instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        memory: Memory store policy.
        learning: Learning experience policy.
        progression: Progression suggestion policy.
        session: Conversational session policy.
        context: Orchestrator connection policy.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    memory: MemorySettings = Field(default_factory=MemorySettings)
    learning: LearningSettings = Field(default_factory=LearningSettings)
    progression: ProgressionSettings = Field(default_factory=ProgressionSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)

    @model_validator(mode="after")
    def validate_retrieval_weights(self) -> Self:
        """Validate that comprehensive retrieval weights form a blend.

        Raises:
            ValueError: If relevance and recency weights do not sum to 1.
        """
        total = self.memory.relevance_weight + self.memory.recency_weight
        if abs(total - 1.0) > 1e-6:
            raise ValueError(
                "MEMORY_RELEVANCE_WEIGHT and MEMORY_RECENCY_WEIGHT must sum to 1.0, "
                f"got {total:.3f}"
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing or reloading configuration from the environment.
    """
    get_settings.cache_clear()
