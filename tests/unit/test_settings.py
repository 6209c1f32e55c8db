# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for engine settings."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from learnsync.core.config.settings import (
    ContextSettings,
    LearningSettings,
    MemorySettings,
    ProgressionSettings,
    SessionSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)


@pytest.mark.unit
class TestMemorySettings:
    """Tests for MemorySettings."""

    def test_default_values(self) -> None:
        """Test default tiering and retention policy."""
        settings = MemorySettings()

        assert settings.long_term_importance_threshold == 0.7
        assert settings.promotion_importance_threshold == 0.6
        assert settings.promotion_reinforcement_threshold == 3
        assert settings.retention_window_turns == 20
        assert settings.working_capacity == 7
        assert settings.recency_half_life_turns == 10.0

    def test_loads_from_environment(self) -> None:
        """Test that settings load from MEMORY_ environment variables."""
        env = {
            "MEMORY_RETENTION_WINDOW_TURNS": "5",
            "MEMORY_SHORT_TERM_CAPACITY": "3",
        }

        with patch.dict(os.environ, env, clear=False):
            settings = MemorySettings()

        assert settings.retention_window_turns == 5
        assert settings.short_term_capacity == 3

    def test_rejects_out_of_range_threshold(self) -> None:
        """Test that thresholds outside [0, 1] are rejected."""
        with pytest.raises(ValidationError):
            MemorySettings(promotion_importance_threshold=1.5)


@pytest.mark.unit
class TestLearningSettings:
    """Tests for LearningSettings."""

    def test_default_values(self) -> None:
        """Test default mastery and adaptation policy."""
        settings = LearningSettings()

        assert settings.mastery_performance_threshold == 0.7
        assert settings.mastery_streak_required == 3
        assert settings.low_streak_for_decrease == 2
        assert settings.high_streak_for_increase == 3
        assert settings.curriculum_file is None

    def test_loads_from_environment(self) -> None:
        """Test that settings load from LEARNING_ environment variables."""
        with patch.dict(os.environ, {"LEARNING_MASTERY_STREAK_REQUIRED": "2"}, clear=False):
            settings = LearningSettings()

        assert settings.mastery_streak_required == 2


@pytest.mark.unit
class TestOtherSubsettings:
    """Tests for progression, session and context settings."""

    def test_progression_defaults(self) -> None:
        settings = ProgressionSettings()

        assert settings.max_suggestions == 10
        assert settings.reinforcement_window_turns == 3

    def test_session_defaults(self) -> None:
        settings = SessionSettings()

        assert settings.idle_timeout_minutes == 30.0
        assert settings.max_next_suggestions == 3

    def test_context_defaults(self) -> None:
        settings = ContextSettings()

        assert settings.initial_connection_strength == 0.7
        assert settings.connection_reinforcement == 0.1
        assert settings.connection_retention_turns == 5
        assert settings.phase_importance_boost == 0.2

    def test_session_loads_from_environment(self) -> None:
        """Test that settings load from SESSION_ environment variables."""
        with patch.dict(os.environ, {"SESSION_IDLE_TIMEOUT_MINUTES": "10"}, clear=False):
            settings = SessionSettings()

        assert settings.idle_timeout_minutes == 10.0


@pytest.mark.unit
class TestSettings:
    """Tests for main Settings class."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        settings = Settings()

        assert settings.environment == "development"
        assert settings.is_development is True
        assert settings.is_production is False

    def test_subsettings_are_initialized(self) -> None:
        """Test that all subsettings are present."""
        settings = Settings()

        assert isinstance(settings.memory, MemorySettings)
        assert isinstance(settings.learning, LearningSettings)
        assert isinstance(settings.progression, ProgressionSettings)
        assert isinstance(settings.session, SessionSettings)
        assert isinstance(settings.context, ContextSettings)

    def test_retrieval_weights_must_sum_to_one(self) -> None:
        """Test that mismatched retrieval weights are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(memory=MemorySettings(relevance_weight=0.5, recency_weight=0.2))

        assert "must sum to 1.0" in str(exc_info.value)

    def test_production_environment(self) -> None:
        """Test production environment flags."""
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}, clear=False):
            settings = Settings()

        assert settings.is_production is True
        assert settings.is_development is False


@pytest.mark.unit
class TestGetSettings:
    """Tests for get_settings function."""

    def test_returns_cached_instance(self) -> None:
        """Test that get_settings returns the same instance."""
        clear_settings_cache()

        first = get_settings()
        second = get_settings()

        assert first is second
        clear_settings_cache()

    def test_clear_cache_creates_new_instance(self) -> None:
        """Test that clearing the cache yields a fresh instance."""
        clear_settings_cache()
        first = get_settings()

        clear_settings_cache()
        second = get_settings()

        assert first is not second
        clear_settings_cache()
