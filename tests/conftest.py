# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Components are built from explicit settings objects so tests never depend
on the cached global settings or on the caller's environment.
"""

from collections.abc import Generator

import pytest

from learnsync.core.config.settings import Settings, clear_settings_cache
from learnsync.core.learning.engine import LearningExperienceEngine
from learnsync.core.learning.models import ExperienceLevel, LearnerProfile, LearningStyle
from learnsync.core.memory.store import MemoryStore
from learnsync.core.persistence.orchestrator import ContextPersistenceOrchestrator
from learnsync.core.progression.engine import ProgressionSuggestionEngine


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Generator[Settings, None, None]:
    """Provide default settings and reset the settings cache afterwards."""
    yield Settings()
    clear_settings_cache()


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def memory_store(settings: Settings) -> MemoryStore:
    """Provide a memory store with session "s-1" opened."""
    store = MemoryStore(settings.memory)
    store.open_session("s-1", "user-1")
    return store


@pytest.fixture
def learning_engine(settings: Settings) -> LearningExperienceEngine:
    """Provide a learning experience engine with the bundled curriculum."""
    return LearningExperienceEngine(settings.learning)


@pytest.fixture
def progression_engine(
    settings: Settings, learning_engine: LearningExperienceEngine
) -> ProgressionSuggestionEngine:
    """Provide a progression engine sharing the learning engine's curriculum."""
    return ProgressionSuggestionEngine(
        settings.progression, curriculum=learning_engine.curriculum
    )


@pytest.fixture
def orchestrator(settings: Settings) -> ContextPersistenceOrchestrator:
    """Provide an orchestrator with fresh components."""
    return ContextPersistenceOrchestrator(settings)


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def beginner_profile() -> LearnerProfile:
    """Provide a beginner with no known concepts."""
    return LearnerProfile(
        experience_level=ExperienceLevel.BEGINNER,
        preferred_learning_style=LearningStyle.EXAMPLE_DRIVEN,
    )


@pytest.fixture
def intermediate_profile() -> LearnerProfile:
    """Provide an intermediate learner who knows the basics."""
    return LearnerProfile(
        experience_level=ExperienceLevel.INTERMEDIATE,
        preferred_learning_style=LearningStyle.HANDS_ON,
        known_concepts=["get", "set", "del", "exists"],
        learning_goals=["Build a caching layer"],
    )


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
