# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for LearnSync.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables
- YAML loader: Override files for curriculum phases and path templates

Example:
    >>> from learnsync.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.session.idle_timeout_minutes
    30.0
"""

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
from learnsync.core.config.yaml_loader import (
    YAMLLoadError,
    deep_merge,
    load_overrides,
    load_yaml,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "MemorySettings",
    "LearningSettings",
    "ProgressionSettings",
    "SessionSettings",
    "ContextSettings",
    # YAML utilities
    "load_yaml",
    "load_overrides",
    "deep_merge",
    "YAMLLoadError",
]
