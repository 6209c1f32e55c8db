"""LearnSync.

Learner-context engine for conversational assistants: tiered session memory,
concept mastery tracking, learning-phase progression and ranked progression
suggestions, kept in sync per session by a context persistence orchestrator.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
