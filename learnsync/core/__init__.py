# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for LearnSync.

This package contains the learner-context engine:
- config: Application configuration and settings
- concepts: Enum-backed concept identifiers and the curriculum graph
- memory: Tiered session memory with consolidation
- learning: Building blocks, context layers and learning phases
- progression: Skill assessment, suggestions and learning paths
- conversation: Conversational session log and turn analysis
- persistence: Orchestrator keeping all of the above in sync per session
"""
