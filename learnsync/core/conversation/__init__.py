# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversational session package.

Provides the append-only message/turn log that feeds learning points to
the memory store and the learning engine.
"""

from learnsync.core.conversation.models import (
    ConceptMastery,
    ContextChange,
    ContextChangeType,
    ContinuationDecision,
    ConversationMessage,
    ConversationSummary,
    ConversationTurn,
    LearningPoint,
    LearningProgression,
    MessageMetadata,
    MessageType,
    PointImportance,
    QueryContext,
    RecentContext,
    ResponseQuality,
    SessionPreferences,
    UserSatisfaction,
)
from learnsync.core.conversation.session import (
    COMPLETED_REASON,
    IDLE_REASON,
    ConversationalSession,
    mastery_for_occurrences,
)

__all__ = [
    # Session
    "ConversationalSession",
    "mastery_for_occurrences",
    "COMPLETED_REASON",
    "IDLE_REASON",
    # Enums
    "MessageType",
    "ContextChangeType",
    "PointImportance",
    "ConceptMastery",
    # Models
    "QueryContext",
    "ResponseQuality",
    "UserSatisfaction",
    "MessageMetadata",
    "ConversationMessage",
    "ContextChange",
    "LearningPoint",
    "ConversationTurn",
    "SessionPreferences",
    "LearningProgression",
    "RecentContext",
    "ConversationSummary",
    "ContinuationDecision",
]
