# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Context persistence package.

The orchestrator owns one arena entry per session and keeps the memory
store, the learning experience engine and the conversation log in sync.
"""

from learnsync.core.persistence.models import (
    AdaptationEvent,
    AdvancePayload,
    ConnectionType,
    ContextConnection,
    ContextRecommendation,
    ContextRequest,
    ContextResponse,
    ContextSnapshot,
    ErrorInfo,
    InitializePayload,
    RequestType,
    SessionState,
    StorePayload,
)
from learnsync.core.persistence.orchestrator import ContextPersistenceOrchestrator

__all__ = [
    # Orchestrator
    "ContextPersistenceOrchestrator",
    # Enums
    "RequestType",
    "ConnectionType",
    # Models
    "ContextRequest",
    "ContextResponse",
    "ContextRecommendation",
    "ErrorInfo",
    "ContextConnection",
    "AdaptationEvent",
    "ContextSnapshot",
    "SessionState",
    "InitializePayload",
    "StorePayload",
    "AdvancePayload",
]
