# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory store package.

Provides the session-partitioned MemoryStore with working, short-term and
long-term tiers, ranked retrieval and stepwise consolidation.
"""

from learnsync.core.memory.models import (
    ConceptMemory,
    ConsolidationResult,
    InsightType,
    Lifespan,
    MemoryDistribution,
    MemoryInsight,
    MemoryInsightReport,
    MemoryRecord,
    MemoryTier,
    MemoryType,
    MergeSummary,
    PromotionSummary,
    RetrievalQuery,
    RetrievalResult,
    RetrievalStrategy,
    ScoredMemory,
    SkillMemory,
    StoreRequest,
    StoreResult,
    Urgency,
)
from learnsync.core.memory.store import ConsolidationRun, MemoryPartition, MemoryStore

__all__ = [
    # Store
    "MemoryStore",
    "MemoryPartition",
    "ConsolidationRun",
    # Enums
    "MemoryType",
    "Urgency",
    "Lifespan",
    "MemoryTier",
    "RetrievalStrategy",
    "InsightType",
    # Models
    "MemoryRecord",
    "StoreRequest",
    "StoreResult",
    "RetrievalQuery",
    "RetrievalResult",
    "ScoredMemory",
    "ConceptMemory",
    "SkillMemory",
    "ConsolidationResult",
    "MergeSummary",
    "PromotionSummary",
    "MemoryInsight",
    "MemoryInsightReport",
    "MemoryDistribution",
]
