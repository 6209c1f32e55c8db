# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Multi-tier memory store with ranked retrieval and consolidation.

One MemoryStore owns a partition per session. Tiering is internal policy:

- importance >= long-term threshold or lifespan LONG: long-term tier, and
  the matching concept or skill memory gains evidence immediately
- urgency IMMEDIATE: working tier, capacity-bounded; overflow demotes the
  oldest working record to short-term
- otherwise: short-term tier, capacity-bounded; overflow evicts the least
  important short-term record

Every store advances the partition's logical tick. Retention and recency
are measured in ticks, so a short-term record untouched for more than
``retention_window_turns`` stores is pruned at the next consolidation.

Consolidation runs as a ConsolidationRun whose step() applies exactly one
per-record decision. A caller can stop between steps and the partition is
still consistent.

Example:
    store = MemoryStore()
    store.open_session("s-1", user_id="u-1")
    result = store.store("s-1", StoreRequest(
        content="Use EXPIRE to bound cache entries",
        concepts=["caching"],
        importance=0.9,
    ))
    assert result.tier == MemoryTier.LONG_TERM
"""

import copy
import logging
import math
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from learnsync.core.concepts import normalize_concept
from learnsync.core.config.settings import MemorySettings, get_settings
from learnsync.core.exceptions import ExhaustionError, NotFoundError, ValidationError
from learnsync.core.memory.models import (
    ConceptMemory,
    ConsolidationResult,
    InsightType,
    Lifespan,
    LongTermMemory,
    MemoryDistribution,
    MemoryInsight,
    MemoryInsightReport,
    MemoryRecord,
    MemoryTier,
    MemoryType,
    MergeSummary,
    PromotionSummary,
    RetentionAnalysis,
    RetrievalQuery,
    RetrievalResult,
    RetrievalStrategy,
    ScoredMemory,
    SkillMemory,
    StoreRequest,
    StoreResult,
    Urgency,
)
from learnsync.utils.datetime import utc_now

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"[a-z0-9_\-]+")


@dataclass
class MemoryPartition:
    """All memory state owned by one session.

    Attributes:
        session_id: Owning session.
        user_id: Learner the session belongs to.
        records: Live records keyed by id, in insertion order.
        concepts: Long-term concept memory keyed by concept id.
        skills: Long-term skill memory keyed by concept id.
        tick: Logical clock, advanced by every store.
        sequence: Last assigned insertion sequence number.
        last_consolidated_tick: Tick of the last completed consolidation.
    """

    session_id: str
    user_id: str | None = None
    records: dict[str, MemoryRecord] = field(default_factory=dict)
    concepts: dict[str, ConceptMemory] = field(default_factory=dict)
    skills: dict[str, SkillMemory] = field(default_factory=dict)
    tick: int = 0
    sequence: int = 0
    last_consolidated_tick: int | None = None

    def in_tier(self, tier: MemoryTier) -> list[MemoryRecord]:
        """Return records of a tier ordered by insertion sequence."""
        return sorted(
            (r for r in self.records.values() if r.tier == tier),
            key=lambda r: r.sequence,
        )


class ConsolidationRun:
    """A stepwise consolidation of one partition.

    Stages, in order: flush working records to short-term, merge short-term
    duplicates sharing a primary concept, promote reinforced or important
    short-term records, prune records past the retention window. Each call
    to step() applies one decision.

    Attributes:
        result: Accumulated consolidation result.
        limit: Maximum number of steps before ExhaustionError.
    """

    def __init__(self, partition: MemoryPartition, settings: MemorySettings):
        self._partition = partition
        self._settings = settings
        self.result = ConsolidationResult(session_id=partition.session_id)
        self.limit = settings.max_consolidation_steps_factor * (len(partition.records) + 1)
        self._decisions = self._plan()
        self._done = False

    @property
    def done(self) -> bool:
        """Whether every decision has been applied."""
        return self._done

    def step(self) -> bool:
        """Apply the next decision.

        Returns:
            True if more decisions remain, False once the run is complete.

        Raises:
            ExhaustionError: If the run exceeds its step budget.
        """
        if self._done:
            return False
        try:
            next(self._decisions)
        except StopIteration:
            self._finish()
            return False

        self.result.steps += 1
        if self.result.steps > self.limit:
            raise ExhaustionError(
                "Consolidation exceeded its step budget",
                limit=self.limit,
                details={"session_id": self._partition.session_id},
            )
        return True

    def run(self) -> ConsolidationResult:
        """Apply all remaining decisions and return the result."""
        while self.step():
            pass
        return self.result

    def _plan(self) -> Iterator[None]:
        yield from self._flush()
        yield from self._merge()
        yield from self._promote()
        yield from self._prune()

    def _flush(self) -> Iterator[None]:
        for record in self._partition.in_tier(MemoryTier.WORKING):
            record.tier = MemoryTier.SHORT_TERM
            self.result.flushed.append(record.id)
            yield

    def _merge(self) -> Iterator[None]:
        # Session-scoped content must stay in records that teardown purges
        groups: dict[tuple[str, Lifespan], list[MemoryRecord]] = {}
        for record in self._partition.in_tier(MemoryTier.SHORT_TERM):
            groups.setdefault((record.primary_concept, record.lifespan), []).append(record)

        for (concept_id, _), group in groups.items():
            if len(group) < 2:
                continue
            survivor, absorbed = group[0], group[1:]
            self._absorb(survivor, absorbed)
            self.result.merged.append(
                MergeSummary(
                    survivor_id=survivor.id,
                    absorbed_ids=[r.id for r in absorbed],
                    concept_id=concept_id,
                    importance=survivor.importance,
                    reinforcement_count=survivor.reinforcement_count,
                )
            )
            yield

    def _absorb(self, survivor: MemoryRecord, absorbed: list[MemoryRecord]) -> None:
        cap = self._settings.merge_content_cap
        contents = [survivor.content]
        for record in absorbed:
            if record.content not in contents:
                contents.append(record.content)
            survivor.importance = max(survivor.importance, record.importance)
            survivor.reinforcement_count += record.reinforcement_count
            survivor.access_count += record.access_count
            survivor.last_touched_tick = max(survivor.last_touched_tick, record.last_touched_tick)
            for concept in record.concepts:
                if concept not in survivor.concepts:
                    survivor.concepts.append(concept)
            survivor.merged_from.extend([record.id, *record.merged_from])
            del self._partition.records[record.id]

        survivor.content = "\n".join(contents)[:cap]
        survivor.last_accessed_at = utc_now()

    def _promote(self) -> Iterator[None]:
        for record in self._partition.in_tier(MemoryTier.SHORT_TERM):
            if record.lifespan == Lifespan.SESSION:
                continue
            reinforced = (
                record.reinforcement_count >= self._settings.promotion_reinforcement_threshold
            )
            important = record.importance >= self._settings.promotion_importance_threshold
            if not (reinforced or important):
                continue

            record.tier = MemoryTier.LONG_TERM
            entry, existed = reinforce_long_term(self._partition, record)
            self.result.promoted.append(
                PromotionSummary(
                    memory_id=record.id,
                    concept_id=entry.concept_id,
                    kind=entry.kind,
                    importance=record.importance,
                    reinforcement_count=record.reinforcement_count,
                )
            )
            if existed and entry.concept_id not in self.result.strengthened:
                self.result.strengthened.append(entry.concept_id)
            yield

    def _prune(self) -> Iterator[None]:
        window = self._settings.retention_window_turns
        for record in self._partition.in_tier(MemoryTier.SHORT_TERM):
            if self._partition.tick - record.last_touched_tick > window:
                del self._partition.records[record.id]
                self.result.pruned.append(record.id)
                yield

    def _finish(self) -> None:
        self._done = True
        self.result.completed = True
        self._partition.last_consolidated_tick = self._partition.tick

        if self.result.merged:
            concepts = [m.concept_id for m in self.result.merged]
            self.result.insights.append(
                MemoryInsight(
                    insight_type=InsightType.PATTERN_DISCOVERY,
                    description=f"Repeated engagement with {', '.join(concepts)}",
                    confidence=min(1.0, 0.5 + 0.1 * len(concepts)),
                    evidence=concepts,
                )
            )
        if self.result.pruned:
            self.result.insights.append(
                MemoryInsight(
                    insight_type=InsightType.RETENTION_ISSUE,
                    description=f"{len(self.result.pruned)} memories faded without reinforcement",
                    confidence=0.6,
                    evidence=list(self.result.pruned),
                )
            )


def reinforce_long_term(
    partition: MemoryPartition, record: MemoryRecord
) -> tuple[LongTermMemory, bool]:
    """Add a record's evidence to its concept or skill memory.

    Args:
        partition: Partition owning the record.
        record: Long-term record contributing evidence.

    Returns:
        The updated entry and whether it existed before.
    """
    concept_id = record.primary_concept
    entries: dict[str, Any]
    if record.memory_type == MemoryType.CONCEPTUAL:
        entries, entry_cls = partition.concepts, ConceptMemory
    else:
        entries, entry_cls = partition.skills, SkillMemory

    existed = concept_id in entries
    if not existed:
        entries[concept_id] = entry_cls(concept_id=concept_id)
    entry = entries[concept_id]
    entry.reinforce(record.id, record.importance, record.reinforcement_count)
    return entry, existed


class MemoryStore:
    """Session-partitioned memory with tiering, retrieval and consolidation.

    Not thread-safe; the orchestrator serializes access per session.

    Attributes:
        settings: Memory policy settings.
    """

    def __init__(self, settings: MemorySettings | None = None):
        """Initialize the memory store.

        Args:
            settings: Memory policy. Defaults to the cached global settings.
        """
        self.settings = settings or get_settings().memory
        self._partitions: dict[str, MemoryPartition] = {}

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    def open_session(self, session_id: str, user_id: str | None = None) -> bool:
        """Create the partition for a session.

        Returns:
            True if a partition was created, False if it already existed.
        """
        if session_id in self._partitions:
            return False
        self._partitions[session_id] = MemoryPartition(session_id=session_id, user_id=user_id)
        logger.debug("Opened memory partition for session %s", session_id)
        return True

    def has_session(self, session_id: str) -> bool:
        return session_id in self._partitions

    def purge_session(self, session_id: str) -> list[str]:
        """Drop session-lifespan records at session teardown.

        Long-term entries keep the evidence those records contributed but
        no longer reference them.

        Returns:
            Ids of purged records. Empty for unknown sessions.
        """
        partition = self._partitions.get(session_id)
        if partition is None:
            return []

        purged = [r.id for r in partition.records.values() if r.lifespan == Lifespan.SESSION]
        for memory_id in purged:
            del partition.records[memory_id]
        purged_set = set(purged)
        for entry in [*partition.concepts.values(), *partition.skills.values()]:
            entry.memory_ids = [m for m in entry.memory_ids if m not in purged_set]

        logger.info("Purged %d session-scoped memories for session %s", len(purged), session_id)
        return purged

    def export_partition(self, session_id: str) -> MemoryPartition | None:
        """Return a deep copy of a partition, or None if it does not exist."""
        partition = self._partitions.get(session_id)
        return copy.deepcopy(partition) if partition is not None else None

    def restore_partition(self, session_id: str, exported: MemoryPartition | None) -> None:
        """Replace a partition with a previously exported copy.

        Restoring None removes the partition, undoing an open_session.
        """
        if exported is None:
            self._partitions.pop(session_id, None)
        else:
            self._partitions[session_id] = copy.deepcopy(exported)

    # -------------------------------------------------------------------------
    # Store
    # -------------------------------------------------------------------------

    def store(self, session_id: str, request: StoreRequest | dict[str, Any]) -> StoreResult:
        """Store a memory record.

        Args:
            session_id: Target session.
            request: Store request or its dict form.

        Returns:
            StoreResult with the new memory id and its tier.

        Raises:
            ValidationError: If content or concepts are empty or a field is
                malformed.
            NotFoundError: If the session was never opened.
        """
        request = self._coerce(StoreRequest, request, "store request")
        missing = []
        if not request.content.strip():
            missing.append("content")
        if not request.concepts:
            missing.append("concepts")
        if missing:
            raise ValidationError(
                "Memory content and concepts must not be empty",
                fields=missing,
                details={"session_id": session_id},
            )

        partition = self._require(session_id)
        partition.tick += 1
        partition.sequence += 1

        if (
            request.importance >= self.settings.long_term_importance_threshold
            or request.lifespan == Lifespan.LONG
        ):
            tier = MemoryTier.LONG_TERM
        elif request.urgency == Urgency.IMMEDIATE:
            tier = MemoryTier.WORKING
        else:
            tier = MemoryTier.SHORT_TERM

        record = MemoryRecord(
            session_id=session_id,
            content=request.content,
            memory_type=request.memory_type,
            importance=request.importance,
            urgency=request.urgency,
            lifespan=request.lifespan,
            concepts=list(request.concepts),
            tier=tier,
            sequence=partition.sequence,
            last_touched_tick=partition.tick,
        )
        partition.records[record.id] = record

        if tier == MemoryTier.LONG_TERM:
            reinforce_long_term(partition, record)
        elif tier == MemoryTier.WORKING:
            self._demote_working_overflow(partition)
        evicted = self._evict_short_term_overflow(partition, keep=record.id)

        logger.debug(
            "Stored memory %s in %s tier for session %s",
            record.id,
            tier.value,
            session_id,
        )
        return StoreResult(
            memory_id=record.id,
            session_id=session_id,
            tier=record.tier,
            concepts=list(record.concepts),
            evicted_ids=evicted,
        )

    def _demote_working_overflow(self, partition: MemoryPartition) -> None:
        working = partition.in_tier(MemoryTier.WORKING)
        overflow = len(working) - self.settings.working_capacity
        for record in working[:max(0, overflow)]:
            record.tier = MemoryTier.SHORT_TERM

    def _evict_short_term_overflow(self, partition: MemoryPartition, keep: str) -> list[str]:
        short_term = partition.in_tier(MemoryTier.SHORT_TERM)
        overflow = len(short_term) - self.settings.short_term_capacity
        if overflow <= 0:
            return []

        candidates = sorted(
            (r for r in short_term if r.id != keep),
            key=lambda r: (r.importance, r.sequence),
        )
        evicted = [r.id for r in candidates[:overflow]]
        for memory_id in evicted:
            del partition.records[memory_id]
        logger.debug("Evicted %d short-term memories on overflow", len(evicted))
        return evicted

    # -------------------------------------------------------------------------
    # Retrieve
    # -------------------------------------------------------------------------

    def retrieve(
        self, session_id: str, query: RetrievalQuery | dict[str, Any]
    ) -> RetrievalResult:
        """Retrieve ranked memories for a session.

        Records whose concepts do not overlap a non-empty query are skipped.
        Ties break by importance desc, then insertion order. Returned records
        are marked accessed.

        Args:
            session_id: Session to search.
            query: Retrieval query or its dict form.

        Returns:
            RetrievalResult with copies of the ranked records. Empty for
            unknown sessions.

        Raises:
            ValidationError: If the query is malformed.
        """
        query = self._coerce(RetrievalQuery, query, "retrieval query")
        partition = self._partitions.get(session_id)
        if partition is None:
            return RetrievalResult(session_id=session_id, strategy=query.strategy)

        terms, phrase_text = self._query_terms(query)
        scored: list[ScoredMemory] = []
        for record in partition.records.values():
            overlap = self._overlap(record, terms, phrase_text)
            if terms and overlap == 0.0:
                continue
            relevance = self.relevance_score(record, overlap)
            recency = self.recency_score(partition, record)
            if query.strategy == RetrievalStrategy.COMPREHENSIVE:
                score = (
                    self.settings.relevance_weight * relevance
                    + self.settings.recency_weight * recency
                )
            elif query.strategy == RetrievalStrategy.RELEVANCE:
                score = relevance
            else:
                score = recency
            scored.append(
                ScoredMemory(
                    record=record,
                    score=min(1.0, score),
                    relevance=relevance,
                    recency=recency,
                )
            )

        if query.strategy == RetrievalStrategy.RECENCY:
            scored.sort(
                key=lambda s: (
                    -s.record.created_at.timestamp(),
                    -s.record.importance,
                    s.record.sequence,
                )
            )
        else:
            scored.sort(key=lambda s: (-s.score, -s.record.importance, s.record.sequence))

        limit = query.max_results or self.settings.default_max_results
        selected = scored[:limit]

        now = utc_now()
        results = []
        for item in selected:
            record = item.record
            record.access_count += 1
            record.reinforcement_count += 1
            record.last_touched_tick = partition.tick
            record.last_accessed_at = now
            results.append(item.model_copy(update={"record": record.model_copy(deep=True)}))

        return RetrievalResult(
            session_id=session_id,
            strategy=query.strategy,
            memories=results,
            total_candidates=len(scored),
        )

    @staticmethod
    def _query_terms(query: RetrievalQuery) -> tuple[set[str], str]:
        text = query.text.lower()
        terms = {normalize_concept(token) for token in _TOKEN.findall(text)}
        terms.update(query.concepts)
        terms.discard("")
        return terms, text

    @staticmethod
    def _overlap(record: MemoryRecord, terms: set[str], phrase_text: str) -> float:
        """Fraction of the record's concepts matched by the query."""
        if not terms:
            return 1.0
        matched = 0
        for concept in record.concepts:
            phrase = concept.replace("_", " ")
            if concept in terms or (" " in phrase and phrase in phrase_text):
                matched += 1
        return matched / len(record.concepts)

    @staticmethod
    def relevance_score(record: MemoryRecord, overlap: float) -> float:
        """Concept overlap weighted by importance and reinforcement.

        The importance factor ranges over [0.5, 1.0] and the reinforcement
        factor over [0.8, 1.0], reaching 1.0 at three references.
        """
        importance_factor = 0.5 + 0.5 * record.importance
        reinforcement_factor = min(1.0, 0.7 + 0.1 * record.reinforcement_count)
        return overlap * importance_factor * reinforcement_factor

    def recency_score(self, partition: MemoryPartition, record: MemoryRecord) -> float:
        """Exponential decay over ticks since the record was last touched."""
        age = max(0, partition.tick - record.last_touched_tick)
        return math.pow(0.5, age / self.settings.recency_half_life_turns)

    # -------------------------------------------------------------------------
    # Consolidation
    # -------------------------------------------------------------------------

    def begin_consolidation(self, session_id: str) -> ConsolidationRun:
        """Start a stepwise consolidation run.

        Raises:
            NotFoundError: If the session was never opened.
        """
        return ConsolidationRun(self._require(session_id), self.settings)

    def consolidate(self, session_id: str) -> ConsolidationResult:
        """Consolidate a session's memories in one call.

        Idempotent: a second call with no intervening store promotes,
        merges and prunes nothing.

        Raises:
            NotFoundError: If the session was never opened.
            ExhaustionError: If the run exceeds its step budget.
        """
        result = self.begin_consolidation(session_id).run()
        logger.info(
            "Consolidated session %s: promoted=%d merged=%d pruned=%d",
            session_id,
            len(result.promoted),
            len(result.merged),
            len(result.pruned),
        )
        return result

    # -------------------------------------------------------------------------
    # Queries and adjustments
    # -------------------------------------------------------------------------

    def boost_concepts(self, session_id: str, concepts: list[str], amount: float) -> list[str]:
        """Raise the importance of records and entries tagged with concepts.

        Args:
            session_id: Target session.
            concepts: Concept tags to boost.
            amount: Importance to add, capped at 1.0.

        Returns:
            Ids of boosted records.
        """
        partition = self._partitions.get(session_id)
        if partition is None:
            return []

        wanted = {normalize_concept(c) for c in concepts}
        boosted = []
        for record in partition.records.values():
            if wanted.intersection(record.concepts):
                record.importance = min(1.0, record.importance + amount)
                boosted.append(record.id)
        for entry in [*partition.concepts.values(), *partition.skills.values()]:
            if entry.concept_id in wanted:
                entry.importance = min(1.0, entry.importance + amount)
                entry.recompute_mastery()
        return boosted

    def has_memory(self, session_id: str, memory_id: str) -> bool:
        partition = self._partitions.get(session_id)
        return partition is not None and memory_id in partition.records

    def current_tick(self, session_id: str) -> int:
        partition = self._partitions.get(session_id)
        return partition.tick if partition is not None else 0

    def list_memories(
        self, session_id: str, tier: MemoryTier | None = None
    ) -> list[MemoryRecord]:
        """Return copies of a session's records in insertion order."""
        partition = self._partitions.get(session_id)
        if partition is None:
            return []
        records = sorted(partition.records.values(), key=lambda r: r.sequence)
        return [r.model_copy(deep=True) for r in records if tier is None or r.tier == tier]

    def long_term_entries(
        self, session_id: str
    ) -> tuple[list[ConceptMemory], list[SkillMemory]]:
        """Return copies of a session's concept and skill memory."""
        partition = self._partitions.get(session_id)
        if partition is None:
            return [], []
        return (
            [e.model_copy(deep=True) for e in partition.concepts.values()],
            [e.model_copy(deep=True) for e in partition.skills.values()],
        )

    def distribution(self, session_id: str) -> MemoryDistribution:
        """Return record counts per tier. All zeros for unknown sessions."""
        partition = self._partitions.get(session_id)
        if partition is None:
            return MemoryDistribution()
        counts = {tier: 0 for tier in MemoryTier}
        for record in partition.records.values():
            counts[record.tier] += 1
        return MemoryDistribution(
            working=counts[MemoryTier.WORKING],
            short_term=counts[MemoryTier.SHORT_TERM],
            long_term=counts[MemoryTier.LONG_TERM],
            long_term_concepts=len(partition.concepts),
            long_term_skills=len(partition.skills),
        )

    def generate_insights(self, session_id: str) -> MemoryInsightReport:
        """Analyze a session's memory for gaps, strengths and retention.

        Heuristics:
        - knowledge gap: a concept mentioned only in short-term or working
          memory whose total reinforcement is below the promotion threshold
        - strength area: a long-term entry with mastery >= 0.7
        - at risk: a short-term record past half the retention window

        Returns:
            MemoryInsightReport. Empty for unknown sessions.
        """
        partition = self._partitions.get(session_id)
        if partition is None:
            return MemoryInsightReport(session_id=session_id)

        long_term_ids = set(partition.concepts) | set(partition.skills)
        pending: dict[str, int] = {}
        for record in partition.records.values():
            if record.tier == MemoryTier.LONG_TERM:
                continue
            for concept in record.concepts:
                pending[concept] = pending.get(concept, 0) + record.reinforcement_count

        threshold = self.settings.promotion_reinforcement_threshold
        gaps = sorted(
            concept
            for concept, count in pending.items()
            if concept not in long_term_ids and count < threshold
        )
        entries = [*partition.concepts.values(), *partition.skills.values()]
        strengths = sorted({e.concept_id for e in entries if e.mastery >= 0.7})

        half_window = self.settings.retention_window_turns / 2
        at_risk = [
            r.id
            for r in partition.in_tier(MemoryTier.SHORT_TERM)
            if partition.tick - r.last_touched_tick > half_window
        ]
        records = list(partition.records.values())
        average = (
            sum(r.reinforcement_count for r in records) / len(records) if records else 0.0
        )
        retention = RetentionAnalysis(
            average_reinforcement=round(average, 3),
            at_risk_ids=at_risk,
            consolidation_due=partition.last_consolidated_tick != partition.tick,
        )

        insights = []
        if gaps:
            insights.append(
                MemoryInsight(
                    insight_type=InsightType.KNOWLEDGE_GAP,
                    description=f"Concepts not yet consolidated: {', '.join(gaps)}",
                    confidence=0.7,
                    evidence=gaps,
                )
            )
        if strengths:
            insights.append(
                MemoryInsight(
                    insight_type=InsightType.STRENGTH_AREA,
                    description=f"Well established concepts: {', '.join(strengths)}",
                    confidence=0.8,
                    evidence=strengths,
                )
            )
        if at_risk:
            insights.append(
                MemoryInsight(
                    insight_type=InsightType.RETENTION_ISSUE,
                    description=f"{len(at_risk)} memories need reinforcement soon",
                    confidence=0.6,
                    evidence=at_risk,
                )
            )

        distribution = self.distribution(session_id)
        return MemoryInsightReport(
            session_id=session_id,
            insights=insights,
            knowledge_gaps=gaps,
            strength_areas=strengths,
            retention=retention,
            distribution=distribution,
            memory_efficiency=distribution.memory_efficiency,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require(self, session_id: str) -> MemoryPartition:
        partition = self._partitions.get(session_id)
        if partition is None:
            raise NotFoundError("session", session_id)
        return partition

    @staticmethod
    def _coerce(model_cls: Any, value: Any, subject: str) -> Any:
        if isinstance(value, model_cls):
            return value
        try:
            return model_cls.model_validate(value)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, subject) from e
