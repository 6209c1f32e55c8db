# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learning experience engine.

Tracks one LearningExperience per owner: building block mastery, context
layers, adaptive elements and the learning phase. The owner is the user
unless the caller scopes the experience more narrowly, as the orchestrator
does with one experience per session.

Building block mastery is a forward-only state machine
(introduced -> developing -> practiced -> mastered). A block advances one
level after ``mastery_streak_required`` consecutive interactions at or
above the mastery threshold. A block may only leave INTRODUCED once every
prerequisite block is at least PRACTICED. Mastery only goes down through
an explicit review event.

The learning phase moves foundation -> building -> connecting -> applying
-> mastering, one phase at a time, once every completion criterion of the
current phase is met. Criterion values missing from the supplied evidence
are derived from the experience state:

- concept_familiarity: mean mastery rank of blocks up to the current phase
- practical_application: share of those blocks practiced or exercised
- concept_connections: share of those blocks touched by a layer connection
- applied_success_rate: mean of the last ten observed performances

Example:
    engine = LearningExperienceEngine()
    experience = engine.initialize("u-1", LearnerProfile())
    engine.build_incremental_context(
        experience.experience_id,
        LearningDatum(concept="hset", performance=0.8),
    )
"""

import copy
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from learnsync.core.concepts import topic_for
from learnsync.core.config.settings import LearningSettings, get_settings
from learnsync.core.exceptions import NotFoundError, StateConflictError, ValidationError
from learnsync.core.learning.adaptation import AdaptationTuner, initial_elements
from learnsync.core.learning.curriculum import Curriculum
from learnsync.core.learning.models import (
    BuildingBlock,
    ContextBuildingResult,
    ContextLayer,
    CriterionStatus,
    ExperienceLevel,
    InteractionType,
    LayerType,
    LearnerProfile,
    LearningDatum,
    LearningExperience,
    LearningPhaseName,
    LearningSnapshot,
    MasteryChange,
    MasteryLevel,
    PhaseAdvancementResult,
)
from learnsync.utils.datetime import utc_now

logger = logging.getLogger(__name__)

_LAYER_FOR_INTERACTION = {
    InteractionType.EXPLANATION: LayerType.CONCEPTUAL,
    InteractionType.EXAMPLE: LayerType.CONCEPTUAL,
    InteractionType.QUESTION: LayerType.CONCEPTUAL,
    InteractionType.PRACTICE: LayerType.PROCEDURAL,
    InteractionType.EXERCISE: LayerType.PROCEDURAL,
    InteractionType.APPLICATION: LayerType.CONDITIONAL,
    InteractionType.REVIEW: LayerType.METACOGNITIVE,
}

_EXERCISE_INTERACTIONS = {InteractionType.EXERCISE, InteractionType.APPLICATION}

_RECENT_PERFORMANCE_WINDOW = 10


class LearningExperienceEngine:
    """Owns every learning experience, indexed by owner.

    Attributes:
        settings: Mastery and adaptation policy.
        curriculum: Phase and building block definitions.
    """

    def __init__(
        self,
        settings: LearningSettings | None = None,
        curriculum: Curriculum | None = None,
    ):
        """Initialize the engine.

        Args:
            settings: Learning policy. Defaults to the cached global settings.
            curriculum: Curriculum. Defaults to the bundled curriculum with
                the override file from settings applied.
        """
        self.settings = settings or get_settings().learning
        self.curriculum = curriculum or Curriculum.load(self.settings.curriculum_file)
        self._tuner = AdaptationTuner(self.settings)
        self._experiences: dict[str, LearningExperience] = {}
        self._by_owner: dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(
        self,
        user_id: str,
        profile: LearnerProfile | dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
        owner_id: str | None = None,
    ) -> LearningExperience:
        """Return the owner's experience, creating it on first call.

        A new experience starts in FOUNDATION for beginners and BUILDING
        otherwise, with blocks of the starting phase and every earlier
        phase, a conceptual context layer plus the starting phase's focus
        layers, and difficulty, pace and scaffolding elements.

        Args:
            user_id: Learner identifier.
            profile: Learner profile or its dict form.
            context: Caller context kept with the experience.
            owner_id: Key the experience is owned by. Defaults to the user
                id, giving one experience per user.

        Returns:
            A copy of the experience.

        Raises:
            ValidationError: If the profile is malformed.
        """
        owner_id = owner_id or user_id
        existing_id = self._by_owner.get(owner_id)
        if existing_id is not None:
            return self.get_experience(existing_id)

        profile = self._coerce_profile(profile)
        phase = (
            LearningPhaseName.FOUNDATION
            if profile.experience_level == ExperienceLevel.BEGINNER
            else LearningPhaseName.BUILDING
        )
        experience = LearningExperience(
            user_id=user_id,
            owner_id=owner_id,
            profile=profile,
            current_phase=phase,
            phase_history=[phase],
            adaptive_elements=initial_elements(profile),
            context=dict(context or {}),
        )
        for definition in self.curriculum.blocks_through(phase):
            self._ensure_block(experience, definition.block_id, definition.block_id)

        experience.context_layers.append(
            ContextLayer(layer_type=LayerType.CONCEPTUAL, phase=phase)
        )
        self._add_focus_layers(experience, phase)

        self._experiences[experience.experience_id] = experience
        self._by_owner[owner_id] = experience.experience_id
        logger.info(
            "Initialized learning experience %s for user %s in phase %s",
            experience.experience_id,
            user_id,
            phase.value,
        )
        return self.get_experience(experience.experience_id)

    def get_experience(self, experience_id: str) -> LearningExperience:
        """Return a copy of an experience.

        Raises:
            NotFoundError: If the experience does not exist.
        """
        return self._require(experience_id).model_copy(deep=True)

    def get_experience_for_user(self, user_id: str) -> LearningExperience | None:
        """Return the experience owned by a user, initialized without an owner id."""
        experience_id = self._by_owner.get(user_id)
        return self.get_experience(experience_id) if experience_id else None

    def export_experience(self, experience_id: str) -> LearningExperience | None:
        """Return a deep copy of an experience, or None if it does not exist."""
        experience = self._experiences.get(experience_id)
        return copy.deepcopy(experience) if experience is not None else None

    def restore_experience(
        self, experience_id: str, exported: LearningExperience | None
    ) -> None:
        """Replace an experience with an exported copy; None removes it."""
        current = self._experiences.pop(experience_id, None)
        if current is not None:
            self._by_owner.pop(current.owner_id, None)
        if exported is not None:
            restored = copy.deepcopy(exported)
            self._experiences[experience_id] = restored
            self._by_owner[restored.owner_id] = experience_id

    # -------------------------------------------------------------------------
    # Incremental context
    # -------------------------------------------------------------------------

    def build_incremental_context(
        self,
        experience_id: str,
        datum: LearningDatum | dict[str, Any],
        context: dict[str, Any] | None = None,
    ) -> ContextBuildingResult:
        """Fold one learning interaction into the experience.

        Re-evaluates the touched block's mastery, connects co-mentioned
        knowledge elements, and tunes adaptive elements. A datum without a
        performance only reinforces the block and connects its elements:
        mastery streaks and adaptive elements are left untouched.

        Args:
            experience_id: Experience to update.
            datum: Observed interaction or its dict form.
            context: Caller context merged into the experience context.

        Returns:
            ContextBuildingResult describing every change.

        Raises:
            NotFoundError: If the experience does not exist.
            ValidationError: If the datum is malformed.
        """
        experience = self._require(experience_id)
        datum = self._coerce_datum(datum)

        experience.turn += 1
        if context:
            experience.context.update(context)

        block_id = topic_for(datum.concept)
        block, created = self._ensure_block(experience, block_id, datum.concept)
        previous = block.mastery_level
        block.interaction_count += 1
        block.last_reinforced_turn = experience.turn

        review_applied = False
        gated_by: list[str] = []
        adaptations = []
        if datum.performance is not None:
            experience.performance_history.append(datum.performance)
            if (
                datum.interaction_type in _EXERCISE_INTERACTIONS
                and datum.performance >= self.settings.mastery_performance_threshold
            ):
                exercise_id = datum.exercise_id or f"{block_id}-exercise-{experience.turn}"
                if exercise_id not in block.completed_exercises:
                    block.completed_exercises.append(exercise_id)

            if (
                datum.interaction_type == InteractionType.REVIEW
                and datum.performance < self.settings.review_reset_threshold
            ):
                review_applied = self._demote(
                    experience, block, "review performance below threshold"
                )
            else:
                gated_by = self._track_streak(experience, block, datum.performance)
            adaptations = self._tuner.observe(experience, datum.performance)

        connections = self._connect_elements(experience, datum)
        experience.updated_at = utc_now()

        return ContextBuildingResult(
            experience_id=experience_id,
            block_id=block_id,
            block_created=created,
            previous_level=previous,
            mastery_level=block.mastery_level,
            review_applied=review_applied,
            gated_by=gated_by,
            connections_updated=connections,
            adaptations=adaptations,
        )

    def _track_streak(
        self, experience: LearningExperience, block: BuildingBlock, performance: float
    ) -> list[str]:
        """Update the success streak and advance mastery when it completes.

        Returns:
            Prerequisites blocking the advance, empty if none.
        """
        if performance < self.settings.mastery_performance_threshold:
            block.success_streak = 0
            return []

        block.success_streak += 1
        if block.success_streak < self.settings.mastery_streak_required:
            return []

        target = block.mastery_level.next_level()
        if target is None:
            return []

        blocking = self.unmet_prerequisites(experience, block, target)
        if blocking:
            logger.debug(
                "Block %s held at %s by prerequisites %s",
                block.block_id,
                block.mastery_level.value,
                blocking,
            )
            return blocking

        self._record_mastery(
            experience, block, target, f"{block.success_streak} consecutive successes"
        )
        block.success_streak = 0
        return []

    @staticmethod
    def unmet_prerequisites(
        experience: LearningExperience, block: BuildingBlock, target: MasteryLevel
    ) -> list[str]:
        """Prerequisites that keep a block from entering ``target``.

        Only the move out of INTRODUCED is gated; every later level has
        already passed the gate.
        """
        if block.mastery_level != MasteryLevel.INTRODUCED or target == MasteryLevel.INTRODUCED:
            return []
        unmet = []
        for prerequisite_id in block.prerequisites:
            prerequisite = experience.building_blocks.get(prerequisite_id)
            if (
                prerequisite is None
                or prerequisite.mastery_level.rank < MasteryLevel.PRACTICED.rank
            ):
                unmet.append(prerequisite_id)
        return unmet

    def _demote(self, experience: LearningExperience, block: BuildingBlock, reason: str) -> bool:
        block.success_streak = 0
        target = block.mastery_level.previous_level()
        if target is None:
            return False
        self._record_mastery(experience, block, target, reason)
        return True

    @staticmethod
    def _record_mastery(
        experience: LearningExperience,
        block: BuildingBlock,
        target: MasteryLevel,
        reason: str,
    ) -> None:
        block.mastery_history.append(
            MasteryChange(
                from_level=block.mastery_level,
                to_level=target,
                reason=reason,
                turn=experience.turn,
            )
        )
        logger.info(
            "Block %s mastery %s -> %s (%s)",
            block.block_id,
            block.mastery_level.value,
            target.value,
            reason,
        )
        block.mastery_level = target

    def _connect_elements(
        self, experience: LearningExperience, datum: LearningDatum
    ) -> list[str]:
        layer_type = _LAYER_FOR_INTERACTION[datum.interaction_type]
        layer = experience.layer(layer_type) or experience.layer(LayerType.CONCEPTUAL)
        if layer is None:
            layer = ContextLayer(layer_type=LayerType.CONCEPTUAL, phase=experience.current_phase)
            experience.context_layers.append(layer)

        elements = [datum.concept]
        for related in datum.related_concepts:
            if related not in elements:
                elements.append(related)
        return self._connect_all(layer, elements)

    def _connect_all(self, layer: ContextLayer, elements: list[str]) -> list[str]:
        for element in elements:
            layer.add_element(element)
        updated = []
        for i, a in enumerate(elements):
            for b in elements[i + 1:]:
                connection = layer.connect(
                    a,
                    b,
                    self.settings.initial_connection_weight,
                    self.settings.connection_increment,
                )
                updated.append(f"{connection.source}<->{connection.target}")
        return updated

    def reinforce_from_memory(self, experience_id: str, concepts: list[str]) -> list[str]:
        """Apply consolidated memory as reinforcement.

        Marks the blocks of the concepts as reinforced at the current turn
        and connects the concepts in the conceptual layer. Mastery is left
        unchanged since no performance was observed.

        Returns:
            Ids of reinforced blocks.

        Raises:
            NotFoundError: If the experience does not exist.
        """
        experience = self._require(experience_id)
        reinforced = []
        for concept in concepts:
            block = experience.building_blocks.get(topic_for(concept))
            if block is not None and block.block_id not in reinforced:
                block.last_reinforced_turn = experience.turn
                reinforced.append(block.block_id)

        layer = experience.layer(LayerType.CONCEPTUAL)
        if layer is not None and len(concepts) > 1:
            self._connect_all(layer, list(dict.fromkeys(concepts)))
        return reinforced

    # -------------------------------------------------------------------------
    # Explicit mastery changes
    # -------------------------------------------------------------------------

    def review_block(self, experience_id: str, block_id: str) -> BuildingBlock:
        """Apply an explicit review event, lowering mastery one level.

        Raises:
            NotFoundError: If the experience or block does not exist.
        """
        experience = self._require(experience_id)
        block = self._require_block(experience, block_id)
        self._demote(experience, block, "explicit review")
        experience.updated_at = utc_now()
        return block.model_copy(deep=True)

    def set_block_mastery(
        self,
        experience_id: str,
        block_id: str,
        level: MasteryLevel,
        review: bool = False,
    ) -> BuildingBlock:
        """Set a block's mastery directly.

        Args:
            experience_id: Experience owning the block.
            block_id: Block to change.
            level: Target mastery level.
            review: Whether the change is a review event, which is the only
                way to lower mastery.

        Returns:
            A copy of the updated block.

        Raises:
            NotFoundError: If the experience or block does not exist.
            StateConflictError: If the change regresses without review or
                skips prerequisite gating.
        """
        experience = self._require(experience_id)
        block = self._require_block(experience, block_id)
        current = block.mastery_level

        if level.rank < current.rank and not review:
            raise StateConflictError(
                "Mastery can only decrease through a review event",
                current_state=current.value,
                requested_state=level.value,
                details={"block_id": block_id},
            )
        if level.rank > current.rank:
            blocking = self.unmet_prerequisites(experience, block, level)
            if blocking:
                raise StateConflictError(
                    "Prerequisites must be practiced first",
                    current_state=current.value,
                    requested_state=level.value,
                    details={"block_id": block_id, "unmet_prerequisites": blocking},
                )
        if level != current:
            self._record_mastery(
                experience, block, level, "review" if review else "explicit update"
            )
            block.success_streak = 0
        return block.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def advance_learning_phase(
        self,
        experience_id: str,
        evidence: dict[str, float] | None = None,
        target_phase: LearningPhaseName | str | None = None,
    ) -> PhaseAdvancementResult:
        """Advance to the next phase if every completion criterion is met.

        Args:
            experience_id: Experience to advance.
            evidence: Criterion values. Missing values are derived from state.
            target_phase: Optional requested phase; must be the next phase.

        Returns:
            PhaseAdvancementResult. ``advanced`` is False when a criterion
            is unmet or the experience is already MASTERING.

        Raises:
            NotFoundError: If the experience does not exist.
            StateConflictError: If target_phase is not the next phase.
        """
        experience = self._require(experience_id)
        current = experience.current_phase
        evidence = evidence or {}

        if target_phase is not None:
            target_phase = self._coerce_phase(target_phase)

        next_phase = current.next_phase()
        if next_phase is None:
            if target_phase not in (None, current):
                raise StateConflictError(
                    "Mastering is the terminal phase",
                    current_state=current.value,
                    requested_state=target_phase.value,
                )
            return PhaseAdvancementResult(
                experience_id=experience_id,
                advanced=False,
                previous_phase=current,
                current_phase=current,
            )

        if target_phase is not None and target_phase != next_phase:
            raise StateConflictError(
                "Learning phases must be visited in order",
                current_state=current.value,
                requested_state=target_phase.value,
                details={"allowed_next_phase": next_phase.value},
            )

        statuses = self.evaluate_criteria(experience, evidence)
        if not all(status.met for status in statuses):
            return PhaseAdvancementResult(
                experience_id=experience_id,
                advanced=False,
                previous_phase=current,
                current_phase=current,
                completion_status=statuses,
            )

        experience.current_phase = next_phase
        experience.phase_history.append(next_phase)
        new_blocks = []
        newly_relevant: list[str] = []
        for definition in self.curriculum.blocks_in(next_phase):
            _, created = self._ensure_block(experience, definition.block_id, definition.block_id)
            if created:
                new_blocks.append(definition.block_id)
            newly_relevant.extend(c for c in definition.concepts if c not in newly_relevant)
        new_layers = self._add_focus_layers(experience, next_phase)
        experience.updated_at = utc_now()

        logger.info(
            "Experience %s advanced %s -> %s",
            experience_id,
            current.value,
            next_phase.value,
        )
        return PhaseAdvancementResult(
            experience_id=experience_id,
            advanced=True,
            previous_phase=current,
            current_phase=next_phase,
            completion_status=statuses,
            new_blocks=new_blocks,
            new_layers=new_layers,
            newly_relevant_concepts=newly_relevant,
        )

    def evaluate_criteria(
        self, experience: LearningExperience, evidence: dict[str, float]
    ) -> list[CriterionStatus]:
        """Evaluate the current phase's completion criteria."""
        statuses = []
        for criterion in self.curriculum.phase(experience.current_phase).criteria:
            derived = criterion.name not in evidence
            value = (
                self.derive_metric(experience, criterion.name)
                if derived
                else float(evidence[criterion.name])
            )
            statuses.append(
                CriterionStatus(
                    name=criterion.name,
                    threshold=criterion.threshold,
                    value=round(value, 4),
                    met=value >= criterion.threshold,
                    derived=derived,
                )
            )
        return statuses

    def derive_metric(self, experience: LearningExperience, name: str) -> float:
        """Derive a completion metric from experience state; 0.0 if unknown."""
        blocks = [
            b
            for b in experience.building_blocks.values()
            if b.phase.rank <= experience.current_phase.rank
        ]
        if name == "applied_success_rate":
            recent = experience.performance_history[-_RECENT_PERFORMANCE_WINDOW:]
            return sum(recent) / len(recent) if recent else 0.0
        if not blocks:
            return 0.0

        top_rank = MasteryLevel.MASTERED.rank
        if name == "concept_familiarity":
            return sum(b.mastery_level.rank / top_rank for b in blocks) / len(blocks)
        if name == "practical_application":
            applied = [
                b
                for b in blocks
                if b.completed_exercises or b.mastery_level.rank >= MasteryLevel.PRACTICED.rank
            ]
            return len(applied) / len(blocks)
        if name == "concept_connections":
            connected = set()
            for layer in experience.context_layers:
                for connection in layer.connections:
                    connected.add(topic_for(connection.source))
                    connected.add(topic_for(connection.target))
            return sum(1 for b in blocks if b.block_id in connected) / len(blocks)
        return 0.0

    def _add_focus_layers(
        self, experience: LearningExperience, phase: LearningPhaseName
    ) -> list[str]:
        created = []
        for layer_type in self.curriculum.phase(phase).focus_layers:
            if experience.layer(layer_type) is None:
                layer = ContextLayer(layer_type=layer_type, phase=phase)
                experience.context_layers.append(layer)
                created.append(layer.layer_id)
        return created

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def create_learning_snapshot(self, experience_id: str) -> LearningSnapshot:
        """Summarize an experience.

        learning_velocity counts forward mastery changes per processed
        datum; contextual_understanding is the mean weight of every layer
        connection.

        Raises:
            NotFoundError: If the experience does not exist.
        """
        experience = self._require(experience_id)
        blocks = list(experience.building_blocks.values())
        distribution = {level.value: 0 for level in MasteryLevel}
        gains = 0
        for block in blocks:
            distribution[block.mastery_level.value] += 1
            gains += sum(
                1
                for change in block.mastery_history
                if change.from_level is not None and change.to_level.rank > change.from_level.rank
            )

        weights = [
            connection.weight
            for layer in experience.context_layers
            for connection in layer.connections
        ]
        history = experience.performance_history
        return LearningSnapshot(
            experience_id=experience.experience_id,
            user_id=experience.user_id,
            current_phase=experience.current_phase,
            phase_history=tuple(experience.phase_history),
            mastery_distribution=distribution,
            block_count=len(blocks),
            turn=experience.turn,
            average_performance=sum(history) / len(history) if history else 0.0,
            learning_velocity=gains / experience.turn if experience.turn else 0.0,
            contextual_understanding=sum(weights) / len(weights) if weights else 0.0,
            adaptive_settings={
                dimension.value: element.current_setting
                for dimension, element in experience.adaptive_elements.items()
            },
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _ensure_block(
        self, experience: LearningExperience, block_id: str, concept: str
    ) -> tuple[BuildingBlock, bool]:
        """Return the block, creating it on first mention."""
        block = experience.building_blocks.get(block_id)
        if block is not None:
            return block, False

        definition = self.curriculum.definition(block_id)
        if definition is not None:
            block = BuildingBlock(
                block_id=block_id,
                concept_id=block_id,
                title=definition.title,
                level=definition.level,
                phase=definition.phase,
                prerequisites=list(definition.prerequisites),
                objectives=list(definition.objectives),
            )
        else:
            block = BuildingBlock(
                block_id=block_id,
                concept_id=concept,
                title=concept.replace("_", " ").title(),
                phase=experience.current_phase,
            )

        for prerequisite_id in block.prerequisites:
            prerequisite = experience.building_blocks.get(prerequisite_id)
            if prerequisite is not None and block_id not in prerequisite.dependents:
                prerequisite.dependents.append(block_id)
        for other in experience.building_blocks.values():
            if block_id in other.prerequisites:
                block.dependents.append(other.block_id)

        block.mastery_history.append(
            MasteryChange(
                from_level=None,
                to_level=MasteryLevel.INTRODUCED,
                reason="created",
                turn=experience.turn,
            )
        )
        experience.building_blocks[block_id] = block
        return block, True

    def _require(self, experience_id: str) -> LearningExperience:
        experience = self._experiences.get(experience_id)
        if experience is None:
            raise NotFoundError("experience", experience_id)
        return experience

    @staticmethod
    def _require_block(experience: LearningExperience, block_id: str) -> BuildingBlock:
        block = experience.building_blocks.get(block_id)
        if block is None:
            raise NotFoundError(
                "block", block_id, details={"experience_id": experience.experience_id}
            )
        return block

    @staticmethod
    def _coerce_profile(profile: LearnerProfile | dict[str, Any] | None) -> LearnerProfile:
        if profile is None:
            return LearnerProfile()
        if isinstance(profile, LearnerProfile):
            return profile.model_copy(deep=True)
        try:
            return LearnerProfile.model_validate(profile)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "learner profile") from e

    @staticmethod
    def _coerce_datum(datum: LearningDatum | dict[str, Any]) -> LearningDatum:
        if isinstance(datum, LearningDatum):
            return datum
        try:
            return LearningDatum.model_validate(datum)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, "learning datum") from e

    @staticmethod
    def _coerce_phase(phase: LearningPhaseName | str) -> LearningPhaseName:
        try:
            return LearningPhaseName(phase)
        except ValueError as e:
            raise ValidationError(
                f"Unknown learning phase: {phase}",
                fields=["target_phase"],
            ) from e
