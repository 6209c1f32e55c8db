# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression suggestion engine.

Reads the learner profile, the conversation history and the building
blocks of a learning experience and produces:

- a skill assessment over fixed skill categories
- ranked progression suggestions (next concept, reinforcement, application)
- personalized learning paths and progress tracking on them

Suggestion priorities are heuristics:

- next concept: HIGH when the block matches a learning goal or interest,
  LOW when it sits two or more levels above the easiest candidate,
  MEDIUM otherwise
- reinforcement: CRITICAL when the block is a struggle area or has gone
  unreinforced for twice the window, HIGH otherwise
- application: HIGH for hands-on learners, MEDIUM otherwise

Ranking is a stable sort on priority, so equal priorities keep their
generation order.
"""

import logging
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from learnsync.core.concepts import (
    NEXT_SKILLS,
    SKILL_CATEGORIES,
    concepts_of_topic,
    normalize_concept,
    topic_for,
)
from learnsync.core.config.settings import ProgressionSettings, get_settings
from learnsync.core.conversation.models import ConversationMessage
from learnsync.core.exceptions import NotFoundError, ValidationError
from learnsync.core.learning.curriculum import Curriculum
from learnsync.core.learning.models import (
    BuildingBlock,
    ExperienceLevel,
    LearnerProfile,
    LearningStyle,
    MasteryLevel,
)
from learnsync.core.progression.models import (
    Achievement,
    LearningMilestone,
    LearningPath,
    LearningResource,
    Priority,
    ProgressionSuggestion,
    ProgressMetrics,
    ProgressUpdate,
    SkillAssessment,
    SkillEvaluation,
    SkillLevel,
    SuggestionType,
)
from learnsync.core.progression.templates import PACE_FACTORS, load_path_templates

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z0-9]+")


def _keywords(texts: list[str]) -> set[str]:
    words: set[str] = set()
    for text in texts:
        words.update(_WORD.findall(text.lower()))
    return words


class ProgressionSuggestionEngine:
    """Skill assessment, suggestions and personalized paths.

    Attributes:
        settings: Suggestion policy.
        curriculum: Block definitions used when no experience blocks exist.
    """

    def __init__(
        self,
        settings: ProgressionSettings | None = None,
        curriculum: Curriculum | None = None,
        templates: dict[str, Any] | None = None,
    ):
        """Initialize the engine.

        Args:
            settings: Suggestion policy. Defaults to the cached global settings.
            curriculum: Curriculum. Defaults to the bundled curriculum; the
                global curriculum override file is applied only when the
                settings also come from the global settings.
            templates: Path templates. Defaults to the bundled templates with
                the override file from settings applied.
        """
        curriculum_file = None
        if settings is None:
            global_settings = get_settings()
            settings = global_settings.progression
            curriculum_file = global_settings.learning.curriculum_file
        self.settings = settings
        self.curriculum = curriculum or Curriculum.load(curriculum_file)
        self._templates = templates or load_path_templates(self.settings.path_templates_file)
        self._paths: dict[str, LearningPath] = {}

    # -------------------------------------------------------------------------
    # Skill assessment
    # -------------------------------------------------------------------------

    @staticmethod
    def extract_demonstrated_skills(history: list[ConversationMessage]) -> list[str]:
        """Commands and patterns named in message metadata, in first-seen order."""
        skills: list[str] = []
        for message in history:
            if message.metadata is None:
                continue
            for concept in message.metadata.concepts:
                if concept.value not in skills:
                    skills.append(concept.value)
        return skills

    def assess_current_skills(
        self,
        profile: LearnerProfile,
        history: list[ConversationMessage],
    ) -> SkillAssessment:
        """Assess skills from conversation metadata and known concepts.

        Confidence per category is the share of the category's concepts the
        learner demonstrated or already knows.

        Args:
            profile: Learner profile.
            history: Conversation messages.

        Returns:
            SkillAssessment over every fixed skill category.
        """
        demonstrated = self.extract_demonstrated_skills(history)
        skills = list(dict.fromkeys([*profile.known_concepts, *demonstrated]))
        skill_set = set(skills)

        areas = []
        for category, members in SKILL_CATEGORIES.items():
            names = [m.value for m in members]
            evidence = [name for name in names if name in skill_set]
            confidence = min(1.0, len(evidence) / max(1, len(names)))
            areas.append(
                SkillEvaluation(
                    skill=category,
                    current_level=SkillLevel.from_confidence(confidence),
                    confidence=confidence,
                    evidence_points=evidence,
                    improvement_suggestions=self._improvement_suggestions(
                        category, names, skill_set, confidence
                    ),
                )
            )

        average = sum(a.confidence for a in areas) / len(areas)
        weak = [a.skill for a in areas if a.confidence < 0.5]
        recommendations = []
        if weak:
            recommendations.append(f"Focus on strengthening: {', '.join(weak)}")
        recommendations.append("Practice with hands-on exercises regularly")
        recommendations.append("Explore real-world use cases and patterns")

        goals: list[str] = []
        for area in areas:
            if area.confidence > 0.6:
                goals.extend(NEXT_SKILLS.get(area.skill, ()))
        goals.extend(profile.learning_goals)

        return SkillAssessment(
            demonstrated_skills=skills,
            skill_areas=areas,
            overall_level=SkillLevel.from_confidence(average),
            recommendations=recommendations,
            strengths_identified=[a.skill for a in areas if a.confidence > 0.7],
            areas_for_improvement=weak,
            next_learning_goals=list(dict.fromkeys(goals))[:5],
        )

    @staticmethod
    def _improvement_suggestions(
        category: str, names: list[str], skills: set[str], confidence: float
    ) -> list[str]:
        missing = [name for name in names if name not in skills]
        suggestions = [f"Practice {name.upper()}" for name in missing[:2]]
        if confidence < 0.5:
            suggestions.append(f"Review {category.replace('_', ' ')} fundamentals")
        return suggestions

    # -------------------------------------------------------------------------
    # Suggestions
    # -------------------------------------------------------------------------

    def generate_progression_suggestions(
        self,
        profile: LearnerProfile,
        history: list[ConversationMessage],
        blocks: list[BuildingBlock] | None = None,
        current_turn: int = 0,
    ) -> list[ProgressionSuggestion]:
        """Rank next-concept, reinforcement and application suggestions.

        Args:
            profile: Learner profile.
            history: Conversation messages.
            blocks: Building blocks of the learner's experience. When None,
                every curriculum block is treated as newly introduced.
            current_turn: Current experience turn, for reinforcement age.

        Returns:
            At most ``max_suggestions`` suggestions, highest priority first.
        """
        if blocks is None:
            blocks = [
                BuildingBlock(
                    block_id=d.block_id,
                    concept_id=d.block_id,
                    title=d.title,
                    level=d.level,
                    phase=d.phase,
                    prerequisites=list(d.prerequisites),
                )
                for d in self.curriculum.blocks
            ]

        skills = set(profile.known_concepts) | set(self.extract_demonstrated_skills(history))
        by_id = {b.block_id: b for b in blocks}
        interests = _keywords([*profile.learning_goals, *profile.interests])
        struggles = {topic_for(c) for c in profile.struggle_areas}

        suggestions = [
            *self._next_concept_suggestions(blocks, by_id, skills, interests),
            *self._reinforcement_suggestions(blocks, struggles, current_turn),
            *self._application_suggestions(blocks, profile),
        ]
        ranked = sorted(suggestions, key=lambda s: -s.priority.rank)
        return ranked[: self.settings.max_suggestions]

    def _is_known(self, block: BuildingBlock, skills: set[str]) -> bool:
        """A block counts as known if named directly or half its concepts are."""
        if block.block_id in skills:
            return True
        concepts = concepts_of_topic(block.block_id)
        if not concepts:
            return False
        return sum(1 for c in concepts if c in skills) * 2 >= len(concepts)

    def _is_practiced(self, block: BuildingBlock | None, block_id: str, skills: set[str]) -> bool:
        if block is not None and block.mastery_level.rank >= MasteryLevel.PRACTICED.rank:
            return True
        reference = block or BuildingBlock(block_id=block_id, concept_id=block_id)
        return self._is_known(reference, skills)

    def _next_concept_suggestions(
        self,
        blocks: list[BuildingBlock],
        by_id: dict[str, BuildingBlock],
        skills: set[str],
        interests: set[str],
    ) -> list[ProgressionSuggestion]:
        candidates = [
            b
            for b in blocks
            if not self._is_practiced(b, b.block_id, skills)
            and all(self._is_practiced(by_id.get(p), p, skills) for p in b.prerequisites)
        ]
        if not candidates:
            return []

        easiest = min(b.level for b in candidates)
        suggestions = []
        for block in sorted(candidates, key=lambda b: b.level):
            words = _keywords([block.block_id.replace("_", " "), block.title])
            words.update(concepts_of_topic(block.block_id))
            if interests & words:
                priority = Priority.HIGH
            elif block.level - easiest >= 2:
                priority = Priority.LOW
            else:
                priority = Priority.MEDIUM
            title = block.title or block.block_id.replace("_", " ")
            suggestions.append(
                ProgressionSuggestion(
                    id=f"next_concept-{block.block_id}",
                    suggestion_type=SuggestionType.NEXT_CONCEPT,
                    block_id=block.block_id,
                    title=f"Learn {title}",
                    description=f"Advance your skills by learning {title}",
                    reasoning="All prerequisites are practiced",
                    priority=priority,
                    prerequisites=list(block.prerequisites),
                    resources=[
                        LearningResource(
                            resource_type="tutorial",
                            title=f"Introduction to {title}",
                            difficulty="beginner" if block.level <= 2 else "intermediate",
                        )
                    ],
                    estimated_minutes=60 * block.level,
                )
            )
        return suggestions

    def _reinforcement_suggestions(
        self,
        blocks: list[BuildingBlock],
        struggles: set[str],
        current_turn: int,
    ) -> list[ProgressionSuggestion]:
        window = self.settings.reinforcement_window_turns
        suggestions = []
        for block in blocks:
            if block.mastery_level != MasteryLevel.DEVELOPING:
                continue
            idle = current_turn - (block.last_reinforced_turn or 0)
            if idle < window:
                continue
            critical = block.block_id in struggles or idle >= 2 * window
            title = block.title or block.block_id.replace("_", " ")
            suggestions.append(
                ProgressionSuggestion(
                    id=f"reinforcement-{block.block_id}",
                    suggestion_type=SuggestionType.REINFORCEMENT,
                    block_id=block.block_id,
                    title=f"Reinforce {title}",
                    description=f"Revisit {title} before it fades",
                    reasoning=f"Not reinforced for {idle} turns",
                    priority=Priority.CRITICAL if critical else Priority.HIGH,
                    resources=[
                        LearningResource(resource_type="exercise", title=f"{title} drill")
                    ],
                    estimated_minutes=15,
                )
            )
        return suggestions

    @staticmethod
    def _application_suggestions(
        blocks: list[BuildingBlock], profile: LearnerProfile
    ) -> list[ProgressionSuggestion]:
        priority = (
            Priority.HIGH
            if profile.preferred_learning_style == LearningStyle.HANDS_ON
            else Priority.MEDIUM
        )
        suggestions = []
        for block in blocks:
            if block.mastery_level != MasteryLevel.PRACTICED or block.completed_exercises:
                continue
            title = block.title or block.block_id.replace("_", " ")
            suggestions.append(
                ProgressionSuggestion(
                    id=f"application-{block.block_id}",
                    suggestion_type=SuggestionType.APPLICATION,
                    block_id=block.block_id,
                    title=f"Apply {title}",
                    description=f"Use {title} in a realistic exercise",
                    reasoning="Practiced but never applied in an exercise",
                    priority=priority,
                    resources=[
                        LearningResource(
                            resource_type="project", title=f"{title} project", format="code"
                        )
                    ],
                    estimated_minutes=45,
                )
            )
        return suggestions

    # -------------------------------------------------------------------------
    # Learning paths
    # -------------------------------------------------------------------------

    def create_personalized_path(
        self,
        profile: LearnerProfile,
        goals: list[str] | None = None,
        pace_hint: str | None = None,
    ) -> LearningPath:
        """Build a learning path for a learner.

        The template is chosen by experience level. Milestones matching more
        goal keywords move to the front; ties keep template order.

        Args:
            profile: Learner profile.
            goals: Goals to match. Defaults to the profile's goals.
            pace_hint: "relaxed", "normal" or "intensive"; anything else is
                treated as normal.

        Returns:
            The new path, progress at zero.

        Raises:
            ValidationError: If the template is malformed.
        """
        goals = goals if goals is not None else list(profile.learning_goals)
        template_name = profile.experience_level.value
        template = self._templates.get(template_name) or self._templates[
            ExperienceLevel.BEGINNER.value
        ]

        try:
            milestones = [LearningMilestone.model_validate(m) for m in template["milestones"]]
        except (KeyError, PydanticValidationError) as e:
            raise ValidationError(
                f"Invalid path template: {template_name}",
                fields=["milestones"],
            ) from e

        goal_words = _keywords(goals)
        goal_words.update(normalize_concept(g) for g in goals)

        def score(milestone: LearningMilestone) -> int:
            words = _keywords([milestone.title, *milestone.learning_objectives])
            words.update(k.lower() for k in milestone.keywords)
            return len(goal_words & words)

        milestones = sorted(milestones, key=lambda m: -score(m))
        for order, milestone in enumerate(milestones, start=1):
            milestone.order = order

        pace = pace_hint if pace_hint in PACE_FACTORS else "normal"
        minutes = sum(m.estimated_minutes for m in milestones)
        path = LearningPath(
            template=template_name,
            name=f"{template['name']} for {profile.experience_level.value} learners",
            description=(
                f"Custom learning path for: {', '.join(goals)}" if goals else template["description"]
            ),
            target_audience=[profile.experience_level.value],
            pace=pace,
            estimated_hours=round(minutes * PACE_FACTORS[pace] / 60, 1),
            milestones=milestones,
            progress=ProgressMetrics(total_milestones=len(milestones)),
        )
        self._paths[path.path_id] = path
        logger.info(
            "Created %s learning path %s with %d milestones",
            template_name,
            path.path_id,
            len(milestones),
        )
        return path.model_copy(deep=True)

    def get_path(self, path_id: str) -> LearningPath:
        """Return a copy of a path.

        Raises:
            NotFoundError: If the path does not exist.
        """
        return self._require_path(path_id).model_copy(deep=True)

    def update_learning_progress(
        self,
        path_id: str,
        milestone_id: str,
        completed_exercises: list[str],
    ) -> ProgressUpdate:
        """Record completed exercises of a milestone.

        Args:
            path_id: Path to update.
            milestone_id: Milestone the exercises belong to.
            completed_exercises: Exercise ids completed.

        Returns:
            Updated progress, next suggestions and newly earned achievements.

        Raises:
            NotFoundError: If the path or milestone does not exist.
            ValidationError: If an exercise does not belong to the milestone.
        """
        path = self._require_path(path_id)
        milestone = next((m for m in path.milestones if m.id == milestone_id), None)
        if milestone is None:
            raise NotFoundError("milestone", milestone_id, details={"path_id": path_id})

        known = {e.id for e in milestone.practical_exercises}
        unknown = [e for e in completed_exercises if e not in known]
        if unknown:
            raise ValidationError(
                "Exercises do not belong to the milestone",
                fields=["completed_exercises"],
                details={"milestone_id": milestone_id, "unknown": unknown},
            )
        for exercise_id in completed_exercises:
            if exercise_id not in milestone.completed_exercises:
                milestone.completed_exercises.append(exercise_id)

        path.progress = self._calculate_progress(path)
        new_achievements = self._check_achievements(path)
        path.achievements.extend(new_achievements)

        return ProgressUpdate(
            path_id=path_id,
            milestone_id=milestone_id,
            updated_progress=path.progress.model_copy(deep=True),
            next_suggestions=self._next_milestone_suggestions(path, milestone),
            achievements=new_achievements,
        )

    @staticmethod
    def _calculate_progress(path: LearningPath) -> ProgressMetrics:
        milestones = sorted(path.milestones, key=lambda m: m.order)
        done = [m for m in milestones if m.completed]
        partial = [m for m in milestones if not m.completed and m.completed_exercises]
        remaining = [m for m in milestones if not m.completed]
        minutes = sum(
            e.estimated_minutes
            for m in milestones
            for e in m.practical_exercises
            if e.id in m.completed_exercises
        )
        total = len(milestones)
        return ProgressMetrics(
            completion_percentage=round(100.0 * len(done) / total, 1) if total else 0.0,
            milestones_completed=len(done),
            total_milestones=total,
            skills_acquired=[
                objective for m in done for objective in m.learning_objectives
            ],
            time_spent_minutes=minutes,
            strength_areas=[m.title for m in done],
            improvement_areas=[m.title for m in partial],
            next_recommendations=[m.title for m in remaining[:3]],
        )

    @staticmethod
    def _check_achievements(path: LearningPath) -> list[Achievement]:
        earned = {a.id for a in path.achievements}
        progress = path.progress
        candidates = [
            (
                progress.milestones_completed >= 1,
                Achievement(
                    id="first-milestone",
                    title="First Milestone",
                    description="Completed the first milestone",
                ),
            ),
            (
                progress.completion_percentage >= 50.0,
                Achievement(
                    id="halfway",
                    title="Halfway There",
                    description="Completed half of the path",
                ),
            ),
            (
                progress.completion_percentage >= 100.0,
                Achievement(
                    id="path-complete",
                    title="Path Complete",
                    description=f"Completed {path.name}",
                ),
            ),
        ]
        return [a for reached, a in candidates if reached and a.id not in earned]

    @staticmethod
    def _next_milestone_suggestions(
        path: LearningPath, milestone: LearningMilestone
    ) -> list[ProgressionSuggestion]:
        suggestions = []
        for exercise in milestone.practical_exercises:
            if exercise.id in milestone.completed_exercises:
                continue
            suggestions.append(
                ProgressionSuggestion(
                    id=f"application-{exercise.id}",
                    suggestion_type=SuggestionType.APPLICATION,
                    block_id=milestone.block_id or milestone.id,
                    title=exercise.title,
                    description=exercise.description,
                    reasoning=f"Remaining exercise of {milestone.title}",
                    priority=Priority.HIGH,
                    estimated_minutes=exercise.estimated_minutes,
                )
            )
        if milestone.completed:
            for next_id in milestone.next_steps:
                upcoming = next((m for m in path.milestones if m.id == next_id), None)
                if upcoming is None or upcoming.completed:
                    continue
                suggestions.append(
                    ProgressionSuggestion(
                        id=f"next_concept-{upcoming.id}",
                        suggestion_type=SuggestionType.NEXT_CONCEPT,
                        block_id=upcoming.block_id or upcoming.id,
                        title=f"Start {upcoming.title}",
                        description=upcoming.description,
                        reasoning=f"Follows {milestone.title}",
                        priority=Priority.MEDIUM,
                        prerequisites=list(upcoming.prerequisites),
                        estimated_minutes=upcoming.estimated_minutes,
                    )
                )
        return suggestions

    def _require_path(self, path_id: str) -> LearningPath:
        path = self._paths.get(path_id)
        if path is None:
            raise NotFoundError("path", path_id)
        return path
