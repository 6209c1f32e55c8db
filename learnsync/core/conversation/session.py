# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversational session: message log, turns and learning points.

A session is an append-only log of messages and turns plus a mutable
current context. Each turn pairs a user message with the assistant
response and derives:

- context evolution: intent and expertise before and after the turn, and
  newly covered concepts
- learning points: one per command or pattern in the response metadata,
  with mastery judged by how often the concept came up before
- next suggestions: at most three, derived only from the response metadata

The session is the event source for the memory store and the learning
engine; the orchestrator turns its learning points into memories.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from learnsync.core.concepts import ConceptId, ConceptKind, concepts_of_topic, topic_for
from learnsync.core.config.settings import SessionSettings, get_settings
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
    SessionPreferences,
)
from learnsync.core.exceptions import ValidationError
from learnsync.utils.datetime import ensure_utc, minutes_between, utc_now

logger = logging.getLogger(__name__)

_HIGH_IMPORTANCE = {
    ConceptId.GET, ConceptId.SET, ConceptId.HGET, ConceptId.HSET, ConceptId.LPUSH,
}
_MEDIUM_IMPORTANCE = {
    ConceptId.DEL, ConceptId.EXISTS, ConceptId.EXPIRE, ConceptId.TTL,
    ConceptId.ZADD, ConceptId.ZRANGE,
}
_RELATED_COMMANDS: dict[ConceptId, list[ConceptId]] = {
    ConceptId.GET: [ConceptId.SET, ConceptId.MGET],
    ConceptId.SET: [ConceptId.GET, ConceptId.MSET],
    ConceptId.HGET: [ConceptId.HSET, ConceptId.HGETALL],
    ConceptId.HSET: [ConceptId.HGET, ConceptId.HGETALL],
    ConceptId.LPUSH: [ConceptId.LRANGE],
    ConceptId.ZADD: [ConceptId.ZRANGE],
    ConceptId.EXPIRE: [ConceptId.TTL],
    ConceptId.PUBLISH: [ConceptId.SUBSCRIBE],
    ConceptId.MULTI: [ConceptId.EXEC],
}

IDLE_REASON = "Session inactive for too long"
COMPLETED_REASON = "Learning objectives completed"


def mastery_for_occurrences(count: int) -> ConceptMastery:
    """Map prior occurrences of a concept to a mastery label."""
    if count == 0:
        return ConceptMastery.UNKNOWN
    if count <= 2:
        return ConceptMastery.LEARNING
    if count <= 5:
        return ConceptMastery.FAMILIAR
    return ConceptMastery.EXPERT


class ConversationalSession:
    """Append-only conversation log with a mutable current context.

    Attributes:
        session_id: Session identifier.
        user_id: Learner the session belongs to.
        start_time: When the session was created.
        last_activity: Time of the last appended message.
        current_context: Context after every supplied context was merged.
        preferences: Response shaping preferences.
    """

    def __init__(
        self,
        session_id: str,
        user_id: str | None = None,
        initial_context: QueryContext | dict[str, Any] | None = None,
        preferences: SessionPreferences | dict[str, Any] | None = None,
        learning_goals: list[str] | None = None,
        settings: SessionSettings | None = None,
    ):
        """Initialize the session.

        Args:
            session_id: Session identifier.
            user_id: Learner the session belongs to.
            initial_context: Starting query context.
            preferences: Starting preferences.
            learning_goals: Explicit goals that keep the session open until
                completed with complete_goal().
            settings: Session policy. Defaults to the cached global settings.

        Raises:
            ValidationError: If the context or preferences are malformed.
        """
        self.session_id = session_id
        self.user_id = user_id
        self.settings = settings or get_settings().session
        self.start_time = utc_now()
        self.last_activity = self.start_time
        self.current_context = _coerce(QueryContext, initial_context or {}, "query context")
        self.starting_level = self.current_context.user_experience_level
        self.preferences = _coerce(SessionPreferences, preferences or {}, "preferences")
        self._goals: list[str] = list(learning_goals or [])
        self._completed_goals: set[str] = set()
        self._messages: list[ConversationMessage] = []
        self._turns: list[ConversationTurn] = []
        self._learning_history: list[LearningPoint] = []

    @property
    def message_count(self) -> int:
        return len(self._messages)

    @property
    def turn_count(self) -> int:
        return len(self._turns)

    @property
    def messages(self) -> list[ConversationMessage]:
        return list(self._messages)

    @property
    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    @property
    def learning_history(self) -> list[LearningPoint]:
        return list(self._learning_history)

    # -------------------------------------------------------------------------
    # Messages and turns
    # -------------------------------------------------------------------------

    def add_message(
        self,
        message_type: MessageType | str,
        content: str,
        context: QueryContext | dict[str, Any] | None = None,
        metadata: MessageMetadata | dict[str, Any] | None = None,
    ) -> ConversationMessage:
        """Append a message.

        Supplied context is shallow-merged into the current context, new
        keys winning. The message keeps the supplied context, or the
        current one when none was given.

        Returns:
            The appended message.

        Raises:
            ValidationError: If the type, context or metadata is malformed.
        """
        try:
            message_type = MessageType(message_type)
        except ValueError as e:
            raise ValidationError(
                f"Unknown message type: {message_type}", fields=["message_type"]
            ) from e

        supplied = _coerce(QueryContext, context, "query context") if context is not None else None
        parsed_metadata = (
            _coerce(MessageMetadata, metadata, "message metadata") if metadata is not None else None
        )

        if supplied is not None:
            self._merge_context(supplied)

        message = ConversationMessage(
            message_type=message_type,
            content=content,
            context=(supplied or self.current_context).model_copy(deep=True),
            metadata=parsed_metadata,
        )
        self._messages.append(message)
        self.last_activity = message.timestamp
        return message

    def _merge_context(self, supplied: QueryContext) -> None:
        merged = {
            **self.current_context.model_dump(),
            **supplied.model_dump(exclude_unset=True),
        }
        self.current_context = QueryContext.model_validate(merged)

    def create_turn(
        self,
        user_content: str,
        assistant_content: str,
        user_context: QueryContext | dict[str, Any] | None = None,
        response_metadata: MessageMetadata | dict[str, Any] | None = None,
    ) -> ConversationTurn:
        """Append a user message and its response as one turn.

        Returns:
            The recorded turn.

        Raises:
            ValidationError: If the context or metadata is malformed.
        """
        # Validate both inputs before anything is appended
        if user_context is not None:
            user_context = _coerce(QueryContext, user_context, "query context")
        if response_metadata is not None:
            response_metadata = _coerce(MessageMetadata, response_metadata, "message metadata")

        before = self.current_context.model_copy(deep=True)
        seen_before = {point.concept for point in self._learning_history}

        user_message = self.add_message(MessageType.USER, user_content, user_context)
        assistant_message = self.add_message(
            MessageType.ASSISTANT, assistant_content, user_context, response_metadata
        )

        learning_points = self._extract_learning_points(assistant_message.metadata)
        evolution = self._analyze_context_evolution(before, learning_points, seen_before)
        turn = ConversationTurn(
            index=len(self._turns),
            user_message=user_message,
            assistant_message=assistant_message,
            context_evolution=evolution,
            learning_points=learning_points,
            next_suggestions=self._generate_next_suggestions(assistant_message.metadata),
        )
        self._turns.append(turn)
        self._learning_history.extend(learning_points)
        logger.debug(
            "Session %s turn %d: %d learning points",
            self.session_id,
            turn.index,
            len(learning_points),
        )
        return turn

    def _analyze_context_evolution(
        self,
        before: QueryContext,
        learning_points: list[LearningPoint],
        seen_before: set[ConceptId],
    ) -> list[ContextChange]:
        after = self.current_context
        changes = []
        if after.intent != before.intent:
            changes.append(
                ContextChange(
                    change_type=ContextChangeType.INTENT_CLARIFICATION,
                    before=before.intent,
                    after=after.intent,
                    reason="User query indicates a different intent",
                    confidence=0.8,
                )
            )
        if after.user_experience_level != before.user_experience_level:
            changes.append(
                ContextChange(
                    change_type=ContextChangeType.EXPERTISE_LEVEL,
                    before=before.user_experience_level,
                    after=after.user_experience_level,
                    reason="Supplied context reports a different experience level",
                    confidence=0.7,
                )
            )
        new_concepts = [
            p.concept.value for p in learning_points if p.concept not in seen_before
        ]
        if new_concepts:
            changes.append(
                ContextChange(
                    change_type=ContextChangeType.DOMAIN_KNOWLEDGE,
                    before=len(seen_before),
                    after=len(seen_before) + len(set(new_concepts)),
                    reason=f"First coverage of {', '.join(new_concepts)}",
                    confidence=0.9,
                )
            )
        return changes

    def _extract_learning_points(self, metadata: MessageMetadata | None) -> list[LearningPoint]:
        if metadata is None:
            return []

        prior = Counter(point.concept for point in self._learning_history)
        points = []
        for command in metadata.commands_used:
            name = command.value.upper()
            points.append(
                LearningPoint(
                    concept=command,
                    kind="command",
                    description=f"Understanding the {name} command usage and syntax",
                    importance=self._command_importance(command),
                    mastery=mastery_for_occurrences(prior[command]),
                    examples=[f"{name} command example"],
                    related_concepts=[c.value for c in _RELATED_COMMANDS.get(command, [])],
                )
            )
        for pattern in metadata.patterns_detected:
            related = [c for c in concepts_of_topic(topic_for(pattern)) if c != pattern.value]
            points.append(
                LearningPoint(
                    concept=pattern,
                    kind="pattern" if pattern.kind != ConceptKind.COMMAND else "command",
                    description=f"Understanding the {pattern.value.replace('_', ' ')} pattern",
                    importance=PointImportance.MEDIUM,
                    mastery=mastery_for_occurrences(prior[pattern]),
                    examples=[f"{pattern.value} pattern example"],
                    related_concepts=related,
                )
            )
        return points

    @staticmethod
    def _command_importance(command: ConceptId) -> PointImportance:
        if command in _HIGH_IMPORTANCE:
            return PointImportance.HIGH
        if command in _MEDIUM_IMPORTANCE:
            return PointImportance.MEDIUM
        return PointImportance.LOW

    def _generate_next_suggestions(self, metadata: MessageMetadata | None) -> list[str]:
        suggestions = []
        if metadata is not None and metadata.commands_used:
            first = metadata.commands_used[0].value.upper()
            suggestions.append(f"Would you like to explore advanced {first} usage patterns?")
            suggestions.append(f"How about learning about performance optimization for {first}?")
        if metadata is not None and metadata.patterns_detected:
            suggestions.append("Would you like to see real-world examples of this pattern?")
            suggestions.append("Shall we explore alternative patterns for this use case?")
        suggestions.append("Do you have any questions about the implementation?")
        suggestions.append("Would you like to practice with a hands-on example?")
        return suggestions[: self.settings.max_next_suggestions]

    # -------------------------------------------------------------------------
    # History and context
    # -------------------------------------------------------------------------

    def get_history(
        self,
        message_type: MessageType | None = None,
        last_n: int | None = None,
        since: datetime | None = None,
        include_metadata: bool = False,
    ) -> list[ConversationMessage]:
        """Return copies of messages, optionally filtered."""
        history = list(self._messages)
        if message_type is not None:
            history = [m for m in history if m.message_type == message_type]
        if since is not None:
            since = ensure_utc(since)
            history = [m for m in history if m.timestamp >= since]
        if last_n is not None:
            history = history[-last_n:] if last_n > 0 else []
        if include_metadata:
            return [m.model_copy(deep=True) for m in history]
        return [m.model_copy(update={"metadata": None}, deep=True) for m in history]

    def get_recent_context(self, lookback: int | None = None) -> RecentContext:
        """Summarize the last ``lookback`` messages."""
        lookback = lookback or self.settings.recent_context_lookback
        recent = self._messages[-lookback:]
        counts = Counter(
            command.value
            for message in recent
            if message.metadata is not None
            for command in message.metadata.commands_used
        )
        top = [command for command, _ in counts.most_common(3)]
        summary = (
            f"Recent discussion focused on: {', '.join(top)}"
            if top
            else "No commands discussed recently"
        )
        relevant = [m.content for m in recent if m.message_type == MessageType.ASSISTANT][-3:]
        return RecentContext(
            recent_messages=[m.model_copy(deep=True) for m in recent],
            context_summary=summary,
            current_intent=self.current_context.intent,
            user_expertise=self.current_context.user_experience_level,
            relevant_history=relevant,
        )

    def update_preferences(self, preferences: SessionPreferences | dict[str, Any]) -> SessionPreferences:
        """Merge new preferences over the current ones.

        Raises:
            ValidationError: If a preference value is invalid.
        """
        if isinstance(preferences, SessionPreferences):
            preferences = preferences.model_dump(exclude_unset=True)
        merged = {**self.preferences.model_dump(), **preferences}
        self.preferences = _coerce(SessionPreferences, merged, "preferences")
        return self.preferences

    # -------------------------------------------------------------------------
    # Goals and progression
    # -------------------------------------------------------------------------

    def add_goal(self, goal: str) -> None:
        if goal not in self._goals:
            self._goals.append(goal)

    def complete_goal(self, goal: str) -> None:
        self._completed_goals.add(goal)

    def _latest_mastery(self) -> dict[ConceptId, ConceptMastery]:
        latest: dict[ConceptId, ConceptMastery] = {}
        for point in self._learning_history:
            latest[point.concept] = point.mastery
        return latest

    def remaining_learning_goals(self) -> list[str]:
        """Goals still open.

        Explicit goals not yet completed come first, then concepts whose
        latest learning point was still UNKNOWN or LEARNING.
        """
        goals = [g for g in self._goals if g not in self._completed_goals]
        for concept, mastery in self._latest_mastery().items():
            if mastery == ConceptMastery.UNKNOWN:
                goals.append(f"Learn about {concept.value}")
            elif mastery == ConceptMastery.LEARNING:
                goals.append(f"Practice {concept.value}")
        return goals

    def identify_unresolved_questions(self) -> list[str]:
        """User questions not adequately answered by the next two responses.

        A response answers adequately when its measured completeness exceeds
        the configured threshold.
        """
        unresolved = []
        threshold = self.settings.answered_completeness_threshold
        for index, message in enumerate(self._messages):
            if message.message_type != MessageType.USER or "?" not in message.content:
                continue
            responses = [
                m for m in self._messages[index + 1:] if m.message_type == MessageType.ASSISTANT
            ][:2]
            answered = any(
                r.metadata is not None
                and r.metadata.response_quality is not None
                and r.metadata.response_quality.completeness > threshold
                for r in responses
            )
            if not answered:
                unresolved.append(message.content)
        return unresolved[: self.settings.max_unresolved_questions]

    def _current_level(self) -> str:
        total = len(self._learning_history)
        if total == 0:
            return self.starting_level
        skilled = sum(
            1
            for p in self._learning_history
            if p.mastery in (ConceptMastery.FAMILIAR, ConceptMastery.EXPERT)
        )
        ratio = skilled / total
        if ratio > 0.8:
            return "expert"
        if ratio > 0.6:
            return "advanced"
        if ratio > 0.4:
            return "intermediate"
        return "beginner"

    def get_learning_progression(self) -> LearningProgression:
        concepts = list(dict.fromkeys(p.concept.value for p in self._learning_history))
        latest = self._latest_mastery()
        return LearningProgression(
            starting_level=self.starting_level,
            current_level=self._current_level(),
            concepts_learned=concepts,
            skills_acquired=[
                c.value
                for c, m in latest.items()
                if m in (ConceptMastery.FAMILIAR, ConceptMastery.EXPERT)
            ],
            areas_for_improvement=[
                c.value
                for c, m in latest.items()
                if m in (ConceptMastery.UNKNOWN, ConceptMastery.LEARNING)
            ],
            next_learning_goals=self.remaining_learning_goals()[: self.settings.max_next_suggestions],
        )

    def generate_summary(self) -> ConversationSummary:
        """Summarize the conversation so far."""
        commands = [
            command.value
            for message in self._messages
            if message.metadata is not None
            for command in message.metadata.commands_used
        ]
        unresolved = self.identify_unresolved_questions()
        steps = []
        if unresolved:
            steps.append("Revisit unresolved questions for clarification")
        steps.extend(self.remaining_learning_goals())
        steps.append("Practice implementing learned concepts")
        steps.append("Explore related advanced topics")

        return ConversationSummary(
            session_id=self.session_id,
            user_id=self.user_id,
            total_messages=len(self._messages),
            total_turns=len(self._turns),
            duration_seconds=(self.last_activity - self.start_time).total_seconds(),
            primary_topics=[c for c, _ in Counter(commands).most_common(5)],
            commands_covered=list(dict.fromkeys(commands)),
            learning_progression=self.get_learning_progression(),
            unresolved_questions=unresolved,
            recommended_next_steps=steps[:5],
        )

    def should_continue_session(self, now: datetime | None = None) -> ContinuationDecision:
        """Decide whether the session should go on.

        An idle session stops. Its reason says objectives were completed
        when nothing was left open, and inactivity otherwise. An active
        session continues while questions are unresolved or goals remain.

        Args:
            now: Reference time. Defaults to the current UTC time.
        """
        now = ensure_utc(now) or utc_now()
        idle = minutes_between(self.last_activity, now) > self.settings.idle_timeout_minutes
        unresolved = self.identify_unresolved_questions()
        goals = self.remaining_learning_goals()

        if idle:
            if unresolved or goals:
                return ContinuationDecision(
                    should_continue=False,
                    reason=IDLE_REASON,
                    suggestions=[
                        "Start a new session when you return",
                        "Previous conversation history will be preserved",
                    ],
                )
            return ContinuationDecision(
                should_continue=False,
                reason=COMPLETED_REASON,
                suggestions=[
                    "Explore advanced topics",
                    "Practice implementing learned concepts",
                    "Start a new focused session",
                ],
            )
        if unresolved:
            return ContinuationDecision(
                should_continue=True,
                reason="Unresolved questions remain",
                suggestions=[
                    "Continue exploring these topics",
                    "Ask for clarification on complex concepts",
                ],
            )
        if goals:
            return ContinuationDecision(
                should_continue=True,
                reason="Learning opportunities available",
                suggestions=goals[: self.settings.max_next_suggestions],
            )
        return ContinuationDecision(
            should_continue=False,
            reason=COMPLETED_REASON,
            suggestions=[
                "Explore advanced topics",
                "Practice implementing learned concepts",
                "Start a new focused session",
            ],
        )

    def export(self) -> dict[str, Any]:
        """Return the session's persisted-state fields."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "start_time": self.start_time.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "current_context": self.current_context.model_dump(mode="json"),
            "messages": [m.model_dump(mode="json") for m in self._messages],
            "turns": [t.model_dump(mode="json") for t in self._turns],
        }


def _coerce(model_cls: Any, value: Any, subject: str) -> Any:
    if isinstance(value, model_cls):
        return value.model_copy(deep=True)
    try:
        return model_cls.model_validate(value)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, subject) from e
