# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception hierarchy for the learner-context engine.

- LearnSyncError: Base exception for all engine errors
- ValidationError: Malformed store/retrieve/request input
- NotFoundError: Unknown session, experience, path or milestone id
- StateConflictError: Phase skip or ungated/regressing mastery change
- ExhaustionError: Consolidation loop exceeded its iteration budget

Validation and not-found errors carry enough detail in ``details`` for the
caller to retry correctly.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError


class LearnSyncError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with additional error context.
    """

    code = "learnsync_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ValidationError(LearnSyncError):
    """Malformed input to a store, retrieve or orchestrator request.

    Attributes:
        fields: Names of the offending fields.
    """

    code = "validation_error"

    def __init__(
        self,
        message: str,
        fields: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize validation error.

        Args:
            message: Human-readable error description.
            fields: Names of the offending fields.
            details: Optional dictionary with additional error context.
        """
        self.fields = fields or []
        super().__init__(message, details)

    @classmethod
    def from_pydantic(cls, error: PydanticValidationError, subject: str) -> "ValidationError":
        """Build from a pydantic validation error.

        Args:
            error: The pydantic error raised while building a request model.
            subject: What was being validated, for the message.

        Returns:
            ValidationError listing the offending fields and their errors.
        """
        problems = {
            ".".join(str(part) for part in item["loc"]) or "__root__": item["msg"]
            for item in error.errors()
        }
        return cls(
            f"Invalid {subject}",
            fields=list(problems),
            details={"errors": problems},
        )

    def __str__(self) -> str:
        """Return string representation with the offending fields."""
        base = self.message
        if self.fields:
            base = f"{base} (fields: {', '.join(self.fields)})"
        if self.details:
            base = f"{base} - Details: {self.details}"
        return base


class NotFoundError(LearnSyncError):
    """An addressed entity does not exist.

    Attributes:
        entity: Kind of entity (session, experience, path, milestone, block).
        entity_id: Identifier that was looked up.
    """

    code = "not_found"

    def __init__(
        self,
        entity: str,
        entity_id: str,
        details: dict[str, Any] | None = None,
    ):
        """Initialize not found error.

        Args:
            entity: Kind of entity that was looked up.
            entity_id: Identifier that was looked up.
            details: Optional dictionary with additional error context.
        """
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found: {entity_id}", details)


class StateConflictError(LearnSyncError):
    """A requested transition would violate a state-machine invariant.

    Raised for learning phase skips and for mastery changes that regress
    without a review event or bypass prerequisite gating.

    Attributes:
        current_state: State before the attempted transition.
        requested_state: State that was requested.
    """

    code = "state_conflict"

    def __init__(
        self,
        message: str,
        current_state: str | None = None,
        requested_state: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize state conflict error.

        Args:
            message: Human-readable error description.
            current_state: State before the attempted transition.
            requested_state: State that was requested.
            details: Optional dictionary with additional error context.
        """
        self.current_state = current_state
        self.requested_state = requested_state
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return string representation with the transition."""
        base = self.message
        if self.current_state or self.requested_state:
            base = f"{base} ({self.current_state} -> {self.requested_state})"
        return base


class ExhaustionError(LearnSyncError):
    """A bounded loop exceeded its iteration budget.

    Attributes:
        limit: The iteration budget that was exceeded.
    """

    code = "exhausted"

    def __init__(
        self,
        message: str,
        limit: int,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exhaustion error.

        Args:
            message: Human-readable error description.
            limit: The iteration budget that was exceeded.
            details: Optional dictionary with additional error context.
        """
        self.limit = limit
        super().__init__(message, details)
