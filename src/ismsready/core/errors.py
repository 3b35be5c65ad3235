"""Exception hierarchy for the applicability and readiness engine.

Every error carries the ids and states involved so callers can render a
precise message. ``retryable`` tells the calling layer whether re-fetching
and trying again can help; the engine itself never retries.
"""

from __future__ import annotations

from typing import Optional


class IsmsError(Exception):
    """Base exception for all engine errors.

    Attributes:
        retryable: Whether the caller may re-fetch and retry the operation.
    """

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(IsmsError):
    """Malformed or missing required input, e.g. an empty exclusion reason."""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.field = field


class NotFoundError(IsmsError):
    """Unknown boundary, control, cell, evidence, gap or project id."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(IsmsError):
    """Operation not legal for the entity's current state."""

    def __init__(self, entity_id: str, current_state: str, attempted: str, message: str = ""):
        super().__init__(
            message
            or f"Cannot {attempted} on {entity_id}: current state is {current_state}"
        )
        self.entity_id = entity_id
        self.current_state = current_state
        self.attempted = attempted


class InvalidTransitionError(IsmsError):
    """Gap lifecycle move outside the allowed transitions."""

    def __init__(self, gap_id: str, current: str, attempted: str):
        super().__init__(f"Gap {gap_id} cannot move from {current} to {attempted}")
        self.gap_id = gap_id
        self.current = current
        self.attempted = attempted


class ConcurrentModificationError(IsmsError):
    """Persisted state changed between the caller's read and the commit.

    Attributes:
        expected: State the caller based its request on.
        actual: State found at commit time (None if unknown).
    """

    retryable = True

    def __init__(self, entity_id: str, expected: str, actual: Optional[str] = None):
        detail = f", found {actual}" if actual else ""
        super().__init__(
            f"{entity_id} was modified concurrently (expected {expected}{detail}); re-fetch and retry"
        )
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual


class BackendUnavailable(IsmsError):
    """Persistence collaborator timed out or could not be reached."""

    retryable = True

    def __init__(self, message: str, backend: str = ""):
        super().__init__(message)
        self.backend = backend


class AggregationError(IsmsError):
    """Readiness could not be computed because an input failed to load."""

    def __init__(self, project_id: str, message: str = ""):
        super().__init__(message or f"Readiness for project {project_id} could not be computed")
        self.project_id = project_id
