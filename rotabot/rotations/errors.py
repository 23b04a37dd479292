"""Exceptions raised by the rotation engine."""

from __future__ import annotations


class RotaError(Exception):
    """Base class for rotation engine errors."""


class ValidationError(RotaError):
    """A rotation definition or recurrence is invalid."""


class NotFoundError(RotaError):
    """A referenced rotation or assignment does not exist."""

    def __init__(self, kind: str, object_id: str) -> None:
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"{kind} not found: {object_id}")


class DeliveryFailed(RotaError):
    """A notification could not be delivered.

    Raised by channels for a single failed attempt, and by the retry
    wrapper once every attempt is exhausted. ``last_error`` holds the
    underlying error message.
    """

    def __init__(self, message: str, *, last_error: str | None = None) -> None:
        self.last_error = last_error or message
        super().__init__(message)


class DuplicateAssignmentError(RotaError):
    """An assignment already occupies this slot in the day's chain."""


class SkipRejected(RotaError):
    """A skip request was refused. ``reason`` is safe to show to users."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class AlreadySkipped(SkipRejected):
    """The assignment has already been skipped."""


class SkipNotAllowed(SkipRejected):
    """The skip limit for the rotation has been reached."""


class SkipReconciliationError(RotaError):
    """A skip was only partially persisted and needs manual repair."""

    def __init__(self, original_id: str, replacement_id: str, cause: str) -> None:
        self.original_id = original_id
        self.replacement_id = replacement_id
        super().__init__(
            f"Skip of {original_id} only partially applied "
            f"(replacement {replacement_id}): {cause}"
        )
