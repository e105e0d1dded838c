"""
Exceptions raised by the review dashboard engine.

- MalformedInputError: payload shape is unusable at ingestion
- InvalidDateError: a date string could not be parsed
- AlreadyReviewedError: second review attempted on a reviewed task
- TaskNotFoundError: review target is not in the loaded collection
- StaleResponseError: fetch resolved after a newer fetch was issued
- TransportFailure: the transport collaborator failed
"""

from django.core.exceptions import ValidationError


class MalformedInputError(ValueError):
    """Raised when a payload is not a mapping where one is required."""


class InvalidDateError(ValueError):
    """Raised by the strict date parser for unparseable values."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid date: {value!r}")


class AlreadyReviewedError(ValidationError):
    """
    A review outcome is terminal.

    Raised before any mutation or transport call, so the task is left as it was.
    """

    def __init__(self, task):
        self.task = task
        outcome = 'reviewed' if task.is_pending_review else task.review_status
        super().__init__(
            f"Task {task.id} has already been {outcome}.",
            code='already_reviewed',
        )


class TaskNotFoundError(LookupError):
    def __init__(self, task_id):
        self.task_id = task_id
        super().__init__(f"Task {task_id} is not in the loaded collection.")


class StaleResponseError(Exception):
    """A fetch was superseded by a newer request before it resolved."""

    def __init__(self, sequence, latest):
        self.sequence = sequence
        self.latest = latest
        super().__init__(f"Fetch #{sequence} superseded by fetch #{latest}.")


class TransportFailure(Exception):
    """Opaque failure of the transport collaborator."""
