"""
Review transition rules.

Review workflow:
- pending → approved
- pending → rejected
- approved and rejected are terminal
"""

from .models import ReviewStatus

REVIEW_OUTCOMES = (ReviewStatus.APPROVED, ReviewStatus.REJECTED)


def get_allowed_review_transitions(task):
    """
    Get list of review statuses this task can move to.

    A reviewed task has no transitions left.
    """
    if task.reviewed or task.review_status != ReviewStatus.PENDING:
        return []
    return list(REVIEW_OUTCOMES)


def can_review_task(task):
    return bool(get_allowed_review_transitions(task))


def is_review_outcome(value):
    return value in REVIEW_OUTCOMES
