"""
Service layer for task reviews.

All review state changes go through here so that the at-most-once rule is
checked in one place.

Services:
- apply_review: Apply an outcome to one task, returning the updated copy
- propagate_review: Push a reviewed task into every occurrence in a collection
- review_task_in_collection: Look up a task by id, review it and propagate
- find_task: Locate a task in a collection
- copy_review_fields: Copy review fields from one task copy onto another
"""

import logging
from dataclasses import replace

from django.core.exceptions import ValidationError

from .exceptions import AlreadyReviewedError, TaskNotFoundError
from .models import ReviewStatus, TaskComment
from .permissions import can_review_task, is_review_outcome

logger = logging.getLogger(__name__)

REVIEW_FIELDS = ('review_status', 'reviewed', 'reviewed_by', 'reviewed_at', 'comments')


def apply_review(task, outcome, reviewer_id, reviewed_at, comment=None, reviewer_name=''):
    """
    Apply a review outcome to a task.

    Args:
        task: Task to review
        outcome: 'approved' or 'rejected'
        reviewer_id: Id of the reviewing user
        reviewed_at: Review timestamp (ISO string)
        comment: Optional review comment, appended to the task's comments
        reviewer_name: Display name stored on the appended comment

    Returns:
        New Task with the review fields set; the given task is unchanged

    Raises:
        AlreadyReviewedError: If the task has already been reviewed
        ValidationError: If the outcome is not approved/rejected
    """
    if not can_review_task(task):
        logger.warning(f"Rejected second review of task {task.id} (already {task.review_status}).")
        raise AlreadyReviewedError(task)

    if not is_review_outcome(outcome):
        raise ValidationError(
            f"Invalid review outcome '{outcome}'. Use 'approved' or 'rejected'.",
            code='invalid_outcome',
        )

    comments = task.comments
    if comment and comment.strip():
        comments = comments + (
            TaskComment(
                text=comment.strip(),
                user_id=reviewer_id,
                user_name=reviewer_name,
                timestamp=reviewed_at,
            ),
        )

    return replace(
        task,
        review_status=ReviewStatus(outcome),
        reviewed=True,
        reviewed_by=reviewer_id,
        reviewed_at=reviewed_at,
        comments=comments,
    )


def copy_review_fields(task, reviewed):
    return replace(task, **{name: getattr(reviewed, name) for name in REVIEW_FIELDS})


def propagate_review(members, reviewed_task):
    """
    Copy the review fields of reviewed_task onto every task with its id.

    Members and submissions without the task are passed through as-is;
    anything containing it is replaced by an updated copy.

    Returns:
        (new member list, number of occurrences updated)
    """
    updated = []
    occurrences = 0

    for member in members:
        submissions = {}
        touched = False
        for key, submission in member.submissions.items():
            if any(task.id == reviewed_task.id for task in submission.tasks):
                tasks = [
                    copy_review_fields(task, reviewed_task) if task.id == reviewed_task.id else task
                    for task in submission.tasks
                ]
                occurrences += sum(1 for task in submission.tasks if task.id == reviewed_task.id)
                submissions[key] = submission.with_tasks(tasks)
                touched = True
            else:
                submissions[key] = submission
        updated.append(member.with_submissions(submissions) if touched else member)

    return updated, occurrences


def find_task(members, task_id):
    """
    Return (member, submission, task) for the first occurrence of task_id.

    Raises:
        TaskNotFoundError: If no member holds the task
    """
    for member in members:
        for submission, task in member.iter_tasks():
            if task.id == task_id:
                return member, submission, task
    raise TaskNotFoundError(task_id)


def review_task_in_collection(members, task_id, outcome, reviewer_id, reviewed_at, comment=None):
    """
    Review a task by id and propagate the result through the collection.

    Returns:
        (new member list, reviewed Task)

    Raises:
        TaskNotFoundError: If the id is not in the collection
        AlreadyReviewedError: If the task was already reviewed
    """
    _member, _submission, task = find_task(members, task_id)
    reviewed = apply_review(task, outcome, reviewer_id, reviewed_at, comment=comment)
    members, occurrences = propagate_review(members, reviewed)
    logger.info(
        f"Task {task_id} {reviewed.review_status} by user {reviewer_id} "
        f"({occurrences} occurrence(s) updated)."
    )
    return members, reviewed
