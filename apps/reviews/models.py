"""
Review dashboard models.

These are in-memory records built from transport payloads; nothing here is
stored in the database. Payloads are normalized once at ingestion so the rest
of the engine works on a single shape.

Models:
- OrgTag: company / department tag (id + name)
- TaskComment: reviewer or submitter comment on a task
- Task: a submitted daily task with its review fields
- DailySubmission: one member's tasks for one date
- TeamMember: a member with their submissions keyed by date
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from django.db import models
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import InvalidDateError, MalformedInputError


class TaskStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    DELAYED = 'delayed', 'Delayed'


class ReviewStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'


def parse_date_value(value):
    """
    Parse a date, datetime or ISO string into a date.

    Raises:
        InvalidDateError: If the value cannot be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateError(value)

    text = value.strip()
    try:
        parsed = parse_datetime(text)
        if parsed is not None:
            return parsed.date()
        parsed = parse_date(text)
    except ValueError:
        # Well formed but impossible, e.g. 2024-02-30
        raise InvalidDateError(value) from None

    if parsed is None:
        raise InvalidDateError(value)
    return parsed


def _text(value):
    if value is None:
        return ''
    return str(value)


def _require_mapping(data, what):
    if not isinstance(data, Mapping):
        raise MalformedInputError(f"{what} payload must be a mapping, got {type(data).__name__}.")


@dataclass(frozen=True)
class OrgTag:
    """Company or department identity, only ever seen as a tag."""

    name: str
    id: int | None = None

    @classmethod
    def from_payload(cls, value):
        """
        Normalize a tag given as a plain string or an {id, name} record.

        Returns None for a missing or empty tag.
        """
        if value is None:
            return None
        if isinstance(value, Mapping):
            name = _text(value.get('name')).strip()
            if not name:
                return None
            return cls(name=name, id=value.get('id'))
        name = _text(value).strip()
        return cls(name=name) if name else None

    def as_dict(self):
        return {'id': self.id, 'name': self.name}


@dataclass(frozen=True)
class TaskComment:
    text: str
    user_id: int | None = None
    user_name: str = ''
    timestamp: str | None = None

    @classmethod
    def from_payload(cls, data):
        if isinstance(data, str):
            return cls(text=data)
        _require_mapping(data, 'Comment')
        return cls(
            text=_text(data.get('text')),
            user_id=data.get('user_id'),
            user_name=_text(data.get('user_name')),
            timestamp=data.get('timestamp'),
        )

    def as_dict(self):
        return {
            'text': self.text,
            'user_id': self.user_id,
            'user_name': self.user_name,
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class Task:
    """
    A submitted daily task.

    Review invariant: reviewed is True whenever review_status is not
    pending, and stays True if the payload already marked the task reviewed.
    Either one makes the task terminal. Review fields never change once
    reviewed; updates go through apps.reviews.services and always produce a
    new Task.
    """

    id: int
    title: str = ''
    description: str = ''
    contribution: str = ''
    achieved_deliverables: str = ''
    related_project: str = ''
    company: OrgTag | None = None
    department: OrgTag | None = None
    status: str = TaskStatus.PENDING
    review_status: str = ReviewStatus.PENDING
    reviewed: bool = False
    reviewed_by: int | None = None
    reviewed_at: str | None = None
    comments: tuple = ()
    due_date: str | None = None
    created_by: int | None = None

    @classmethod
    def from_payload(cls, data):
        _require_mapping(data, 'Task')

        review_status = data.get('review_status') or ReviewStatus.PENDING
        if review_status not in ReviewStatus.values:
            review_status = ReviewStatus.PENDING

        raw_comments = data.get('comment')
        if raw_comments is None:
            raw_comments = data.get('comments')
        if isinstance(raw_comments, (str, Mapping)):
            raw_comments = [raw_comments]

        company = data.get('company')
        if company is None:
            company = data.get('company_served')

        return cls(
            id=data.get('id'),
            title=_text(data.get('title')),
            description=_text(data.get('description')),
            contribution=_text(data.get('contribution')),
            achieved_deliverables=_text(data.get('achieved_deliverables')),
            related_project=_text(data.get('related_project')),
            company=OrgTag.from_payload(company),
            department=OrgTag.from_payload(data.get('department')),
            status=data.get('status') or TaskStatus.PENDING,
            review_status=review_status,
            reviewed=review_status != ReviewStatus.PENDING or data.get('reviewed') is True,
            reviewed_by=data.get('reviewed_by'),
            reviewed_at=data.get('reviewed_at'),
            comments=tuple(TaskComment.from_payload(c) for c in raw_comments or ()),
            due_date=data.get('due_date') or None,
            created_by=data.get('created_by'),
        )

    @property
    def company_name(self):
        return self.company.name if self.company else None

    @property
    def department_name(self):
        return self.department.name if self.department else None

    @property
    def is_pending_review(self):
        return self.review_status == ReviewStatus.PENDING

    def as_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'contribution': self.contribution,
            'achieved_deliverables': self.achieved_deliverables,
            'related_project': self.related_project,
            'company': self.company.as_dict() if self.company else None,
            'department': self.department.as_dict() if self.department else None,
            'status': str(self.status),
            'review_status': str(self.review_status),
            'reviewed': self.reviewed,
            'reviewed_by': self.reviewed_by,
            'reviewed_at': self.reviewed_at,
            'comments': [c.as_dict() for c in self.comments],
            'due_date': self.due_date,
        }


@dataclass(frozen=True)
class DailySubmission:
    date: str
    tasks: tuple = ()
    submitted_at: str | None = None
    daily_tasks_id: int | None = None

    @classmethod
    def from_payload(cls, date_key, data):
        _require_mapping(data, 'Submission')
        return cls(
            date=_text(date_key or data.get('date')),
            tasks=tuple(Task.from_payload(t) for t in data.get('tasks') or ()),
            submitted_at=data.get('submitted_at'),
            daily_tasks_id=data.get('dailyTasksId', data.get('daily_tasks_id')),
        )

    def with_tasks(self, tasks):
        return replace(self, tasks=tuple(tasks))

    def as_dict(self):
        return {
            'date': self.date,
            'submitted_at': self.submitted_at,
            'daily_tasks_id': self.daily_tasks_id,
            'tasks': [t.as_dict() for t in self.tasks],
        }


@dataclass(frozen=True)
class TeamMember:
    """
    A member and their submissions keyed by date string.

    Team membership belongs to the member, not to individual tasks.
    """

    id: int
    username: str = ''
    first_name: str = ''
    last_name: str = ''
    email: str = ''
    level: str = ''
    teams: tuple = ()
    submissions: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data):
        """
        Build a member from {user: {...}, submissions: {...}}.

        The user record may also be given inline. Teams come from a `teams`
        list or a single `teamName`.
        """
        _require_mapping(data, 'Member')
        user = data.get('user', data)
        _require_mapping(user, 'User')

        teams = user.get('teams')
        if teams is None:
            teams = [user.get('teamName')] if user.get('teamName') else []
        elif isinstance(teams, str):
            teams = [teams]
        # dict.fromkeys keeps first-seen order while dropping duplicates
        teams = tuple(dict.fromkeys(_text(t) for t in teams if t))

        submissions = {}
        raw_submissions = data.get('submissions') or {}
        if isinstance(raw_submissions, Mapping):
            entries = raw_submissions.items()
        else:
            entries = ((s.get('date') if isinstance(s, Mapping) else None, s) for s in raw_submissions)
        for date_key, raw in entries:
            submission = DailySubmission.from_payload(date_key, raw)
            if submission.date in submissions:
                existing = submissions[submission.date]
                submission = existing.with_tasks(existing.tasks + submission.tasks)
            submissions[submission.date] = submission

        return cls(
            id=user.get('id'),
            username=_text(user.get('username')),
            first_name=_text(user.get('firstName', user.get('first_name'))),
            last_name=_text(user.get('lastName', user.get('last_name'))),
            email=_text(user.get('email')),
            level=_text(user.get('level')),
            teams=teams,
            submissions=submissions,
        )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def task_count(self):
        return sum(len(s.tasks) for s in self.submissions.values())

    def iter_tasks(self):
        """Yield (submission, task) pairs in date then task order."""
        for submission in self.submissions.values():
            for task in submission.tasks:
                yield submission, task

    def with_submissions(self, submissions):
        return replace(self, submissions=dict(submissions))

    def as_dict(self, include_submissions=True):
        data = {
            'id': self.id,
            'username': self.username,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'email': self.email,
            'level': self.level,
            'teams': list(self.teams),
        }
        if include_submissions:
            data['submissions'] = {
                key: submission.as_dict() for key, submission in self.submissions.items()
            }
        return data


def parse_collection(payload):
    """
    Normalize a transport `data` list into TeamMember records.

    A missing payload is an empty collection.
    """
    if payload is None:
        return []
    if isinstance(payload, Mapping):
        raise MalformedInputError("Collection payload must be a list of members.")
    return [TeamMember.from_payload(item) for item in payload]
