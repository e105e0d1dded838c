"""
Task filters for the review dashboard.

Provides:
- FilterCriteria: the active filter values (all optional)
- CascadingFilterState: company → department → team → user cascade with
  option sets derived from the RelationshipIndex
- task_matches / filter_collection: predicate evaluation and reconstruction
  of the nested member → date → task tree without empty containers
- Filter statistics and summary helpers
"""

import logging
from dataclasses import asdict, dataclass, fields
from datetime import date

from .exceptions import InvalidDateError
from .models import ReviewStatus, parse_date_value

logger = logging.getLogger(__name__)

# Parent → child order of the organizational filters
HIERARCHY = ('company', 'department', 'team', 'user_name')


def _clean_value(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _clean_date(value):
    value = _clean_value(value)
    if value is None or isinstance(value, date):
        return value
    return parse_date_value(value)


@dataclass(frozen=True)
class FilterCriteria:
    company: str | None = None
    department: str | None = None
    team: str | None = None
    user_name: str | None = None
    status: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    search: str | None = None
    project: str | None = None
    user_level: str | None = None

    @classmethod
    def field_names(cls):
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_dict(cls, data):
        """
        Build criteria from a plain dict such as one kept in the session.

        Unknown keys are ignored; blank values mean "no constraint".
        """
        data = data or {}
        values = {}
        for name in cls.field_names():
            if name in ('start_date', 'end_date'):
                values[name] = _clean_date(data.get(name))
            else:
                values[name] = _clean_value(data.get(name))
        return cls(**values)

    def as_dict(self):
        data = asdict(self)
        for name in ('start_date', 'end_date'):
            if data[name] is not None:
                data[name] = data[name].isoformat()
        return data

    @property
    def active_fields(self):
        return tuple(name for name in self.field_names() if getattr(self, name) is not None)

    @property
    def active_filter_count(self):
        return len(self.active_fields)

    @property
    def has_active_filters(self):
        return bool(self.active_fields)


@dataclass(frozen=True)
class FilterOptions:
    companies: tuple = ()
    departments: tuple = ()
    teams: tuple = ()
    users: tuple = ()

    def as_dict(self):
        return {
            'companies': list(self.companies),
            'departments': list(self.departments),
            'teams': list(self.teams),
            'users': [user.as_dict() for user in self.users],
        }


class CascadingFilterState:
    """
    Holds FilterCriteria and enforces the parent → child reset rules.

    Changing a hierarchy field clears every field below it; the leaf
    filters (status, dates, search, project, level) never clear anything.
    Each update produces one new FilterCriteria, so no caller ever sees a
    half-applied cascade.

    Usage:
        state = CascadingFilterState(index)
        state.update(company='Acme')
        options = state.options()
    """

    def __init__(self, index, criteria=None, require_department_for_users=True):
        self.index = index
        self.require_department_for_users = require_department_for_users
        self._criteria = criteria or FilterCriteria()

    @property
    def criteria(self):
        return self._criteria

    def set_index(self, index):
        """Swap in the index built from a freshly fetched collection."""
        self.index = index

    def update(self, **changes):
        """
        Apply filter changes as a single transition.

        Hierarchy fields are applied parent first, so an update that sets a
        parent and a child together keeps the child.

        Returns:
            The new FilterCriteria

        Raises:
            ValueError: For an unknown filter field
            InvalidDateError: For an unparseable start/end date
        """
        unknown = set(changes) - set(FilterCriteria.field_names())
        if unknown:
            raise ValueError(f"Unknown filter field(s): {', '.join(sorted(unknown))}")

        values = asdict(self._criteria)

        for position, name in enumerate(HIERARCHY):
            if name not in changes:
                continue
            new_value = _clean_value(changes[name])
            if new_value == values[name]:
                continue
            values[name] = new_value
            for downstream in HIERARCHY[position + 1:]:
                values[downstream] = None

        for name, value in changes.items():
            if name in HIERARCHY:
                continue
            if name in ('start_date', 'end_date'):
                values[name] = _clean_date(value)
            else:
                values[name] = _clean_value(value)

        self._criteria = FilterCriteria(**values)
        return self._criteria

    def clear(self, name):
        """Clear one filter and, for hierarchy fields, everything below it."""
        return self.update(**{name: None})

    def reset(self):
        self._criteria = FilterCriteria()
        return self._criteria

    def options(self):
        """
        Selectable option sets for the current criteria.

        Computed on every call from the index; nothing is cached between
        criteria changes.
        """
        criteria = self._criteria
        index = self.index

        if criteria.company:
            departments = tuple(index.departments_for(criteria.company))
        else:
            departments = tuple(index.unique_departments)

        if criteria.department:
            teams = tuple(index.teams_for(criteria.department))
            users = tuple(index.users_for(criteria.department))
        else:
            reachable = set()
            for department in departments:
                reachable.update(index.teams_for(department))
            teams = tuple(sorted(reachable))
            # Users are only listed once a department is chosen
            users = () if self.require_department_for_users else tuple(index.unique_users)

        if criteria.team:
            users = tuple(user for user in users if criteria.team in user.teams)

        return FilterOptions(
            companies=tuple(index.unique_companies),
            departments=departments,
            teams=teams,
            users=users,
        )


# =============================================================================
# Predicate Evaluation
# =============================================================================

def _member_matches(member, criteria):
    if criteria.team and criteria.team not in member.teams:
        return False
    if criteria.user_name and member.username != criteria.user_name:
        return False
    if criteria.user_level and member.level != criteria.user_level:
        return False
    return True


def _in_date_range(task, submission_date, criteria):
    raw = task.due_date or submission_date
    try:
        task_date = parse_date_value(raw)
    except InvalidDateError:
        logger.debug(f"Task {task.id} has unparseable date {raw!r}; excluded by date range.")
        return False

    if criteria.start_date and task_date < criteria.start_date:
        return False
    if criteria.end_date and task_date > criteria.end_date:
        return False
    return True


def _matches_search(task, member, term):
    term = term.casefold()
    haystack = (
        task.title,
        task.description,
        task.company_name,
        task.department_name,
        task.related_project,
        member.full_name,
    )
    return any(value and term in value.casefold() for value in haystack)


def task_matches(task, member, criteria, submission_date=None):
    """
    Check a task against every active criterion.

    Args:
        task: Task to test
        member: TeamMember owning the task
        criteria: FilterCriteria
        submission_date: Date key of the submission holding the task, used
            when the task has no due date of its own

    Returns:
        True if all active criteria pass
    """
    if criteria.company and task.company_name != criteria.company:
        return False
    if criteria.department and task.department_name != criteria.department:
        return False
    if not _member_matches(member, criteria):
        return False
    if criteria.status and task.review_status != criteria.status:
        return False
    if criteria.project and task.related_project.casefold() != criteria.project.casefold():
        return False
    if (criteria.start_date or criteria.end_date) and not _in_date_range(task, submission_date, criteria):
        return False
    if criteria.search and not _matches_search(task, member, criteria.search):
        return False
    return True


def filter_collection(members, criteria):
    """
    Build the FilteredView for the given criteria.

    Tasks that fail the predicate are removed; a date left with no tasks is
    dropped, and a member left with no dates is dropped. The result has the
    shape the collection would have had if the removed tasks never existed.

    Returns:
        List of TeamMember copies
    """
    view = []
    for member in members:
        if not _member_matches(member, criteria):
            continue

        kept = {}
        for key, submission in member.submissions.items():
            tasks = [
                task for task in submission.tasks
                if task_matches(task, member, criteria, submission.date)
            ]
            if tasks:
                kept[key] = submission.with_tasks(tasks)

        if kept:
            view.append(member.with_submissions(kept))
    return view


# =============================================================================
# Statistics & Summary
# =============================================================================

def count_tasks(members):
    return sum(member.task_count for member in members)


def get_filter_statistics(view):
    """
    Review-status counts over a FilteredView.

    Returns dict with total_members, total_tasks, pending_tasks,
    approved_tasks, rejected_tasks.
    """
    stats = {
        'total_members': len(view),
        'total_tasks': 0,
        'pending_tasks': 0,
        'approved_tasks': 0,
        'rejected_tasks': 0,
    }
    for member in view:
        for _submission, task in member.iter_tasks():
            stats['total_tasks'] += 1
            if task.review_status == ReviewStatus.APPROVED:
                stats['approved_tasks'] += 1
            elif task.review_status == ReviewStatus.REJECTED:
                stats['rejected_tasks'] += 1
            else:
                stats['pending_tasks'] += 1
    return stats


def format_date_range(start_date=None, end_date=None):
    if start_date and end_date:
        return f"{start_date} to {end_date}"
    if start_date:
        return f"From {start_date}"
    if end_date:
        return f"Until {end_date}"
    return None


def summarize_filters(criteria):
    return {
        'search_term': criteria.search or '',
        'user_name_filter': criteria.user_name,
        'status_filter': criteria.status,
        'date_range_filter': format_date_range(criteria.start_date, criteria.end_date),
        'has_active_filters': criteria.has_active_filters,
        'active_filter_count': criteria.active_filter_count,
    }
