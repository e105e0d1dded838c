"""
Flattening, sorting and pagination of the filtered view.

Members are sorted as groups, then flattened into (task, member) rows in
member → date → task order, then sliced into pages.
"""

import unicodedata
from dataclasses import dataclass, field
from typing import NamedTuple

from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator

from .models import ReviewStatus

DEFAULT_SORT = 'date'
DEFAULT_ORDER = 'desc'
DEFAULT_PAGE_SIZE = 10
SORT_ORDERS = ('asc', 'desc')


class TaskRow(NamedTuple):
    task: object
    member: object
    date: str = ''


def get_sorting_options():
    """
    Return available member sort keys for the task list.
    """
    return [
        ('date', 'Latest Submission'),
        ('name', 'Name'),
        ('level', 'Level'),
        ('tasks', 'Total Tasks'),
        ('pending', 'Pending Tasks'),
    ]


SORT_FIELDS = tuple(key for key, _label in get_sorting_options())


def get_member_stats(members):
    """
    Per-member review counts.

    Returns:
        dict of member id -> {'total', 'pending', 'approved', 'rejected'}
    """
    stats = {}
    for member in members:
        counts = stats.setdefault(
            member.id, {'total': 0, 'pending': 0, 'approved': 0, 'rejected': 0}
        )
        for _submission, task in member.iter_tasks():
            counts['total'] += 1
            if task.review_status == ReviewStatus.APPROVED:
                counts['approved'] += 1
            elif task.review_status == ReviewStatus.REJECTED:
                counts['rejected'] += 1
            else:
                counts['pending'] += 1
    return stats


def latest_submission_date(member):
    # ISO date keys: string order is chronological order
    return max(member.submissions, default='')


def collation_key(value):
    """
    Case- and accent-insensitive sort key.

    Accented letters sort with their base letter ("Émile" before "Zoe") and
    case is ignored ("b" before "C"); the casefolded text breaks ties
    between names differing only in accents.
    """
    decomposed = unicodedata.normalize('NFKD', value or '')
    base = ''.join(char for char in decomposed if not unicodedata.combining(char))
    return base.casefold(), decomposed.casefold()


def apply_sorting(members, sort_by=DEFAULT_SORT, sort_order=DEFAULT_ORDER, stats=None):
    """
    Sort members as whole groups.

    Args:
        members: FilteredView members
        sort_by: One of SORT_FIELDS (unknown keys fall back to 'date')
        sort_order: 'asc' or 'desc'
        stats: Result of get_member_stats; counts default to the given members

    Returns:
        New sorted list. Ties keep their original relative order in both
        directions.
    """
    if sort_by not in SORT_FIELDS:
        sort_by = DEFAULT_SORT
    if stats is None:
        stats = get_member_stats(members)

    def count(member, name):
        return stats.get(member.id, {}).get(name, 0)

    if sort_by == 'name':
        key = lambda member: collation_key(member.full_name)
    elif sort_by == 'level':
        key = lambda member: collation_key(member.level)
    elif sort_by == 'tasks':
        key = lambda member: count(member, 'total')
    elif sort_by == 'pending':
        key = lambda member: count(member, 'pending')
    else:
        key = latest_submission_date

    return sorted(members, key=key, reverse=sort_order == 'desc')


def flatten(members):
    """Flatten member → date → task into TaskRow records."""
    return [
        TaskRow(task=task, member=member, date=submission.date)
        for member in members
        for submission, task in member.iter_tasks()
    ]


@dataclass(frozen=True)
class PageResult:
    items: list = field(default_factory=list)
    number: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total_items: int = 0
    total_pages: int = 0

    @property
    def has_next(self):
        return self.number < self.total_pages

    @property
    def has_previous(self):
        return self.number > 1

    @property
    def page_numbers(self):
        return get_page_window(self.number, self.total_pages)


def paginate(rows, page=1, page_size=DEFAULT_PAGE_SIZE):
    """
    Slice rows[(page - 1) * page_size : page * page_size].

    A page past the end (or below 1) is an empty page, not an error;
    clamping is up to the caller.

    Raises:
        ValueError: If page_size is not a positive integer
    """
    if not isinstance(page_size, int) or page_size < 1:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}.")

    paginator = Paginator(rows, page_size)
    try:
        items = list(paginator.page(page).object_list)
    except (EmptyPage, PageNotAnInteger):
        items = []

    return PageResult(
        items=items,
        number=page,
        page_size=page_size,
        total_items=paginator.count,
        total_pages=paginator.num_pages if paginator.count else 0,
    )


def get_page_window(page, total_pages, max_visible=5):
    """Page numbers to show around the current page."""
    if total_pages < 1:
        return []
    start = max(1, page - max_visible // 2)
    end = min(total_pages, start + max_visible - 1)
    if end - start + 1 < max_visible:
        start = max(1, end - max_visible + 1)
    return list(range(start, end + 1))


class ListingState:
    """
    Sort and page selection for the task list.

    page slices the loaded rows; server_page picks which batch of members the
    transport fetches. Changing the page size or the server page always
    returns to page 1.
    """

    def __init__(
        self,
        sort_by=DEFAULT_SORT,
        sort_order=DEFAULT_ORDER,
        page=1,
        page_size=DEFAULT_PAGE_SIZE,
        server_page=1,
    ):
        self.sort_by = sort_by if sort_by in SORT_FIELDS else DEFAULT_SORT
        self.sort_order = sort_order if sort_order in SORT_ORDERS else DEFAULT_ORDER
        self.page = page
        self.page_size = page_size
        self.server_page = server_page

    @classmethod
    def from_dict(cls, data, page_size=DEFAULT_PAGE_SIZE):
        data = data or {}
        return cls(
            sort_by=data.get('sort_by', DEFAULT_SORT),
            sort_order=data.get('sort_order', DEFAULT_ORDER),
            page=data.get('page', 1),
            page_size=data.get('page_size', page_size),
            server_page=data.get('server_page', 1),
        )

    def as_dict(self):
        return {
            'sort_by': self.sort_by,
            'sort_order': self.sort_order,
            'page': self.page,
            'page_size': self.page_size,
            'server_page': self.server_page,
        }

    def set_sort(self, sort_by, sort_order=None):
        if sort_by not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {sort_by}")
        self.sort_by = sort_by
        if sort_order is not None:
            if sort_order not in SORT_ORDERS:
                raise ValueError(f"Unknown sort order: {sort_order}")
            self.sort_order = sort_order

    def toggle_sort(self, sort_by):
        """Same field flips the order; a new field starts descending."""
        if sort_by == self.sort_by:
            self.sort_order = 'asc' if self.sort_order == 'desc' else 'desc'
        else:
            self.set_sort(sort_by, 'desc')

    def set_page(self, page):
        self.page = page

    def set_page_size(self, page_size):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}.")
        self.page_size = page_size
        self.page = 1

    def set_server_page(self, server_page):
        if server_page < 1:
            raise ValueError(f"server_page must be positive, got {server_page}.")
        self.server_page = server_page
        self.page = 1


def list_rows(view, listing, stats=None):
    """
    Sort, flatten and paginate a FilteredView.

    Returns:
        PageResult whose items are TaskRow records
    """
    members = apply_sorting(view, listing.sort_by, listing.sort_order, stats=stats)
    return paginate(flatten(members), listing.page, listing.page_size)
