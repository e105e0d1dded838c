"""
State container for one reviewer's dashboard session.

ReviewDashboard holds everything the review screen works from: the raw
collection, the derived relationship index, filter and listing state, the
selected task and the server pagination. Components receive it explicitly;
there is no module-level store.

Only refresh() and submit_review() suspend, and only on the transport.
"""

import logging
from dataclasses import replace

from django.conf import settings
from django.utils import timezone

from .exceptions import StaleResponseError, TaskNotFoundError, TransportFailure
from .filters import CascadingFilterState, filter_collection, get_filter_statistics
from .listing import ListingState, get_member_stats, list_rows
from .models import ReviewStatus, Task, parse_collection
from .permissions import REVIEW_OUTCOMES
from .relationships import extract_relationships
from .services import apply_review, copy_review_fields, find_task, propagate_review

logger = logging.getLogger(__name__)


def _empty_pagination():
    return {'current_page': 1, 'total_pages': 0, 'total_items': 0}


class ReviewDashboard:
    """
    Usage:
        dashboard = ReviewDashboard(transport, organization_id, reviewer_id)
        await dashboard.refresh()
        dashboard.update_filters(company='Acme')
        page = dashboard.rows()
        await dashboard.submit_review(task_id, 'approved', comment='Looks good')
    """

    def __init__(
        self,
        transport,
        organization_id,
        reviewer_id,
        criteria=None,
        listing=None,
        require_department_for_users=None,
    ):
        if require_department_for_users is None:
            require_department_for_users = getattr(settings, 'REVIEWS_REQUIRE_DEPARTMENT_FOR_USERS', True)

        self.transport = transport
        self.organization_id = organization_id
        self.reviewer_id = reviewer_id

        self.members = []
        self.index = extract_relationships(self.members)
        self.filters = CascadingFilterState(
            self.index,
            criteria=criteria,
            require_department_for_users=require_department_for_users,
        )
        self.listing = listing or ListingState(page_size=getattr(settings, 'REVIEWS_PAGE_SIZE', 10))
        self.selected_task = None
        self.pagination = _empty_pagination()

        self._member_stats = {}
        self._fetch_sequence = 0

    # -------------------------------------------------------------------------
    # Collection
    # -------------------------------------------------------------------------

    def load(self, members, pagination=None):
        """
        Replace the raw collection wholesale and rebuild derived state.

        The selected task is re-read from the new collection when present.
        """
        self.members = list(members)
        self.index = extract_relationships(self.members)
        self.filters.set_index(self.index)
        self._member_stats = get_member_stats(self.members)
        self.pagination = dict(pagination or _empty_pagination())

        if self.selected_task is not None:
            try:
                _member, _submission, task = find_task(self.members, self.selected_task.id)
            except TaskNotFoundError:
                pass
            else:
                self.selected_task = task

    def _check_current(self, sequence):
        if sequence != self._fetch_sequence:
            raise StaleResponseError(sequence, self._fetch_sequence)

    async def refresh(self, page=1):
        """
        Fetch a fresh collection from the transport.

        Only the most recently issued fetch is applied; a response that
        arrives after a newer fetch was started is dropped.

        Returns:
            True if the response was applied, False if it was superseded

        Raises:
            TransportFailure: From the current fetch; the previous
                collection stays in place
        """
        self._fetch_sequence += 1
        sequence = self._fetch_sequence

        try:
            response = await self.transport.fetch_tasks(self.organization_id, page, self.criteria)
        except TransportFailure:
            if sequence != self._fetch_sequence:
                logger.debug(f"Ignoring failure of superseded fetch #{sequence}.")
                return False
            logger.error(f"Fetching review tasks for organization {self.organization_id} failed.")
            raise

        try:
            self._check_current(sequence)
        except StaleResponseError as e:
            logger.debug(str(e))
            return False

        response = response or {}
        members = parse_collection(response.get('data'))
        self.load(members, response.get('pagination'))
        logger.debug(f"Fetch #{sequence} applied: {len(members)} member(s).")
        return True

    # -------------------------------------------------------------------------
    # Filters & listing
    # -------------------------------------------------------------------------

    @property
    def criteria(self):
        return self.filters.criteria

    def update_filters(self, **changes):
        criteria = self.filters.update(**changes)
        self.listing.set_page(1)
        return criteria

    def clear_filter(self, name):
        criteria = self.filters.clear(name)
        self.listing.set_page(1)
        return criteria

    def reset_filters(self):
        criteria = self.filters.reset()
        self.listing.set_page(1)
        return criteria

    def options(self):
        return self.filters.options()

    def filtered_view(self):
        return filter_collection(self.members, self.criteria)

    def statistics(self):
        return get_filter_statistics(self.filtered_view())

    def rows(self):
        # Group sort counts come from the unfiltered collection
        return list_rows(self.filtered_view(), self.listing, stats=self._member_stats)

    # -------------------------------------------------------------------------
    # Selection & review
    # -------------------------------------------------------------------------

    def select_task(self, task_id):
        _member, _submission, task = find_task(self.members, task_id)
        self.selected_task = task
        return task

    def clear_selected_task(self):
        self.selected_task = None

    def _confirmed_task(self, local, receipt):
        """Overlay the server's confirmation on the locally reviewed copy."""
        receipt = receipt or {}
        raw_task = receipt.get('task') or {}
        reviewed_by = (receipt.get('reviewedBy') or {}).get('id', local.reviewed_by)

        changes = {'reviewed_by': reviewed_by}
        if raw_task:
            server_task = Task.from_payload(raw_task)
            if server_task.review_status in REVIEW_OUTCOMES:
                changes['review_status'] = ReviewStatus(server_task.review_status)
            if server_task.reviewed_at:
                changes['reviewed_at'] = server_task.reviewed_at
            if 'comment' in raw_task or 'comments' in raw_task:
                changes['comments'] = server_task.comments
        return replace(local, **changes)

    async def submit_review(self, task_id, outcome, comment=None):
        """
        Review a task, propagate the outcome and refresh.

        The at-most-once rule is checked locally first, so a reviewed task
        never reaches the transport.

        Returns:
            The reviewed Task

        Raises:
            TaskNotFoundError: If the task is not loaded
            AlreadyReviewedError: If the task was already reviewed
            ValidationError: For an invalid outcome
            TransportFailure: If the submission fails (nothing is changed)
        """
        _member, _submission, task = find_task(self.members, task_id)
        local = apply_review(task, outcome, self.reviewer_id, timezone.now().isoformat(), comment=comment)

        receipt = await self.transport.submit_review(task_id, str(outcome), comment, self.reviewer_id)
        reviewed = self._confirmed_task(local, receipt)

        self.members, occurrences = propagate_review(self.members, reviewed)
        self._member_stats = get_member_stats(self.members)
        if self.selected_task is not None and self.selected_task.id == task_id:
            self.selected_task = copy_review_fields(self.selected_task, reviewed)

        logger.info(
            f"Task {task_id} {reviewed.review_status} by user {self.reviewer_id} "
            f"({occurrences} occurrence(s) updated)."
        )

        try:
            await self.refresh(self.pagination.get('current_page', 1))
        except TransportFailure:
            # The review itself is recorded; the next refresh will catch up
            logger.exception(f"Refresh after reviewing task {task_id} failed.")

        return reviewed
