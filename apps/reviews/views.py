"""
Views for the review dashboard.

JSON endpoints consumed by the dashboard front end:
- Dashboard state (rows of the current page, options, statistics)
- Filter changes and reset
- Sort / page changes and the server page to fetch
- Task selection and review submission

Filter and listing state live in the session between requests; the task
collection is fetched fresh from the transport on every request.
"""

import logging
from functools import wraps

from asgiref.sync import async_to_sync
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from .dashboard import ReviewDashboard
from .exceptions import AlreadyReviewedError, InvalidDateError, TaskNotFoundError, TransportFailure
from .filters import FilterCriteria, summarize_filters
from .forms import FilterChangeForm, ListingForm, ReviewForm
from .listing import ListingState, get_sorting_options
from .permissions import get_allowed_review_transitions
from .transport import get_transport

logger = logging.getLogger(__name__)

SESSION_FILTERS_KEY = 'reviews_filters'
SESSION_LISTING_KEY = 'reviews_listing'
SESSION_SELECTED_KEY = 'reviews_selected_task'


# =============================================================================
# Helpers
# =============================================================================

def _error(message, status, **extra):
    return JsonResponse({'error': message, **extra}, status=status)


def dashboard_view(view_func):
    """
    Build the reviewer's ReviewDashboard and pass it to the view.

    Requires organization_id and reviewer_id in the session (set by the
    login layer). Transport failures become a 502 response.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        organization_id = request.session.get('organization_id')
        reviewer_id = request.session.get('reviewer_id')
        if organization_id is None or reviewer_id is None:
            return _error('Review session is not established.', 403)

        try:
            criteria = FilterCriteria.from_dict(request.session.get(SESSION_FILTERS_KEY))
        except InvalidDateError:
            criteria = FilterCriteria()
        listing = ListingState.from_dict(
            request.session.get(SESSION_LISTING_KEY),
            page_size=settings.REVIEWS_PAGE_SIZE,
        )
        try:
            dashboard = ReviewDashboard(
                get_transport(),
                organization_id,
                reviewer_id,
                criteria=criteria,
                listing=listing,
            )
            async_to_sync(dashboard.refresh)(listing.server_page)
            selected_id = request.session.get(SESSION_SELECTED_KEY)
            if selected_id is not None:
                try:
                    dashboard.select_task(selected_id)
                except TaskNotFoundError:
                    request.session.pop(SESSION_SELECTED_KEY, None)
            response = view_func(request, dashboard, *args, **kwargs)
        except TransportFailure as e:
            logger.error(f"Review transport failed for organization {organization_id}: {e}")
            return _error('Task service is unavailable. Please try again.', 502)

        _save_state(request, dashboard)
        return response

    return wrapper


def _save_state(request, dashboard):
    request.session[SESSION_FILTERS_KEY] = dashboard.criteria.as_dict()
    request.session[SESSION_LISTING_KEY] = dashboard.listing.as_dict()
    if dashboard.selected_task is not None:
        request.session[SESSION_SELECTED_KEY] = dashboard.selected_task.id
    else:
        request.session.pop(SESSION_SELECTED_KEY, None)


def _task_payload(task):
    data = task.as_dict()
    data['allowed_transitions'] = [str(s) for s in get_allowed_review_transitions(task)]
    return data


def _dashboard_payload(dashboard):
    page = dashboard.rows()
    return {
        'rows': [
            {
                'date': row.date,
                'task': _task_payload(row.task),
                'member': row.member.as_dict(include_submissions=False),
            }
            for row in page.items
        ],
        'page': {
            'number': page.number,
            'page_size': page.page_size,
            'total_items': page.total_items,
            'total_pages': page.total_pages,
            'page_numbers': page.page_numbers,
            'has_next': page.has_next,
            'has_previous': page.has_previous,
        },
        'listing': dashboard.listing.as_dict(),
        'sorting_options': get_sorting_options(),
        'filters': dashboard.criteria.as_dict(),
        'summary': summarize_filters(dashboard.criteria),
        'options': dashboard.options().as_dict(),
        'statistics': dashboard.statistics(),
        'server_pagination': dashboard.pagination,
        'selected_task': _task_payload(dashboard.selected_task) if dashboard.selected_task else None,
    }


# =============================================================================
# Dashboard Views
# =============================================================================

@require_GET
@dashboard_view
def dashboard_state(request, dashboard):
    return JsonResponse(_dashboard_payload(dashboard))


@require_POST
@dashboard_view
def update_filters(request, dashboard):
    """
    Apply a filter change.

    Changing company, department or team clears the filters below it.
    """
    form = FilterChangeForm(request.POST)
    if not form.is_valid():
        return _error('Invalid filter values.', 400, errors=form.errors.get_json_data())

    dashboard.update_filters(**form.get_changes())
    return JsonResponse(_dashboard_payload(dashboard))


@require_POST
@dashboard_view
def reset_filters(request, dashboard):
    dashboard.reset_filters()
    return JsonResponse(_dashboard_payload(dashboard))


@require_POST
@dashboard_view
def update_listing(request, dashboard):
    form = ListingForm(request.POST)
    if not form.is_valid():
        return _error('Invalid sort or page values.', 400, errors=form.errors.get_json_data())

    form.apply(dashboard.listing)
    if form.changes_server_page:
        async_to_sync(dashboard.refresh)(dashboard.listing.server_page)
    return JsonResponse(_dashboard_payload(dashboard))


# =============================================================================
# Task Views
# =============================================================================

@require_GET
@dashboard_view
def task_detail(request, dashboard, pk):
    try:
        task = dashboard.select_task(pk)
    except TaskNotFoundError:
        return _error(f'Task {pk} not found.', 404)
    return JsonResponse({'task': _task_payload(task)})


@require_POST
@dashboard_view
def review_task(request, dashboard, pk):
    """
    Approve or reject a task.

    A task can be reviewed once; a second attempt gets 409 without reaching
    the task service.
    """
    form = ReviewForm(request.POST)
    if not form.is_valid():
        return _error('Invalid review.', 400, errors=form.errors.get_json_data())

    try:
        reviewed = async_to_sync(dashboard.submit_review)(
            pk,
            form.cleaned_data['outcome'],
            comment=form.cleaned_data['comment'] or None,
        )
    except TaskNotFoundError:
        return _error(f'Task {pk} not found.', 404)
    except AlreadyReviewedError as e:
        return _error(e.messages[0], 409, review_status=str(e.task.review_status))
    except ValidationError as e:
        return _error(e.messages[0], 400)

    return JsonResponse({
        'task': _task_payload(reviewed),
        'dashboard': _dashboard_payload(dashboard),
    })
