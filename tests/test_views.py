"""
Review dashboard endpoint tests.

The transport is swapped for an InMemoryTransport holding a known payload;
filter and listing state travel in the (cache-backed) test session.
"""

from unittest import mock

from django.test import SimpleTestCase
from django.urls import reverse

from apps.reviews.exceptions import TransportFailure
from apps.reviews.transport import InMemoryTransport

from .factories import org_payload


class FailingTransport(InMemoryTransport):

    async def fetch_tasks(self, organization_id, page=1, criteria=None):
        raise TransportFailure('connection refused')


class ReviewViewTestCase(SimpleTestCase):

    def setUp(self):
        self.transport = InMemoryTransport(data=org_payload())
        patcher = mock.patch('apps.reviews.views.get_transport', return_value=self.transport)
        patcher.start()
        self.addCleanup(patcher.stop)

    def login(self, organization_id=1, reviewer_id=9):
        session = self.client.session
        session['organization_id'] = organization_id
        session['reviewer_id'] = reviewer_id
        session.save()

    def task_ids(self, response):
        return [row['task']['id'] for row in response.json()['rows']]


# =============================================================================
# Dashboard
# =============================================================================

class DashboardStateViewTests(ReviewViewTestCase):

    def test_requires_review_session(self):
        response = self.client.get(reverse('reviews:dashboard'))
        self.assertEqual(response.status_code, 403)

    def test_initial_state(self):
        self.login()
        response = self.client.get(reverse('reviews:dashboard'))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data['rows']), 7)
        self.assertEqual(data['listing']['sort_by'], 'date')
        self.assertEqual(data['options']['companies'], ['Acme', 'Globex'])
        self.assertEqual(data['options']['users'], [])
        self.assertEqual(data['statistics']['pending_tasks'], 5)
        self.assertFalse(data['summary']['has_active_filters'])
        self.assertIsNone(data['selected_task'])

    def test_rows_carry_allowed_transitions(self):
        self.login()
        rows = self.client.get(reverse('reviews:dashboard')).json()['rows']
        by_id = {row['task']['id']: row['task'] for row in rows}

        self.assertEqual(by_id[101]['allowed_transitions'], ['approved', 'rejected'])
        self.assertEqual(by_id[102]['allowed_transitions'], [])

    def test_post_not_allowed(self):
        self.login()
        response = self.client.post(reverse('reviews:dashboard'))
        self.assertEqual(response.status_code, 405)

    def test_transport_failure(self):
        self.login()
        with mock.patch('apps.reviews.views.get_transport', return_value=FailingTransport(data=[])):
            response = self.client.get(reverse('reviews:dashboard'))

        self.assertEqual(response.status_code, 502)
        self.assertIn('error', response.json())

    def test_unloadable_transport(self):
        self.login()
        with mock.patch('apps.reviews.views.get_transport', side_effect=TransportFailure('no fixture')):
            response = self.client.get(reverse('reviews:dashboard'))
        self.assertEqual(response.status_code, 502)


# =============================================================================
# Filters & Listing
# =============================================================================

class FilterViewTests(ReviewViewTestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def test_filters_persist_between_requests(self):
        self.client.post(reverse('reviews:update_filters'), {'company': 'Acme', 'department': 'Eng'})
        response = self.client.get(reverse('reviews:dashboard'))

        data = response.json()
        self.assertEqual(data['filters']['company'], 'Acme')
        self.assertEqual(sorted(self.task_ids(response)), [101, 102, 103])
        self.assertEqual([u['username'] for u in data['options']['users']], ['alice', 'carol'])

    def test_department_change_clears_team(self):
        self.client.post(reverse('reviews:update_filters'), {'department': 'Eng', 'team': 'Platform'})
        response = self.client.post(reverse('reviews:update_filters'), {'department': 'Sales'})

        filters = response.json()['filters']
        self.assertEqual(filters['department'], 'Sales')
        self.assertIsNone(filters['team'])

    def test_omitted_fields_are_kept(self):
        self.client.post(reverse('reviews:update_filters'), {'company': 'Acme'})
        response = self.client.post(reverse('reviews:update_filters'), {'search': 'login'})

        data = response.json()
        self.assertEqual(data['filters']['company'], 'Acme')
        self.assertEqual(self.task_ids(response), [103])
        self.assertEqual(data['summary']['active_filter_count'], 2)

    def test_blank_field_clears_filter(self):
        self.client.post(reverse('reviews:update_filters'), {'company': 'Acme'})
        response = self.client.post(reverse('reviews:update_filters'), {'company': ''})
        self.assertIsNone(response.json()['filters']['company'])

    def test_date_range(self):
        response = self.client.post(
            reverse('reviews:update_filters'),
            {'start_date': '2024-05-02', 'end_date': '2024-05-03'},
        )

        data = response.json()
        self.assertEqual(sorted(self.task_ids(response)), [103, 201, 202])
        self.assertEqual(data['summary']['date_range_filter'], '2024-05-02 to 2024-05-03')

    def test_invalid_values(self):
        response = self.client.post(reverse('reviews:update_filters'), {'status': 'lost', 'start_date': 'soon'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('status', response.json()['errors'])
        self.assertIn('start_date', response.json()['errors'])

    def test_reset(self):
        self.client.post(reverse('reviews:update_filters'), {'company': 'Globex', 'status': 'pending'})
        response = self.client.post(reverse('reviews:reset_filters'))

        self.assertFalse(response.json()['summary']['has_active_filters'])
        self.assertEqual(len(response.json()['rows']), 7)


class ListingViewTests(ReviewViewTestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def test_page_size_and_page(self):
        response = self.client.post(reverse('reviews:update_listing'), {'page_size': 3})
        page = response.json()['page']
        self.assertEqual((page['number'], page['total_pages'], page['total_items']), (1, 3, 7))

        response = self.client.post(reverse('reviews:update_listing'), {'page': 3})
        self.assertEqual(len(response.json()['rows']), 1)
        self.assertFalse(response.json()['page']['has_next'])

    def test_filter_change_returns_to_first_page(self):
        self.client.post(reverse('reviews:update_listing'), {'page_size': 3})
        self.client.post(reverse('reviews:update_listing'), {'page': 2})
        response = self.client.post(reverse('reviews:update_filters'), {'status': 'pending'})

        self.assertEqual(response.json()['listing']['page'], 1)

    def test_sort_by_name(self):
        response = self.client.post(reverse('reviews:update_listing'), {'sort_by': 'name', 'sort_order': 'asc'})
        usernames = [row['member']['username'] for row in response.json()['rows']]
        self.assertEqual(usernames, ['alice', 'alice', 'alice', 'bob', 'bob', 'carol', 'carol'])

    def test_toggle_sort(self):
        response = self.client.post(reverse('reviews:update_listing'), {'toggle_sort': 'date'})
        self.assertEqual(response.json()['listing']['sort_order'], 'asc')

    def test_invalid_sort(self):
        response = self.client.post(reverse('reviews:update_listing'), {'sort_by': 'colour'})
        self.assertEqual(response.status_code, 400)


# =============================================================================
# Tasks
# =============================================================================

class TaskViewTests(ReviewViewTestCase):

    def setUp(self):
        super().setUp()
        self.login()

    def test_task_detail_selects_task(self):
        response = self.client.get(reverse('reviews:task_detail', args=[301]))
        self.assertEqual(response.json()['task']['title'], 'Capacity plan')

        dashboard = self.client.get(reverse('reviews:dashboard')).json()
        self.assertEqual(dashboard['selected_task']['id'], 301)

    def test_task_detail_not_found(self):
        response = self.client.get(reverse('reviews:task_detail', args=[999]))
        self.assertEqual(response.status_code, 404)

    def test_approve(self):
        response = self.client.post(
            reverse('reviews:review_task', args=[101]),
            {'outcome': 'approved', 'comment': '  Nice work  '},
        )

        self.assertEqual(response.status_code, 200)
        task = response.json()['task']
        self.assertEqual(task['review_status'], 'approved')
        self.assertTrue(task['reviewed'])
        self.assertEqual(task['reviewed_by'], 9)
        self.assertEqual(task['allowed_transitions'], [])
        self.assertEqual(task['comments'][-1]['text'], 'Nice work')
        self.assertEqual(response.json()['dashboard']['statistics']['approved_tasks'], 2)

    def test_second_review_conflicts(self):
        self.client.post(reverse('reviews:review_task', args=[101]), {'outcome': 'approved'})
        response = self.client.post(reverse('reviews:review_task', args=[101]), {'outcome': 'rejected'})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['review_status'], 'approved')

        dashboard = self.client.get(reverse('reviews:dashboard')).json()
        statuses = {row['task']['id']: row['task']['review_status'] for row in dashboard['rows']}
        self.assertEqual(statuses[101], 'approved')

    def test_invalid_outcome(self):
        response = self.client.post(reverse('reviews:review_task', args=[101]), {'outcome': 'pending'})
        self.assertEqual(response.status_code, 400)

    def test_review_unknown_task(self):
        response = self.client.post(reverse('reviews:review_task', args=[999]), {'outcome': 'approved'})
        self.assertEqual(response.status_code, 404)


class ServerPageViewTests(ReviewViewTestCase):

    def setUp(self):
        super().setUp()
        # Two members per fetch: alice and bob first, then carol and dave
        self.transport = InMemoryTransport(data=org_payload(), limit=2)
        patcher = mock.patch('apps.reviews.views.get_transport', return_value=self.transport)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.login()

    def test_first_batch_is_fetched_by_default(self):
        response = self.client.get(reverse('reviews:dashboard'))

        data = response.json()
        self.assertEqual(data['server_pagination']['current_page'], 1)
        self.assertEqual(data['server_pagination']['total_pages'], 2)
        self.assertEqual(sorted(self.task_ids(response)), [101, 102, 103, 201, 202])

    def test_member_on_second_batch_is_reachable(self):
        response = self.client.get(reverse('reviews:task_detail', args=[301]))
        self.assertEqual(response.status_code, 404)

        response = self.client.post(reverse('reviews:update_listing'), {'server_page': 2})
        data = response.json()
        self.assertEqual(data['server_pagination']['current_page'], 2)
        self.assertEqual(data['listing']['server_page'], 2)
        self.assertEqual(sorted(self.task_ids(response)), [301, 302])

        response = self.client.get(reverse('reviews:task_detail', args=[301]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['task']['title'], 'Capacity plan')

    def test_review_keeps_the_server_page(self):
        self.client.post(reverse('reviews:update_listing'), {'server_page': 2})
        response = self.client.post(reverse('reviews:review_task', args=[301]), {'outcome': 'approved'})

        self.assertEqual(response.status_code, 200)
        dashboard = response.json()['dashboard']
        self.assertEqual(dashboard['server_pagination']['current_page'], 2)
        self.assertEqual(sorted(self.task_ids(self.client.get(reverse('reviews:dashboard')))), [301, 302])

    def test_server_page_change_returns_to_first_row_page(self):
        self.client.post(reverse('reviews:update_listing'), {'page_size': 2})
        self.client.post(reverse('reviews:update_listing'), {'page': 2})
        response = self.client.post(reverse('reviews:update_listing'), {'server_page': 2})

        self.assertEqual(response.json()['listing']['page'], 1)

    def test_invalid_server_page(self):
        response = self.client.post(reverse('reviews:update_listing'), {'server_page': 0})
        self.assertEqual(response.status_code, 400)
        self.assertIn('server_page', response.json()['errors'])
