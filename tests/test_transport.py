"""
Transport tests: the in-memory transport and settings-based resolution.
"""

from pathlib import Path

from asgiref.sync import async_to_sync
from django.conf import settings
from django.test import SimpleTestCase, override_settings

from apps.reviews.exceptions import TransportFailure
from apps.reviews.models import parse_collection
from apps.reviews.transport import InMemoryTransport, get_transport

from .factories import make_member, make_task, org_payload

SAMPLE_FIXTURE = Path(settings.BASE_DIR) / 'fixtures' / 'reviews_sample.json'


class InMemoryTransportTests(SimpleTestCase):

    def test_fetch_pages_members_by_limit(self):
        transport = InMemoryTransport(data=org_payload(), limit=3)

        first = async_to_sync(transport.fetch_tasks)(1, page=1)
        second = async_to_sync(transport.fetch_tasks)(1, page=2)

        self.assertEqual(len(first['data']), 3)
        self.assertEqual(len(second['data']), 1)
        self.assertEqual(first['pagination'], {'current_page': 1, 'total_pages': 2, 'total_items': 4})

    def test_fetch_returns_copies(self):
        transport = InMemoryTransport(data=org_payload())
        response = async_to_sync(transport.fetch_tasks)(1)
        response['data'][0]['user']['username'] = 'mallory'

        again = async_to_sync(transport.fetch_tasks)(1)
        self.assertEqual(again['data'][0]['user']['username'], 'alice')

    def test_submit_review_is_recorded(self):
        transport = InMemoryTransport(data=org_payload())

        receipt = async_to_sync(transport.submit_review)(101, 'approved', 'Good', 9)

        self.assertEqual(receipt['task']['review_status'], 'approved')
        self.assertEqual(receipt['reviewedBy'], {'id': 9})
        members = parse_collection(async_to_sync(transport.fetch_tasks)(1)['data'])
        task = members[0].submissions['2024-05-01'].tasks[0]
        self.assertTrue(task.reviewed)
        self.assertEqual(task.comments[-1].text, 'Good')

    def test_submit_review_failures(self):
        transport = InMemoryTransport(data=[
            make_member(1, 'alice', submissions={'2024-05-01': [make_task(1, review_status='approved')]}),
        ])
        with self.assertRaises(TransportFailure):
            async_to_sync(transport.submit_review)(1, 'rejected', None, 9)
        with self.assertRaises(TransportFailure):
            async_to_sync(transport.submit_review)(2, 'approved', None, 9)

    def test_submit_review_with_missing_or_single_comment(self):
        transport = InMemoryTransport(data=[
            make_member(1, 'alice', submissions={'2024-05-01': [
                make_task(1, comment=None),
                make_task(2, comment='Started late'),
                make_task(3, comment={'text': 'Blocked', 'user_id': 4}),
            ]}),
        ])

        for task_id in (1, 2, 3):
            with self.subTest(task_id=task_id):
                receipt = async_to_sync(transport.submit_review)(task_id, 'approved', 'ok', 9)
                self.assertEqual(receipt['task']['comment'][-1]['text'], 'ok')

        members = parse_collection(async_to_sync(transport.fetch_tasks)(1)['data'])
        tasks = members[0].submissions['2024-05-01'].tasks
        self.assertEqual([len(task.comments) for task in tasks], [1, 2, 2])

    def test_reviewed_flag_alone_blocks_review(self):
        transport = InMemoryTransport(data=[
            make_member(1, 'alice', submissions={'2024-05-01': [make_task(1, reviewed=True)]}),
        ])
        with self.assertRaises(TransportFailure):
            async_to_sync(transport.submit_review)(1, 'approved', None, 9)

    def test_sample_fixture(self):
        transport = InMemoryTransport(fixture_path=SAMPLE_FIXTURE)
        members = parse_collection(async_to_sync(transport.fetch_tasks)(1)['data'])

        self.assertEqual([m.username for m in members], ['mhailu', 'dtesfaye', 'sabebe'])
        self.assertEqual(members[1].teams, ('Field Sales',))
        self.assertEqual(members[1].submissions['2024-05-06'].tasks[0].company_name, 'Globex')

    def test_missing_fixture(self):
        with self.assertRaises(TransportFailure):
            InMemoryTransport(fixture_path='/nonexistent/reviews.json')


class GetTransportTests(SimpleTestCase):

    def tearDown(self):
        get_transport.cache_clear()

    def test_transport_is_built_once(self):
        self.assertIs(get_transport(), get_transport())
        self.assertIsInstance(get_transport(), InMemoryTransport)

    def test_setting_change_rebuilds_transport(self):
        before = get_transport()
        with override_settings(REVIEWS_FIXTURE_PATH=str(SAMPLE_FIXTURE)):
            during = get_transport()
            self.assertIsNot(before, during)
            response = async_to_sync(during.fetch_tasks)(1)
            self.assertEqual(response['pagination']['total_items'], 3)
