"""
Transport collaborator for the review dashboard.

The engine only knows the TaskTransport contract: an asynchronous fetch
returning {"data": [...members], "pagination": {...}} and an asynchronous
review submission returning {"task": {...}, "reviewedBy": {...}}. Any
failure is raised as TransportFailure.

The active transport is chosen by the REVIEWS_TRANSPORT setting (dotted
path) and built once per process.
"""

import copy
import json
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver
from django.utils import timezone
from django.utils.module_loading import import_string

from .exceptions import TransportFailure
from .permissions import REVIEW_OUTCOMES

logger = logging.getLogger(__name__)


class TaskTransport(ABC):

    @abstractmethod
    async def fetch_tasks(self, organization_id, page=1, criteria=None):
        """Return {'data': [...], 'pagination': {...}} for one page of members."""

    @abstractmethod
    async def submit_review(self, task_id, outcome, comment, reviewer_id):
        """Return {'task': {...}, 'reviewedBy': {...}} once the review is recorded."""


def _is_reviewed(raw_task):
    return raw_task.get('reviewed') is True or raw_task.get('review_status') in REVIEW_OUTCOMES


def _comment_list(value):
    """Stored comments as a list; a single comment may be a string or a record."""
    if value is None:
        return []
    if isinstance(value, (str, Mapping)):
        return [value]
    return list(value)


class InMemoryTransport(TaskTransport):
    """
    Serves a raw member payload list held in memory.

    Useful for development (REVIEWS_FIXTURE_PATH points at a JSON file with
    the same shape as a fetch response) and for tests. Reviews are recorded
    on the held payload, so the next fetch reflects them.
    """

    def __init__(self, data=None, fixture_path=None, limit=None):
        if data is None:
            fixture_path = fixture_path or getattr(settings, 'REVIEWS_FIXTURE_PATH', '')
            data = self._load_fixture(fixture_path) if fixture_path else []
        self._data = copy.deepcopy(list(data))
        self.limit = limit or getattr(settings, 'REVIEWS_FETCH_LIMIT', 100)

    @staticmethod
    def _load_fixture(path):
        try:
            content = json.loads(Path(path).read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            raise TransportFailure(f"Could not load review fixture {path}: {e}") from e
        if isinstance(content, dict):
            content = content.get('data', [])
        return content

    def _iter_raw_tasks(self):
        for member in self._data:
            submissions = member.get('submissions') or {}
            if isinstance(submissions, dict):
                submissions = submissions.values()
            for submission in submissions:
                for task in submission.get('tasks') or []:
                    yield task

    async def fetch_tasks(self, organization_id, page=1, criteria=None):
        total = len(self._data)
        start = (page - 1) * self.limit
        return {
            'data': copy.deepcopy(self._data[start:start + self.limit]),
            'pagination': {
                'current_page': page,
                'total_pages': math.ceil(total / self.limit) if total else 0,
                'total_items': total,
            },
        }

    async def submit_review(self, task_id, outcome, comment, reviewer_id):
        matches = [task for task in self._iter_raw_tasks() if task.get('id') == task_id]
        if not matches:
            raise TransportFailure(f"Task {task_id} not found.")
        if any(_is_reviewed(task) for task in matches):
            raise TransportFailure(f"Task {task_id} has already been reviewed.")

        reviewed_at = timezone.now().isoformat()
        for task in matches:
            task['review_status'] = str(outcome)
            task['reviewed'] = True
            task['reviewed_by'] = reviewer_id
            task['reviewed_at'] = reviewed_at
            if comment:
                key = 'comments' if 'comments' in task and 'comment' not in task else 'comment'
                task[key] = _comment_list(task.get(key))
                task[key].append({
                    'text': comment,
                    'user_id': reviewer_id,
                    'user_name': '',
                    'timestamp': reviewed_at,
                })

        logger.debug(f"In-memory transport recorded {outcome} for task {task_id}.")
        return {'task': copy.deepcopy(matches[0]), 'reviewedBy': {'id': reviewer_id}}


@lru_cache(maxsize=None)
def get_transport():
    """Build the transport named by settings.REVIEWS_TRANSPORT."""
    transport_class = import_string(settings.REVIEWS_TRANSPORT)
    return transport_class()


@receiver(setting_changed)
def _reset_transport(sender, setting, **kwargs):
    if setting in ('REVIEWS_TRANSPORT', 'REVIEWS_FIXTURE_PATH', 'REVIEWS_FETCH_LIMIT'):
        get_transport.cache_clear()
