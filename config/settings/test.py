"""
Django test settings for review_dashboard project.
"""

from .base import *

DEBUG = False

ALLOWED_HOSTS = ['testserver', 'localhost']

SESSION_ENGINE = 'django.contrib.sessions.backends.cache'

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

REVIEWS_TRANSPORT = 'apps.reviews.transport.InMemoryTransport'
REVIEWS_FIXTURE_PATH = ''
REVIEWS_PAGE_SIZE = 10
REVIEWS_REQUIRE_DEPARTMENT_FOR_USERS = True

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'loggers': {
        'apps': {
            'handlers': ['null'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}
