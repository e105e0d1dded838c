"""
Django development settings for review_dashboard project.
"""

from .base import *

# =============================================================================
# CORE SETTINGS
# =============================================================================
DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1', '0.0.0.0']


# =============================================================================
# REVIEW DASHBOARD - Sample data for local work
# =============================================================================
# Serve the bundled sample organization unless another fixture is configured
REVIEWS_FIXTURE_PATH = config(
    'REVIEWS_FIXTURE_PATH',
    default=str(BASE_DIR / 'fixtures' / 'reviews_sample.json'),
)

# Small pages make pagination easy to exercise with the sample data
REVIEWS_PAGE_SIZE = config('REVIEWS_PAGE_SIZE', default=5, cast=int)


# =============================================================================
# DEBUG TOOLBAR (Development only)
# =============================================================================
# config.settings imports this module too; base's lists stay unmodified
INSTALLED_APPS = INSTALLED_APPS + ['debug_toolbar']

MIDDLEWARE = ['debug_toolbar.middleware.DebugToolbarMiddleware'] + MIDDLEWARE

INTERNAL_IPS = ['127.0.0.1', 'localhost']

DEBUG_TOOLBAR_CONFIG = {
    'SHOW_TOOLBAR_CALLBACK': lambda request: DEBUG,
}


# =============================================================================
# LOGGING
# =============================================================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
        # Fetch/apply chatter on every request
        'apps.reviews.dashboard': {
            'handlers': ['console'],
            'level': config('REVIEWS_DASHBOARD_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
    },
}


# =============================================================================
# SECURITY (Relaxed for development)
# =============================================================================
CSRF_COOKIE_SECURE = False
SESSION_COOKIE_SECURE = False
SECURE_SSL_REDIRECT = False
