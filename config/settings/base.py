"""
Django base settings for review_dashboard project.
Shared settings between development, production and test.
"""

from pathlib import Path
from decouple import config

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config('SECRET_KEY', default='django-insecure-change-me-in-production')

# Application definition
DJANGO_APPS = [
    'django.contrib.sessions',
    'django.contrib.staticfiles',
]

LOCAL_APPS = [
    'apps.reviews',
]

INSTALLED_APPS = DJANGO_APPS + LOCAL_APPS

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# The dashboard keeps no database state: tasks come from the transport and
# filter/listing state lives in the session.
DATABASES = {}


# =============================================================================
# INTERNATIONALIZATION & TIMEZONE
# =============================================================================
LANGUAGE_CODE = 'en-us'

TIME_ZONE = config('TIME_ZONE', default='UTC')

USE_I18N = True

USE_TZ = True


# =============================================================================
# STATIC FILES
# =============================================================================
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# =============================================================================
# SESSION SETTINGS
# =============================================================================
# organization_id / reviewer_id are written to the session by the login layer
SESSION_ENGINE = config('SESSION_ENGINE', default='django.contrib.sessions.backends.signed_cookies')
SESSION_COOKIE_AGE = config('SESSION_ABSOLUTE_TIMEOUT_HOURS', default=8, cast=int) * 3600
SESSION_SAVE_EVERY_REQUEST = True


# =============================================================================
# REVIEW DASHBOARD
# =============================================================================
# Dotted path of the TaskTransport implementation
REVIEWS_TRANSPORT = config('REVIEWS_TRANSPORT', default='apps.reviews.transport.InMemoryTransport')

# JSON file served by InMemoryTransport (same shape as a fetch response)
REVIEWS_FIXTURE_PATH = config('REVIEWS_FIXTURE_PATH', default='')

# Rows per dashboard page
REVIEWS_PAGE_SIZE = config('REVIEWS_PAGE_SIZE', default=10, cast=int)

# Members per transport fetch
REVIEWS_FETCH_LIMIT = config('REVIEWS_FETCH_LIMIT', default=100, cast=int)

# Only list users once a department filter is chosen
REVIEWS_REQUIRE_DEPARTMENT_FOR_USERS = config('REVIEWS_REQUIRE_DEPARTMENT_FOR_USERS', default=True, cast=bool)


# =============================================================================
# DEFAULT PRIMARY KEY FIELD TYPE
# =============================================================================
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
