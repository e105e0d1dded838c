"""
URL configuration for review_dashboard project.
"""

from django.conf import settings
from django.urls import path, include

urlpatterns = [
    path('reviews/', include('apps.reviews.urls', namespace='reviews')),
]

if settings.DEBUG and 'debug_toolbar' in settings.INSTALLED_APPS:
    import debug_toolbar
    urlpatterns = [
        path('__debug__/', include(debug_toolbar.urls)),
    ] + urlpatterns
