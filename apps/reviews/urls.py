"""
URL configuration for reviews app.

Includes:
- Dashboard state
- Filter changes and reset
- Sort / page changes
- Task selection and review
"""

from django.urls import path
from . import views

app_name = 'reviews'

urlpatterns = [
    # Dashboard (current page, options, statistics)
    path('', views.dashboard_state, name='dashboard'),

    # Filters
    path('filters/', views.update_filters, name='update_filters'),
    path('filters/reset/', views.reset_filters, name='reset_filters'),

    # Sorting & pagination
    path('listing/', views.update_listing, name='update_listing'),

    # Tasks
    path('tasks/<int:pk>/', views.task_detail, name='task_detail'),
    path('tasks/<int:pk>/review/', views.review_task, name='review_task'),
]
