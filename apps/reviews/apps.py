from django.apps import AppConfig


class ReviewsConfig(AppConfig):
    name = 'apps.reviews'
    verbose_name = 'Task Reviews'

    def ready(self):
        # Registers the setting_changed receiver that drops the cached transport
        from . import transport  # noqa: F401
