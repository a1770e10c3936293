from django.apps import AppConfig


class AquacultureConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'aquaculture'

    def ready(self):
        # Import signal handlers
        from . import signals  # noqa: F401
