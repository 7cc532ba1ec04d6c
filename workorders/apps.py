from django.apps import AppConfig


class WorkordersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'workorders'
    verbose_name = 'Pump work orders'

    def ready(self):
        # Import signal handlers
        from . import signals  # noqa: F401
