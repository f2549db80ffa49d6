from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'DailySnap'

    def ready(self):
        # Wire model signals (profile creation, push triggers)
        from . import signals  # noqa: F401
