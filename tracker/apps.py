from django.apps import AppConfig


class TrackerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "tracker"
    verbose_name = "Codeforces progress tracker"

    def ready(self):
        from . import signals  # noqa: F401
