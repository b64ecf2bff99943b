"""Learning app configuration (registers signal handlers)."""

from django.apps import AppConfig

class LearningConfig(AppConfig):
    """AppConfig for the coursework domain (questions, assignments, submissions, grades)."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "CourseworkApp.learning"
    label = "learning"

    def ready(self):
        """Import signal handlers to connect Django model signals."""
        from CourseworkApp.learning import signals  # noqa: F401
