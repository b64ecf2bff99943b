"""Core app configuration and startup checks (scoring oracle configuration)."""

from django.apps import AppConfig
from django.conf import settings
from django.core.checks import register, Error, Warning
from django.utils.module_loading import import_string

class CoreConfig(AppConfig):
    """AppConfig registering a system check for the scoring oracle setting."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "CourseworkApp.core"
    label = "core"

    def ready(self):
        """Register a Django system check ensuring the scoring oracle can be built."""
        @register()
        def scoring_oracle_check(app_configs, **kwargs):
            path = settings.SCORING_ORACLE_CLASS
            try:
                import_string(path)
            except ImportError as exc:
                return [Error(f"SCORING_ORACLE_CLASS cannot be imported: {exc}", id="core.E001")]
            if path.endswith("OpenAIScoringOracle") and not settings.OPENAI_API_KEY:
                return [Warning(
                    "OpenAIScoringOracle is configured but OPENAI_API_KEY is empty.",
                    id="core.W001",
                )]
            return []
