"""Django settings for the coursework assessment backend.

Everything deployment-specific comes from the environment.
"""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-coursework-key")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "rest_framework",
    "drf_spectacular",
    "simple_history",
    "CourseworkApp.core.apps.CoreConfig",
    "CourseworkApp.users.apps.UsersConfig",
    "CourseworkApp.courses.apps.CoursesConfig",
    "CourseworkApp.learning.apps.LearningConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "simple_history.middleware.HistoryRequestMiddleware",
]

ROOT_URLCONF = "CourseworkApp.urls"
WSGI_APPLICATION = "CourseworkApp.wsgi.application"

if os.getenv("DB_ENGINE", "sqlite") == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("DB_NAME", "coursework"),
            "USER": os.getenv("DB_USER", "coursework_user"),
            "PASSWORD": os.getenv("DB_PASSWORD", ""),
            "HOST": os.getenv("DB_HOST", "localhost"),
            "PORT": os.getenv("DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("DB_NAME", str(BASE_DIR / "coursework.sqlite3")),
            # SQLite has no row locks, so select_for_update() is a no-op there.
            # BEGIN IMMEDIATE takes the write lock up front and serializes
            # the read-merge-write of concurrent draft saves.
            "OPTIONS": {
                "transaction_mode": "IMMEDIATE",
                "timeout": int(os.getenv("DB_LOCK_TIMEOUT", "20")),
            },
            # a shared-cache in-memory database reports lock contention
            # instead of waiting on it; tests use a file
            "TEST": {"NAME": str(BASE_DIR / "test_coursework.sqlite3")},
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
AUTH_USER_MODEL = "users.Profile"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 50,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "CourseworkApp.core.exceptions.coursework_exception_handler",
    "DEFAULT_THROTTLE_RATES": {
        "draft_save": os.getenv("DRAFT_SAVE_RATE", "60/min"),
    },
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MINUTES", "30"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Coursework Assessment API",
    "DESCRIPTION": "Courses, assignments, submissions, AI assessment and final grading.",
    "VERSION": "1.0.0",
}

CACHES = {
    "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "simple": {
            "format": "%(levelname)s - %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "detailed",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "CourseworkApp": {
            "level": os.getenv("COURSEWORK_LOG_LEVEL", "INFO"),
            "handlers": ["console"],
            "propagate": False,
        },
        "django": {
            "level": "WARNING",
            "handlers": ["console"],
        },
    },
}

# Coursework behaviour
SUBMISSION_REQUIRE_ALL_ANSWERS = env_bool("SUBMISSION_REQUIRE_ALL_ANSWERS", True)
ASSESS_ON_SUBMIT = env_bool("ASSESS_ON_SUBMIT", False)
PASS_MARK = int(os.getenv("PASS_MARK", "50"))
INVITATION_TTL_DAYS = int(os.getenv("INVITATION_TTL_DAYS", "7"))

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
SCORING_TIMEOUT_SECONDS = float(os.getenv("SCORING_TIMEOUT_SECONDS", "30"))
SCORING_ORACLE_CLASS = os.getenv(
    "SCORING_ORACLE_CLASS",
    "CourseworkApp.domain.scoring.OpenAIScoringOracle"
    if OPENAI_API_KEY
    else "CourseworkApp.domain.scoring.RuleBasedScoringOracle",
)
