"""Guards for conditional ORM mutations.

``QuerySet.update()`` and ``QuerySet.delete()`` report success even when their
filter matched nothing. Every conditional mutation is routed through
``ensure_rows_affected`` so a zero-row result surfaces as an error.
"""

import logging

from django.db.models import Model, QuerySet
from django.utils import timezone
from simple_history.utils import bulk_update_with_history

from CourseworkApp.core.exceptions import NoRowsAffected

logger = logging.getLogger(__name__)


def ensure_rows_affected(count: int, what: str = "record", detail: str | None = None) -> int:
    """Return ``count`` unchanged; raise NoRowsAffected when it is zero."""
    if count < 1:
        logger.warning("Guarded mutation on %s affected no rows", what)
        raise NoRowsAffected(detail, what=what)
    return count


def guarded_update(queryset: QuerySet, what: str = "record", **values) -> int:
    """``queryset.update(**values)`` that refuses to succeed on zero rows."""
    return ensure_rows_affected(queryset.update(**values), what)


def guarded_delete(queryset: QuerySet, what: str = "record") -> int:
    """``queryset.delete()`` that refuses to succeed on zero rows."""
    deleted, _per_model = queryset.delete()
    return ensure_rows_affected(deleted, what)


def guarded_save(instance: Model, fields: list[str], what: str = "record", user=None) -> int:
    """Write ``fields`` of an already-stored instance, keeping its history.

    Unlike ``instance.save()``, which falls back to an INSERT when the UPDATE
    matched nothing, a row that vanished since it was read raises
    NoRowsAffected. ``updated_at`` is stamped here because bulk updates skip
    ``auto_now``.
    """
    if hasattr(instance, "updated_at"):
        instance.updated_at = timezone.now()
        fields = [*fields, "updated_at"]
    rows = bulk_update_with_history([instance], type(instance), fields, default_user=user)
    return ensure_rows_affected(rows, what)
