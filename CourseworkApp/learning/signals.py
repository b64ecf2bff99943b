"""Signal handlers for the learning domain (lateness on due-date change, assessment on submit)."""

import logging
from typing import Any

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import Signal, receiver

from CourseworkApp.core.exceptions import AlreadyAssessed, UpstreamFailure
from CourseworkApp.domain.services import assessment_service
from CourseworkApp.learning.models import Assignment, Submission

logger = logging.getLogger(__name__)

# Sent after the transaction that moved a submission to SUBMITTED commits.
submission_submitted = Signal()


@receiver(post_save, sender=Assignment)
def recompute_submission_lateness(
    sender: type[Assignment],
    instance: Assignment,
    created: bool,
    **kwargs: Any,
) -> None:
    """Recalculate is_late for submitted work when an assignment's due date changes."""
    if created:
        return
    due_date = instance.due_date
    subs = Submission.objects.filter(assignment=instance, submitted_at__isnull=False)
    if due_date is None:
        subs.filter(is_late=True).update(is_late=False)
        return
    subs.filter(submitted_at__gt=due_date, is_late=False).update(is_late=True)
    subs.filter(submitted_at__lte=due_date, is_late=True).update(is_late=False)


@receiver(submission_submitted)
def assess_on_submit(sender: Any, submission_id: int, **kwargs: Any) -> None:
    """Run the AI assessment right after submit when ASSESS_ON_SUBMIT is enabled.

    Oracle failures leave the submission SUBMITTED without an assessment; it can
    be re-triggered later with ``manage.py assess_pending``.
    """
    if not settings.ASSESS_ON_SUBMIT:
        return
    try:
        assessment_service.request_ai_assessment(submission_id)
    except UpstreamFailure as exc:
        logger.warning("Automatic assessment of submission %s deferred: %s", submission_id, exc.code)
    except AlreadyAssessed:
        logger.info("Submission %s already assessed; skipping", submission_id)
