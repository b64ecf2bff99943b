"""Submission state machine: draft accumulation and the one-way submit transition.

States:
    DRAFT (created on the first answer save) -> SUBMITTED (explicit, once) -> GRADED
    (set by the assessment aggregator when a final grade is recorded).

Draft saves are upserts keyed on (assignment, student). The answer mapping is
merged key-wise against the row as locked inside the transaction, so saves that
touch disjoint questions never lose each other's answers. Two saves of the same
question are last-write-wins; there is no conflict detection.

Nothing here moves a submission back to DRAFT.
"""

import logging
from typing import Any

from django.conf import settings
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from CourseworkApp.core.access import submission_resource, submission_resource_for
from CourseworkApp.core.choices import SubmissionStatus
from CourseworkApp.core.exceptions import (
    IncompleteSubmission,
    InvalidAssignment,
    ResourceNotFound,
    SubmissionLocked,
    ValidationFailed,
)
from CourseworkApp.core.policy import Action, SubmissionResource, CourseResource, authorize
from CourseworkApp.core.storage import guarded_save, guarded_update
from CourseworkApp.learning.models import Assignment, Submission
from CourseworkApp.learning.signals import submission_submitted

logger = logging.getLogger(__name__)


def _get_assignment(assignment_id: Any) -> Assignment:
    try:
        return Assignment.objects.select_related("course").get(pk=assignment_id)
    except (Assignment.DoesNotExist, ValueError, TypeError):
        raise InvalidAssignment()


def _normalize_delta(assignment: Assignment, answer_delta: dict) -> dict[str, str]:
    """Validate answer keys against the assignment and coerce them to strings."""
    if not isinstance(answer_delta, dict):
        raise ValidationFailed("answers must be an object mapping question ids to text.")
    allowed = {str(qid) for qid in assignment.question_ids}
    delta = {}
    for key, value in answer_delta.items():
        key = str(key)
        if key not in allowed:
            raise ValidationFailed(
                "Answers reference questions that are not part of this assignment.",
                invalid_question_ids=sorted(set(map(str, answer_delta)) - allowed),
            )
        if value is not None and not isinstance(value, str):
            raise ValidationFailed(f"Answer for question {key} must be text.")
        delta[key] = value or ""
    return delta


def missing_question_ids(assignment: Assignment, answers: dict[str, str]) -> list[int]:
    return [
        qid for qid in assignment.question_ids
        if not str(answers.get(str(qid), "") or "").strip()
    ]


def list_submissions(actor, assignment_id: Any = None) -> QuerySet[Submission]:
    """Submissions scoped by role: own for students, taught courses for staff, all for admins."""
    authorize(actor, Action.READ, SubmissionResource(course=CourseResource(), student_id=actor.pk))
    qs = Submission.objects.visible_to(actor).select_related(
        "assignment__course", "student", "ai_assessment", "final_grade"
    )
    if assignment_id not in (None, ""):
        try:
            qs = qs.filter(assignment_id=int(assignment_id))
        except (TypeError, ValueError):
            raise ValidationFailed("assignment_id must be an integer.")
    return qs.order_by("-created_at")


def get_submission(actor, submission_id: Any) -> Submission:
    try:
        submission = Submission.objects.select_related(
            "assignment__course", "student"
        ).get(pk=submission_id)
    except (Submission.DoesNotExist, ValueError, TypeError):
        raise ResourceNotFound()
    authorize(actor, Action.READ, submission_resource_for(submission))
    return submission


@transaction.atomic
def upsert_draft(actor, assignment_id: Any, answer_delta: dict) -> Submission:
    """Create the actor's draft or merge ``answer_delta`` into it.

    Raises:
        InvalidAssignment: assignment does not exist.
        ValidationFailed: delta references questions outside the assignment.
        SubmissionLocked: the submission has already been submitted.
        RoleForbidden / NotEnrolled / ResourceNotFound: policy denials.
    """
    assignment = _get_assignment(assignment_id)
    existing = Submission.objects.filter(assignment=assignment, student=actor).first()
    action = Action.UPDATE if existing else Action.CREATE
    authorize(actor, action, submission_resource(assignment, actor.pk, existing))
    delta = _normalize_delta(assignment, answer_delta)

    submission, created = Submission.objects.select_for_update().get_or_create(
        assignment=assignment,
        student=actor,
        defaults={"answers": delta, "status": SubmissionStatus.DRAFT},
    )
    if created:
        logger.info("Draft %s created for assignment %s by %s", submission.pk, assignment.pk, actor.pk)
        return submission

    if submission.status != SubmissionStatus.DRAFT:
        raise SubmissionLocked()
    submission.answers = {**submission.answers, **delta}
    guarded_save(submission, ["answers"], "submission", user=actor)
    return submission


@transaction.atomic
def submit(actor, assignment_id: Any) -> Submission:
    """Move the actor's draft to SUBMITTED once every required answer is present.

    With ``SUBMISSION_REQUIRE_ALL_ANSWERS`` disabled, a single non-empty answer
    is enough. Sends ``submission_submitted`` after the transaction commits.
    """
    assignment = _get_assignment(assignment_id)
    submission = (
        Submission.objects.select_for_update()
        .filter(assignment=assignment, student=actor)
        .first()
    )
    action = Action.UPDATE if submission else Action.CREATE
    authorize(actor, action, submission_resource(assignment, actor.pk, submission))

    answers = submission.answers if submission else {}
    missing = missing_question_ids(assignment, answers)
    if settings.SUBMISSION_REQUIRE_ALL_ANSWERS:
        if missing:
            raise IncompleteSubmission(missing)
    elif len(missing) == len(assignment.question_ids):
        raise IncompleteSubmission(missing, "At least one question must be answered before submitting.")

    if submission is None:
        # only reachable for an assignment with no questions
        raise IncompleteSubmission(missing, "Nothing has been saved for this assignment yet.")
    if submission.status != SubmissionStatus.DRAFT:
        raise SubmissionLocked()

    now = timezone.now()
    guarded_update(
        Submission.objects.filter(pk=submission.pk, status=SubmissionStatus.DRAFT),
        "submission",
        status=SubmissionStatus.SUBMITTED,
        submitted_at=now,
        is_late=bool(assignment.due_date and now > assignment.due_date),
        updated_at=now,
    )
    submission.refresh_from_db()
    logger.info("Submission %s submitted by %s", submission.pk, actor.pk)

    submission_id = submission.pk
    transaction.on_commit(
        lambda: submission_submitted.send(sender=Submission, submission_id=submission_id)
    )
    return submission
