"""Assessment aggregator: AI assessment (provisional) and final grade (authoritative).

- ``record_ai_assessment`` is write-once per submission; a second call raises
  ALREADY_ASSESSED and leaves the first result untouched.
- ``record_final_grade`` is an upsert keyed on the submission. Any instructor of
  the course may overwrite it (last-write-wins, revisions kept in history) and
  recording it moves the submission to GRADED.
- A failed or timed-out oracle call leaves the submission SUBMITTED with no
  assessment; retrying is a manual action.
"""

import logging
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction

from CourseworkApp.core.access import ai_assessment_resource, final_grade_resource, submission_resource_for
from CourseworkApp.core.choices import Confidence, GradeStatus, SubmissionStatus
from CourseworkApp.core.exceptions import (
    AlreadyAssessed,
    InvalidState,
    ResourceNotFound,
    UpstreamFailure,
    ValidationFailed,
)
from CourseworkApp.core.policy import Action, authorize
from CourseworkApp.core.storage import guarded_save
from CourseworkApp.domain.scoring import ScoringOracle, ScoringOracleError, ScoringRequest, get_scoring_oracle
from CourseworkApp.learning.models import AIAssessment, FinalGrade, Question, Submission

logger = logging.getLogger(__name__)

ASSESSABLE_STATES = (SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED)
_CONFIDENCE_ORDER = [Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH]


def _validate_score(score: Any) -> int:
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 100:
        raise ValidationFailed("Score must be between 0 and 100.")
    return round(score)


def _load_submission(submission_id: Any, for_update: bool = False) -> Submission:
    qs = Submission.objects.select_related("assignment__course", "student")
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=submission_id)
    except (Submission.DoesNotExist, ValueError, TypeError):
        raise ResourceNotFound()


def _ensure_submitted(submission: Submission) -> None:
    if submission.status not in ASSESSABLE_STATES:
        raise InvalidState("Submission has not been submitted yet.", code="SUBMISSION_NOT_SUBMITTED")


@transaction.atomic
def record_ai_assessment(
    submission_id: Any,
    score: Any,
    feedback: str,
    confidence: str,
    reasoning: str = "",
    model_name: str = "",
) -> AIAssessment:
    """Attach the oracle's verdict to a submitted submission (system path, write-once)."""
    submission = _load_submission(submission_id, for_update=True)
    _ensure_submitted(submission)
    score = _validate_score(score)
    if confidence not in Confidence.values:
        raise ValidationFailed(f"Unknown confidence: {confidence}")
    if AIAssessment.objects.filter(submission=submission).exists():
        raise AlreadyAssessed()

    try:
        with transaction.atomic():
            assessment = AIAssessment.objects.create(
                submission=submission,
                score=score,
                feedback=feedback,
                confidence=confidence,
                reasoning=reasoning,
                model_name=model_name,
            )
    except IntegrityError:
        raise AlreadyAssessed()
    logger.info("AI assessment recorded for submission %s (score=%s, %s)", submission.pk, score, confidence)
    return assessment


def _questions_for(submission: Submission) -> list[Question]:
    by_id = Question.objects.in_bulk(submission.assignment.question_ids)
    return [by_id[qid] for qid in submission.assignment.question_ids if qid in by_id]


def aggregate(results: list[tuple[int, Any]]) -> tuple[int, str, str, str]:
    """Combine per-question (points, ScoringResult) pairs.

    Score is the points-weighted mean, confidence the lowest reported.
    """
    total_points = sum(points for points, _ in results) or 1
    score = round(sum(points * result.score for points, result in results) / total_points)
    confidence = min((result.confidence for _, result in results), key=_CONFIDENCE_ORDER.index)
    feedback = "\n".join(f"Q{index}: {result.feedback}" for index, (_, result) in enumerate(results, start=1))
    reasoning = "\n".join(result.reasoning for _, result in results if result.reasoning)
    return score, feedback, confidence, reasoning


def request_ai_assessment(submission_id: Any, actor=None, oracle: ScoringOracle | None = None) -> AIAssessment:
    """Score every answer with the oracle and record the aggregate.

    Runs outside a transaction: the oracle calls are slow and the write at the
    end is its own atomic step.

    Raises:
        UpstreamFailure: the oracle failed or timed out; nothing was written.
        AlreadyAssessed: an assessment already exists.
    """
    submission = _load_submission(submission_id)
    if actor is not None:
        authorize(actor, Action.CREATE, ai_assessment_resource(submission))
    _ensure_submitted(submission)
    if AIAssessment.objects.filter(submission=submission).exists():
        raise AlreadyAssessed()

    oracle = oracle or get_scoring_oracle()
    results = []
    for question in _questions_for(submission):
        request = ScoringRequest(
            question_type=question.type,
            question=question.content,
            answer=submission.answers.get(str(question.pk), ""),
            expected_answer=question.expected_answer,
            rubric=question.rubric,
            options=list(question.options or []),
        )
        try:
            results.append((question.points, oracle.assess(request)))
        except ScoringOracleError as exc:
            logger.warning(
                "Scoring oracle failed for submission %s question %s: %s",
                submission.pk, question.pk, exc,
            )
            code = "ORACLE_TIMEOUT" if exc.timed_out else "ORACLE_FAILURE"
            raise UpstreamFailure(code=code) from exc

    if not results:
        raise InvalidState("Assignment has no questions to assess.", code="NOTHING_TO_ASSESS")
    score, feedback, confidence, reasoning = aggregate(results)
    return record_ai_assessment(
        submission.pk, score, feedback, confidence,
        reasoning=reasoning, model_name=getattr(oracle, "model_name", ""),
    )


@transaction.atomic
def record_final_grade(
    actor,
    submission_id: Any,
    score: Any,
    comments: str = "",
    status: str | None = None,
) -> FinalGrade:
    """Create or overwrite the final grade and mark the submission GRADED.

    ``status`` defaults to pass/fail against ``settings.PASS_MARK``.
    """
    submission = _load_submission(submission_id, for_update=True)
    authorize(actor, Action.UPDATE, final_grade_resource(submission))
    _ensure_submitted(submission)
    score = _validate_score(score)
    if status is None:
        status = GradeStatus.PASS if score >= settings.PASS_MARK else GradeStatus.FAIL
    elif status not in GradeStatus.values:
        raise ValidationFailed(f"Unknown grade status: {status}")

    grade, created = FinalGrade.objects.select_for_update().get_or_create(
        submission=submission,
        defaults={"graded_by": actor, "score": score, "comments": comments, "status": status},
    )
    if not created:
        grade.score = score
        grade.comments = comments
        grade.status = status
        grade.graded_by = actor
        guarded_save(grade, ["score", "comments", "status", "graded_by"], "final grade", user=actor)
    if submission.status != SubmissionStatus.GRADED:
        submission.status = SubmissionStatus.GRADED
        guarded_save(submission, ["status"], "submission", user=actor)
    logger.info("Final grade %s for submission %s by %s (score=%s)", "recorded" if created else "revised",
                submission.pk, actor.pk, score)
    return grade


def get_outcome(actor, submission_id: Any) -> dict[str, Any]:
    """Return the submission with its provisional and authoritative results."""
    submission = _load_submission(submission_id)
    authorize(actor, Action.READ, submission_resource_for(submission))
    ai_assessment = AIAssessment.objects.filter(submission=submission).first()
    final_grade = FinalGrade.objects.filter(submission=submission).select_related("graded_by").first()
    if final_grade is not None:
        authoritative = "final_grade"
    elif ai_assessment is not None:
        authoritative = "ai_assessment"
    else:
        authoritative = None
    return {
        "submission": submission,
        "ai_assessment": ai_assessment,
        "final_grade": final_grade,
        "authoritative": authoritative,
    }
