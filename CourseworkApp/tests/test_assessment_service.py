from io import StringIO

import pytest
from django.core.management import call_command

from CourseworkApp.core.choices import Confidence, GradeStatus, SubmissionStatus
from CourseworkApp.core.exceptions import (
    AlreadyAssessed,
    InvalidState,
    ResourceNotFound,
    RoleForbidden,
    UpstreamFailure,
    ValidationFailed,
)
from CourseworkApp.domain.scoring import ScoringResult
from CourseworkApp.domain.services import assessment_service, course_service, submission_service
from CourseworkApp.learning.models import AIAssessment, FinalGrade
from CourseworkApp.tests.factories import enroll, make_assignment, make_course
from CourseworkApp.tests.fakes import FailingScoringOracle, FixedScoringOracle, TimingOutScoringOracle

pytestmark = pytest.mark.django_db


@pytest.fixture
def submitted(course, assignment, student):
    enroll(course, student)
    submission_service.upsert_draft(student, assignment.id, {str(q): f"answer {q}" for q in assignment.question_ids})
    return submission_service.submit(student, assignment.id)


def test_second_ai_assessment_is_rejected_and_first_kept(submitted):
    first = assessment_service.record_ai_assessment(submitted.id, 72, "Solid", Confidence.MEDIUM)
    with pytest.raises(AlreadyAssessed):
        assessment_service.record_ai_assessment(submitted.id, 10, "Overwrite", Confidence.LOW)
    stored = AIAssessment.objects.get(submission=submitted)
    assert stored.pk == first.pk
    assert (stored.score, stored.feedback, stored.confidence) == (72, "Solid", Confidence.MEDIUM)


def test_ai_assessment_needs_a_submitted_submission(course, assignment, student):
    enroll(course, student)
    draft = submission_service.upsert_draft(student, assignment.id, {str(assignment.question_ids[0]): "x"})
    with pytest.raises(InvalidState):
        assessment_service.record_ai_assessment(draft.id, 50, "Too early", Confidence.LOW)


def test_ai_assessment_validates_score(submitted):
    with pytest.raises(ValidationFailed):
        assessment_service.record_ai_assessment(submitted.id, 101, "x", Confidence.LOW)


def test_request_ai_assessment_scores_every_question(submitted, leader):
    oracle = FixedScoringOracle(score=60)
    assessment = assessment_service.request_ai_assessment(submitted.id, actor=leader, oracle=oracle)
    assert len(oracle.calls) == 2
    assert assessment.score == 60
    assert assessment.model_name == "fixed"
    assert assessment.feedback.startswith("Q1: ")
    submitted.refresh_from_db()
    assert submitted.status == SubmissionStatus.SUBMITTED


@pytest.mark.parametrize("oracle_cls, code", [
    (FailingScoringOracle, "ORACLE_FAILURE"),
    (TimingOutScoringOracle, "ORACLE_TIMEOUT"),
])
def test_oracle_failure_leaves_submission_unassessed(submitted, leader, oracle_cls, code):
    with pytest.raises(UpstreamFailure) as excinfo:
        assessment_service.request_ai_assessment(submitted.id, actor=leader, oracle=oracle_cls())
    assert excinfo.value.code == code
    submitted.refresh_from_db()
    assert submitted.status == SubmissionStatus.SUBMITTED
    assert not AIAssessment.objects.filter(submission=submitted).exists()


def test_students_cannot_trigger_assessment(submitted, student):
    with pytest.raises(RoleForbidden):
        assessment_service.request_ai_assessment(submitted.id, actor=student, oracle=FixedScoringOracle())


def test_aggregate_weights_by_points_and_keeps_lowest_confidence():
    score, feedback, confidence, _ = assessment_service.aggregate([
        (1, ScoringResult(100, "great", Confidence.HIGH)),
        (3, ScoringResult(20, "weak", Confidence.MEDIUM)),
    ])
    assert score == 40
    assert confidence == Confidence.MEDIUM
    assert feedback == "Q1: great\nQ2: weak"


def test_final_grade_marks_submission_graded(submitted, leader):
    grade = assessment_service.record_final_grade(leader, submitted.id, 75, "Good work")
    assert grade.status == GradeStatus.PASS
    submitted.refresh_from_db()
    assert submitted.status == SubmissionStatus.GRADED


def test_final_grade_is_last_write_wins(submitted, course, leader, other_leader):
    course_service.assign_instructor(leader, course, other_leader)
    assessment_service.record_final_grade(leader, submitted.id, 80)
    assessment_service.record_final_grade(other_leader, submitted.id, 30, "Revised")
    grade = FinalGrade.objects.get(submission=submitted)
    assert (grade.score, grade.status, grade.graded_by) == (30, GradeStatus.FAIL, other_leader)
    assert FinalGrade.objects.filter(submission=submitted).count() == 1
    assert grade.history.count() == 2


def test_instructor_of_another_course_cannot_grade(submitted, other_leader):
    make_course(other_leader)
    with pytest.raises(ResourceNotFound):
        assessment_service.record_final_grade(other_leader, submitted.id, 90)
    assert not FinalGrade.objects.filter(submission=submitted).exists()


def test_grading_a_draft_is_invalid(course, leader, student):
    enroll(course, student)
    assignment = make_assignment(course, leader, n_questions=1)
    draft = submission_service.upsert_draft(student, assignment.id, {str(assignment.question_ids[0]): "x"})
    with pytest.raises(InvalidState):
        assessment_service.record_final_grade(leader, draft.id, 50)


def test_outcome_prefers_final_grade(submitted, leader, student):
    assessment_service.record_ai_assessment(submitted.id, 55, "AI says", Confidence.LOW)
    outcome = assessment_service.get_outcome(student, submitted.id)
    assert outcome["authoritative"] == "ai_assessment"

    assessment_service.record_final_grade(leader, submitted.id, 65)
    outcome = assessment_service.get_outcome(student, submitted.id)
    assert outcome["authoritative"] == "final_grade"
    assert outcome["final_grade"].score == 65
    assert outcome["ai_assessment"].score == 55


def test_assess_pending_command(settings, submitted):
    settings.SCORING_ORACLE_CLASS = "CourseworkApp.tests.fakes.FixedScoringOracle"
    out = StringIO()
    call_command("assess_pending", stdout=out)
    assert "Assessed 1 submissions, 0 failed" in out.getvalue()
    assert AIAssessment.objects.filter(submission=submitted).exists()


def test_assess_on_submit(settings, course, assignment, student, django_capture_on_commit_callbacks):
    settings.ASSESS_ON_SUBMIT = True
    settings.SCORING_ORACLE_CLASS = "CourseworkApp.tests.fakes.FixedScoringOracle"
    enroll(course, student)
    submission_service.upsert_draft(student, assignment.id, {str(q): "x" for q in assignment.question_ids})
    with django_capture_on_commit_callbacks(execute=True):
        submission = submission_service.submit(student, assignment.id)
    assert AIAssessment.objects.get(submission=submission).score == 80


def test_assess_on_submit_defers_on_oracle_failure(
    settings, course, assignment, student, django_capture_on_commit_callbacks
):
    settings.ASSESS_ON_SUBMIT = True
    settings.SCORING_ORACLE_CLASS = "CourseworkApp.tests.fakes.FailingScoringOracle"
    enroll(course, student)
    submission_service.upsert_draft(student, assignment.id, {str(q): "x" for q in assignment.question_ids})
    with django_capture_on_commit_callbacks(execute=True):
        submission = submission_service.submit(student, assignment.id)
    submission.refresh_from_db()
    assert submission.status == SubmissionStatus.SUBMITTED
    assert not AIAssessment.objects.filter(submission=submission).exists()
