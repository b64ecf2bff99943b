"""Learning domain models: Question, Assignment, Submission, AIAssessment, FinalGrade."""

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator

from CourseworkApp.courses.models import Course
from CourseworkApp.core.choices import Confidence, GradeStatus, QuestionType, SubmissionStatus
from CourseworkApp.courses.querysets import AssignmentQuerySet, QuestionQuerySet, SubmissionQuerySet

from simple_history.models import HistoricalRecords

User = settings.AUTH_USER_MODEL

SCORE_VALIDATORS = [MinValueValidator(0), MaxValueValidator(100)]


class Question(models.Model):
    """A question, either scoped to one course or global (``course`` is null)."""
    title = models.CharField(max_length=255)
    content = models.TextField()
    type = models.CharField(max_length=32, choices=QuestionType.choices)
    course = models.ForeignKey(Course, null=True, blank=True, on_delete=models.CASCADE, related_name="questions")
    rubric = models.TextField(blank=True)
    options = models.JSONField(default=list, blank=True)
    expected_answer = models.TextField(blank=True)
    points = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_questions")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = QuestionQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.title} [{self.type}]"


class Assignment(models.Model):
    """An ordered set of questions with a due date, always owned by one course."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="assignments")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    question_ids = models.JSONField(default=list)
    due_date = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_assignments")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = AssignmentQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.title} (#{self.pk})"


class Submission(models.Model):
    """A student's answer set for one assignment (unique per assignment+student).

    ``answers`` maps question-id strings to answer text. The status only moves
    forward: DRAFT -> SUBMITTED -> GRADED.
    """
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="submissions")
    answers = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=16, choices=SubmissionStatus.choices, default=SubmissionStatus.DRAFT)
    submitted_at = models.DateTimeField(null=True, blank=True)
    is_late = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student"], name="uq_assignment_student"),
        ]

    def __str__(self) -> str:
        return f"Submission({self.student} -> {self.assignment}, {self.status})"


class AIAssessment(models.Model):
    """Provisional score produced by the scoring oracle; written once per submission."""
    submission = models.OneToOneField(Submission, on_delete=models.CASCADE, related_name="ai_assessment")
    score = models.PositiveSmallIntegerField(validators=SCORE_VALIDATORS)
    feedback = models.TextField(blank=True)
    confidence = models.CharField(max_length=8, choices=Confidence.choices)
    reasoning = models.TextField(blank=True)
    model_name = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)


class FinalGrade(models.Model):
    """An instructor's authoritative grade (0–100); revisions are last-write-wins."""
    submission = models.OneToOneField(Submission, on_delete=models.CASCADE, related_name="final_grade")
    graded_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="assigned_grades")
    score = models.PositiveSmallIntegerField(validators=SCORE_VALIDATORS)
    comments = models.TextField(blank=True)
    status = models.CharField(max_length=8, choices=GradeStatus.choices)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()
