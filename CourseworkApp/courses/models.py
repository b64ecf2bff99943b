"""Course domain models: Course, Enrollment, InstructorAssignment."""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from simple_history.models import HistoricalRecords

from CourseworkApp.core.choices import CourseStatus, EnrollmentStatus, InstructorRole
from CourseworkApp.courses.querysets import CourseQuerySet, EnrollmentQuerySet


User = settings.AUTH_USER_MODEL

class Course(models.Model):
    """A course created by a course leader and taught by its instructor set.

    Fields:
        title / description / short_description: Display text.
        status: CourseStatus; only admins may change it after creation.
        created_by: Creator; the only non-admin allowed to delete the course.
        capacity: Maximum number of active enrollments (None = unlimited).
        duration_weeks, start_date, end_date: Schedule window.
        history: Audit history (django-simple-history).
    """
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    short_description = models.CharField(max_length=300, blank=True)
    status = models.CharField(max_length=16, choices=CourseStatus.choices, default=CourseStatus.DRAFT)
    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_courses")
    capacity = models.PositiveIntegerField(null=True, blank=True)
    duration_weeks = models.PositiveSmallIntegerField(null=True, blank=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = CourseQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.title} (#{self.pk})"


class Enrollment(models.Model):
    """A student's participation in a course.

    Never deleted; only status-transitioned so the history keeps the audit trail.
    Constraints:
        uq_enrollment_course_student: one enrollment per (course, student).
    """
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="enrollments")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="enrollments")
    status = models.CharField(max_length=16, choices=EnrollmentStatus.choices, default=EnrollmentStatus.ACTIVE)
    completion_percentage = models.PositiveSmallIntegerField(
        default=0, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    final_grade = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    enrolled_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = EnrollmentQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["course", "student"], name="uq_enrollment_course_student"),
        ]

    def __str__(self) -> str:
        return f"{self.student} -> {self.course} ({self.status})"


class InstructorAssignment(models.Model):
    """Staff member teaching a course in a given capacity (instructor, assistant, grader)."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="instructor_assignments")
    instructor = models.ForeignKey(User, on_delete=models.CASCADE, related_name="instructor_assignments")
    role = models.CharField(max_length=16, choices=InstructorRole.choices, default=InstructorRole.INSTRUCTOR)
    assigned_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    history = HistoricalRecords()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["course", "instructor"], name="uq_course_instructor"),
        ]

    def __str__(self) -> str:
        return f"{self.instructor} teaches {self.course} ({self.role})"
