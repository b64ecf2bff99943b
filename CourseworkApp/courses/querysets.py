"""Custom querysets encapsulating visibility and role-based filtering for courses and coursework."""

from django.db.models import QuerySet, Q
from typing import Self


from CourseworkApp.core.choices import ApprovalStatus, CourseStatus, EnrollmentStatus, Role, SubmissionStatus


def _sees_everything(user) -> bool:
    return user.role == Role.ADMIN and user.status == ApprovalStatus.APPROVED


def _can_list(user) -> bool:
    return bool(user and user.is_authenticated and user.status == ApprovalStatus.APPROVED)


class CourseQuerySet(QuerySet):
    """QuerySet with helpers for course visibility and the instructor/enrollment graph."""

    def active(self) -> Self:
        return self.filter(status=CourseStatus.ACTIVE)

    def taught_by(self, user) -> Self:
        """Courses where the user holds any instructor assignment."""
        return self.filter(instructor_assignments__instructor=user).distinct()

    def attended_by(self, user) -> Self:
        """Courses where the user has an active enrollment."""
        return self.filter(
            enrollments__student=user, enrollments__status=EnrollmentStatus.ACTIVE
        ).distinct()

    def visible_to(self, user) -> Self:
        """Courses visible to user:
        - Admin: all
        - Others: active courses OR taught OR actively enrolled
        - Anonymous / unapproved: none
        """
        if not _can_list(user):
            return self.none()
        if _sees_everything(user):
            return self.all()
        return self.filter(
            Q(status=CourseStatus.ACTIVE) |
            Q(instructor_assignments__instructor=user) |
            Q(enrollments__student=user, enrollments__status=EnrollmentStatus.ACTIVE)
        ).distinct()


class EnrollmentQuerySet(QuerySet):
    def active(self) -> Self:
        return self.filter(status=EnrollmentStatus.ACTIVE)

    def visible_to(self, user) -> Self:
        """Own enrollments plus every enrollment in courses the user teaches."""
        if not _can_list(user):
            return self.none()
        if _sees_everything(user):
            return self.all()
        return self.filter(
            Q(student=user) | Q(course__instructor_assignments__instructor=user)
        ).distinct()


class QuestionQuerySet(QuerySet):
    """QuerySet helpers for question visibility."""

    def global_only(self) -> Self:
        return self.filter(course__isnull=True)

    def visible_to(self, user) -> Self:
        """Questions visible to user:
        - Global questions: everyone approved
        - Course questions: instructors and actively enrolled students
        """
        if not _can_list(user):
            return self.none()
        if _sees_everything(user):
            return self.all()
        return self.filter(
            Q(course__isnull=True) |
            Q(course__instructor_assignments__instructor=user) |
            Q(course__enrollments__student=user,
              course__enrollments__status=EnrollmentStatus.ACTIVE)
        ).distinct()


class AssignmentQuerySet(QuerySet):
    """QuerySet helpers for assignment visibility."""

    def visible_to(self, user) -> Self:
        if not _can_list(user):
            return self.none()
        if _sees_everything(user):
            return self.all()
        return self.filter(
            Q(course__instructor_assignments__instructor=user) |
            Q(course__enrollments__student=user,
              course__enrollments__status=EnrollmentStatus.ACTIVE)
        ).distinct()


class SubmissionQuerySet(QuerySet):
    """QuerySet helpers for filtering submissions by role."""

    def for_instructor(self, user) -> Self:
        """Submissions in courses where user holds an instructor assignment."""
        return self.filter(assignment__course__instructor_assignments__instructor=user).distinct()

    def for_student(self, user) -> Self:
        """Submissions belonging to the student."""
        return self.filter(student=user)

    def visible_to(self, user) -> Self:
        """Students see their own; staff see submissions of courses they teach; admins all."""
        if not _can_list(user):
            return self.none()
        if _sees_everything(user):
            return self.all()
        if user.role == Role.STUDENT:
            return self.for_student(user)
        return self.filter(
            Q(student=user) | Q(assignment__course__instructor_assignments__instructor=user)
        ).distinct()

    def awaiting_assessment(self) -> Self:
        """Submitted work that has no AI assessment yet."""
        return self.filter(status=SubmissionStatus.SUBMITTED, ai_assessment__isnull=True)
