"""Enrollment graph helpers: build policy descriptors from the ORM."""

from typing import Any

from CourseworkApp.core.choices import EnrollmentStatus
from CourseworkApp.core.policy import (
    AIAssessmentResource,
    AssignmentResource,
    CourseResource,
    EnrollmentResource,
    FinalGradeResource,
    InstructorAssignmentResource,
    InvitationResource,
    ProfileResource,
    QuestionResource,
    SubmissionResource,
)
from CourseworkApp.courses.models import Course, Enrollment, InstructorAssignment
from CourseworkApp.learning.models import AIAssessment, Assignment, FinalGrade, Question, Submission


def course_from(obj: Any) -> Course | None:
    if obj is None:
        return None
    if isinstance(obj, Course):
        return obj
    if isinstance(obj, Submission):
        return obj.assignment.course
    if isinstance(obj, (AIAssessment, FinalGrade)):
        return obj.submission.assignment.course
    return getattr(obj, "course", None)


def instructor_ids(course: Course) -> frozenset[int]:
    return frozenset(
        InstructorAssignment.objects.filter(course=course).values_list("instructor_id", flat=True)
    )


def is_instructor(user, course: Course | None) -> bool:
    if not (user and course):
        return False
    return InstructorAssignment.objects.filter(course=course, instructor=user).exists()


def is_active_student(user, course: Course | None) -> bool:
    if not (user and course):
        return False
    return Enrollment.objects.filter(
        course=course, student=user, status=EnrollmentStatus.ACTIVE
    ).exists()


def course_resource(course: Course, changed_fields: set[str] | None = None) -> CourseResource:
    """Snapshot of a course's instructor set, enrollments and dependents."""
    enrollments = list(Enrollment.objects.filter(course=course).values_list("student_id", "status"))
    return CourseResource(
        course_id=course.pk,
        status=course.status,
        creator_id=course.created_by_id,
        instructor_ids=instructor_ids(course),
        active_student_ids=frozenset(
            sid for sid, status in enrollments if status == EnrollmentStatus.ACTIVE
        ),
        enrolled_student_ids=frozenset(sid for sid, _status in enrollments),
        assignment_count=course.assignments.count(),
        changed_fields=frozenset(changed_fields or ()),
    )


def enrollment_resource(course: Course, student_id: int | None = None) -> EnrollmentResource:
    return EnrollmentResource(course=course_resource(course), student_id=student_id)


def instructor_assignment_resource(course: Course, instructor_id: int | None = None) -> InstructorAssignmentResource:
    return InstructorAssignmentResource(course=course_resource(course), instructor_id=instructor_id)


def question_resource(question: Question | None = None, course: Course | None = None) -> QuestionResource:
    """Descriptor for an existing question, or for a new one scoped to ``course``."""
    if question is not None:
        course = question.course
    return QuestionResource(
        course=course_resource(course) if course is not None else None,
        creator_id=question.created_by_id if question is not None else None,
    )


def assignment_resource(assignment_or_course: Assignment | Course) -> AssignmentResource:
    return AssignmentResource(course=course_resource(course_from(assignment_or_course)))


def submission_resource(
    assignment: Assignment,
    student_id: int,
    submission: Submission | None = None,
) -> SubmissionResource:
    return SubmissionResource(
        course=course_resource(assignment.course),
        student_id=student_id,
        status=submission.status if submission is not None else None,
    )


def submission_resource_for(submission: Submission) -> SubmissionResource:
    return submission_resource(submission.assignment, submission.student_id, submission)


def ai_assessment_resource(submission: Submission) -> AIAssessmentResource:
    return AIAssessmentResource(submission=submission_resource_for(submission))


def final_grade_resource(submission: Submission) -> FinalGradeResource:
    return FinalGradeResource(submission=submission_resource_for(submission))


def profile_resource(profile, changed_fields: set[str] | None = None) -> ProfileResource:
    return ProfileResource(
        profile_id=profile.pk,
        role=profile.role,
        changed_fields=frozenset(changed_fields or ()),
    )


def invitation_resource(invitation=None, role: str | None = None) -> InvitationResource:
    """Descriptor for an existing invitation, or for a new one with ``role``."""
    if invitation is None:
        return InvitationResource(role=role)
    return InvitationResource(
        invited_by_id=invitation.invited_by_id,
        role=invitation.role,
        used=invitation.is_used,
    )
