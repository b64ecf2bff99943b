"""Domain service functions for courses, enrollments and instructor assignments.

Enforces:
- Only course leaders (or admins) create courses; the creator becomes an instructor.
- Only admins change a course's status; archived -> active needs at least one instructor.
- Non-admin deletion needs creator + instructor and no active enrollments or assignments.
- Enrollments are status-transitioned, never deleted; capacity bounds active enrollments.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import QuerySet

from CourseworkApp.core.access import (
    course_resource,
    enrollment_resource,
    instructor_assignment_resource,
)
from CourseworkApp.core.choices import CourseStatus, EnrollmentStatus, InstructorRole, Role
from CourseworkApp.core.exceptions import InvalidState, ResourceNotFound, ValidationFailed
from CourseworkApp.core.policy import Action, CourseResource, authorize
from CourseworkApp.core.storage import guarded_delete
from CourseworkApp.courses.models import Course, Enrollment, InstructorAssignment

logger = logging.getLogger(__name__)

User = get_user_model()

COURSE_FIELDS = {
    "title", "description", "short_description", "status", "capacity",
    "duration_weeks", "start_date", "end_date",
}


def _validate_schedule(start_date, end_date) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationFailed("end_date cannot be before start_date.")


def list_courses(user) -> QuerySet[Course]:
    authorize(user, Action.READ, CourseResource(status=CourseStatus.ACTIVE))
    return Course.objects.visible_to(user).select_related("created_by").order_by("id")


def get_course(user, course_id: int) -> Course:
    """Fetch a course the user may read; absent and concealed look the same."""
    try:
        course = Course.objects.select_related("created_by").get(pk=course_id)
    except (Course.DoesNotExist, ValueError, TypeError):
        raise ResourceNotFound()
    authorize(user, Action.READ, course_resource(course))
    return course


@transaction.atomic
def create_course(creator, data: dict) -> Course:
    """Create a course and assign the creator as its instructor."""
    authorize(creator, Action.CREATE, CourseResource())
    unknown = set(data) - COURSE_FIELDS
    if unknown:
        raise ValidationFailed(f"Unknown course fields: {', '.join(sorted(unknown))}")
    if data.get("status", CourseStatus.DRAFT) != CourseStatus.DRAFT and creator.role != Role.ADMIN:
        raise ValidationFailed("New courses start as draft; an admin publishes them.")
    _validate_schedule(data.get("start_date"), data.get("end_date"))

    course = Course.objects.create(created_by=creator, **data)
    InstructorAssignment.objects.create(
        course=course, instructor=creator, role=InstructorRole.INSTRUCTOR, assigned_by=creator
    )
    logger.info("Course %s created by %s", course.pk, creator.pk)
    return course


@transaction.atomic
def update_course(user, course: Course, data: dict) -> Course:
    """Apply a partial update; status changes are admin-only and rule-checked."""
    course = Course.objects.select_for_update().get(pk=course.pk)
    changed = {name for name, value in data.items() if getattr(course, name) != value}
    authorize(user, Action.UPDATE, course_resource(course, changed))

    new_status = data.get("status", course.status)
    if (
        course.status == CourseStatus.ARCHIVED
        and new_status == CourseStatus.ACTIVE
        and not InstructorAssignment.objects.filter(course=course).exists()
    ):
        raise InvalidState(
            "An archived course needs at least one instructor before it can be reactivated.",
            code="NO_ACTIVE_INSTRUCTORS",
        )
    _validate_schedule(data.get("start_date", course.start_date), data.get("end_date", course.end_date))

    for name in changed:
        setattr(course, name, data[name])
    if changed:
        course.save()
        logger.info("Course %s updated by %s: %s", course.pk, user.pk, ", ".join(sorted(changed)))
    return course


@transaction.atomic
def delete_course(user, course: Course) -> None:
    """Delete a course that has no dependents; otherwise it must be archived."""
    authorize(user, Action.DELETE, course_resource(course))
    guarded_delete(Course.objects.filter(pk=course.pk), "course")
    logger.info("Course %s deleted by %s", course.pk, user.pk)


# ---------- Instructors ----------

@transaction.atomic
def assign_instructor(user, course: Course, instructor, role: str = InstructorRole.INSTRUCTOR) -> InstructorAssignment:
    authorize(user, Action.CREATE, instructor_assignment_resource(course, instructor.pk))
    if instructor.role not in (Role.COURSE_LEADER, Role.ADMIN):
        raise ValidationFailed("Only course leaders or admins can be assigned to teach a course.")
    assignment, created = InstructorAssignment.objects.select_for_update().get_or_create(
        course=course,
        instructor=instructor,
        defaults={"role": role, "assigned_by": user},
    )
    if not created and assignment.role != role:
        assignment.role = role
        assignment.save(update_fields=["role"])
    return assignment


@transaction.atomic
def remove_instructor(user, course: Course, instructor) -> None:
    authorize(user, Action.DELETE, instructor_assignment_resource(course, instructor.pk))
    remaining = InstructorAssignment.objects.filter(course=course).exclude(instructor=instructor)
    if course.status == CourseStatus.ACTIVE and not remaining.exists():
        raise InvalidState("An active course must keep at least one instructor.", code="NO_ACTIVE_INSTRUCTORS")
    guarded_delete(
        InstructorAssignment.objects.filter(course=course, instructor=instructor),
        "instructor assignment",
    )


# ---------- Enrollments ----------

def list_enrollments(user, course: Course) -> QuerySet[Enrollment]:
    authorize(user, Action.READ, enrollment_resource(course))
    return Enrollment.objects.filter(course=course).select_related("student").order_by("id")


def _ensure_capacity(course: Course) -> None:
    if course.capacity is None:
        return
    active = Enrollment.objects.filter(course=course, status=EnrollmentStatus.ACTIVE).count()
    if active >= course.capacity:
        raise InvalidState("Course has reached its capacity.", code="COURSE_FULL")


@transaction.atomic
def enroll_student(user, course: Course, student) -> Enrollment:
    """Enroll (or re-activate) a student; idempotent for an already active enrollment."""
    authorize(user, Action.CREATE, enrollment_resource(course, student.pk))
    if student.role != Role.STUDENT:
        raise ValidationFailed("Only students can be enrolled.")
    course = Course.objects.select_for_update().get(pk=course.pk)

    enrollment = Enrollment.objects.filter(course=course, student=student).first()
    if enrollment is None:
        _ensure_capacity(course)
        return Enrollment.objects.create(
            course=course, student=student, status=EnrollmentStatus.ACTIVE, enrolled_by=user
        )
    if enrollment.status != EnrollmentStatus.ACTIVE:
        _ensure_capacity(course)
        enrollment.status = EnrollmentStatus.ACTIVE
        enrollment.save(update_fields=["status", "updated_at"])
        logger.info("Enrollment %s re-activated by %s", enrollment.pk, user.pk)
    return enrollment


@transaction.atomic
def update_enrollment(
    user,
    course: Course,
    student_id: int,
    status: str | None = None,
    completion_percentage: int | None = None,
    final_grade: int | None = None,
) -> Enrollment:
    """Transition an enrollment and/or record progress for it."""
    authorize(user, Action.UPDATE, enrollment_resource(course, student_id))
    try:
        enrollment = Enrollment.objects.select_for_update().get(course=course, student_id=student_id)
    except Enrollment.DoesNotExist:
        raise ResourceNotFound()

    if status is not None and status != enrollment.status:
        if status not in EnrollmentStatus.values:
            raise ValidationFailed(f"Unknown enrollment status: {status}")
        if status == EnrollmentStatus.ACTIVE:
            _ensure_capacity(course)
        enrollment.status = status
    if completion_percentage is not None:
        if not 0 <= completion_percentage <= 100:
            raise ValidationFailed("completion_percentage must be between 0 and 100.")
        enrollment.completion_percentage = completion_percentage
    if final_grade is not None:
        if not 0 <= final_grade <= 100:
            raise ValidationFailed("final_grade must be between 0 and 100.")
        enrollment.final_grade = final_grade
    enrollment.save()
    return enrollment
