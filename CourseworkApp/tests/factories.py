"""Builders shared by the test modules."""

from model_bakery import baker
from rest_framework.test import APIClient

from CourseworkApp.core.choices import ApprovalStatus, CourseStatus, EnrollmentStatus, QuestionType, Role
from CourseworkApp.courses.models import Course, Enrollment, InstructorAssignment
from CourseworkApp.learning.models import Assignment, Question

TOKEN_URL = "/api/v1/auth/token/"
PASSWORD = "pass1234"


def make_profile(role=Role.STUDENT, status=ApprovalStatus.APPROVED, **kwargs):
    u = baker.make("users.Profile", role=role, status=status, is_active=True, **kwargs)
    u.set_password(PASSWORD)
    u.save()
    return u


def login(user):
    client = APIClient()
    token = client.post(TOKEN_URL, {"email": user.email, "password": PASSWORD}, format="json").data["access"]
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


def make_course(leader, status=CourseStatus.ACTIVE, **kwargs):
    kwargs.setdefault("capacity", None)
    course = baker.make(Course, created_by=leader, status=status, **kwargs)
    baker.make(InstructorAssignment, course=course, instructor=leader, assigned_by=leader)
    return course


def enroll(course, student, status=EnrollmentStatus.ACTIVE):
    return baker.make(Enrollment, course=course, student=student, status=status)


def make_assignment(course, creator, n_questions=2, **kwargs):
    questions = [
        baker.make(
            Question,
            course=course,
            created_by=creator,
            type=QuestionType.SHORT_TEXT,
            points=1,
            options=[],
            expected_answer="photosynthesis converts light energy",
        )
        for _ in range(n_questions)
    ]
    return baker.make(
        Assignment,
        course=course,
        created_by=creator,
        question_ids=[q.pk for q in questions],
        due_date=None,
        **kwargs,
    )


