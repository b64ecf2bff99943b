"""Domain service functions for questions and assignments.

Question rules:
    - Course questions are managed by the course's instructors; global ones by course leaders.
    - A question's type is frozen once any submission holds an answer for it.
Assignment rules:
    - Every assignment belongs to one course; its questions are global or from that course.
    - Assignments with submissions cannot be deleted.
"""

from typing import Any

from django.db import transaction
from django.db.models import QuerySet

from CourseworkApp.core.access import assignment_resource, question_resource
from CourseworkApp.core.choices import QuestionType
from CourseworkApp.core.exceptions import InvalidState, ResourceNotFound, ValidationFailed
from CourseworkApp.core.policy import Action, QuestionResource, authorize
from CourseworkApp.core.storage import guarded_delete
from CourseworkApp.courses.models import Course
from CourseworkApp.learning.models import Assignment, Question, Submission


def _validate_options(question_type: str, options: list[str] | None) -> list[str]:
    options = list(options or [])
    if question_type == QuestionType.MULTIPLE_CHOICE and len(options) < 2:
        raise ValidationFailed("Multiple choice questions need at least two options.")
    if question_type != QuestionType.MULTIPLE_CHOICE and options:
        raise ValidationFailed("Options are only allowed for multiple choice questions.")
    return options


def is_question_answered(question: Question) -> bool:
    """True when any submission has an answer keyed by this question's id."""
    return Submission.objects.filter(answers__has_key=str(question.pk)).exists()


def is_question_assigned(question: Question) -> bool:
    # JSON containment lookups are not portable to SQLite; assignment lists are short.
    return any(
        question.pk in ids for ids in Assignment.objects.values_list("question_ids", flat=True)
    )


def list_questions(user, course: Course | None = None) -> QuerySet[Question]:
    authorize(user, Action.READ, QuestionResource())
    qs = Question.objects.visible_to(user).select_related("course")
    if course is not None:
        qs = qs.filter(course=course)
    return qs.order_by("id")


def get_question(user, question_id: int) -> Question:
    try:
        question = Question.objects.select_related("course").get(pk=question_id)
    except (Question.DoesNotExist, ValueError, TypeError):
        raise ResourceNotFound()
    authorize(user, Action.READ, question_resource(question))
    return question


@transaction.atomic
def create_question(
    user,
    title: str,
    content: str,
    type: str,
    course: Course | None = None,
    rubric: str = "",
    options: list[str] | None = None,
    expected_answer: str = "",
    points: int = 1,
) -> Question:
    """Create a course-scoped (course instructors) or global (course leaders) question."""
    authorize(user, Action.CREATE, question_resource(course=course))
    return Question.objects.create(
        title=title,
        content=content,
        type=type,
        course=course,
        rubric=rubric,
        options=_validate_options(type, options),
        expected_answer=expected_answer,
        points=points,
        created_by=user,
    )


@transaction.atomic
def update_question(user, question: Question, data: dict[str, Any]) -> Question:
    """Update a question; changing ``type`` is refused once answers reference it."""
    authorize(user, Action.UPDATE, question_resource(question))
    if "course" in data and data["course"] != question.course:
        authorize(user, Action.CREATE, question_resource(course=data["course"]))
    new_type = data.get("type", question.type)
    if new_type != question.type and is_question_answered(question):
        raise InvalidState("Question type cannot change once it has been answered.", code="QUESTION_IN_USE")
    if "options" in data or new_type != question.type:
        data["options"] = _validate_options(new_type, data.get("options", question.options))
    for name, value in data.items():
        setattr(question, name, value)
    question.save()
    return question


@transaction.atomic
def delete_question(user, question: Question) -> None:
    authorize(user, Action.DELETE, question_resource(question))
    if is_question_assigned(question):
        raise InvalidState("Question is used by an assignment.", code="QUESTION_IN_USE")
    guarded_delete(Question.objects.filter(pk=question.pk), "question")


# ---------- Assignments ----------

def _validate_question_ids(course: Course, question_ids: list[int]) -> list[int]:
    ids = [int(qid) for qid in question_ids]
    if not ids:
        raise ValidationFailed("An assignment needs at least one question.")
    if len(set(ids)) != len(ids):
        raise ValidationFailed("Question ids must be unique.")
    usable = set(
        Question.objects.filter(pk__in=ids, course__isnull=True).values_list("pk", flat=True)
    ) | set(
        Question.objects.filter(pk__in=ids, course=course).values_list("pk", flat=True)
    )
    unknown = [qid for qid in ids if qid not in usable]
    if unknown:
        raise ValidationFailed(
            "Questions must exist and be global or belong to this course.",
            invalid_question_ids=unknown,
        )
    return ids


def list_assignments(user, course: Course) -> QuerySet[Assignment]:
    authorize(user, Action.READ, assignment_resource(course))
    return Assignment.objects.filter(course=course).order_by("id")


def get_assignment(user, assignment_id: int, course: Course | None = None) -> Assignment:
    qs = Assignment.objects.select_related("course")
    if course is not None:
        qs = qs.filter(course=course)
    try:
        assignment = qs.get(pk=assignment_id)
    except (Assignment.DoesNotExist, ValueError, TypeError):
        raise ResourceNotFound()
    authorize(user, Action.READ, assignment_resource(assignment))
    return assignment


@transaction.atomic
def create_assignment(
    user,
    course: Course,
    title: str,
    question_ids: list[int],
    description: str = "",
    due_date=None,
) -> Assignment:
    """Create an assignment in ``course`` (course instructors or admins)."""
    authorize(user, Action.CREATE, assignment_resource(course))
    return Assignment.objects.create(
        course=course,
        title=title,
        description=description,
        question_ids=_validate_question_ids(course, question_ids),
        due_date=due_date,
        created_by=user,
    )


@transaction.atomic
def update_assignment(user, assignment: Assignment, data: dict[str, Any]) -> Assignment:
    authorize(user, Action.UPDATE, assignment_resource(assignment))
    if "question_ids" in data:
        data["question_ids"] = _validate_question_ids(assignment.course, data["question_ids"])
    for name, value in data.items():
        setattr(assignment, name, value)
    assignment.save()
    return assignment


@transaction.atomic
def delete_assignment(user, assignment: Assignment) -> None:
    authorize(user, Action.DELETE, assignment_resource(assignment))
    if assignment.submissions.exists():
        raise InvalidState("Assignment has submissions and cannot be deleted.", code="HAS_SUBMISSIONS")
    guarded_delete(Assignment.objects.filter(pk=assignment.pk), "assignment")
