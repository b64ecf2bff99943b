"""Authorization engine: one pure evaluator for every (actor, action, resource) decision.

Descriptors are frozen snapshots of the relational context a rule needs (course
status, instructor set, enrollments, ownership). They are built from the ORM by
``core.access`` so the rules here never touch the database and can be unit
tested on plain values.

Decision order (first match wins):
    1. Unapproved actors may only read their own profile.
    2. Admins are allowed everything.
    3. Resource-kind rules below.
    4. Deny.

Relation-less actors get NOT_FOUND rather than ROLE_FORBIDDEN so that a denial
never confirms the resource exists.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from CourseworkApp.core.choices import ApprovalStatus, CourseStatus, Role, SubmissionStatus
from CourseworkApp.core.exceptions import (
    AlreadyUsed,
    CourseworkError,
    InvalidState,
    NotApproved,
    NotEnrolled,
    ResourceNotFound,
    RoleForbidden,
    SubmissionLocked,
)


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class DenyReason(str, Enum):
    NOT_APPROVED = "NOT_APPROVED"
    ROLE_FORBIDDEN = "ROLE_FORBIDDEN"
    NOT_ENROLLED = "NOT_ENROLLED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_USED = "ALREADY_USED"
    SUBMISSION_LOCKED = "SUBMISSION_LOCKED"
    HAS_DEPENDENTS = "HAS_DEPENDENTS"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def deny(reason: DenyReason, message: str = "") -> Decision:
    return Decision(False, reason, message)


@dataclass(frozen=True)
class Actor:
    id: int
    role: str
    status: str

    @classmethod
    def from_profile(cls, profile: Any) -> "Actor":
        return cls(id=profile.id, role=profile.role, status=profile.status)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# ---------- Descriptors ----------

@dataclass(frozen=True)
class ProfileResource:
    profile_id: int | None
    role: str | None = None
    changed_fields: frozenset[str] = frozenset()


@dataclass(frozen=True)
class CourseResource:
    """Relational snapshot of a course; ``course_id`` is None for create."""
    course_id: int | None = None
    status: str = CourseStatus.DRAFT
    creator_id: int | None = None
    instructor_ids: frozenset[int] = frozenset()
    active_student_ids: frozenset[int] = frozenset()
    enrolled_student_ids: frozenset[int] = frozenset()
    assignment_count: int = 0
    changed_fields: frozenset[str] = frozenset()

    def is_instructor(self, actor: Actor) -> bool:
        return actor.id in self.instructor_ids

    def is_active_student(self, actor: Actor) -> bool:
        return actor.id in self.active_student_ids

    def is_related(self, actor: Actor) -> bool:
        """Actor instructs the course or holds an enrollment of any status."""
        return self.is_instructor(actor) or actor.id in self.enrolled_student_ids


@dataclass(frozen=True)
class EnrollmentResource:
    course: CourseResource
    student_id: int | None = None


@dataclass(frozen=True)
class InstructorAssignmentResource:
    course: CourseResource
    instructor_id: int | None = None


@dataclass(frozen=True)
class QuestionResource:
    """``course`` is None for global (shared) questions."""
    course: CourseResource | None = None
    creator_id: int | None = None


@dataclass(frozen=True)
class AssignmentResource:
    course: CourseResource


@dataclass(frozen=True)
class SubmissionResource:
    """``status`` is None when the submission does not exist yet (first save)."""
    course: CourseResource
    student_id: int
    status: str | None = None


@dataclass(frozen=True)
class AIAssessmentResource:
    submission: SubmissionResource


@dataclass(frozen=True)
class FinalGradeResource:
    submission: SubmissionResource


@dataclass(frozen=True)
class InvitationResource:
    invited_by_id: int | None = None
    role: str = Role.STUDENT
    used: bool = False


# ---------- Shared rule fragments ----------

def _read_course_content(actor: Actor, course: CourseResource) -> Decision:
    """Read rule for content scoped to a course (questions, assignments)."""
    if course.is_instructor(actor) or course.is_active_student(actor):
        return ALLOW
    if course.is_related(actor):
        return deny(DenyReason.NOT_ENROLLED, "Enrollment in this course is not active.")
    return deny(DenyReason.NOT_FOUND)


def _instructor_only(actor: Actor, course: CourseResource, message: str) -> Decision:
    if course.is_instructor(actor):
        return ALLOW
    if course.is_related(actor) or course.status == CourseStatus.ACTIVE:
        return deny(DenyReason.ROLE_FORBIDDEN, message)
    return deny(DenyReason.NOT_FOUND)


def _course_staff_only(actor: Actor, course: CourseResource, message: str) -> Decision:
    """Like _instructor_only, but conceals existence from actors unrelated to the course."""
    if course.is_instructor(actor):
        return ALLOW
    if course.is_related(actor):
        return deny(DenyReason.ROLE_FORBIDDEN, message)
    return deny(DenyReason.NOT_FOUND)


def _owner_or_instructor(actor: Actor, submission: SubmissionResource) -> Decision:
    if actor.id == submission.student_id or submission.course.is_instructor(actor):
        return ALLOW
    if submission.course.is_related(actor):
        return deny(DenyReason.ROLE_FORBIDDEN, "Only the owning student or course instructors may view this.")
    return deny(DenyReason.NOT_FOUND)


# ---------- Resource-kind rules ----------

def _profile_rule(actor: Actor, action: Action, res: ProfileResource) -> Decision:
    own = res.profile_id == actor.id
    if action == Action.READ:
        if own:
            return ALLOW
        if actor.role == Role.COURSE_LEADER and res.role == Role.STUDENT:
            return ALLOW
        return deny(DenyReason.ROLE_FORBIDDEN, "You may only view your own profile.")
    if action == Action.UPDATE and own:
        if res.changed_fields & {"role", "status"}:
            return deny(DenyReason.ROLE_FORBIDDEN, "Only an admin can change role or approval status.")
        return ALLOW
    return deny(DenyReason.ROLE_FORBIDDEN, "Only an admin can manage other profiles.")


def _course_rule(actor: Actor, action: Action, res: CourseResource) -> Decision:
    if action == Action.CREATE:
        if actor.role == Role.COURSE_LEADER:
            return ALLOW
        return deny(DenyReason.ROLE_FORBIDDEN, "Only course leaders can create courses.")

    if action == Action.READ:
        if res.status == CourseStatus.ACTIVE:
            return ALLOW
        return _read_course_content(actor, res)

    if action == Action.UPDATE:
        decision = _instructor_only(actor, res, "Only course instructors can edit this course.")
        if decision and "status" in res.changed_fields:
            return deny(DenyReason.ROLE_FORBIDDEN, "Only an admin can change course status.")
        return decision

    decision = _instructor_only(actor, res, "Only course instructors can delete this course.")
    if not decision:
        return decision
    if res.creator_id != actor.id:
        return deny(DenyReason.ROLE_FORBIDDEN, "Only the course creator can delete this course.")
    if res.active_student_ids or res.assignment_count:
        return deny(
            DenyReason.HAS_DEPENDENTS,
            "Course has active enrollments or assignments; archive it instead.",
        )
    return ALLOW


def _enrollment_rule(actor: Actor, action: Action, res: EnrollmentResource) -> Decision:
    if action == Action.DELETE:
        return deny(DenyReason.ROLE_FORBIDDEN, "Enrollments are never deleted; change their status instead.")
    if action == Action.READ and actor.id == res.student_id:
        return ALLOW
    return _instructor_only(actor, res.course, "Only course instructors can manage enrollments.")


def _instructor_assignment_rule(actor: Actor, action: Action, res: InstructorAssignmentResource) -> Decision:
    if action == Action.READ:
        return _course_rule(actor, Action.READ, res.course)
    return _instructor_only(actor, res.course, "Only course instructors can manage the instructor set.")


def _question_rule(actor: Actor, action: Action, res: QuestionResource) -> Decision:
    if res.course is None:
        if action == Action.READ or actor.role == Role.COURSE_LEADER:
            return ALLOW
        return deny(DenyReason.ROLE_FORBIDDEN, "Only course leaders can manage shared questions.")
    if action == Action.READ:
        return _read_course_content(actor, res.course)
    return _instructor_only(actor, res.course, "Only course instructors can manage questions.")


def _assignment_rule(actor: Actor, action: Action, res: AssignmentResource) -> Decision:
    if action == Action.READ:
        return _read_course_content(actor, res.course)
    return _instructor_only(actor, res.course, "Only course instructors can manage assignments.")


def _submission_rule(actor: Actor, action: Action, res: SubmissionResource) -> Decision:
    course = res.course
    if action == Action.READ:
        return _owner_or_instructor(actor, res)
    if action == Action.DELETE:
        return deny(DenyReason.ROLE_FORBIDDEN, "Submissions cannot be deleted.")

    if actor.id != res.student_id:
        if course.is_related(actor):
            return deny(DenyReason.ROLE_FORBIDDEN, "Only the owning student can edit a submission.")
        return deny(DenyReason.NOT_FOUND)
    if actor.role != Role.STUDENT:
        return deny(DenyReason.ROLE_FORBIDDEN, "Only students can create submissions.")
    # a submitted row stays locked whatever happens to the enrollment afterwards
    if res.status not in (None, SubmissionStatus.DRAFT):
        return deny(DenyReason.SUBMISSION_LOCKED, "Submission has already been submitted.")
    if not course.is_active_student(actor):
        if course.is_related(actor):
            return deny(DenyReason.NOT_ENROLLED, "Enrollment in this course is not active.")
        return deny(DenyReason.NOT_FOUND)
    return ALLOW


def _ai_assessment_rule(actor: Actor, action: Action, res: AIAssessmentResource) -> Decision:
    if action == Action.READ:
        return _owner_or_instructor(actor, res.submission)
    if action == Action.CREATE:
        return _course_staff_only(actor, res.submission.course, "Only course instructors can request an assessment.")
    return deny(DenyReason.ROLE_FORBIDDEN, "AI assessments are write-once.")


def _final_grade_rule(actor: Actor, action: Action, res: FinalGradeResource) -> Decision:
    if action == Action.READ:
        return _owner_or_instructor(actor, res.submission)
    if action == Action.DELETE:
        return deny(DenyReason.ROLE_FORBIDDEN, "Final grades cannot be deleted.")
    return _course_staff_only(actor, res.submission.course, "Only course instructors can grade submissions.")


def _invitation_rule(actor: Actor, action: Action, res: InvitationResource) -> Decision:
    if actor.role != Role.COURSE_LEADER:
        return deny(DenyReason.ROLE_FORBIDDEN, "Only admins and course leaders can manage invitations.")
    if action == Action.CREATE:
        if res.role != Role.STUDENT:
            return deny(DenyReason.ROLE_FORBIDDEN, "Course leaders can only invite students.")
        return ALLOW
    if res.invited_by_id != actor.id:
        return deny(DenyReason.ROLE_FORBIDDEN, "You can only manage your own invitations.")
    if action in (Action.UPDATE, Action.DELETE) and res.used:
        return deny(DenyReason.ALREADY_USED, "Invitation has already been used.")
    return ALLOW


_RULES = {
    ProfileResource: _profile_rule,
    CourseResource: _course_rule,
    EnrollmentResource: _enrollment_rule,
    InstructorAssignmentResource: _instructor_assignment_rule,
    QuestionResource: _question_rule,
    AssignmentResource: _assignment_rule,
    SubmissionResource: _submission_rule,
    AIAssessmentResource: _ai_assessment_rule,
    FinalGradeResource: _final_grade_rule,
    InvitationResource: _invitation_rule,
}


def can_perform(actor: Actor, action: Action, resource: Any) -> Decision:
    """Evaluate whether ``actor`` may perform ``action`` on ``resource``."""
    if actor.status != ApprovalStatus.APPROVED:
        if (
            action == Action.READ
            and isinstance(resource, ProfileResource)
            and resource.profile_id == actor.id
        ):
            return ALLOW
        return deny(DenyReason.NOT_APPROVED, "Account is awaiting approval.")

    if actor.is_admin:
        return ALLOW

    rule = _RULES.get(type(resource))
    if rule is None:
        return deny(DenyReason.ROLE_FORBIDDEN, "Action is not permitted.")
    return rule(actor, action, resource)


_REASON_ERRORS: dict[DenyReason, type[CourseworkError]] = {
    DenyReason.NOT_APPROVED: NotApproved,
    DenyReason.ROLE_FORBIDDEN: RoleForbidden,
    DenyReason.NOT_ENROLLED: NotEnrolled,
    DenyReason.NOT_FOUND: ResourceNotFound,
    DenyReason.ALREADY_USED: AlreadyUsed,
    DenyReason.SUBMISSION_LOCKED: SubmissionLocked,
    DenyReason.HAS_DEPENDENTS: InvalidState,
}


def error_for(decision: Decision) -> CourseworkError:
    """Translate a denial into the typed error the transport layer renders."""
    error_cls = _REASON_ERRORS[decision.reason]
    if decision.reason == DenyReason.HAS_DEPENDENTS:
        return error_cls(decision.message or None, code=DenyReason.HAS_DEPENDENTS.value)
    if decision.reason == DenyReason.NOT_FOUND:
        return error_cls()
    return error_cls(decision.message or None)


def authorize(actor: Actor | Any, action: Action, resource: Any) -> None:
    """Raise the typed error for a denied decision; accepts an Actor or a profile."""
    if not isinstance(actor, Actor):
        actor = Actor.from_profile(actor)
    decision = can_perform(actor, action, resource)
    if not decision:
        raise error_for(decision)
