from CourseworkApp.core.choices import ApprovalStatus, CourseStatus, Role, SubmissionStatus
from CourseworkApp.core.exceptions import InvalidState, NotEnrolled, ResourceNotFound, SubmissionLocked
from CourseworkApp.core.policy import (
    Action,
    Actor,
    AIAssessmentResource,
    AssignmentResource,
    CourseResource,
    DenyReason,
    EnrollmentResource,
    FinalGradeResource,
    InvitationResource,
    ProfileResource,
    QuestionResource,
    SubmissionResource,
    can_perform,
    error_for,
)

ADMIN = Actor(1, Role.ADMIN, ApprovalStatus.APPROVED)
LEADER = Actor(2, Role.COURSE_LEADER, ApprovalStatus.APPROVED)
OTHER_LEADER = Actor(3, Role.COURSE_LEADER, ApprovalStatus.APPROVED)
STUDENT = Actor(10, Role.STUDENT, ApprovalStatus.APPROVED)
OTHER_STUDENT = Actor(11, Role.STUDENT, ApprovalStatus.APPROVED)
PENDING = Actor(12, Role.STUDENT, ApprovalStatus.PENDING)


def course(status=CourseStatus.ACTIVE, active=(STUDENT.id,), inactive=(), **kwargs):
    return CourseResource(
        course_id=5,
        status=status,
        creator_id=LEADER.id,
        instructor_ids=frozenset({LEADER.id}),
        active_student_ids=frozenset(active),
        enrolled_student_ids=frozenset(active) | frozenset(inactive),
        **kwargs,
    )


def test_unapproved_actor_only_reads_own_profile():
    assert can_perform(PENDING, Action.READ, ProfileResource(PENDING.id, Role.STUDENT))
    denied = can_perform(PENDING, Action.READ, AssignmentResource(course(active=(PENDING.id,))))
    assert denied.reason == DenyReason.NOT_APPROVED
    edit = can_perform(PENDING, Action.UPDATE, ProfileResource(PENDING.id, Role.STUDENT, frozenset({"bio"})))
    assert edit.reason == DenyReason.NOT_APPROVED


def test_rejected_admin_is_still_denied():
    rejected_admin = Actor(99, Role.ADMIN, ApprovalStatus.REJECTED)
    assert can_perform(rejected_admin, Action.DELETE, course()).reason == DenyReason.NOT_APPROVED


def test_admin_is_allowed_everything():
    for resource in (course(), SubmissionResource(course(), STUDENT.id, SubmissionStatus.GRADED),
                     InvitationResource(invited_by_id=LEADER.id, used=True)):
        for action in Action:
            assert can_perform(ADMIN, action, resource)


def test_only_course_leaders_create_courses():
    assert can_perform(LEADER, Action.CREATE, CourseResource())
    assert can_perform(STUDENT, Action.CREATE, CourseResource()).reason == DenyReason.ROLE_FORBIDDEN


def test_course_status_change_is_admin_only():
    res = course(changed_fields=frozenset({"status"}))
    assert can_perform(LEADER, Action.UPDATE, res).reason == DenyReason.ROLE_FORBIDDEN
    assert can_perform(LEADER, Action.UPDATE, course(changed_fields=frozenset({"title"})))


def test_draft_course_is_concealed_from_unrelated_actors():
    res = course(status=CourseStatus.DRAFT, active=())
    assert can_perform(OTHER_LEADER, Action.READ, res).reason == DenyReason.NOT_FOUND
    assert can_perform(OTHER_LEADER, Action.UPDATE, res).reason == DenyReason.NOT_FOUND
    assert can_perform(LEADER, Action.READ, res)


def test_course_delete_needs_creator_and_no_dependents():
    assert can_perform(LEADER, Action.DELETE, course(active=())).allowed
    blocked = can_perform(LEADER, Action.DELETE, course())
    assert blocked.reason == DenyReason.HAS_DEPENDENTS
    assert isinstance(error_for(blocked), InvalidState)
    co_instructor = Actor(4, Role.COURSE_LEADER, ApprovalStatus.APPROVED)
    res = CourseResource(course_id=5, status=CourseStatus.ACTIVE, creator_id=LEADER.id,
                         instructor_ids=frozenset({LEADER.id, co_instructor.id}))
    assert can_perform(co_instructor, Action.DELETE, res).reason == DenyReason.ROLE_FORBIDDEN


def test_assignment_read_distinguishes_enrollment_states():
    res = AssignmentResource(course(inactive=(OTHER_STUDENT.id,)))
    assert can_perform(STUDENT, Action.READ, res)
    not_enrolled = can_perform(OTHER_STUDENT, Action.READ, res)
    assert not_enrolled.reason == DenyReason.NOT_ENROLLED
    assert isinstance(error_for(not_enrolled), NotEnrolled)
    stranger = Actor(50, Role.STUDENT, ApprovalStatus.APPROVED)
    concealed = can_perform(stranger, Action.READ, res)
    assert concealed.reason == DenyReason.NOT_FOUND
    assert isinstance(error_for(concealed), ResourceNotFound)


def test_students_cannot_manage_assignments():
    res = AssignmentResource(course())
    assert can_perform(STUDENT, Action.CREATE, res).reason == DenyReason.ROLE_FORBIDDEN
    assert can_perform(LEADER, Action.CREATE, res)


def test_global_questions_are_leader_managed():
    assert can_perform(STUDENT, Action.READ, QuestionResource())
    assert can_perform(LEADER, Action.CREATE, QuestionResource())
    assert can_perform(STUDENT, Action.CREATE, QuestionResource()).reason == DenyReason.ROLE_FORBIDDEN


def test_submission_create_requires_active_enrollment():
    assert can_perform(STUDENT, Action.CREATE, SubmissionResource(course(), STUDENT.id))
    lapsed = course(active=(), inactive=(STUDENT.id,))
    assert can_perform(STUDENT, Action.CREATE, SubmissionResource(lapsed, STUDENT.id)).reason == DenyReason.NOT_ENROLLED


def test_submission_cannot_be_created_for_someone_else():
    res = SubmissionResource(course(active=(STUDENT.id, OTHER_STUDENT.id)), OTHER_STUDENT.id)
    assert can_perform(STUDENT, Action.CREATE, res).reason == DenyReason.ROLE_FORBIDDEN
    assert can_perform(LEADER, Action.UPDATE, res).reason == DenyReason.ROLE_FORBIDDEN


def test_submitted_submission_is_locked_for_its_owner():
    res = SubmissionResource(course(), STUDENT.id, SubmissionStatus.SUBMITTED)
    decision = can_perform(STUDENT, Action.UPDATE, res)
    assert decision.reason == DenyReason.SUBMISSION_LOCKED
    assert isinstance(error_for(decision), SubmissionLocked)
    assert can_perform(STUDENT, Action.READ, res)


def test_submitted_submission_stays_locked_after_enrollment_lapses():
    lapsed = course(active=(), inactive=(STUDENT.id,))
    res = SubmissionResource(lapsed, STUDENT.id, SubmissionStatus.SUBMITTED)
    assert can_perform(STUDENT, Action.UPDATE, res).reason == DenyReason.SUBMISSION_LOCKED
    draft = SubmissionResource(lapsed, STUDENT.id, SubmissionStatus.DRAFT)
    assert can_perform(STUDENT, Action.UPDATE, draft).reason == DenyReason.NOT_ENROLLED


def test_grading_is_course_staff_only():
    sub = SubmissionResource(course(), STUDENT.id, SubmissionStatus.SUBMITTED)
    assert can_perform(LEADER, Action.CREATE, FinalGradeResource(sub))
    assert can_perform(STUDENT, Action.CREATE, FinalGradeResource(sub)).reason == DenyReason.ROLE_FORBIDDEN
    assert can_perform(OTHER_LEADER, Action.UPDATE, FinalGradeResource(sub)).reason == DenyReason.NOT_FOUND
    assert can_perform(OTHER_LEADER, Action.CREATE, AIAssessmentResource(sub)).reason == DenyReason.NOT_FOUND
    assert can_perform(STUDENT, Action.READ, AIAssessmentResource(sub))


def test_enrollments_are_never_deleted():
    res = EnrollmentResource(course(), STUDENT.id)
    assert can_perform(LEADER, Action.DELETE, res).reason == DenyReason.ROLE_FORBIDDEN
    assert can_perform(STUDENT, Action.READ, res)


def test_profile_role_and_status_are_not_self_editable():
    own = ProfileResource(STUDENT.id, Role.STUDENT, frozenset({"bio"}))
    assert can_perform(STUDENT, Action.UPDATE, own)
    escalate = ProfileResource(STUDENT.id, Role.STUDENT, frozenset({"role"}))
    assert can_perform(STUDENT, Action.UPDATE, escalate).reason == DenyReason.ROLE_FORBIDDEN


def test_course_leaders_read_student_profiles_only():
    assert can_perform(LEADER, Action.READ, ProfileResource(STUDENT.id, Role.STUDENT))
    assert can_perform(LEADER, Action.READ, ProfileResource(OTHER_LEADER.id, Role.COURSE_LEADER)).reason == (
        DenyReason.ROLE_FORBIDDEN
    )


def test_invitation_rules():
    assert can_perform(LEADER, Action.CREATE, InvitationResource(role=Role.STUDENT))
    assert can_perform(LEADER, Action.CREATE, InvitationResource(role=Role.ADMIN)).reason == DenyReason.ROLE_FORBIDDEN
    assert can_perform(STUDENT, Action.CREATE, InvitationResource(role=Role.STUDENT)).reason == DenyReason.ROLE_FORBIDDEN
    used = InvitationResource(invited_by_id=LEADER.id, used=True)
    assert can_perform(LEADER, Action.DELETE, used).reason == DenyReason.ALREADY_USED
    foreign = InvitationResource(invited_by_id=OTHER_LEADER.id)
    assert can_perform(LEADER, Action.DELETE, foreign).reason == DenyReason.ROLE_FORBIDDEN


def test_unknown_resource_kind_is_denied():
    assert can_perform(LEADER, Action.READ, object()).reason == DenyReason.ROLE_FORBIDDEN
