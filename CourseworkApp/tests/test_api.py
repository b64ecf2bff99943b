import pytest
from rest_framework.test import APIClient

from CourseworkApp.core.choices import ApprovalStatus, CourseStatus, EnrollmentStatus, Role, SubmissionStatus
from CourseworkApp.learning.models import Submission
from CourseworkApp.tests.factories import enroll, login, make_course, make_profile

pytestmark = pytest.mark.django_db

COURSES_URL = "/api/v1/courses/"
SUBMISSIONS_URL = "/api/v1/submissions/"


def results(resp):
    data = resp.data
    if isinstance(data, dict) and "results" in data:
        return data["results"]
    return data


def answers_for(assignment, text="answer"):
    return {str(qid): f"{text} {qid}" for qid in assignment.question_ids}


def test_anonymous_request_is_auth_required():
    resp = APIClient().get(COURSES_URL)
    assert resp.status_code == 401
    assert resp.data["category"] == "AUTH_REQUIRED"


def test_pending_account_is_not_approved_but_can_read_itself():
    pending = make_profile(status=ApprovalStatus.PENDING)
    client = login(pending)
    resp = client.get(COURSES_URL)
    assert resp.status_code == 403
    assert resp.data["category"] == "NOT_APPROVED"
    me = client.get("/api/v1/profiles/me/")
    assert me.status_code == 200
    assert me.data["status"] == ApprovalStatus.PENDING


def test_non_enrolled_student_gets_not_found_for_assignments(course, assignment, student):
    resp = login(student).get(f"{COURSES_URL}{course.id}/assignments/")
    assert resp.status_code == 404
    assert resp.data["category"] == "NOT_FOUND"


def test_lapsed_student_gets_not_enrolled(course, assignment, student):
    enroll(course, student, status=EnrollmentStatus.WITHDRAWN)
    resp = login(student).get(f"{COURSES_URL}{course.id}/assignments/")
    assert resp.status_code == 403
    assert resp.data["category"] == "NOT_ENROLLED"


def test_enrolled_student_lists_assignments(course, assignment, student):
    enroll(course, student)
    resp = login(student).get(f"{COURSES_URL}{course.id}/assignments/")
    assert resp.status_code == 200
    assert [a["id"] for a in results(resp)] == [assignment.id]


def test_course_create_and_edit_permissions(leader, student):
    l_client = login(leader)
    resp = l_client.post(COURSES_URL, {"title": "Chemistry", "description": ""}, format="json")
    assert resp.status_code == 201
    course_id = resp.data["id"]
    assert resp.data["status"] == CourseStatus.DRAFT

    s_resp = login(student).patch(f"{COURSES_URL}{course_id}/", {"title": "Hack"}, format="json")
    assert s_resp.status_code == 404

    publish = l_client.patch(f"{COURSES_URL}{course_id}/", {"status": CourseStatus.ACTIVE}, format="json")
    assert publish.status_code == 403
    assert publish.data["category"] == "ROLE_FORBIDDEN"

    rename = l_client.patch(f"{COURSES_URL}{course_id}/", {"title": "Organic Chemistry"}, format="json")
    assert rename.status_code == 200
    assert rename.data["title"] == "Organic Chemistry"


def test_student_cannot_create_course(student):
    resp = login(student).post(COURSES_URL, {"title": "Mine"}, format="json")
    assert resp.status_code == 403


def test_enrollment_endpoints(leader, course, student):
    client = login(leader)
    resp = client.post(f"{COURSES_URL}{course.id}/enrollments/", {"student_id": student.id}, format="json")
    assert resp.status_code == 201
    upd = client.patch(
        f"{COURSES_URL}{course.id}/enrollments/{student.id}/",
        {"status": EnrollmentStatus.COMPLETED, "completion_percentage": 100},
        format="json",
    )
    assert upd.status_code == 200
    assert upd.data["status"] == EnrollmentStatus.COMPLETED


def test_draft_submit_and_lock_over_http(course, assignment, student):
    enroll(course, student)
    client = login(student)
    q1, q2 = (str(qid) for qid in assignment.question_ids)

    draft = client.post(f"{SUBMISSIONS_URL}draft/", {"assignment_id": assignment.id, "answers": {q1: "one"}},
                        format="json")
    assert draft.status_code == 200
    assert draft.data["status"] == SubmissionStatus.DRAFT

    incomplete = client.post(f"{SUBMISSIONS_URL}submit/", {"assignment_id": assignment.id}, format="json")
    assert incomplete.status_code == 400
    assert incomplete.data["code"] == "INCOMPLETE_SUBMISSION"
    assert incomplete.data["missing_question_ids"] == [int(q2)]

    client.post(f"{SUBMISSIONS_URL}draft/", {"assignment_id": assignment.id, "answers": {q2: "two"}}, format="json")
    done = client.post(f"{SUBMISSIONS_URL}submit/", {"assignment_id": assignment.id}, format="json")
    assert done.status_code == 200
    assert done.data["status"] == SubmissionStatus.SUBMITTED
    assert done.data["submitted_at"] is not None

    locked = client.post(f"{SUBMISSIONS_URL}draft/", {"assignment_id": assignment.id, "answers": {q1: "late edit"}},
                         format="json")
    assert locked.status_code == 409
    assert locked.data["code"] == "SUBMISSION_LOCKED"
    assert Submission.objects.get(pk=done.data["id"]).answers[q1] == "one"


def test_unknown_assignment_is_validation_failure(student):
    resp = login(student).post(f"{SUBMISSIONS_URL}draft/", {"assignment_id": 987654, "answers": {}}, format="json")
    assert resp.status_code == 400
    assert resp.data["code"] == "INVALID_ASSIGNMENT"


@pytest.fixture
def submitted(course, assignment, student):
    enroll(course, student)
    client = login(student)
    client.post(f"{SUBMISSIONS_URL}draft/", {"assignment_id": assignment.id, "answers": answers_for(assignment)},
                format="json")
    resp = client.post(f"{SUBMISSIONS_URL}submit/", {"assignment_id": assignment.id}, format="json")
    return Submission.objects.get(pk=resp.data["id"])


def test_grade_and_outcome(submitted, leader, student):
    resp = login(leader).put(f"{SUBMISSIONS_URL}{submitted.id}/grade/", {"score": 82, "comments": "Nice"},
                             format="json")
    assert resp.status_code == 200
    assert resp.data["status"] == "pass"

    outcome = login(student).get(f"{SUBMISSIONS_URL}{submitted.id}/outcome/")
    assert outcome.status_code == 200
    assert outcome.data["authoritative"] == "final_grade"
    assert outcome.data["submission"]["status"] == SubmissionStatus.GRADED


def test_cross_course_instructor_cannot_grade(submitted, other_leader):
    make_course(other_leader)
    resp = login(other_leader).put(f"{SUBMISSIONS_URL}{submitted.id}/grade/", {"score": 10}, format="json")
    assert resp.status_code == 404


def test_score_out_of_range(submitted, leader):
    resp = login(leader).put(f"{SUBMISSIONS_URL}{submitted.id}/grade/", {"score": 150}, format="json")
    assert resp.status_code == 400
    assert resp.data["category"] == "VALIDATION_FAILED"


def test_assess_then_already_assessed(settings, submitted, leader):
    settings.SCORING_ORACLE_CLASS = "CourseworkApp.tests.fakes.FixedScoringOracle"
    client = login(leader)
    first = client.post(f"{SUBMISSIONS_URL}{submitted.id}/assess/")
    assert first.status_code == 201
    assert first.data["score"] == 80
    second = client.post(f"{SUBMISSIONS_URL}{submitted.id}/assess/")
    assert second.status_code == 409
    assert second.data["code"] == "ALREADY_ASSESSED"


def test_assess_upstream_failure(settings, submitted, leader):
    settings.SCORING_ORACLE_CLASS = "CourseworkApp.tests.fakes.FailingScoringOracle"
    resp = login(leader).post(f"{SUBMISSIONS_URL}{submitted.id}/assess/")
    assert resp.status_code == 503
    assert resp.data["category"] == "UPSTREAM_FAILURE"
    submitted.refresh_from_db()
    assert submitted.status == SubmissionStatus.SUBMITTED


def test_bootstrap_endpoint():
    client = APIClient()
    assert client.get("/api/v1/bootstrap/").data == {"initialized": False}
    created = client.post("/api/v1/bootstrap/", {"email": "root@example.com", "password": "rootpass1"}, format="json")
    assert created.status_code == 201
    again = client.post("/api/v1/bootstrap/", {"email": "x@example.com", "password": "rootpass1"}, format="json")
    assert again.status_code == 409
    assert again.data["code"] == "SYSTEM_INITIALIZED"


def test_invitation_accept_then_admin_approval(admin, leader):
    invite = login(leader).post("/api/v1/invitations/", {"email": "fresh@example.com"}, format="json")
    assert invite.status_code == 201
    token = invite.data["token"]

    anon = APIClient()
    assert anon.post("/api/v1/invitations/verify/", {"token": token}, format="json").status_code == 200
    accepted = anon.post(
        "/api/v1/invitations/accept/", {"token": token, "password": "fresh-pass1"}, format="json"
    )
    assert accepted.status_code == 201
    assert accepted.data["status"] == ApprovalStatus.PENDING
    assert accepted.data["role"] == Role.STUDENT

    approve = login(admin).patch(
        f"/api/v1/profiles/{accepted.data['id']}/approval/", {"status": ApprovalStatus.APPROVED}, format="json"
    )
    assert approve.status_code == 200
    assert approve.data["status"] == ApprovalStatus.APPROVED

    gone = login(admin).delete(f"/api/v1/invitations/{invite.data['id']}/")
    assert gone.status_code == 409
    assert gone.data["category"] == "INVALID_STATE"


def test_non_admin_cannot_approve(leader, student):
    resp = login(leader).patch(f"/api/v1/profiles/{student.id}/approval/", {"status": "rejected"}, format="json")
    assert resp.status_code == 403
    assert resp.data["category"] == "ROLE_FORBIDDEN"
