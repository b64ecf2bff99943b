"""REST API views for bootstrap, profiles, invitations, courses, coursework, submissions and grading."""

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.request import Request
from rest_framework.views import APIView

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiResponse,
    OpenApiParameter,
)

from CourseworkApp.api.mixins import PaginationMixin
from CourseworkApp.api.throttles import DraftSaveRateThrottle
from CourseworkApp.core.access import course_resource
from CourseworkApp.core.exceptions import ResourceNotFound
from CourseworkApp.core.permissions import IsAdminRole, IsApproved, PolicyPermission
from CourseworkApp.courses.models import Course
from CourseworkApp.domain.services import (
    account_service,
    assessment_service,
    course_service,
    learning_service,
    submission_service,
)
from CourseworkApp.api.serializers import (
    AIAssessmentSerializer,
    ApprovalSerializer,
    AssignmentReadSerializer,
    AssignmentWriteSerializer,
    BootstrapSerializer,
    CourseReadSerializer,
    CourseWriteSerializer,
    DraftSerializer,
    EnrollmentSerializer,
    EnrollmentUpdateSerializer,
    EnrollmentWriteSerializer,
    FinalGradeSerializer,
    FinalGradeWriteSerializer,
    InstructorAssignmentSerializer,
    InstructorWriteSerializer,
    InvitationAcceptSerializer,
    InvitationSerializer,
    InvitationTokenSerializer,
    InvitationVerifySerializer,
    InvitationWriteSerializer,
    OutcomeSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    QuestionReadSerializer,
    QuestionWriteSerializer,
    RoleSerializer,
    SubmissionReadSerializer,
    SubmitSerializer,
)

AUTH_RESPONSES = {
    401: OpenApiResponse(description="Authentication required."),
    403: OpenApiResponse(description="Not approved, wrong role, or not enrolled."),
    404: OpenApiResponse(description="Not found (or concealed)."),
}

STATE_RESPONSE = {
    409: OpenApiResponse(description="Resource is in a state that forbids this action."),
}

VALIDATION_RESPONSE = {
    400: OpenApiResponse(description="Validation failed."),
}

User = get_user_model()


def _get_profile_or_404(profile_id) -> User:
    try:
        return User.objects.get(pk=profile_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise ResourceNotFound()


# ---------- Bootstrap ----------
@extend_schema(tags=["Bootstrap"])
class BootstrapView(APIView):
    """One-time creation of the first admin account."""
    permission_classes = [AllowAny]
    authentication_classes: list[type] = []

    @extend_schema(responses={200: OpenApiResponse(description="{'initialized': bool}")})
    def get(self, request: Request) -> Response:
        return Response({"initialized": account_service.is_initialized()})

    @extend_schema(
        request=BootstrapSerializer,
        responses={201: ProfileSerializer, **VALIDATION_RESPONSE, **STATE_RESPONSE},
        description="Create the first admin. Fails with SYSTEM_INITIALIZED once done.",
    )
    def post(self, request: Request) -> Response:
        ser = BootstrapSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        admin = account_service.bootstrap_admin(**ser.validated_data)
        return Response(ProfileSerializer(admin).data, status=status.HTTP_201_CREATED)


# ---------- Profiles ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Profiles"],
        parameters=[
            OpenApiParameter("role", str, OpenApiParameter.QUERY),
            OpenApiParameter("status", str, OpenApiParameter.QUERY),
        ],
        responses={200: ProfileSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Profiles"], responses={200: ProfileSerializer, **AUTH_RESPONSES}),
)
class ProfileViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Profile listing, self-service edits and admin approval."""
    lookup_value_regex = r"\d+"
    permission_classes = [IsAuthenticated]
    serializer_class = ProfileSerializer
    queryset = User.objects.none()

    def list(self, request: Request) -> Response:
        qs = account_service.list_profiles(
            request.user,
            role=request.query_params.get("role"),
            status=request.query_params.get("status"),
        )
        return self.paginate_and_respond(qs, ProfileSerializer)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        return Response(ProfileSerializer(account_service.get_profile(request.user, pk)).data)

    @extend_schema(
        tags=["Profiles"],
        request=ProfileUpdateSerializer,
        responses={200: ProfileSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        description="Read or edit one's own profile. Pending accounts may read but not edit.",
    )
    @action(detail=False, methods=["get", "patch"], url_path="me")
    def me(self, request: Request) -> Response:
        if request.method == "GET":
            profile = account_service.get_profile(request.user, request.user.pk)
            return Response(ProfileSerializer(profile).data)
        ser = ProfileUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        profile = account_service.update_own_profile(request.user, dict(ser.validated_data))
        return Response(ProfileSerializer(profile).data)

    @extend_schema(
        tags=["Profiles"],
        request=ApprovalSerializer,
        responses={200: ProfileSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    )
    @action(detail=True, methods=["patch"], url_path="approval", permission_classes=[IsAdminRole])
    def approval(self, request: Request, pk: str | None = None) -> Response:
        """Approve, reject or reset an account (never one's own)."""
        ser = ApprovalSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        target = _get_profile_or_404(pk)
        profile = account_service.set_approval_status(request.user, target.pk, ser.validated_data["status"])
        return Response(ProfileSerializer(profile).data)

    @extend_schema(
        tags=["Profiles"],
        request=RoleSerializer,
        responses={200: ProfileSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin"]}},
    )
    @action(detail=True, methods=["patch"], url_path="role", permission_classes=[IsAdminRole])
    def role(self, request: Request, pk: str | None = None) -> Response:
        ser = RoleSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        target = _get_profile_or_404(pk)
        profile = account_service.set_role(request.user, target.pk, ser.validated_data["role"])
        return Response(ProfileSerializer(profile).data)


# ---------- Invitations ----------
@extend_schema_view(
    list=extend_schema(tags=["Invitations"], responses={200: InvitationSerializer(many=True), **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Invitations"],
        request=InvitationWriteSerializer,
        responses={201: InvitationSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin", "course_leader"], "ownership": "invited_by"}},
    ),
    destroy=extend_schema(
        tags=["Invitations"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES, **STATE_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["admin", "course_leader"], "ownership": "invited_by"}},
    ),
)
class InvitationViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Invitation management; used invitations are terminal."""
    lookup_value_regex = r"\d+"
    permission_classes = [IsApproved]
    serializer_class = InvitationSerializer

    def list(self, request: Request) -> Response:
        return self.paginate_and_respond(account_service.list_invitations(request.user), InvitationSerializer)

    def create(self, request: Request) -> Response:
        ser = InvitationWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        course = None
        if ser.validated_data.get("course_id"):
            course = course_service.get_course(request.user, ser.validated_data["course_id"])
        invitation = account_service.create_invitation(
            request.user, ser.validated_data["email"], ser.validated_data["role"], course=course
        )
        return Response(InvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        account_service.delete_invitation(request.user, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Invitations"],
        request=None,
        responses={200: InvitationSerializer, **AUTH_RESPONSES, **STATE_RESPONSE},
    )
    @action(detail=True, methods=["post"], url_path="resend")
    def resend(self, request: Request, pk: str | None = None) -> Response:
        """Issue a fresh token and expiry for an unused invitation."""
        invitation = account_service.resend_invitation(request.user, pk)
        return Response(InvitationSerializer(invitation).data)

    @extend_schema(
        tags=["Invitations"],
        request=InvitationTokenSerializer,
        responses={200: InvitationVerifySerializer, 404: OpenApiResponse(description="Invalid token"), **STATE_RESPONSE},
    )
    @action(detail=False, methods=["post"], url_path="verify", permission_classes=[AllowAny], authentication_classes=[])
    def verify(self, request: Request) -> Response:
        ser = InvitationTokenSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        invitation = account_service.verify_invitation(ser.validated_data["token"])
        return Response(InvitationVerifySerializer(invitation).data)

    @extend_schema(
        tags=["Invitations"],
        request=InvitationAcceptSerializer,
        responses={201: ProfileSerializer, **VALIDATION_RESPONSE, **STATE_RESPONSE},
        description="Redeem an invitation. The new account starts pending until an admin approves it.",
    )
    @action(detail=False, methods=["post"], url_path="accept", permission_classes=[AllowAny], authentication_classes=[])
    def accept(self, request: Request) -> Response:
        ser = InvitationAcceptSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        profile = account_service.redeem_invitation(**ser.validated_data)
        return Response(ProfileSerializer(profile).data, status=status.HTTP_201_CREATED)


# ---------- Courses ----------
@extend_schema_view(
    list=extend_schema(tags=["Courses"], responses={200: CourseReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Courses"], responses={200: CourseReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={201: CourseReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["course_leader", "admin"], "ownership": "creator-on-create"}},
    ),
    partial_update=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={200: CourseReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"], "status": "admin-only"}},
    ),
    update=extend_schema(
        tags=["Courses"],
        request=CourseWriteSerializer,
        responses={200: CourseReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"], "status": "admin-only"}},
    ),
    destroy=extend_schema(
        tags=["Courses"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES, **STATE_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"], "ownership": "creator"}},
    ),
)
class CourseViewSet(PaginationMixin, viewsets.ModelViewSet):
    """CRUD, enrollment and instructor management for courses."""
    lookup_value_regex = r"\d+"
    queryset = Course.objects.select_related("created_by")
    permission_classes = [IsApproved, PolicyPermission]

    def get_serializer_class(self):
        if self.action in ("list", "retrieve"):
            return CourseReadSerializer
        return CourseWriteSerializer

    def policy_resource(self, obj: Course):
        changed = set()
        if "status" in self.request.data and self.request.data["status"] != obj.status:
            changed.add("status")
        return course_resource(obj, changed)

    def _course(self) -> Course:
        """Resolve the URL's course for nested actions with a read check."""
        return course_service.get_course(self.request.user, self.kwargs["pk"])

    def list(self, request: Request, *args, **kwargs) -> Response:
        """List courses visible to the requesting user."""
        return self.paginate_and_respond(course_service.list_courses(request.user), CourseReadSerializer)

    def create(self, request: Request, *args, **kwargs) -> Response:
        """Create a course; the creator becomes its instructor."""
        ser = CourseWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        course = course_service.create_course(request.user, ser.validated_data)
        read_ser = CourseReadSerializer(course, context={"request": request})
        headers = self.get_success_headers(read_ser.data)
        return Response(read_ser.data, status=status.HTTP_201_CREATED, headers=headers)

    def update(self, request: Request, *args, **kwargs) -> Response:
        """Update a course (instructors; status changes admin only)."""
        course = self.get_object()
        ser = CourseWriteSerializer(course, data=request.data, partial=kwargs.pop("partial", False))
        ser.is_valid(raise_exception=True)
        course = course_service.update_course(request.user, course, ser.validated_data)
        return Response(CourseReadSerializer(course).data)

    def partial_update(self, request: Request, *args, **kwargs) -> Response:
        kwargs["partial"] = True
        return self.update(request, *args, **kwargs)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        """Delete a course without dependents (creator + instructor, or admin)."""
        course_service.delete_course(request.user, self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["Enrollments"],
        request=EnrollmentWriteSerializer,
        responses={200: EnrollmentSerializer(many=True), 201: EnrollmentSerializer,
                   **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE},
    )
    @action(detail=True, methods=["get", "post"], url_path="enrollments")
    def enrollments(self, request: Request, pk: str | None = None) -> Response:
        """List enrollments, or enroll a student (idempotent)."""
        course = self._course()
        if request.method == "GET":
            return self.paginate_and_respond(course_service.list_enrollments(request.user, course), EnrollmentSerializer)
        ser = EnrollmentWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        student = _get_profile_or_404(ser.validated_data["student_id"])
        enrollment = course_service.enroll_student(request.user, course, student)
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Enrollments"],
        request=EnrollmentUpdateSerializer,
        parameters=[OpenApiParameter("student_id", int, OpenApiParameter.PATH)],
        responses={200: EnrollmentSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE},
    )
    @action(detail=True, methods=["patch"], url_path=r"enrollments/(?P<student_id>\d+)")
    def enrollment_detail(self, request: Request, pk: str | None = None, student_id: str | None = None) -> Response:
        """Transition an enrollment or record progress; enrollments are never deleted."""
        course = self._course()
        ser = EnrollmentUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        enrollment = course_service.update_enrollment(request.user, course, int(student_id), **ser.validated_data)
        return Response(EnrollmentSerializer(enrollment).data)

    @extend_schema(
        tags=["Instructors"],
        request=InstructorWriteSerializer,
        responses={200: InstructorAssignmentSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    )
    @action(detail=True, methods=["post"], url_path="instructors")
    def instructors(self, request: Request, pk: str | None = None) -> Response:
        course = self._course()
        ser = InstructorWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        instructor = _get_profile_or_404(ser.validated_data["instructor_id"])
        assignment = course_service.assign_instructor(request.user, course, instructor, ser.validated_data["role"])
        return Response(InstructorAssignmentSerializer(assignment).data)

    @extend_schema(
        tags=["Instructors"],
        parameters=[OpenApiParameter("instructor_id", int, OpenApiParameter.PATH)],
        responses={204: OpenApiResponse(description="Removed"), **AUTH_RESPONSES, **STATE_RESPONSE},
    )
    @action(detail=True, methods=["delete"], url_path=r"instructors/(?P<instructor_id>\d+)")
    def remove_instructor(self, request: Request, pk: str | None = None, instructor_id: str | None = None) -> Response:
        course = self._course()
        instructor = _get_profile_or_404(instructor_id)
        course_service.remove_instructor(request.user, course, instructor)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Assignments ----------
@extend_schema_view(
    list=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Assignments"],
        request=AssignmentWriteSerializer,
        responses={201: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"]}},
    ),
    partial_update=extend_schema(
        tags=["Assignments"],
        request=AssignmentWriteSerializer,
        responses={200: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    destroy=extend_schema(
        tags=["Assignments"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES, **STATE_RESPONSE},
    ),
)
@extend_schema(parameters=[OpenApiParameter("course_pk", int, OpenApiParameter.PATH)])
class AssignmentViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Assignments nested under their course."""
    lookup_value_regex = r"\d+"
    permission_classes = [IsApproved]
    serializer_class = AssignmentReadSerializer

    def _course(self) -> Course:
        return get_object_or_404(Course, pk=self.kwargs["course_pk"])

    def list(self, request: Request, course_pk: str | None = None) -> Response:
        qs = learning_service.list_assignments(request.user, self._course())
        return self.paginate_and_respond(qs, AssignmentReadSerializer)

    def retrieve(self, request: Request, pk: str | None = None, course_pk: str | None = None) -> Response:
        assignment = learning_service.get_assignment(request.user, pk, course=self._course())
        return Response(AssignmentReadSerializer(assignment).data)

    def create(self, request: Request, course_pk: str | None = None) -> Response:
        ser = AssignmentWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        assignment = learning_service.create_assignment(request.user, self._course(), **ser.validated_data)
        return Response(AssignmentReadSerializer(assignment).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, pk: str | None = None, course_pk: str | None = None) -> Response:
        assignment = learning_service.get_assignment(request.user, pk, course=self._course())
        ser = AssignmentWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        assignment = learning_service.update_assignment(request.user, assignment, dict(ser.validated_data))
        return Response(AssignmentReadSerializer(assignment).data)

    def destroy(self, request: Request, pk: str | None = None, course_pk: str | None = None) -> Response:
        assignment = learning_service.get_assignment(request.user, pk, course=self._course())
        learning_service.delete_assignment(request.user, assignment)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Questions ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Questions"],
        parameters=[OpenApiParameter("course_id", int, OpenApiParameter.QUERY)],
        responses={200: QuestionReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Questions"], responses={200: QuestionReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Questions"],
        request=QuestionWriteSerializer,
        responses={201: QuestionReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    partial_update=extend_schema(
        tags=["Questions"],
        request=QuestionWriteSerializer,
        responses={200: QuestionReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE},
    ),
    destroy=extend_schema(
        tags=["Questions"],
        responses={204: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES, **STATE_RESPONSE},
    ),
)
class QuestionViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Question bank: course-scoped and global questions."""
    lookup_value_regex = r"\d+"
    permission_classes = [IsApproved]
    serializer_class = QuestionReadSerializer

    def _course_or_none(self, course_id) -> Course | None:
        if course_id in (None, ""):
            return None
        return course_service.get_course(self.request.user, course_id)

    def list(self, request: Request) -> Response:
        course = self._course_or_none(request.query_params.get("course_id"))
        return self.paginate_and_respond(learning_service.list_questions(request.user, course), QuestionReadSerializer)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        question = learning_service.get_question(request.user, pk)
        return Response(QuestionReadSerializer(question, context={"request": request}).data)

    def create(self, request: Request) -> Response:
        ser = QuestionWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        course = self._course_or_none(data.pop("course_id", None))
        question = learning_service.create_question(request.user, course=course, **data)
        return Response(QuestionReadSerializer(question, context={"request": request}).data,
                        status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        question = learning_service.get_question(request.user, pk)
        ser = QuestionWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        if "course_id" in data:
            data["course"] = self._course_or_none(data.pop("course_id"))
        question = learning_service.update_question(request.user, question, data)
        return Response(QuestionReadSerializer(question, context={"request": request}).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        question = learning_service.get_question(request.user, pk)
        learning_service.delete_question(request.user, question)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ---------- Submissions ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Submissions"],
        parameters=[OpenApiParameter("assignment_id", int, OpenApiParameter.QUERY)],
        responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer, **AUTH_RESPONSES}),
)
class SubmissionViewSet(PaginationMixin, viewsets.GenericViewSet):
    """Draft saves, submit, AI assessment, final grading and outcome."""
    lookup_value_regex = r"\d+"
    permission_classes = [IsApproved]
    serializer_class = SubmissionReadSerializer
    throttle_classes: list[type] = []

    def get_throttles(self):
        """Apply rate throttle only on draft auto-saves."""
        if self.action == "draft":
            self.throttle_classes = [DraftSaveRateThrottle]
        return super().get_throttles()

    def list(self, request: Request) -> Response:
        qs = submission_service.list_submissions(request.user, request.query_params.get("assignment_id"))
        return self.paginate_and_respond(qs, SubmissionReadSerializer)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        return Response(SubmissionReadSerializer(submission_service.get_submission(request.user, pk)).data)

    @extend_schema(
        tags=["Submissions"],
        request=DraftSerializer,
        description=(
            "Save answers into the caller's draft for an assignment. Answers are merged key-wise "
            "into the stored mapping; send only the questions that changed. Rate-limited."
        ),
        responses={
            200: SubmissionReadSerializer,
            429: OpenApiResponse(description="Too many requests / throttled."),
            **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE,
        },
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self", "state": "draft"}},
    )
    @action(detail=False, methods=["post"], url_path="draft")
    def draft(self, request: Request) -> Response:
        ser = DraftSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = submission_service.upsert_draft(
            request.user, ser.validated_data["assignment_id"], ser.validated_data["answers"]
        )
        return Response(SubmissionReadSerializer(submission).data)

    @extend_schema(
        tags=["Submissions"],
        request=SubmitSerializer,
        description="Submit the caller's draft. Irreversible; fails INCOMPLETE_SUBMISSION listing missing questions.",
        responses={200: SubmissionReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self", "state": "draft"}},
    )
    @action(detail=False, methods=["post"], url_path="submit")
    def submit(self, request: Request) -> Response:
        ser = SubmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = submission_service.submit(request.user, ser.validated_data["assignment_id"])
        return Response(SubmissionReadSerializer(submission).data)

    @extend_schema(
        tags=["Grading"],
        request=None,
        responses={
            201: AIAssessmentSerializer,
            503: OpenApiResponse(description="Scoring oracle unavailable; submission stays submitted."),
            **AUTH_RESPONSES, **STATE_RESPONSE,
        },
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"]}},
    )
    @action(detail=True, methods=["post"], url_path="assess")
    def assess(self, request: Request, pk: str | None = None) -> Response:
        """Trigger the AI assessment manually (single-shot per submission)."""
        assessment = assessment_service.request_ai_assessment(pk, actor=request.user)
        return Response(AIAssessmentSerializer(assessment).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Grading"],
        request=FinalGradeWriteSerializer,
        responses={200: FinalGradeSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE, **STATE_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["instructor", "admin"]}},
    )
    @action(detail=True, methods=["put", "post"], url_path="grade")
    def grade(self, request: Request, pk: str | None = None) -> Response:
        """Record or overwrite the final grade (last write wins)."""
        ser = FinalGradeWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        grade = assessment_service.record_final_grade(request.user, pk, **ser.validated_data)
        return Response(FinalGradeSerializer(grade).data)

    @extend_schema(tags=["Grading"], responses={200: OutcomeSerializer, **AUTH_RESPONSES})
    @action(detail=True, methods=["get"], url_path="outcome")
    def outcome(self, request: Request, pk: str | None = None) -> Response:
        """Submission with provisional AI result and authoritative final grade."""
        return Response(OutcomeSerializer(assessment_service.get_outcome(request.user, pk)).data)
