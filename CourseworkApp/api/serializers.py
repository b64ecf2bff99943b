"""Serializers for profiles, invitations, courses, coursework, submissions and grades."""

from rest_framework import serializers
from django.contrib.auth import get_user_model

from CourseworkApp.courses.models import Course, Enrollment, InstructorAssignment
from CourseworkApp.learning.models import AIAssessment, Assignment, FinalGrade, Question, Submission
from CourseworkApp.core.choices import (
    ApprovalStatus, EnrollmentStatus, GradeStatus, InstructorRole, Role,
)
from CourseworkApp.users.models import Invitation

Profile = get_user_model()


# ---------- Profiles ----------

class ProfileSummarySerializer(serializers.ModelSerializer):
    """Public, safe representation of a profile."""

    class Meta:
        model = Profile
        fields = ["id", "email", "full_name", "role"]


class ProfileSerializer(serializers.ModelSerializer):
    approved_by = ProfileSummarySerializer(read_only=True)

    class Meta:
        model = Profile
        fields = [
            "id", "email", "full_name", "bio", "role", "status",
            "approved_by", "approved_at", "date_joined",
        ]


class ProfileUpdateSerializer(serializers.Serializer):
    """Self-service profile edit. ``role``/``status`` are accepted so they can be refused explicitly."""
    full_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    bio = serializers.CharField(required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=Role.choices, required=False)
    status = serializers.ChoiceField(choices=ApprovalStatus.choices, required=False)


class ApprovalSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ApprovalStatus.choices)


class RoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Role.choices)


class BootstrapSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8, help_text="Admin password (write‑only).")
    full_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")


# ---------- Invitations ----------

class InvitationSerializer(serializers.ModelSerializer):
    invited_by = ProfileSummarySerializer(read_only=True)
    state = serializers.CharField(read_only=True)

    class Meta:
        model = Invitation
        fields = [
            "id", "email", "role", "token", "course", "invited_by",
            "expires_at", "used_at", "created_at", "state",
        ]


class InvitationWriteSerializer(serializers.Serializer):
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=Role.choices, default=Role.STUDENT)
    course_id = serializers.IntegerField(required=False, allow_null=True)


class InvitationTokenSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=64)


class InvitationVerifySerializer(serializers.ModelSerializer):
    """What an invitee may see before redeeming: no token, no inviter details."""

    class Meta:
        model = Invitation
        fields = ["email", "role", "course", "expires_at"]


class InvitationAcceptSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=64)
    password = serializers.CharField(write_only=True, min_length=8)
    full_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")


# ---------- Courses ----------

class CourseWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating a course."""

    class Meta:
        model = Course
        fields = [
            "title", "description", "short_description", "status",
            "capacity", "duration_weeks", "start_date", "end_date",
        ]


class CourseReadSerializer(serializers.ModelSerializer):
    """Serializer for reading course details including creator."""
    created_by = ProfileSummarySerializer()

    class Meta:
        model = Course
        fields = [
            "id", "title", "description", "short_description", "status", "capacity",
            "duration_weeks", "start_date", "end_date", "created_by", "created_at", "updated_at",
        ]


class EnrollmentSerializer(serializers.ModelSerializer):
    student = ProfileSummarySerializer(read_only=True)

    class Meta:
        model = Enrollment
        fields = ["id", "course", "student", "status", "completion_percentage", "final_grade", "created_at", "updated_at"]


class EnrollmentWriteSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()


class EnrollmentUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=EnrollmentStatus.choices, required=False)
    completion_percentage = serializers.IntegerField(min_value=0, max_value=100, required=False)
    final_grade = serializers.IntegerField(min_value=0, max_value=100, required=False)


class InstructorAssignmentSerializer(serializers.ModelSerializer):
    instructor = ProfileSummarySerializer(read_only=True)

    class Meta:
        model = InstructorAssignment
        fields = ["id", "course", "instructor", "role", "created_at"]


class InstructorWriteSerializer(serializers.Serializer):
    instructor_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=InstructorRole.choices, default=InstructorRole.INSTRUCTOR)


# ---------- Questions & assignments ----------

class QuestionWriteSerializer(serializers.ModelSerializer):
    course_id = serializers.IntegerField(
        required=False, allow_null=True, help_text="Owning course; null makes the question global."
    )
    options = serializers.ListField(child=serializers.CharField(), required=False)

    class Meta:
        model = Question
        fields = ["title", "content", "type", "course_id", "rubric", "options", "expected_answer", "points"]
        extra_kwargs = {
            "type": {"help_text": "Immutable once a submission has answered the question."},
        }


class QuestionReadSerializer(serializers.ModelSerializer):
    """Question details; the expected answer is hidden from students."""

    class Meta:
        model = Question
        fields = [
            "id", "title", "content", "type", "course", "rubric", "options",
            "expected_answer", "points", "created_by", "created_at", "updated_at",
        ]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        request = self.context.get("request")
        if request is None or getattr(request.user, "role", None) == Role.STUDENT:
            data.pop("expected_answer", None)
        return data


class AssignmentWriteSerializer(serializers.ModelSerializer):
    question_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)

    class Meta:
        model = Assignment
        fields = ["title", "description", "question_ids", "due_date"]


class AssignmentReadSerializer(serializers.ModelSerializer):

    class Meta:
        model = Assignment
        fields = ["id", "course", "title", "description", "question_ids", "due_date", "created_by", "created_at", "updated_at"]


# ---------- Submissions & grading ----------

class SubmissionReadSerializer(serializers.ModelSerializer):
    student = ProfileSummarySerializer(read_only=True)

    class Meta:
        model = Submission
        fields = ["id", "assignment", "student", "answers", "status", "submitted_at", "is_late", "created_at", "updated_at"]


class DraftSerializer(serializers.Serializer):
    assignment_id = serializers.IntegerField()
    answers = serializers.DictField(
        child=serializers.CharField(allow_blank=True, trim_whitespace=False),
        help_text="Mapping of question id to answer text; merged key-wise into the draft.",
    )


class SubmitSerializer(serializers.Serializer):
    assignment_id = serializers.IntegerField()


class AIAssessmentSerializer(serializers.ModelSerializer):

    class Meta:
        model = AIAssessment
        fields = ["id", "submission", "score", "feedback", "confidence", "reasoning", "model_name", "created_at"]


class FinalGradeSerializer(serializers.ModelSerializer):
    graded_by = ProfileSummarySerializer(read_only=True)

    class Meta:
        model = FinalGrade
        fields = ["id", "submission", "score", "comments", "status", "graded_by", "created_at", "updated_at"]


class FinalGradeWriteSerializer(serializers.Serializer):
    score = serializers.IntegerField(min_value=0, max_value=100)
    comments = serializers.CharField(required=False, allow_blank=True, default="")
    status = serializers.ChoiceField(choices=GradeStatus.choices, required=False)


class OutcomeSerializer(serializers.Serializer):
    """Combined result: AI assessment is provisional, the final grade authoritative."""
    submission = SubmissionReadSerializer()
    ai_assessment = AIAssessmentSerializer(allow_null=True)
    final_grade = FinalGradeSerializer(allow_null=True)
    authoritative = serializers.CharField(allow_null=True)
