"""Typed enumerations (TextChoices) for roles, approval, course, enrollment, question and submission states."""
from django.db import models

class Role(models.TextChoices):
    """System-level role assigned to a profile."""
    STUDENT = "student", "Student"
    COURSE_LEADER = "course_leader", "Course leader"
    ADMIN = "admin", "Admin"

class ApprovalStatus(models.TextChoices):
    """Account approval state; only approved profiles may act."""
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"

class CourseStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    ACTIVE = "active", "Active"
    ARCHIVED = "archived", "Archived"

class EnrollmentStatus(models.TextChoices):
    """Enrollment lifecycle; enrollments are transitioned, never deleted."""
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    WITHDRAWN = "withdrawn", "Withdrawn"
    SUSPENDED = "suspended", "Suspended"

class InstructorRole(models.TextChoices):
    """Role of a staff member within a specific course."""
    INSTRUCTOR = "instructor", "Instructor"
    ASSISTANT = "assistant", "Assistant"
    GRADER = "grader", "Grader"

class QuestionType(models.TextChoices):
    MULTIPLE_CHOICE = "multiple_choice", "Multiple choice"
    SHORT_TEXT = "short_text", "Short text"
    LONG_TEXT = "long_text", "Long text"

class SubmissionStatus(models.TextChoices):
    """Lifecycle states for a submission: DRAFT -> SUBMITTED -> GRADED."""
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"
    GRADED = "graded", "Graded"

class Confidence(models.TextChoices):
    """Confidence bucket reported by the scoring oracle (ordered low to high)."""
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"

class GradeStatus(models.TextChoices):
    PASS = "pass", "Pass"
    FAIL = "fail", "Fail"
