"""Typed coursework errors and the DRF exception handler that renders them.

Every error carries a ``category`` (the transport-level bucket: NOT_FOUND,
INVALID_STATE, ...) and a ``code`` (the precise reason, e.g. SUBMISSION_LOCKED).
Both are APIException subclasses, so domain services may raise them directly and
DRF maps them to the right status code.
"""

import logging
from enum import Enum
from typing import Any

from rest_framework import exceptions, status
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Error taxonomy exposed to API clients."""
    AUTH_REQUIRED = "AUTH_REQUIRED"
    NOT_APPROVED = "NOT_APPROVED"
    ROLE_FORBIDDEN = "ROLE_FORBIDDEN"
    NOT_ENROLLED = "NOT_ENROLLED"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    NO_ROWS_AFFECTED = "NO_ROWS_AFFECTED"


class CourseworkError(exceptions.APIException):
    """Base class for domain errors raised by services and the policy layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    category = ErrorCategory.VALIDATION_FAILED
    default_detail = "Request could not be processed."
    default_code = "COURSEWORK_ERROR"

    def __init__(self, detail: str | None = None, code: str | None = None, **context: Any) -> None:
        super().__init__(detail=detail, code=code or self.default_code)
        self.code = code or self.default_code
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": str(self.detail),
            "code": self.code,
            "category": self.category.value,
            **self.context,
        }


class NotApproved(CourseworkError):
    status_code = status.HTTP_403_FORBIDDEN
    category = ErrorCategory.NOT_APPROVED
    default_detail = "Account is not approved."
    default_code = "NOT_APPROVED"


class RoleForbidden(CourseworkError):
    status_code = status.HTTP_403_FORBIDDEN
    category = ErrorCategory.ROLE_FORBIDDEN
    default_detail = "Your role does not allow this action."
    default_code = "ROLE_FORBIDDEN"


class NotEnrolled(CourseworkError):
    status_code = status.HTTP_403_FORBIDDEN
    category = ErrorCategory.NOT_ENROLLED
    default_detail = "An active enrollment in this course is required."
    default_code = "NOT_ENROLLED"


class ResourceNotFound(CourseworkError):
    """Resource is absent or concealed from the actor (indistinguishable)."""
    status_code = status.HTTP_404_NOT_FOUND
    category = ErrorCategory.NOT_FOUND
    default_detail = "Not found."
    default_code = "NOT_FOUND"


class InvalidState(CourseworkError):
    status_code = status.HTTP_409_CONFLICT
    category = ErrorCategory.INVALID_STATE
    default_detail = "Resource is not in a state that allows this action."
    default_code = "INVALID_STATE"


class SubmissionLocked(InvalidState):
    default_detail = "Submission has already been submitted and can no longer be edited."
    default_code = "SUBMISSION_LOCKED"


class AlreadyAssessed(InvalidState):
    default_detail = "Submission already has an AI assessment."
    default_code = "ALREADY_ASSESSED"


class AlreadyUsed(InvalidState):
    default_detail = "Invitation has already been used."
    default_code = "ALREADY_USED"


class ValidationFailed(CourseworkError):
    status_code = status.HTTP_400_BAD_REQUEST
    category = ErrorCategory.VALIDATION_FAILED
    default_detail = "Invalid input."
    default_code = "VALIDATION_FAILED"


class IncompleteSubmission(ValidationFailed):
    """Raised on submit when required answers are missing; context lists them."""
    default_detail = "All questions must be answered before submitting."
    default_code = "INCOMPLETE_SUBMISSION"

    def __init__(self, missing_question_ids: list[int], detail: str | None = None) -> None:
        super().__init__(detail, missing_question_ids=list(missing_question_ids))
        self.missing_question_ids = list(missing_question_ids)


class InvalidAssignment(ValidationFailed):
    default_detail = "Assignment does not exist."
    default_code = "INVALID_ASSIGNMENT"


class UpstreamFailure(CourseworkError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    category = ErrorCategory.UPSTREAM_FAILURE
    default_detail = "Scoring service is unavailable; try again later."
    default_code = "UPSTREAM_FAILURE"


class NoRowsAffected(CourseworkError):
    """A guarded mutation touched zero rows; never reported as success."""
    status_code = status.HTTP_404_NOT_FOUND
    category = ErrorCategory.NO_ROWS_AFFECTED
    default_detail = "Not found or not permitted."
    default_code = "NOT_FOUND_OR_FORBIDDEN"


def coursework_exception_handler(exc: Exception, context: dict) -> Any:
    """DRF EXCEPTION_HANDLER adding ``code``/``category`` to every error body."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, CourseworkError):
        response.data = exc.to_dict()
    elif isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        response.data = {
            "detail": response.data.get("detail", str(exc.detail)),
            "code": "AUTH_REQUIRED",
            "category": ErrorCategory.AUTH_REQUIRED.value,
        }
    elif isinstance(exc, exceptions.ValidationError):
        response.data = {
            "detail": "Invalid input.",
            "code": "VALIDATION_FAILED",
            "category": ErrorCategory.VALIDATION_FAILED.value,
            "errors": response.data,
        }
    elif response.status_code == status.HTTP_404_NOT_FOUND:
        response.data = {
            "detail": "Not found.",
            "code": "NOT_FOUND",
            "category": ErrorCategory.NOT_FOUND.value,
        }

    if response.status_code in (status.HTTP_403_FORBIDDEN, status.HTTP_409_CONFLICT):
        view = context.get("view")
        logger.info(
            "Request denied: %s %s (%s)",
            getattr(view, "action", None) or type(view).__name__,
            response.status_code,
            response.data.get("code") if isinstance(response.data, dict) else None,
        )
    return response
