"""Custom DRF permission classes delegating to the authorization engine."""

from typing import Any

from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from CourseworkApp.core.choices import ApprovalStatus, Role
from CourseworkApp.core.exceptions import NotApproved, RoleForbidden
from CourseworkApp.core.policy import Action, Actor, can_perform, error_for

METHOD_ACTIONS = {
    "GET": Action.READ,
    "HEAD": Action.READ,
    "OPTIONS": Action.READ,
    "POST": Action.CREATE,
    "PUT": Action.UPDATE,
    "PATCH": Action.UPDATE,
    "DELETE": Action.DELETE,
}


def _authenticated(request: Request) -> bool:
    return bool(request.user and request.user.is_authenticated)


class IsApproved(BasePermission):
    """Authenticated and approved; pending/rejected accounts get NOT_APPROVED (403)."""

    def has_permission(self, request: Request, view: Any) -> bool:
        if not _authenticated(request):
            return False
        if request.user.status != ApprovalStatus.APPROVED:
            raise NotApproved()
        return True


class IsAdminRole(BasePermission):
    """Approved admin only."""

    def has_permission(self, request: Request, view: Any) -> bool:
        if not IsApproved().has_permission(request, view):
            return False
        if request.user.role != Role.ADMIN:
            raise RoleForbidden("Admin role required.")
        return True


class PolicyPermission(BasePermission):
    """Object-level check through ``can_perform``.

    The view supplies the descriptor via ``policy_resource(obj)``; denials are
    raised as typed errors so concealment (404) and NOT_ENROLLED survive DRF.
    """

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        action = METHOD_ACTIONS.get(request.method, Action.UPDATE)
        decision = can_perform(Actor.from_profile(request.user), action, view.policy_resource(obj))
        if not decision:
            raise error_for(decision)
        return True
