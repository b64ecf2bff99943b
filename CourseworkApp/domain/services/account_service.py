"""Domain service functions for accounts: bootstrap, approval, profiles and invitations.

Rules:
- The first admin is created exactly once, guarded by the SystemState singleton.
- Role and approval status change only through an admin; nobody changes their own status.
- Invitations move pending -> used (terminal) or lapse into expired. Used invitations
  are never deleted or resent, whoever asks.
"""

import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from CourseworkApp.core.access import enrollment_resource, invitation_resource, profile_resource
from CourseworkApp.core.choices import ApprovalStatus, EnrollmentStatus, Role
from CourseworkApp.core.exceptions import (
    AlreadyUsed,
    InvalidState,
    ResourceNotFound,
    RoleForbidden,
    ValidationFailed,
)
from CourseworkApp.core.policy import Action, InvitationResource, ProfileResource, authorize
from CourseworkApp.core.storage import guarded_delete, guarded_update
from CourseworkApp.courses.models import Enrollment
from CourseworkApp.users.models import Invitation, SystemState

logger = logging.getLogger(__name__)

Profile = get_user_model()

SELF_EDITABLE_FIELDS = {"full_name", "bio"}


def _new_token() -> str:
    return secrets.token_urlsafe(32)


def _expiry():
    return timezone.now() + timedelta(days=settings.INVITATION_TTL_DAYS)


def _create_profile(email: str, password: str, role: str, status: str, full_name: str = "") -> Profile:
    profile = Profile(
        email=email,
        username=email,
        full_name=full_name,
        role=role,
        status=status,
    )
    profile.set_password(password)
    profile.save()
    return profile


# ---------- Bootstrap ----------

def is_initialized() -> bool:
    return SystemState.load().initialized


@transaction.atomic
def bootstrap_admin(email: str, password: str, full_name: str = "") -> Profile:
    """Create the first, approved admin and mark the system initialized.

    Raises:
        InvalidState: SYSTEM_INITIALIZED if an admin was bootstrapped before.
    """
    state = SystemState.load(for_update=True)
    if state.initialized:
        raise InvalidState("System is already initialized.", code="SYSTEM_INITIALIZED")
    if Profile.objects.filter(email__iexact=email).exists():
        raise ValidationFailed("An account with this email already exists.", code="ACCOUNT_EXISTS")

    admin = _create_profile(email, password, Role.ADMIN, ApprovalStatus.APPROVED, full_name)
    admin.approved_at = timezone.now()
    admin.save(update_fields=["approved_at"])

    state.initialized = True
    state.initialized_at = timezone.now()
    state.save()
    logger.warning("System bootstrapped with first admin %s", email)
    return admin


# ---------- Profiles ----------

def list_profiles(actor: Profile, role: str | None = None, status: str | None = None) -> QuerySet[Profile]:
    """Admins list everyone; course leaders list students only."""
    authorize(actor, Action.READ, ProfileResource(profile_id=None, role=Role.STUDENT))
    qs = Profile.objects.all()
    if actor.role != Role.ADMIN:
        qs = qs.filter(role=Role.STUDENT)
    if role:
        qs = qs.filter(role=role)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-date_joined")


def get_profile(actor: Profile, profile_id: int) -> Profile:
    try:
        profile = Profile.objects.get(pk=profile_id)
    except (Profile.DoesNotExist, ValueError, TypeError):
        raise ResourceNotFound()
    authorize(actor, Action.READ, profile_resource(profile))
    return profile


@transaction.atomic
def update_own_profile(actor: Profile, data: dict) -> Profile:
    """Update self-editable fields; role/status changes are rejected outright."""
    authorize(actor, Action.UPDATE, profile_resource(actor, set(data)))
    unknown = set(data) - SELF_EDITABLE_FIELDS
    if unknown:
        raise ValidationFailed(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    for name, value in data.items():
        setattr(actor, name, value)
    if data:
        actor.save(update_fields=list(data))
    return actor


@transaction.atomic
def set_approval_status(actor: Profile, profile_id: int, status: str) -> Profile:
    """Approve, reject or reset a profile (admin only; never one's own)."""
    if status not in ApprovalStatus.values:
        raise ValidationFailed(f"Unknown approval status: {status}")
    try:
        target = Profile.objects.select_for_update().get(pk=profile_id)
    except Profile.DoesNotExist:
        raise ResourceNotFound()
    authorize(actor, Action.UPDATE, profile_resource(target, {"status"}))
    if target.pk == actor.pk:
        raise RoleForbidden("You cannot change your own approval status.")

    approved_by, approved_at = (None, None)
    if status != ApprovalStatus.PENDING:
        approved_by, approved_at = actor, timezone.now()
    guarded_update(
        Profile.objects.filter(pk=target.pk),
        "profile",
        status=status,
        approved_by=approved_by,
        approved_at=approved_at,
    )
    target.refresh_from_db()
    logger.info("Profile %s approval set to %s by %s", target.pk, status, actor.pk)
    return target


@transaction.atomic
def set_role(actor: Profile, profile_id: int, role: str) -> Profile:
    if role not in Role.values:
        raise ValidationFailed(f"Unknown role: {role}")
    try:
        target = Profile.objects.select_for_update().get(pk=profile_id)
    except Profile.DoesNotExist:
        raise ResourceNotFound()
    authorize(actor, Action.UPDATE, profile_resource(target, {"role"}))
    if target.pk == actor.pk:
        raise RoleForbidden("You cannot change your own role.")
    guarded_update(Profile.objects.filter(pk=target.pk), "profile", role=role)
    target.refresh_from_db()
    logger.info("Profile %s role set to %s by %s", target.pk, role, actor.pk)
    return target


# ---------- Invitations ----------

def list_invitations(actor: Profile) -> QuerySet[Invitation]:
    authorize(actor, Action.READ, InvitationResource(invited_by_id=actor.pk))
    qs = Invitation.objects.all()
    if actor.role != Role.ADMIN:
        qs = qs.filter(invited_by=actor)
    return qs.select_related("invited_by", "course").order_by("-created_at")


@transaction.atomic
def create_invitation(actor: Profile, email: str, role: str = Role.STUDENT, course=None) -> Invitation:
    """Invite ``email`` with ``role``; course leaders may only invite students.

    Raises:
        ValidationFailed: ACCOUNT_EXISTS if a profile already uses the email.
        InvalidState: INVITATION_PENDING if an unexpired invitation is outstanding.
    """
    authorize(actor, Action.CREATE, invitation_resource(role=role))
    if course is not None:
        authorize(actor, Action.CREATE, enrollment_resource(course))
    email = email.strip().lower()
    if Profile.objects.filter(email__iexact=email).exists():
        raise ValidationFailed("A user with this email already exists.", code="ACCOUNT_EXISTS")
    if Invitation.objects.pending().filter(email__iexact=email).exists():
        raise InvalidState("A pending invitation already exists for this email.", code="INVITATION_PENDING")

    invitation = Invitation.objects.create(
        email=email,
        role=role,
        token=_new_token(),
        invited_by=actor,
        course=course,
        expires_at=_expiry(),
    )
    logger.info("Invitation %s created for %s (%s) by %s", invitation.pk, email, role, actor.pk)
    return invitation


def _get_invitation_for(actor: Profile, invitation_id: int, action: Action) -> Invitation:
    try:
        invitation = Invitation.objects.select_for_update().get(pk=invitation_id)
    except (Invitation.DoesNotExist, ValueError, TypeError):
        raise ResourceNotFound()
    authorize(actor, action, invitation_resource(invitation))
    return invitation


@transaction.atomic
def delete_invitation(actor: Profile, invitation_id: int) -> None:
    invitation = _get_invitation_for(actor, invitation_id, Action.DELETE)
    if invitation.is_used:
        raise AlreadyUsed("Cannot delete used invitation")
    guarded_delete(Invitation.objects.filter(pk=invitation.pk, used_at__isnull=True), "invitation")
    logger.info("Invitation %s deleted by %s", invitation_id, actor.pk)


@transaction.atomic
def resend_invitation(actor: Profile, invitation_id: int) -> Invitation:
    """Issue a fresh token and expiry for an unused invitation."""
    invitation = _get_invitation_for(actor, invitation_id, Action.UPDATE)
    if invitation.is_used:
        raise AlreadyUsed("Cannot resend used invitation")
    guarded_update(
        Invitation.objects.filter(pk=invitation.pk, used_at__isnull=True),
        "invitation",
        token=_new_token(),
        expires_at=_expiry(),
    )
    invitation.refresh_from_db()
    logger.info("Invitation %s resent by %s", invitation_id, actor.pk)
    return invitation


def verify_invitation(token: str) -> Invitation:
    """Return the pending invitation for ``token`` or raise why it cannot be used."""
    try:
        invitation = Invitation.objects.select_related("course").get(token=token)
    except Invitation.DoesNotExist:
        raise ResourceNotFound("Invalid invitation token.")
    if invitation.is_used:
        raise AlreadyUsed("Invitation has already been used.")
    if invitation.is_expired:
        raise InvalidState("Invitation has expired.", code="INVITATION_EXPIRED")
    if Profile.objects.filter(email__iexact=invitation.email).exists():
        raise ValidationFailed("An account with this email already exists.", code="ACCOUNT_EXISTS")
    return invitation


@transaction.atomic
def redeem_invitation(token: str, password: str, full_name: str = "") -> Profile:
    """Create the invited profile with its initial role (status stays pending).

    The invitation is marked used with a guarded update, so a concurrent
    redemption of the same token fails instead of creating a second account.
    """
    invitation = verify_invitation(token)
    guarded_update(
        Invitation.objects.filter(pk=invitation.pk, used_at__isnull=True),
        "invitation",
        used_at=timezone.now(),
    )
    profile = _create_profile(invitation.email, password, invitation.role, ApprovalStatus.PENDING, full_name)
    if invitation.course_id and invitation.role == Role.STUDENT:
        Enrollment.objects.get_or_create(
            course_id=invitation.course_id,
            student=profile,
            defaults={"status": EnrollmentStatus.ACTIVE, "enrolled_by_id": invitation.invited_by_id},
        )
    logger.info("Invitation %s redeemed by new profile %s", invitation.pk, profile.pk)
    return profile
