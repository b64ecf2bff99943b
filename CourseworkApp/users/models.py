"""Identity models: Profile (the user model), Invitation, and the SystemState singleton."""

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone

from CourseworkApp.core.choices import ApprovalStatus, Role


class Profile(AbstractUser):
    """One profile per user: identity, role and approval status.

    Role and status change only through an admin action or the initial role set
    by invitation redemption. Profiles are never deleted through the API.
    """
    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=200, blank=True)
    bio = models.TextField(blank=True)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.STUDENT)
    status = models.CharField(max_length=16, choices=ApprovalStatus.choices, default=ApprovalStatus.PENDING)
    approved_by = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL, related_name="approved_profiles"
    )
    approved_at = models.DateTimeField(null=True, blank=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    @property
    def is_approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"


class InvitationQuerySet(models.QuerySet):
    def pending(self):
        """Unused invitations that have not expired yet."""
        return self.filter(used_at__isnull=True, expires_at__gt=timezone.now())


class Invitation(models.Model):
    """An invitation to join as ``role``; ``used_at`` set means terminal (used)."""
    email = models.EmailField()
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.STUDENT)
    token = models.CharField(max_length=64, unique=True)
    invited_by = models.ForeignKey(Profile, on_delete=models.PROTECT, related_name="sent_invitations")
    course = models.ForeignKey(
        "courses.Course", null=True, blank=True, on_delete=models.SET_NULL, related_name="invitations"
    )
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = InvitationQuerySet.as_manager()

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()

    @property
    def state(self) -> str:
        if self.is_used:
            return "used"
        return "expired" if self.is_expired else "pending"

    def __str__(self) -> str:
        return f"Invitation({self.email}, {self.role}, {self.state})"


class SystemState(models.Model):
    """Singleton row recording the one-time system initialization (first admin)."""
    initialized = models.BooleanField(default=False)
    initialized_at = models.DateTimeField(null=True, blank=True)

    @classmethod
    def load(cls, for_update: bool = False) -> "SystemState":
        qs = cls.objects.select_for_update() if for_update else cls.objects
        state, _ = qs.get_or_create(pk=1)
        return state

    def __str__(self) -> str:
        return f"SystemState(initialized={self.initialized})"
