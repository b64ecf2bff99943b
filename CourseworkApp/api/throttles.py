"""API throttling classes."""

from rest_framework.throttling import UserRateThrottle

class DraftSaveRateThrottle(UserRateThrottle):
    """Throttle limiting draft auto-save requests per user (rate from DEFAULT_THROTTLE_RATES)."""
    scope = "draft_save"
