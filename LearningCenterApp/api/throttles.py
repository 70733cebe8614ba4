"""API throttling classes."""

from rest_framework.throttling import UserRateThrottle

class SubmissionRateThrottle(UserRateThrottle):
    """Throttle limiting assignment submissions per user (rate from REST_FRAMEWORK settings)."""
    scope = "submission_create"
