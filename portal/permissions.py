"""
Permission classes for the portal API.
"""
from rest_framework.permissions import BasePermission


class IsSignedIn(BasePermission):
    """Session carries an upstream token."""
    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        return bool(user and getattr(user, "is_authenticated", False))
