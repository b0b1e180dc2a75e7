"""
Role checks for the portal API.  Object-level access (appointment
participants, record owners) is enforced in the services.
"""
from rest_framework.permissions import BasePermission


class _HasRole(BasePermission):
    role = ''

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == self.role)


class IsPatientRole(_HasRole):
    """Allow access only to users with the patient role."""
    role = "patient"


class IsDoctorRole(_HasRole):
    """Allow access only to users with the doctor role."""
    role = "doctor"
