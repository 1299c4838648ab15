from django.conf import settings
from rest_framework.permissions import BasePermission


class IsWorker(BasePermission):
    """Authenticated users in the configured worker group."""

    message = "Only workers can perform this action"

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return user.groups.filter(name=settings.RIDE_WORKER_GROUP).exists()
