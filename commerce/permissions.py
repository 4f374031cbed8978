from rest_framework import permissions
import logging

logger = logging.getLogger(__name__)


class IsAdminOrReadOnly(permissions.BasePermission):
    """
    Allow read operations for everyone, write operations for staff users only.

    Applies well to: Product.
    """
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True

        return bool(request.user and request.user.is_authenticated and request.user.is_staff)


class IsAdminUser(permissions.BasePermission):
    """
    Only allow staff users (or superusers) to perform any action.

    Applies well to: Bundle, Coupon.
    """
    def has_permission(self, request, view):
        return bool(
            request.user
            and request.user.is_authenticated
            and (request.user.is_staff or request.user.is_superuser)
        )
