from rest_framework.permissions import BasePermission

from .exceptions import Forbidden, Unauthenticated


def require_authenticated(user):
    """Return the user or raise Unauthenticated for anonymous callers"""
    if user is None or not getattr(user, 'is_authenticated', False):
        raise Unauthenticated()
    return user


def require_admin(user):
    """Return the user or raise Unauthenticated/Forbidden"""
    user = require_authenticated(user)
    if getattr(user, 'role', None) != 'admin':
        raise Forbidden()
    return user


def require_owner_or_admin(user, owner_id):
    """Ownership check shared by order reads and slip uploads"""
    user = require_authenticated(user)
    if user.pk != owner_id and getattr(user, 'role', None) != 'admin':
        raise Forbidden()
    return user


class IsAuthenticatedUser(BasePermission):
    """Raises the storefront error kinds instead of returning False"""

    def has_permission(self, request, view):
        require_authenticated(request.user)
        return True


class IsAdminRole(BasePermission):
    """Admin gateway guard: role must be 'admin'"""

    def has_permission(self, request, view):
        require_admin(request.user)
        return True
