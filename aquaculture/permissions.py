"""Role based permission codes and DRF permission classes.

Codes follow ``category.action`` (``cages.create``, ``stocking.approve``...).
"""
from collections import OrderedDict

from rest_framework import permissions

from .models import UserProfile


USER_PERMISSIONS = [
    "dashboard.view",
    "cages.view",
    "records.view",
    "records.create",
    "stocking.view",
    "stocking.create",
    "harvest.view",
    "feed.view",
    "notifications.view",
]

ADMIN_PERMISSIONS = USER_PERMISSIONS + [
    "cages.create",
    "cages.update",
    "cages.delete",
    "records.import",
    "records.export",
    "stocking.approve",
    "harvest.create",
    "feed.manage",
    "users.view",
    "users.manage",
    "company.update",
    "audit.view",
    "analytics.view",
]

SUPER_ADMIN_PERMISSIONS = ADMIN_PERMISSIONS + [
    "companies.view",
    "companies.approve",
    "users.grant_super_admin",
]

ROLE_PERMISSIONS = {
    UserProfile.USER: USER_PERMISSIONS,
    UserProfile.ADMIN: ADMIN_PERMISSIONS,
    UserProfile.SUPER_ADMIN: SUPER_ADMIN_PERMISSIONS,
}


def permissions_for_role(role):
    return list(ROLE_PERMISSIONS.get(role, []))


def has_permission(codes, code):
    return code in (codes or [])


def group_permissions_by_category(codes):
    """{"cages": ["view", "create"], ...} preserving first-seen order."""
    grouped = OrderedDict()
    for code in codes or []:
        category, _, action = code.partition(".")
        grouped.setdefault(category, []).append(action)
    return grouped


def user_profile(user):
    if not user or not user.is_authenticated:
        return None
    return getattr(user, "profile", None)


def user_has_role(user, role):
    profile = user_profile(user)
    return bool(profile and profile.has_role(role))


def user_can(user, code):
    profile = user_profile(user)
    return bool(profile and has_permission(profile.permissions, code))


class HasCompany(permissions.BasePermission):
    """Authenticated and linked to an approved company."""

    message = "Your company registration has not been approved yet."

    def has_permission(self, request, view):
        profile = user_profile(request.user)
        return bool(profile and profile.company_id)


class IsCompanyAdmin(permissions.BasePermission):
    """DRF permission enforcing the admin role (or higher)."""

    def has_permission(self, request, view):
        return user_has_role(request.user, UserProfile.ADMIN)


class IsSuperAdmin(permissions.BasePermission):
    """DRF permission enforcing the super_admin role."""

    def has_permission(self, request, view):
        return user_has_role(request.user, UserProfile.SUPER_ADMIN)


class AdminWriteOrReadOnly(permissions.BasePermission):
    """Everyone in the company reads; admins write."""

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return user_profile(request.user) is not None
        return user_has_role(request.user, UserProfile.ADMIN)
