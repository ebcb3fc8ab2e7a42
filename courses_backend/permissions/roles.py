# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import SAFE_METHODS, BasePermission

from users.models import ROLE_ADMIN, ROLE_MODERATOR, ROLE_USER, STAFF_ROLES

__all__ = [
    "ROLE_ADMIN",
    "ROLE_MODERATOR",
    "ROLE_USER",
    "STAFF_ROLES",
]


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views should protect capabilities, not raw roles.
CAP_CATALOG_MANAGE = "catalog.manage"
CAP_ROLES_MANAGE = "roles.manage"
CAP_PAYMENTS_VIEW_ALL = "payments.view_all"
CAP_FORUM_MODERATE = "forum.moderate"

ALL_CAPABILITIES = {
    CAP_CATALOG_MANAGE,
    CAP_ROLES_MANAGE,
    CAP_PAYMENTS_VIEW_ALL,
    CAP_FORUM_MODERATE,
}


# =========================================================
# ROLE → CAPABILITY MAP
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_MODERATOR: {
        CAP_FORUM_MODERATE,
        CAP_PAYMENTS_VIEW_ALL,
    },
    ROLE_USER: set(),
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    if not user or not getattr(user, "is_authenticated", False):
        return None
    return getattr(user, "role", None)


def is_admin(user) -> bool:
    return get_user_role(user) == ROLE_ADMIN


def is_moderator(user) -> bool:
    return get_user_role(user) == ROLE_MODERATOR


def is_staff_role(user) -> bool:
    return get_user_role(user) in STAFF_ROLES


def capabilities_for(user) -> set[str]:
    caps = set(ROLE_CAPABILITIES.get(get_user_role(user), set()))
    if getattr(user, "is_superuser", False):
        caps |= ALL_CAPABILITIES
    return caps


def user_has_capability(user, capability: str) -> bool:
    return capability in capabilities_for(user)


# =========================================================
# Base Role Permission (Internal Use)
# =========================================================
class BaseRolePermission(BasePermission):
    """
    Base permission for role-based access control.

    Subclasses must define:
    - allowed_roles (set)
    """

    allowed_roles: set[str] = set()

    def has_permission(self, request, view):
        user_role = get_user_role(request.user)
        if not user_role:
            return False

        return user_role in self.allowed_roles


class IsAdmin(BaseRolePermission):
    allowed_roles = {ROLE_ADMIN}


class IsModerator(BaseRolePermission):
    allowed_roles = {ROLE_MODERATOR}


class IsStaffRole(BaseRolePermission):
    allowed_roles = set(STAFF_ROLES)


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        view.required_capability = CAP_CATALOG_MANAGE
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_capability", None)
        if not required:
            # deny-by-default
            return False

        return user_has_capability(user, required)


class CanManageCatalogOrReadOnly(BasePermission):
    """
    Reads are open; writes require catalog.manage.
    """

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True

        user = request.user
        if not user or not user.is_authenticated:
            return False

        return user_has_capability(user, CAP_CATALOG_MANAGE)
