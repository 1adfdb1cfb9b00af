"""
Role-based access control.

Permissions are "resource:action" strings granted per role; DRF permission
classes are built from them for use in @permission_classes.
"""
from rest_framework.permissions import BasePermission

RESOURCES = (
    'products', 'orders', 'inventory', 'blog', 'users',
    'customers', 'settings', 'reports', 'media', 'contacts',
)
ACTIONS = ('create', 'read', 'update', 'delete', 'list', 'export', 'manage')

ROLE_HIERARCHY = {
    'CUSTOMER': 0,
    'EDITOR': 1,
    'ADMIN': 2,
}

ADMIN_ROLES = ('ADMIN', 'EDITOR')


def _grant(resource, *actions):
    return [f"{resource}:{action}" for action in actions]


PERMISSIONS = {
    'ADMIN': frozenset(
        _grant('products', 'create', 'read', 'update', 'delete', 'list', 'export')
        + _grant('orders', 'create', 'read', 'update', 'delete', 'list', 'export', 'manage')
        + _grant('inventory', 'create', 'read', 'update', 'delete', 'list', 'export', 'manage')
        + _grant('blog', 'create', 'read', 'update', 'delete', 'list', 'manage')
        + _grant('users', 'create', 'read', 'update', 'delete', 'list', 'manage')
        + _grant('customers', 'read', 'update', 'list', 'export')
        + _grant('settings', 'read', 'update', 'manage')
        + _grant('reports', 'read', 'list', 'export')
        + _grant('media', 'create', 'read', 'update', 'delete', 'list')
        + _grant('contacts', 'read', 'update', 'delete', 'list')
    ),
    'EDITOR': frozenset(
        _grant('products', 'create', 'read', 'update', 'list')
        + _grant('orders', 'read', 'list')
        + _grant('blog', 'create', 'read', 'update', 'list')
        + _grant('media', 'create', 'read', 'update', 'list')
        + _grant('contacts', 'read', 'list')
    ),
    'CUSTOMER': frozenset(
        _grant('products', 'read', 'list')
        + _grant('orders', 'read', 'list')
        + _grant('blog', 'read', 'list')
    ),
}


def get_user_role(user):
    if not user or not user.is_authenticated:
        return None
    return getattr(user, 'effective_role', None) or getattr(user, 'role', None)


def has_permission(role, permission):
    return permission in PERMISSIONS.get(role, ())


def has_any_permission(role, permissions):
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role, permissions):
    return all(has_permission(role, p) for p in permissions)


def get_role_permissions(role):
    return sorted(PERMISSIONS.get(role, ()))


def can_access(role, resource, action):
    return has_permission(role, f"{resource}:{action}")


def has_role_level(role, required_role):
    """True when `role` has at least the privileges of `required_role`"""
    if role not in ROLE_HIERARCHY:
        return False
    return ROLE_HIERARCHY[role] >= ROLE_HIERARCHY.get(required_role, len(ROLE_HIERARCHY))


def is_admin_role(role):
    return role in ADMIN_ROLES


def HasPermission(*permissions):
    """
    Build a DRF permission class requiring every given permission.

        @permission_classes([IsAuthenticated, HasPermission('orders:update')])
    """

    class _HasPermission(BasePermission):
        message = f"Missing permission: {', '.join(permissions)}"

        def has_permission(self, request, view):
            return has_all_permissions(get_user_role(request.user), permissions)

    _HasPermission.__name__ = f"HasPermission({', '.join(permissions)})"
    return _HasPermission


class IsAdminRole(BasePermission):
    """ADMIN (or superuser) only"""
    message = 'Insufficient permissions. Required role: ADMIN'

    def has_permission(self, request, view):
        return get_user_role(request.user) == 'ADMIN'


class IsStaffRole(BasePermission):
    """ADMIN or EDITOR"""
    message = 'Insufficient permissions. Required role: EDITOR'

    def has_permission(self, request, view):
        return is_admin_role(get_user_role(request.user))


def user_has_permission(user, permission):
    """Inline check for views whose methods need different permissions"""
    return has_permission(get_user_role(user), permission)
