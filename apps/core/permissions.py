"""
DRF permission classes and decorators for RBAC permission enforcement.

This module provides:
- HasRBACPermissions: DRF permission class that enforces required permissions
- IsSuperAdmin: DRF permission class restricted to the super-admin role
- HasRole: DRF permission class restricting a view to a list of role slugs
- @requires_permissions: Decorator to declare required permissions on views
- @requires_roles: Decorator to declare the roles HasRole accepts
"""
import logging
from functools import wraps
from rest_framework.permissions import BasePermission

from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)


def _client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def _declared(request, view, attr):
    """
    Requirements declared for this request under ``attr``: the handler
    method's own declaration wins over the class-level one.
    """
    handler = getattr(view, request.method.lower(), None)
    declared = getattr(handler, attr, None)
    if declared is None:
        declared = getattr(view, attr, None)

    if not declared:
        return set()
    if isinstance(declared, str):
        return {declared}
    return set(declared)


class HasRBACPermissions(BasePermission):
    """
    DRF permission class that enforces permission requirements on API endpoints.

    Every declared permission id must be granted to the requesting user by the
    permission resolver (logical AND). Views without declared permissions only
    require an authenticated user.

    Usage in views:
        @requires_permissions('students.manage')
        class StudentView(APIView):
            permission_classes = [HasRBACPermissions]

    Object-level checks keep tenant-scoped callers inside their own school:
    an object with a ``tenant`` must belong to the user's tenant unless the
    user is a super admin. Objects with a null tenant (global rows) are
    readable by everyone but only writable by super admins.
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = _declared(request, view, 'required_permissions')
        if not required:
            return True

        from apps.rbac.gate import get_request_gate

        gate = get_request_gate(request)
        missing = {permission for permission in required if not gate.can(user, permission)}

        if missing:
            logger.warning(
                f"Permission denied: user {user.pk} ({user.role}) missing permissions: {sorted(missing)}",
                extra={
                    'user_id': str(user.pk),
                    'user_role': user.role,
                    'required_permissions': sorted(required),
                    'missing_permissions': sorted(missing),
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            SecurityLogger.log_permission_denied(
                user, missing, ip_address=_client_ip(request), path=request.path
            )
            return False

        logger.debug(
            f"Permission granted: user has all required permissions {sorted(required)}",
            extra={
                'user_id': str(user.pk),
                'required_permissions': sorted(required),
                'view': view.__class__.__name__,
            }
        )
        return True

    def has_object_permission(self, request, view, obj):
        user = request.user

        if getattr(user, 'is_super_admin', False):
            return True

        if not hasattr(obj, 'tenant_id'):
            return True

        if obj.tenant_id is None:
            # Global rows: visible to all, mutable by super admins only
            return request.method in ('GET', 'HEAD', 'OPTIONS')

        if obj.tenant_id != user.tenant_id:
            logger.warning(
                "Object permission denied: object belongs to different tenant",
                extra={
                    'user_id': str(user.pk),
                    'user_tenant_id': str(user.tenant_id) if user.tenant_id else None,
                    'object_tenant_id': str(obj.tenant_id),
                    'object_type': obj.__class__.__name__,
                    'object_id': str(getattr(obj, 'pk', '')),
                    'view': view.__class__.__name__,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            SecurityLogger.log_cross_tenant_access(
                user, obj.__class__.__name__, getattr(obj, 'pk', None), obj.tenant_id
            )
            return False

        return True


class IsSuperAdmin(BasePermission):
    """Allow access only to users holding the super-admin role."""

    message = 'Super administrator access required.'

    def has_permission(self, request, view):
        user = request.user
        allowed = bool(user and user.is_authenticated and getattr(user, 'is_super_admin', False))
        if not allowed and user and user.is_authenticated:
            SecurityLogger.log_permission_denied(
                user, {'*'}, ip_address=_client_ip(request), path=request.path
            )
        return allowed


class HasRole(BasePermission):
    """
    Restrict a view to users holding one of the roles declared with
    @requires_roles. Super admins always pass; views without a declaration
    only require an authenticated user.

    Usage in views:
        @requires_roles('Admin', 'Accountant')
        class FeeReportView(APIView):
            permission_classes = [HasRole]
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        roles = _declared(request, view, 'required_roles')
        if not roles or getattr(user, 'is_super_admin', False) or user.has_any_role(sorted(roles)):
            return True

        self.message = f"Insufficient permissions. Required roles: {', '.join(sorted(roles))}"
        logger.warning(
            f"Role denied: user {user.pk} ({user.role}) not in {sorted(roles)}",
            extra={
                'user_id': str(user.pk),
                'user_role': user.role,
                'required_roles': sorted(roles),
                'view': view.__class__.__name__,
                'request_id': getattr(request, 'request_id', None),
            }
        )
        SecurityLogger.log_role_denied(user, roles, ip_address=_client_ip(request), path=request.path)
        return False


def requires_permissions(*permissions):
    """
    Decorator to declare required permissions on view classes or methods.

    Usage:
        @requires_permissions('roles.define')
        class RoleCreateView(APIView):
            permission_classes = [HasRBACPermissions]

    Or on individual methods:
        class RoleDetailView(APIView):
            permission_classes = [HasRBACPermissions]

            @requires_permissions('roles.define')
            def delete(self, request, role_id):
                ...

    Args:
        *permissions: Permission ids that must all be granted

    Returns:
        Decorator function that sets the required_permissions attribute
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_permissions = set(permissions)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_permissions = set(permissions)
        return wrapped

    return decorator


def requires_roles(*roles):
    """
    Decorator to declare the role slugs HasRole accepts, on a view class or
    a single handler method. Any one of the roles is enough.

    Usage:
        @requires_roles('Admin')
        class RoleStatisticsView(APIView):
            permission_classes = [HasRole]
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_roles = set(roles)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_roles = set(roles)
        return wrapped

    return decorator
