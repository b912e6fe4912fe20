"""
Authorization gate: the yes/no facade request handlers call.

One gate is attached to each request (``get_request_gate``) so repeated
checks within a request reuse earlier answers. Gates are never shared
across requests, so a stale answer cannot outlive the request.
"""
import logging
from typing import Iterable

from apps.core.exceptions import NotFound
from apps.rbac.resolver import PermissionResolver

logger = logging.getLogger(__name__)

REQUEST_ATTR = '_rbac_gate'


class AuthorizationGate:
    """
    Boolean authorization checks over a PermissionResolver.

    Args:
        resolver: resolver to consult (a fresh PermissionResolver by default)
        memoize: remember answers per (user, kind, id) for the gate's lifetime
    """

    def __init__(self, resolver: PermissionResolver = None, memoize: bool = True):
        self.resolver = resolver or PermissionResolver()
        self.memoize = memoize
        self._memo = {}

    def can(self, user, permission_id: str) -> bool:
        return self._check(user, 'permission', permission_id, self.resolver.has_permission)

    def can_any(self, user, permission_ids: Iterable[str]) -> bool:
        return any(self.can(user, permission_id) for permission_id in permission_ids)

    def can_all(self, user, permission_ids: Iterable[str]) -> bool:
        return all(self.can(user, permission_id) for permission_id in permission_ids)

    def can_access_module(self, user, module: str) -> bool:
        return self._check(user, 'module', module, self.resolver.has_module_access)

    def clear(self):
        self._memo.clear()

    def _check(self, user, kind, identifier, resolve) -> bool:
        if not self.memoize:
            return resolve(user, identifier)

        key = (getattr(user, 'pk', None), kind, identifier)
        if key not in self._memo:
            self._memo[key] = resolve(user, identifier)
        return self._memo[key]


def get_request_gate(request) -> AuthorizationGate:
    """The gate bound to ``request``, created on first use."""
    gate = getattr(request, REQUEST_ATTR, None)
    if gate is None:
        gate = AuthorizationGate()
        setattr(request, REQUEST_ATTR, gate)
    return gate


def _get_user(user_id):
    from django.core.exceptions import ValidationError
    from apps.rbac.models import User

    try:
        return User.objects.select_related('tenant').filter(pk=user_id).first()
    except (ValidationError, ValueError):
        return None


def authorize(user_id, permission_id: str) -> bool:
    """True when the user with ``user_id`` holds ``permission_id``; unknown users are denied."""
    user = _get_user(user_id)
    if user is None:
        logger.info("Authorization denied: unknown user", extra={'user_id': str(user_id)})
        return False
    return PermissionResolver().has_permission(user, permission_id)


def resolve_permissions(user_id) -> dict:
    """
    Resolved permission and module sets for ``user_id``.

    Raises:
        NotFound: no such user
    """
    user = _get_user(user_id)
    if user is None:
        raise NotFound(f"User '{user_id}' not found", details={'user_id': str(user_id)})
    return PermissionResolver().resolve_permissions(user)
