"""
Permission resolution.

Decides whether a user holds a permission or may use a module:

1. The super-admin role is granted everything, before any lookup.
2. The user's role slug is resolved to its active global Role; an unknown
   slug resolves to an empty grant set.
3. A wildcard on the role grants everything; otherwise a literal match grants.
4. Only when the role denies is the tenant's active override for
   (user.tenant, user.role) consulted. Overrides add grants; they never
   revoke what the role grants.

Resolution never raises for unknown roles, permissions or modules; absence
always means deny.
"""
import logging
from typing import Dict, Optional

from apps.rbac.catalog import get_catalog
from apps.rbac.defaults import super_admin_slug
from apps.rbac.models import Role, TenantPermission
from apps.rbac.permission_sets import PermissionSet

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Stateless resolver; every call reads the current role and override rows."""

    PERMISSION = 'permission'
    MODULE = 'module'

    def has_permission(self, user, permission_id: str) -> bool:
        return self._decide(user, permission_id, self.PERMISSION)

    def has_module_access(self, user, module: str) -> bool:
        return self._decide(user, module, self.MODULE)

    def resolve_permissions(self, user) -> Dict:
        """
        The full grant picture for a user.

        ``permissions`` and ``modules`` are plain sets; a set of ``{"*"}``
        together with the matching ``grants_all_*`` flag means everything.
        """
        if not self._is_eligible(user):
            return self._result(PermissionSet.empty(), PermissionSet.empty())

        if self._is_super_admin(user):
            return self._result(PermissionSet.all(), PermissionSet.all())

        role = self._base_role(user)
        permissions = role.permission_set if role else PermissionSet.empty()
        modules = role.module_set if role else PermissionSet.empty()

        override = self._override(user)
        if override is not None:
            permissions = permissions | override.effective_set
            modules = modules | override.module_set

        return self._result(permissions, modules)

    def capabilities(self, user, catalog=None) -> Dict[str, Dict]:
        """
        Module-by-module capability matrix over the catalog:
        ``{module: {"access": bool, "permissions": {permission_id: bool}}}``.
        """
        catalog = catalog or get_catalog()
        resolved = self.resolve_permissions(user)
        permissions = PermissionSet.of(resolved['permissions'])
        modules = PermissionSet.of(resolved['modules'])

        return {
            module: {
                'label': catalog.module_label(module),
                'access': modules.grants(module),
                'permissions': {
                    permission_id: permissions.grants(permission_id)
                    for permission_id in catalog.list_permissions(module)
                },
            }
            for module in catalog.list_modules()
        }

    def _decide(self, user, identifier: str, kind: str) -> bool:
        if not self._is_eligible(user):
            return False

        if self._is_super_admin(user):
            return True

        role = self._base_role(user)
        if role is not None and self._role_set(role, kind).grants(identifier):
            return True

        override = self._override(user)
        if override is not None and self._override_set(override, kind).grants(identifier):
            logger.debug(
                f"{kind} '{identifier}' granted by tenant override",
                extra={'user_id': str(user.pk), 'role_slug': user.role, 'override_id': str(override.pk)}
            )
            return True

        return False

    @staticmethod
    def _is_eligible(user) -> bool:
        return bool(
            user is not None
            and getattr(user, 'is_authenticated', False)
            and getattr(user, 'is_active', False)
            and getattr(user, 'role', None)
        )

    @staticmethod
    def _is_super_admin(user) -> bool:
        return user.role == super_admin_slug()

    @staticmethod
    def _base_role(user) -> Optional[Role]:
        role = Role.objects.get_global_role(user.role)
        if role is None:
            logger.debug(
                f"Role '{user.role}' not found; resolving to no permissions",
                extra={'user_id': str(user.pk), 'role_slug': user.role}
            )
        return role

    @staticmethod
    def _override(user) -> Optional[TenantPermission]:
        if not getattr(user, 'tenant_id', None):
            return None
        return TenantPermission.objects.filter(
            tenant_id=user.tenant_id, role_slug=user.role, is_active=True
        ).first()

    def _role_set(self, role: Role, kind: str) -> PermissionSet:
        return role.permission_set if kind == self.PERMISSION else role.module_set

    def _override_set(self, override: TenantPermission, kind: str) -> PermissionSet:
        return override.effective_set if kind == self.PERMISSION else override.module_set

    @staticmethod
    def _result(permissions: PermissionSet, modules: PermissionSet) -> Dict:
        return {
            'permissions': permissions.as_set(),
            'modules': modules.as_set(),
            'grants_all_permissions': permissions.is_all,
            'grants_all_modules': modules.is_all,
        }
