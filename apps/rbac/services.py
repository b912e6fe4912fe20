"""
RBAC and Authentication services.

Implements:
- AuthService: JWT issue/validation and password login
- RoleService: role definition store (system defaults, tenant clones, custom roles)
- TenantPermissionService: per-tenant permission override store

Every service method that writes validates first and raises one of the
apps.core.exceptions errors before touching the database, then records an
AuditLog entry for the mutation.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

import jwt
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from apps.core.exceptions import Conflict, InvalidOperation, NotFound, PermissionDenied
from apps.core.logging import SecurityLogger
from apps.rbac.defaults import RoleTemplate, get_default_roles
from apps.rbac.models import AuditLog, Role, TenantPermission, User

logger = logging.getLogger(__name__)


def _is_super_admin(actor) -> bool:
    return bool(actor is not None and getattr(actor, 'is_super_admin', False))


def _unique(values: Optional[Iterable[str]]) -> List[str]:
    return list(dict.fromkeys(values or []))


class AuthService:
    """
    Service for authentication operations: JWT issue/validation and login.
    """

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        now = timezone.now()
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'role': user.role,
            'tenant_id': str(user.tenant_id) if user.tenant_id else None,
            'exp': now + timedelta(hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24)),
            'iat': now,
        }

        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256')
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """
        Validate JWT token and return payload.

        Returns:
            Decoded payload dict or None if invalid or expired
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')]
            )
        except jwt.ExpiredSignatureError:
            logger.info("JWT rejected: token expired")
            return None
        except jwt.InvalidTokenError:
            logger.info("JWT rejected: invalid token")
            return None

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        payload = cls.validate_jwt(token)
        if not payload:
            return None

        user_id = payload.get('user_id')
        if not user_id:
            return None

        try:
            return User.objects.select_related('tenant').get(id=user_id, is_active=True)
        except (User.DoesNotExist, ValidationError, ValueError):
            return None

    @classmethod
    def login(cls, email: str, password: str, ip_address: str = None) -> Optional[Dict[str, Any]]:
        """
        Authenticate user and return JWT token.

        Returns:
            Dict with user and token, or None if authentication failed
        """
        user = User.objects.active().filter(email=User.objects.normalize_email(email)).first()

        if user is None:
            SecurityLogger.log_failed_login(email, ip_address, reason='unknown_or_inactive_user')
            return None

        if not user.check_password(password):
            SecurityLogger.log_failed_login(email, ip_address, reason='invalid_password')
            return None

        user.update_last_login()
        token = cls.generate_jwt(user)

        AuditLog.log_action(
            action='user_login',
            user=user,
            tenant=user.tenant,
            target_type='User',
            target_id=user.id,
            metadata={'ip_address': ip_address},
        )

        return {
            'user': user,
            'token': token,
        }


class RoleService:
    """
    Role definition store.

    Global roles (tenant=None) hold the platform defaults; tenants receive
    their own clones at provisioning and may add custom roles.
    """

    EDITABLE_FIELDS = ('name', 'description', 'permissions', 'module_access', 'is_active', 'is_default')
    IMMUTABLE_FIELDS = ('slug', 'is_system', 'tenant')

    @classmethod
    def get_role(cls, slug: str, tenant=None) -> Optional[Role]:
        """
        The tenant's own row for ``slug`` when one exists, otherwise the
        global system role with that slug.
        """
        if not slug:
            return None
        if tenant is not None:
            role = Role.objects.filter(slug=slug, tenant=tenant).first()
            if role is not None:
                return role
        return Role.objects.get_system_role(slug)

    @classmethod
    def get_role_or_404(cls, role_id) -> Role:
        try:
            role = Role.objects.select_related('tenant').filter(id=role_id).first()
        except (ValidationError, ValueError):
            role = None
        if role is None:
            raise NotFound(f"Role '{role_id}' not found", details={'role_id': str(role_id)})
        return role

    @classmethod
    def list_roles(cls, tenant=None, role_type: str = None):
        """
        Roles visible in a scope: a tenant sees its rows plus the global system
        roles; with no tenant, every role is returned.
        """
        qs = Role.objects.for_tenant(tenant) if tenant is not None else Role.objects.all()
        if role_type == 'system':
            qs = qs.system()
        elif role_type == 'custom':
            qs = qs.custom()
        return qs.select_related('tenant').order_by('tenant__name', 'name')

    @classmethod
    def create_role(cls, actor=None, *, name: str, slug: str, description: str = '',
                    permissions: Iterable[str] = None, module_access: Iterable[str] = None,
                    tenant=None, is_system: bool = False, is_default: bool = False,
                    is_active: bool = True, request=None) -> Role:
        """
        Create a role.

        Raises:
            PermissionDenied: is_system requested by a non super admin
            Conflict: a live role with this slug already exists in the scope
        """
        if is_system and not _is_super_admin(actor):
            raise PermissionDenied(
                "Only a super administrator can create system roles",
                details={'slug': slug}
            )

        if Role.objects.filter(slug=slug, tenant=tenant).exists():
            raise Conflict(
                f"Role '{slug}' already exists",
                details={'slug': slug, 'tenant_id': str(tenant.id) if tenant else None}
            )

        try:
            with transaction.atomic():
                role = Role.objects.create(
                    name=name,
                    slug=slug,
                    description=description,
                    permissions=_unique(permissions),
                    module_access=_unique(module_access),
                    tenant=tenant,
                    is_system=is_system,
                    is_default=is_default,
                    is_active=is_active,
                )
        except IntegrityError as e:
            raise Conflict(f"Role '{slug}' already exists", details={'slug': slug}) from e

        logger.info(
            f"Role created: {slug}",
            extra={'role_id': str(role.id), 'role_slug': slug, 'tenant_id': str(tenant.id) if tenant else None}
        )
        AuditLog.log_action(
            action='role_created',
            user=actor,
            tenant=tenant,
            target_type='Role',
            target_id=role.id,
            diff={'after': cls._snapshot(role)},
            request=request,
        )
        return role

    @classmethod
    def update_role(cls, role: Role, fields: Dict[str, Any], actor=None, request=None) -> Role:
        """
        Update editable fields of a role.

        Raises:
            PermissionDenied: role is a system role and actor is not a super admin
            InvalidOperation: an attempt to change slug, is_system or tenant
        """
        if not role.can_be_modified(actor):
            SecurityLogger.log_protected_role_mutation(actor, role, 'update')
            raise PermissionDenied(
                "System roles can only be modified by a super administrator",
                details={'role_id': str(role.id), 'slug': role.slug}
            )

        for field_name in cls.IMMUTABLE_FIELDS:
            if field_name not in fields:
                continue
            current = role.tenant if field_name == 'tenant' else getattr(role, field_name)
            if fields[field_name] != current:
                raise InvalidOperation(
                    f"Role field '{field_name}' cannot be changed",
                    details={'role_id': str(role.id), 'field': field_name}
                )

        before = cls._snapshot(role)
        changed = []
        for field_name in cls.EDITABLE_FIELDS:
            if field_name not in fields:
                continue
            value = fields[field_name]
            if field_name in ('permissions', 'module_access'):
                value = _unique(value)
            if getattr(role, field_name) != value:
                setattr(role, field_name, value)
                changed.append(field_name)

        if not changed:
            return role

        role.save(update_fields=changed + ['updated_at'])

        logger.info(
            f"Role updated: {role.slug}",
            extra={'role_id': str(role.id), 'changed_fields': changed}
        )
        AuditLog.log_action(
            action='role_updated',
            user=actor,
            tenant=role.tenant,
            target_type='Role',
            target_id=role.id,
            diff={'before': before, 'after': cls._snapshot(role)},
            metadata={'changed_fields': changed},
            request=request,
        )
        return role

    @classmethod
    def delete_role(cls, role: Role, actor=None, request=None) -> None:
        """
        Soft-delete a role.

        Raises:
            InvalidOperation: role is a system role (regardless of caller), or
                active users still hold this role
        """
        if role.is_system:
            SecurityLogger.log_protected_role_mutation(actor, role, 'delete')
            raise InvalidOperation(
                "System roles cannot be deleted",
                details={'role_id': str(role.id), 'slug': role.slug}
            )

        active_users = role.active_users().count()
        if active_users:
            raise InvalidOperation(
                f"Role '{role.slug}' is assigned to {active_users} active user(s)",
                details={'role_id': str(role.id), 'slug': role.slug, 'active_users': active_users}
            )

        snapshot = cls._snapshot(role)
        role.delete()

        logger.info(f"Role deleted: {role.slug}", extra={'role_id': str(role.id)})
        AuditLog.log_action(
            action='role_deleted',
            user=actor,
            tenant=role.tenant,
            target_type='Role',
            target_id=role.id,
            diff={'before': snapshot},
            request=request,
        )

    @classmethod
    def list_defaults(cls) -> List[Tuple[str, RoleTemplate]]:
        return [(template.slug, template) for template in get_default_roles()]

    @classmethod
    @transaction.atomic
    def ensure_system_roles(cls, actor=None) -> List[Role]:
        """
        Upsert the global built-in roles from the default templates.

        Safe to run repeatedly; rows are matched on slug.
        """
        roles = []
        for template in get_default_roles():
            fields = template.as_role_fields()
            fields['is_system'] = True
            role, _ = Role.objects.update_or_create(
                slug=template.slug, tenant=None, defaults=fields
            )
            roles.append(role)

        logger.info("System roles ensured", extra={'role_count': len(roles)})
        AuditLog.log_action(
            action='system_roles_ensured',
            user=actor,
            target_type='Role',
            metadata={'roles': [role.slug for role in roles]},
        )
        return roles

    @classmethod
    @transaction.atomic
    def clone_defaults_for_tenant(cls, tenant, actor=None) -> List[Role]:
        """
        Upsert one tenant-scoped Role per default template, keyed by
        (slug, tenant). Re-running refreshes the rows instead of duplicating.
        """
        roles = []
        for template in get_default_roles():
            try:
                role, _ = Role.objects.update_or_create(
                    slug=template.slug, tenant=tenant, defaults=template.as_role_fields()
                )
            except IntegrityError as e:
                raise Conflict(
                    f"Concurrent provisioning of role '{template.slug}'",
                    details={'tenant_id': str(tenant.id), 'slug': template.slug}
                ) from e
            roles.append(role)

        logger.info(
            f"Default roles cloned for tenant {tenant.slug}",
            extra={'tenant_id': str(tenant.id), 'role_count': len(roles)}
        )
        AuditLog.log_action(
            action='tenant_roles_seeded',
            user=actor,
            tenant=tenant,
            target_type='Tenant',
            target_id=tenant.id,
            metadata={'roles': [role.slug for role in roles]},
        )
        return roles

    @classmethod
    def get_statistics(cls, tenant=None) -> Dict[str, Any]:
        roles = cls.list_roles(tenant=tenant)
        users = User.objects.all()
        if tenant is not None:
            users = users.filter(tenant=tenant)

        users_by_role = {
            row['role']: row['total']
            for row in users.filter(is_active=True).values('role').annotate(total=Count('id'))
        }

        return {
            'total_roles': roles.count(),
            'system_roles': roles.system().count(),
            'custom_roles': roles.custom().count(),
            'active_roles': roles.active().count(),
            'active_users_by_role': users_by_role,
        }

    @staticmethod
    def _snapshot(role: Role) -> Dict[str, Any]:
        return {
            'name': role.name,
            'slug': role.slug,
            'description': role.description,
            'permissions': list(role.permissions or []),
            'module_access': list(role.module_access or []),
            'is_system': role.is_system,
            'is_default': role.is_default,
            'is_active': role.is_active,
        }


class TenantPermissionService:
    """
    Tenant permission override store.

    At most one live TenantPermission exists per (tenant, role_slug); every
    write goes through an upsert keyed on that pair or a row-locked
    read-modify-write of the existing row.
    """

    LIST_FIELDS = ('permissions', 'custom_permissions', 'module_access')

    @classmethod
    def get_for_tenant_and_role(cls, tenant, role_slug: str) -> Optional[TenantPermission]:
        return TenantPermission.objects.get_for_tenant_and_role(tenant, role_slug)

    @classmethod
    def list_overrides(cls, tenant=None, role_slug: str = None):
        qs = TenantPermission.objects.select_related('tenant')
        if tenant is not None:
            qs = qs.for_tenant(tenant)
        if role_slug:
            qs = qs.for_role(role_slug)
        return qs

    @classmethod
    def upsert(cls, tenant, role_slug: str, permissions: Iterable[str],
               module_access: Iterable[str], actor=None, request=None) -> TenantPermission:
        """
        Insert or update the override for (tenant, role_slug).

        Always reactivates the row; custom_permissions are left as they are.
        """
        return cls._upsert(
            tenant,
            role_slug,
            {
                'permissions': _unique(permissions),
                'module_access': _unique(module_access),
                'is_active': True,
            },
            action='tenant_permission_upserted',
            actor=actor,
            request=request,
        )

    @classmethod
    def replace(cls, tenant, role_slug: str, permissions: Iterable[str],
                module_access: Iterable[str], custom_permissions: Iterable[str] = (),
                is_active: bool = True, actor=None, request=None) -> TenantPermission:
        """Overwrite every list of the override, creating it when missing."""
        return cls._upsert(
            tenant,
            role_slug,
            {
                'permissions': _unique(permissions),
                'module_access': _unique(module_access),
                'custom_permissions': _unique(custom_permissions),
                'is_active': is_active,
            },
            action='tenant_permission_replaced',
            actor=actor,
            request=request,
        )

    @classmethod
    def add_permission(cls, tp: TenantPermission, permission_id: str, is_custom: bool = False,
                       actor=None, request=None) -> TenantPermission:
        field_name = 'custom_permissions' if is_custom else 'permissions'
        return cls._mutate_list(tp, field_name, add=[permission_id], actor=actor, request=request)

    @classmethod
    def remove_permission(cls, tp: TenantPermission, permission_id: str, is_custom: bool = False,
                          actor=None, request=None) -> TenantPermission:
        field_name = 'custom_permissions' if is_custom else 'permissions'
        return cls._mutate_list(tp, field_name, remove=[permission_id], actor=actor, request=request)

    @classmethod
    def add_module_access(cls, tp: TenantPermission, module: str, actor=None, request=None) -> TenantPermission:
        return cls._mutate_list(tp, 'module_access', add=[module], actor=actor, request=request)

    @classmethod
    def remove_module_access(cls, tp: TenantPermission, module: str, actor=None, request=None) -> TenantPermission:
        return cls._mutate_list(tp, 'module_access', remove=[module], actor=actor, request=request)

    @classmethod
    def effective_permissions(cls, tp: TenantPermission) -> set:
        return set(tp.effective_permissions())

    @classmethod
    def copy_from_default_role(cls, tenant, role_slug: str, actor=None,
                               request=None) -> Optional[TenantPermission]:
        """
        Copy the global system role's grants into the tenant override.

        Returns None, without writing, when no system role has this slug.
        An existing row keeps its custom_permissions.
        """
        role = Role.objects.get_system_role(role_slug)
        if role is None:
            logger.info(
                f"No system role '{role_slug}' to copy from",
                extra={'tenant_id': str(tenant.id), 'role_slug': role_slug}
            )
            return None

        return cls._upsert(
            tenant,
            role_slug,
            {
                'permissions': list(role.permissions or []),
                'module_access': list(role.module_access or []),
                'is_active': True,
            },
            action='tenant_permission_copied_from_role',
            actor=actor,
            request=request,
        )

    @classmethod
    def reset_to_default(cls, tenant, role_slug: str, actor=None,
                         request=None) -> Optional[TenantPermission]:
        """
        Reset an existing override to the global system role's grants and
        clear its custom permissions.

        Returns None without writing when there is no active override. When
        no system role matches, the override is returned unchanged.
        """
        tp = cls.get_for_tenant_and_role(tenant, role_slug)
        if tp is None:
            return None

        role = Role.objects.get_system_role(role_slug)
        if role is None:
            logger.info(
                f"Reset skipped: no system role '{role_slug}'",
                extra={'tenant_id': str(tenant.id), 'role_slug': role_slug}
            )
            return tp

        with transaction.atomic():
            locked = TenantPermission.objects.select_for_update().get(pk=tp.pk)
            before = cls._snapshot(locked)
            locked.permissions = list(role.permissions or [])
            locked.module_access = list(role.module_access or [])
            locked.custom_permissions = []
            locked.save(update_fields=['permissions', 'module_access', 'custom_permissions', 'updated_at'])

        logger.info(
            f"Tenant permissions reset for role {role_slug}",
            extra={'tenant_id': str(tenant.id), 'role_slug': role_slug}
        )
        AuditLog.log_action(
            action='tenant_permission_reset',
            user=actor,
            tenant=tenant,
            target_type='TenantPermission',
            target_id=locked.id,
            diff={'before': before, 'after': cls._snapshot(locked)},
            request=request,
        )
        return locked

    @classmethod
    def grant_module_access(cls, tenant, role_slug: str, modules: Iterable[str],
                            actor=None, request=None) -> TenantPermission:
        """Add modules to the override, creating an empty active override when missing."""
        try:
            with transaction.atomic():
                tp, created = TenantPermission.objects.get_or_create(
                    tenant=tenant,
                    role_slug=role_slug,
                    defaults={'permissions': [], 'module_access': [], 'custom_permissions': []},
                )
                if not tp.is_active:
                    tp.is_active = True
                    tp.save(update_fields=['is_active', 'updated_at'])
        except IntegrityError as e:
            raise Conflict(
                f"Concurrent update of permissions for role '{role_slug}'",
                details={'tenant_id': str(tenant.id), 'role_slug': role_slug}
            ) from e

        return cls._mutate_list(
            tp, 'module_access', add=list(modules), actor=actor, request=request,
            action='tenant_module_access_granted',
        )

    @classmethod
    def revoke_module_access(cls, tenant, role_slug: str, modules: Iterable[str],
                             actor=None, request=None) -> TenantPermission:
        tp = cls.get_for_tenant_and_role(tenant, role_slug)
        if tp is None:
            raise NotFound(
                f"No permission override for role '{role_slug}'",
                details={'tenant_id': str(tenant.id), 'role_slug': role_slug}
            )
        return cls._mutate_list(
            tp, 'module_access', remove=list(modules), actor=actor, request=request,
            action='tenant_module_access_revoked',
        )

    @classmethod
    @transaction.atomic
    def initialize_tenant(cls, tenant, actor=None) -> List[TenantPermission]:
        """
        Provision a tenant: clone the default roles, then create one override
        per cloned role holding a copy of that role's grants.
        """
        roles = RoleService.clone_defaults_for_tenant(tenant, actor=actor)
        overrides = [
            cls.upsert(tenant, role.slug, role.permissions, role.module_access, actor=actor)
            for role in roles
        ]
        logger.info(
            f"Tenant {tenant.slug} initialized with {len(overrides)} permission overrides",
            extra={'tenant_id': str(tenant.id)}
        )
        return overrides

    @classmethod
    def _upsert(cls, tenant, role_slug, defaults, action, actor=None, request=None) -> TenantPermission:
        try:
            with transaction.atomic():
                tp, created = TenantPermission.objects.update_or_create(
                    tenant=tenant, role_slug=role_slug, defaults=defaults
                )
        except IntegrityError as e:
            raise Conflict(
                f"Concurrent update of permissions for role '{role_slug}'",
                details={'tenant_id': str(tenant.id), 'role_slug': role_slug}
            ) from e

        logger.info(
            f"Tenant permission override {'created' if created else 'updated'} for role {role_slug}",
            extra={'tenant_id': str(tenant.id), 'role_slug': role_slug, 'override_id': str(tp.id)}
        )
        AuditLog.log_action(
            action=action,
            user=actor,
            tenant=tenant,
            target_type='TenantPermission',
            target_id=tp.id,
            diff={'after': cls._snapshot(tp)},
            metadata={'created': created},
            request=request,
        )
        return tp

    @classmethod
    def _mutate_list(cls, tp, field_name, add=(), remove=(), actor=None, request=None,
                     action='tenant_permission_updated') -> TenantPermission:
        """
        Add and/or remove ids from one list field under a row lock.

        Ids already present (or already absent) are skipped; when nothing
        changes the row is not written.
        """
        with transaction.atomic():
            locked = TenantPermission.objects.select_for_update().get(pk=tp.pk)
            current = list(getattr(locked, field_name) or [])
            updated = current + [value for value in _unique(add) if value not in current]
            updated = [value for value in updated if value not in set(remove)]

            if updated == current:
                return locked

            before = list(current)
            setattr(locked, field_name, updated)
            locked.save(update_fields=[field_name, 'updated_at'])

        setattr(tp, field_name, updated)

        logger.info(
            f"Tenant permission {field_name} changed for role {locked.role_slug}",
            extra={
                'tenant_id': str(locked.tenant_id),
                'role_slug': locked.role_slug,
                'added': [v for v in updated if v not in before],
                'removed': [v for v in before if v not in updated],
            }
        )
        AuditLog.log_action(
            action=action,
            user=actor,
            tenant=locked.tenant,
            target_type='TenantPermission',
            target_id=locked.id,
            diff={field_name: {'before': before, 'after': updated}},
            request=request,
        )
        return locked

    @staticmethod
    def _snapshot(tp: TenantPermission) -> Dict[str, Any]:
        return {
            'role_slug': tp.role_slug,
            'permissions': list(tp.permissions or []),
            'module_access': list(tp.module_access or []),
            'custom_permissions': list(tp.custom_permissions or []),
            'is_active': tp.is_active,
        }
