"""
RBAC models for the multi-tenant school platform.

Implements:
- User (single-role identity, optionally bound to one tenant)
- Role (named permission bundle; global when tenant is null)
- TenantPermission (per-tenant, per-role override of a role's grants)
- AuditLog (audit trail of role and override mutations)

Permission and module lists are stored as JSON arrays where ``"*"`` means
"everything"; use the ``*_set`` helpers (PermissionSet) to make grant
decisions rather than inspecting the raw lists.
"""
import logging
from django.conf import settings
from django.contrib.auth.hashers import make_password, check_password
from django.db import models, transaction
from django.db.models import Q

from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet
from .permission_sets import PermissionSet

logger = logging.getLogger(__name__)


def _super_admin_slug():
    return getattr(settings, 'RBAC_SUPER_ADMIN_ROLE', 'SuperAdmin')


class UserManager(BaseModelManager):
    """
    Manager for User queries.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def by_email(self, email):
        """Find user by email."""
        return self.filter(email=self.normalize_email(email)).first()

    def by_role(self, role_slug, tenant=None):
        qs = self.filter(role=role_slug)
        if tenant is not None:
            qs = qs.filter(tenant=tenant)
        return qs

    def create_user(self, email, password=None, **extra_fields):
        """
        Create a new user with hashed password.

        This method is compatible with Django's authentication system.
        """
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create a platform super admin.

        This method is required for Django's createsuperuser command.
        """
        extra_fields.setdefault('role', _super_admin_slug())
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('role') != _super_admin_slug():
            raise ValueError(f"Superuser must have role={_super_admin_slug()}")

        return self.create_user(email, password, **extra_fields)

    @classmethod
    def normalize_email(cls, email):
        """
        Normalize the email address by lowercasing the domain part.
        """
        email = email or ''
        try:
            email_name, domain_part = email.strip().rsplit('@', 1)
        except ValueError:
            pass
        else:
            email = email_name + '@' + domain_part.lower()
        return email

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(BaseModel):
    """
    School platform user.

    Each user holds exactly one role, referenced by slug. School staff,
    students and parents belong to one tenant; platform super admins have
    no tenant.

    This is the AUTH_USER_MODEL for the entire application, including Django admin.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (unique globally)"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)

    role = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Role slug (e.g., 'Teacher', 'Admin', 'SuperAdmin')"
    )
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='users',
        db_index=True,
        help_text="School this user belongs to (null for platform users)"
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    # Django admin compatibility
    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'role', 'is_active']),
            models.Index(fields=['is_active', 'created_at']),
        ]

    def __str__(self):
        return self.email

    @property
    def password(self):
        """Alias for password_hash; Django admin expects a 'password' attribute."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)

    def get_full_name(self):
        """Return full name or email if name not set."""
        if self.first_name or self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.email

    def get_username(self):
        return self.email

    def update_last_login(self):
        from django.utils import timezone
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at', 'updated_at'])

    # Role helpers. A user has exactly one role, so the list-based helpers
    # compare against that single slug.

    @property
    def is_super_admin(self):
        return self.role == _super_admin_slug()

    def has_role(self, role):
        """True when the user's role equals ``role``, or is in it when given a list."""
        if isinstance(role, (list, tuple, set, frozenset)):
            return self.role in role
        return self.role == role

    def has_any_role(self, roles):
        """True when the user's role is one of ``roles``; a bare slug is a one-item list."""
        if isinstance(roles, str):
            roles = [roles]
        return any(self.has_role(role) for role in roles)

    def get_roles(self):
        return [self.role] if self.role else []

    def get_role_model(self):
        """The Role row this user's slug resolves to (tenant row first, then global)."""
        from .services import RoleService
        return RoleService.get_role(self.role, tenant=self.tenant)

    # Django auth compatibility

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_superuser(self):
        return self.is_super_admin

    @property
    def is_staff(self):
        """Only super admins may use the Django admin site."""
        return self.is_super_admin and self.is_active

    def has_perm(self, perm, obj=None):
        return self.is_active and self.is_super_admin

    def has_perms(self, perm_list, obj=None):
        return self.is_active and self.is_super_admin

    def has_module_perms(self, app_label):
        return self.is_active and self.is_super_admin

    def get_user_permissions(self, obj=None):
        return set()

    def get_group_permissions(self, obj=None):
        return set()

    def get_all_permissions(self, obj=None):
        return set()

    def natural_key(self):
        return (self.email,)


class RoleQuerySet(BaseModelQuerySet):
    def active(self):
        return self.filter(is_active=True)

    def system(self):
        return self.filter(is_system=True)

    def custom(self):
        return self.filter(is_system=False)

    def global_roles(self):
        return self.filter(tenant__isnull=True)


class RoleManager(BaseModelManager.from_queryset(RoleQuerySet)):
    """Manager for Role queries with tenant scoping."""

    def for_tenant(self, tenant):
        """Roles a tenant can see: its own rows plus the global system roles."""
        return self.filter(Q(tenant=tenant) | Q(tenant__isnull=True, is_system=True))

    def get_system_role(self, slug):
        """The global built-in role for ``slug``, or None."""
        return self.filter(slug=slug, tenant__isnull=True, is_system=True).first()

    def get_global_role(self, slug):
        """The active global role for ``slug`` (system or not), or None."""
        return self.filter(slug=slug, tenant__isnull=True, is_active=True).first()


class Role(BaseModel):
    """
    Named bundle of permissions and module access.

    Global roles (tenant is null) are the platform defaults every tenant
    inherits. Tenant-scoped rows are either clones of the defaults made at
    provisioning, or custom roles defined by the school.
    """

    name = models.CharField(
        max_length=100,
        help_text="Display name (e.g., 'School Administrator')"
    )
    slug = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Role identifier referenced by users (e.g., 'Admin')"
    )
    description = models.TextField(blank=True)

    is_system = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Built-in role: never deletable, only editable by super admins"
    )
    is_default = models.BooleanField(
        default=False,
        help_text="Provisioned automatically for new tenants"
    )
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='roles',
        db_index=True,
        help_text="Owning tenant (null for global roles)"
    )

    permissions = models.JSONField(
        default=list,
        blank=True,
        help_text='Permission ids; ["*"] grants every permission'
    )
    module_access = models.JSONField(
        default=list,
        blank=True,
        help_text='Module ids; ["*"] grants every module'
    )
    is_active = models.BooleanField(default=True, db_index=True)

    objects = RoleManager()

    class Meta:
        db_table = 'roles'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'slug'],
                condition=Q(deleted_at__isnull=True),
                name='unique_live_role_slug_per_tenant',
            ),
            models.UniqueConstraint(
                fields=['slug'],
                condition=Q(tenant__isnull=True, deleted_at__isnull=True),
                name='unique_live_global_role_slug',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'is_system']),
            models.Index(fields=['slug', 'is_active']),
        ]

    def __str__(self):
        scope = self.tenant.name if self.tenant_id else 'Global'
        return f"{scope} - {self.name}"

    @property
    def permission_set(self) -> PermissionSet:
        return PermissionSet.from_stored(self.permissions)

    @property
    def module_set(self) -> PermissionSet:
        return PermissionSet.from_stored(self.module_access)

    def has_permission(self, permission_id):
        return self.permission_set.grants(permission_id)

    def has_module_access(self, module):
        return self.module_set.grants(module)

    def can_be_deleted(self):
        return not self.is_system

    def can_be_modified(self, actor=None):
        if not self.is_system:
            return True
        return bool(actor is not None and getattr(actor, 'is_super_admin', False))

    def users(self):
        """Users holding this role; tenant-scoped roles only count their tenant's users."""
        qs = User.objects.filter(role=self.slug)
        if self.tenant_id:
            qs = qs.filter(tenant_id=self.tenant_id)
        return qs

    def active_users(self):
        return self.users().filter(is_active=True)

    def get_statistics(self):
        return {
            'total_users': self.users().count(),
            'active_users': self.active_users().count(),
            'permissions_count': len(self.permissions or []),
            'modules_count': len(self.module_access or []),
        }


class TenantPermissionQuerySet(BaseModelQuerySet):
    def active(self):
        return self.filter(is_active=True)

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def for_role(self, role_slug):
        return self.filter(role_slug=role_slug)


class TenantPermissionManager(BaseModelManager.from_queryset(TenantPermissionQuerySet)):
    """Manager for tenant permission overrides."""

    def get_for_tenant_and_role(self, tenant, role_slug):
        """The active override for (tenant, role_slug), or None."""
        return self.filter(tenant=tenant, role_slug=role_slug, is_active=True).first()


class TenantPermission(BaseModel):
    """
    Per-tenant grant set for one role slug.

    ``permissions`` is the tenant's own copy of the role's base grants;
    ``custom_permissions`` are extras layered on top. Both are additive:
    an override can never take away a permission the role itself grants.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='permission_overrides',
        db_index=True,
    )
    role_slug = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Slug of the role this override applies to"
    )
    permissions = models.JSONField(default=list, blank=True)
    module_access = models.JSONField(default=list, blank=True)
    custom_permissions = models.JSONField(
        default=list,
        blank=True,
        help_text="Extra permissions granted on top of the base set"
    )
    is_active = models.BooleanField(default=True, db_index=True)

    objects = TenantPermissionManager()

    class Meta:
        db_table = 'tenant_permissions'
        ordering = ['tenant', 'role_slug']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'role_slug'],
                condition=Q(deleted_at__isnull=True),
                name='unique_live_override_per_tenant_role',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'role_slug', 'is_active']),
        ]

    def __str__(self):
        return f"{self.tenant.name} - {self.role_slug}"

    def effective_permissions(self):
        """``permissions`` followed by ``custom_permissions``, duplicates collapsed."""
        return list(dict.fromkeys((self.permissions or []) + (self.custom_permissions or [])))

    @property
    def effective_set(self) -> PermissionSet:
        return PermissionSet.from_stored(self.permissions) | PermissionSet.from_stored(self.custom_permissions)

    @property
    def module_set(self) -> PermissionSet:
        return PermissionSet.from_stored(self.module_access)

    def has_permission(self, permission_id):
        return self.effective_set.grants(permission_id)

    def has_module_access(self, module):
        return self.module_set.grants(module)

    def get_statistics(self):
        return {
            'total_permissions': len(self.effective_permissions()),
            'default_permissions': len(self.permissions or []),
            'custom_permissions': len(self.custom_permissions or []),
            'module_access_count': len(self.module_access or []),
        }


class AuditLogQuerySet(BaseModelQuerySet):
    """Chainable audit log filters."""

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def for_user(self, user):
        return self.filter(user=user)

    def by_action(self, action):
        return self.filter(action=action)

    def by_target(self, target_type, target_id=None):
        """Get audit logs for a specific target type and optionally target ID."""
        qs = self.filter(target_type=target_type)
        if target_id:
            qs = qs.filter(target_id=target_id)
        return qs

    def recent(self, days=30):
        from django.utils import timezone
        from datetime import timedelta
        cutoff = timezone.now() - timedelta(days=days)
        return self.filter(created_at__gte=cutoff)


class AuditLogManager(BaseModelManager.from_queryset(AuditLogQuerySet)):
    """Manager for AuditLog queries with tenant scoping."""


class AuditLog(BaseModel):
    """
    Audit trail for role and permission-override changes.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="Tenant this action belongs to (null for platform-level)"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="User who performed the action (null for system actions)"
    )

    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action performed (e.g., 'role_created', 'tenant_permission_reset')"
    )
    target_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Type of target entity (e.g., 'Role', 'TenantPermission')"
    )
    target_id = models.UUIDField(null=True, blank=True, db_index=True)

    diff = models.JSONField(
        default=dict,
        blank=True,
        help_text="Before/after changes in JSON format"
    )
    metadata = models.JSONField(default=dict, blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(max_length=64, blank=True, db_index=True)

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'created_at']),
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['target_type', 'target_id']),
        ]

    def __str__(self):
        user_str = self.user.email if self.user else 'System'
        tenant_str = self.tenant.name if self.tenant else 'Platform'
        return f"{tenant_str} - {user_str} - {self.action}"

    @classmethod
    def log_action(cls, action, user=None, tenant=None, target_type=None,
                   target_id=None, diff=None, metadata=None, request=None):
        """
        Create an audit log entry.

        Args:
            action: Action being performed
            user: User performing the action
            tenant: Tenant context
            target_type: Type of target entity
            target_id: ID of target entity
            diff: Before/after changes
            metadata: Additional context
            request: Django request object (for IP, user agent, request ID)

        Returns:
            AuditLog instance, or None when the entry could not be written
        """
        from apps.core.middleware import get_current_request_id

        if user is not None and not getattr(user, 'is_authenticated', False):
            user = None

        log_data = {
            'action': action,
            'user': user,
            'tenant': tenant,
            'target_type': target_type or '',
            'target_id': target_id,
            'diff': diff or {},
            'metadata': metadata or {},
            'request_id': get_current_request_id() or '',
        }

        if request is not None:
            log_data['ip_address'] = cls._get_client_ip(request)
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')
            log_data['request_id'] = getattr(request, 'request_id', None) or log_data['request_id']

        try:
            with transaction.atomic():
                return cls.objects.create(**log_data)
        except Exception as e:
            # Audit logging must not break the main operation
            logger.error(
                f"Failed to create audit log: {e}",
                extra={'action': action, 'tenant_id': str(tenant.id) if tenant else None},
                exc_info=True
            )
            return None

    @staticmethod
    def _get_client_ip(request):
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
