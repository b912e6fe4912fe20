"""
Built-in role templates.

Every tenant is provisioned with these six roles. The table is plain data;
deployments may replace it with ``settings.RBAC_DEFAULT_ROLES`` (a mapping
of slug -> template fields), but the super-admin template is always present
and always grants everything.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from django.conf import settings

from .permission_sets import WILDCARD, PermissionSet


def super_admin_slug() -> str:
    return getattr(settings, 'RBAC_SUPER_ADMIN_ROLE', 'SuperAdmin')


@dataclass(frozen=True)
class RoleTemplate:
    """Immutable definition of a built-in role."""

    slug: str
    name: str
    description: str = ''
    permissions: Tuple[str, ...] = field(default_factory=tuple)
    module_access: Tuple[str, ...] = field(default_factory=tuple)
    is_system: bool = True

    @property
    def permission_set(self) -> PermissionSet:
        return PermissionSet.of(self.permissions)

    @property
    def module_set(self) -> PermissionSet:
        return PermissionSet.of(self.module_access)

    def as_role_fields(self) -> Dict:
        """Field values for a Role row cloned from this template."""
        return {
            'name': self.name,
            'description': self.description,
            'permissions': list(self.permissions),
            'module_access': list(self.module_access),
            'is_system': self.is_system,
            'is_default': True,
            'is_active': True,
        }

    def to_dict(self) -> Dict:
        return {
            'slug': self.slug,
            'name': self.name,
            'description': self.description,
            'permissions': list(self.permissions),
            'module_access': list(self.module_access),
            'is_system': self.is_system,
        }


DEFAULT_ROLE_TEMPLATES: Tuple[RoleTemplate, ...] = (
    RoleTemplate(
        slug='SuperAdmin',
        name='Super Administrator',
        description='Full system access with tenant management capabilities',
        permissions=(WILDCARD,),
        module_access=(WILDCARD,),
    ),
    RoleTemplate(
        slug='Admin',
        name='School Administrator',
        description='Full access to school management features',
        permissions=(
            'dashboard.view', 'students.manage', 'teachers.manage', 'classes.manage',
            'subjects.manage', 'attendance.manage', 'exams.manage', 'fees.manage',
            'reports.view', 'settings.manage', 'users.manage', 'library.manage',
            'transport.manage', 'hr.manage', 'idcard.manage',
        ),
        module_access=(
            'dashboard', 'students', 'teachers', 'classes', 'subjects', 'attendance',
            'exams', 'fees', 'reports', 'settings', 'users', 'library', 'transport',
            'hr', 'idcard',
        ),
    ),
    RoleTemplate(
        slug='Teacher',
        name='Teacher',
        description='Access to teaching and student management features',
        permissions=(
            'dashboard.view', 'students.view', 'students.attendance', 'classes.view',
            'subjects.view', 'attendance.manage', 'exams.manage', 'reports.view',
            'profile.manage',
        ),
        module_access=(
            'dashboard', 'students', 'classes', 'subjects', 'attendance', 'exams', 'reports',
        ),
    ),
    RoleTemplate(
        slug='Student',
        name='Student',
        description='Access to student portal features',
        permissions=(
            'dashboard.view', 'profile.view', 'attendance.view', 'exams.view',
            'results.view', 'library.view', 'transport.view',
        ),
        module_access=('dashboard', 'attendance', 'exams', 'library', 'transport'),
    ),
    RoleTemplate(
        slug='Parent',
        name='Parent/Guardian',
        description="Access to monitor children's academic progress",
        permissions=(
            'dashboard.view', 'children.view', 'attendance.view', 'exams.view',
            'results.view', 'fees.view', 'communication.view',
        ),
        module_access=('dashboard', 'students', 'attendance', 'exams', 'fees'),
    ),
    RoleTemplate(
        slug='Accountant',
        name='Accountant',
        description='Access to financial and fee management features',
        permissions=(
            'dashboard.view', 'fees.manage', 'reports.financial', 'students.view',
            'billing.manage', 'invoices.manage',
        ),
        module_access=('dashboard', 'fees', 'reports', 'students'),
    ),
)


def _template_from_config(slug, config) -> RoleTemplate:
    return RoleTemplate(
        slug=slug,
        name=config.get('name', slug),
        description=config.get('description', ''),
        permissions=tuple(config.get('permissions', ())),
        module_access=tuple(config.get('module_access', ())),
        is_system=config.get('is_system', True),
    )


def get_default_roles() -> List[RoleTemplate]:
    """
    Return the configured role templates in provisioning order.

    The super-admin template is forced to the wildcard bundle even when the
    configured table says otherwise, and added first when it is missing.
    """
    config = getattr(settings, 'RBAC_DEFAULT_ROLES', None)
    if config:
        templates = [_template_from_config(slug, values) for slug, values in config.items()]
    else:
        templates = list(DEFAULT_ROLE_TEMPLATES)

    admin_slug = super_admin_slug()
    result = []
    for template in templates:
        if template.slug == admin_slug:
            template = RoleTemplate(
                slug=admin_slug,
                name=template.name,
                description=template.description,
                permissions=(WILDCARD,),
                module_access=(WILDCARD,),
                is_system=True,
            )
        result.append(template)

    if not any(t.slug == admin_slug for t in result):
        result.insert(0, RoleTemplate(
            slug=admin_slug,
            name='Super Administrator',
            description='Full system access with tenant management capabilities',
            permissions=(WILDCARD,),
            module_access=(WILDCARD,),
        ))

    return result


def get_default_role(slug) -> Optional[RoleTemplate]:
    for template in get_default_roles():
        if template.slug == slug:
            return template
    return None
