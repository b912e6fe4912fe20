"""
Permission catalog: the static registry of permission identifiers.

School permissions are grouped by module (students, fees, ...). Platform
permissions are the super-admin capabilities that span tenants; they are
grouped for display by category. The catalog is read-only data and can be
replaced through ``settings.RBAC_PERMISSION_CATALOG``.
"""
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from django.conf import settings

OTHER_CATEGORY = 'Other'


DEFAULT_MODULES = {
    'dashboard': 'Dashboard',
    'students': 'Student Management',
    'teachers': 'Teacher Management',
    'classes': 'Class Management',
    'subjects': 'Subject Management',
    'attendance': 'Attendance Management',
    'exams': 'Exam Management',
    'fees': 'Fee Management',
    'reports': 'Reports & Analytics',
    'settings': 'System Settings',
    'users': 'User Management',
    'library': 'Library Management',
    'transport': 'Transport Management',
    'hr': 'Human Resources',
    'idcard': 'ID Card Management',
    'communication': 'Communication',
}

DEFAULT_MODULE_PERMISSIONS = {
    'dashboard': {
        'dashboard.view': 'View Dashboard',
    },
    'students': {
        'students.view': 'View Students',
        'students.create': 'Create Students',
        'students.edit': 'Edit Students',
        'students.delete': 'Delete Students',
        'students.manage': 'Full Student Management',
        'students.attendance': 'Manage Student Attendance',
        'students.results': 'Manage Student Results',
    },
    'teachers': {
        'teachers.view': 'View Teachers',
        'teachers.create': 'Create Teachers',
        'teachers.edit': 'Edit Teachers',
        'teachers.delete': 'Delete Teachers',
        'teachers.manage': 'Full Teacher Management',
    },
    'classes': {
        'classes.view': 'View Classes',
        'classes.create': 'Create Classes',
        'classes.edit': 'Edit Classes',
        'classes.delete': 'Delete Classes',
        'classes.manage': 'Full Class Management',
    },
    'subjects': {
        'subjects.view': 'View Subjects',
        'subjects.create': 'Create Subjects',
        'subjects.edit': 'Edit Subjects',
        'subjects.delete': 'Delete Subjects',
        'subjects.manage': 'Full Subject Management',
    },
    'attendance': {
        'attendance.view': 'View Attendance',
        'attendance.mark': 'Mark Attendance',
        'attendance.edit': 'Edit Attendance',
        'attendance.manage': 'Full Attendance Management',
    },
    'exams': {
        'exams.view': 'View Exams',
        'exams.create': 'Create Exams',
        'exams.edit': 'Edit Exams',
        'exams.delete': 'Delete Exams',
        'exams.manage': 'Full Exam Management',
        'results.view': 'View Results',
        'results.manage': 'Manage Results',
    },
    'fees': {
        'fees.view': 'View Fees',
        'fees.create': 'Create Fee Structures',
        'fees.edit': 'Edit Fee Structures',
        'fees.delete': 'Delete Fee Structures',
        'fees.manage': 'Full Fee Management',
        'fees.collect': 'Collect Fees',
        'invoices.manage': 'Manage Invoices',
    },
    'reports': {
        'reports.view': 'View Reports',
        'reports.financial': 'View Financial Reports',
        'reports.academic': 'View Academic Reports',
        'reports.attendance': 'View Attendance Reports',
        'reports.export': 'Export Reports',
    },
    'settings': {
        'settings.view': 'View Settings',
        'settings.manage': 'Manage Settings',
        'settings.academic': 'Manage Academic Settings',
        'settings.system': 'Manage System Settings',
    },
    'users': {
        'users.view': 'View Users',
        'users.create': 'Create Users',
        'users.edit': 'Edit Users',
        'users.delete': 'Delete Users',
        'users.manage': 'Full User Management',
        'roles.assign': 'Assign Roles',
    },
    'library': {
        'library.view': 'View Library',
        'library.manage': 'Manage Library',
        'books.manage': 'Manage Books',
        'library.issue': 'Issue Books',
    },
    'transport': {
        'transport.view': 'View Transport',
        'transport.manage': 'Manage Transport',
        'routes.manage': 'Manage Routes',
        'vehicles.manage': 'Manage Vehicles',
    },
    'hr': {
        'hr.view': 'View HR',
        'hr.manage': 'Manage HR',
        'employees.manage': 'Manage Employees',
        'payroll.manage': 'Manage Payroll',
    },
    'idcard': {
        'idcard.view': 'View ID Cards',
        'idcard.manage': 'Manage ID Cards',
        'idcard.generate': 'Generate ID Cards',
    },
    'communication': {
        'communication.view': 'View Communications',
        'communication.send': 'Send Communications',
        'announcements.manage': 'Manage Announcements',
    },
}

DEFAULT_PLATFORM_PERMISSIONS = {
    # Tenant Management
    'tenants.view': 'View all schools/tenants',
    'tenants.create': 'Create new schools/tenants',
    'tenants.edit': 'Edit school/tenant details',
    'tenants.delete': 'Delete schools/tenants',
    'tenants.approve': 'Approve or deactivate schools',
    'tenants.billing': 'Manage billing and subscriptions',
    'tenants.statistics': 'View overall statistics across schools',

    # User Management
    'users.view_all': 'View all users across tenants',
    'users.create_admin': 'Create school admins',
    'users.assign_roles': 'Assign roles to users',
    'users.reset_passwords': 'Reset passwords for any user',
    'users.suspend': 'Deactivate or suspend users',
    'users.bulk_actions': 'Perform bulk operations on users',

    # Role & Permission Control
    'roles.define': 'Define default roles',
    'roles.customize': 'Customize permissions per tenant',
    'permissions.grant': 'Grant access to modules',
    'permissions.revoke': 'Revoke access to modules',
    'permissions.customize': 'Customize tenant permissions',

    # System Configuration
    'system.global_settings': 'Manage global settings',
    'system.themes': 'Manage themes and branding',
    'system.academic_year': 'Configure academic year defaults',
    'system.features': 'Control available features',
    'system.languages': 'Manage languages and localization',
    'system.timezones': 'Configure timezone settings',

    # Monitoring & Reporting
    'reports.cross_tenant': 'View reports across tenants',
    'reports.performance': 'View student performance reports',
    'reports.financial': 'View financial reports',
    'reports.staff_activity': 'Track staff activities',
    'logs.activity': 'Track user activity logs',
    'logs.audit': 'View audit trails',
    'logs.security': 'Monitor security events',

    # Data & Security
    'data.backup': 'Backup tenant data',
    'data.restore': 'Restore tenant data',
    'security.policies': 'Enforce security policies',
    'security.2fa': 'Manage 2FA settings',
    'security.encryption': 'Manage data encryption',
    'integrations.manage': 'Manage third-party integrations',
    'integrations.sms': 'Configure SMS gateway',
    'integrations.email': 'Configure email services',
    'integrations.payment': 'Configure payment gateways',

    # Communication Control
    'communication.announcements': 'Send system-wide announcements',
    'communication.sms_gateway': 'Manage SMS gateway APIs',
    'communication.email_gateway': 'Manage email gateway APIs',
    'communication.templates': 'Manage communication templates',

    # Billing & Subscription
    'billing.plans': 'Define pricing plans',
    'billing.monitor': 'Monitor payments and invoices',
    'billing.invoices': 'Generate and manage invoices',
    'billing.suspend': 'Suspend tenants for billing issues',
    'billing.reports': 'View billing reports',
    'subscriptions.manage': 'Manage subscription lifecycle',

    # Module Management
    'modules.enable': 'Enable/disable modules per tenant',
    'modules.configure': 'Configure module settings',
    'modules.features': 'Control feature availability',

    # Support & Maintenance
    'support.tickets': 'Manage support tickets',
    'maintenance.database': 'Perform database maintenance',
    'maintenance.cleanup': 'Cleanup old data and logs',
    'maintenance.optimization': 'System optimization tasks',
}

DEFAULT_CATEGORY_MAP = {
    'tenants': 'Tenant Management',
    'users': 'User Management',
    'roles': 'Role & Permission Control',
    'permissions': 'Role & Permission Control',
    'system': 'System Configuration',
    'reports': 'Monitoring & Reporting',
    'logs': 'Monitoring & Reporting',
    'data': 'Data & Security',
    'security': 'Data & Security',
    'integrations': 'Data & Security',
    'communication': 'Communication Control',
    'billing': 'Billing & Subscription',
    'subscriptions': 'Billing & Subscription',
    'modules': 'Module Management',
    'support': 'Support & Maintenance',
    'maintenance': 'Support & Maintenance',
}


def _freeze(mapping: Mapping) -> Mapping:
    return MappingProxyType({
        key: _freeze(value) if isinstance(value, Mapping) else value
        for key, value in mapping.items()
    })


class PermissionCatalog:
    """
    Read-only registry mapping module -> ordered (permission id -> label).

    Lookups never fail: unknown modules yield empty mappings and unmapped
    permission prefixes fall into the "Other" category.
    """

    def __init__(
        self,
        modules: Mapping[str, str],
        module_permissions: Mapping[str, Mapping[str, str]],
        platform_permissions: Optional[Mapping[str, str]] = None,
        category_map: Optional[Mapping[str, str]] = None,
    ):
        self._modules = _freeze(modules)
        # Modules that only appear in the permission table still count as modules
        for module in module_permissions:
            if module not in self._modules:
                self._modules = _freeze({**self._modules, module: module.title()})
        self._module_permissions = _freeze(module_permissions)
        self._platform_permissions = _freeze(platform_permissions or {})
        self._category_map = _freeze(category_map or {})

    @classmethod
    def from_config(cls, config: Mapping) -> 'PermissionCatalog':
        module_permissions = config.get('module_permissions', {})
        return cls(
            modules=config.get('modules') or {m: m.title() for m in module_permissions},
            module_permissions=module_permissions,
            platform_permissions=config.get('platform_permissions'),
            category_map=config.get('category_map', DEFAULT_CATEGORY_MAP),
        )

    def list_modules(self) -> List[str]:
        return list(self._modules)

    def module_label(self, module: str) -> str:
        return self._modules.get(module, module)

    def list_permissions(self, module: Optional[str] = None) -> Dict[str, str]:
        """
        Map permission id -> label for one module, or for every module
        (in module order) when ``module`` is omitted.
        """
        if module is not None:
            return dict(self._module_permissions.get(module, {}))

        merged = {}
        for permissions in self._module_permissions.values():
            merged.update(permissions)
        return merged

    def list_platform_permissions(self) -> Dict[str, str]:
        return dict(self._platform_permissions)

    def all_permissions(self) -> Dict[str, str]:
        """School and platform permissions together; school labels win on overlap."""
        return {**self._platform_permissions, **self.list_permissions()}

    def category_of(self, permission_id: str) -> str:
        prefix = permission_id.split('.', 1)[0]
        return self._category_map.get(prefix, OTHER_CATEGORY)

    def permissions_by_category(self) -> Dict[str, List[Dict[str, str]]]:
        """
        Group the platform permissions by display category.

        Every mapped category is present, in map order, even when empty;
        "Other" only appears when some permission needs it.
        """
        grouped = {category: [] for category in dict.fromkeys(self._category_map.values())}
        for permission_id, label in self._platform_permissions.items():
            grouped.setdefault(self.category_of(permission_id), []).append(
                {'id': permission_id, 'label': label}
            )
        return grouped

    def is_known(self, permission_id: str) -> bool:
        if permission_id in self._platform_permissions:
            return True
        return any(permission_id in perms for perms in self._module_permissions.values())

    def is_module(self, module: str) -> bool:
        return module in self._modules


DEFAULT_CATALOG = PermissionCatalog(
    modules=DEFAULT_MODULES,
    module_permissions=DEFAULT_MODULE_PERMISSIONS,
    platform_permissions=DEFAULT_PLATFORM_PERMISSIONS,
    category_map=DEFAULT_CATEGORY_MAP,
)


def get_catalog() -> PermissionCatalog:
    """Return the configured catalog, falling back to the built-in tables."""
    config = getattr(settings, 'RBAC_PERMISSION_CATALOG', None)
    if not config:
        return DEFAULT_CATALOG
    return PermissionCatalog.from_config(config)
