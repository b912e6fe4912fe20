"""
Operator command for inspecting and repairing resolved permissions.

Actions:
    report      summary of roles and overrides, optionally for one tenant
    user-check  resolve one user's permissions, or check a single permission
    reset       reset a tenant's override for a role to the system defaults
"""
from django.core.management.base import BaseCommand, CommandError

from apps.core.exceptions import NotFound
from apps.rbac.gate import authorize, resolve_permissions
from apps.rbac.models import User
from apps.rbac.services import RoleService, TenantPermissionService
from apps.tenants.models import Tenant


class Command(BaseCommand):
    help = 'Inspect resolved permissions and reset tenant permission overrides'

    def add_arguments(self, parser):
        parser.add_argument(
            'action',
            choices=['report', 'user-check', 'reset'],
            help='Operation to perform',
        )
        parser.add_argument('--tenant', type=str, help='Tenant ID or slug')
        parser.add_argument('--user', type=str, help='User email or ID (user-check)')
        parser.add_argument('--permission', type=str, help='Permission id to check (user-check)')
        parser.add_argument('--role', type=str, help='Role slug (reset)')

    def handle(self, *args, **options):
        action = options['action']
        if action == 'report':
            self._report(options)
        elif action == 'user-check':
            self._user_check(options)
        else:
            self._reset(options)

    def _tenant(self, identifier, required=False):
        if not identifier:
            if required:
                raise CommandError('--tenant is required for this action')
            return None
        tenant = Tenant.objects.resolve(identifier)
        if tenant is None:
            raise CommandError(f'Tenant not found: {identifier}')
        return tenant

    def _report(self, options):
        tenant = self._tenant(options.get('tenant'))
        stats = RoleService.get_statistics(tenant=tenant)

        scope = f'{tenant.name} ({tenant.slug})' if tenant else 'all tenants'
        self.stdout.write(f'Role report for {scope}')
        self.stdout.write(f"  Roles: {stats['total_roles']} "
                          f"(system {stats['system_roles']}, custom {stats['custom_roles']}, "
                          f"active {stats['active_roles']})")

        for slug, total in sorted(stats['active_users_by_role'].items()):
            self.stdout.write(f'  {slug}: {total} active user(s)')

        overrides = TenantPermissionService.list_overrides(tenant=tenant)
        self.stdout.write(f'  Permission overrides: {overrides.count()}')
        for tp in overrides:
            tp_stats = tp.get_statistics()
            state = 'active' if tp.is_active else 'inactive'
            self.stdout.write(
                f'    {tp.tenant.slug}/{tp.role_slug} [{state}]: '
                f"{tp_stats['total_permissions']} permissions "
                f"({tp_stats['custom_permissions']} custom), "
                f"{tp_stats['module_access_count']} modules"
            )

    def _user_check(self, options):
        identifier = options.get('user')
        if not identifier:
            raise CommandError('--user is required for user-check')

        user = User.objects.by_email(identifier)
        user_id = user.id if user else identifier

        permission = options.get('permission')
        if permission:
            allowed = authorize(user_id, permission)
            if allowed:
                self.stdout.write(self.style.SUCCESS(f'✓ {identifier} has {permission}'))
            else:
                self.stdout.write(self.style.WARNING(f'✗ {identifier} does not have {permission}'))
            return

        try:
            resolved = resolve_permissions(user_id)
        except NotFound as e:
            raise CommandError(e.message) from e

        if resolved['grants_all_permissions']:
            user = user or User.objects.get(pk=user_id)
            source = 'super admin' if user.is_super_admin else f'wildcard grant via {user.role}'
            self.stdout.write(self.style.SUCCESS(f'{identifier}: all permissions ({source})'))
            return

        self.stdout.write(f"{identifier}: {len(resolved['permissions'])} permissions")
        for permission_id in sorted(resolved['permissions']):
            self.stdout.write(f'  {permission_id}')
        self.stdout.write(f"Modules: {', '.join(sorted(resolved['modules'])) or '-'}")

    def _reset(self, options):
        tenant = self._tenant(options.get('tenant'), required=True)
        role_slug = options.get('role')
        if not role_slug:
            raise CommandError('--role is required for reset')

        tp = TenantPermissionService.reset_to_default(tenant, role_slug)
        if tp is None:
            raise CommandError(f'No active permission override for {role_slug} in {tenant.slug}')

        self.stdout.write(self.style.SUCCESS(
            f'✓ Reset {tenant.slug}/{role_slug} to {len(tp.permissions)} default permissions'
        ))
