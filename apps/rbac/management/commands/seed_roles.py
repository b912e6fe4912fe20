"""
Management command to seed the built-in roles.

Always refreshes the global system roles first. With --tenant or --all the
default roles are also cloned into tenants, and --with-overrides creates
one permission override per cloned role. Idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand, CommandError

from apps.core.exceptions import RBACException
from apps.rbac.services import RoleService, TenantPermissionService
from apps.tenants.models import Tenant


class Command(BaseCommand):
    help = 'Seed the built-in roles globally and optionally for tenant(s) (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant',
            type=str,
            help='Tenant ID or slug to clone the default roles into',
        )
        parser.add_argument(
            '--all',
            action='store_true',
            help='Clone the default roles into every tenant',
        )
        parser.add_argument(
            '--with-overrides',
            action='store_true',
            help='Also create a permission override per cloned role',
        )

    def handle(self, *args, **options):
        tenant_id = options.get('tenant')
        seed_all = options.get('all')
        with_overrides = options.get('with_overrides')

        if tenant_id and seed_all:
            raise CommandError('Cannot specify both --tenant and --all')

        if with_overrides and not (tenant_id or seed_all):
            raise CommandError('--with-overrides requires --tenant=<id> or --all')

        roles = RoleService.ensure_system_roles()
        self.stdout.write(self.style.SUCCESS(f'✓ {len(roles)} global system roles ready'))
        for role in roles:
            self.stdout.write(f'    {role.slug}: {role.name}')

        if seed_all:
            tenants = list(Tenant.objects.all())
            self.stdout.write(f'\nSeeding roles for all {len(tenants)} tenants...')
        elif tenant_id:
            tenant = Tenant.objects.resolve(tenant_id)
            if tenant is None:
                raise CommandError(f'Tenant not found: {tenant_id}')
            tenants = [tenant]
        else:
            return

        total_roles = 0
        total_overrides = 0
        for tenant in tenants:
            try:
                if with_overrides:
                    overrides = TenantPermissionService.initialize_tenant(tenant)
                    total_roles += len(overrides)
                    total_overrides += len(overrides)
                else:
                    total_roles += len(RoleService.clone_defaults_for_tenant(tenant))
            except RBACException as e:
                raise CommandError(f'Seeding {tenant.slug} failed: {e.message}') from e

            self.stdout.write(f'  {tenant.name} ({tenant.slug})')

        summary = f'\n✓ Seeding complete: {total_roles} roles across {len(tenants)} tenant(s)'
        if with_overrides:
            summary += f', {total_overrides} permission overrides'
        self.stdout.write(self.style.SUCCESS(summary))
