"""
Pytest configuration and fixtures.
"""
import pytest
from django.core.management import call_command


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database; apps without migrations are synced."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture(autouse=True)
def no_role_seeding_on_tenant_create(settings):
    """
    Tenants created in tests start without cloned roles so each test
    controls exactly which rows exist. Signal tests turn seeding back on.
    """
    settings.RBAC_SEED_ROLES_ON_TENANT_CREATE = False


@pytest.fixture(autouse=True)
def clear_cache():
    """Rate-limit counters live in the cache; start every test with none."""
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def tenant(db):
    """Create a test school."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(
        name='Greenfield Academy',
        slug='greenfield',
        status='active'
    )


@pytest.fixture
def other_tenant(db):
    """Create another school for isolation tests."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(
        name='Riverside High',
        slug='riverside',
        status='active'
    )


@pytest.fixture
def system_roles(db):
    """Create the global built-in roles."""
    from apps.rbac.services import RoleService
    return {role.slug: role for role in RoleService.ensure_system_roles()}


@pytest.fixture
def make_user(db):
    """Factory for users holding a single role."""
    from apps.rbac.models import User

    counter = {'n': 0}

    def _make(role, tenant=None, email=None, is_active=True, password='testpass123', **extra):
        counter['n'] += 1
        return User.objects.create_user(
            email=email or f'{role.lower()}{counter["n"]}@example.com',
            password=password,
            role=role,
            tenant=tenant,
            is_active=is_active,
            **extra
        )

    return _make


@pytest.fixture
def super_admin(make_user):
    return make_user('SuperAdmin', email='root@platform.example.com')


@pytest.fixture
def school_admin(make_user, tenant):
    return make_user('Admin', tenant=tenant, email='admin@greenfield.example.com')


@pytest.fixture
def teacher(make_user, tenant):
    return make_user('Teacher', tenant=tenant, email='teacher@greenfield.example.com')


@pytest.fixture
def other_admin(make_user, other_tenant):
    return make_user('Admin', tenant=other_tenant, email='admin@riverside.example.com')


@pytest.fixture
def client_for(api_client):
    """Return an API client authenticated as the given user."""
    def _client(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _client
