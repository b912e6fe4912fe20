"""
Tests for RBAC permission classes and decorators.
"""
import pytest
from unittest.mock import Mock, patch
from django.contrib.auth.models import AnonymousUser
from rest_framework.views import APIView

from apps.core.permissions import (
    HasRBACPermissions, HasRole, IsSuperAdmin, requires_permissions, requires_roles,
)
from apps.rbac.gate import REQUEST_ATTR


class StubGate:
    def __init__(self, granted=()):
        self.granted = set(granted)

    def can(self, user, permission_id):
        return permission_id in self.granted


@pytest.fixture
def mock_view():
    """Provide mock view instance."""
    view = Mock(spec=APIView)
    view.__class__.__name__ = 'MockView'
    return view


@pytest.fixture
def make_request(rf):
    def _make(user, granted=(), method='get'):
        request = getattr(rf, method)('/v1/roles')
        request.user = user
        request.request_id = 'req-123'
        setattr(request, REQUEST_ATTR, StubGate(granted))
        return request
    return _make


def make_user(role='Teacher', tenant_id='tenant-1', super_admin=False):
    user = Mock()
    user.pk = user.id = 'user-1'
    user.role = role
    user.tenant_id = tenant_id
    user.is_authenticated = True
    user.is_super_admin = super_admin
    user.has_any_role = lambda roles: role in roles
    return user


class TestHasRBACPermissions:

    def test_anonymous_denied(self, make_request, mock_view):
        assert HasRBACPermissions().has_permission(make_request(AnonymousUser()), mock_view) is False

    def test_no_declared_permissions_allows_authenticated(self, make_request, mock_view):
        mock_view.get = lambda request: None
        mock_view.required_permissions = None
        assert HasRBACPermissions().has_permission(make_request(make_user()), mock_view) is True

    def test_all_declared_permissions_required(self, make_request, mock_view):
        mock_view.get = lambda request: None
        mock_view.required_permissions = {'roles.define', 'roles.customize'}

        granted = make_request(make_user(), granted=['roles.define', 'roles.customize'])
        assert HasRBACPermissions().has_permission(granted, mock_view) is True

        partial = make_request(make_user(), granted=['roles.define'])
        assert HasRBACPermissions().has_permission(partial, mock_view) is False

    def test_method_declaration_wins(self, make_request, mock_view):
        @requires_permissions('permissions.grant')
        def post(self, request):
            return None

        mock_view.post = post
        mock_view.required_permissions = {'roles.define'}

        request = make_request(make_user(), granted=['permissions.grant'], method='post')
        assert HasRBACPermissions().has_permission(request, mock_view) is True

    def test_object_in_other_tenant(self, make_request, mock_view):
        obj = Mock(tenant_id='tenant-2', pk='role-1')
        assert HasRBACPermissions().has_object_permission(make_request(make_user()), mock_view, obj) is False

    def test_object_in_own_tenant(self, make_request, mock_view):
        obj = Mock(tenant_id='tenant-1')
        assert HasRBACPermissions().has_object_permission(make_request(make_user()), mock_view, obj) is True

    def test_global_object_read_only(self, make_request, mock_view):
        obj = Mock(tenant_id=None)
        permission = HasRBACPermissions()
        assert permission.has_object_permission(make_request(make_user()), mock_view, obj) is True
        assert permission.has_object_permission(make_request(make_user(), method='patch'), mock_view, obj) is False

    def test_super_admin_reaches_any_object(self, make_request, mock_view):
        obj = Mock(tenant_id='tenant-2')
        user = make_user('SuperAdmin', tenant_id=None, super_admin=True)
        assert HasRBACPermissions().has_object_permission(make_request(user, method='delete'), mock_view, obj)


class TestIsSuperAdmin:

    def test_super_admin(self, make_request, mock_view):
        user = make_user('SuperAdmin', tenant_id=None, super_admin=True)
        assert IsSuperAdmin().has_permission(make_request(user), mock_view) is True

    def test_school_admin(self, make_request, mock_view):
        assert IsSuperAdmin().has_permission(make_request(make_user('Admin')), mock_view) is False

    def test_anonymous(self, make_request, mock_view):
        assert IsSuperAdmin().has_permission(make_request(AnonymousUser()), mock_view) is False


class TestHasRole:

    def test_declared_role_allowed(self, make_request, mock_view):
        mock_view.required_roles = {'Admin', 'Accountant'}
        assert HasRole().has_permission(make_request(make_user('Accountant')), mock_view) is True

    def test_other_role_denied_with_message(self, make_request, mock_view):
        mock_view.required_roles = {'Admin', 'Accountant'}
        permission = HasRole()

        assert permission.has_permission(make_request(make_user('Teacher')), mock_view) is False
        assert permission.message == 'Insufficient permissions. Required roles: Accountant, Admin'

    def test_super_admin_always_allowed(self, make_request, mock_view):
        mock_view.required_roles = {'Admin'}
        user = make_user('SuperAdmin', tenant_id=None, super_admin=True)
        assert HasRole().has_permission(make_request(user), mock_view) is True

    def test_no_declared_roles_allows_authenticated(self, make_request, mock_view):
        mock_view.required_roles = None
        assert HasRole().has_permission(make_request(make_user()), mock_view) is True
        assert HasRole().has_permission(make_request(AnonymousUser()), mock_view) is False

    def test_method_declaration_wins(self, make_request, mock_view):
        @requires_roles('Accountant')
        def post(self, request):
            return None

        mock_view.post = post
        mock_view.required_roles = {'Admin'}

        request = make_request(make_user('Accountant'), method='post')
        assert HasRole().has_permission(request, mock_view) is True

    def test_denial_is_logged(self, make_request, mock_view):
        mock_view.required_roles = {'Admin'}
        with patch('apps.core.permissions.SecurityLogger.log_role_denied') as log_role_denied:
            HasRole().has_permission(make_request(make_user('Parent')), mock_view)
        log_role_denied.assert_called_once()
        assert log_role_denied.call_args.args[1] == {'Admin'}


class TestRequiresPermissionsDecorator:

    def test_on_class(self):
        @requires_permissions('logs.audit')
        class AuditView(APIView):
            pass

        assert AuditView.required_permissions == {'logs.audit'}

    def test_on_method_keeps_behaviour(self):
        class RoleView:
            @requires_permissions('roles.define', 'roles.customize')
            def post(self, request):
                return 'created'

        assert RoleView.post.required_permissions == {'roles.define', 'roles.customize'}
        assert RoleView().post(None) == 'created'
        assert RoleView.post.__name__ == 'post'

    def test_requires_roles_on_class_and_method(self):
        @requires_roles('Admin')
        class StatisticsView(APIView):
            pass

        class FeeView:
            @requires_roles('Accountant', 'Admin')
            def get(self, request):
                return 'fees'

        assert StatisticsView.required_roles == {'Admin'}
        assert FeeView.get.required_roles == {'Accountant', 'Admin'}
        assert FeeView().get(None) == 'fees'
