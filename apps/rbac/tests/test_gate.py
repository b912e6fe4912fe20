"""
Tests for the authorization gate.
"""
import pytest

from apps.rbac.gate import REQUEST_ATTR, AuthorizationGate, get_request_gate
from apps.rbac.models import Role


class CountingResolver:
    """Resolver stand-in that grants a fixed set and counts lookups."""

    def __init__(self, permissions=(), modules=()):
        self.permissions = set(permissions)
        self.modules = set(modules)
        self.calls = 0

    def has_permission(self, user, permission_id):
        self.calls += 1
        return permission_id in self.permissions

    def has_module_access(self, user, module):
        self.calls += 1
        return module in self.modules


class FakeUser:
    def __init__(self, pk):
        self.pk = pk


class TestGateChecks:

    def test_can(self):
        gate = AuthorizationGate(CountingResolver(['students.view']))
        user = FakeUser(1)
        assert gate.can(user, 'students.view')
        assert not gate.can(user, 'students.manage')

    def test_can_any_and_can_all(self):
        gate = AuthorizationGate(CountingResolver(['students.view', 'classes.view']))
        user = FakeUser(1)
        assert gate.can_any(user, ['fees.manage', 'classes.view'])
        assert not gate.can_any(user, ['fees.manage', 'fees.view'])
        assert gate.can_all(user, ['students.view', 'classes.view'])
        assert not gate.can_all(user, ['students.view', 'fees.view'])

    def test_empty_lists(self):
        gate = AuthorizationGate(CountingResolver())
        assert not gate.can_any(FakeUser(1), [])
        assert gate.can_all(FakeUser(1), [])

    def test_can_access_module(self):
        gate = AuthorizationGate(CountingResolver(modules=['exams']))
        assert gate.can_access_module(FakeUser(1), 'exams')
        assert not gate.can_access_module(FakeUser(1), 'fees')


class TestGateMemo:

    def test_repeated_checks_resolve_once(self):
        resolver = CountingResolver(['students.view'])
        gate = AuthorizationGate(resolver)
        user = FakeUser(1)

        for _ in range(3):
            assert gate.can(user, 'students.view')
        assert resolver.calls == 1

    def test_memo_is_keyed_by_user_and_kind(self):
        resolver = CountingResolver(['exams'], modules=['exams'])
        gate = AuthorizationGate(resolver)

        gate.can(FakeUser(1), 'exams')
        gate.can(FakeUser(2), 'exams')
        gate.can_access_module(FakeUser(1), 'exams')
        assert resolver.calls == 3

    def test_denials_are_memoized_too(self):
        resolver = CountingResolver()
        gate = AuthorizationGate(resolver)
        assert not gate.can(FakeUser(1), 'fees.view')
        assert not gate.can(FakeUser(1), 'fees.view')
        assert resolver.calls == 1

    def test_clear(self):
        resolver = CountingResolver(['students.view'])
        gate = AuthorizationGate(resolver)
        gate.can(FakeUser(1), 'students.view')
        gate.clear()
        gate.can(FakeUser(1), 'students.view')
        assert resolver.calls == 2

    def test_memo_disabled(self):
        resolver = CountingResolver(['students.view'])
        gate = AuthorizationGate(resolver, memoize=False)
        gate.can(FakeUser(1), 'students.view')
        gate.can(FakeUser(1), 'students.view')
        assert resolver.calls == 2


class TestRequestGate:

    def test_gate_is_created_once_per_request(self, rf):
        request = rf.get('/')
        gate = get_request_gate(request)
        assert getattr(request, REQUEST_ATTR) is gate
        assert get_request_gate(request) is gate

    def test_gates_are_not_shared_between_requests(self, rf):
        assert get_request_gate(rf.get('/')) is not get_request_gate(rf.get('/'))

    @pytest.mark.django_db
    def test_new_request_sees_role_changes(self, rf, teacher, system_roles):
        first = get_request_gate(rf.get('/'))
        assert not first.can(teacher, 'fees.view')

        Role.objects.filter(slug='Teacher', tenant__isnull=True).update(
            permissions=system_roles['Teacher'].permissions + ['fees.view']
        )
        assert not first.can(teacher, 'fees.view')
        assert get_request_gate(rf.get('/')).can(teacher, 'fees.view')


@pytest.mark.django_db
class TestGateWithResolver:

    def test_default_resolver(self, teacher, system_roles):
        gate = AuthorizationGate()
        assert gate.can(teacher, 'exams.manage')
        assert gate.can_access_module(teacher, 'exams')
        assert not gate.can_access_module(teacher, 'fees')
        assert gate.can_any(teacher, ['fees.manage', 'students.view'])
        assert not gate.can_all(teacher, ['fees.manage', 'students.view'])
