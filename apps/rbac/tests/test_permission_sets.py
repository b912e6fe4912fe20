"""
Tests for PermissionSet: the parsed form of stored permission lists.
"""
from hypothesis import given, strategies as st, settings, HealthCheck

from apps.rbac.permission_sets import PermissionSet, WILDCARD


permission_ids = st.from_regex(r'[a-z]{2,10}\.[a-z_]{2,12}', fullmatch=True)
permission_lists = st.lists(permission_ids, max_size=15)


class TestPermissionSetParsing:

    def test_wildcard_parses_to_all(self):
        assert PermissionSet.from_stored(['*']).is_all

    def test_wildcard_mixed_with_literals_is_all(self):
        parsed = PermissionSet.from_stored(['students.view', '*'])
        assert parsed.is_all
        assert parsed.to_stored() == [WILDCARD]

    def test_none_and_empty_are_empty(self):
        assert PermissionSet.from_stored(None) == PermissionSet.empty()
        assert PermissionSet.from_stored([]) == PermissionSet.empty()
        assert not PermissionSet.from_stored(None)

    def test_single_string_is_treated_as_one_id(self):
        parsed = PermissionSet.from_stored('fees.manage')
        assert parsed.grants('fees.manage')
        assert len(parsed) == 1

    def test_duplicates_collapse_and_order_is_kept(self):
        parsed = PermissionSet.from_stored(['b.view', 'a.view', 'b.view'])
        assert parsed.to_stored() == ['b.view', 'a.view']

    def test_repr(self):
        assert repr(PermissionSet.all()) == 'PermissionSet.all()'
        assert repr(PermissionSet.of(['a.b'])) == "PermissionSet.of(['a.b'])"


class TestPermissionSetGrants:

    def test_all_grants_ids_outside_any_catalog(self):
        assert PermissionSet.all().grants('does.not_exist')
        assert 'anything.at_all' in PermissionSet.all()

    def test_empty_grants_nothing(self):
        assert not PermissionSet.empty().grants('dashboard.view')

    def test_literal_match_is_exact(self):
        permissions = PermissionSet.of(['students.view'])
        assert permissions.grants('students.view')
        assert not permissions.grants('students.vie')
        assert not permissions.grants('students')

    @given(ids=permission_lists, candidate=permission_ids)
    @settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_grants_matches_membership(self, ids, candidate):
        """Property: a literal set grants exactly its members."""
        assert PermissionSet.of(ids).grants(candidate) == (candidate in ids)

    @given(ids=permission_lists)
    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_storage_round_trip(self, ids):
        """Property: parsing the stored form gives back an equal set."""
        parsed = PermissionSet.of(ids)
        assert PermissionSet.from_stored(parsed.to_stored()) == parsed


class TestPermissionSetAlgebra:

    @given(left=permission_lists, right=permission_lists, candidate=permission_ids)
    @settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_union_grants_either_side(self, left, right, candidate):
        """Property: the union grants what either operand grants."""
        a, b = PermissionSet.of(left), PermissionSet.of(right)
        assert (a | b).grants(candidate) == (a.grants(candidate) or b.grants(candidate))

    @given(ids=permission_lists)
    @settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_union_with_all_is_all(self, ids):
        assert (PermissionSet.of(ids) | PermissionSet.all()).is_all
        assert (PermissionSet.all() | PermissionSet.of(ids)).is_all

    def test_with_id_is_idempotent(self):
        permissions = PermissionSet.of(['fees.view'])
        assert permissions.with_id('fees.view') is permissions
        assert permissions.with_id('fees.manage').to_stored() == ['fees.view', 'fees.manage']

    def test_without_id_removes_literal(self):
        permissions = PermissionSet.of(['fees.view', 'fees.manage'])
        assert permissions.without_id('fees.view').to_stored() == ['fees.manage']

    def test_without_literal_on_all_is_noop(self):
        assert PermissionSet.all().without_id('fees.view').is_all

    def test_without_wildcard_on_all_is_empty(self):
        assert PermissionSet.all().without_id(WILDCARD) == PermissionSet.empty()

    def test_as_set(self):
        assert PermissionSet.all().as_set() == {'*'}
        assert PermissionSet.of(['a.b', 'c.d']).as_set() == {'a.b', 'c.d'}

    def test_equality_ignores_order_and_hashes_consistently(self):
        a = PermissionSet.of(['a.b', 'c.d'])
        b = PermissionSet.of(['c.d', 'a.b'])
        assert a == b
        assert hash(a) == hash(b)
        assert a != PermissionSet.all()
        assert len({a, b}) == 1
