"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (login, current user)
- Roles and default role templates
- Tenant permission overrides and their mutation requests
- Permission checks
- Audit logs
"""
import re

from rest_framework import serializers

from apps.rbac.catalog import get_catalog
from apps.rbac.models import AuditLog, Role, TenantPermission, User
from apps.rbac.permission_sets import WILDCARD

PERMISSION_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]+\.[A-Za-z0-9_.-]+$')
MODULE_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


def validate_permission_ids(values):
    invalid = [v for v in values if v != WILDCARD and not PERMISSION_ID_PATTERN.match(v)]
    if invalid:
        raise serializers.ValidationError(
            f"Invalid permission identifier(s): {', '.join(invalid)}. Expected '<module>.<action>' or '*'."
        )
    return list(dict.fromkeys(values))


def validate_module_ids(values):
    invalid = [v for v in values if v != WILDCARD and not MODULE_ID_PATTERN.match(v)]
    if invalid:
        raise serializers.ValidationError(f"Invalid module identifier(s): {', '.join(invalid)}")
    return list(dict.fromkeys(values))


class PermissionIdField(serializers.CharField):
    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        validate_permission_ids([value])
        return value


# ===== AUTHENTICATION SERIALIZERS =====

class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        return value.lower()


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)
    tenant_id = serializers.UUIDField(read_only=True)
    tenant_name = serializers.CharField(source='tenant.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name',
            'role', 'tenant_id', 'tenant_name', 'is_active', 'last_login_at',
            'created_at',
        ]
        read_only_fields = fields


# ===== ROLE SERIALIZERS =====

class RoleSerializer(serializers.ModelSerializer):
    """Serializer for Role model."""

    tenant_id = serializers.UUIDField(read_only=True)
    statistics = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id', 'name', 'slug', 'description', 'is_system', 'is_default',
            'tenant_id', 'permissions', 'module_access', 'is_active',
            'statistics', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_statistics(self, obj):
        # Only include statistics if explicitly requested
        if self.context.get('include_statistics', False):
            return obj.get_statistics()
        return None


class RoleWriteSerializer(serializers.Serializer):
    """
    Request body for creating a role.

    ``tenant_id`` is only honoured for super admins; other callers always
    create roles in their own tenant.
    """

    name = serializers.CharField(max_length=100)
    slug = serializers.RegexField(r'^[A-Za-z][A-Za-z0-9_-]*$', max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    permissions = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    module_access = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    is_system = serializers.BooleanField(required=False, default=False)
    is_default = serializers.BooleanField(required=False, default=False)
    is_active = serializers.BooleanField(required=False, default=True)
    tenant_id = serializers.CharField(required=False, allow_null=True, default=None)

    def validate_permissions(self, value):
        return validate_permission_ids(value)

    def validate_module_access(self, value):
        return validate_module_ids(value)


class RoleUpdateSerializer(serializers.Serializer):
    """
    Update body for PUT and PATCH: only the fields sent are applied.
    ``slug`` and ``is_system`` may be sent but must not change.
    """

    name = serializers.CharField(max_length=100, required=False)
    slug = serializers.RegexField(r'^[A-Za-z][A-Za-z0-9_-]*$', max_length=100, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    permissions = serializers.ListField(child=serializers.CharField(), required=False)
    module_access = serializers.ListField(child=serializers.CharField(), required=False)
    is_system = serializers.BooleanField(required=False)
    is_default = serializers.BooleanField(required=False)
    is_active = serializers.BooleanField(required=False)

    def validate_permissions(self, value):
        return validate_permission_ids(value)

    def validate_module_access(self, value):
        return validate_module_ids(value)


class RoleTemplateSerializer(serializers.Serializer):
    slug = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField()
    permissions = serializers.ListField(child=serializers.CharField())
    module_access = serializers.ListField(child=serializers.CharField())
    is_system = serializers.BooleanField()


class InitializeRolesSerializer(serializers.Serializer):
    tenant_id = serializers.CharField(
        required=False,
        allow_null=True,
        help_text="Tenant id or slug; omit to (re)create the global system roles"
    )
    with_overrides = serializers.BooleanField(required=False, default=False)


# ===== TENANT PERMISSION SERIALIZERS =====

class TenantPermissionSerializer(serializers.ModelSerializer):
    """Serializer for TenantPermission model."""

    tenant_id = serializers.UUIDField(read_only=True)
    effective_permissions = serializers.SerializerMethodField()
    statistics = serializers.SerializerMethodField()

    class Meta:
        model = TenantPermission
        fields = [
            'id', 'tenant_id', 'role_slug', 'permissions', 'module_access',
            'custom_permissions', 'effective_permissions', 'is_active',
            'statistics', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_effective_permissions(self, obj):
        return obj.effective_permissions()

    def get_statistics(self, obj):
        return obj.get_statistics()


class TenantRoleTargetSerializer(serializers.Serializer):
    """Identifies one override: a tenant (id or slug) and a role slug."""

    tenant_id = serializers.CharField(required=False, allow_null=True, default=None)
    role_slug = serializers.CharField(max_length=100)


class TenantPermissionWriteSerializer(TenantRoleTargetSerializer):
    permissions = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    module_access = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    custom_permissions = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    is_active = serializers.BooleanField(required=False, default=True)

    def validate_permissions(self, value):
        return validate_permission_ids(value)

    def validate_custom_permissions(self, value):
        return validate_permission_ids(value)

    def validate_module_access(self, value):
        return validate_module_ids(value)


class ModuleAccessChangeSerializer(TenantRoleTargetSerializer):
    modules = serializers.ListField(child=serializers.CharField(), allow_empty=False)

    def validate_modules(self, value):
        return validate_module_ids(value)


class PermissionChangeSerializer(TenantRoleTargetSerializer):
    permission = PermissionIdField()
    is_custom = serializers.BooleanField(required=False, default=False)


# ===== PERMISSION CHECK SERIALIZERS =====

class PermissionCheckSerializer(serializers.Serializer):
    permission = serializers.CharField(max_length=150)


class BulkPermissionCheckSerializer(serializers.Serializer):
    permissions = serializers.ListField(
        child=serializers.CharField(max_length=150),
        allow_empty=False,
        max_length=200,
    )


class CatalogModuleSerializer(serializers.Serializer):
    id = serializers.CharField()
    label = serializers.CharField()
    permissions = serializers.DictField(child=serializers.CharField())

    @classmethod
    def for_module(cls, module, catalog=None):
        catalog = catalog or get_catalog()
        return cls({
            'id': module,
            'label': catalog.module_label(module),
            'permissions': catalog.list_permissions(module),
        })


class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for AuditLog model."""

    user_email = serializers.EmailField(source='user.email', read_only=True, default=None)
    tenant_name = serializers.CharField(source='tenant.name', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'tenant_name', 'user_email', 'action',
            'target_type', 'target_id', 'diff', 'metadata',
            'ip_address', 'user_agent', 'request_id',
            'created_at'
        ]
        read_only_fields = fields


class AuditLogFilterSerializer(serializers.Serializer):
    """Query parameters accepted by the audit log listing."""

    tenant_id = serializers.CharField(required=False)
    action = serializers.CharField(required=False)
    target_type = serializers.CharField(required=False)
    target_id = serializers.UUIDField(required=False)
    days = serializers.IntegerField(required=False, min_value=1)
