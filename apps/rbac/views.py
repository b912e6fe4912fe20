"""
RBAC REST API views.

Implements endpoints for:
- Permission introspection (my permissions, capability matrix, checks, catalog)
- Role management (CRUD, default templates, statistics, initialization)
- Tenant permission overrides (list, replace, module grants, custom permissions, reset)
- Audit log viewing

Tenant-scoped callers always act inside their own tenant; only super admins
may name another tenant via ``tenant_id``.
"""
import logging
from django.db import transaction
from rest_framework import serializers, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFound, PermissionDenied
from apps.core.logging import SecurityLogger
from apps.core.permissions import HasRBACPermissions, HasRole, IsSuperAdmin, requires_permissions, requires_roles
from apps.rbac.catalog import get_catalog
from apps.rbac.gate import get_request_gate
from apps.rbac.models import AuditLog, Role
from apps.rbac.resolver import PermissionResolver
from apps.rbac.serializers import (
    AuditLogFilterSerializer, AuditLogSerializer, BulkPermissionCheckSerializer, CatalogModuleSerializer,
    InitializeRolesSerializer, ModuleAccessChangeSerializer, PermissionChangeSerializer,
    PermissionCheckSerializer, RoleSerializer, RoleTemplateSerializer,
    RoleUpdateSerializer, RoleWriteSerializer, TenantPermissionSerializer,
    TenantPermissionWriteSerializer, TenantRoleTargetSerializer,
)
from apps.rbac.services import RoleService, TenantPermissionService
from apps.tenants.models import Tenant

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


def resolve_scope_tenant(request, identifier, required=True):
    """
    The tenant a request acts on.

    Super admins may name any tenant by id or slug (or none, when not
    required). Everyone else is pinned to their own tenant; naming a
    different one is refused.
    """
    user = request.user

    if user.is_super_admin:
        if not identifier:
            if required:
                raise serializers.ValidationError({'tenant_id': ['This field is required.']})
            return None
        tenant = Tenant.objects.resolve(str(identifier))
        if tenant is None:
            raise NotFound(f"Tenant '{identifier}' not found", details={'tenant_id': str(identifier)})
        return tenant

    if user.tenant_id is None:
        raise PermissionDenied("User is not attached to a tenant")

    if identifier and str(identifier) not in (str(user.tenant_id), user.tenant.slug):
        SecurityLogger.log_cross_tenant_access(user, 'Tenant', identifier, identifier)
        raise PermissionDenied(
            "Cannot act on another tenant",
            details={'tenant_id': str(identifier)}
        )

    return user.tenant


# ===== PERMISSION INTROSPECTION =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='My permissions',
        description='''
Resolved permissions and modules of the authenticated user.

Super admins receive `["*"]` for both lists with the `grants_all_*` flags set.
        ''',
        responses={200: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Teacher',
                value={
                    'user_id': '123e4567-e89b-12d3-a456-426614174000',
                    'role': 'Teacher',
                    'tenant_id': '123e4567-e89b-12d3-a456-426614174001',
                    'permissions': ['attendance.manage', 'exams.manage'],
                    'modules': ['attendance', 'exams'],
                    'grants_all_permissions': False,
                    'grants_all_modules': False,
                },
                response_only=True,
            )
        ]
    )
)
class MyPermissionsView(APIView):
    """
    GET /v1/permissions/me
    """

    def get(self, request):
        user = request.user
        resolved = PermissionResolver().resolve_permissions(user)
        return Response({
            'user_id': str(user.id),
            'role': user.role,
            'tenant_id': str(user.tenant_id) if user.tenant_id else None,
            'permissions': sorted(resolved['permissions']),
            'modules': sorted(resolved['modules']),
            'grants_all_permissions': resolved['grants_all_permissions'],
            'grants_all_modules': resolved['grants_all_modules'],
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Capability matrix',
        description='For every catalog module: whether the user may open it, and each permission in it.',
        responses={200: OpenApiTypes.OBJECT},
    )
)
class CapabilitiesView(APIView):
    """
    GET /v1/permissions/capabilities
    """

    def get(self, request):
        return Response({
            'role': request.user.role,
            'capabilities': PermissionResolver().capabilities(request.user),
        })


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Check one permission',
        request=PermissionCheckSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    )
)
class PermissionCheckView(APIView):
    """
    POST /v1/permissions/check
    """

    def post(self, request):
        serializer = PermissionCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        permission = serializer.validated_data['permission']

        return Response({
            'permission': permission,
            'has_permission': get_request_gate(request).can(request.user, permission),
            'user_role': request.user.role,
        })


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Check several permissions',
        description='Returns a per-permission result plus `has_any` (OR) and `has_all` (AND).',
        request=BulkPermissionCheckSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    )
)
class BulkPermissionCheckView(APIView):
    """
    POST /v1/permissions/bulk-check
    """

    def post(self, request):
        serializer = BulkPermissionCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        permissions = serializer.validated_data['permissions']

        gate = get_request_gate(request)
        results = {permission: gate.can(request.user, permission) for permission in permissions}

        return Response({
            'results': results,
            'has_any': gate.can_any(request.user, permissions),
            'has_all': gate.can_all(request.user, permissions),
            'user_role': request.user.role,
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Permission catalog',
        description='''
The static permission catalog: school modules with their permissions, and the
platform permissions grouped by display category.
        ''',
        responses={200: OpenApiTypes.OBJECT},
    )
)
class PermissionCatalogView(APIView):
    """
    GET /v1/permissions/catalog
    """

    def get(self, request):
        catalog = get_catalog()
        modules = catalog.list_modules()
        return Response({
            'modules': [{'id': module, 'label': catalog.module_label(module)} for module in modules],
            'permissions_by_module': {module: catalog.list_permissions(module) for module in modules},
            'platform_permissions_by_category': catalog.permissions_by_category(),
            'all_permissions': catalog.all_permissions(),
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Permissions of one module',
        responses={200: CatalogModuleSerializer, 404: OpenApiTypes.OBJECT},
    )
)
class PermissionCatalogModuleView(APIView):
    """
    GET /v1/permissions/catalog/{module}
    """

    def get(self, request, module):
        catalog = get_catalog()
        if not catalog.is_module(module):
            raise NotFound(f"Module '{module}' not found", details={'module': module})
        return Response(CatalogModuleSerializer.for_module(module, catalog).data)


# ===== ROLES =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='List roles',
        description='''
List roles visible to the caller: their tenant's roles plus the global system roles.
Super admins see every role, or one tenant's with `tenant_id`.

Query parameters:
- `type`: Filter by 'system' or 'custom'
- `tenant_id`: Tenant id or slug (super admins only)
- `include_statistics`: Set to 'true' to include user and permission counts
        ''',
        parameters=[
            OpenApiParameter('type', OpenApiTypes.STR, description='Filter by role type: system or custom'),
            OpenApiParameter('tenant_id', OpenApiTypes.STR, description='Tenant id or slug'),
            OpenApiParameter('include_statistics', OpenApiTypes.BOOL, description='Include role statistics'),
        ],
        responses={200: RoleSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['RBAC - Roles'],
        summary='Create role',
        description='''
Create a role. Only super admins may create system roles or global roles.

**Required permission:** `roles.define`
        ''',
        request=RoleWriteSerializer,
        responses={
            201: RoleSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
    ),
)
class RoleListView(APIView):
    """
    GET /v1/roles
    POST /v1/roles
    """

    permission_classes = [HasRBACPermissions]

    def get(self, request):
        tenant = resolve_scope_tenant(request, request.query_params.get('tenant_id'), required=False)

        roles = RoleService.list_roles(tenant=tenant, role_type=request.query_params.get('type'))

        serializer = RoleSerializer(
            roles,
            many=True,
            context={'include_statistics': request.query_params.get('include_statistics') == 'true'}
        )
        return Response({
            'count': len(serializer.data),
            'roles': serializer.data
        })

    @requires_permissions('roles.define')
    @transaction.atomic
    def post(self, request):
        serializer = RoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        tenant = resolve_scope_tenant(request, data.pop('tenant_id'), required=False)

        role = RoleService.create_role(actor=request.user, tenant=tenant, request=request, **data)
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='Get role',
        responses={200: RoleSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    ),
    put=extend_schema(
        tags=['RBAC - Roles'],
        summary='Update role',
        description='''
Update a role. System roles can only be modified by super admins; `slug` and
`is_system` can never change.

**Required permission:** `roles.define`
        ''',
        request=RoleUpdateSerializer,
        responses={
            200: RoleSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
    ),
    patch=extend_schema(
        tags=['RBAC - Roles'],
        summary='Partially update role',
        request=RoleUpdateSerializer,
        responses={200: RoleSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    ),
    delete=extend_schema(
        tags=['RBAC - Roles'],
        summary='Delete role',
        description='''
Soft-delete a role. System roles can never be deleted, and roles still
assigned to active users are refused; both answer 400.

**Required permission:** `roles.define`
        ''',
        responses={
            204: None,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
    ),
)
class RoleDetailView(APIView):
    """
    GET/PUT/PATCH/DELETE /v1/roles/{id}
    """

    permission_classes = [HasRBACPermissions]

    def get_object(self, request, role_id):
        role = RoleService.get_role_or_404(role_id)
        self.check_object_permissions(request, role)
        return role

    def get(self, request, role_id):
        role = self.get_object(request, role_id)
        return Response(RoleSerializer(role, context={'include_statistics': True}).data)

    @requires_permissions('roles.define')
    @transaction.atomic
    def put(self, request, role_id):
        return self._update(request, role_id)

    @requires_permissions('roles.define')
    @transaction.atomic
    def patch(self, request, role_id):
        return self._update(request, role_id)

    @requires_permissions('roles.define')
    @transaction.atomic
    def delete(self, request, role_id):
        role = self.get_object(request, role_id)
        RoleService.delete_role(role, actor=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _update(self, request, role_id):
        role = self.get_object(request, role_id)
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = RoleService.update_role(role, dict(serializer.validated_data), actor=request.user, request=request)
        return Response(RoleSerializer(role).data)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='Default role templates',
        description='The built-in role bundles provisioned for every tenant.',
        responses={200: RoleTemplateSerializer(many=True)},
    )
)
class RoleDefaultsView(APIView):
    """
    GET /v1/roles/defaults
    """

    def get(self, request):
        templates = [template.to_dict() for _, template in RoleService.list_defaults()]
        return Response({
            'count': len(templates),
            'roles': RoleTemplateSerializer(templates, many=True).data,
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='Role statistics',
        description='Role counts and active users per role. **Admin or super admin only.**',
        parameters=[
            OpenApiParameter('tenant_id', OpenApiTypes.STR, description='Tenant id or slug (super admins only)'),
        ],
        responses={200: OpenApiTypes.OBJECT},
    )
)
@requires_roles('Admin')
class RoleStatisticsView(APIView):
    """
    GET /v1/roles/statistics
    """

    permission_classes = [HasRole]

    def get(self, request):
        tenant = resolve_scope_tenant(request, request.query_params.get('tenant_id'), required=False)
        return Response(RoleService.get_statistics(tenant=tenant))


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Roles'],
        summary='Initialize roles',
        description='''
Without `tenant_id`: create or refresh the global system roles.
With `tenant_id`: clone the default roles into that tenant, and with
`with_overrides` also create one permission override per cloned role.

**Super admin only.**
        ''',
        request=InitializeRolesSerializer,
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class RoleInitializeView(APIView):
    """
    POST /v1/roles/initialize
    """

    permission_classes = [IsSuperAdmin]

    @transaction.atomic
    def post(self, request):
        serializer = InitializeRolesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        tenant = resolve_scope_tenant(request, serializer.validated_data.get('tenant_id'), required=False)

        if tenant is None:
            roles = RoleService.ensure_system_roles(actor=request.user)
            return Response({
                'tenant_id': None,
                'roles': RoleSerializer(roles, many=True).data,
            })

        response = {'tenant_id': str(tenant.id)}
        if serializer.validated_data['with_overrides']:
            overrides = TenantPermissionService.initialize_tenant(tenant, actor=request.user)
            response['overrides'] = TenantPermissionSerializer(overrides, many=True).data
            roles = Role.objects.filter(tenant=tenant, slug__in=[tp.role_slug for tp in overrides])
        else:
            roles = RoleService.clone_defaults_for_tenant(tenant, actor=request.user)
        response['roles'] = RoleSerializer(roles, many=True).data
        return Response(response)


# ===== TENANT PERMISSION OVERRIDES =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Tenant Permissions'],
        summary='List tenant permission overrides',
        description='**Required permission:** `roles.customize`',
        parameters=[
            OpenApiParameter('tenant_id', OpenApiTypes.STR, description='Tenant id or slug (super admins only)'),
            OpenApiParameter('role_slug', OpenApiTypes.STR, description='Filter by role slug'),
        ],
        responses={200: TenantPermissionSerializer(many=True), 403: OpenApiTypes.OBJECT},
    ),
    post=extend_schema(
        tags=['RBAC - Tenant Permissions'],
        summary='Create or replace a tenant permission override',
        description='''
Overwrites every list of the override for (tenant, role_slug), creating it
when missing.

**Required permission:** `permissions.customize`
        ''',
        request=TenantPermissionWriteSerializer,
        responses={200: TenantPermissionSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    ),
)
class TenantPermissionListView(APIView):
    """
    GET /v1/tenant-permissions
    POST /v1/tenant-permissions
    """

    permission_classes = [HasRBACPermissions]

    @requires_permissions('roles.customize')
    def get(self, request):
        tenant = resolve_scope_tenant(request, request.query_params.get('tenant_id'), required=False)
        overrides = TenantPermissionService.list_overrides(
            tenant=tenant,
            role_slug=request.query_params.get('role_slug'),
        )
        serializer = TenantPermissionSerializer(overrides, many=True)
        return Response({
            'count': len(serializer.data),
            'tenant_permissions': serializer.data,
        })

    @requires_permissions('permissions.customize')
    @transaction.atomic
    def post(self, request):
        serializer = TenantPermissionWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tenant = resolve_scope_tenant(request, data['tenant_id'])
        tp = TenantPermissionService.replace(
            tenant,
            data['role_slug'],
            permissions=data['permissions'],
            module_access=data['module_access'],
            custom_permissions=data['custom_permissions'],
            is_active=data['is_active'],
            actor=request.user,
            request=request,
        )
        return Response(TenantPermissionSerializer(tp).data)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Tenant Permissions'],
        summary='Grant module access',
        description='''
Add modules to the (tenant, role_slug) override, creating an empty override
when none exists.

**Required permission:** `permissions.grant`
        ''',
        request=ModuleAccessChangeSerializer,
        responses={200: TenantPermissionSerializer, 403: OpenApiTypes.OBJECT},
    )
)
class ModuleAccessGrantView(APIView):
    """
    POST /v1/tenant-permissions/modules/grant
    """

    permission_classes = [HasRBACPermissions]

    @requires_permissions('permissions.grant')
    @transaction.atomic
    def post(self, request):
        serializer = ModuleAccessChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tenant = resolve_scope_tenant(request, data['tenant_id'])
        tp = TenantPermissionService.grant_module_access(
            tenant, data['role_slug'], data['modules'], actor=request.user, request=request
        )
        return Response(TenantPermissionSerializer(tp).data)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Tenant Permissions'],
        summary='Revoke module access',
        description='**Required permission:** `permissions.revoke`',
        request=ModuleAccessChangeSerializer,
        responses={200: TenantPermissionSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class ModuleAccessRevokeView(APIView):
    """
    POST /v1/tenant-permissions/modules/revoke
    """

    permission_classes = [HasRBACPermissions]

    @requires_permissions('permissions.revoke')
    @transaction.atomic
    def post(self, request):
        serializer = ModuleAccessChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tenant = resolve_scope_tenant(request, data['tenant_id'])
        tp = TenantPermissionService.revoke_module_access(
            tenant, data['role_slug'], data['modules'], actor=request.user, request=request
        )
        return Response(TenantPermissionSerializer(tp).data)


class _PermissionChangeView(APIView):
    permission_classes = [HasRBACPermissions]

    def _change(self, request, operation):
        serializer = PermissionChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tenant = resolve_scope_tenant(request, data['tenant_id'])
        tp = TenantPermissionService.get_for_tenant_and_role(tenant, data['role_slug'])
        if tp is None:
            raise NotFound(
                f"No permission override for role '{data['role_slug']}'",
                details={'tenant_id': str(tenant.id), 'role_slug': data['role_slug']}
            )

        tp = operation(tp, data['permission'], is_custom=data['is_custom'], actor=request.user, request=request)
        return Response(TenantPermissionSerializer(tp).data)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Tenant Permissions'],
        summary='Add a permission to an override',
        description='''
Adds to `custom_permissions` when `is_custom` is true, otherwise to `permissions`.
Adding a permission that is already present is a no-op.

**Required permission:** `permissions.customize`
        ''',
        request=PermissionChangeSerializer,
        responses={200: TenantPermissionSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class PermissionAddView(_PermissionChangeView):
    """
    POST /v1/tenant-permissions/permissions/add
    """

    @requires_permissions('permissions.customize')
    @transaction.atomic
    def post(self, request):
        return self._change(request, TenantPermissionService.add_permission)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Tenant Permissions'],
        summary='Remove a permission from an override',
        description='**Required permission:** `permissions.customize`',
        request=PermissionChangeSerializer,
        responses={200: TenantPermissionSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class PermissionRemoveView(_PermissionChangeView):
    """
    POST /v1/tenant-permissions/permissions/remove
    """

    @requires_permissions('permissions.customize')
    @transaction.atomic
    def post(self, request):
        return self._change(request, TenantPermissionService.remove_permission)


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Tenant Permissions'],
        summary='Reset an override to the system role',
        description='''
Re-copies `permissions` and `module_access` from the global system role and
clears `custom_permissions`. Returns 404 when the tenant has no override
for the role.

**Required permission:** `permissions.customize`
        ''',
        request=TenantRoleTargetSerializer,
        responses={200: TenantPermissionSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class TenantPermissionResetView(APIView):
    """
    POST /v1/tenant-permissions/reset
    """

    permission_classes = [HasRBACPermissions]

    @requires_permissions('permissions.customize')
    @transaction.atomic
    def post(self, request):
        serializer = TenantRoleTargetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tenant = resolve_scope_tenant(request, data['tenant_id'])
        tp = TenantPermissionService.reset_to_default(
            tenant, data['role_slug'], actor=request.user, request=request
        )
        if tp is None:
            raise NotFound(
                f"No permission override for role '{data['role_slug']}' to reset",
                details={'tenant_id': str(tenant.id), 'role_slug': data['role_slug']}
            )
        return Response(TenantPermissionSerializer(tp).data)


# ===== AUDIT LOG =====

@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='List audit logs',
        description='''
Audit trail of role and permission-override changes.

**Required permission:** `logs.audit`

Query parameters:
- `action`: Filter by action (e.g., 'role_created', 'tenant_permission_reset')
- `target_type`: Filter by target type ('Role', 'TenantPermission', 'Tenant')
- `target_id`: With `target_type`, narrow to one target
- `days`: Only entries from the last N days
- `tenant_id`: Tenant id or slug (super admins only)
        ''',
        parameters=[
            OpenApiParameter('action', OpenApiTypes.STR, description='Filter by action type'),
            OpenApiParameter('target_type', OpenApiTypes.STR, description='Filter by target type'),
            OpenApiParameter('target_id', OpenApiTypes.STR, description='Filter by target id (with target_type)'),
            OpenApiParameter('days', OpenApiTypes.INT, description='Only entries from the last N days'),
            OpenApiParameter('tenant_id', OpenApiTypes.STR, description='Tenant id or slug'),
        ],
        responses={200: AuditLogSerializer(many=True), 403: OpenApiTypes.OBJECT},
    )
)
@requires_permissions('logs.audit')
class AuditLogListView(APIView):
    """
    GET /v1/audit-logs
    """

    permission_classes = [HasRBACPermissions]
    pagination_class = StandardResultsSetPagination

    def get(self, request):
        filters = AuditLogFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        params = filters.validated_data

        tenant = resolve_scope_tenant(request, params.get('tenant_id'), required=False)

        logs = AuditLog.objects.select_related('user', 'tenant')
        if tenant is not None:
            logs = logs.for_tenant(tenant)
        if params.get('action'):
            logs = logs.by_action(params['action'])
        if params.get('target_type'):
            logs = logs.by_target(params['target_type'], params.get('target_id'))
        if params.get('days'):
            logs = logs.recent(days=params['days'])

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(logs, request)
        serializer = AuditLogSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)
