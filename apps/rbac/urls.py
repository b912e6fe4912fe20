"""
RBAC API URLs.

Provides endpoints for:
- Permission introspection and the permission catalog
- Role management (CRUD, defaults, statistics, initialization)
- Tenant permission overrides
- Audit log viewing
"""
from django.urls import path
from apps.rbac.views import (
    MyPermissionsView,
    CapabilitiesView,
    PermissionCheckView,
    BulkPermissionCheckView,
    PermissionCatalogView,
    PermissionCatalogModuleView,
    RoleListView,
    RoleDetailView,
    RoleDefaultsView,
    RoleStatisticsView,
    RoleInitializeView,
    TenantPermissionListView,
    ModuleAccessGrantView,
    ModuleAccessRevokeView,
    PermissionAddView,
    PermissionRemoveView,
    TenantPermissionResetView,
    AuditLogListView,
)

app_name = 'rbac'

urlpatterns = [
    # Permission endpoints
    path('permissions/me', MyPermissionsView.as_view(), name='permissions-me'),
    path('permissions/capabilities', CapabilitiesView.as_view(), name='permissions-capabilities'),
    path('permissions/check', PermissionCheckView.as_view(), name='permissions-check'),
    path('permissions/bulk-check', BulkPermissionCheckView.as_view(), name='permissions-bulk-check'),
    path('permissions/catalog', PermissionCatalogView.as_view(), name='permissions-catalog'),
    path('permissions/catalog/<str:module>', PermissionCatalogModuleView.as_view(), name='permissions-catalog-module'),

    # Role endpoints
    path('roles', RoleListView.as_view(), name='role-list'),
    path('roles/defaults', RoleDefaultsView.as_view(), name='role-defaults'),
    path('roles/statistics', RoleStatisticsView.as_view(), name='role-statistics'),
    path('roles/initialize', RoleInitializeView.as_view(), name='role-initialize'),
    path('roles/<uuid:role_id>', RoleDetailView.as_view(), name='role-detail'),

    # Tenant permission override endpoints
    path('tenant-permissions', TenantPermissionListView.as_view(), name='tenant-permission-list'),
    path('tenant-permissions/modules/grant', ModuleAccessGrantView.as_view(), name='tenant-permission-module-grant'),
    path('tenant-permissions/modules/revoke', ModuleAccessRevokeView.as_view(), name='tenant-permission-module-revoke'),
    path('tenant-permissions/permissions/add', PermissionAddView.as_view(), name='tenant-permission-add'),
    path('tenant-permissions/permissions/remove', PermissionRemoveView.as_view(), name='tenant-permission-remove'),
    path('tenant-permissions/reset', TenantPermissionResetView.as_view(), name='tenant-permission-reset'),

    # Audit log endpoint
    path('audit-logs', AuditLogListView.as_view(), name='audit-log-list'),
]
