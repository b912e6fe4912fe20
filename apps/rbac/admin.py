"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin
from .models import AuditLog, Role, TenantPermission, User

admin.site.site_header = 'School RBAC Administration'
admin.site.site_title = 'School RBAC'


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """
    Admin for our User model.

    Adapted to work with email-based authentication (no username field).
    """
    list_display = ['email', 'first_name', 'last_name', 'role', 'tenant', 'is_active', 'created_at']
    list_filter = ['role', 'is_active', 'tenant']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at', 'last_login_at']
    fieldsets = (
        (None, {'fields': ('email', 'password_hash')}),
        ('Personal Info', {'fields': ('first_name', 'last_name')}),
        ('Access', {'fields': ('role', 'tenant', 'is_active')}),
        ('Activity', {'fields': ('last_login_at', 'created_at', 'updated_at')}),
    )


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'tenant', 'is_system', 'is_default', 'is_active']
    list_filter = ['is_system', 'is_default', 'is_active']
    search_fields = ['name', 'slug']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(TenantPermission)
class TenantPermissionAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'role_slug', 'is_active', 'updated_at']
    list_filter = ['is_active', 'role_slug']
    search_fields = ['tenant__name', 'role_slug']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['action', 'target_type', 'target_id', 'user', 'tenant', 'created_at']
    list_filter = ['action', 'target_type']
    search_fields = ['action', 'request_id']
    readonly_fields = [field.name for field in AuditLog._meta.fields]
