"""
Tenant models for multi-tenant isolation.

Each tenant is one school sharing the deployment. Roles, permission
overrides and users are isolated per tenant.
"""
from django.core.exceptions import ValidationError
from django.db import models
from apps.core.models import BaseModel, BaseModelManager


class TenantManager(BaseModelManager):
    """Manager for tenant-scoped queries."""

    def active(self):
        """Return only tenants that may use the platform."""
        return self.filter(status__in=['active', 'trial'])

    def by_slug(self, slug):
        return self.filter(slug=slug).first()

    def resolve(self, identifier):
        """
        Find a tenant by slug or by UUID string.

        Returns None when nothing matches.
        """
        tenant = self.by_slug(identifier)
        if tenant:
            return tenant
        try:
            return self.filter(id=identifier).first()
        except (ValueError, TypeError, ValidationError):
            return None


class Tenant(BaseModel):
    """
    Tenant model representing an isolated school account.
    """

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('trial', 'Trial'),
        ('suspended', 'Suspended'),
        ('canceled', 'Canceled'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="School name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='active',
        db_index=True,
        help_text="Current tenant status"
    )
    contact_email = models.EmailField(
        blank=True,
        help_text="Primary contact for the school"
    )

    objects = TenantManager()

    class Meta:
        db_table = 'tenants'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.slug})"

    @property
    def is_active(self):
        return self.status in ('active', 'trial')
