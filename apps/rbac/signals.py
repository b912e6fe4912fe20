"""
RBAC signals for automatic role seeding.

Clones the default roles into every newly created tenant. Permission
overrides are not created here; they appear lazily on first customization.
"""
import logging
from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender='tenants.Tenant')
def seed_roles_on_tenant_creation(sender, instance, created, **kwargs):
    """
    Seed the default roles when a new tenant is created.

    Controlled by ``settings.RBAC_SEED_ROLES_ON_TENANT_CREATE``. Raw saves
    (fixture loading) are skipped.
    """
    if not created or kwargs.get('raw', False):
        return

    if not getattr(settings, 'RBAC_SEED_ROLES_ON_TENANT_CREATE', True):
        return

    # Import here to avoid circular imports
    from apps.rbac.services import RoleService

    roles = RoleService.clone_defaults_for_tenant(instance)
    logger.info(
        f"Seeded {len(roles)} default roles for new tenant {instance.slug}",
        extra={'tenant_id': str(instance.id), 'trigger': 'post_save_signal'}
    )
