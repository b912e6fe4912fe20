from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging
import sys

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when the server starts.

        Management commands other than runserver skip the checks so that
        migrations, shell and seeding work without production config.
        """
        serving = (len(sys.argv) > 1 and sys.argv[1] == 'runserver') or 'gunicorn' in sys.argv[0]
        if not serving:
            return

        self._validate_jwt_configuration()
        self._validate_security_settings()

        logger.info("Startup security validations passed")

    def _validate_jwt_configuration(self):
        """Validate JWT secret key entropy."""
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)

        if not jwt_secret:
            raise ImproperlyConfigured(
                "JWT_SECRET_KEY must be set in environment variables. "
                "Generate a strong key with: "
                "python -c \"import secrets; print(secrets.token_urlsafe(32))\""
            )

        unique_chars = len(set(jwt_secret))
        if unique_chars < 16:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY has insufficient entropy. "
                f"Found only {unique_chars} unique characters, need at least 16."
            )

        pattern = jwt_secret[:2]
        expected = pattern * (len(jwt_secret) // 2) + pattern[:len(jwt_secret) % 2]
        if jwt_secret == expected:
            raise ImproperlyConfigured("JWT_SECRET_KEY is a simple repeating pattern.")

    def _validate_security_settings(self):
        """Refuse well-known placeholder SECRET_KEY values outside DEBUG."""
        if settings.DEBUG:
            return

        secret_lower = settings.SECRET_KEY.lower()
        for weak in ('django-insecure', 'change-this', 'change-me', 'your-secret-key'):
            if weak in secret_lower:
                raise ImproperlyConfigured(
                    f"SECRET_KEY appears to be a default or weak value (contains '{weak}'). "
                    f"Generate a strong key with: "
                    f"python -c \"import secrets; print(secrets.token_urlsafe(50))\""
                )
