"""
Django settings for the School RBAC API.
"""
import os
from pathlib import Path
import environ
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1']),
    DB_CONN_MAX_AGE=(int, 600),
    JSON_LOGS=(bool, False),
    LOG_LEVEL=(str, 'INFO'),
    RBAC_SEED_ROLES_ON_TENANT_CREATE=(bool, True),
    RATE_LIMIT_ENABLED=(bool, True),
)

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('SECRET_KEY', default='django-insecure-school-rbac-local-development-key-4f9c2a7e')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env('ALLOWED_HOSTS')

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party apps
    'rest_framework',
    'drf_spectacular',
    'django_ratelimit',

    # School apps
    'apps.core',
    'apps.tenants',
    'apps.rbac',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',

    # Custom middleware
    'apps.core.middleware.RequestIDMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database
DATABASES = {
    'default': env.db('DATABASE_URL', default=f'sqlite:///{BASE_DIR / "db.sqlite3"}'),
}
DATABASES['default']['CONN_MAX_AGE'] = env('DB_CONN_MAX_AGE')

# Configure based on database engine
if 'postgresql' in DATABASES['default']['ENGINE']:
    DATABASES['default']['OPTIONS'] = {
        'connect_timeout': 10,
    }

# Cache (rate-limit counters)
# Point CACHE_URL at a shared cache such as Redis when running more than one process
CACHES = {
    'default': env.cache('CACHE_URL', default='locmemcache://'),
}

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Custom User Model
# Single-role users: each user carries exactly one role slug
AUTH_USER_MODEL = 'rbac.User'

AUTHENTICATION_BACKENDS = [
    'apps.rbac.backends.EmailAuthBackend',
]

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'apps.core.authentication.JWTAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
}

# DRF Spectacular (OpenAPI)
SPECTACULAR_SETTINGS = {
    'TITLE': 'School RBAC API',
    'DESCRIPTION': '''
Multi-tenant school administration API: role and permission resolution.

## Authentication

All API requests require JWT authentication:
- `Authorization: Bearer <token>` - JWT token obtained from `/v1/auth/login`

## Authorization (RBAC)

### Permissions
Opaque identifiers in `<module>.<action>` form (e.g. `students.manage`), grouped by
module for display. See `/v1/permissions/catalog` for the complete list.

### Roles
Each user holds exactly one role. Built-in roles:
- **SuperAdmin**: every permission and every module (`*`)
- **Admin**: full school management
- **Teacher**: teaching and student management
- **Student**: student portal
- **Parent**: monitoring of children's progress
- **Accountant**: fees and financial reports

System roles can never be deleted and can only be modified by a SuperAdmin.

### Tenant Permission Overrides
A school may be granted extra permissions for a role through a tenant permission
override. Overrides are additive only: they can grant permissions the base role lacks,
they never revoke a permission the base role grants.

### Resolution Order
1. SuperAdmin is granted everything.
2. The base role's wildcard or literal permission grants.
3. The active tenant override for the user's school and role.
4. Otherwise denied. Unknown roles resolve to no permissions.
    ''',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
    'COMPONENT_SPLIT_REQUEST': True,
    'SCHEMA_PATH_PREFIX': r'/v1/',
    'SWAGGER_UI_SETTINGS': {
        'deepLinking': True,
        'persistAuthorization': True,
        'displayOperationId': True,
        'filter': True,
    },
    'SECURITY': [
        {
            'JWTAuth': []
        }
    ],
    'APPEND_COMPONENTS': {
        'securitySchemes': {
            'JWTAuth': {
                'type': 'http',
                'scheme': 'bearer',
                'bearerFormat': 'JWT',
                'description': 'JWT token obtained from /v1/auth/login. Include as: Authorization: Bearer <token>.'
            }
        }
    },
    'TAGS': [
        {'name': 'Authentication', 'description': 'Login and current user'},
        {'name': 'RBAC - Roles', 'description': 'Role management'},
        {'name': 'RBAC - Permissions', 'description': 'Permission catalog and permission checks'},
        {'name': 'RBAC - Tenant Permissions', 'description': 'Per-school permission overrides'},
        {'name': 'Health', 'description': 'Service health'},
    ],
}

# ============================================================================
# SECURITY SETTINGS
# ============================================================================

# HTTPS Enforcement (Production Only)
if not DEBUG:
    SECURE_HSTS_SECONDS = env.int('SECURE_HSTS_SECONDS', default=0)
    SESSION_COOKIE_SECURE = env.bool('SESSION_COOKIE_SECURE', default=False)
    CSRF_COOKIE_SECURE = env.bool('CSRF_COOKIE_SECURE', default=False)

# Security Headers (All Environments)
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

# ============================================================================
# RBAC SETTINGS
# ============================================================================

# Slug of the role that bypasses permission resolution
RBAC_SUPER_ADMIN_ROLE = env('RBAC_SUPER_ADMIN_ROLE', default='SuperAdmin')

# Clone the default roles into every newly created tenant
RBAC_SEED_ROLES_ON_TENANT_CREATE = env('RBAC_SEED_ROLES_ON_TENANT_CREATE')

# Optional replacement for the built-in role templates, keyed by slug:
# {'Librarian': {'name': ..., 'description': ..., 'is_system': True,
#                'permissions': [...], 'module_access': [...]}}
RBAC_DEFAULT_ROLES = None

# Optional replacement for the built-in permission catalog:
# {'modules': {...}, 'module_permissions': {...}, 'platform_permissions': {...},
#  'category_map': {...}}
RBAC_PERMISSION_CATALOG = None

# ============================================================================
# RATE LIMITING
# ============================================================================

RATE_LIMIT_ENABLED = env('RATE_LIMIT_ENABLED')

# Django-ratelimit configuration
RATELIMIT_USE_CACHE = 'default'
RATELIMIT_ENABLE = RATE_LIMIT_ENABLED

# Failed and successful logins per client IP
LOGIN_RATE_LIMIT = env('LOGIN_RATE_LIMIT', default='5/m')

# The local-memory cache is per process; silence the shared-cache checks for it
if CACHES['default']['BACKEND'] == 'django.core.cache.backends.locmem.LocMemCache':
    SILENCED_SYSTEM_CHECKS = ['django_ratelimit.E003', 'django_ratelimit.W001']

# ============================================================================
# LOGGING
# ============================================================================

LOG_LEVEL = env('LOG_LEVEL')
JSON_LOGS = env('JSON_LOGS')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            '()': 'apps.core.logging.JSONFormatter',
        },
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'filters': {
        'request_context': {
            '()': 'apps.core.middleware.LoggingFilter',
        },
    },
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'json' if JSON_LOGS else 'verbose',
            'filters': ['request_context'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.request': {
            'handlers': ['console'],
            'level': 'ERROR',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'security': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

# ============================================================================
# SENTRY
# ============================================================================

SENTRY_DSN = env('SENTRY_DSN', default=None)
SENTRY_ENVIRONMENT = env('SENTRY_ENVIRONMENT', default='development')
SENTRY_RELEASE = env('SENTRY_RELEASE', default=None)

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
        ],
        environment=SENTRY_ENVIRONMENT,
        release=SENTRY_RELEASE,
        traces_sample_rate=0.1 if not DEBUG else 1.0,
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )

# ============================================================================
# JWT AUTHENTICATION
# ============================================================================

JWT_SECRET_KEY = env('JWT_SECRET_KEY', default='local-jwt-signing-key-Xq7Vb2Lm9Rt4Kp8Wz3Nc6Hd')

if len(JWT_SECRET_KEY) < 32:
    raise environ.ImproperlyConfigured(
        "JWT_SECRET_KEY must be at least 32 characters long for security. "
        "Current length: {}. Generate a strong key with: "
        "python -c \"import secrets; print(secrets.token_urlsafe(32))\"".format(len(JWT_SECRET_KEY))
    )

if JWT_SECRET_KEY == SECRET_KEY:
    raise environ.ImproperlyConfigured(
        "JWT_SECRET_KEY must be different from SECRET_KEY for security. "
        "Generate a separate JWT key with: "
        "python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

JWT_ALGORITHM = env('JWT_ALGORITHM', default='HS256')
JWT_EXPIRATION_HOURS = env.int('JWT_EXPIRATION_HOURS', default=24)
