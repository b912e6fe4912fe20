"""
Structured JSON logging and security event logging.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Utility class to mask sensitive data in logs.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|password|authorization)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE
    )
    BEARER_PATTERN = re.compile(r'Bearer\s+[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+\.?[A-Za-z0-9\-_.+/=]*')

    # Sensitive field names that should be masked
    SENSITIVE_FIELDS = {
        'password', 'password_hash', 'passwd',
        'token', 'access_token', 'refresh_token', 'bearer_token',
        'secret', 'secret_key', 'jwt_secret_key',
        'authorization',
    }

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text, keeping the first character and the domain."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        """Mask tokens, passwords and secrets in text."""
        if not isinstance(text, str):
            return text
        text = cls.BEARER_PATTERN.sub('Bearer ********', text)
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        return cls.mask_secrets(cls.mask_email(text))

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            else:
                masked[key] = cls.mask_text(value)

        return masked


# LogRecord attributes that are never copied into the JSON payload as extras
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
    'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'taskName', 'exc_info', 'exc_text', 'stack_info',
    'request_id', 'tenant_id',
})


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Includes request_id and tenant_id when the LoggingFilter or the caller's
    ``extra`` provides them. Sensitive values are masked.
    """

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if getattr(record, 'request_id', None):
            log_data['request_id'] = record.request_id

        if getattr(record, 'tenant_id', None):
            log_data['tenant_id'] = str(record.tenant_id)

        if record.exc_info and record.exc_info[0]:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            elif isinstance(value, (set, frozenset)):
                value = sorted(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized logging for authorization and authentication security events.

    Critical events are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'system_role_deletion_attempt',
        'cross_tenant_access_attempt',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'permission_denied')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (user_id, tenant_id, etc.)
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'event_time': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(email: str, ip_address: str, reason: str = None):
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            email=email,
            ip_address=ip_address,
            reason=reason
        )

    @staticmethod
    def log_permission_denied(user, required_permissions, ip_address: str = None, path: str = None):
        """
        Log a permission denial.

        Args:
            user: User instance (or None for anonymous)
            required_permissions: Permission ids that were missing
            ip_address: IP address of the request
            path: Request path
        """
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            user_id=str(user.id) if getattr(user, 'id', None) else None,
            user_role=getattr(user, 'role', None),
            tenant=str(user.tenant_id) if getattr(user, 'tenant_id', None) else None,
            required_permissions=sorted(required_permissions),
            ip_address=ip_address,
            path=path,
        )

    @staticmethod
    def log_role_denied(user, required_roles, ip_address: str = None, path: str = None):
        SecurityLogger.log_event(
            'role_denied',
            level='warning',
            user_id=str(user.id) if getattr(user, 'id', None) else None,
            user_role=getattr(user, 'role', None),
            required_roles=sorted(required_roles),
            ip_address=ip_address,
            path=path,
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, user_email: str = None, limit: str = None):
        """
        Log a request refused by a rate limit.

        Args:
            endpoint: Path of the throttled endpoint
            ip_address: Client IP address
            user_email: Email the client tried, when known
            limit: Human-readable description of the limit
        """
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            email=user_email,
            limit=limit,
        )

    @staticmethod
    def log_protected_role_mutation(user, role, operation: str):
        """
        Log an attempt to update or delete a system role that was refused.

        Args:
            user: Acting user (or None for system callers)
            role: Role instance that was targeted
            operation: 'update' or 'delete'
        """
        event_type = (
            'system_role_deletion_attempt' if operation == 'delete'
            else 'system_role_modification_attempt'
        )
        SecurityLogger.log_event(
            event_type,
            level='error' if operation == 'delete' else 'warning',
            user_id=str(user.id) if getattr(user, 'id', None) else None,
            user_role=getattr(user, 'role', None),
            role_id=str(role.id),
            role_slug=role.slug,
        )

    @staticmethod
    def log_cross_tenant_access(user, object_type: str, object_id, object_tenant_id):
        SecurityLogger.log_event(
            'cross_tenant_access_attempt',
            level='error',
            user_id=str(user.id) if getattr(user, 'id', None) else None,
            user_tenant=str(user.tenant_id) if getattr(user, 'tenant_id', None) else None,
            object_type=object_type,
            object_id=str(object_id) if object_id else None,
            object_tenant=str(object_tenant_id) if object_tenant_id else None,
        )
